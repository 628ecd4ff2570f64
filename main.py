import logging
import os
import sys
import subprocess
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text


def check_sudo():
    '''Ensure running as root, unless the config dir was redirected'''
    from utils.system import is_root

    if is_root() or 'N8S_CONFIG_DIR' in os.environ:
        return

    print("⚠️  n8s writes to /etc/n8s and /etc/nginx and needs root")
    print("   Restarting with sudo...")
    result = subprocess.run(["sudo", sys.executable, os.path.abspath(__file__)] + sys.argv[1:])
    sys.exit(result.returncode)


def setup_logging(verbose=False):
    '''Diagnostics go through rich; operator messages use cli.ui'''
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)]
    )


def print_header():
    '''Print n8s startup header with Rich'''

    console = Console()

    logo = Text()
    logo.append("  N8S", style="bold cyan")
    logo.append("  v2.1", style="bold white")
    logo.append("  |  nginx Multi-Port Router for n8n", style="dim")

    console.print()
    console.print(Panel(logo, border_style="cyan", padding=(1, 2)))
    console.print()


def main(argv=None):
    from cli.commands import build_parser, handle_command
    from router.store import RouterStore

    check_sudo()
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    store = RouterStore()

    if args.command:
        return handle_command(args, store)

    print_header()
    from cli.main_menu import run_main_loop
    try:
        run_main_loop(store)
    except KeyboardInterrupt:
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
