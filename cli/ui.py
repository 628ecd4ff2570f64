from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.markup import escape
import inquirer
import os

console = Console()


def clear_screen():
    '''Clear terminal screen'''
    os.system('cls' if os.name == 'nt' else 'clear')

def show_success(message):
    '''Show success message in green'''
    console.print(f"  ✅ {escape(str(message))}", style="bold green")

def show_error(message):
    '''Show error message in red'''
    console.print(f"  ❌ {escape(str(message))}", style="bold red")

def show_warning(message):
    '''Show warning message in yellow'''
    console.print(f"  ⚠️  {escape(str(message))}", style="yellow")

def show_info(message):
    '''Show info message in blue'''
    console.print(f"  ℹ️  {escape(str(message))}", style="bold blue")

def _print_header():
    '''Print the N8S ASCII art header'''
    logo = Text()
    logo.append("  _  _  ___  ___\n", style="bold cyan")
    logo.append(" | \\| |( _ )/ __|\n", style="bold cyan")
    logo.append(" | .` |/ _ \\\\__ \\\n", style="cyan")
    logo.append(" |_|\\_|\\___/|___/\n\n", style="dim cyan")
    logo.append("  v2.1", style="bold white")
    logo.append("  |  nginx Multi-Port Router", style="dim")
    console.print(Panel(logo, border_style="cyan", padding=(1, 2)))

def show_panel(title, content, style="cyan"):
    '''Show content in a panel with border'''
    clear_screen()
    _print_header()

    panel = Panel(
        content,
        title=title,
        border_style=style
    )
    console.print(panel)

def show_step_detail(message):
    '''Show a detail line under a step, maintaining the vertical line'''
    console.print(f"  │     {message}", style="dim green")

def show_step_line():
    '''Show just the vertical connecting line'''
    console.print(f"  │", style="dim cyan")

def step_input(prompt):
    '''Input with vertical line prefix for connected config flow'''
    console.print(f"  │", style="dim cyan", end="")
    return input(f"     {prompt}")

def show_routes_table(config, routes):
    '''Print the route table. routes is [(route, url)].'''
    table = Table(title="🔀 Routes", show_header=True, header_style="bold cyan")
    table.add_column("Port", style="cyan", width=7)
    table.add_column("Name", style="white")
    table.add_column("URL", style="green")
    table.add_column("Backend", style="white")

    for route, url in routes:
        table.add_row(str(route.port), route.name, url, f"127.0.0.1:{route.backend_port}")

    console.print()
    console.print(table)
    if not routes:
        show_info("No routes configured yet")
    console.print()

def show_status_table(config):
    '''Print ports, host and install flags'''
    table = Table(title="💻 Router Status", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="cyan", width=20)
    table.add_column("Value", style="white")

    table.add_row("Listening ports", ', '.join(str(p) for p in config.ports))
    table.add_row("Primary port", str(config.primary_port))
    table.add_row("Server host", config.public_host)
    table.add_row("App directory", str(config.app_dir))
    table.add_row("Routes directory", str(config.routes_dir))
    table.add_row("nginx config", str(config.nginx_conf))
    for component, installed in config.installed.items():
        table.add_row(component, "✅ Installed" if installed else "❌ Not installed")

    console.print()
    console.print(table)
    console.print()

def select_from_list(message, choices):
    '''Interactive list selection'''
    questions = [
        inquirer.List(
            'selection',
            message=message,
            choices=choices
        )
    ]

    answer = inquirer.prompt(questions)
    if answer is None:
        # Ctrl+C inside inquirer
        raise KeyboardInterrupt
    return answer['selection']
