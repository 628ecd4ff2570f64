import platform
from rich.console import Console
from rich.spinner import Spinner
from rich.live import Live

# Platform detection for compatible symbols
IS_WINDOWS = platform.system().lower() == 'windows'

if IS_WINDOWS:
    SYMBOL_SUCCESS = "[OK]"
    SYMBOL_FAILED = "[X]"
    SPINNER_STYLE = "line"
else:
    SYMBOL_SUCCESS = "✅"
    SYMBOL_FAILED = "❌"
    SPINNER_STYLE = "dots"

console = Console()


class ProgressMonitor:
    """Context manager showing a spinner while an external command runs."""

    def __init__(self, message: str = "Operation in progress"):
        self.message = message
        self.spinner = Spinner(SPINNER_STYLE, text=f"│     {message}")
        self.live = None
        self.result = None
        self.success = False

    def __enter__(self):
        """Start the spinner display."""
        self.live = Live(self.spinner, console=console, refresh_per_second=10, transient=True)
        self.live.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Stop the spinner and show final status."""
        if self.live:
            self.live.stop()

        if self.success:
            console.print(f"  │     {SYMBOL_SUCCESS} {self.message} - Complete!", style="bold green")
        elif exc_type is not None:
            console.print(f"  │     {SYMBOL_FAILED} {self.message} - Failed ({exc_type.__name__})", style="bold red")
        elif self.result is not None and self.result.returncode != 0:
            console.print(f"  │     {SYMBOL_FAILED} {self.message} - Failed", style="bold red")

    def set_result(self, result):
        """Set subprocess result and determine success status."""
        self.result = result
        self.success = result.returncode == 0
