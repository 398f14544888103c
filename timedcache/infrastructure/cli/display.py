import logging
from typing import Any, Dict, List

from rich.console import Console
from rich.table import Table

from timedcache.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Console = None):
        self.console = console or Console()

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.console.print(f"[blue]Info:[/blue] {info_message}")

    def display_success(self, message: str, **kwargs: Any) -> None:
        self.console.print(f"[bold green]{message}[/bold green]")

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        self.console.print(f"[yellow]Warning:[/yellow] {warning_message}")

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {error_message}")

    def display_lookups(self, rows: List[Dict[str, Any]], title: str = "Lookups") -> None:
        """Renders lookup rows as a table; columns come from the first row's keys."""
        if not rows:
            logger.debug("display_lookups called with no rows")
            self.display_info("No lookups to show.")
            return
        table = Table(title=title)
        columns = list(rows[0].keys())
        for column in columns:
            table.add_column(str(column))
        for row in rows:
            table.add_row(*(str(row.get(column, "")) for column in columns))
        self.console.print(table)
