import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from rich.box import ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from syncdash.domain.interfaces.user_interface import UserInterface
from syncdash.domain.models.jobs import JobState, count_orphans
from syncdash.domain.models.search import CategorizedResults, DiscoverySuggestion

logger = logging.getLogger(__name__)

SUGGESTION_STYLES = {
    "TOPIC": "bold magenta",
    "TITLE": "bold blue",
    "CONTENT": "green",
}


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()
        self._last_job_line: Optional[str] = None

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def _timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.console.print(f"[dim]{self._timestamp()}[/dim] [cyan]{info_message}[/cyan]")

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        self.console.print(f"[dim]{self._timestamp()}[/dim] [yellow]Warning:[/yellow] {warning_message}")

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        self.console.print(Panel(error_message, title="[bold red]Error[/bold red]", border_style="red", box=ROUNDED))

    def display_job_state(self, state: JobState) -> None:
        """Prints one status line per distinct state, then a summary table once complete."""
        if state.error:
            line = f"[red]{state.error}[/red]"
        elif state.is_loading:
            line = "[yellow]Orphan analysis in progress...[/yellow]"
        elif state.data is not None and state.data.is_complete:
            line = f"[green]Orphan analysis complete: {count_orphans(state.data)} orphan(s)[/green]"
        else:
            line = "[dim]Orphan analysis idle[/dim]"

        # Subscribers fire on every store write; only print changes
        if line == self._last_job_line:
            return
        self._last_job_line = line
        self.console.print(f"[dim]{self._timestamp()}[/dim] {line}")

        if state.data is not None and state.data.is_complete and not state.error:
            table = Table(title="Orphaned content", box=SIMPLE)
            table.add_column("Kind")
            table.add_column("Items", justify="right")
            table.add_column("Orphans", justify="right")
            for kind, deps_by_id in state.data.dependency_maps().items():
                orphans = sum(1 for deps in deps_by_id.values() if not deps)
                table.add_row(kind, str(len(deps_by_id)), str(orphans))
            self.console.print(table)

    def display_suggestions(self, suggestions: Sequence[DiscoverySuggestion]) -> None:
        if not suggestions:
            self.console.print("[dim]No suggestions.[/dim]")
            return
        for index, suggestion in enumerate(suggestions, start=1):
            style = SUGGESTION_STYLES.get(suggestion.type, "white")
            self.console.print(f"  {index}. {suggestion.term} [{style}]{suggestion.type}[/{style}]")

    def display_results(self, results: CategorizedResults) -> None:
        if not results:
            self.console.print("[dim]No results.[/dim]")
            return
        table = Table(title="Search results", box=SIMPLE)
        table.add_column("Category")
        table.add_column("Matches", justify="right")
        for category, items in results.items():
            count = len(items) if isinstance(items, (list, tuple, dict)) else 1
            table.add_row(str(category), str(count))
        self.console.print(table)
