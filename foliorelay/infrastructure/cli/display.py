"""Rich-based console implementation of the UserInterface port."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, List, Optional, Sequence

from rich.align import Align
from rich.box import HEAVY, ROUNDED, SIMPLE, Box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from foliorelay.domain.interfaces.user_interface import UserInterface
from foliorelay.domain.models.batch import BatchProgress, ProgressCallback
from foliorelay.domain.models.common import ProcessedOutput, PromptText

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """UserInterface on a rich Console: answer panels, notices, tables and progress bars."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()
        self._last_title: Optional[str] = None

    @property
    def console(self) -> Console:
        return self._console

    def display_output(self, output: ProcessedOutput, **kwargs: Any) -> None:
        """Renders an answer as Markdown inside a panel.

        Args:
            output: Text to render.
            **kwargs:
                - title: Who is speaking (default: "AI")
                - subtitle: Footer, e.g. which provider answered
                - degraded: Use the warning border for fallback answers
        """
        title = kwargs.get("title", "AI")
        subtitle = kwargs.get("subtitle")
        degraded = kwargs.get("degraded", False)
        text = str(output)
        logger.debug(f"Rendering output from {title} ({len(text)} chars, degraded={degraded})")

        if self._last_title != title:
            self.console.print("")
        self._last_title = title

        stamp = datetime.now().strftime("%H:%M:%S")
        try:
            self.console.print(Panel(
                Markdown(text),
                title=f"[bold white]{title}[/bold white] [dim]·[/dim] [dim white]{stamp}[/dim white]",
                title_align="left",
                subtitle=subtitle,
                subtitle_align="right",
                border_style="yellow" if degraded else "blue",
                box=ROUNDED,
                padding=(0, 1),
            ))
        except Exception as e:
            # Markdown rendering can fail on malformed input; show the raw text instead
            logger.error(f"Error displaying formatted message: {e}")
            self.console.print(f"\n{title} ({stamp}):\n{text}\n")

    def get_prompt(self, prompt_message: str = "> ") -> PromptText:
        self._last_title = None
        self.console.print("")
        return PromptText(self.console.input(f"[bold green] {prompt_message} [/bold green] "))

    def _notice(self, message: str, label: str, color: str, box: Box) -> None:
        self.console.print(Panel(
            Text(message, style="white"),
            title=f"[bold {color}]{label}[/bold {color}]",
            border_style=color,
            box=box,
            padding=(0, 1),
        ))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        self._notice(error_message, "Error", "red", HEAVY)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self._notice(info_message, "Info", "blue", SIMPLE)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.debug(f"Display warning: {warning_message}")
        self._notice(warning_message, "Warning", "yellow", HEAVY)

    def display_table(self, title: str, columns: Sequence[str], rows: List[Sequence[Any]], **kwargs: Any) -> None:
        """Renders rows as a rich Table. Cells are converted with str()."""
        table = Table(title=title, box=ROUNDED, border_style=kwargs.get("border_style", "cyan"), padding=(0, 1))
        for index, column in enumerate(columns):
            table.add_column(column, justify="left" if index == 0 else "right")
        for row in rows:
            table.add_row(*(str(cell) for cell in row))
        self.console.print(table)

    @contextmanager
    def progress(self, description: str, total: Optional[int] = None) -> Iterator[ProgressCallback]:
        """Shows a progress bar driven by BatchProgress snapshots."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        ) as bar:
            task_id = bar.add_task(description, total=total)

            def update(snapshot: BatchProgress) -> None:
                bar.update(task_id, completed=snapshot.processed, total=snapshot.total)

            yield update

    def _centered_box(self, lines: Sequence[str], box: Box) -> None:
        table = Table(show_header=False, box=box, border_style="cyan", padding=(0, 1))
        table.add_column("Content", style="cyan")
        for line in lines:
            table.add_row(line)
        self.console.print("")
        self.console.print(Align.center(table))
        self.console.print("")

    def display_session_header(self, primary: str = "none") -> None:
        self._centered_box([
            "[bold cyan]foliorelay interactive chat[/bold cyan]",
            f"Primary provider: [bold]{primary}[/bold]",
            f"Session started at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            "Commands: /status, /primary NAME, /reset, /help. Type 'exit' or 'quit' to end the session",
        ], ROUNDED)

    def display_session_footer(self, message_count: int, session_duration_secs: float) -> None:
        """Summary of a finished chat session: prompts sent and how long it lasted."""
        minutes, seconds = divmod(int(session_duration_secs), 60)
        hours, minutes = divmod(minutes, 60)
        duration = f"{hours}h {minutes}m {seconds}s" if hours else f"{minutes}m {seconds}s"
        self._centered_box([
            "[bold cyan]Chat session summary[/bold cyan]",
            f"Messages exchanged: [bold]{message_count}[/bold]",
            f"Session duration: [bold]{duration}[/bold]",
        ], SIMPLE)
