"""
Rich-based rendering for llm_toolchat.
Renders the message log as it changes: a live region while the assistant
reply streams, then the final message.
"""
from typing import Any, Callable, Optional

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from ..history import LogEvent, LogEventKind, Message, MessageLog


class ChatRenderer:
    """Prints chat messages and follows MessageLog changes."""

    def __init__(
        self,
        console: Optional[Console] = None,
        markdown: bool = True,
        show_tool_results: bool = True,
    ) -> None:
        self._console = console or Console()
        self._markdown = markdown
        self._show_tool_results = show_tool_results
        self._live: Optional[Live] = None

    @property
    def console(self) -> Console:
        return self._console

    def attach(self, log: MessageLog) -> Callable[[], None]:
        """Render every future change of ``log``; returns the unsubscribe function."""
        return log.subscribe(self.on_log_event)

    def on_log_event(self, event: LogEvent) -> None:
        if event.kind == LogEventKind.CLEARED:
            self._stop_live()
            self.print_info("Conversation cleared")
            return

        message = event.message
        if message is None or event.kind == LogEventKind.REMOVED:
            return

        if message.role == "assistant":
            if message.streaming:
                self._update_live(message.content)
            else:
                self._stop_live()
                self.print_message(message)
        elif message.role == "tool" and event.kind == LogEventKind.ADDED:
            self.print_tool_result(message)

    def print(self, *args: Any, **kwargs: Any) -> None:
        self._console.print(*args, **kwargs)

    def print_message(self, message: Message) -> None:
        """
        Print a finished chat message.

        Errored messages keep their text and get the mapped error below it;
        cancelled messages get a dim marker.

        Args:
            message: The message to print
        """
        style = "bold cyan" if message.role == "assistant" else "dim"
        self._console.print(f"[{style}]{message.role.capitalize()}[/{style}]")
        if message.content:
            if message.role == "assistant" and self._markdown:
                self._console.print(Markdown(message.content))
            else:
                self._console.print(Text(message.content))
        if message.error:
            self.print_error(message.error_message or "Unknown error")
        cancelled = message.metadata.get("cancelled")
        if cancelled:
            self._console.print(f"[dim]⏹ Stopped ({cancelled})[/dim]")
        self._console.print()

    def print_tool_result(self, message: Message) -> None:
        if not self._show_tool_results:
            return
        name = message.tool_name or "tool"
        if message.error:
            self._console.print(f"[red]✗ {escape(name)}[/red]: {escape(message.error_message or '')}")
            return
        preview = message.content if len(message.content) <= 100 else message.content[:100] + "..."
        self._console.print(f"[cyan]⚙ {escape(name)}[/cyan] [dim]{escape(preview)}[/dim]")

    def print_error(self, message: str, title: str = "Error") -> None:
        self._console.print(f"[bold red]✗ {title}[/bold red]")
        self._console.print(Text(message, style="red"))

    def print_info(self, message: str) -> None:
        self._console.print(f"[dim]{message}[/dim]")

    def print_success(self, message: str) -> None:
        self._console.print(f"[green]✓ {message}[/green]")

    def print_table(self, data: list[dict], title: Optional[str] = None) -> None:
        """
        Print data as a table.

        Args:
            data: List of dictionaries with data
            title: Optional table title
        """
        if not data:
            self._console.print("[dim]No data to display[/dim]")
            return

        table = Table(title=title, border_style="cyan")
        columns = list(data[0].keys())
        for col in columns:
            table.add_column(col)
        for row in data:
            table.add_row(*[str(row.get(col, "")) for col in columns])
        self._console.print(table)

    def _update_live(self, content: str) -> None:
        renderable = Markdown(content) if (self._markdown and content) else Text(content or "…", style="dim")
        if self._live is None:
            self._live = Live(renderable, console=self._console, refresh_per_second=10, transient=True)
            self._live.start()
        else:
            self._live.update(renderable)

    def _stop_live(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None
