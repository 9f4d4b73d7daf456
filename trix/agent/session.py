"""Interactive investigation REPL on top of AgentLoop."""

from __future__ import annotations

import asyncio
import json
import logging
import signal

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from ..llm.models import Usage
from .loop import AgentLoop
from .models import AgentEvent, AgentResult, Outcome

logger = logging.getLogger("trix.agent.session")

QUIT_COMMANDS = frozenset({"/quit", "/exit", "quit", "exit"})
CLEAR_COMMANDS = frozenset({"/clear", "/reset", "clear", "reset"})

HELP_TEXT = (
    "Ask a question about your cluster's security findings.\n"
    "  /clear   forget the conversation and reset token usage\n"
    "  /usage   show cumulative token usage\n"
    "  /quit    leave the session (also Ctrl-D)\n"
    "Press Ctrl-C while the assistant is working to cancel that question."
)


def format_usage(usage: Usage) -> str:
    return f"{usage.input_tokens:,} in / {usage.output_tokens:,} out"


class InteractiveSession:
    """Keeps one conversation alive across user questions."""

    PROMPT = "[bold cyan]trix>[/bold cyan] "

    def __init__(self, loop: AgentLoop, console: Console | None = None, timeout: float | None = None) -> None:
        self.loop = loop
        self.console = console or Console()
        self.timeout = timeout
        self._interrupted = False

    async def run(self) -> None:
        self.console.print(
            Panel(
                f"Provider: {self.loop.provider.name} ({self.loop.provider.model})\n"
                f"Tools: {', '.join(self.loop.registry.names) or 'none'}\n"
                "Type /help for commands.",
                title="trix investigate",
                box=box.ROUNDED,
                border_style="grey42",
            )
        )
        while True:
            # Nothing else runs while waiting at the prompt, so read it inline
            try:
                line = self.console.input(self.PROMPT)
            except (EOFError, KeyboardInterrupt):
                self.console.print()
                break
            if not await self.handle_line(line):
                break
        self.console.print("[dim]Session ended.[/dim]")

    async def handle_line(self, line: str) -> bool:
        """Process one input line. Returns False when the session should end."""
        text = line.strip()
        if not text:
            return True

        cmd = text.lower()
        if cmd in QUIT_COMMANDS:
            return False
        if cmd in CLEAR_COMMANDS:
            self.loop.reset()
            self.console.print("[dim]Context cleared.[/dim]")
            return True
        if cmd == "/usage":
            self.console.print(f"[dim]tokens: {format_usage(self.loop.state.usage)} total[/dim]")
            return True
        if cmd == "/help":
            self.console.print(HELP_TEXT)
            return True

        result = await self.ask(text)
        if result is not None:
            self.show_result(result)
        return True

    async def ask(self, question: str) -> AgentResult | None:
        """Run the agent for one question; None when the user cancelled it."""
        self._interrupted = False
        task = asyncio.ensure_future(self.loop.run(question, self.timeout, on_event=self._render_event))
        event_loop = asyncio.get_running_loop()

        def _cancel() -> None:
            self._interrupted = True
            task.cancel()

        try:
            event_loop.add_signal_handler(signal.SIGINT, _cancel)
            installed = True
        except (NotImplementedError, RuntimeError, ValueError):
            installed = False

        try:
            with self.console.status("[dim]Thinking...[/dim]", spinner="dots"):
                return await task
        except asyncio.CancelledError:
            if not self._interrupted:
                raise
            logger.info("Run cancelled by user")
            self.console.print("[yellow]Cancelled.[/yellow] Conversation left as it was before the question.")
            return None
        finally:
            if installed:
                event_loop.remove_signal_handler(signal.SIGINT)

    def _render_event(self, event: AgentEvent) -> None:
        if event.type == "tool_start":
            args = json.dumps(event.data.get("arguments") or {}, default=str)
            self.console.print(f"[dim]→ {event.data['tool']} {args}[/dim]")
        elif event.type == "tool_end":
            mark = "[green]✓[/green]" if event.data.get("success") else "[red]✗[/red]"
            self.console.print(f"[dim]{mark} {event.data['tool']} ({event.data.get('duration', 0.0)}s)[/dim]")

    def show_result(self, result: AgentResult) -> None:
        if result.outcome is Outcome.FAILED:
            self.console.print(f"[red]Error:[/red] {result.error}")
            if result.usage.total_tokens:
                self._print_usage(result.usage)
            self.console.print("[dim]You can retry the question or ask something else.[/dim]")
            return

        if result.content:
            self.console.print(Panel(Markdown(result.content), box=box.ROUNDED, border_style="grey42"))
        if result.outcome is Outcome.EXHAUSTED:
            self.console.print(
                f"[yellow]Could not complete within the turn limit ({result.turns} turns).[/yellow] "
                "Ask a follow-up to continue, or narrow the question."
            )
        self._print_usage(result.usage)

    def _print_usage(self, usage: Usage) -> None:
        self.console.print(
            f"[dim]tokens: +{format_usage(usage)} this question, "
            f"{format_usage(self.loop.state.usage)} total[/dim]"
        )
