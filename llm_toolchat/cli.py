"""
Main CLI loop for llm_toolchat.
Handles the interactive prompt, slash commands and message sending.
"""
import asyncio
import logging
import signal
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import InMemoryHistory

from .config import ConfigManager, get_config
from .constants import APP_DESCRIPTION, APP_NAME, APP_VERSION, HELP_TEXT
from .errors import HUMAN_MESSAGES, ValidationError
from .history import MessageLog
from .llm import ChatTransport, OpenAIClient, PingResult
from .orchestrator import ChatOrchestrator
from .rich_ui import ChatRenderer
from .tools import BuiltinTools, ToolExecutionGateway, create_default_registry

logger = logging.getLogger(__name__)

COMMANDS = ["/help", "/tools", "/tool", "/ping", "/clear", "/status", "/quit"]


def build_orchestrator(
    config: ConfigManager,
    log: Optional[MessageLog] = None,
    transport: Optional[ChatTransport] = None,
    tools: Optional[BuiltinTools] = None,
) -> ChatOrchestrator:
    """
    Wire the default collaborators together.

    Args:
        config: Loaded configuration
        log: Message log to write to
        transport: Chat transport; an OpenAIClient is built from config if omitted
        tools: Built-in tool handlers

    Returns:
        A ready ChatOrchestrator
    """
    transport = transport or OpenAIClient(
        api_key=config.get_api_key(),
        base_url=config.llm.base_url,
        timeout=config.chat.stream_timeout or 60.0,
    )
    gateway = ToolExecutionGateway(create_default_registry(tools))
    return ChatOrchestrator(transport, gateway, log=log, config=config.config)


class CLI:
    """
    Interactive chat client.

    Reads input with prompt_toolkit, renders the message log with rich,
    and stops the streaming reply on Ctrl+C.
    """

    def __init__(self, config: Optional[ConfigManager] = None) -> None:
        self._config = config or get_config()
        self._renderer = ChatRenderer(
            markdown=self._config.ui.markdown_rendering,
            show_tool_results=self._config.ui.show_tool_results,
        )
        self._tools = BuiltinTools(on_open_ui=self._open_ui)
        self._log = MessageLog()
        self._renderer.attach(self._log)
        self._orchestrator = build_orchestrator(self._config, log=self._log, tools=self._tools)
        self._prompt = PromptSession(
            history=InMemoryHistory(),
            completer=WordCompleter(COMMANDS, sentence=True),
        )
        self._running = False

    @property
    def orchestrator(self) -> ChatOrchestrator:
        return self._orchestrator

    def run(self) -> None:
        """Run the CLI main loop."""
        self._running = True
        self._renderer.print(f"[bold cyan]llm_toolchat[/bold cyan] [dim]{self._config.llm.model}[/dim]")
        self._renderer.print_info("Type /help for commands, Ctrl+C stops a reply, /quit exits.")

        while self._running:
            try:
                user_input = self._prompt.prompt("> ")
                if not user_input.strip():
                    continue
                self.process_input(user_input)
            except KeyboardInterrupt:
                self._renderer.print_info("Use /quit to exit")
            except EOFError:
                self._running = False

    def process_input(self, user_input: str) -> None:
        text = user_input.strip()
        if text.startswith("/"):
            command, _, args = text.partition(" ")
            self._handle_command(command.lower(), args.strip())
        else:
            asyncio.run(self._send(text))

    def _handle_command(self, command: str, args: str) -> None:
        if command == "/help":
            self._renderer.print(HELP_TEXT)
        elif command == "/tools":
            rows = [
                {"name": schema["function"]["name"], "description": schema["function"]["description"]}
                for schema in self._orchestrator.gateway.tool_schemas()
            ]
            self._renderer.print_table(rows, title="Tools")
        elif command == "/tool":
            name, _, text = args.partition(" ")
            if not name:
                self._renderer.print_error("Usage: /tool <name> <text>")
                return
            asyncio.run(self._send(text or name, tool=name))
        elif command == "/ping":
            result = asyncio.run(self._ping())
            if result.ok:
                self._renderer.print_success(f"{result.message} ({result.model_count} models, {result.latency_ms:.0f} ms)")
            else:
                detail = HUMAN_MESSAGES[result.category] if result.category else ""
                self._renderer.print_error(f"{result.message}. {detail}".strip(), title="Ping failed")
        elif command == "/clear":
            self._log.clear()
            self._orchestrator.runtime.reset()
        elif command == "/status":
            status = self._orchestrator.runtime.to_dict()
            self._renderer.print_table([{"field": k, "value": v} for k, v in status.items()], title="Status")
        elif command in ("/quit", "/exit"):
            self._running = False
        else:
            self._renderer.print_error(f"Unknown command: {command}. Type /help.")

    async def _send(self, text: str, tool: Optional[str] = None) -> None:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self._orchestrator.stop)
            handler_installed = True
        except (NotImplementedError, RuntimeError):
            # No loop signal handlers on this platform; Ctrl+C cancels the task instead.
            handler_installed = False

        try:
            session = await self._orchestrator.send(text, tool=tool)
            logger.debug(f"Session {session.id} finished as {session.state.value}")
        except ValidationError as e:
            self._renderer.print_error(e.human_message, title="Invalid input")
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)

    async def _ping(self) -> PingResult:
        return await self._orchestrator.transport.ping()

    def _open_ui(self, component: str, data: dict) -> None:
        if component == "help":
            self._renderer.print(HELP_TEXT)
        elif component == "settings":
            llm = self._config.llm
            self._renderer.print_table([
                {"setting": "model", "value": llm.model},
                {"setting": "base_url", "value": llm.base_url},
                {"setting": "temperature", "value": llm.temperature},
                {"setting": "max_tokens", "value": llm.max_tokens},
                {"setting": "top_p", "value": llm.top_p},
            ], title="Settings")
        else:
            self._renderer.print(f"[bold]{APP_NAME}[/bold] {APP_VERSION}: {APP_DESCRIPTION}")
