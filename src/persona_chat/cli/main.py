"""
CLI interface for Persona Chat.

This module provides the main CLI application using Typer, with support for:
- One-shot generation in a fresh conversation
- Interactive chat keeping one conversation across turns
- Persona selection by built-in name or free-form instruction
- Rich output formatting
"""

import asyncio
import functools
import json
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from persona_chat.config.settings import get_settings
from persona_chat.core.errors import SessionError
from persona_chat.orchestration import SessionOrchestrator, get_session_orchestrator
from persona_chat.prompts.personas import resolve_persona
from persona_chat.storage import get_conversation_store
from persona_chat.utils.client_factory import ClientFactoryError
from persona_chat.utils.identifiers import is_valid_conversation_id

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

EXIT_CLIENT_ERROR = 2
EXIT_SERVER_ERROR = 1

# Initialize CLI components
app = typer.Typer(
    name="persona-chat",
    help="Conversational session manager in front of a chat-completion provider",
    no_args_is_help=True,
)
console = Console()


class CLIError(Exception):
    """User-friendly CLI error."""

    def __init__(self, message: str, exit_code: int = 1):
        self.message = message
        self.exit_code = exit_code
        super().__init__(message)


def configure_logging(level: str) -> None:
    """Configure root logging for CLI runs."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def run_async(coro):
    """Run async coroutine in sync context."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # No running loop, use asyncio.run
        return asyncio.run(coro)

    # Already in an async context, run on a fresh loop in a worker thread
    import concurrent.futures

    with concurrent.futures.ThreadPoolExecutor() as executor:
        future = executor.submit(asyncio.run, coro)
        return future.result()


def handle_cli_error(func):
    """Decorator to handle CLI errors gracefully."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except CLIError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(e.exit_code) from None
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            raise typer.Exit(130) from None
        except Exception as e:
            logger.exception(f"Unexpected error in {func.__name__}")
            console.print(f"[red]Unexpected error:[/red] {str(e)}")
            console.print("[dim]Use --help for usage information[/dim]")
            raise typer.Exit(1) from e

    return wrapper


def to_cli_error(error: SessionError) -> CLIError:
    """Map a session error to a CLI error, hiding server-side details."""
    if error.is_client_error:
        return CLIError(error.message, exit_code=EXIT_CLIENT_ERROR)
    return CLIError(
        f"Request failed ({error.kind}). See logs for details.",
        exit_code=EXIT_SERVER_ERROR,
    )


def build_request(
    prompt: str,
    pseudo: str,
    conversation_id: str | None = None,
    new_conversation: bool = False,
    randomness: float | None = None,
    richness: float | None = None,
    personality: str | None = None,
) -> dict:
    """Build a raw generate request from CLI options."""
    raw: dict = {"prompt": prompt, "pseudo": pseudo}
    if new_conversation:
        raw["isNewConversation"] = True
    if conversation_id:
        raw["conversationId"] = conversation_id
    if randomness is not None:
        raw["randomness"] = randomness
    if richness is not None:
        raw["richness"] = richness
    if personality:
        raw["aiPersonality"] = resolve_persona(personality)
    return raw


async def execute_turn(orchestrator: SessionOrchestrator, raw: dict) -> dict:
    """Execute one turn and return its wire payload."""
    try:
        result = await orchestrator.generate_response(raw)
    except SessionError as e:
        logger.error(f"Turn failed ({e.kind}): {e}")
        raise to_cli_error(e) from e
    except ClientFactoryError as e:
        logger.error(f"Provider client unavailable: {e}")
        raise CLIError(str(e), exit_code=EXIT_SERVER_ERROR) from e
    return result.to_payload()


@app.callback()
def main(
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (defaults to LOG_LEVEL setting)"
    ),
):
    """Persona Chat command line."""
    configure_logging(log_level or get_settings().log_level)


@app.command("generate")
@handle_cli_error
def generate_command(
    prompt: str = typer.Argument(..., help="Prompt to send"),
    pseudo: str = typer.Option(..., "--pseudo", "-p", help="Your display name"),
    randomness: float | None = typer.Option(
        None, "--randomness", "-r", help="Top-p between 0 and 1 (default 0.6)"
    ),
    richness: float | None = typer.Option(
        None, "--richness", help="Frequency penalty between -2 and 2 (default 0.7)"
    ),
    personality: str | None = typer.Option(
        None,
        "--personality",
        help="Built-in persona name (compositor, assistant) or instruction text",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON payload"),
):
    """Run one turn in a new conversation."""
    raw = build_request(
        prompt,
        pseudo,
        new_conversation=True,
        randomness=randomness,
        richness=richness,
        personality=personality,
    )

    orchestrator = get_session_orchestrator()

    async def _run() -> dict:
        try:
            return await execute_turn(orchestrator, raw)
        finally:
            await orchestrator.aclose()

    with console.status("[bold blue]Waiting for the provider..."):
        payload = run_async(_run())

    if as_json:
        console.print_json(json.dumps(payload))
        return

    display_response(payload)


@app.command("chat")
@handle_cli_error
def chat_command(
    pseudo: str = typer.Option(..., "--pseudo", "-p", help="Your display name"),
    randomness: float | None = typer.Option(
        None, "--randomness", "-r", help="Top-p between 0 and 1 (default 0.6)"
    ),
    richness: float | None = typer.Option(
        None, "--richness", help="Frequency penalty between -2 and 2 (default 0.7)"
    ),
    personality: str | None = typer.Option(
        None,
        "--personality",
        help="Built-in persona name (compositor, assistant) or instruction text",
    ),
):
    """Chat interactively, keeping one conversation across turns."""
    console.print(
        Panel.fit(
            f"[bold]Persona Chat[/bold]\n"
            f"Speaking as: {pseudo}\n"
            f"[dim]Commands: /new, /persona TEXT, /history, /quit[/dim]",
            border_style="blue",
        )
    )
    run_async(
        chat_loop(
            get_session_orchestrator(),
            pseudo,
            randomness=randomness,
            richness=richness,
            personality=personality,
        )
    )


async def chat_loop(
    orchestrator: SessionOrchestrator,
    pseudo: str,
    randomness: float | None = None,
    richness: float | None = None,
    personality: str | None = None,
) -> None:
    """Read prompts until /quit or end of input."""
    conversation_id: str | None = None
    pending_persona = personality

    try:
        while True:
            try:
                line = console.input("[bold cyan]> [/bold cyan]").strip()
            except EOFError:
                break

            if not line:
                continue
            if line in ("/quit", "/exit"):
                break
            if line == "/new":
                conversation_id = None
                console.print("[dim]Next prompt starts a new conversation[/dim]")
                continue
            if line.startswith("/persona"):
                pending_persona = line[len("/persona"):].strip() or None
                console.print("[dim]Persona will apply from the next prompt[/dim]")
                continue
            if line == "/history":
                display_history(conversation_id)
                continue

            raw = build_request(
                line,
                pseudo,
                conversation_id=conversation_id,
                randomness=randomness,
                richness=richness,
                personality=pending_persona,
            )
            try:
                payload = await execute_turn(orchestrator, raw)
            except CLIError as e:
                console.print(f"[red]Error:[/red] {e.message}")
                continue

            conversation_id = payload["conversationId"]
            pending_persona = None
            console.print(payload["response"])
    finally:
        await orchestrator.aclose()


@app.command("config")
@handle_cli_error
def config_command():
    """Show the effective configuration (secrets omitted)."""
    settings = get_settings()

    table = Table(title="Configuration", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    for key, value in _flatten(settings.public_dict()).items():
        table.add_row(key, str(value))
    table.add_row("openai_api_key", "configured" if settings.has_api_key() else "missing")

    console.print(table)


def display_response(payload: dict) -> None:
    """Display one turn's response with rich formatting."""
    conversation_id = payload["conversationId"]
    if not is_valid_conversation_id(conversation_id):
        logger.warning(f"Unexpected conversation ID format: {conversation_id}")

    console.print(
        Panel(
            payload["response"],
            title="Response",
            subtitle=f"[dim]{conversation_id}[/dim]",
            border_style="green",
        )
    )


def display_history(conversation_id: str | None) -> None:
    """Display the turns of the current conversation."""
    if not conversation_id:
        console.print("[dim]No conversation yet[/dim]")
        return

    conversation = get_conversation_store().get(conversation_id)
    if conversation is None:
        console.print(f"[yellow]Conversation {conversation_id} is no longer available[/yellow]")
        return

    table = Table(title=f"Conversation {conversation_id}", show_header=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Prompt", style="cyan", ratio=1)
    table.add_column("Response", style="white", ratio=1)
    for index, turn in enumerate(conversation.turns, start=1):
        table.add_row(str(index), turn.prompt, turn.response)

    console.print(table)
    console.print(f"[dim]Persona: {conversation.persona_instruction}[/dim]")


def _flatten(data: dict, prefix: str = "") -> dict:
    flat = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{name}."))
        else:
            flat[name] = value
    return flat


# Entry point is handled by pyproject.toml script configuration
