"""Main CLI application using Typer."""
import asyncio

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from ..config import ASSISTANT_PLACEHOLDER
from ..conversation import Role
from ..errors import TabiCatError, ValidationError
from ..session import MessageBus, SelectionRelay, SessionEngine
from ..storage import PersistenceGateway
from .providers import configure_logging, get_storage, open_session

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="tabicat",
    help="Chat with a locally hosted LLM server, with saved profiles and templates",
    no_args_is_help=True,
    add_completion=True,
)
profiles_app = typer.Typer(help="Manage chat profiles", no_args_is_help=True)
templates_app = typer.Typer(help="Manage prompt templates", no_args_is_help=True)
app.add_typer(profiles_app, name="profiles")
app.add_typer(templates_app, name="templates")

# Console for rich output
console = Console()

EXIT_WORDS = ("exit", "quit", "q", "/quit")


@app.callback()
def main_callback(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, or error (default: $TABICAT_LOG_LEVEL or warning)"
    ),
):
    """TabiCat command line."""
    configure_logging(log_level)


async def _stream_reply(engine: SessionEngine, prompt: str | None = None) -> bool:
    """Submit a prompt and render the reply while it streams."""
    with Live(Text(ASSISTANT_PLACEHOLDER, style="dim"), console=console, refresh_per_second=12) as live:
        exchange = await engine.submit(
            prompt,
            on_progress=lambda accumulated: live.update(Text(accumulated)),
        )
        live.update(Text(exchange.reply, style="red" if exchange.error else ""))
    return exchange.ok


def _print_profiles(engine: SessionEngine) -> None:
    effective = engine.effective_profiles
    if not effective:
        console.print("[yellow]No profiles available. Add one or start the model server.[/yellow]")
        return

    current = engine.current_profile
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("", width=1)
    table.add_column("ID", style="dim")
    table.add_column("Label", style="cyan")
    table.add_column("Model", style="yellow")
    table.add_column("Source", width=6)
    table.add_column("System Prompt")

    for profile in effective:
        marker = "*" if current is not None and profile.id == current.id else ""
        source = "server" if profile.is_auto else "saved"
        table.add_row(marker, profile.id, profile.label, profile.model, source, profile.system_prompt)
    console.print(table)


def _print_templates(engine: SessionEngine) -> None:
    if not engine.templates:
        console.print("[dim]No templates yet.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Content")
    for template in engine.templates:
        table.add_row(template.id, template.title, template.content)
    console.print(table)


def _handle_slash_command(engine: SessionEngine, command: str) -> None:
    name, _, argument = command.partition(" ")
    argument = argument.strip()

    if name == "/profiles":
        _print_profiles(engine)
    elif name == "/profile" and argument:
        profile = engine.select_profile(argument)
        console.print(f"[green]Using {profile.display_name}[/green]")
    elif name == "/templates":
        _print_templates(engine)
    elif name == "/template" and argument:
        template = engine.apply_template(argument)
        if template is None:
            console.print(f"[yellow]Unknown template: {argument}[/yellow]")
    elif name == "/clear":
        engine.clear_history()
        console.print("[dim]Conversation cleared.[/dim]")
    else:
        console.print(
            "[dim]Commands: /profiles, /profile <id>, /templates, /template <id>, "
            "/models, /capture <text>, /clear, /quit[/dim]"
        )


@app.command()
def chat():
    """Interactive chat with the selected profile.

    Press Enter on an empty line to send text waiting in the composer
    (from a template or a captured selection).
    """
    async def _chat():
        async with open_session(interactive=True) as session:
            engine = session.engine
            engine.add_composer_listener(
                lambda text: console.print(f"[dim]Composer: {text}[/dim]") if text else None
            )

            console.print("[bold cyan]TabiCat Chat[/bold cyan]")
            if engine.current_profile is not None:
                console.print(f"[dim]Profile: {engine.current_profile.display_name}[/dim]")
            if engine.composer_text:
                console.print(f"[dim]Composer: {engine.composer_text}[/dim]")
            console.print("[dim]Type /help for commands, 'exit' to leave[/dim]\n")

            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ").strip()

                    if user_input.lower() in EXIT_WORDS:
                        console.print("[dim]Goodbye![/dim]")
                        break

                    if user_input == "/models":
                        result = await engine.refresh_models()
                        state = "[green]reachable[/green]" if result.reachable else "[red]unreachable[/red]"
                        console.print(f"Server {state}: {', '.join(result.models) or 'no models'}")
                        continue

                    if user_input.startswith("/capture "):
                        await session.relay.capture(user_input.removeprefix("/capture ").strip())
                        continue

                    if user_input.startswith("/"):
                        _handle_slash_command(engine, user_input)
                        continue

                    if not user_input and not engine.composer_text.strip():
                        continue

                    console.print("[bold green]Assistant:[/bold green]")
                    await _stream_reply(engine, user_input or None)
                    console.print()

                except ValidationError as e:
                    console.print(f"[yellow]{e}[/yellow]")
                except KeyboardInterrupt:
                    console.print("\n[dim]Goodbye![/dim]")
                    break
                except EOFError:
                    console.print("\n[dim]Goodbye![/dim]")
                    break

    asyncio.run(_chat())


@app.command()
def ask(
    prompt: str = typer.Argument(..., help="Prompt to send"),
    profile: str | None = typer.Option(
        None,
        "--profile",
        "-p",
        help="Profile id to use for this and later requests"
    ),
):
    """Send a single prompt and stream the reply."""
    async def _ask():
        async with open_session() as session:
            engine = session.engine
            try:
                if profile:
                    engine.select_profile(profile)
                ok = await _stream_reply(engine, prompt)
            except ValidationError as e:
                console.print(f"[red]Error: {e}[/red]")
                raise typer.Exit(code=1)
            if not ok:
                raise typer.Exit(code=1)

    asyncio.run(_ask())


@app.command()
def models():
    """Probe the model server and list its models."""
    async def _models():
        async with open_session(probe=False) as session:
            result = await session.engine.refresh_models()
            if not result.reachable:
                console.print(f"[red]x[/red] Model server at {session.llm.base_url} is unreachable")
                raise typer.Exit(code=1)

            console.print(f"[green]+[/green] Model server at {session.llm.base_url} is reachable")
            if not result.models:
                console.print("[yellow]No models installed[/yellow]")
                return

            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Model", style="cyan")
            table.add_column("Profile ID", style="dim")
            for profile in session.engine.effective_profiles:
                if profile.is_auto:
                    table.add_row(profile.model, profile.id)
            console.print(table)

    asyncio.run(_models())


@app.command()
def history(
    clear: bool = typer.Option(
        False,
        "--clear",
        help="Delete the conversation instead of showing it"
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt"
    ),
):
    """Show or clear the saved conversation."""
    async def _history():
        async with open_session(probe=False) as session:
            engine = session.engine

            if clear:
                if not yes and not typer.confirm("Delete the whole conversation?"):
                    console.print("[dim]Aborted.[/dim]")
                    return
                engine.clear_history()
                console.print("[green]Conversation cleared.[/green]")
                return

            messages = engine.conversation.messages
            if not messages:
                console.print("[dim]No messages yet.[/dim]")
                return

            for message in messages:
                if message.role is Role.USER:
                    console.print("[bold yellow]You:[/bold yellow]")
                else:
                    console.print(f"[bold green]{message.role.value.capitalize()}:[/bold green]")
                console.print(Text(message.content))
                console.print()

    asyncio.run(_history())


@app.command()
def capture(text: str = typer.Argument(..., help="Selected text to hand to the composer")):
    """Queue selected text for the next chat session."""
    async def _capture():
        storage = get_storage()
        try:
            await storage.connect()
            relay = SelectionRelay(PersistenceGateway(storage), MessageBus())
            if not await relay.capture(text):
                console.print("[yellow]Nothing to capture[/yellow]")
                raise typer.Exit(code=1)
            console.print("[green]Selection queued for the composer.[/green]")
        finally:
            await storage.disconnect()

    asyncio.run(_capture())


@app.command()
def health():
    """Check storage and model server health."""
    async def _health():
        all_healthy = True

        storage = get_storage()
        try:
            await storage.connect()
            console.print(f"[green]+[/green] Storage ({storage.backend_type}): OK")
            await storage.disconnect()
        except Exception as e:
            console.print(f"[red]x[/red] Storage ({storage.backend_type}): FAILED ({e})")
            all_healthy = False

        async with open_session(probe=False) as session:
            result = await session.engine.refresh_models()
            if result.reachable:
                console.print(f"[green]+[/green] Model server: OK ({len(result.models)} models)")
            else:
                console.print(f"[red]x[/red] Model server: UNREACHABLE ({session.llm.base_url})")
                all_healthy = False

        if not all_healthy:
            raise typer.Exit(code=1)

    asyncio.run(_health())


@profiles_app.command("list")
def profiles_list():
    """List selectable profiles (server models first, then saved ones)."""
    async def _list():
        async with open_session() as session:
            _print_profiles(session.engine)

    asyncio.run(_list())


@profiles_app.command("add")
def profiles_add(
    label: str = typer.Argument(..., help="Display name"),
    model: str = typer.Argument(..., help="Model name on the server"),
    system_prompt: str = typer.Option(
        "",
        "--system",
        "-s",
        help="Optional system prompt"
    ),
):
    """Save a new profile and select it."""
    async def _add():
        async with open_session() as session:
            try:
                profile = session.engine.add_profile(label, model, system_prompt)
            except TabiCatError as e:
                console.print(f"[red]Error: {e}[/red]")
                raise typer.Exit(code=1)
            console.print(f"[green]Added and selected {profile.display_name} ({profile.id})[/green]")

    asyncio.run(_add())


@profiles_app.command("remove")
def profiles_remove(profile_id: str = typer.Argument(..., help="Profile id")):
    """Delete a saved profile."""
    async def _remove():
        async with open_session() as session:
            try:
                removed = session.engine.remove_profile(profile_id)
            except TabiCatError as e:
                console.print(f"[red]Error: {e}[/red]")
                raise typer.Exit(code=1)
            if not removed:
                console.print(f"[yellow]No saved profile with id {profile_id}[/yellow]")
                raise typer.Exit(code=1)
            console.print(f"[green]Removed {profile_id}[/green]")

    asyncio.run(_remove())


@profiles_app.command("select")
def profiles_select(profile_id: str = typer.Argument(..., help="Profile id")):
    """Select the profile used for chat."""
    async def _select():
        async with open_session() as session:
            try:
                profile = session.engine.select_profile(profile_id)
            except TabiCatError as e:
                console.print(f"[red]Error: {e}[/red]")
                raise typer.Exit(code=1)
            console.print(f"[green]Using {profile.display_name}[/green]")

    asyncio.run(_select())


@templates_app.command("list")
def templates_list():
    """List prompt templates."""
    async def _list():
        async with open_session(probe=False) as session:
            _print_templates(session.engine)

    asyncio.run(_list())


@templates_app.command("add")
def templates_add(
    title: str = typer.Argument(..., help="Template name"),
    content: str = typer.Argument(..., help="Template content"),
):
    """Save a new prompt template."""
    async def _add():
        async with open_session(probe=False) as session:
            try:
                template = session.engine.add_template(title, content)
            except TabiCatError as e:
                console.print(f"[red]Error: {e}[/red]")
                raise typer.Exit(code=1)
            console.print(f"[green]Added template {template.title} ({template.id})[/green]")

    asyncio.run(_add())


@templates_app.command("remove")
def templates_remove(
    template_id: str = typer.Argument(..., help="Template id"),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt"
    ),
):
    """Delete a prompt template."""
    async def _remove():
        async with open_session(probe=False) as session:
            template = next((t for t in session.engine.templates if t.id == template_id), None)
            if template is None:
                console.print(f"[yellow]No template with id {template_id}[/yellow]")
                raise typer.Exit(code=1)
            if not yes and not typer.confirm(f'Delete template "{template.title}"?'):
                console.print("[dim]Aborted.[/dim]")
                return
            session.engine.remove_template(template_id)
            console.print(f"[green]Removed {template.title}[/green]")

    asyncio.run(_remove())


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
