"""Entry point of the Agent Room CLI."""

from __future__ import annotations

import typer
from rich.console import Console

console = Console()

app = typer.Typer(
    name="agent-room",
    help="Group chat relay where a language model joins the conversation.",
    add_completion=True,
    rich_markup_mode="markdown",
)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Run a chat server where a model replies to the room.

    Configuration is read from flags, `AGENT_ROOM_*` environment variables
    (a `.env` file in the working directory is loaded first) and a TOML file.
    """
    if ctx.invoked_subcommand is None:
        console.print("[bold red]No command specified.[/bold red]")
        console.print("[bold yellow]Running --help for your convenience.[/bold yellow]")
        console.print(ctx.get_help())
        raise typer.Exit
    import dotenv  # noqa: PLC0415

    dotenv.load_dotenv()


# Import commands from other modules to register them
from .server import cli as _server_cli  # noqa: E402, F401
