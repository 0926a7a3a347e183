"""Main CLI application module."""

import typer
import uvicorn
from dotenv.main import load_dotenv
from rich.console import Console

from src.signin.runtime.init_db import init_db

from .user_commands import users_app

console = Console()

# Create the main CLI application
app = typer.Typer(
    help="Sign-in gateway operator CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register command groups
app.add_typer(users_app, name="users")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the HTTP server."""
    uvicorn.run(
        "src.signin.api.http.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        access_log=False,  # Requests are logged by the application middleware
    )


@app.command("init-db")
def init_db_command() -> None:
    """Create the database tables."""
    init_db()
    console.print("[green]✅ Database tables created[/green]")


def main() -> None:
    """Main entry point for the CLI."""
    # config.yaml placeholders are resolved from the process environment
    load_dotenv()
    app()


if __name__ == "__main__":
    main()
