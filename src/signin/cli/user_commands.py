"""User provisioning CLI commands.

One Tap never creates users, so this is how operators make someone able to
sign in.
"""

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from src.signin.core.services import DbSessionService, UserDirectoryAdapter
from src.signin.entities.core._base import utc_now
from src.signin.runtime.context import load_context

console = Console()

# Create the users subcommand app
users_app = typer.Typer(help="Manage users that are allowed to sign in")


@contextmanager
def open_directory() -> Iterator[UserDirectoryAdapter]:
    """Open a user directory on the configured database."""
    context = load_context()
    database_service = DbSessionService(context.config)
    session = database_service.get_session()
    try:
        yield UserDirectoryAdapter(session)
    finally:
        session.close()
        database_service.dispose()


@users_app.command("list")
def list_users(
    limit: int = typer.Option(100, "--limit", "-l", help="Maximum number of users to show"),
) -> None:
    """List users."""
    with open_directory() as directory:
        users = directory.list_users(limit=limit)

    if not users:
        console.print("[yellow]No users found[/yellow]")
        return

    table = Table(title="Users")
    table.add_column("ID", style="cyan")
    table.add_column("Email", style="blue")
    table.add_column("Name", style="magenta")
    table.add_column("Email Verified", style="yellow")

    for user in users:
        table.add_row(
            user.id,
            user.email or "",
            user.name or "",
            user.email_verified_at.isoformat() if user.email_verified_at else "-",
        )

    console.print(table)
    console.print(f"\n[green]Found {len(users)} users[/green]")


@users_app.command("add")
def add_user(
    email: str = typer.Argument(..., help="Email address the user signs in with"),
    name: str | None = typer.Option(None, "--name", "-n", help="Display name"),
    image: str | None = typer.Option(None, "--image", help="Avatar URL"),
    verified: bool = typer.Option(
        False, "--verified/--unverified", help="Mark the email as already verified"
    ),
) -> None:
    """Provision a user so they can sign in with One Tap."""
    with open_directory() as directory:
        if directory.get_user_by_email(email):
            console.print(f"[red]❌ User '{email}' already exists[/red]")
            raise typer.Exit(code=1)

        try:
            user = directory.create_user(
                email=email,
                name=name,
                image=image,
                email_verified_at=utc_now() if verified else None,
            )
        except SQLAlchemyError as e:
            console.print(f"[red]❌ Failed to create user: {e}[/red]")
            raise typer.Exit(code=1) from e

    console.print(f"[green]✅ Created user '{email}' ({user.id})[/green]")


@users_app.command("show")
def show_user(
    email: str = typer.Argument(..., help="Email address of the user"),
) -> None:
    """Show a user and the provider accounts linked to it."""
    with open_directory() as directory:
        user = directory.get_user_by_email(email)
        if not user:
            console.print(f"[red]❌ User '{email}' not found[/red]")
            raise typer.Exit(code=1)
        accounts = directory.list_accounts(user.id)

    console.print(f"[bold]ID:[/bold] {user.id}")
    console.print(f"[bold]Email:[/bold] {user.email}")
    console.print(f"[bold]Name:[/bold] {user.name or '-'}")
    console.print(
        f"[bold]Email verified:[/bold] "
        f"{user.email_verified_at.isoformat() if user.email_verified_at else '-'}"
    )

    if not accounts:
        console.print("[yellow]No linked accounts[/yellow]")
        return

    table = Table(title="Linked accounts")
    table.add_column("Provider", style="cyan")
    table.add_column("Account ID", style="green")
    table.add_column("Type", style="magenta")
    for account in accounts:
        table.add_row(account.provider, account.provider_account_id, account.type)
    console.print(table)


@users_app.command("delete")
def delete_user(
    email: str = typer.Argument(..., help="Email address of the user to delete"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
) -> None:
    """Delete a user and its linked accounts."""
    with open_directory() as directory:
        user = directory.get_user_by_email(email)
        if not user:
            console.print(f"[red]❌ User '{email}' not found[/red]")
            raise typer.Exit(code=1)

        # Confirm deletion unless --force is used
        if not force and not Confirm.ask(f"Are you sure you want to delete user '{email}'?"):
            console.print("[yellow]Deletion cancelled[/yellow]")
            return

        directory.delete_user(user.id)

    console.print(f"[green]✅ Deleted user '{email}'[/green]")
