"""ModelVault administration commands."""

import typer
from rich.console import Console
from sqlmodel import Session

from .application.sphere_service import remove_reserved_spheres, seed_default_spheres
from .domain.entities import normalize_email, validate_employee_name, validate_password
from .domain.exceptions import ValidationError
from .domain.permissions import DEFAULT_ROLE_PERMISSIONS, Role
from .infrastructure.database.database import get_main_engine, init_db
from .infrastructure.database.models import User
from .infrastructure.database.repositories import UserRepository
from .infrastructure.security import hash_password
from .logging_config import setup_logging

console = Console()

app = typer.Typer(
    name="modelvault-admin",
    help="""ModelVault administration

    Examples:
      modelvault-admin init-db                  - create missing tables
      modelvault-admin seed-admin               - create the first administrator
      modelvault-admin seed-spheres             - insert the default spheres
      modelvault-admin remove-reserved-spheres  - drop spheres named like UI filters
    """,
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    setup_logging()


@app.command("init-db")
def init_db_command() -> None:
    """Create all tables that do not exist yet."""
    init_db(get_main_engine())
    console.print("Database initialized", style="green")


@app.command("seed-admin")
def seed_admin(
    email: str = typer.Option("admin@admin.com", help="Administrator login email"),
    name: str = typer.Option("Admin", help="Display name"),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, confirmation_prompt=True
    ),
) -> None:
    """Create an administrator account unless one with that email exists."""
    try:
        email = normalize_email(email)
        name = validate_employee_name(name)
        password = validate_password(password)
    except ValidationError as e:
        console.print(e.message, style="red")
        raise typer.Exit(code=1) from e

    init_db(get_main_engine())
    with Session(get_main_engine()) as session:
        if UserRepository(session).find_by_email(email) is not None:
            console.print(f"Administrator {email} already exists", style="yellow")
            return
        session.add(
            User(
                name=name,
                email=email,
                password_hash=hash_password(password),
                role=Role.ADMIN,
                permissions=[str(p) for p in DEFAULT_ROLE_PERMISSIONS[Role.ADMIN]],
            )
        )
        session.commit()
    console.print(f"Administrator {email} created", style="green")


@app.command("seed-spheres")
def seed_spheres() -> None:
    """Insert the default spheres that are missing."""
    init_db(get_main_engine())
    with Session(get_main_engine()) as session:
        created = seed_default_spheres(session)
    if created:
        for sphere in created:
            console.print(f"+ {sphere.name}", style="green")
    else:
        console.print("All default spheres already exist", style="yellow")


@app.command("remove-reserved-spheres")
def remove_reserved() -> None:
    """Delete spheres named like the "all models" / "no sphere" filters."""
    with Session(get_main_engine()) as session:
        removed = remove_reserved_spheres(session)
    if removed:
        for name in removed:
            console.print(f"- {name}", style="red")
    else:
        console.print("No reserved spheres found", style="green")


if __name__ == "__main__":
    app()
