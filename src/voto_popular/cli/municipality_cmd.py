"""Municipality provisioning CLI commands."""

import asyncio

import typer

municipality_app = typer.Typer()


@municipality_app.command("create")
def create(
    slug: str = typer.Argument(..., help="Permanent identifier, e.g. muriae-mg"),
    name: str = typer.Argument(..., help="Display name"),
    state: str | None = typer.Option(None, "--state", help="Two-letter state code"),
    if_not_exists: bool = typer.Option(
        False,
        "--if-not-exists",
        help="Exit successfully if the municipality already exists (idempotent mode)",
    ),
) -> None:
    """Create a municipality with default branding."""
    asyncio.run(_create(slug, name, state, if_not_exists=if_not_exists))


async def _create(slug: str, name: str, state: str | None, *, if_not_exists: bool = False) -> None:
    from voto_popular.core.authorization import Actor
    from voto_popular.core.config import get_settings
    from voto_popular.core.database import Database
    from voto_popular.core.errors import ConflictError, PlatformError
    from voto_popular.core.roles import Role
    from voto_popular.services.municipality_service import create_municipality

    operator = Actor(user_id="cli", role=Role.SUPER_ADMIN, is_active=True, is_persisted=True)
    settings = get_settings()
    database = Database(settings.database_url, schema=settings.database_schema)
    database.connect()
    try:
        async with database.session() as session:
            municipality = await create_municipality(
                session,
                operator,
                slug=slug,
                name=name,
                branding={"state": state} if state else None,
            )
            typer.echo(f"Municipality '{municipality.id}' created")
    except ConflictError as e:
        if if_not_exists:
            typer.echo(f"Municipality '{slug}' already exists, skipping (--if-not-exists)")
            return
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1) from e
    except PlatformError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        await database.dispose()
