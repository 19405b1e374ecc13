"""User administration CLI commands.

Operator tooling for bootstrapping: the first super-admin can only be
created here, since role changes through the API need an administrator.
"""

import asyncio

import typer

user_app = typer.Typer()


@user_app.command("set-role")
def set_role(
    user_id: str = typer.Argument(..., help="Subject id of a user who has signed in at least once"),
    role: str = typer.Argument(..., help="citizen, council_member, city_admin or super_admin"),
    municipality: str | None = typer.Option(None, "--municipality", "-m", help="Municipality slug to bind to"),
) -> None:
    """Assign a role to a user, bypassing API authorization."""
    asyncio.run(_set_role(user_id, role, municipality))


async def _set_role(user_id: str, role_value: str, municipality_id: str | None) -> None:
    from voto_popular.core.config import get_settings
    from voto_popular.core.database import Database
    from voto_popular.core.roles import Role
    from voto_popular.models.audit_log import AuditAction
    from voto_popular.models.municipality import Municipality
    from voto_popular.models.user import User
    from voto_popular.services.audit_service import record_event

    role = Role.parse(role_value)
    if role is None:
        typer.echo(f"Error: unknown role '{role_value}'", err=True)
        raise typer.Exit(code=1)
    if role is not Role.SUPER_ADMIN and municipality_id is None:
        typer.echo("Error: --municipality is required for this role", err=True)
        raise typer.Exit(code=1)

    settings = get_settings()
    database = Database(settings.database_url, schema=settings.database_schema)
    database.connect()
    try:
        async with database.session() as session:
            user = await session.get(User, user_id)
            if user is None:
                typer.echo(f"Error: user '{user_id}' not found", err=True)
                raise typer.Exit(code=1)
            if municipality_id is not None and await session.get(Municipality, municipality_id) is None:
                typer.echo(f"Error: municipality '{municipality_id}' not found", err=True)
                raise typer.Exit(code=1)

            previous = user.role
            user.role = role
            user.municipality_id = None if role is Role.SUPER_ADMIN and municipality_id is None else municipality_id
            await session.commit()
            await record_event(
                session,
                action=AuditAction.ROLE_ASSIGNED,
                municipality_id=user.municipality_id,
                details=f"{user_id}: {previous} -> {role} (cli)",
            )
            typer.echo(f"User '{user_id}' is now '{role}' in '{user.municipality_id or '-'}'")
    finally:
        await database.dispose()


@user_app.command("list")
def list_users(
    municipality: str | None = typer.Option(None, "--municipality", "-m", help="Filter by municipality slug"),
) -> None:
    """List users."""
    asyncio.run(_list_users(municipality))


async def _list_users(municipality_id: str | None) -> None:
    from sqlalchemy import select

    from voto_popular.core.config import get_settings
    from voto_popular.core.database import Database
    from voto_popular.models.user import User

    settings = get_settings()
    database = Database(settings.database_url, schema=settings.database_schema)
    database.connect()
    try:
        async with database.session() as session:
            query = select(User).order_by(User.created_at, User.id)
            if municipality_id is not None:
                query = query.where(User.municipality_id == municipality_id)
            users = list((await session.execute(query)).scalars().all())
            typer.echo(f"{'Id':<30} {'Email':<32} {'Role':<15} {'Municipality':<20} {'Active':<6}")
            typer.echo("-" * 107)
            for user in users:
                typer.echo(
                    f"{user.id:<30} {user.email:<32} {user.role:<15} "
                    f"{user.municipality_id or '-':<20} {user.is_active!s:<6}"
                )
            typer.echo(f"\nTotal: {len(users)}")
    finally:
        await database.dispose()
