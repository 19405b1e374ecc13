"""Typer CLI root application: server, operation table and subcommand groups."""

import typer

from voto_popular import __version__
from voto_popular.core.config import get_settings
from voto_popular.core.logging import setup_logging

app = typer.Typer(name="voto-popular", help="Voto Popular civic participation platform CLI")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"voto-popular {__version__}")
        raise typer.Exit()


@app.callback()
def _main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_print_version,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """Initialize logging for all CLI commands."""
    settings = get_settings()
    setup_logging(settings.log_level, log_dir=settings.log_dir, json_logs=settings.log_json)


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload for development"),
    host: str = typer.Option("0.0.0.0", "--host", help="Bind host"),  # noqa: S104
    port: int = typer.Option(8000, "--port", help="Bind port"),
) -> None:
    """Start the API server."""
    import uvicorn

    uvicorn.run(
        "voto_popular.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def operations() -> None:
    """Print every RPC operation with its method and access requirements."""
    from voto_popular.core.policies import OPERATIONS

    typer.echo(f"{'Operation':<28} {'Method':<6} {'Floor':<15} {'Tenant':<8}")
    typer.echo("-" * 60)
    for operation in OPERATIONS.values():
        policy = operation.policy
        if policy.floor is not None:
            floor = str(policy.floor)
        elif policy.authenticated:
            floor = "signed-in"
        else:
            floor = "public"
        tenant = "resource" if operation.resource_tenant_check else ("bound" if policy.tenant_bound else "-")
        typer.echo(f"{operation.name:<28} {operation.method:<6} {floor:<15} {tenant:<8}")


def _register_subcommands() -> None:
    """Register all CLI subcommand groups."""
    from voto_popular.cli.db_cmd import db_app
    from voto_popular.cli.municipality_cmd import municipality_app
    from voto_popular.cli.user_cmd import user_app

    app.add_typer(db_app, name="db", help="Database migration and connectivity commands")
    app.add_typer(user_app, name="user", help="User role administration (bootstrap of super-admins)")
    app.add_typer(municipality_app, name="municipality", help="Offline tenant provisioning")


_register_subcommands()
