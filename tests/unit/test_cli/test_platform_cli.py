"""Tests for the provisioning and user administration CLI commands."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from typer.testing import CliRunner

from voto_popular.cli.app import app
from voto_popular.core.database import Database
from voto_popular.core.roles import Role
from voto_popular.models import AuditLog, Base, Municipality, User

runner = CliRunner()


@pytest.fixture
def cli_database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Database:
    """Point the CLI at a fresh SQLite file with all tables and one signed-in user."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)

    async def _prepare() -> None:
        database = Database(url)
        database.connect()
        async with database.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with database.session() as session:
            session.add(User(id="uid-1", email="maria@example.com"))
            await session.commit()
        await database.dispose()

    asyncio.run(_prepare())
    return Database(url)


def _fetch(database: Database, model: type, key: str) -> object:
    async def _get() -> object:
        database.connect()
        try:
            async with database.session() as session:
                return await session.get(model, key)
        finally:
            await database.dispose()

    return asyncio.run(_get())


def _audit_details(database: Database) -> list[str]:
    async def _list() -> list[str]:
        database.connect()
        try:
            async with database.session() as session:
                return list((await session.execute(select(AuditLog.details))).scalars().all())
        finally:
            await database.dispose()

    return asyncio.run(_list())


class TestMunicipalityCreate:
    """Tests for `municipality create`."""

    def test_creates(self, cli_database: Database) -> None:
        result = runner.invoke(app, ["municipality", "create", "muriae-mg", "Muriaé", "--state", "MG"])
        assert result.exit_code == 0, result.output
        assert "created" in result.output
        municipality = _fetch(cli_database, Municipality, "muriae-mg")
        assert municipality.state == "MG"

    def test_duplicate_fails(self, cli_database: Database) -> None:
        runner.invoke(app, ["municipality", "create", "muriae-mg", "Muriaé"])
        result = runner.invoke(app, ["municipality", "create", "muriae-mg", "Muriaé"])
        assert result.exit_code == 1

    def test_duplicate_with_if_not_exists(self, cli_database: Database) -> None:
        runner.invoke(app, ["municipality", "create", "muriae-mg", "Muriaé"])
        result = runner.invoke(app, ["municipality", "create", "muriae-mg", "Muriaé", "--if-not-exists"])
        assert result.exit_code == 0
        assert "already exists" in result.output

    def test_invalid_slug(self, cli_database: Database) -> None:
        result = runner.invoke(app, ["municipality", "create", "Muriae MG", "Muriaé"])
        assert result.exit_code == 1


class TestUserSetRole:
    """Tests for `user set-role`."""

    def test_bootstrap_super_admin(self, cli_database: Database) -> None:
        result = runner.invoke(app, ["user", "set-role", "uid-1", "super_admin"])
        assert result.exit_code == 0, result.output
        user = _fetch(cli_database, User, "uid-1")
        assert user.role == Role.SUPER_ADMIN
        assert user.municipality_id is None
        assert _audit_details(cli_database) == ["uid-1: citizen -> super_admin (cli)"]

    def test_bind_city_admin(self, cli_database: Database) -> None:
        runner.invoke(app, ["municipality", "create", "muriae-mg", "Muriaé"])
        result = runner.invoke(app, ["user", "set-role", "uid-1", "city_admin", "-m", "muriae-mg"])
        assert result.exit_code == 0, result.output
        assert _fetch(cli_database, User, "uid-1").municipality_id == "muriae-mg"

    def test_municipality_required(self, cli_database: Database) -> None:
        result = runner.invoke(app, ["user", "set-role", "uid-1", "council_member"])
        assert result.exit_code == 1

    def test_unknown_role(self, cli_database: Database) -> None:
        result = runner.invoke(app, ["user", "set-role", "uid-1", "mayor"])
        assert result.exit_code == 1

    def test_unknown_user(self, cli_database: Database) -> None:
        result = runner.invoke(app, ["user", "set-role", "ghost", "super_admin"])
        assert result.exit_code == 1

    def test_unknown_municipality(self, cli_database: Database) -> None:
        result = runner.invoke(app, ["user", "set-role", "uid-1", "city_admin", "-m", "atlantida"])
        assert result.exit_code == 1


class TestUserList:
    """Tests for `user list`."""

    def test_lists_users(self, cli_database: Database) -> None:
        result = runner.invoke(app, ["user", "list"])
        assert result.exit_code == 0
        assert "maria@example.com" in result.output
        assert "Total: 1" in result.output


class TestDbPing:
    """Tests for `db ping`."""

    def test_reachable(self, cli_database: Database) -> None:
        result = runner.invoke(app, ["db", "ping"])
        assert result.exit_code == 0
        assert "Database OK" in result.output

    def test_unreachable(self, cli_database: Database) -> None:
        with patch("voto_popular.core.database.Database.ping", new_callable=AsyncMock, return_value=False):
            result = runner.invoke(app, ["db", "ping"])
        assert result.exit_code == 1


class TestDbMigrations:
    """Tests for the alembic wrappers."""

    def test_upgrade_calls_alembic(self) -> None:
        with (
            patch("alembic.command.upgrade") as mock_upgrade,
            patch.dict("os.environ", {"DATABASE_URL": "sqlite+aiosqlite://"}),
        ):
            result = runner.invoke(app, ["db", "upgrade"])
        assert result.exit_code == 0
        assert mock_upgrade.call_args.args[1] == "head"


class TestRootCommands:
    """Tests for the root callback and the operation table."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("voto-popular ")

    def test_operations_table(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite://")
        result = runner.invoke(app, ["operations"])
        assert result.exit_code == 0
        lines = {line.split()[0]: line.split()[1:] for line in result.output.splitlines()[2:] if line.strip()}
        assert lines["votes.cast"][:2] == ["POST", "citizen"]
        assert lines["proposals.list_approved"][:2] == ["GET", "public"]
        assert lines["municipalities.create"][1] == "super_admin"
