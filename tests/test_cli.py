"""Tests for the operator CLI."""

import asyncio

import pytest

from pos_service.cli import build_parser, main
from pos_service.core.database import DatabaseManager
from pos_service.core.settings import get_settings


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a fresh SQLite central database."""
    monkeypatch.setenv("POS_ENVIRONMENT", "test")
    monkeypatch.setenv("POS_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("POS_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'central.db'}")
    monkeypatch.setenv("POS_BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("POS_DEFAULT_OWNER_PASSWORD", "owner-secret")
    get_settings.cache_clear()

    async def create_schema():
        database = DatabaseManager(get_settings())
        await database.create_all()
        await database.disconnect()

    asyncio.run(create_schema())
    yield tmp_path
    get_settings.cache_clear()


def test_parser_commands():
    parser = build_parser()

    args = parser.parse_args(["create-tenant", "Green Leaf", "green-leaf", "gl.example.com", "--owner-name", "Gina"])

    assert args.command == "create-tenant"
    assert args.slug == "green-leaf"
    assert args.owner_name == "Gina"
    assert parser.parse_args(["repair-urls", "--dry-run"]).dry_run is True


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "pos-service" in capsys.readouterr().out


def test_create_tenant(cli_env, capsys):
    exit_code = main(["create-tenant", "Green Leaf", "green-leaf", "gl.example.com"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Green Leaf (green-leaf)" in out
    assert "admin@green-leaf / owner-secret" in out
    assert (cli_env / "pos_tenant_green_leaf.db").exists()


def test_create_tenant_twice(cli_env, capsys):
    assert main(["create-tenant", "Green Leaf", "green-leaf", "gl.example.com"]) == 0

    exit_code = main(["create-tenant", "Green Leaf", "green-leaf", "gl.example.com"])

    assert exit_code == 1
    assert "DIRECTORY_RECORD_CREATING" in capsys.readouterr().err


def test_create_tenant_with_invalid_slug(cli_env, capsys):
    exit_code = main(["create-tenant", "Green Leaf", "Green Leaf", "gl.example.com"])

    assert exit_code == 2
    assert "Slug" in capsys.readouterr().err


def test_create_superadmin(cli_env, capsys):
    assert main(["create-superadmin", "root", "--password", "root-secret"]) == 0
    assert "Super admin root created" in capsys.readouterr().out

    assert main(["create-superadmin", "ROOT", "--password", "root-secret"]) == 1
    assert main(["create-superadmin", "other", "--password", "short"]) == 2


def test_repair_urls_and_migrate(cli_env, capsys):
    assert main(["create-tenant", "Green Leaf", "green-leaf", "gl.example.com"]) == 0
    capsys.readouterr()

    assert main(["repair-urls", "--dry-run"]) == 0
    assert "match the central cluster" in capsys.readouterr().out

    assert main(["migrate-tenants"]) == 0
    assert "Migrated green-leaf" in capsys.readouterr().out
