"""Operator command line for the POS Management Service.

Commands::

    pos-service create-tenant <name> <slug> <domain> [--owner-name NAME]
    pos-service create-superadmin <username> [--password PASSWORD]
    pos-service repair-urls [--dry-run]
    pos-service migrate-tenants

All commands read the same POS_* settings as the API server.
"""

import argparse
import asyncio
import getpass
import sys
import textwrap
from typing import List, Optional

from pos_service.core.database import create_engine_for_url, mask_database_url
from pos_service.core.settings import get_settings
from pos_service.main import create_app
from pos_service.services.identity_service import UsernameTakenError
from pos_service.services.provisioning import ProvisioningError, TenantSchemaMigrator


def _ok(msg: str) -> None:
    print(f"  [OK]  {msg}")


def _err(msg: str) -> None:
    print(f"[ERROR] {msg}", file=sys.stderr)


async def _with_app(coro_factory):
    """Run a coroutine against a fully wired application, then close it."""
    app = create_app(get_settings())
    database = app.state.database
    await database.connect()
    try:
        return await coro_factory(app.state)
    finally:
        await app.state.connection_cache.close_all()
        await database.disconnect()


def cmd_create_tenant(args: argparse.Namespace) -> int:
    """Provision a shop end to end."""
    async def run(state):
        return await state.provisioning.provision_tenant(
            name=args.name,
            slug=args.slug,
            domain=args.domain,
            owner_name=args.owner_name,
        )

    try:
        result = asyncio.run(_with_app(run))
    except ValueError as e:
        _err(str(e))
        return 2
    except ProvisioningError as e:
        _err(f"Provisioning failed at {e.state.value}: {e.message}")
        return 1

    _ok(f"Tenant {result.tenant.name} ({result.tenant.slug}) created with id {result.tenant.id}")
    _ok(f"Database: {result.tenant.db_name}" + ("" if result.database_created else " (already existed)"))
    _ok(f"Domains: {', '.join(result.tenant.domains)}")
    print(f"  Owner login: {result.owner_username} / {result.owner_password}")
    return 0


def cmd_create_superadmin(args: argparse.Namespace) -> int:
    """Create a system-wide super admin in the central directory."""
    password = args.password or getpass.getpass("Password: ")
    if len(password) < 6:
        _err("Password must be at least 6 characters")
        return 2

    async def run(state):
        return await state.identity_bridge.create_super_admin(args.username, password)

    try:
        user = asyncio.run(_with_app(run))
    except UsernameTakenError as e:
        _err(str(e))
        return 1
    except ValueError as e:
        _err(str(e))
        return 2

    _ok(f"Super admin {user.username} created with id {user.id}")
    return 0


def cmd_repair_urls(args: argparse.Namespace) -> int:
    """Rewrite tenant connection URLs that drifted off the central cluster."""
    async def run(state):
        if args.dry_run:
            return await state.directory.find_drifted_tenants()
        return await state.provisioning.repair_connection_urls()

    records = asyncio.run(_with_app(run))
    if not records:
        _ok("All tenant connection URLs match the central cluster")
        return 0
    verb = "Would repair" if args.dry_run else "Repaired"
    for record in records:
        _ok(f"{verb} {record.slug} ({record.id}): {mask_database_url(record.db_url)}")
    return 0


def cmd_migrate_tenants(args: argparse.Namespace) -> int:
    """Upgrade every registered tenant database to the latest schema."""
    settings = get_settings()
    migrator = TenantSchemaMigrator(settings.tenant_migrations_path)

    async def run(state):
        failures = 0
        for record in await state.directory.list_tenants():
            engine = create_engine_for_url(record.db_url, pool_size=1, max_overflow=0)
            try:
                await migrator.upgrade(engine)
                _ok(f"Migrated {record.slug} ({record.db_name})")
            except Exception as e:
                failures += 1
                _err(f"Migration of {record.slug} failed: {type(e).__name__}")
            finally:
                await engine.dispose()
        return failures

    return 1 if asyncio.run(_with_app(run)) else 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser tree."""
    parser = argparse.ArgumentParser(
        prog="pos-service",
        description="POS Management Service operator CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """\
            Examples:
              pos-service create-tenant "Green Leaf" green-leaf greenleaf.example.com
              pos-service create-superadmin root
              pos-service repair-urls --dry-run
            """
        ),
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    tenant_parser = subparsers.add_parser("create-tenant", help="Provision a new shop")
    tenant_parser.add_argument("name", help="Shop display name")
    tenant_parser.add_argument("slug", help="Unique slug (lowercase letters, digits, hyphens)")
    tenant_parser.add_argument("domain", help="Primary domain of the shop")
    tenant_parser.add_argument("--owner-name", default=None, help="Owner display name")

    admin_parser = subparsers.add_parser("create-superadmin", help="Create a super admin account")
    admin_parser.add_argument("username", help="Login name")
    admin_parser.add_argument(
        "--password",
        default=None,
        help="Password (prompted when omitted)",
    )

    repair_parser = subparsers.add_parser(
        "repair-urls", help="Rewrite tenant connection URLs from the central URL"
    )
    repair_parser.add_argument(
        "--dry-run", action="store_true", help="Only list tenants that would be repaired"
    )

    subparsers.add_parser("migrate-tenants", help="Apply tenant migrations to every shop")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the pos-service CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "create-tenant":
        return cmd_create_tenant(args)
    elif args.command == "create-superadmin":
        return cmd_create_superadmin(args)
    elif args.command == "repair-urls":
        return cmd_repair_urls(args)
    elif args.command == "migrate-tenants":
        return cmd_migrate_tenants(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
