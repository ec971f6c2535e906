"""Derivation and validation of per-tenant database names and URLs."""

import re
from pathlib import Path

from sqlalchemy.engine import URL, make_url

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
MAX_SLUG_LENGTH = 40


def validate_slug(slug: str) -> str:
    """Return the normalised slug or raise ValueError."""
    slug = slug.strip().lower()
    if not slug or len(slug) > MAX_SLUG_LENGTH or not SLUG_PATTERN.match(slug):
        raise ValueError(
            "Slug must be 1-40 characters of lowercase letters, digits and single hyphens"
        )
    return slug


def tenant_database_name(slug: str, prefix: str) -> str:
    """Deterministic database name for a tenant slug."""
    return f"{prefix}{validate_slug(slug).replace('-', '_')}"


def _is_sqlite(url: URL) -> bool:
    return url.get_backend_name() == "sqlite"


def derive_tenant_database_url(base_url: str, db_name: str) -> str:
    """
    Build a tenant URL from the operator's central URL.

    Only the database segment changes; driver, host, port, credentials and
    query options are preserved. For SQLite the database file is placed next
    to the central database file.
    """
    url = make_url(base_url)
    if _is_sqlite(url):
        if not url.database or url.database == ":memory:":
            raise ValueError("A file-based SQLite central database is required for tenants")
        database = str(Path(url.database).with_name(f"{db_name}.db"))
    else:
        database = db_name
    return url.set(database=database).render_as_string(hide_password=False)


def same_cluster(tenant_url: str, central_url: str) -> bool:
    """True when the two URLs differ at most in their database segment."""
    tenant = make_url(tenant_url)
    central = make_url(central_url)
    if _is_sqlite(tenant) or _is_sqlite(central):
        if tenant.drivername != central.drivername:
            return False
        if not tenant.database or not central.database:
            return False
        return Path(tenant.database).resolve().parent == Path(central.database).resolve().parent
    return _server_identity(tenant) == _server_identity(central)


def _server_identity(url: URL) -> tuple:
    return (url.drivername, url.username, url.password, url.host, url.port, dict(url.query))
