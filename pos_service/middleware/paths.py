"""Path allow-list matching shared by the authentication and tenant middleware."""

from typing import Iterable, Optional

# Served outside the API mount point and never tenant-scoped
DOCUMENTATION_PATHS = ("/docs", "/redoc", "/openapi.json", "/favicon.ico")


def relative_api_path(path: str, api_prefix: str) -> Optional[str]:
    """Path relative to the API mount point, or None when outside it."""
    if not api_prefix:
        return path
    if path == api_prefix:
        return "/"
    if path.startswith(api_prefix + "/"):
        return path[len(api_prefix):]
    return None


def matches_any(path: str, allowed: Iterable[str]) -> bool:
    """Exact or path-prefix match against an allow-list."""
    return any(path == p or path.startswith(p.rstrip("/") + "/") for p in allowed)


def is_allow_listed(path: str, api_prefix: str, api_allow_list: Iterable[str]) -> bool:
    if path == "/" or matches_any(path, DOCUMENTATION_PATHS):
        return True
    relative = relative_api_path(path, api_prefix)
    return relative is not None and matches_any(relative, api_allow_list)
