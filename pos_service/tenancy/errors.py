"""Exceptions raised by the tenancy layer."""


class TenancyError(Exception):
    """Base exception for tenant resolution errors."""
    pass


class TenantNotFoundError(TenancyError):
    """Raised when a tenant is unknown or deactivated.

    The two cases are deliberately not distinguished.
    """
    pass


class TenantConnectionError(TenancyError):
    """Raised when a tenant database handle cannot be opened."""
    pass


class TenantConfigurationError(TenancyError):
    """Raised when a tenant's stored connection string drifted from the central cluster."""
    pass


class DirectoryIntegrityError(TenancyError):
    """Raised when a directory write violates a uniqueness constraint."""
    pass
