"""User roles."""

from enum import Enum


class UserRole(str, Enum):
    """Roles carried by central identities and copied to tenant users."""
    SUPER_ADMIN = "SUPER_ADMIN"
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"
    VIEWER = "VIEWER"


# Roles allowed to manage staff accounts inside a shop
USER_MANAGER_ROLES = (UserRole.SUPER_ADMIN, UserRole.OWNER, UserRole.ADMIN)

# Roles allowed to edit the product catalogue
CATALOG_MANAGER_ROLES = (UserRole.SUPER_ADMIN, UserRole.OWNER, UserRole.ADMIN, UserRole.MANAGER)

# Roles allowed to ring up sales
SALES_ROLES = CATALOG_MANAGER_ROLES + (UserRole.CASHIER,)
