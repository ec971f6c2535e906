"""Cross-database identity bridge.

Login identities live in the central database; every tenant user also has a
local copy in its shop database under the same id, so tenant-local foreign
keys resolve without a cross-database join. The two writes cannot share a
transaction, so each multi-database operation below is a short saga: every
step after the first has an explicit compensating action.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.concurrency import run_in_threadpool

from pos_service.core.roles import UserRole
from pos_service.core.settings import Settings
from pos_service.middleware.auth import create_access_token, get_password_context
from pos_service.models.central_user import CentralUser
from pos_service.models.tenant_user import TenantUser
from pos_service.tenancy.connection_cache import TenantConnectionCache
from pos_service.tenancy.directory import TenantDirectory
from pos_service.tenancy.errors import TenantNotFoundError

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Base exception for identity bridge errors."""
    pass


class UsernameTakenError(IdentityError):
    """Raised when a username already exists anywhere in the system."""
    pass


class DuplicateTenantUserError(IdentityError):
    """Raised when the tenant database rejects the user (username or employee code clash)."""
    pass


class UserNotFoundError(IdentityError):
    """Raised when a user cannot be found for the given tenant."""
    pass


class UserInUseError(IdentityError):
    """Raised when a tenant user is still referenced by tenant records."""
    pass


class AuthenticationFailedError(IdentityError):
    """Raised when username or password is wrong."""
    pass


class AccountDisabledError(IdentityError):
    """Raised when a deactivated account tries to log in."""
    pass


class InactiveTenantError(IdentityError):
    """Raised when the user's shop is missing or deactivated."""
    pass


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


@dataclass
class TenantUserCreate:
    """Input for creating a mirrored tenant user."""

    username: str
    password: str
    full_name: str
    employee_code: str
    role: UserRole = UserRole.CASHIER
    nickname: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass
class LoginResult:
    access_token: str
    expires_in: int
    user: CentralUser


class IdentityBridge:
    """Keeps central identities and their tenant-local copies in step."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        connection_cache: TenantConnectionCache,
        directory: TenantDirectory,
        settings: Settings,
    ):
        self._session_factory = session_factory
        self._cache = connection_cache
        self._directory = directory
        self._settings = settings
        self._pwd_context = get_password_context(settings.bcrypt_rounds)

    async def _active_handle(self, tenant_id: uuid.UUID):
        """Handle for a shop that is active right now; a cached handle alone is not enough."""
        if await self._directory.find_tenant_by_id(tenant_id) is None:
            raise TenantNotFoundError(f"Tenant {tenant_id} not found")
        return await self._cache.get_handle(tenant_id)

    async def hash_password(self, password: str) -> str:
        return await run_in_threadpool(self._pwd_context.hash, password)

    async def verify_password(self, password: str, password_hash: str) -> bool:
        return await run_in_threadpool(self._pwd_context.verify, password, password_hash)

    async def _find_central_user(self, session, username: str) -> Optional[CentralUser]:
        result = await session.execute(
            select(CentralUser).where(func.lower(CentralUser.username) == normalize_username(username))
        )
        return result.scalar_one_or_none()

    async def username_exists(self, username: str) -> bool:
        async with self._session_factory() as session:
            return await self._find_central_user(session, username) is not None

    async def _insert_central_user(
        self,
        username: str,
        password_hash: str,
        role: str,
        tenant_id: Optional[uuid.UUID],
    ) -> CentralUser:
        async with self._session_factory() as session:
            user = CentralUser(
                id=uuid.uuid4(),
                username=username,
                password_hash=password_hash,
                role=role,
                tenant_id=tenant_id,
                is_active=True,
            )
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise UsernameTakenError(f"Username '{username}' is already taken") from e
            return user

    async def _delete_central_user(self, user_id: uuid.UUID) -> None:
        """Compensating action for a central insert whose tenant copy failed."""
        try:
            async with self._session_factory() as session:
                await session.execute(delete(CentralUser).where(CentralUser.id == user_id))
                await session.commit()
            logger.info(f"Rolled back central user {user_id}")
        except Exception:
            logger.exception(f"Compensating delete failed; central user {user_id} is orphaned")

    async def create_tenant_user(self, tenant_id: uuid.UUID, data: TenantUserCreate) -> TenantUser:
        """
        Create a user centrally and mirror it into the tenant database.

        Steps:
            1. Case-insensitive username check against the central directory
            2. Hash the password once; both copies share the hash
            3. Insert the central record
            4. Insert the tenant record with the central id
               (compensation: delete the central record)

        Raises:
            UsernameTakenError: username exists anywhere in the system
            DuplicateTenantUserError: the tenant database rejected the user;
                the central record has been removed
        """
        username = normalize_username(data.username)
        if not username:
            raise ValueError("Username must not be empty")
        role = UserRole(data.role).value

        # Fail before any write when the shop is inactive or unreachable
        handle = await self._active_handle(tenant_id)

        if await self.username_exists(username):
            raise UsernameTakenError(f"Username '{username}' is already taken")

        password_hash = await self.hash_password(data.password)
        central_user = await self._insert_central_user(username, password_hash, role, tenant_id)

        try:
            local_user = TenantUser(
                id=central_user.id,
                username=username,
                password_hash=password_hash,
                employee_code=data.employee_code.strip(),
                full_name=data.full_name,
                nickname=data.nickname,
                phone=data.phone,
                avatar_url=data.avatar_url,
                role=role,
                is_active=True,
            )
            async with handle.session() as session:
                session.add(local_user)
                await session.commit()
        except IntegrityError as e:
            logger.warning(f"Tenant {tenant_id} rejected user '{username}': {e.orig}")
            await self._delete_central_user(central_user.id)
            raise DuplicateTenantUserError("Username or employee code already exists") from e
        except Exception:
            logger.exception(f"Mirroring user '{username}' into tenant {tenant_id} failed")
            await self._delete_central_user(central_user.id)
            raise

        logger.info(f"Created user {central_user.id} ('{username}') for tenant {tenant_id}")
        return local_user

    async def create_super_admin(self, username: str, password: str) -> CentralUser:
        """Create a system-wide super-admin; it has no tenant copy."""
        username = normalize_username(username)
        if not username:
            raise ValueError("Username must not be empty")
        if await self.username_exists(username):
            raise UsernameTakenError(f"Username '{username}' is already taken")
        password_hash = await self.hash_password(password)
        return await self._insert_central_user(username, password_hash, UserRole.SUPER_ADMIN.value, None)

    async def _get_central_user(self, session, tenant_id: Optional[uuid.UUID], user_id: uuid.UUID) -> CentralUser:
        user = await session.get(CentralUser, user_id)
        if user is None or user.tenant_id != tenant_id:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    async def change_password(
        self,
        tenant_id: Optional[uuid.UUID],
        user_id: uuid.UUID,
        new_password: str,
    ) -> None:
        """
        Change a password in both databases.

        The central record is the login authority and is written first; if
        the tenant copy cannot be updated the previous central hash is
        restored, so the two never disagree on the current password.
        """
        handle = await self._active_handle(tenant_id) if tenant_id is not None else None
        new_hash = await self.hash_password(new_password)

        async with self._session_factory() as session:
            user = await self._get_central_user(session, tenant_id, user_id)
            previous_hash = user.password_hash
            user.password_hash = new_hash
            await session.commit()

        if tenant_id is None:
            return

        try:
            async with handle.session() as session:
                local_user = await session.get(TenantUser, user_id)
                if local_user is None:
                    raise UserNotFoundError(f"User {user_id} has no profile in tenant {tenant_id}")
                local_user.password_hash = new_hash
                await session.commit()
        except Exception:
            logger.exception(f"Password change for user {user_id} failed in tenant {tenant_id}")
            async with self._session_factory() as session:
                user = await session.get(CentralUser, user_id)
                if user is not None:
                    user.password_hash = previous_hash
                    await session.commit()
            raise

        logger.info(f"Password changed for user {user_id}")

    async def delete_tenant_user(self, tenant_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """
        Remove a user from both databases.

        The tenant copy goes first because tenant records (sales, stock
        movements) may still reference it. If the central delete then fails,
        the tenant copy is re-inserted from its snapshot.
        """
        async with self._session_factory() as session:
            await self._get_central_user(session, tenant_id, user_id)

        handle = await self._active_handle(tenant_id)
        snapshot = None
        async with handle.session() as session:
            local_user = await session.get(TenantUser, user_id)
            if local_user is not None:
                snapshot = local_user.to_dict()
                await session.delete(local_user)
                try:
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    raise UserInUseError("User is referenced by shop records and cannot be deleted") from e

        try:
            async with self._session_factory() as session:
                await session.execute(delete(CentralUser).where(CentralUser.id == user_id))
                await session.commit()
        except Exception:
            logger.exception(f"Central delete of user {user_id} failed, restoring tenant copy")
            if snapshot is not None:
                async with handle.session() as session:
                    session.add(TenantUser(**snapshot))
                    await session.commit()
            raise

        logger.info(f"Deleted user {user_id} from tenant {tenant_id}")

    async def list_tenant_users(self, tenant_id: uuid.UUID) -> List[TenantUser]:
        handle = await self._active_handle(tenant_id)
        async with handle.session() as session:
            result = await session.execute(select(TenantUser).order_by(TenantUser.created_at.desc()))
            return list(result.scalars().all())

    async def get_tenant_user(self, tenant_id: uuid.UUID, user_id: uuid.UUID) -> Optional[TenantUser]:
        handle = await self._active_handle(tenant_id)
        async with handle.session() as session:
            return await session.get(TenantUser, user_id)

    async def authenticate(self, username: str, password: str) -> LoginResult:
        """
        Verify credentials against the central directory and issue a token.

        Raises:
            AuthenticationFailedError: unknown username or wrong password
            AccountDisabledError: the account is deactivated
            InactiveTenantError: the user's shop is missing or deactivated
        """
        async with self._session_factory() as session:
            user = await self._find_central_user(session, username)
            if user is None:
                await run_in_threadpool(self._pwd_context.dummy_verify)
                raise AuthenticationFailedError("Invalid credentials")
            if not await self.verify_password(password, user.password_hash):
                raise AuthenticationFailedError("Invalid credentials")
            if not user.is_active:
                raise AccountDisabledError("Account is disabled")

            if user.tenant_id is not None:
                tenant = await self._directory.find_tenant_by_id(user.tenant_id)
                if tenant is None:
                    raise InactiveTenantError("Shop is inactive. Please contact support.")

            user.last_login_at = datetime.now(timezone.utc)
            await session.commit()

        expires_delta = timedelta(minutes=self._settings.jwt_access_token_expire_minutes)
        claims = {
            "sub": str(user.id),
            "username": user.username,
            "role": user.role,
        }
        if user.tenant_id is not None:
            claims["tenant_id"] = str(user.tenant_id)
        token = create_access_token(claims, self._settings, expires_delta)

        logger.info(f"User {user.id} logged in")
        return LoginResult(
            access_token=token,
            expires_in=int(expires_delta.total_seconds()),
            user=user,
        )
