"""Permission loading and user administration.

User administration runs through the backend's callable functions, which
re-check server-side that the caller is an admin.
"""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import structlog

from gestao_contas.backend import BackendClient, BackendError, eq
from gestao_contas.config import bind_session
from gestao_contas.context import SessionContext
from gestao_contas.errors import ValidationError
from gestao_contas.models import ManagementContext
from gestao_contas.permissions import Capability, PermissionSet, Tab

logger = structlog.get_logger(__name__)

PERMISSIONS_TABLE = "user_permissions"

# Callable function names
CREATE_USER = "create-user"
DELETE_USER = "delete-user"
UPDATE_USER = "update-user"
LIST_USERS = "list-users"
GET_USER_DETAILS = "get-user-details"

USER_STATUS_ACTIVE = "active"
USER_STATUS_INACTIVE = "inactive"


@dataclass
class ManagedUser:
    """A user as listed by the admin functions."""

    id: UUID
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    status: str = USER_STATUS_INACTIVE

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ManagedUser":
        return cls(
            id=UUID(str(data["id"])),
            email=data.get("email"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            status=data.get("status") or USER_STATUS_INACTIVE,
        )


@dataclass
class UserDetails:
    first_name: str | None = None
    last_name: str | None = None
    status: str = USER_STATUS_INACTIVE
    permissions: PermissionSet = field(default_factory=PermissionSet)


class PermissionService:
    """Loads permission rows and builds session contexts from them."""

    def __init__(self, client: BackendClient):
        self._client = client

    async def load_permissions(self, user_id: UUID) -> PermissionSet:
        rows = await self._client.select(PERMISSIONS_TABLE, [eq("user_id", user_id)])
        permissions = PermissionSet.from_rows(rows, user_id=user_id)
        logger.debug("permissions_loaded", user_id=str(user_id), rows=len(permissions))
        return permissions

    async def session_for(
        self, user_id: UUID, management: ManagementContext, email: str | None = None
    ) -> SessionContext:
        """Build the request context of a signed-in user.

        The user and management context are bound to the log context, so
        every later event of this task carries them.
        """
        permissions = await self.load_permissions(user_id)
        context = SessionContext(
            user_id=user_id, management=management, permissions=permissions, email=email
        )
        bind_session(context)
        return context


class UserAdminService:
    """Create, update, delete and list users through the admin functions."""

    def __init__(self, client: BackendClient, context: SessionContext):
        self._client = client
        self.context = context

    async def _invoke(self, function: str, payload: dict[str, Any]) -> dict[str, Any]:
        result = await self._client.invoke(function, payload)
        if not isinstance(result, dict):
            raise BackendError(f"Unexpected response from {function}", details=result)
        if result.get("error"):
            raise BackendError(str(result["error"]), details=result)
        return result

    async def list_users(self) -> list[ManagedUser]:
        self.context.require(Tab.USERS, Capability.READ)
        result = await self._invoke(LIST_USERS, {})
        return [ManagedUser.from_dict(user) for user in result.get("users", [])]

    async def get_user_details(self, user_id: UUID) -> UserDetails:
        self.context.require(Tab.USERS, Capability.READ)
        result = await self._invoke(GET_USER_DETAILS, {"userId": str(user_id)})
        profile = result.get("profile") or {}
        return UserDetails(
            first_name=profile.get("first_name"),
            last_name=profile.get("last_name"),
            status=profile.get("status") or USER_STATUS_INACTIVE,
            permissions=PermissionSet.from_rows(result.get("permissions") or [], user_id=user_id),
        )

    async def create_user(
        self,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
        permissions: PermissionSet | None = None,
    ) -> ManagedUser:
        """Create a user together with their permission rows."""
        self.context.require(Tab.USERS, Capability.WRITE)
        errors: dict[str, str] = {}
        if "@" not in email:
            errors["email"] = "E-mail inválido."
        if len(password) < 6:
            errors["password"] = "A senha deve ter pelo menos 6 caracteres."
        if errors:
            raise ValidationError(errors)

        result = await self._invoke(
            CREATE_USER,
            {
                "email": email,
                "password": password,
                "first_name": first_name,
                "last_name": last_name,
                "permissions": _permission_rows(permissions),
            },
        )
        user = ManagedUser.from_dict(
            {**result.get("user", {}), "first_name": first_name, "last_name": last_name,
             "status": USER_STATUS_ACTIVE}
        )
        logger.info("user_created", user_id=str(user.id), email=email)
        return user

    async def update_user(
        self,
        user_id: UUID,
        *,
        first_name: str | None,
        last_name: str | None,
        status: str,
        permissions: PermissionSet,
        email: str | None = None,
        password: str | None = None,
    ) -> None:
        """Update login data, profile and permissions of another user.

        Name, status and the whole permission set are always overwritten;
        email and password only change when given.
        """
        self.context.require(Tab.USERS, Capability.EDIT)
        if password is not None and len(password) < 6:
            raise ValidationError({"password": "A senha deve ter pelo menos 6 caracteres."})

        await self._invoke(
            UPDATE_USER,
            {
                "userId": str(user_id),
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
                "status": status,
                "permissions": _permission_rows(permissions),
            },
        )
        logger.info("user_updated", user_id=str(user_id))

    async def delete_user(self, user_id: UUID) -> None:
        self.context.require(Tab.USERS, Capability.DELETE)
        if user_id == self.context.user_id:
            raise ValidationError({"id": "Não é possível deletar a própria conta."})
        await self._invoke(DELETE_USER, {"id": str(user_id)})
        logger.info("user_deleted", user_id=str(user_id))


def _permission_rows(permissions: PermissionSet | None) -> list[dict[str, Any]]:
    """Permission rows without a user id; the function fills it in."""
    if permissions is None:
        return []
    rows = []
    for row in permissions.to_rows():
        row.pop("user_id", None)
        rows.append(row)
    return rows
