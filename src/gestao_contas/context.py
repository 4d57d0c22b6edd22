"""Request-scoped session context."""

from dataclasses import dataclass, field, replace
from uuid import UUID

from gestao_contas.models import ManagementContext
from gestao_contas.permissions import Capability, PermissionSet, Tab


@dataclass(frozen=True)
class SessionContext:
    """Who is acting, in which management context, with which permissions.

    Built once per user action and passed to the services explicitly.
    """

    user_id: UUID
    management: ManagementContext
    permissions: PermissionSet = field(default_factory=PermissionSet)
    email: str | None = None

    def for_management(self, management: ManagementContext) -> "SessionContext":
        """Same user and permissions, different management context."""
        return replace(self, management=management)

    def can(self, tab: Tab, capability: Capability) -> bool:
        return self.permissions.has(self.management, tab, capability)

    def require(self, tab: Tab, capability: Capability) -> None:
        """Raise ``PermissionDeniedError`` unless the capability is held."""
        self.permissions.require(self.management, tab, capability)

    @property
    def storage_prefix(self) -> str:
        """Per-user, per-context folder for uploaded files."""
        return f"{self.user_id}/{self.management.value}"
