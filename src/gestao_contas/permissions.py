"""Per-user, per-tab, per-action permissions."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from gestao_contas.errors import PermissionDeniedError
from gestao_contas.models import ManagementContext


class Tab(str, Enum):
    """Sections of the application a permission row applies to."""

    ACCOUNTS = "contas"
    PIX = "pix"
    BANKS = "bancos"
    PAID = "pagas"
    REPORTS = "relatorios"
    PROFILE = "perfil"
    USERS = "usuarios"


class Capability(str, Enum):
    READ = "read"
    WRITE = "write"
    EDIT = "edit"
    DELETE = "delete"

    @property
    def column(self) -> str:
        """Name of the boolean column storing this capability."""
        return f"can_{self.value}"


ALL_CAPABILITIES: frozenset[Capability] = frozenset(Capability)


@dataclass(frozen=True)
class Permission:
    """Capabilities one user holds on one tab of one management context."""

    management: ManagementContext
    tab: Tab
    capabilities: frozenset[Capability] = frozenset()
    user_id: UUID | None = None

    def allows(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "management_type": self.management.value,
            "tab": self.tab.value,
        }
        for capability in Capability:
            row[capability.column] = capability in self.capabilities
        if self.user_id is not None:
            row["user_id"] = str(self.user_id)
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Permission":
        user_id = row.get("user_id")
        return cls(
            management=ManagementContext(row["management_type"]),
            tab=Tab(row["tab"]),
            capabilities=frozenset(c for c in Capability if row.get(c.column)),
            user_id=UUID(str(user_id)) if user_id else None,
        )


class PermissionSet:
    """Permissions keyed by (management context, tab).

    A missing entry means no access. Edits return a new set and drop rows
    left without any capability, matching what gets persisted.
    """

    def __init__(self, permissions: Iterable[Permission] = (), user_id: UUID | None = None):
        self.user_id = user_id
        self._rows: dict[tuple[ManagementContext, Tab], frozenset[Capability]] = {}
        for permission in permissions:
            key = (permission.management, permission.tab)
            self._rows[key] = self._rows.get(key, frozenset()) | permission.capabilities
        self._prune()

    @classmethod
    def from_rows(cls, rows: Iterable[dict[str, Any]], user_id: UUID | None = None) -> "PermissionSet":
        return cls((Permission.from_row(row) for row in rows), user_id=user_id)

    def _prune(self) -> None:
        self._rows = {key: caps for key, caps in self._rows.items() if caps}

    def _with(self, rows: dict[tuple[ManagementContext, Tab], frozenset[Capability]]) -> "PermissionSet":
        result = PermissionSet(user_id=self.user_id)
        result._rows = rows
        result._prune()
        return result

    def has(self, management: ManagementContext, tab: Tab, capability: Capability) -> bool:
        return capability in self._rows.get((management, tab), frozenset())

    def capabilities(self, management: ManagementContext, tab: Tab) -> frozenset[Capability]:
        return self._rows.get((management, tab), frozenset())

    def require(self, management: ManagementContext, tab: Tab, capability: Capability) -> None:
        if not self.has(management, tab, capability):
            raise PermissionDeniedError(management, tab, capability)

    def set_capability(
        self, management: ManagementContext, tab: Tab, capability: Capability, enabled: bool
    ) -> "PermissionSet":
        """Toggle a single capability."""
        rows = dict(self._rows)
        current = rows.get((management, tab), frozenset())
        rows[(management, tab)] = current | {capability} if enabled else current - {capability}
        return self._with(rows)

    def set_tab(self, management: ManagementContext, tab: Tab, enabled: bool) -> "PermissionSet":
        """Grant or revoke every capability on one tab."""
        rows = dict(self._rows)
        rows[(management, tab)] = ALL_CAPABILITIES if enabled else frozenset()
        return self._with(rows)

    def set_all(self, management: ManagementContext, enabled: bool) -> "PermissionSet":
        """Grant or revoke every capability on every tab of a context."""
        rows = dict(self._rows)
        for tab in Tab:
            rows[(management, tab)] = ALL_CAPABILITIES if enabled else frozenset()
        return self._with(rows)

    def is_tab_full(self, management: ManagementContext, tab: Tab) -> bool:
        return self.capabilities(management, tab) == ALL_CAPABILITIES

    def is_context_full(self, management: ManagementContext) -> bool:
        return all(self.is_tab_full(management, tab) for tab in Tab)

    def __iter__(self) -> Iterator[Permission]:
        for (management, tab), caps in sorted(
            self._rows.items(), key=lambda item: (item[0][0].value, item[0][1].value)
        ):
            yield Permission(management=management, tab=tab, capabilities=caps, user_id=self.user_id)

    def __len__(self) -> int:
        return len(self._rows)

    def to_rows(self) -> list[dict[str, Any]]:
        return [permission.to_row() for permission in self]
