"""Gestão de Contas - household bookkeeping: bills, installments, PDFs and reports."""

__version__ = "0.1.0"

from gestao_contas.backend import BackendClient, BackendError
from gestao_contas.config import configure_logging, get_settings
from gestao_contas.context import SessionContext
from gestao_contas.dashboard import group_accounts, summarize
from gestao_contas.errors import (
    GestaoContasError,
    PermissionDeniedError,
    PostalCodeError,
    UploadError,
    ValidationError,
)
from gestao_contas.expansion import apply_edit, expand_draft
from gestao_contas.models import (
    Account,
    AccountDraft,
    AccountStatus,
    AccountType,
    ManagementContext,
)
from gestao_contas.permissions import Capability, PermissionSet, Tab
from gestao_contas.services import AccountService

__all__ = [
    # Version
    "__version__",
    # Models
    "Account",
    "AccountDraft",
    "AccountStatus",
    "AccountType",
    "ManagementContext",
    # Domain logic
    "expand_draft",
    "apply_edit",
    "group_accounts",
    "summarize",
    # Permissions
    "Tab",
    "Capability",
    "PermissionSet",
    "SessionContext",
    # Backend & services
    "BackendClient",
    "BackendError",
    "AccountService",
    # Errors
    "GestaoContasError",
    "ValidationError",
    "UploadError",
    "PermissionDeniedError",
    "PostalCodeError",
    # Config
    "get_settings",
    "configure_logging",
]
