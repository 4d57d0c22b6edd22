"""Flows that wire the domain to the hosted backend."""

from gestao_contas.services.accounts import AccountService
from gestao_contas.services.postal import Address, PostalCodeClient
from gestao_contas.services.records import BankAccountService, PixKeyService, ProfileService
from gestao_contas.services.storage import StorageUploader
from gestao_contas.services.users import (
    ManagedUser,
    PermissionService,
    UserAdminService,
    UserDetails,
)

__all__ = [
    "AccountService",
    "BankAccountService",
    "PixKeyService",
    "ProfileService",
    "PermissionService",
    "UserAdminService",
    "ManagedUser",
    "UserDetails",
    "StorageUploader",
    "PostalCodeClient",
    "Address",
]
