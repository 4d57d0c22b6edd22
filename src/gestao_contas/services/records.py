"""Bank accounts, PIX keys and profiles of the active management context."""

from dataclasses import replace
from uuid import UUID

import structlog

from gestao_contas.backend import BackendClient, eq
from gestao_contas.context import SessionContext
from gestao_contas.models import BankAccount, PixKey, Profile
from gestao_contas.pdf import GeneratedFile, generate_pix_qr_sheet
from gestao_contas.permissions import Capability, Tab
from gestao_contas.services.postal import PostalCodeClient
from gestao_contas.validation import validate_bank_account, validate_pix_key

logger = structlog.get_logger(__name__)

BANK_ACCOUNTS_TABLE = "bank_accounts"
PIX_KEYS_TABLE = "pix_keys"
PROFILES_TABLE = "profiles"


def _without_id(row: dict) -> dict:
    return {key: value for key, value in row.items() if key != "id"}


class BankAccountService:
    """CRUD for bank accounts and cards."""

    def __init__(self, client: BackendClient, context: SessionContext):
        self._client = client
        self.context = context

    async def list_bank_accounts(self) -> list[BankAccount]:
        self.context.require(Tab.BANKS, Capability.READ)
        rows = await self._client.select(
            BANK_ACCOUNTS_TABLE,
            [eq("management_type", self.context.management)],
            order="bank_name",
        )
        return [BankAccount.from_row(row) for row in rows]

    async def get_bank_account(self, bank_account_id: UUID) -> BankAccount | None:
        self.context.require(Tab.BANKS, Capability.READ)
        row = await self._client.select_one(BANK_ACCOUNTS_TABLE, [eq("id", bank_account_id)])
        return BankAccount.from_row(row) if row else None

    async def save_bank_account(self, bank_account: BankAccount) -> BankAccount:
        """Insert a new bank account, or update it when it has an id."""
        validate_bank_account(bank_account)

        if bank_account.id is None:
            self.context.require(Tab.BANKS, Capability.WRITE)
            bank_account = replace(
                bank_account, user_id=self.context.user_id, management=self.context.management
            )
            rows = await self._client.insert(BANK_ACCOUNTS_TABLE, [bank_account.to_row()])
        else:
            self.context.require(Tab.BANKS, Capability.EDIT)
            rows = await self._client.update(
                BANK_ACCOUNTS_TABLE,
                _without_id(bank_account.to_row()),
                [eq("id", bank_account.id)],
            )

        logger.info("bank_account_saved", bank=bank_account.bank_name, new=bank_account.id is None)
        return BankAccount.from_row(rows[0]) if rows else bank_account

    async def delete_bank_account(self, bank_account_id: UUID) -> None:
        self.context.require(Tab.BANKS, Capability.DELETE)
        await self._client.delete(BANK_ACCOUNTS_TABLE, [eq("id", bank_account_id)])
        logger.info("bank_account_deleted", bank_account_id=str(bank_account_id))


class PixKeyService:
    """CRUD for PIX keys, plus QR sheets for BR Code keys."""

    def __init__(self, client: BackendClient, context: SessionContext):
        self._client = client
        self.context = context

    async def list_pix_keys(self) -> list[PixKey]:
        self.context.require(Tab.PIX, Capability.READ)
        rows = await self._client.select(
            PIX_KEYS_TABLE,
            [eq("management_type", self.context.management)],
            order="created_at",
            descending=True,
        )
        return [PixKey.from_row(row) for row in rows]

    async def save_pix_key(self, pix_key: PixKey) -> PixKey:
        validate_pix_key(pix_key)

        if pix_key.id is None:
            self.context.require(Tab.PIX, Capability.WRITE)
            pix_key = replace(pix_key, user_id=self.context.user_id, management=self.context.management)
            rows = await self._client.insert(PIX_KEYS_TABLE, [pix_key.to_row()])
        else:
            self.context.require(Tab.PIX, Capability.EDIT)
            rows = await self._client.update(
                PIX_KEYS_TABLE, _without_id(pix_key.to_row()), [eq("id", pix_key.id)]
            )

        logger.info("pix_key_saved", key_type=pix_key.key_type.value, new=pix_key.id is None)
        return PixKey.from_row(rows[0]) if rows else pix_key

    async def delete_pix_key(self, pix_key_id: UUID) -> None:
        self.context.require(Tab.PIX, Capability.DELETE)
        await self._client.delete(PIX_KEYS_TABLE, [eq("id", pix_key_id)])
        logger.info("pix_key_deleted", pix_key_id=str(pix_key_id))

    def qr_sheet(self, pix_key: PixKey) -> GeneratedFile:
        """Printable QR code of a BR Code key."""
        self.context.require(Tab.PIX, Capability.READ)
        return generate_pix_qr_sheet(pix_key)


class ProfileService:
    """The signed-in user's profile in the active management context."""

    def __init__(
        self,
        client: BackendClient,
        context: SessionContext,
        postal_codes: PostalCodeClient | None = None,
    ):
        self._client = client
        self.context = context
        self._postal_codes = postal_codes

    async def get_profile(self) -> Profile | None:
        row = await self._client.select_one(
            PROFILES_TABLE,
            [eq("id", self.context.user_id), eq("management_type", self.context.management)],
        )
        return Profile.from_row(row) if row else None

    async def save_profile(self, profile: Profile) -> Profile:
        self.context.require(Tab.PROFILE, Capability.EDIT)
        profile = replace(profile, user_id=self.context.user_id, management=self.context.management)
        rows = await self._client.upsert(
            PROFILES_TABLE, [profile.to_row()], on_conflict="id,management_type"
        )
        logger.info("profile_saved", user_id=str(self.context.user_id))
        return Profile.from_row(rows[0]) if rows else profile

    async def fill_address(self, profile: Profile, postal_code: str) -> Profile:
        """Copy the address found for ``postal_code`` onto the profile.

        The house number and any complement already typed are kept.

        Raises:
            PostalCodeError: The lookup failed.
        """
        if self._postal_codes is None:
            self._postal_codes = PostalCodeClient()
        address = await self._postal_codes.lookup(postal_code)
        return replace(
            profile,
            postal_code=address.postal_code,
            street=address.street,
            neighborhood=address.neighborhood,
            city=address.city,
            state=address.state,
            complement=profile.complement or address.complement,
        )
