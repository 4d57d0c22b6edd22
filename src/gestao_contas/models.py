"""Domain records and their backend row mappings.

Enum values are the strings stored in the backend tables; member names are
English. Account-type specific fields are modelled as tagged unions
(``Schedule`` on persisted accounts, ``AccountTerms`` on drafts) instead of
a row full of nullable columns.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Union
from uuid import UUID

from gestao_contas.formatting import parse_date, to_decimal


class ManagementContext(str, Enum):
    """Isolated financial scopes that data and permissions belong to."""

    PERSONAL = "pessoal"
    HOUSEHOLD = "casa"
    FATHER = "pai"
    MOTHER = "mae"


class AccountType(str, Enum):
    UNIQUE = "unica"
    INSTALLMENT = "parcelada"
    RECURRING = "recorrente"


class AccountStatus(str, Enum):
    PENDING = "pendente"
    PAID = "pago"
    OVERDUE = "vencido"


class PaymentMethod(str, Enum):
    CASH = "dinheiro"
    PIX = "pix"
    BOLETO = "boleto"
    TRANSFER = "transferencia"
    CARD = "cartao"


class InstallmentValueType(str, Enum):
    """Whether a submitted installment value is the purchase total or one share."""

    TOTAL = "total"
    INSTALLMENT = "installment"


class BankAccountType(str, Enum):
    CHECKING = "conta_corrente"
    SAVINGS = "poupanca"
    CREDIT_CARD = "cartao_credito"


class PixKeyType(str, Enum):
    CPF_CNPJ = "cpf_cnpj"
    PHONE = "celular"
    EMAIL = "email"
    RANDOM = "aleatoria"
    BR_CODE = "br_code"


# Display labels used in generated documents
ACCOUNT_TYPE_LABELS: dict[AccountType, str] = {
    AccountType.UNIQUE: "Única",
    AccountType.INSTALLMENT: "Parcelada",
    AccountType.RECURRING: "Recorrente",
}

STATUS_LABELS: dict[AccountStatus, str] = {
    AccountStatus.PENDING: "Pendente",
    AccountStatus.PAID: "Pago",
    AccountStatus.OVERDUE: "Vencido",
}

PAYMENT_METHOD_LABELS: dict[PaymentMethod, str] = {
    PaymentMethod.CASH: "Dinheiro",
    PaymentMethod.PIX: "PIX",
    PaymentMethod.BOLETO: "Boleto",
    PaymentMethod.TRANSFER: "Transferência",
    PaymentMethod.CARD: "Cartão",
}

BANK_ACCOUNT_TYPE_LABELS: dict[BankAccountType, str] = {
    BankAccountType.CHECKING: "Conta Corrente",
    BankAccountType.SAVINGS: "Poupança",
    BankAccountType.CREDIT_CARD: "Cartão de Crédito",
}


def _uuid(value: Any) -> UUID | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


def _timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _money(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _iso(value: date | None) -> str | None:
    return None if value is None else value.isoformat()


# === Account schedules (persisted) ===


@dataclass(frozen=True)
class UniqueSchedule:
    account_type: ClassVar[AccountType] = AccountType.UNIQUE


@dataclass(frozen=True)
class InstallmentSchedule:
    """Position of one installment inside its purchase (1-indexed)."""

    current: int
    total: int
    account_type: ClassVar[AccountType] = AccountType.INSTALLMENT

    @property
    def label(self) -> str:
        return f"{self.current}/{self.total}"


@dataclass(frozen=True)
class RecurringSchedule:
    end_date: date
    account_type: ClassVar[AccountType] = AccountType.RECURRING


Schedule = Union[UniqueSchedule, InstallmentSchedule, RecurringSchedule]


# === Draft terms (submitted) ===


@dataclass(frozen=True)
class UniqueTerms:
    account_type: ClassVar[AccountType] = AccountType.UNIQUE


@dataclass(frozen=True)
class InstallmentTerms:
    """How to split a purchase into monthly installments.

    ``installment_current`` is the installment the submitted due date belongs
    to; earlier ones are only created when ``create_previous_installments``
    is set, and then carry ``previous_installments_status``.
    """

    installments_total: int
    installment_current: int = 1
    value_type: InstallmentValueType = InstallmentValueType.TOTAL
    create_previous_installments: bool = False
    previous_installments_status: AccountStatus = AccountStatus.PAID
    account_type: ClassVar[AccountType] = AccountType.INSTALLMENT


@dataclass(frozen=True)
class RecurringTerms:
    end_date: date
    account_type: ClassVar[AccountType] = AccountType.RECURRING


AccountTerms = Union[UniqueTerms, InstallmentTerms, RecurringTerms]


# === Account ===


@dataclass(frozen=True)
class CustomAttachment:
    """A user-named attachment stored in the open-ended attachment list."""

    name: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "url": self.url}


@dataclass
class AttachmentSlots:
    """The four fixed document slots plus the ordered custom attachments."""

    bill_proof_url: str | None = None
    payment_proof_url: str | None = None
    system_generated_bill_url: str | None = None
    full_report_url: str | None = None
    custom: list[CustomAttachment] = field(default_factory=list)


@dataclass(frozen=True)
class PaymentDetails:
    """Payment fields; only kept on accounts whose status is paid."""

    payment_date: date | None = None
    payment_method: PaymentMethod | None = None
    payment_bank_id: UUID | None = None
    pix_br_code: str | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.payment_date is None
            and self.payment_method is None
            and self.payment_bank_id is None
            and not self.pix_br_code
        )


@dataclass
class Account:
    """A billable obligation, one row of the ``accounts`` table."""

    name: str
    total_value: Decimal
    due_date: date
    user_id: UUID
    management: ManagementContext
    schedule: Schedule = field(default_factory=UniqueSchedule)
    status: AccountStatus = AccountStatus.PENDING
    payment: PaymentDetails = field(default_factory=PaymentDetails)
    fees_and_fines: Decimal | None = None
    notes: str | None = None
    attachments: AttachmentSlots = field(default_factory=AttachmentSlots)
    id: UUID | None = None
    group_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def account_type(self) -> AccountType:
        return self.schedule.account_type

    @property
    def is_installment(self) -> bool:
        return isinstance(self.schedule, InstallmentSchedule)

    def copy(self, **changes: Any) -> "Account":
        """Return a shallow copy with the given fields replaced."""
        return replace(self, **changes)

    def to_row(self) -> dict[str, Any]:
        """Serialize to an ``accounts`` table row."""
        schedule = self.schedule
        installment = schedule if isinstance(schedule, InstallmentSchedule) else None
        recurring = schedule if isinstance(schedule, RecurringSchedule) else None

        row: dict[str, Any] = {
            "user_id": str(self.user_id),
            "management_type": self.management.value,
            "name": self.name,
            "account_type": self.account_type.value,
            "total_value": _money(self.total_value),
            "due_date": self.due_date.isoformat(),
            "status": self.status.value,
            "installment_current": installment.current if installment else None,
            "installments_total": installment.total if installment else None,
            "installment_value": _money(self.total_value) if installment else None,
            "recurrence_end_date": _iso(recurring.end_date) if recurring else None,
            "payment_date": _iso(self.payment.payment_date),
            "payment_method": (
                self.payment.payment_method.value if self.payment.payment_method else None
            ),
            "payment_bank_id": (
                str(self.payment.payment_bank_id) if self.payment.payment_bank_id else None
            ),
            "pix_br_code": self.payment.pix_br_code,
            "fees_and_fines": _money(self.fees_and_fines),
            "notes": self.notes,
            "bill_proof_url": self.attachments.bill_proof_url,
            "payment_proof_url": self.attachments.payment_proof_url,
            "system_generated_bill_url": self.attachments.system_generated_bill_url,
            "full_report_url": self.attachments.full_report_url,
            "other_attachments": [a.to_dict() for a in self.attachments.custom],
            "group_id": str(self.group_id) if self.group_id else None,
        }
        if self.id is not None:
            row["id"] = str(self.id)
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Account":
        """Build an account from an ``accounts`` table row."""
        account_type = AccountType(row.get("account_type") or AccountType.UNIQUE.value)
        schedule: Schedule
        if account_type is AccountType.INSTALLMENT:
            schedule = InstallmentSchedule(
                current=int(row.get("installment_current") or 1),
                total=int(row.get("installments_total") or 1),
            )
        elif account_type is AccountType.RECURRING and row.get("recurrence_end_date"):
            schedule = RecurringSchedule(end_date=parse_date(row["recurrence_end_date"]))
        elif account_type is AccountType.RECURRING:
            # Occurrence rows written without an end date still belong to a series
            schedule = RecurringSchedule(end_date=parse_date(row["due_date"]))
        else:
            schedule = UniqueSchedule()

        method = row.get("payment_method")
        payment = PaymentDetails(
            payment_date=parse_date(row.get("payment_date")),
            payment_method=PaymentMethod(method) if method else None,
            payment_bank_id=_uuid(row.get("payment_bank_id")),
            pix_br_code=row.get("pix_br_code"),
        )

        custom = [
            CustomAttachment(name=str(item.get("name", "")), url=str(item["url"]))
            for item in row.get("other_attachments") or []
            if isinstance(item, dict) and item.get("url")
        ]

        return cls(
            id=_uuid(row.get("id")),
            user_id=_uuid(row["user_id"]),
            management=ManagementContext(row["management_type"]),
            name=row["name"],
            total_value=to_decimal(row.get("total_value")) or Decimal("0.00"),
            due_date=parse_date(row["due_date"]),
            schedule=schedule,
            status=AccountStatus(row.get("status") or AccountStatus.PENDING.value),
            payment=payment,
            fees_and_fines=to_decimal(row.get("fees_and_fines")),
            notes=row.get("notes"),
            attachments=AttachmentSlots(
                bill_proof_url=row.get("bill_proof_url"),
                payment_proof_url=row.get("payment_proof_url"),
                system_generated_bill_url=row.get("system_generated_bill_url"),
                full_report_url=row.get("full_report_url"),
                custom=custom,
            ),
            group_id=_uuid(row.get("group_id")),
            created_at=_timestamp(row.get("created_at")),
        )


@dataclass
class AccountDraft:
    """An account as submitted by the user, before expansion."""

    name: str
    total_value: Decimal
    due_date: date
    terms: AccountTerms = field(default_factory=UniqueTerms)
    status: AccountStatus = AccountStatus.PENDING
    payment: PaymentDetails = field(default_factory=PaymentDetails)
    fees_and_fines: Decimal | None = None
    notes: str | None = None

    @property
    def account_type(self) -> AccountType:
        return self.terms.account_type


# === Other records ===


@dataclass
class BankAccount:
    """A bank account or credit card used as a payment reference."""

    user_id: UUID
    management: ManagementContext
    account_type: BankAccountType
    bank_name: str
    account_name: str
    agency: str | None = None
    account_number: str | None = None
    owner_name: str | None = None
    owner_cpf: str | None = None
    card_last_4_digits: str | None = None
    card_limit: Decimal | None = None
    card_closing_day: int | None = None
    card_due_day: int | None = None
    id: UUID | None = None
    created_at: datetime | None = None

    @property
    def is_card(self) -> bool:
        return self.account_type is BankAccountType.CREDIT_CARD

    def to_row(self) -> dict[str, Any]:
        card = self.is_card
        row: dict[str, Any] = {
            "user_id": str(self.user_id),
            "management_type": self.management.value,
            "account_type": self.account_type.value,
            "bank_name": self.bank_name,
            "account_name": self.account_name,
            "owner_name": self.owner_name,
            "owner_cpf": self.owner_cpf,
            "agency": None if card else self.agency,
            "account_number": None if card else self.account_number,
            "card_last_4_digits": self.card_last_4_digits if card else None,
            "card_limit": _money(self.card_limit) if card else None,
            "card_closing_day": self.card_closing_day if card else None,
            "card_due_day": self.card_due_day if card else None,
        }
        if self.id is not None:
            row["id"] = str(self.id)
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "BankAccount":
        return cls(
            id=_uuid(row.get("id")),
            user_id=_uuid(row["user_id"]),
            management=ManagementContext(row["management_type"]),
            account_type=BankAccountType(row["account_type"]),
            bank_name=row["bank_name"],
            account_name=row.get("account_name") or "",
            agency=row.get("agency"),
            account_number=row.get("account_number"),
            owner_name=row.get("owner_name"),
            owner_cpf=row.get("owner_cpf"),
            card_last_4_digits=row.get("card_last_4_digits"),
            card_limit=to_decimal(row.get("card_limit")),
            card_closing_day=row.get("card_closing_day"),
            card_due_day=row.get("card_due_day"),
            created_at=_timestamp(row.get("created_at")),
        )


@dataclass
class PixKey:
    """A PIX payment key."""

    user_id: UUID
    management: ManagementContext
    key_type: PixKeyType
    key_value: str
    bank_name: str | None = None
    owner_name: str | None = None
    id: UUID | None = None
    created_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "user_id": str(self.user_id),
            "management_type": self.management.value,
            "key_type": self.key_type.value,
            "key_value": self.key_value,
            "bank_name": self.bank_name,
            "owner_name": self.owner_name,
        }
        if self.id is not None:
            row["id"] = str(self.id)
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PixKey":
        return cls(
            id=_uuid(row.get("id")),
            user_id=_uuid(row["user_id"]),
            management=ManagementContext(row["management_type"]),
            key_type=PixKeyType(row["key_type"]),
            key_value=row["key_value"],
            bank_name=row.get("bank_name"),
            owner_name=row.get("owner_name"),
            created_at=_timestamp(row.get("created_at")),
        )


@dataclass
class Profile:
    """Identity and document data of a user inside one management context."""

    user_id: UUID
    management: ManagementContext
    first_name: str | None = None
    last_name: str | None = None
    cpf: str | None = None
    rg: str | None = None
    postal_code: str | None = None
    street: str | None = None
    number: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    city: str | None = None
    state: str | None = None
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_row(self) -> dict[str, Any]:
        return {
            "id": str(self.user_id),
            "management_type": self.management.value,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "cpf": self.cpf,
            "rg": self.rg,
            "postal_code": self.postal_code,
            "street": self.street,
            "number": self.number,
            "complement": self.complement,
            "neighborhood": self.neighborhood,
            "city": self.city,
            "state": self.state,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Profile":
        return cls(
            user_id=_uuid(row["id"]),
            management=ManagementContext(row.get("management_type") or "pessoal"),
            first_name=row.get("first_name"),
            last_name=row.get("last_name"),
            cpf=row.get("cpf"),
            rg=row.get("rg"),
            postal_code=row.get("postal_code"),
            street=row.get("street"),
            number=row.get("number"),
            complement=row.get("complement"),
            neighborhood=row.get("neighborhood"),
            city=row.get("city"),
            state=row.get("state"),
            updated_at=_timestamp(row.get("updated_at")),
        )


@dataclass(frozen=True)
class UploadFile:
    """An in-memory file headed for object storage."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class NamedUpload:
    """A custom attachment submitted with the account form."""

    name: str
    file: UploadFile


@dataclass
class AccountFiles:
    """Files submitted alongside an account draft."""

    bill_proof: UploadFile | None = None
    payment_proof: UploadFile | None = None
    custom: list[NamedUpload] = field(default_factory=list)
