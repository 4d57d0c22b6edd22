"""Tests for domain records and their row mappings."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from conftest import USER_ID, make_account

from gestao_contas.models import (
    Account,
    AccountStatus,
    AccountType,
    BankAccount,
    BankAccountType,
    InstallmentSchedule,
    ManagementContext,
    PaymentDetails,
    PaymentMethod,
    PixKey,
    PixKeyType,
    Profile,
    RecurringSchedule,
)


class TestAccountFromRow:
    """Tests for reading account rows."""

    def test_installment_row(self, account_row):
        """Test that installment columns become an InstallmentSchedule."""
        account = Account.from_row(account_row)

        assert account.id == UUID("44444444-4444-4444-4444-444444444444")
        assert account.account_type is AccountType.INSTALLMENT
        assert account.schedule == InstallmentSchedule(current=2, total=12)
        assert account.schedule.label == "2/12"
        assert account.total_value == Decimal("100.00")
        assert account.due_date == date(2024, 2, 15)
        assert account.status is AccountStatus.PENDING
        assert account.group_id == UUID("55555555-5555-5555-5555-555555555555")
        assert account.attachments.bill_proof_url == "http://files/bill.png"
        assert account.attachments.custom[0].name == "Nota"
        assert account.created_at is not None

    def test_recurring_row(self, account_row):
        account_row.update(
            account_type="recorrente",
            installment_current=None,
            installments_total=None,
            recurrence_end_date="2024-12-15",
        )
        account = Account.from_row(account_row)

        assert account.schedule == RecurringSchedule(end_date=date(2024, 12, 15))

    def test_custom_attachments_without_url_are_dropped(self, account_row):
        account_row["other_attachments"] = [{"name": "vazio"}, {"name": "ok", "url": "http://x"}]
        account = Account.from_row(account_row)

        assert [a.name for a in account.attachments.custom] == ["ok"]


class TestAccountToRow:
    """Tests for writing account rows."""

    def test_unique_row_has_no_schedule_columns(self):
        row = make_account().to_row()

        assert row["account_type"] == "unica"
        assert row["installment_current"] is None
        assert row["installments_total"] is None
        assert row["recurrence_end_date"] is None
        assert row["group_id"] is None
        assert row["total_value"] == "150.00"
        assert row["management_type"] == "pessoal"
        assert "id" not in row

    def test_payment_columns(self):
        bank_id = UUID("66666666-6666-6666-6666-666666666666")
        account = make_account(
            status=AccountStatus.PAID,
            payment=PaymentDetails(
                payment_date=date(2024, 1, 10),
                payment_method=PaymentMethod.PIX,
                payment_bank_id=bank_id,
            ),
        )
        row = account.to_row()

        assert row["status"] == "pago"
        assert row["payment_date"] == "2024-01-10"
        assert row["payment_method"] == "pix"
        assert row["payment_bank_id"] == str(bank_id)

    def test_row_survives_reading_back(self, account_row):
        """Test that reading and writing a row keeps its columns."""
        row = Account.from_row(account_row).to_row()

        for column in ("name", "account_type", "due_date", "installment_current",
                       "installments_total", "group_id", "other_attachments"):
            assert row[column] == account_row[column]


class TestBankAccount:
    """Tests for type-conditional bank account fields."""

    def test_card_drops_branch_fields(self):
        bank = BankAccount(
            user_id=USER_ID,
            management=ManagementContext.HOUSEHOLD,
            account_type=BankAccountType.CREDIT_CARD,
            bank_name="Nubank",
            account_name="Roxinho",
            agency="0001",
            account_number="123",
            card_last_4_digits="4321",
            card_limit=Decimal("5000"),
        )
        row = bank.to_row()

        assert bank.is_card
        assert row["agency"] is None
        assert row["account_number"] is None
        assert row["card_last_4_digits"] == "4321"
        assert row["card_limit"] == "5000"

    def test_checking_drops_card_fields(self):
        bank = BankAccount(
            user_id=USER_ID,
            management=ManagementContext.HOUSEHOLD,
            account_type=BankAccountType.CHECKING,
            bank_name="Itaú",
            account_name="Conta da casa",
            agency="1234",
            card_last_4_digits="9999",
        )
        row = bank.to_row()

        assert row["agency"] == "1234"
        assert row["card_last_4_digits"] is None


class TestOtherRecords:
    def test_pix_key_round_trip(self):
        key = PixKey(
            user_id=USER_ID,
            management=ManagementContext.MOTHER,
            key_type=PixKeyType.EMAIL,
            key_value="mae@example.com",
        )
        restored = PixKey.from_row(key.to_row())

        assert restored.key_type is PixKeyType.EMAIL
        assert restored.management is ManagementContext.MOTHER

    def test_profile_full_name(self):
        profile = Profile(user_id=USER_ID, management=ManagementContext.PERSONAL,
                          first_name="Ana", last_name=None)
        assert profile.full_name == "Ana"
        assert profile.to_row()["id"] == str(USER_ID)
