"""Tests for the account service save, delete, list and report flows."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest

from conftest import USER_ID, make_account

from gestao_contas.backend import BackendClient, BackendError, eq, gte, lte
from gestao_contas.context import SessionContext
from gestao_contas.dashboard import ReportType
from gestao_contas.errors import PermissionDeniedError, UploadError, ValidationError
from gestao_contas.models import (
    AccountDraft,
    AccountFiles,
    AccountStatus,
    AttachmentSlots,
    InstallmentSchedule,
    InstallmentTerms,
    ManagementContext,
    NamedUpload,
    Profile,
    RecurringTerms,
    UploadFile,
)
from gestao_contas.pdf import AttachmentEmbedder, BillPdfOptions
from gestao_contas.permissions import Capability, PermissionSet, Tab
from gestao_contas.services.accounts import ACCOUNTS_TABLE, AccountService

GROUP = UUID("55555555-5555-5555-5555-555555555555")


@pytest.fixture
def backend():
    """Backend client double: uploads echo the path, writes return no rows."""
    client = MagicMock(spec=BackendClient)
    client.upload = AsyncMock(side_effect=lambda bucket, path, content, content_type: path)
    client.public_url = MagicMock(side_effect=lambda bucket, path: f"http://files/{bucket}/{path}")
    client.insert = AsyncMock(return_value=[])
    client.update = AsyncMock(return_value=[])
    client.delete = AsyncMock(return_value=[{"id": "1"}])
    client.select = AsyncMock(return_value=[])
    client.select_one = AsyncMock(return_value=None)
    return client


@pytest.fixture
def embedder():
    mock = MagicMock()
    mock.embed = AsyncMock(side_effect=lambda doc, attachments, y: y)
    return mock


@pytest.fixture
def service(backend, session, embedder):
    return AccountService(backend, session, embedder=embedder)


def uploaded_buckets(backend) -> list[str]:
    return [call.args[0] for call in backend.upload.call_args_list]


def inserted_rows(backend) -> list[dict]:
    assert backend.insert.await_count == 1
    table, rows = backend.insert.call_args.args
    assert table == ACCOUNTS_TABLE
    return rows


class TestSaveNewAccount:
    """Tests for creating accounts."""

    @pytest.mark.asyncio
    async def test_unique_account(self, service, backend):
        draft = AccountDraft("Luz", Decimal("150.00"), date(2024, 1, 15))
        files = AccountFiles(bill_proof=UploadFile("conta.png", b"png", "image/png"))

        records = await service.save_account(draft, files)

        assert uploaded_buckets(backend) == ["attachments", "generated-reports"]
        rows = inserted_rows(backend)
        assert len(rows) == 1
        assert rows[0]["account_type"] == "unica"
        assert rows[0]["bill_proof_url"].startswith(
            f"http://files/attachments/{USER_ID}/pessoal/"
        )
        assert rows[0]["bill_proof_url"].endswith("-conta.png")
        assert rows[0]["full_report_url"].endswith("-relatorio_completo_Luz.pdf")
        assert rows[0]["system_generated_bill_url"] is None
        assert records[0].attachments.full_report_url == rows[0]["full_report_url"]

    @pytest.mark.asyncio
    async def test_installments_share_documents(self, service, backend):
        """Test 1200.00 in 12 installments: one report, one bill, 12 rows."""
        draft = AccountDraft(
            "Geladeira",
            Decimal("1200.00"),
            date(2024, 1, 15),
            terms=InstallmentTerms(installments_total=12),
        )
        profile = Profile(user_id=USER_ID, management=ManagementContext.PERSONAL, first_name="Ana")

        records = await service.save_account(
            draft, generate_system_bill=True, pdf_options=BillPdfOptions(), profile=profile
        )

        assert uploaded_buckets(backend) == ["generated-bills", "generated-reports"]
        rows = inserted_rows(backend)
        assert len(rows) == 12
        assert {row["total_value"] for row in rows} == {"100.00"}
        assert len({row["group_id"] for row in rows}) == 1
        assert len({row["full_report_url"] for row in rows}) == 1
        assert len({row["system_generated_bill_url"] for row in rows}) == 1
        assert rows[0]["system_generated_bill_url"].startswith("http://files/generated-bills/")
        assert len(records) == 12

    @pytest.mark.asyncio
    async def test_recurring_has_no_report(self, service, backend):
        draft = AccountDraft(
            "Internet",
            Decimal("99.90"),
            date(2024, 1, 15),
            terms=RecurringTerms(end_date=date(2024, 3, 15)),
        )

        await service.save_account(draft)

        backend.upload.assert_not_called()
        assert [row["due_date"] for row in inserted_rows(backend)] == [
            "2024-01-15",
            "2024-02-15",
            "2024-03-15",
        ]

    @pytest.mark.asyncio
    async def test_custom_attachments_uploaded_in_order(self, service, backend):
        draft = AccountDraft("Luz", Decimal("150.00"), date(2024, 1, 15))
        files = AccountFiles(
            custom=[
                NamedUpload(" Nota ", UploadFile("nota.png", b"1")),
                NamedUpload("Recibo", UploadFile("recibo.png", b"2")),
            ]
        )

        await service.save_account(draft, files)

        attachments = inserted_rows(backend)[0]["other_attachments"]
        assert [a["name"] for a in attachments] == ["Nota", "Recibo"]
        assert attachments[0]["url"].endswith("-nota.png")

    @pytest.mark.asyncio
    async def test_bill_loads_profile_when_missing(self, service, backend):
        draft = AccountDraft("Luz", Decimal("150.00"), date(2024, 1, 15))

        await service.save_account(draft, generate_system_bill=True)

        table, filters = backend.select_one.call_args.args
        assert table == "profiles"
        assert eq("id", USER_ID) in filters

    @pytest.mark.asyncio
    async def test_returns_stored_rows(self, service, backend, account_row):
        backend.insert = AsyncMock(return_value=[account_row])
        draft = AccountDraft("Geladeira", Decimal("100.00"), date(2024, 2, 15))

        records = await service.save_account(draft)

        assert records[0].id == UUID(account_row["id"])


class TestSaveRejections:
    """Tests for saves that stop before writing."""

    @pytest.mark.asyncio
    async def test_validation_error_before_any_io(self, service, backend):
        draft = AccountDraft("", Decimal("0.00"), date(2024, 1, 15))
        files = AccountFiles(bill_proof=UploadFile("conta.png", b"png"))

        with pytest.raises(ValidationError):
            await service.save_account(draft, files)

        backend.upload.assert_not_called()
        backend.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_recurrence_is_rejected(self, service, backend):
        """Test that an end date before the first due date writes nothing."""
        draft = AccountDraft(
            "Internet",
            Decimal("99.90"),
            date(2024, 3, 15),
            terms=RecurringTerms(end_date=date(2024, 1, 15)),
        )

        with pytest.raises(ValidationError) as exc_info:
            await service.save_account(draft)

        assert "recurrence_end_date" in exc_info.value.errors
        backend.upload.assert_not_called()
        backend.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_requires_write_permission(self, backend, embedder):
        read_only = PermissionSet().set_capability(
            ManagementContext.PERSONAL, Tab.ACCOUNTS, Capability.READ, True
        )
        session = SessionContext(USER_ID, ManagementContext.PERSONAL, read_only)
        service = AccountService(backend, session, embedder=embedder)

        with pytest.raises(PermissionDeniedError):
            await service.save_account(AccountDraft("Luz", Decimal("1.00"), date(2024, 1, 1)))

        backend.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_upload_failure_aborts(self, service, backend):
        backend.upload = AsyncMock(side_effect=BackendError("Bucket not found", status_code=404))
        draft = AccountDraft("Luz", Decimal("150.00"), date(2024, 1, 15))
        files = AccountFiles(bill_proof=UploadFile("conta.png", b"png"))

        with pytest.raises(UploadError) as exc_info:
            await service.save_account(draft, files)

        assert exc_info.value.filename == "conta.png"
        assert "Bucket not found" in str(exc_info.value)
        backend.insert.assert_not_called()


class TestEditAccount:
    """Tests for editing a single record."""

    @pytest.mark.asyncio
    async def test_updates_only_that_row(self, service, backend):
        existing = make_account(
            id=UUID(int=7),
            name="Geladeira",
            schedule=InstallmentSchedule(current=2, total=12),
            group_id=GROUP,
            attachments=AttachmentSlots(full_report_url="http://files/old-report.pdf"),
        )
        draft = AccountDraft(
            "Geladeira",
            Decimal("110.00"),
            date(2024, 2, 20),
            terms=InstallmentTerms(installments_total=12),
            status=AccountStatus.PAID,
        )

        records = await service.save_account(draft, existing=existing)

        backend.insert.assert_not_called()
        backend.upload.assert_not_called()
        table, row, filters = backend.update.call_args.args
        assert table == ACCOUNTS_TABLE
        assert filters == [eq("id", UUID(int=7))]
        assert "id" not in row
        assert row["total_value"] == "110.00"
        assert row["installment_current"] == 2
        assert row["group_id"] == str(GROUP)
        assert row["full_report_url"] == "http://files/old-report.pdf"
        assert records[0].status is AccountStatus.PAID

    @pytest.mark.asyncio
    async def test_edit_unique_regenerates_report(self, service, backend):
        existing = make_account(id=UUID(int=8))
        draft = AccountDraft("Luz", Decimal("160.00"), date(2024, 1, 15))

        await service.save_account(draft, existing=existing)

        assert uploaded_buckets(backend) == ["generated-reports"]

    @pytest.mark.asyncio
    async def test_requires_edit_permission(self, backend, embedder):
        write_only = PermissionSet().set_capability(
            ManagementContext.PERSONAL, Tab.ACCOUNTS, Capability.WRITE, True
        )
        service = AccountService(
            backend, SessionContext(USER_ID, ManagementContext.PERSONAL, write_only), embedder=embedder
        )

        with pytest.raises(PermissionDeniedError):
            await service.save_account(
                AccountDraft("Luz", Decimal("1.00"), date(2024, 1, 1)),
                existing=make_account(id=UUID(int=8)),
            )

    @pytest.mark.asyncio
    async def test_edit_without_id_uploads_nothing(self, service, backend):
        """Test that an unsaved account is refused before any file is stored."""
        draft = AccountDraft("Luz", Decimal("160.00"), date(2024, 1, 15))
        files = AccountFiles(bill_proof=UploadFile("conta.png", b"png", "image/png"))

        with pytest.raises(ValueError):
            await service.save_account(
                draft, files, existing=make_account(), generate_system_bill=True
            )

        backend.upload.assert_not_called()
        backend.update.assert_not_called()


class TestServiceLifecycle:
    """Tests for closing the attachment embedder."""

    @pytest.mark.asyncio
    async def test_closes_embedder_it_created(self, backend, session):
        with patch.object(AttachmentEmbedder, "close", new=AsyncMock()) as close:
            async with AccountService(backend, session):
                pass

        close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_leaves_injected_embedder_open(self, backend, session, embedder):
        embedder.close = AsyncMock()

        async with AccountService(backend, session, embedder=embedder):
            pass

        embedder.close.assert_not_awaited()


class TestDeleteAccount:
    """Tests for per-row and group deletion."""

    @pytest.mark.asyncio
    async def test_delete_single_row(self, service, backend):
        account = make_account(id=UUID(int=7), group_id=GROUP)

        assert await service.delete_account(account) == 1
        assert backend.delete.call_args.args == (ACCOUNTS_TABLE, [eq("id", UUID(int=7))])

    @pytest.mark.asyncio
    async def test_delete_all_installments(self, service, backend):
        account = make_account(id=UUID(int=7), group_id=GROUP)

        await service.delete_account(account, delete_all_installments=True)

        assert backend.delete.call_args.args == (ACCOUNTS_TABLE, [eq("group_id", GROUP)])

    @pytest.mark.asyncio
    async def test_delete_without_id(self, service):
        with pytest.raises(ValueError):
            await service.delete_account(make_account())


class TestListAndReports:
    """Tests for listing, dashboard and period reports."""

    @pytest.mark.asyncio
    async def test_list_accounts_filters(self, service, backend, account_row):
        backend.select = AsyncMock(return_value=[account_row])

        accounts = await service.list_accounts(date(2024, 1, 1), date(2024, 12, 31))

        table, filters = backend.select.call_args.args
        assert table == ACCOUNTS_TABLE
        assert filters == [
            eq("management_type", ManagementContext.PERSONAL),
            gte("due_date", date(2024, 1, 1)),
            lte("due_date", date(2024, 12, 31)),
        ]
        assert backend.select.call_args.kwargs == {"order": "due_date"}
        assert accounts[0].name == "Geladeira"

    @pytest.mark.asyncio
    async def test_dashboard(self, service, backend, account_row):
        backend.select = AsyncMock(return_value=[account_row])

        rows, summary = await service.dashboard()

        assert rows[0].is_group
        assert summary.open == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_export_text_report(self, service, backend, account_row):
        backend.select = AsyncMock(return_value=[account_row])

        report = await service.export_period_report(
            date(2024, 2, 1), date(2024, 2, 29), ReportType.FULL, as_text=True
        )

        assert report.filename == "relatorio.txt"
        assert "Nome: Geladeira" in report.content.decode("utf-8")

    @pytest.mark.asyncio
    async def test_export_pdf_report(self, service, backend):
        report = await service.export_period_report(date(2024, 2, 1), date(2024, 2, 29))

        assert report.content.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_export_rejects_inverted_range(self, service):
        with pytest.raises(ValidationError):
            await service.export_period_report(date(2024, 2, 1), date(2024, 1, 1))

    @pytest.mark.asyncio
    async def test_reports_need_reports_permission(self, backend, embedder):
        permissions = PermissionSet().set_tab(ManagementContext.PERSONAL, Tab.ACCOUNTS, True)
        service = AccountService(
            backend, SessionContext(USER_ID, ManagementContext.PERSONAL, permissions), embedder=embedder
        )

        with pytest.raises(PermissionDeniedError):
            await service.export_period_report(date(2024, 2, 1), date(2024, 2, 29))
