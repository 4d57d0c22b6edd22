"""Account listing, the save-and-generate flow, deletion and period reports."""

from dataclasses import replace
from datetime import date
from typing import Any
from uuid import UUID

import structlog

from gestao_contas.backend import BackendClient, Filter, eq, gte, lte
from gestao_contas.config import get_settings
from gestao_contas.context import SessionContext
from gestao_contas.dashboard import (
    AccountRow,
    DashboardSummary,
    ReportType,
    filter_for_report,
    group_accounts,
    summarize,
)
from gestao_contas.errors import ValidationError
from gestao_contas.expansion import apply_edit, expand_draft, installment_group_total
from gestao_contas.models import (
    Account,
    AccountDraft,
    AccountFiles,
    AccountStatus,
    AttachmentSlots,
    BankAccount,
    CustomAttachment,
    InstallmentSchedule,
    InstallmentTerms,
    Profile,
    RecurringSchedule,
)
from gestao_contas.pdf import (
    AttachmentEmbedder,
    BillPdfOptions,
    GeneratedFile,
    export_period_txt,
    generate_custom_bill,
    generate_full_report,
    generate_period_report,
)
from gestao_contas.permissions import Capability, Tab
from gestao_contas.services.records import BANK_ACCOUNTS_TABLE, ProfileService
from gestao_contas.services.storage import StorageUploader
from gestao_contas.validation import validate_account_draft

logger = structlog.get_logger(__name__)

ACCOUNTS_TABLE = "accounts"


def _with_attachments(account: Account, slots: AttachmentSlots) -> Account:
    return account.copy(attachments=replace(slots, custom=list(slots.custom)))


def _submitted_record(records: list[Account], draft: AccountDraft) -> Account:
    """The record the submitted due date belongs to."""
    terms = draft.terms
    if isinstance(terms, InstallmentTerms):
        for record in records:
            schedule = record.schedule
            if isinstance(schedule, InstallmentSchedule) and schedule.current == terms.installment_current:
                return record
    return records[0]


class AccountService:
    """Accounts of the session's management context.

    Every public method checks the session's permissions on the accounts
    tab before touching the backend.
    """

    def __init__(
        self,
        client: BackendClient,
        context: SessionContext,
        embedder: AttachmentEmbedder | None = None,
        uploader: StorageUploader | None = None,
    ):
        self._client = client
        self.context = context
        self._embedder = embedder or AttachmentEmbedder()
        self._owns_embedder = embedder is None
        self._uploader = uploader or StorageUploader(client, context)
        self._settings = get_settings()

    async def close(self) -> None:
        """Close the attachment embedder if this service created it."""
        if self._owns_embedder:
            await self._embedder.close()

    async def __aenter__(self) -> "AccountService":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # === Reads ===

    async def _fetch(
        self,
        start: date | None = None,
        end: date | None = None,
        status: AccountStatus | None = None,
    ) -> list[Account]:
        filters: list[Filter] = [eq("management_type", self.context.management)]
        if start is not None:
            filters.append(gte("due_date", start))
        if end is not None:
            filters.append(lte("due_date", end))
        if status is not None:
            filters.append(eq("status", status))
        rows = await self._client.select(ACCOUNTS_TABLE, filters, order="due_date")
        return [Account.from_row(row) for row in rows]

    async def list_accounts(
        self,
        start: date | None = None,
        end: date | None = None,
        status: AccountStatus | None = None,
    ) -> list[Account]:
        """Accounts due inside the optional date range, ordered by due date."""
        self.context.require(Tab.ACCOUNTS, Capability.READ)
        return await self._fetch(start, end, status)

    async def list_paid_accounts(self) -> list[Account]:
        self.context.require(Tab.PAID, Capability.READ)
        return await self._fetch(status=AccountStatus.PAID)

    async def list_group(self, group_id: UUID) -> list[Account]:
        """Every installment or occurrence sharing ``group_id``."""
        self.context.require(Tab.ACCOUNTS, Capability.READ)
        rows = await self._client.select(
            ACCOUNTS_TABLE, [eq("group_id", group_id)], order="due_date"
        )
        return [Account.from_row(row) for row in rows]

    async def dashboard(
        self, start: date | None = None, end: date | None = None
    ) -> tuple[list[AccountRow], DashboardSummary]:
        """Grouped table rows and status totals for the accounts tab."""
        accounts = await self.list_accounts(start, end)
        return group_accounts(accounts), summarize(accounts)

    async def _payment_bank(self, bank_account_id: UUID | None) -> BankAccount | None:
        if bank_account_id is None:
            return None
        row = await self._client.select_one(BANK_ACCOUNTS_TABLE, [eq("id", bank_account_id)])
        return BankAccount.from_row(row) if row else None

    # === Save ===

    async def _upload_attachments(
        self, files: AccountFiles, existing: Account | None
    ) -> AttachmentSlots:
        """Upload submitted files, keeping the existing URLs they don't replace."""
        bucket = self._settings.attachments_bucket
        previous = existing.attachments if existing else AttachmentSlots()

        bill_proof_url = previous.bill_proof_url
        if files.bill_proof is not None:
            bill_proof_url = await self._uploader.upload(bucket, files.bill_proof)

        payment_proof_url = previous.payment_proof_url
        if files.payment_proof is not None:
            payment_proof_url = await self._uploader.upload(bucket, files.payment_proof)

        custom = list(previous.custom)
        for named in files.custom:
            url = await self._uploader.upload(bucket, named.file)
            custom.append(CustomAttachment(name=named.name.strip(), url=url))

        return AttachmentSlots(
            bill_proof_url=bill_proof_url,
            payment_proof_url=payment_proof_url,
            system_generated_bill_url=previous.system_generated_bill_url,
            full_report_url=previous.full_report_url,
            custom=custom,
        )

    async def _upload_generated(self, bucket: str, generated: GeneratedFile) -> str:
        return await self._uploader.upload(bucket, generated.as_upload())

    async def save_account(
        self,
        draft: AccountDraft,
        files: AccountFiles | None = None,
        existing: Account | None = None,
        generate_system_bill: bool = False,
        pdf_options: BillPdfOptions | None = None,
        profile: Profile | None = None,
    ) -> list[Account]:
        """Validate, upload, expand, generate documents and persist.

        Creating inserts every expanded record; editing updates only
        ``existing``. Steps run in order and earlier writes are kept when a
        later one fails.

        Args:
            draft: Submitted account.
            files: Uploaded proofs and custom attachments.
            existing: Account being edited, if any.
            generate_system_bill: Build and store a custom bill PDF.
            pdf_options: What goes into the custom bill.
            profile: Submitter profile for the bill; loaded when omitted.

        Returns:
            The persisted records.

        Raises:
            PermissionDeniedError: Missing write (create) or edit permission.
            ValidationError: The draft was rejected; nothing was written.
            UploadError: A file could not be stored.
            BackendError: The backend rejected a write.
        """
        self.context.require(Tab.ACCOUNTS, Capability.EDIT if existing else Capability.WRITE)
        files = files or AccountFiles()
        validate_account_draft(draft, files)
        if existing is not None and existing.id is None:
            raise ValueError("Cannot edit an account without an id")

        if existing is not None:
            records = [apply_edit(existing, draft)]
        else:
            records = expand_draft(
                draft, user_id=self.context.user_id, management=self.context.management
            )
            if not records:
                raise ValidationError(
                    {"recurrence_end_date": "A data final deve ser igual ou posterior ao vencimento."}
                )

        slots = await self._upload_attachments(files, existing)
        payment_bank = await self._payment_bank(draft.payment.payment_bank_id)

        if generate_system_bill:
            if profile is None:
                profile = await ProfileService(self._client, self.context).get_profile()
            bill = await generate_custom_bill(
                _with_attachments(_submitted_record(records, draft), slots),
                options=pdf_options or BillPdfOptions.everything(),
                embedder=self._embedder,
                payment_bank=payment_bank,
                profile=profile,
                logo_path=self._settings.pdf_logo_path,
            )
            slots.system_generated_bill_url = await self._upload_generated(
                self._settings.generated_bills_bucket, bill
            )
        else:
            slots.system_generated_bill_url = None

        records = [_with_attachments(record, slots) for record in records]

        # Recurring series and edited installments keep their report
        needs_report = not isinstance(records[0].schedule, RecurringSchedule) and not (
            existing is not None and existing.is_installment
        )
        if needs_report:
            total_value = None
            if isinstance(draft.terms, InstallmentTerms) and existing is None:
                total_value = installment_group_total(draft.total_value, draft.terms)
            report = await generate_full_report(
                _submitted_record(records, draft),
                records if existing is None else [],
                embedder=self._embedder,
                payment_bank=payment_bank,
                total_value=total_value,
                logo_path=self._settings.pdf_logo_path,
            )
            report_url = await self._upload_generated(
                self._settings.generated_reports_bucket, report
            )
            for record in records:
                record.attachments.full_report_url = report_url

        if existing is not None:
            row = records[0].to_row()
            row.pop("id", None)
            rows = await self._client.update(ACCOUNTS_TABLE, row, [eq("id", existing.id)])
        else:
            rows = await self._client.insert(ACCOUNTS_TABLE, [r.to_row() for r in records])

        logger.info(
            "account_saved",
            name=draft.name,
            account_type=draft.account_type.value,
            records=len(records),
            edited=existing is not None,
        )
        return [Account.from_row(row) for row in rows] if rows else records

    # === Delete ===

    async def delete_account(self, account: Account, delete_all_installments: bool = False) -> int:
        """Delete one row, or every row of its group when asked to.

        Returns:
            Number of rows deleted.
        """
        self.context.require(Tab.ACCOUNTS, Capability.DELETE)
        if delete_all_installments and account.group_id is not None:
            filters = [eq("group_id", account.group_id)]
        elif account.id is not None:
            filters = [eq("id", account.id)]
        else:
            raise ValueError("Cannot delete an account without an id")

        rows = await self._client.delete(ACCOUNTS_TABLE, filters)
        logger.info(
            "account_deleted",
            name=account.name,
            group=delete_all_installments and account.group_id is not None,
            rows=len(rows),
        )
        return len(rows)

    # === Reports ===

    async def export_period_report(
        self,
        start: date,
        end: date,
        report_type: ReportType = ReportType.FULL,
        as_text: bool = False,
        today: date | None = None,
    ) -> GeneratedFile:
        """Listing of the accounts due in ``[start, end]`` as PDF or TXT."""
        self.context.require(Tab.REPORTS, Capability.READ)
        if end < start:
            raise ValidationError({"end": "A data final deve ser posterior à inicial."})

        accounts = filter_for_report(await self._fetch(start, end), report_type, today or date.today())
        if as_text:
            return export_period_txt(accounts, report_type=report_type, start=start, end=end)
        return await generate_period_report(
            accounts, report_type=report_type, start=start, end=end, embedder=self._embedder
        )
