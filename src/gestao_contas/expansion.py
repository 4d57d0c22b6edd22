"""Expansion of a submitted account draft into concrete account records.

Creation is batch: one draft becomes one record (unique), N records
(installments) or one record per month (recurring). Editing is per-row:
``apply_edit`` rewrites a single existing record and never re-expands.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import structlog

from gestao_contas.formatting import add_months, cents_to_decimal, decimal_to_cents
from gestao_contas.models import (
    Account,
    AccountDraft,
    AccountStatus,
    AttachmentSlots,
    InstallmentSchedule,
    InstallmentTerms,
    InstallmentValueType,
    ManagementContext,
    PaymentDetails,
    RecurringSchedule,
    RecurringTerms,
    Schedule,
    UniqueSchedule,
    UniqueTerms,
)

logger = structlog.get_logger(__name__)


def split_evenly(total: Decimal, parts: int) -> list[Decimal]:
    """Split an amount into ``parts`` whole-cent shares summing to ``total``.

    Every share gets the floor of the even split; the last one absorbs the
    leftover cents.
    """
    if parts < 1:
        raise ValueError("parts must be >= 1")
    base, remainder = divmod(decimal_to_cents(total), parts)
    shares = [base] * parts
    shares[-1] += remainder
    return [cents_to_decimal(share) for share in shares]


def installment_shares(total_value: Decimal, terms: InstallmentTerms) -> list[Decimal]:
    """Per-installment values for every installment of the purchase."""
    if terms.value_type is InstallmentValueType.INSTALLMENT:
        return [total_value] * terms.installments_total
    return split_evenly(total_value, terms.installments_total)


def installment_group_total(total_value: Decimal, terms: InstallmentTerms) -> Decimal:
    """Total purchase value represented by a set of installment terms."""
    if terms.value_type is InstallmentValueType.INSTALLMENT:
        return total_value * terms.installments_total
    return total_value


def _payment_for(status: AccountStatus, payment: PaymentDetails) -> PaymentDetails:
    return payment if status is AccountStatus.PAID else PaymentDetails()


def _record(
    draft: AccountDraft,
    *,
    user_id: UUID,
    management: ManagementContext,
    attachments: AttachmentSlots,
    schedule: Schedule,
    due_date: date,
    total_value: Decimal,
    status: AccountStatus,
    group_id: UUID | None,
) -> Account:
    return Account(
        name=draft.name.strip(),
        total_value=total_value,
        due_date=due_date,
        user_id=user_id,
        management=management,
        schedule=schedule,
        status=status,
        payment=_payment_for(status, draft.payment),
        fees_and_fines=draft.fees_and_fines,
        notes=draft.notes,
        attachments=AttachmentSlots(
            bill_proof_url=attachments.bill_proof_url,
            payment_proof_url=attachments.payment_proof_url,
            system_generated_bill_url=attachments.system_generated_bill_url,
            full_report_url=attachments.full_report_url,
            custom=list(attachments.custom),
        ),
        group_id=group_id,
    )


def expand_draft(
    draft: AccountDraft,
    *,
    user_id: UUID,
    management: ManagementContext,
    attachments: AttachmentSlots | None = None,
    group_id: UUID | None = None,
) -> list[Account]:
    """Expand a draft into the ordered account records to persist.

    Args:
        draft: Validated account draft.
        user_id: Owner of the new records.
        management: Management context the records belong to.
        attachments: Attachment URLs copied onto every record.
        group_id: Group id for installment/recurring records. A new one is
            generated when omitted.

    Returns:
        Records ordered by due date. Empty for a recurring draft whose end
        date is before its first due date.
    """
    attachments = attachments or AttachmentSlots()
    terms = draft.terms

    if isinstance(terms, UniqueTerms):
        return [
            _record(
                draft,
                user_id=user_id,
                management=management,
                attachments=attachments,
                schedule=UniqueSchedule(),
                due_date=draft.due_date,
                total_value=draft.total_value,
                status=draft.status,
                group_id=None,
            )
        ]

    group_id = group_id or uuid4()

    if isinstance(terms, InstallmentTerms):
        if terms.installments_total < 2:
            raise ValueError("installment drafts need at least 2 installments")
        shares = installment_shares(draft.total_value, terms)
        records: list[Account] = []
        for number in range(1, terms.installments_total + 1):
            if number < terms.installment_current:
                if not terms.create_previous_installments:
                    continue
                status = terms.previous_installments_status
            elif number == terms.installment_current:
                status = draft.status
            else:
                status = AccountStatus.PENDING

            records.append(
                _record(
                    draft,
                    user_id=user_id,
                    management=management,
                    attachments=attachments,
                    schedule=InstallmentSchedule(current=number, total=terms.installments_total),
                    due_date=add_months(draft.due_date, number - terms.installment_current),
                    total_value=shares[number - 1],
                    status=status,
                    group_id=group_id,
                )
            )
        logger.debug(
            "installments_expanded",
            name=draft.name,
            count=len(records),
            group_id=str(group_id),
        )
        return records

    if isinstance(terms, RecurringTerms):
        records = []
        offset = 0
        occurrence = draft.due_date
        while occurrence <= terms.end_date:
            records.append(
                _record(
                    draft,
                    user_id=user_id,
                    management=management,
                    attachments=attachments,
                    schedule=RecurringSchedule(end_date=terms.end_date),
                    due_date=occurrence,
                    total_value=draft.total_value,
                    status=draft.status if offset == 0 else AccountStatus.PENDING,
                    group_id=group_id,
                )
            )
            offset += 1
            occurrence = add_months(draft.due_date, offset)
        if not records:
            logger.warning(
                "recurrence_empty",
                name=draft.name,
                due_date=draft.due_date.isoformat(),
                end_date=terms.end_date.isoformat(),
            )
        return records

    raise TypeError(f"Unsupported account terms: {type(terms).__name__}")


def apply_edit(existing: Account, draft: AccountDraft) -> Account:
    """Apply an edited draft to one existing record.

    Identity, owner, group and schedule position are kept; value, dates,
    status, payment and notes come from the draft. Siblings in the same
    group are not touched.
    """
    schedule = existing.schedule
    if isinstance(draft.terms, RecurringTerms) and isinstance(schedule, RecurringSchedule):
        schedule = RecurringSchedule(end_date=draft.terms.end_date)

    return existing.copy(
        name=draft.name.strip(),
        total_value=draft.total_value,
        due_date=draft.due_date,
        schedule=schedule,
        status=draft.status,
        payment=_payment_for(draft.status, draft.payment),
        fees_and_fines=draft.fees_and_fines,
        notes=draft.notes,
    )
