"""Validation of submitted drafts and records.

Every check runs before any upload or backend write. All problems are
collected and raised together as one ``ValidationError``.
"""

from decimal import Decimal

from gestao_contas.errors import ValidationError
from gestao_contas.models import (
    AccountDraft,
    AccountFiles,
    BankAccount,
    InstallmentTerms,
    PixKey,
    PixKeyType,
    RecurringTerms,
)

MIN_VALUE = Decimal("0.01")


def validate_account_draft(draft: AccountDraft, files: AccountFiles | None = None) -> None:
    """Check a submitted account before expansion."""
    errors: dict[str, str] = {}

    if not draft.name or not draft.name.strip():
        errors["name"] = "O nome da conta é obrigatório."
    if draft.total_value is None or draft.total_value < MIN_VALUE:
        errors["total_value"] = "O valor deve ser maior que zero."
    if draft.due_date is None:
        errors["due_date"] = "A data de vencimento é obrigatória."
    if draft.fees_and_fines is not None and draft.fees_and_fines < 0:
        errors["fees_and_fines"] = "Juros e multas não podem ser negativos."

    terms = draft.terms
    if isinstance(terms, InstallmentTerms):
        if terms.installments_total is None or terms.installments_total <= 1:
            errors["installments_total"] = "O número de parcelas deve ser maior que 1."
        elif not 1 <= terms.installment_current <= terms.installments_total:
            errors["installment_current"] = (
                "A parcela atual deve estar entre 1 e o total de parcelas."
            )
    elif isinstance(terms, RecurringTerms):
        if terms.end_date is None:
            errors["recurrence_end_date"] = "A data final da recorrência é obrigatória."

    if files is not None:
        for index, attachment in enumerate(files.custom):
            if not attachment.name or not attachment.name.strip():
                errors[f"other_attachments.{index}.name"] = "O nome do anexo é obrigatório."

    if errors:
        raise ValidationError(errors)


def validate_bank_account(bank_account: BankAccount) -> None:
    errors: dict[str, str] = {}
    if not bank_account.account_name.strip():
        errors["account_name"] = "O nome da conta é obrigatório."
    if not bank_account.bank_name.strip():
        errors["bank_name"] = "O nome do banco é obrigatório."
    if bank_account.is_card:
        for field_name in ("card_closing_day", "card_due_day"):
            day = getattr(bank_account, field_name)
            if day is not None and not 1 <= day <= 31:
                errors[field_name] = "O dia deve estar entre 1 e 31."
        if bank_account.card_limit is not None and bank_account.card_limit < 0:
            errors["card_limit"] = "O limite não pode ser negativo."
    if errors:
        raise ValidationError(errors)


def validate_pix_key(pix_key: PixKey) -> None:
    errors: dict[str, str] = {}
    if not pix_key.key_value or not pix_key.key_value.strip():
        errors["key_value"] = "A chave PIX é obrigatória."
    elif pix_key.key_type is PixKeyType.EMAIL and "@" not in pix_key.key_value:
        errors["key_value"] = "E-mail inválido."
    if errors:
        raise ValidationError(errors)
