"""Document templates: custom bill, full account report, period report, PIX sheet."""

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Sequence

import structlog

from gestao_contas.dashboard import REPORT_TYPE_LABELS, ReportType
from gestao_contas.formatting import format_cpf, format_currency, format_date, format_rg
from gestao_contas.models import (
    ACCOUNT_TYPE_LABELS,
    BANK_ACCOUNT_TYPE_LABELS,
    PAYMENT_METHOD_LABELS,
    STATUS_LABELS,
    Account,
    BankAccount,
    InstallmentSchedule,
    PixKey,
    PixKeyType,
    Profile,
    RecurringSchedule,
    UploadFile,
)
from gestao_contas.pdf.attachments import AttachmentEmbedder, AttachmentRef
from gestao_contas.pdf.document import MARGIN, PdfDocument
from gestao_contas.pdf.sections import add_section, add_signature_lines, add_table_section

logger = structlog.get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
TXT_CONTENT_TYPE = "text/plain; charset=utf-8"

_UNSAFE_FILENAME = re.compile(r"[^\w.\-]+", re.UNICODE)


@dataclass(frozen=True)
class GeneratedFile:
    """A generated document ready to upload."""

    filename: str
    content: bytes
    content_type: str = PDF_CONTENT_TYPE

    def as_upload(self) -> UploadFile:
        return UploadFile(self.filename, self.content, self.content_type)


@dataclass(frozen=True)
class ProfileFieldOptions:
    full_name: bool = False
    cpf: bool = False
    rg: bool = False


@dataclass(frozen=True)
class BillPdfOptions:
    """Which pieces of an account go into a custom bill."""

    include_name: bool = False
    include_total_value: bool = False
    include_due_date: bool = False
    include_status: bool = False
    include_account_type: bool = False
    include_installments: bool = False
    include_payment_date: bool = False
    include_payment_method: bool = False
    include_payment_bank_details: bool = False
    include_fees_and_fines: bool = False
    include_notes: bool = False
    include_bill_proof: bool = False
    include_payment_proof: bool = False
    include_attachments: bool = False
    include_signatures: bool = False
    include_profile_fields: ProfileFieldOptions = field(default_factory=ProfileFieldOptions)

    @classmethod
    def everything(cls) -> "BillPdfOptions":
        return cls(
            **{name: True for name in cls.__dataclass_fields__ if name.startswith("include_")
               and name != "include_profile_fields"},
            include_profile_fields=ProfileFieldOptions(full_name=True, cpf=True, rg=True),
        )


def safe_filename(name: str) -> str:
    """Turn an account name into a storage-safe filename stem."""
    stem = _UNSAFE_FILENAME.sub("_", name.strip().replace(" ", "_")).strip("_")
    return stem or "conta"


def _gated(rows: list[tuple[str, Any, bool]]) -> list[tuple[str, Any]]:
    return [(label, value) for label, value, enabled in rows if enabled]


def account_rows(account: Account, total_value: Decimal | None = None) -> list[tuple[str, Any]]:
    """Rows of the account details section."""
    schedule = account.schedule
    return [
        ("Nome", account.name),
        ("Valor", format_currency(total_value if total_value is not None else account.total_value)),
        ("Vencimento", format_date(account.due_date)),
        ("Status", STATUS_LABELS[account.status]),
        ("Tipo", ACCOUNT_TYPE_LABELS[account.account_type]),
        ("Parcela", schedule.label if isinstance(schedule, InstallmentSchedule) else None),
        (
            "Recorrência até",
            format_date(schedule.end_date) if isinstance(schedule, RecurringSchedule) else None,
        ),
        ("Juros e Multas", format_currency(account.fees_and_fines)),
        ("Observações", account.notes),
    ]


def bank_rows(bank: BankAccount | None) -> list[tuple[str, Any]]:
    """Rows describing the bank account or card used to pay."""
    if bank is None:
        return []
    rows: list[tuple[str, Any]] = [
        ("Banco", bank.bank_name),
        ("Conta", bank.account_name),
        ("Tipo de Conta", BANK_ACCOUNT_TYPE_LABELS[bank.account_type]),
        ("Titular", bank.owner_name),
        ("CPF", format_cpf(bank.owner_cpf) if bank.owner_cpf else None),
    ]
    if bank.is_card:
        rows.append(("Final do Cartão", bank.card_last_4_digits or "N/A"))
    else:
        rows.append(("Agência", bank.agency or "N/A"))
        rows.append(("Número da Conta", bank.account_number or "N/A"))
    return rows


def payment_rows(account: Account, bank: BankAccount | None) -> list[tuple[str, Any]]:
    """Rows of the payment details section."""
    payment = account.payment
    method = payment.payment_method
    return [
        ("Data de Pagamento", format_date(payment.payment_date)),
        ("Método de Pagamento", PAYMENT_METHOD_LABELS[method] if method else None),
        ("PIX Copia e Cola", payment.pix_br_code),
        *bank_rows(bank),
    ]


def report_attachments(account: Account) -> list[AttachmentRef]:
    """The four fixed slots, in a fixed order, then the custom attachments."""
    slots = account.attachments
    fixed = [
        ("Fatura (Gerada pelo Sistema)", slots.system_generated_bill_url),
        ("Fatura/Conta (Upload)", slots.bill_proof_url),
        ("Comprovante de Pagamento", slots.payment_proof_url),
        ("Relatório Completo", slots.full_report_url),
    ]
    refs = [AttachmentRef(name=label, url=url) for label, url in fixed if url]
    refs.extend(AttachmentRef(name=f"Anexo: {a.name}", url=a.url) for a in slots.custom)
    return refs


async def generate_custom_bill(
    account: Account,
    *,
    options: BillPdfOptions,
    embedder: AttachmentEmbedder,
    payment_bank: BankAccount | None = None,
    profile: Profile | None = None,
    logo_path: Path | None = None,
) -> GeneratedFile:
    """Build the user-configurable bill for one account."""
    doc = PdfDocument(title=f"Fatura - {account.name}")
    y = doc.header("Fatura / Conta", logo_path)

    if profile is not None and profile.full_name:
        doc.text(MARGIN, y + 8, f"Gerado por: {profile.full_name}", size=10)
        y += 8
    y += 7

    schedule = account.schedule
    payment = account.payment
    y = add_section(
        doc,
        "Detalhes da Conta",
        _gated([
            ("Nome da Conta", account.name, options.include_name),
            ("Valor", format_currency(account.total_value), options.include_total_value),
            ("Data de Vencimento", format_date(account.due_date), options.include_due_date),
            ("Status", STATUS_LABELS[account.status], options.include_status),
            ("Tipo de Conta", ACCOUNT_TYPE_LABELS[account.account_type], options.include_account_type),
            (
                "Parcela",
                schedule.label if isinstance(schedule, InstallmentSchedule) else None,
                options.include_installments,
            ),
            ("Juros e Multas", format_currency(account.fees_and_fines), options.include_fees_and_fines),
            ("Observações", account.notes, options.include_notes),
        ]),
        y,
    )

    y = add_section(
        doc,
        "Detalhes do Pagamento",
        _gated([
            ("Data de Pagamento", format_date(payment.payment_date), options.include_payment_date),
            (
                "Método de Pagamento",
                PAYMENT_METHOD_LABELS[payment.payment_method] if payment.payment_method else None,
                options.include_payment_method,
            ),
        ])
        + (bank_rows(payment_bank) if options.include_payment_bank_details else []),
        y,
    )

    if profile is not None:
        fields = options.include_profile_fields
        y = add_section(
            doc,
            "Dados do Responsável",
            _gated([
                ("Nome Completo", profile.full_name, fields.full_name),
                ("CPF", format_cpf(profile.cpf) if profile.cpf else None, fields.cpf),
                ("RG", format_rg(profile.rg) if profile.rg else None, fields.rg),
            ]),
            y,
        )

    slots = account.attachments
    attachments: list[AttachmentRef] = []
    if options.include_bill_proof and slots.bill_proof_url:
        attachments.append(AttachmentRef("Fatura/Conta", slots.bill_proof_url))
    if options.include_payment_proof and slots.payment_proof_url:
        attachments.append(AttachmentRef("Comprovante de Pagamento", slots.payment_proof_url))
    if options.include_attachments:
        attachments.extend(AttachmentRef(f"Anexo: {a.name}", a.url) for a in slots.custom)
    if attachments:
        y = doc.ensure_space(y, 15)
        doc.text(MARGIN, y, "Anexos", size=12, bold=True)
        y = await embedder.embed(doc, attachments, y + 6)

    if options.include_signatures:
        y = add_signature_lines(
            doc, ["Assinatura do Proprietário", "Assinatura do Destinatário"], y
        )

    content = doc.finish()
    logger.info("custom_bill_generated", account=account.name, pages=doc.page_number)
    return GeneratedFile(f"fatura_{safe_filename(account.name)}.pdf", content)


async def generate_full_report(
    account: Account,
    installments: Sequence[Account],
    *,
    embedder: AttachmentEmbedder,
    payment_bank: BankAccount | None = None,
    total_value: Decimal | None = None,
    logo_path: Path | None = None,
) -> GeneratedFile:
    """Build the complete report of one account (or one installment purchase).

    ``total_value`` overrides the displayed value, e.g. with the purchase
    total when ``account`` is one installment of it.
    """
    doc = PdfDocument(title=f"Relatório - {account.name}")
    y = doc.header(f"Relatório da Conta: {account.name}", logo_path) + 10

    y = add_section(doc, "Detalhes da Conta", account_rows(account, total_value), y, head=("Detalhe", "Valor"))
    y = add_section(doc, "Detalhes do Pagamento", payment_rows(account, payment_bank), y)

    if account.is_installment and installments:
        ordered = sorted(
            installments,
            key=lambda a: a.schedule.current if isinstance(a.schedule, InstallmentSchedule) else 0,
        )
        y = add_table_section(
            doc,
            "Detalhes das Parcelas",
            ("Parcela", "Vencimento", "Valor", "Status"),
            [
                (
                    inst.schedule.label if isinstance(inst.schedule, InstallmentSchedule) else "",
                    format_date(inst.due_date),
                    format_currency(inst.total_value),
                    STATUS_LABELS[inst.status],
                )
                for inst in ordered
            ],
            y,
        )

    attachments = report_attachments(account)
    if attachments:
        y = doc.ensure_space(y, 15)
        doc.text(MARGIN, y, "Anexos", size=12, bold=True)
        y = await embedder.embed(doc, attachments, y + 6)

    content = doc.finish()
    logger.info(
        "full_report_generated",
        account=account.name,
        installments=len(installments),
        pages=doc.page_number,
    )
    return GeneratedFile(f"relatorio_completo_{safe_filename(account.name)}.pdf", content)


async def generate_period_report(
    accounts: Sequence[Account],
    *,
    report_type: ReportType,
    start: date,
    end: date,
    embedder: AttachmentEmbedder,
) -> GeneratedFile:
    """Listing of already-filtered accounts plus their payment proofs."""
    doc = PdfDocument(title=REPORT_TYPE_LABELS[report_type])
    doc.text(MARGIN, 16, f"Relatório de Contas - {REPORT_TYPE_LABELS[report_type]}", size=14)
    doc.text(MARGIN, 22, f"Período: {format_date(start)} a {format_date(end)}", size=10)
    doc.mark("header", REPORT_TYPE_LABELS[report_type], 16)

    doc.table(
        ("Nome", "Vencimento", "Valor", "Status"),
        [
            (a.name, format_date(a.due_date), format_currency(a.total_value), STATUS_LABELS[a.status])
            for a in accounts
        ],
        30,
        col_widths=(doc.content_width * 0.4, doc.content_width * 0.2,
                    doc.content_width * 0.2, doc.content_width * 0.2),
    )

    proofs = [
        AttachmentRef(name=f"Comprovante: {a.name}", url=a.attachments.payment_proof_url)
        for a in accounts
        if a.attachments.payment_proof_url
    ]
    if proofs:
        doc.new_page()
        doc.text(MARGIN, 16, "Comprovantes de Pagamento", size=14)
        doc.mark("section", "Comprovantes de Pagamento", 16)
        await embedder.embed(doc, proofs, 25)

    content = doc.finish()
    logger.info(
        "period_report_generated",
        report_type=report_type.value,
        accounts=len(accounts),
        proofs=len(proofs),
    )
    return GeneratedFile(f"relatorio_{report_type.value}_{start.isoformat()}_{end.isoformat()}.pdf", content)


def export_period_txt(
    accounts: Sequence[Account], *, report_type: ReportType, start: date, end: date
) -> GeneratedFile:
    """Plain-text version of the period report."""
    lines = [
        f"Relatório de Contas - {report_type.value.upper()}",
        f"Período: {format_date(start)} a {format_date(end)}",
        "",
    ]
    for account in accounts:
        lines.extend([
            "-" * 40,
            f"Nome: {account.name}",
            f"Valor: {format_currency(account.total_value)}",
            f"Vencimento: {format_date(account.due_date)}",
            f"Status: {STATUS_LABELS[account.status]}",
        ])
    return GeneratedFile("relatorio.txt", ("\n".join(lines) + "\n").encode("utf-8"), TXT_CONTENT_TYPE)


def generate_pix_qr_sheet(pix_key: PixKey) -> GeneratedFile:
    """One-page PDF with the QR code of a BR Code (copy-and-paste) PIX key."""
    if pix_key.key_type is not PixKeyType.BR_CODE:
        raise ValueError(f"Only br_code PIX keys render as QR codes, got {pix_key.key_type.value}")

    doc = PdfDocument(title="PIX")
    y = doc.header("PIX - QR Code") + 10
    y = add_section(
        doc,
        "Dados da Chave",
        [("Titular", pix_key.owner_name), ("Banco", pix_key.bank_name)],
        y,
    )
    size = 70.0
    doc.qr_code(pix_key.key_value, (doc.width - size) / 2, y, size, label="PIX")
    y += size + 8
    add_section(doc, "PIX Copia e Cola", [("Código", pix_key.key_value)], y)

    stem = safe_filename(pix_key.owner_name or "pix")
    return GeneratedFile(f"pix_{stem}.pdf", doc.finish())
