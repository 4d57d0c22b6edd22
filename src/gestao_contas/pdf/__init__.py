"""PDF layout primitives and document templates."""

from gestao_contas.pdf.attachments import AttachmentEmbedder, AttachmentRef
from gestao_contas.pdf.document import PdfDocument, PlacedElement
from gestao_contas.pdf.generators import (
    BillPdfOptions,
    GeneratedFile,
    ProfileFieldOptions,
    export_period_txt,
    generate_custom_bill,
    generate_full_report,
    generate_period_report,
    generate_pix_qr_sheet,
)
from gestao_contas.pdf.sections import add_section, add_signature_lines, add_table_section

__all__ = [
    # Layout
    "PdfDocument",
    "PlacedElement",
    "add_section",
    "add_table_section",
    "add_signature_lines",
    # Attachments
    "AttachmentEmbedder",
    "AttachmentRef",
    # Templates
    "BillPdfOptions",
    "ProfileFieldOptions",
    "GeneratedFile",
    "generate_custom_bill",
    "generate_full_report",
    "generate_period_report",
    "export_period_txt",
    "generate_pix_qr_sheet",
]
