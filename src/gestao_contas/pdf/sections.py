"""Titled key/value sections, the building block of every generated document."""

from typing import Any, Iterable, Sequence

from gestao_contas.pdf.document import MARGIN, PdfDocument

# Room for the section title plus the table head row
SECTION_HEADER_SPACE = 20.0
SECTION_GAP = 8.0

DEFAULT_HEAD = ("Descrição", "Detalhe")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def visible_rows(rows: Iterable[tuple[str, Any]]) -> list[tuple[str, str]]:
    """Drop rows without a value and render the rest as strings."""
    return [(label, str(value)) for label, value in rows if not _is_empty(value)]


def add_section(
    doc: PdfDocument,
    title: str,
    rows: Iterable[tuple[str, Any]],
    start_y: float,
    head: Sequence[str] = DEFAULT_HEAD,
) -> float:
    """Append a titled two-column table and return the cursor after it.

    Rows whose value is ``None`` or blank are skipped. When no row is left
    nothing is drawn at all and ``start_y`` comes back unchanged.
    """
    body = visible_rows(rows)
    if not body:
        return start_y

    y = doc.ensure_space(start_y, SECTION_HEADER_SPACE)
    doc.text(MARGIN, y, title, size=12, bold=True)
    doc.mark("section", title, y)
    label_width = doc.content_width * 0.38
    y = doc.table(head, body, y + 3, col_widths=(label_width, doc.content_width - label_width))
    return y + SECTION_GAP


def add_table_section(
    doc: PdfDocument,
    title: str,
    head: Sequence[str],
    rows: Sequence[Sequence[Any]],
    start_y: float,
) -> float:
    """Append a titled multi-column table; skipped when ``rows`` is empty."""
    if not rows:
        return start_y
    y = doc.ensure_space(start_y, SECTION_HEADER_SPACE)
    doc.text(MARGIN, y, title, size=12, bold=True)
    doc.mark("section", title, y)
    y = doc.table(head, rows, y + 3)
    return y + SECTION_GAP


def add_signature_lines(doc: PdfDocument, labels: Sequence[str], start_y: float) -> float:
    """Draw up to two signature lines side by side."""
    if not labels:
        return start_y
    y = doc.ensure_space(start_y, 20)
    for index, label in enumerate(labels[:2]):
        x = MARGIN if index == 0 else doc.width / 2 + 5
        doc.text(x, y + 10, "________________________________")
        doc.text(x + 1, y + 15, label)
        doc.mark("signature", label, y)
    return y + 20
