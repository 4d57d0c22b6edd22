"""Paginated PDF document with a top-down cursor measured in millimetres.

Wraps a ReportLab canvas so layout code can think like a page of paper:
``y`` grows downwards from the top edge and every drawing call takes and
returns a cursor position.
"""

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Sequence

import structlog
from reportlab.graphics import renderPDF
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

logger = structlog.get_logger(__name__)

MARGIN = 14.0
TOP = 20.0
BOTTOM = 10.0
LINE_HEIGHT = 4.5
CELL_PADDING = 2.0

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
TABLE_FONT_SIZE = 9

HEAD_FILL = colors.HexColor("#2980B9")
STRIPE_FILL = colors.HexColor("#F5F5F5")
GRID_STROKE = colors.HexColor("#DDDDDD")


@dataclass(frozen=True)
class PlacedElement:
    """Something drawn on the document, kept as a layout log."""

    kind: str
    label: str
    page: int
    y: float


class PdfDocument:
    """A4 document built page by page."""

    def __init__(self, title: str = ""):
        self._buffer = BytesIO()
        self._canvas = canvas.Canvas(self._buffer, pagesize=A4)
        if title:
            self._canvas.setTitle(title)
        self.page_number = 1
        self.elements: list[PlacedElement] = []
        self._content: bytes | None = None

    # === Geometry ===

    @property
    def width(self) -> float:
        return A4[0] / mm

    @property
    def height(self) -> float:
        return A4[1] / mm

    @property
    def content_width(self) -> float:
        return self.width - 2 * MARGIN

    @property
    def usable_height(self) -> float:
        return self.height - TOP - BOTTOM

    def _pt_y(self, y: float) -> float:
        """Convert a top-down mm cursor to a bottom-up point coordinate."""
        return (self.height - y) * mm

    def fits(self, y: float, needed: float) -> bool:
        return y + needed <= self.height - BOTTOM

    def new_page(self, top: float = TOP) -> float:
        """Start a new page and return the cursor at its top."""
        self._canvas.showPage()
        self.page_number += 1
        return top

    def ensure_space(self, y: float, needed: float, top: float = TOP) -> float:
        """Return ``y`` if ``needed`` mm fit below it, else break the page."""
        if self.fits(y, needed):
            return y
        return self.new_page(top)

    def mark(self, kind: str, label: str, y: float) -> None:
        self.elements.append(PlacedElement(kind=kind, label=label, page=self.page_number, y=y))

    def labels(self, kind: str) -> list[str]:
        """Labels of every placed element of one kind, in drawing order."""
        return [element.label for element in self.elements if element.kind == kind]

    # === Drawing primitives ===

    def text(
        self,
        x: float,
        y: float,
        value: str,
        size: float = 10,
        bold: bool = False,
        align: str = "left",
    ) -> None:
        self._canvas.setFillColor(colors.black)
        self._canvas.setFont(FONT_BOLD if bold else FONT, size)
        if align == "center":
            self._canvas.drawCentredString(x * mm, self._pt_y(y), value)
        elif align == "right":
            self._canvas.drawRightString(x * mm, self._pt_y(y), value)
        else:
            self._canvas.drawString(x * mm, self._pt_y(y), value)

    def line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        self._canvas.setStrokeColor(colors.black)
        self._canvas.line(x1 * mm, self._pt_y(y1), x2 * mm, self._pt_y(y2))

    def header(self, title: str, logo_path: Path | None = None) -> float:
        """Logo, centred title and a rule; returns the cursor below the rule."""
        if logo_path is not None and not logo_path.exists():
            logger.warning("logo_missing", path=str(logo_path))
        elif logo_path is not None:
            try:
                self._canvas.drawImage(
                    str(logo_path), MARGIN * mm, self._pt_y(25), 40 * mm, 15 * mm,
                    preserveAspectRatio=True, mask="auto",
                )
            except OSError as e:
                logger.warning("logo_unavailable", path=str(logo_path), error=str(e))
        self.text(self.width / 2, TOP, title, size=18, align="center")
        self.line(MARGIN, 30, self.width - MARGIN, 30)
        self.mark("header", title, TOP)
        return 30.0

    def image(
        self, reader: ImageReader, x: float, y: float, width: float, height: float, label: str = ""
    ) -> None:
        """Draw an image with its top-left corner at (x, y)."""
        self._canvas.drawImage(
            reader, x * mm, self._pt_y(y + height), width * mm, height * mm, mask="auto"
        )
        self.mark("image", label, y)

    def qr_code(self, value: str, x: float, y: float, size: float, label: str = "") -> None:
        """Draw a QR code square of ``size`` mm with its top-left corner at (x, y)."""
        widget = QrCodeWidget(value)
        x0, y0, x1, y1 = widget.getBounds()
        side = size * mm
        drawing = Drawing(side, side, transform=[side / (x1 - x0), 0, 0, side / (y1 - y0), 0, 0])
        drawing.add(widget)
        renderPDF.draw(drawing, self._canvas, x * mm, self._pt_y(y + size))
        self.mark("qr", label or value, y)

    def table(
        self,
        head: Sequence[str],
        rows: Sequence[Sequence[Any]],
        start_y: float,
        col_widths: Sequence[float] | None = None,
    ) -> float:
        """Draw a striped table; rows that do not fit continue on a new page.

        Returns the cursor just below the last row.
        """
        widths = list(col_widths) if col_widths else [self.content_width / len(head)] * len(head)
        head_height = self._row_height([str(h) for h in head], widths)

        y = self.ensure_space(start_y, head_height)
        y = self._draw_row([str(h) for h in head], widths, y, head=True)

        for index, row in enumerate(rows):
            cells = ["" if value is None else str(value) for value in row]
            row_height = self._row_height(cells, widths)
            if not self.fits(y, row_height):
                y = self.new_page()
                y = self._draw_row([str(h) for h in head], widths, y, head=True)
            y = self._draw_row(cells, widths, y, stripe=index % 2 == 1)
        return y

    def _wrap(self, value: str, width: float, bold: bool = False) -> list[str]:
        font = FONT_BOLD if bold else FONT
        lines: list[str] = []
        for paragraph in value.splitlines() or [""]:
            lines.extend(
                simpleSplit(paragraph, font, TABLE_FONT_SIZE, (width - 2 * CELL_PADDING) * mm)
                or [""]
            )
        return lines

    def _row_height(self, cells: Sequence[str], widths: Sequence[float], bold: bool = False) -> float:
        lines = max(len(self._wrap(cell, width, bold)) for cell, width in zip(cells, widths))
        return lines * LINE_HEIGHT + 2 * CELL_PADDING

    def _draw_row(
        self,
        cells: Sequence[str],
        widths: Sequence[float],
        y: float,
        head: bool = False,
        stripe: bool = False,
    ) -> float:
        height = self._row_height(cells, widths, bold=head)
        c = self._canvas
        if head or stripe:
            c.setFillColor(HEAD_FILL if head else STRIPE_FILL)
            c.rect(MARGIN * mm, self._pt_y(y + height), sum(widths) * mm, height * mm, stroke=0, fill=1)
        c.setStrokeColor(GRID_STROKE)
        c.line(MARGIN * mm, self._pt_y(y + height), (MARGIN + sum(widths)) * mm, self._pt_y(y + height))

        c.setFillColor(colors.white if head else colors.black)
        c.setFont(FONT_BOLD if head else FONT, TABLE_FONT_SIZE)
        x = MARGIN
        for cell, width in zip(cells, widths):
            for line_index, text_line in enumerate(self._wrap(cell, width, bold=head)):
                baseline = y + CELL_PADDING + (line_index + 1) * LINE_HEIGHT - 1.2
                c.drawString((x + CELL_PADDING) * mm, self._pt_y(baseline), text_line)
            x += width
        return y + height

    # === Output ===

    def finish(self) -> bytes:
        """Close the document and return the PDF bytes."""
        if self._content is None:
            self._canvas.save()
            self._content = self._buffer.getvalue()
        return self._content
