"""Fetch attachment images and lay them out in a document."""

from dataclasses import dataclass
from io import BytesIO
from typing import Any, Sequence

import httpx
import structlog
from PIL import Image, ImageOps
from reportlab.lib.utils import ImageReader

from gestao_contas.config import get_settings
from gestao_contas.pdf.document import MARGIN, PdfDocument

logger = structlog.get_logger(__name__)

# Space reserved above each image for its label
LABEL_SPACE = 5.0
# Gap below each image
IMAGE_GAP = 10.0
ATTACHMENT_PAGE_TOP = 15.0


@dataclass(frozen=True)
class AttachmentRef:
    """A named attachment reachable by URL."""

    name: str
    url: str


def decode_image(content: bytes) -> ImageReader:
    """Decode image bytes into something ReportLab can draw.

    Raises:
        OSError: The bytes are not a readable image.
    """
    image = Image.open(BytesIO(content))
    image.load()
    image = ImageOps.exif_transpose(image)
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    return ImageReader(image)


def scaled_size(
    pixel_width: int, pixel_height: int, target_width: float, max_height: float
) -> tuple[float, float]:
    """Width/height in mm at ``target_width``, shrunk to fit ``max_height``."""
    width = target_width
    height = width * pixel_height / pixel_width
    if height > max_height:
        height = max_height
        width = height * pixel_width / pixel_height
    return width, height


class AttachmentEmbedder:
    """Embeds attachments into PDFs one after another.

    A failure to fetch or decode one attachment is logged and skipped; the
    remaining attachments are still embedded.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        image_width: float | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self.image_width = image_width or settings.pdf_image_width_mm
        self._timeout = timeout or settings.attachment_fetch_timeout
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this embedder created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AttachmentEmbedder":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def fetch_image(self, url: str) -> ImageReader:
        """Download and decode one image."""
        client = await self._get_client()
        response = await client.get(url)
        response.raise_for_status()
        return decode_image(response.content)

    async def embed(
        self,
        doc: PdfDocument,
        attachments: Sequence[AttachmentRef],
        start_y: float,
    ) -> float:
        """Place every attachment that can be fetched and decoded.

        Returns the cursor after the last placed image.
        """
        y = start_y
        target_width = min(self.image_width, doc.content_width)
        max_height = doc.usable_height - LABEL_SPACE - IMAGE_GAP

        for attachment in attachments:
            try:
                reader = await self.fetch_image(attachment.url)
            except (httpx.HTTPError, OSError, Image.DecompressionBombError) as e:
                logger.warning(
                    "attachment_embed_failed",
                    attachment=attachment.name,
                    url=attachment.url,
                    error=str(e),
                )
                doc.mark("attachment_failed", attachment.name, y)
                continue

            pixel_width, pixel_height = reader.getSize()
            width, height = scaled_size(pixel_width, pixel_height, target_width, max_height)

            if not doc.fits(y, LABEL_SPACE + height + IMAGE_GAP):
                y = doc.new_page(ATTACHMENT_PAGE_TOP)

            doc.text(MARGIN, y, attachment.name, size=10)
            doc.image(reader, MARGIN, y + LABEL_SPACE, width, height, label=attachment.name)
            y += LABEL_SPACE + height + IMAGE_GAP

        return y
