from __future__ import annotations

from io import BytesIO
from typing import Tuple

from pypdf import PdfReader
from pypdf.errors import PyPdfError
from reportlab.lib.colors import Color
from reportlab.pdfgen import canvas

from app.core.errors import OverlayError
from app.models import WatermarkAppearance

REFERENCE_PAGE_INDEX = 2
FONT_NAME = "Times-Roman"
GREY = (0.5, 0.5, 0.5)


def reference_page_size(source: bytes) -> Tuple[float, float]:
    """أبعاد الصفحة المرجعية: الثالثة إن وُجدت وإلا الأخيرة."""
    try:
        reader = PdfReader(BytesIO(source))
        page_count = len(reader.pages)
        if page_count == 0:
            raise OverlayError("Source PDF has no pages")
        page = reader.pages[min(REFERENCE_PAGE_INDEX, page_count - 1)]
        return float(page.mediabox.width), float(page.mediabox.height)
    except OverlayError:
        raise
    except (PyPdfError, ValueError, KeyError, TypeError, AttributeError, IndexError) as exc:
        raise OverlayError(f"Could not read source PDF: {exc}") from exc


class OverlayGenerator:
    """توليد صفحة PDF واحدة تحمل نص العلامة المائية بأبعاد الصفحة المرجعية."""

    def build(self, source: bytes, phrase: str, appearance: WatermarkAppearance) -> bytes:
        width, height = reference_page_size(source)
        return self.render(phrase, appearance, (width, height))

    @staticmethod
    def render(phrase: str, appearance: WatermarkAppearance, page_size: Tuple[float, float]) -> bytes:
        width, height = page_size
        packet = BytesIO()
        c = canvas.Canvas(packet, pagesize=page_size)

        c.setFillColor(Color(*GREY, alpha=appearance.opacity))
        c.setFillAlpha(appearance.opacity)
        c.setFont(FONT_NAME, appearance.font_size)

        c.saveState()
        c.translate(appearance.pos_x / 100 * width, appearance.pos_y / 100 * height)
        c.rotate(appearance.angle)
        c.drawString(0, 0, phrase.upper())
        c.restoreState()

        c.save()
        return packet.getvalue()
