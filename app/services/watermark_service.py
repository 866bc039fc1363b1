from __future__ import annotations

from pathlib import Path
from typing import List

from app.core.logging import configure_logging
from app.models import WatermarkRequest
from app.services.compositor import Compositor
from app.services.overlay_service import OverlayGenerator
from app.storage.sessions import Session, SessionState
from app.utils.file_utils import sanitize_phrase

logger = configure_logging()


class WatermarkService:
    """
    تطبيق عدة علامات مائية على ملف واحد، ملف ناتج لكل عبارة.

    المعالجة تسلسلية تمامًا: مهمة واحدة فقط لدى الخدمة البعيدة في كل لحظة
    احترامًا لحدود معدل الطلبات لديها.
    """

    def __init__(self, compositor: Compositor, overlay_generator: OverlayGenerator | None = None) -> None:
        self.compositor = compositor
        self.overlay_generator = overlay_generator or OverlayGenerator()

    def process(self, request: WatermarkRequest, session: Session) -> List[Path]:
        session.state = SessionState.populating
        session.output_dir.mkdir(parents=True, exist_ok=True)

        output_paths: List[Path] = []
        used_names: set[str] = set()

        for phrase in request.phrases:
            text = phrase.strip()
            if not text:
                continue

            logger.info("Creating watermark PDF for %r", text)
            overlay = self.overlay_generator.build(request.source, text, request.appearance)
            result = self.compositor.composite(request.source, overlay, request.appearance)

            output_path = session.output_dir / f"{_unique_slug(text, used_names)}.pdf"
            output_path.write_bytes(result)
            output_paths.append(output_path)
            logger.info("PDF watermarked with %r saved as %s", text, output_path.name)

        return output_paths


def _unique_slug(text: str, used: set[str]) -> str:
    base = sanitize_phrase(text)
    slug = base
    counter = 2
    while slug.lower() in used:
        slug = f"{base}_{counter}"
        counter += 1
    used.add(slug.lower())
    return slug
