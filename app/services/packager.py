from __future__ import annotations

import time
import zipfile
from pathlib import Path
from typing import Sequence

from starlette.background import BackgroundTask
from starlette.responses import FileResponse

from app.core.errors import PackagingError
from app.core.logging import configure_logging
from app.storage.sessions import Session, SessionState, SessionStore

logger = configure_logging()

PDF_MEDIA_TYPE = "application/pdf"
ZIP_MEDIA_TYPE = "application/zip"


def archive_name() -> str:
    return f"watermarked_pdfs_{int(time.time() * 1000)}.zip"


def build_archive(paths: Sequence[Path], target: Path) -> Path:
    """ضغط الملفات بأعلى مستوى ضغط، كل ملف باسمه الأساسي وبالترتيب نفسه."""
    try:
        with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for path in paths:
                archive.write(path, arcname=path.name)
    except (OSError, zipfile.BadZipFile) as exc:
        target.unlink(missing_ok=True)
        raise PackagingError(f"Failed to create ZIP archive: {exc}") from exc

    logger.info("ZIP created: %s bytes", target.stat().st_size)
    return target


def package(
    paths: Sequence[Path],
    session: Session,
    store: SessionStore,
    cleanup_delay: float,
) -> FileResponse:
    """
    بناء الاستجابة النهائية: ملف PDF مباشرة لعبارة واحدة، أو أرشيف ZIP لعدة عبارات.

    يُكتب الأرشيف داخل مجلد إخراج الجلسة نفسها فلا يتشارك طلبان المسار ذاته،
    ويُحذف معها. يُجدول حذف الجلسة كمهمة خلفية تعمل بعد انتهاء إرسال جسم الاستجابة.
    """
    if not paths:
        raise PackagingError(error="No files were generated")

    cleanup = BackgroundTask(store.schedule_retire, session, cleanup_delay)

    if len(paths) == 1:
        path = paths[0]
        session.state = SessionState.streaming
        return FileResponse(path, media_type=PDF_MEDIA_TYPE, filename=path.name, background=cleanup)

    download_name = archive_name()
    target = build_archive(paths, session.output_dir / download_name)

    session.state = SessionState.streaming
    return FileResponse(target, media_type=ZIP_MEDIA_TYPE, filename=download_name, background=cleanup)
