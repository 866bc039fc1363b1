from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.models import ErrorResponse, WatermarkAppearance, WatermarkRequest, parse_phrases
from app.services.compositor import build_compositor
from app.services.packager import package
from app.services.watermark_service import WatermarkService
from app.storage.sessions import SessionStore
from app.utils.file_utils import ensure_pdf, read_upload

router = APIRouter(prefix="/api", tags=["PDF Watermark"])

settings = get_settings()
logger = configure_logging()
sessions = SessionStore(settings.outputs_dir, settings.retention_seconds)
watermark_service = WatermarkService(build_compositor(settings))


def get_watermark_service() -> WatermarkService:
    return watermark_service


def get_session_store() -> SessionStore:
    return sessions


@router.post(
    "/watermark",
    summary="تطبيق علامة مائية لكل عبارة وإرجاع ملف PDF أو أرشيف ZIP",
    response_class=Response,
    responses={
        200: {"content": {"application/pdf": {}, "application/zip": {}}},
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def create_watermarks(
    pdf: Optional[UploadFile] = File(None),
    watermarks: Optional[str] = Form(None),
    font_size: Optional[str] = Form(None, alias="fontSize"),
    angle: Optional[str] = Form(None),
    opacity: Optional[str] = Form(None),
    pos_x: Optional[str] = Form(None, alias="posX"),
    pos_y: Optional[str] = Form(None, alias="posY"),
    service: WatermarkService = Depends(get_watermark_service),
    store: SessionStore = Depends(get_session_store),
) -> Response:
    if pdf is None or not pdf.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No PDF file uploaded")
    ensure_pdf(pdf)
    source = await read_upload(pdf, settings.max_upload_bytes)

    if not watermarks or not watermarks.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Watermarks text is required")

    phrases = parse_phrases(watermarks)
    if not phrases:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one watermark text is required",
        )

    appearance = WatermarkAppearance.from_form(font_size, angle, opacity, pos_x, pos_y)
    request = WatermarkRequest(source=source, phrases=phrases, appearance=appearance)

    logger.info("Processing %s watermark(s): %s", len(phrases), phrases)
    logger.info("Options: %s", appearance.model_dump())

    session = await run_in_threadpool(store.create)
    try:
        output_paths = await run_in_threadpool(service.process, request, session)
        return await run_in_threadpool(package, output_paths, session, store, settings.cleanup_delay_seconds)
    except Exception:
        logger.exception("Error processing watermark request (session=%s)", session.session_id)
        await run_in_threadpool(store.retire, session)
        raise
