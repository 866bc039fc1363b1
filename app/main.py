# app/main.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Iterable

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import routers
from app.api.watermark import sessions
from app.core.config import get_settings
from app.core.errors import WatermarkError
from app.core.logging import configure_logging

# === إعدادات وتسجيل ===
settings = get_settings()
logger = configure_logging()


# === المسح الدوري للملفات القديمة ===
async def periodic_sweep(interval: float) -> None:
    while True:
        try:
            await asyncio.sleep(interval)
            await asyncio.to_thread(sessions.sweep)
        except asyncio.CancelledError:
            logger.info("Periodic sweep cancelled")
            break
        except Exception as exc:
            logger.error("Periodic sweep error: %s", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sessions.sweep()
    sweep_task = asyncio.create_task(periodic_sweep(settings.sweep_interval_seconds))
    logger.info("%s ready (compositor=%s)", settings.app_name, settings.compositor_backend)

    yield

    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)


# === CORS ===
def _as_list(val: Iterable | str | None, fallback: list[str]) -> list[str]:
    if val is None:
        return fallback
    if isinstance(val, (list, tuple, set)):
        return [str(x).strip() for x in val if str(x).strip()] or fallback
    return [x.strip() for x in str(val).split(",") if x.strip()] or fallback


app.add_middleware(
    CORSMiddleware,
    allow_origins=_as_list(settings.allow_origins, fallback=["*"]),
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],  # لقراءة اسم الملف من الهيدر
)


# === معالجة الأخطاء بصيغة {"error": ...} ===
@app.exception_handler(WatermarkError)
async def watermark_error_handler(request: Request, exc: WatermarkError) -> JSONResponse:
    logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("HTTP %s: %s", exc.status_code, exc.detail)
    else:
        logger.warning("HTTP %s: %s", exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"error": f"{location}: {message}" if location else message},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


# === Routers ===
for router in routers:
    app.include_router(router)


if __name__ == "__main__":
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
