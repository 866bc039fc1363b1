from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Callable, Optional

import requests
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from app.core.config import Settings
from app.core.errors import (
    CompositorAuthError,
    CompositorError,
    CompositorJobError,
    CompositorQuotaError,
    CompositorTimeoutError,
    CompositorTransferError,
)
from app.core.logging import configure_logging
from app.models import WatermarkAppearance

logger = configure_logging()

PDF_MEDIA_TYPE = "application/pdf"
TOKEN_REFRESH_MARGIN = 60


class Compositor(ABC):
    """دمج ملف المصدر مع صفحة العلامة المائية وإرجاع الملف النهائي."""

    @abstractmethod
    def composite(self, source: bytes, overlay: bytes, appearance: WatermarkAppearance) -> bytes:
        raise NotImplementedError


class PDFServicesCompositor(Compositor):
    """
    عميل خدمة PDF Services البعيدة لعمليات العلامة المائية.

    كل استدعاء لـ composite ينفذ المراحل بالتسلسل: رفع الملفين كأصول،
    إرسال مهمة addwatermark، استطلاع حالتها حتى الانتهاء أو تجاوز المهلة،
    ثم تنزيل النتيجة. لا توجد إعادة محاولة محلية.
    """

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        *,
        base_url: str = "https://pdf-services.adobe.io",
        opacity_percent: int = 40,
        foreground: bool = False,
        poll_interval: float = 2.0,
        timeout: float = 300.0,
        request_timeout: float = 60.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.opacity_percent = opacity_percent
        self.foreground = foreground
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.request_timeout = request_timeout
        self.http = session or requests.Session()
        self._clock = clock
        self._sleep = sleep
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PDFServicesCompositor":
        return cls(
            settings.pdf_services_client_id,
            settings.pdf_services_client_secret,
            base_url=settings.pdf_services_base_url,
            opacity_percent=settings.compositor_opacity_percent,
            foreground=settings.compositor_foreground,
            poll_interval=settings.compositor_poll_interval_seconds,
            timeout=settings.compositor_timeout_seconds,
            request_timeout=settings.compositor_request_timeout_seconds,
        )

    # ------------------------------------------------------------------
    def composite(self, source: bytes, overlay: bytes, appearance: WatermarkAppearance) -> bytes:
        headers = self._auth_headers()

        logger.info("Uploading assets to PDF Services (%s + %s bytes)", len(source), len(overlay))
        input_asset = self._upload_asset(source, headers)
        watermark_asset = self._upload_asset(overlay, headers)

        polling_url = self._submit_job(input_asset, watermark_asset, headers)
        download_uri = self._wait_for_result(polling_url, headers)
        return self._download(download_uri)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def _auth_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._access_token()}",
            "x-api-key": self.client_id,
        }

    def _access_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise CompositorAuthError("PDF_SERVICES_CLIENT_ID and PDF_SERVICES_CLIENT_SECRET must be set")

        with self._token_lock:
            if self._token and self._clock() < self._token_expires_at:
                return self._token

            response = self._request(
                "post",
                f"{self.base_url}/token",
                stage="authentication",
                data={"client_id": self.client_id, "client_secret": self.client_secret},
            )
            if response.status_code in (400, 401, 403):
                raise CompositorAuthError(_describe(response))
            self._check(response, "authentication")

            payload = _json(response, "authentication")
            token = payload.get("access_token")
            if not token:
                raise CompositorAuthError("Token response did not include an access token")

            expires_in = float(payload.get("expires_in") or 0)
            self._token = token
            self._token_expires_at = self._clock() + max(0.0, expires_in - TOKEN_REFRESH_MARGIN)
            return token

    # ------------------------------------------------------------------
    # Assets and jobs
    # ------------------------------------------------------------------
    def _upload_asset(self, data: bytes, headers: dict) -> str:
        response = self._request(
            "post",
            f"{self.base_url}/assets",
            stage="asset creation",
            headers=headers,
            json={"mediaType": PDF_MEDIA_TYPE},
        )
        self._check(response, "asset creation")
        payload = _json(response, "asset creation")
        upload_uri = payload.get("uploadUri")
        asset_id = payload.get("assetID")
        if not upload_uri or not asset_id:
            raise CompositorTransferError("Asset response did not include an upload URI")

        upload = self._request(
            "put",
            upload_uri,
            stage="asset upload",
            headers={"Content-Type": PDF_MEDIA_TYPE},
            data=data,
        )
        self._check(upload, "asset upload")
        return asset_id

    def _submit_job(self, input_asset: str, watermark_asset: str, headers: dict) -> str:
        body = {
            "inputDocumentAssetID": input_asset,
            "watermarkDocumentAssetID": watermark_asset,
            "appearance": {
                "appearOnForeground": self.foreground,
                "opacity": self.opacity_percent,
            },
        }
        logger.info("Submitting watermark job")
        response = self._request(
            "post",
            f"{self.base_url}/operation/addwatermark",
            stage="job submission",
            headers=headers,
            json=body,
        )
        self._check(response, "job submission")
        polling_url = response.headers.get("location")
        if not polling_url:
            raise CompositorJobError("Job submission did not return a polling location")
        return polling_url

    def _wait_for_result(self, polling_url: str, headers: dict) -> str:
        deadline = self._clock() + self.timeout
        while True:
            response = self._request("get", polling_url, stage="job polling", headers=headers)
            self._check(response, "job polling")
            payload = _json(response, "job polling")
            job_status = str(payload.get("status", "")).lower()

            if job_status == "done":
                download_uri = (payload.get("asset") or {}).get("downloadUri")
                if not download_uri:
                    raise CompositorTransferError("Finished job did not include a download URI")
                return download_uri

            if job_status == "failed":
                error = payload.get("error") or {}
                message = error.get("message") or "Watermark job failed"
                if error.get("status") == 429:
                    raise CompositorQuotaError(message)
                raise CompositorJobError(message)

            if self._clock() >= deadline:
                raise CompositorTimeoutError(f"Job did not finish within {self.timeout:g} seconds")
            self._sleep(self.poll_interval)

    def _download(self, download_uri: str) -> bytes:
        response = self._request("get", download_uri, stage="result download")
        self._check(response, "result download")
        return response.content

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _request(self, method: str, url: str, *, stage: str, **kwargs) -> requests.Response:
        try:
            return self.http.request(method.upper(), url, timeout=self.request_timeout, **kwargs)
        except requests.Timeout as exc:
            raise CompositorTimeoutError(f"{stage} timed out: {exc}") from exc
        except requests.RequestException as exc:
            raise CompositorTransferError(f"{stage} failed: {exc}") from exc

    @staticmethod
    def _check(response: requests.Response, stage: str) -> None:
        code = response.status_code
        if code < 400:
            return
        message = f"{stage} failed: {_describe(response)}"
        if code in (401, 403):
            raise CompositorAuthError(message)
        if code == 429:
            raise CompositorQuotaError(message)
        if code < 500:
            raise CompositorJobError(message)
        raise CompositorTransferError(message)


class LocalCompositor(Compositor):
    """دمج محلي بدون شبكة: تُوضع صفحة العلامة خلف محتوى كل صفحة باستخدام pypdf."""

    def composite(self, source: bytes, overlay: bytes, appearance: WatermarkAppearance) -> bytes:
        try:
            reader = PdfReader(BytesIO(source))
            watermark_page = PdfReader(BytesIO(overlay)).pages[0]
            writer = PdfWriter()
            for page in reader.pages:
                page.merge_page(watermark_page, over=False)
                writer.add_page(page)

            buffer = BytesIO()
            writer.write(buffer)
        except (PyPdfError, ValueError, KeyError, IndexError) as exc:
            raise CompositorError(f"Local merge failed: {exc}") from exc
        return buffer.getvalue()


def build_compositor(settings: Settings) -> Compositor:
    if settings.compositor_backend == "local":
        logger.info("Using local pypdf compositor")
        return LocalCompositor()
    return PDFServicesCompositor.from_settings(settings)


def _json(response: requests.Response, stage: str) -> dict:
    try:
        payload = response.json()
    except ValueError as exc:
        raise CompositorTransferError(f"{stage} returned invalid JSON") from exc
    if not isinstance(payload, dict):
        raise CompositorTransferError(f"{stage} returned an unexpected payload")
    return payload


def _describe(response: requests.Response) -> str:
    text = (response.text or "").strip()
    return f"HTTP {response.status_code}" + (f": {text[:300]}" if text else "")
