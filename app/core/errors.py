from typing import Optional


class WatermarkError(Exception):
    """الخطأ الأساسي لمراحل المعالجة (التوليد، الدمج البعيد، التجميع)."""

    status_code: int = 500
    error: str = "Failed to process watermark request"

    def __init__(self, details: Optional[str] = None, *, error: Optional[str] = None) -> None:
        super().__init__(details or error or self.error)
        if error:
            self.error = error
        self.details = details

    def to_payload(self) -> dict:
        payload = {"error": self.error}
        if self.details:
            payload["details"] = self.details
        return payload


class OverlayError(WatermarkError):
    error = "Failed to build watermark overlay"


class CompositorError(WatermarkError):
    status_code = 502
    error = "Watermark service failed"


class CompositorAuthError(CompositorError):
    error = "Watermark service authentication failed"


class CompositorQuotaError(CompositorError):
    status_code = 503
    error = "Watermark service quota exceeded"


class CompositorJobError(CompositorError):
    error = "Watermark service rejected the job"


class CompositorTransferError(CompositorError):
    error = "Watermark service transfer failed"


class CompositorTimeoutError(CompositorError):
    status_code = 504
    error = "Watermark service timed out"


class PackagingError(WatermarkError):
    error = "Failed to package watermarked files"
