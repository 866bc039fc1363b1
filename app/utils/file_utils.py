import re

from fastapi import HTTPException, UploadFile, status

PDF_CONTENT_TYPE = "application/pdf"
FALLBACK_SLUG = "watermark"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_\s]")
_WHITESPACE = re.compile(r"\s+")


def ensure_pdf(upload: UploadFile) -> None:
    """التحقق من أن الملف المرفوع هو PDF."""
    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if content_type != PDF_CONTENT_TYPE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF files are allowed",
        )


async def read_upload(upload: UploadFile, max_bytes: int) -> bytes:
    """قراءة محتوى الملف المرفوع مع رفض الملفات الفارغة أو المتجاوزة للحجم المسموح."""
    data = await upload.read(max_bytes + 1)
    await upload.close()
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded PDF is empty",
        )
    if len(data) > max_bytes:
        mb = max_bytes // (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {mb} MB.",
        )
    return data


def sanitize_phrase(phrase: str) -> str:
    """
    تحويل نص العلامة المائية إلى اسم ملف آمن.

    تُحذف كل الأحرف عدا الحروف والأرقام اللاتينية والشرطة السفلية والمسافات،
    ثم تُستبدل كل سلسلة مسافات بشرطة سفلية. تطبيقها مرتين يعطي النتيجة نفسها.
    """
    cleaned = _UNSAFE_CHARS.sub("", phrase or "").strip()
    cleaned = _WHITESPACE.sub("_", cleaned)
    return cleaned or FALLBACK_SLUG
