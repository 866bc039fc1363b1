from typing import Callable, List, Optional

from pydantic import BaseModel, Field, validator


class WatermarkAppearance(BaseModel):
    font_size: int = Field(30, gt=0, description="حجم الخط بالنقاط.")
    angle: int = Field(55, description="زاوية الدوران بالدرجات.")
    opacity: float = Field(0.5, ge=0, le=1, description="قيمة الشفافية بين 0 و 1.")
    pos_x: float = Field(50, ge=0, le=100, description="الموضع الأفقي كنسبة مئوية من عرض الصفحة.")
    pos_y: float = Field(50, ge=0, le=100, description="الموضع العمودي كنسبة مئوية من ارتفاع الصفحة.")

    @classmethod
    def from_form(
        cls,
        font_size: Optional[str] = None,
        angle: Optional[str] = None,
        opacity: Optional[str] = None,
        pos_x: Optional[str] = None,
        pos_y: Optional[str] = None,
    ) -> "WatermarkAppearance":
        """بناء الخيارات من حقول النموذج؛ أي قيمة غائبة أو غير صالحة تعود لقيمتها الافتراضية."""
        defaults = cls()
        return cls(
            font_size=_parse(font_size, _to_int, lambda v: v > 0, defaults.font_size),
            angle=_parse(angle, _to_int, lambda v: True, defaults.angle),
            opacity=_parse(opacity, float, lambda v: 0 <= v <= 1, defaults.opacity),
            pos_x=_parse(pos_x, float, lambda v: 0 <= v <= 100, defaults.pos_x),
            pos_y=_parse(pos_y, float, lambda v: 0 <= v <= 100, defaults.pos_y),
        )


def _to_int(raw: str) -> int:
    return int(float(raw))


def _parse(raw: Optional[str], convert: Callable, accept: Callable, default):
    if raw is None or not str(raw).strip():
        return default
    try:
        value = convert(str(raw).strip())
    except (TypeError, ValueError, OverflowError):
        return default
    if value != value or not accept(value):  # NaN
        return default
    return value


def parse_phrases(raw: Optional[str]) -> List[str]:
    """تقسيم نص العلامات المائية المفصول بفواصل مع الحفاظ على الترتيب وحذف الفراغات."""
    if not raw:
        return []
    return [phrase.strip() for phrase in raw.split(",") if phrase.strip()]


class WatermarkRequest(BaseModel):
    source: bytes
    phrases: List[str] = Field(..., min_length=1)
    appearance: WatermarkAppearance = Field(default_factory=WatermarkAppearance)

    @validator("phrases")
    def validate_phrases(cls, phrases: List[str]) -> List[str]:  # noqa: D417
        if not any(phrase.strip() for phrase in phrases):
            raise ValueError("At least one watermark text is required")
        return phrases
