from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """إعدادات خدمة العلامات المائية مع تحميل القيم من ملف .env عند توفره."""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[2] / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "PDF Watermark API"
    app_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"

    base_dir: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2])
    storage_dir: Optional[Path] = None
    outputs_dir: Optional[Path] = None

    max_upload_mb: int = 50

    cleanup_delay_seconds: float = 5.0
    retention_seconds: float = 3600.0
    sweep_interval_seconds: float = 1800.0

    compositor_backend: Literal["pdfservices", "local"] = "pdfservices"
    pdf_services_client_id: Optional[str] = None
    pdf_services_client_secret: Optional[str] = None
    pdf_services_base_url: str = "https://pdf-services.adobe.io"
    compositor_opacity_percent: int = Field(40, ge=0, le=100)
    compositor_foreground: bool = False
    compositor_poll_interval_seconds: float = 2.0
    compositor_timeout_seconds: float = 300.0
    compositor_request_timeout_seconds: float = 60.0

    allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def configure_paths(self) -> None:
        """تهيئة المسارات الافتراضية وإنشاء المجلدات في حال غيابها."""
        self.storage_dir = (self.storage_dir or (self.base_dir / "storage")).resolve()
        self.outputs_dir = (self.outputs_dir or (self.storage_dir / "output")).resolve()

        for directory in (self.storage_dir, self.outputs_dir):
            directory.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    settings.configure_paths()
    return settings
