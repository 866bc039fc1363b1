"""
Pytest configuration and fixtures for the PDF Watermark API tests.
"""

import os
import tempfile
from io import BytesIO
from itertools import count

import pytest
from fastapi.testclient import TestClient
from reportlab.pdfgen import canvas

# Set test environment variables before importing the app
os.environ["STORAGE_DIR"] = tempfile.mkdtemp(prefix="watermark_test_storage_")
os.environ["CLEANUP_DELAY_SECONDS"] = "0"
os.environ["COMPOSITOR_BACKEND"] = "local"

from app.api.watermark import get_session_store, get_watermark_service  # noqa: E402
from app.main import app  # noqa: E402
from app.services.compositor import Compositor  # noqa: E402
from app.services.watermark_service import WatermarkService  # noqa: E402
from app.storage.sessions import SessionStore  # noqa: E402


def make_pdf(page_sizes=((612, 792),)) -> bytes:
    """Build a small PDF with one page per entry in page_sizes."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer)
    for index, size in enumerate(page_sizes, start=1):
        c.setPageSize(size)
        c.drawString(40, 40, f"Page {index}")
        c.showPage()
    c.save()
    return buffer.getvalue()


class FakeCompositor(Compositor):
    """Records every call and returns a numbered placeholder document."""

    def __init__(self):
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._counter = count(1)

    def composite(self, source, overlay, appearance):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.calls.append({"source": source, "overlay": overlay, "appearance": appearance})
            return b"%PDF-1.4 result " + str(next(self._counter)).encode()
        finally:
            self.in_flight -= 1


class FailingCompositor(Compositor):
    def __init__(self, error):
        self.error = error
        self.calls = 0

    def composite(self, source, overlay, appearance):
        self.calls += 1
        raise self.error


@pytest.fixture
def sample_pdf():
    return make_pdf([(612, 792), (595, 842), (420, 595), (612, 792)])


@pytest.fixture
def fake_compositor():
    return FakeCompositor()


@pytest.fixture
def session_store(tmp_path):
    return SessionStore(tmp_path / "output", retention_seconds=3600)


@pytest.fixture
def make_client(session_store):
    """Return a factory that builds a TestClient around the given compositor."""

    def _make(compositor):
        app.dependency_overrides[get_watermark_service] = lambda: WatermarkService(compositor)
        app.dependency_overrides[get_session_store] = lambda: session_store
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client, fake_compositor):
    return make_client(fake_compositor)


@pytest.fixture
def pdf_factory():
    return make_pdf
