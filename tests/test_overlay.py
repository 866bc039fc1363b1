from io import BytesIO

import pytest
from pypdf import PdfReader

from app.core.errors import OverlayError
from app.models import WatermarkAppearance
from app.services.overlay_service import OverlayGenerator, reference_page_size


@pytest.mark.parametrize(
    "sizes, expected",
    [
        ([(612, 792)], (612, 792)),
        ([(612, 792), (300, 400)], (300, 400)),
        ([(612, 792), (300, 400), (500, 700)], (500, 700)),
        ([(612, 792), (300, 400), (500, 700), (200, 200)], (500, 700)),
    ],
)
def test_reference_page_is_third_or_last(pdf_factory, sizes, expected):
    assert reference_page_size(pdf_factory(sizes)) == expected


def test_overlay_page_matches_reference(pdf_factory):
    source = pdf_factory([(612, 792), (300, 400), (500, 700)])
    overlay = OverlayGenerator().build(source, "For Alice", WatermarkAppearance())

    reader = PdfReader(BytesIO(overlay))
    assert len(reader.pages) == 1
    box = reader.pages[0].mediabox
    assert (float(box.width), float(box.height)) == (500, 700)


def test_overlay_text_is_uppercased(pdf_factory):
    source = pdf_factory([(612, 792)])
    overlay = OverlayGenerator().build(source, "For Alice", WatermarkAppearance(angle=0))

    text = PdfReader(BytesIO(overlay)).pages[0].extract_text()
    assert "FOR ALICE" in text
    assert "For Alice" not in text


def test_unreadable_source_raises_overlay_error():
    with pytest.raises(OverlayError):
        OverlayGenerator().build(b"definitely not a pdf", "x", WatermarkAppearance())
