from io import BytesIO

from pypdf import PdfReader

from app.models import WatermarkAppearance, WatermarkRequest
from app.services.overlay_service import OverlayGenerator
from app.services.watermark_service import WatermarkService
from app.storage.sessions import SessionState


def _request(source, phrases, **appearance):
    return WatermarkRequest(source=source, phrases=phrases, appearance=WatermarkAppearance(**appearance))


def test_one_output_per_phrase_in_order(sample_pdf, fake_compositor, session_store):
    session = session_store.create()
    service = WatermarkService(fake_compositor)

    paths = service.process(_request(sample_pdf, ["For Alice", "For Bob"]), session)

    assert [path.name for path in paths] == ["For_Alice.pdf", "For_Bob.pdf"]
    assert all(path.parent == session.output_dir for path in paths)
    assert paths[0].read_bytes() == b"%PDF-1.4 result 1"
    assert paths[1].read_bytes() == b"%PDF-1.4 result 2"
    assert session.state == SessionState.populating


def test_blank_phrases_skipped(sample_pdf, fake_compositor, session_store):
    session = session_store.create()
    paths = WatermarkService(fake_compositor).process(_request(sample_pdf, ["One", "   ", "Two"]), session)

    assert len(paths) == 2
    assert len(fake_compositor.calls) == 2


def test_duplicate_slugs_do_not_overwrite(sample_pdf, fake_compositor, session_store):
    session = session_store.create()
    paths = WatermarkService(fake_compositor).process(
        _request(sample_pdf, ["For Alice", "For Alice!", "for alice"]), session
    )

    assert [path.name for path in paths] == ["For_Alice.pdf", "For_Alice_2.pdf", "for_alice_3.pdf"]
    assert len({path.read_bytes() for path in paths}) == 3


def test_source_and_overlay_passed_to_compositor(sample_pdf, fake_compositor, session_store):
    session = session_store.create()
    WatermarkService(fake_compositor).process(_request(sample_pdf, ["For Alice"], angle=0, font_size=18), session)

    call = fake_compositor.calls[0]
    assert call["source"] == sample_pdf
    assert call["appearance"].font_size == 18
    overlay_text = PdfReader(BytesIO(call["overlay"])).pages[0].extract_text()
    assert "FOR ALICE" in overlay_text


class StubOverlayGenerator(OverlayGenerator):
    def build(self, source, phrase, appearance):
        return b"overlay for " + phrase.encode()


def test_overlay_generator_defaults_and_can_be_replaced(sample_pdf, fake_compositor, session_store):
    assert isinstance(WatermarkService(fake_compositor).overlay_generator, OverlayGenerator)

    service = WatermarkService(fake_compositor, overlay_generator=StubOverlayGenerator())
    service.process(_request(sample_pdf, ["For Alice"]), session_store.create())

    assert fake_compositor.calls[0]["overlay"] == b"overlay for For Alice"
