import base64
import io

import pytest
from PIL import Image

from conftest import FakeOcrEngine

from xoso.image_preprocessor import ImagePreprocessor
from xoso.ticket_processor import OcrError, TicketProcessor, decode_image_payload


def _png_bytes(width=400, height=200, color=(200, 200, 200)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class StubGemini:
    def __init__(self, result):
        self.result = result
        self.received = None

    def process_ticket_image(self, image_data):
        self.received = image_data
        return self.result


def test_decode_image_payload():
    raw = b"\x89PNG fake"
    encoded = base64.b64encode(raw).decode("ascii")
    assert decode_image_payload(encoded) == raw
    assert decode_image_payload(f"data:image/png;base64,{encoded}") == raw
    with pytest.raises(OcrError) as exc:
        decode_image_payload("   ")
    assert exc.value.status_code == 400


def test_auto_mode_prefers_cloud_when_configured():
    gemini = StubGemini({"success": True, "numbers": ["123456"], "date": "2024-10-21",
                         "province": "can-tho", "rawText": "", "modelUsed": "gemini-2.0-flash"})
    engine = FakeOcrEngine()
    processor = TicketProcessor(gemini_service=gemini, local_engine=engine)

    assert processor.resolve_mode("auto") == "gemini"
    result = processor.process_ticket_image(_png_bytes(1600, 800), "auto")

    assert result["engine"] == "gemini"
    assert result["numbers"] == ["123456"]
    assert engine.calls == 0
    # uploaded image is downscaled JPEG
    uploaded = Image.open(io.BytesIO(gemini.received))
    assert uploaded.format == "JPEG"
    assert uploaded.size[0] == 500


def test_cloud_failures_map_to_status_codes():
    limited = TicketProcessor(
        gemini_service=StubGemini({"success": False, "error": "quota", "rate_limited": True}),
        local_engine=FakeOcrEngine(),
    )
    with pytest.raises(OcrError) as exc:
        limited.process_ticket_image(_png_bytes(), "gemini")
    assert exc.value.status_code == 429

    broken = TicketProcessor(
        gemini_service=StubGemini({"success": False, "error": "down", "rate_limited": False}),
        local_engine=FakeOcrEngine(),
    )
    with pytest.raises(OcrError) as exc:
        broken.process_ticket_image(_png_bytes(), "gemini")
    assert exc.value.status_code == 502


def test_gemini_mode_without_key():
    processor = TicketProcessor(gemini_service=None, local_engine=FakeOcrEngine())
    assert processor.resolve_mode("auto") == "tesseract"
    with pytest.raises(OcrError) as exc:
        processor.process_ticket_image(_png_bytes(), "gemini")
    assert exc.value.status_code == 503


def test_local_engine_failure_is_reported():
    class Exploding(FakeOcrEngine):
        def recognize(self, image_data):
            raise RuntimeError("tesseract missing")

    processor = TicketProcessor(gemini_service=None, local_engine=Exploding())
    with pytest.raises(OcrError) as exc:
        processor.process_ticket_image(_png_bytes(), "tesseract")
    assert exc.value.status_code == 500


def test_prepare_for_ocr_binarizes_and_upscales():
    image = ImagePreprocessor().prepare_for_ocr(_png_bytes(400, 200))
    assert image.mode == "L"
    assert image.size == (1200, 600)
    assert set(image.getdata()) <= {0, 255}


def test_unreadable_image():
    with pytest.raises(ValueError):
        ImagePreprocessor().load(b"definitely not an image")
    # compression leaves bytes it cannot decode untouched
    assert ImagePreprocessor().compress_for_upload(b"junk") == b"junk"
