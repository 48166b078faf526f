import base64
import os
import sys
from types import SimpleNamespace

import pytest

# Ensure repository root is on sys.path so `import xoso.*` works during tests
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

# One southern draw, tier by tier: ĐB, G1, G2, G3 x2, G4 x7, G5, G6 x3, G7, G8
SOUTH_TOKENS = [
    "889246",
    "12345", "23456", "34567", "45678",
    "56789", "67890", "78901", "89012", "90123", "01234", "11223",
    "1234", "2345", "3456", "4567",
    "357",
    "42",
]


def render_page(tokens, extra=""):
    cells = "".join(f"<td>{t}</td>" for t in tokens)
    return f"<html><body><h1>Kết quả xổ số</h1>{extra}<table><tr>{cells}</tr></table></body></html>"


def mock_response(status_code: int, text: str = "") -> SimpleNamespace:
    return SimpleNamespace(status_code=status_code, text=text)


class FakeSession:
    """Stands in for requests.Session; `responder(url)` returns a response or an exception to raise."""

    def __init__(self, responder=None):
        self.calls = []
        self.responder = responder or (lambda url: mock_response(404))

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers, timeout))
        result = self.responder(url)
        if isinstance(result, Exception):
            raise result
        return result


class FakeRedis:
    """Minimal get/setex store."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value.encode("utf-8") if isinstance(value, str) else value
        self.ttls[key] = ttl


class FakeOcrEngine:
    """Local OCR replacement returning canned text."""

    def __init__(self, text="", confidence=80.0):
        from xoso.image_preprocessor import ImagePreprocessor

        self.preprocessor = ImagePreprocessor()
        self.text = text
        self.confidence = confidence
        self.calls = 0

    def recognize(self, image_data):
        self.calls += 1
        return {"text": self.text, "confidence": self.confidence}


@pytest.fixture()
def south_page():
    return render_page(SOUTH_TOKENS)


@pytest.fixture()
def fake_session():
    return FakeSession()


@pytest.fixture()
def ocr_engine():
    return FakeOcrEngine(text="XỔ SỐ KIẾN THIẾT Đồng Tháp\nNgày mở thưởng: 21/10/2024\nSố: 123456")


@pytest.fixture()
def fetcher(fake_session):
    from xoso.loader import ResultFetcher
    from xoso.result_cache import ResultCache

    return ResultFetcher(
        cache=ResultCache(),
        session=fake_session,
        proxy_url="https://relay.test/raw?url=",
        timeout=5,
        batch_delay=0,
    )


@pytest.fixture()
def fastapi_app(fetcher, ocr_engine, monkeypatch):
    # Keep the nightly prefetch job out of tests
    monkeypatch.setenv("PREFETCH_SCHEDULE_ENABLED", "false")
    from xoso.api import create_app
    from xoso.ticket_processor import TicketProcessor

    processor = TicketProcessor(gemini_service=None, local_engine=ocr_engine)
    return create_app(fetcher=fetcher, ticket_processor=processor)


@pytest.fixture()
def image_b64():
    return base64.b64encode(b"not-really-a-jpeg").decode("ascii")
