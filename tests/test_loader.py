from datetime import date

import requests
from conftest import SOUTH_TOKENS, FakeSession, mock_response, render_page

from xoso.loader import RESULT_SOURCES, ResultFetcher, SourceStatus
from xoso.models import LotteryResult
from xoso.result_cache import ResultCache

GOOD_PAGE = render_page(SOUTH_TOKENS)


def _fetcher(session, cache=None, **kwargs):
    kwargs.setdefault("batch_delay", 0)
    return ResultFetcher(
        cache=cache,
        session=session,
        proxy_url="https://relay.test/raw?url=",
        timeout=5,
        **kwargs,
    )


def _by_source(mapping, default=None):
    def responder(url):
        for name, response in mapping.items():
            if name in url:
                return response
        return default if default is not None else mock_response(404)
    return responder


def test_urls_go_through_relay_in_source_order(fake_session):
    fetcher = _fetcher(fake_session)
    fetcher.fetch(date(2024, 10, 21), "south")

    urls = [call[0] for call in fake_session.calls]
    assert len(urls) == len(RESULT_SOURCES)
    assert all(u.startswith("https://relay.test/raw?url=https%3A%2F%2F") for u in urls)
    assert "minhngoc" in urls[0] and "21-10-2024" in urls[0] and "mien-nam" in urls[0]
    assert "xsmn-21-10-2024" in urls[-1]
    assert all(call[2] == 5 for call in fake_session.calls)


def test_first_success_short_circuits():
    session = FakeSession(_by_source({
        "minhngoc": mock_response(500),
        "kqxs": mock_response(200, GOOD_PAGE),
    }))
    outcome = _fetcher(session).fetch_with_diagnostics("21-10-2024", "south")

    assert len(session.calls) == 2
    assert [d.status for d in outcome["diagnostics"]] == [SourceStatus.HTTP_ERROR, SourceStatus.SUCCESS]
    assert outcome["results"]["mien-nam"].prizes["Special"] == ["889246"]
    assert outcome["from_cache"] is False
    assert outcome["diagnostics"][1].result_count == len(SOUTH_TOKENS)


def test_every_failure_is_swallowed():
    session = FakeSession(_by_source({
        "minhngoc": requests.exceptions.Timeout("slow"),
        "kqxs": requests.exceptions.ConnectionError("refused"),
        "xoso.me": mock_response(403),
        "ketqua": mock_response(200, "<html>Đang chờ kết quả</html>"),
        "xskt": RuntimeError("boom"),
    }))
    fetcher = _fetcher(session)

    outcome = fetcher.fetch_with_diagnostics("21-10-2024", "south")
    assert outcome["results"] == {}
    assert [d.status for d in outcome["diagnostics"]] == [
        SourceStatus.TIMEOUT,
        SourceStatus.CONNECTION_ERROR,
        SourceStatus.BLOCKED_IP,
        SourceStatus.NO_DATA,
        SourceStatus.UNKNOWN_ERROR,
    ]
    assert fetcher.fetch("21-10-2024", "south") == {}


def test_failed_fetch_does_not_poison_cache():
    session = FakeSession(lambda url: mock_response(502))
    cache = ResultCache()
    fetcher = _fetcher(session, cache=cache)

    assert fetcher.fetch("21-10-2024", "south") == {}
    assert cache.get("21-10-2024", "south") is None

    session.responder = lambda url: mock_response(200, GOOD_PAGE)
    calls_before = len(session.calls)
    assert "mien-nam" in fetcher.fetch("21-10-2024", "south")
    assert len(session.calls) == calls_before + 1

    outcome = fetcher.fetch_with_diagnostics("21-10-2024", "south")
    assert outcome["from_cache"] is True
    assert outcome["diagnostics"] == []
    assert len(session.calls) == calls_before + 1


def test_all_regions_are_merged():
    session = FakeSession(lambda url: mock_response(200, GOOD_PAGE))
    cache = ResultCache()
    results = _fetcher(session, cache=cache).fetch(date(2024, 10, 21))

    assert set(results) == {"mien-nam", "mien-trung", "mien-bac"}
    assert results["mien-bac"].region == "north"
    assert cache.get("21-10-2024", None) is not None
    assert cache.get("21-10-2024", "south") is None


def test_batch_mode_paces_requests():
    sleeps = []
    session = FakeSession(lambda url: mock_response(500))
    fetcher = _fetcher(session, batch_delay=0.3, sleep=sleeps.append)

    fetcher.fetch("21-10-2024", "south")
    assert sleeps == []

    fetcher.fetch("21-10-2024", "south", batch=True)
    assert sleeps == [0.3] * (len(RESULT_SOURCES) - 1)


def test_prefetch_reports_each_day():
    def responder(url):
        if "21-10-2024" in url:
            return mock_response(200, GOOD_PAGE)
        if "20-10-2024" in url:
            return mock_response(500)
        return mock_response(200, "<html>Chưa có kết quả</html>")

    sleeps = []
    cache = ResultCache()
    cache.put("18-10-2024", "south", {
        "mien-nam": LotteryResult(name="Miền Nam", region="south", date="18-10-2024", prizes={"Tier8": ["11"]}),
    })
    fetcher = _fetcher(FakeSession(responder), cache=cache, batch_delay=0.3, sleep=sleeps.append)

    report = fetcher.prefetch(4, "south", start=date(2024, 10, 21))

    assert report["results"] == [
        {"date": "21-10-2024", "status": "fetched", "count": 1},
        {"date": "20-10-2024", "status": "error", "count": 0},
        {"date": "19-10-2024", "status": "no_data", "count": 0},
        {"date": "18-10-2024", "status": "cached", "count": 1},
    ]
    assert report["summary"] == {"total": 4, "cached": 1, "fetched": 1, "noData": 1, "errors": 1}
    assert sleeps and all(s == 0.3 for s in sleeps)
    assert cache.get("21-10-2024", "south") is not None
    assert cache.get("20-10-2024", "south") is None


def test_prefetch_does_not_wait_after_last_day():
    sleeps = []
    session = FakeSession(lambda url: mock_response(200, GOOD_PAGE))
    fetcher = _fetcher(session, cache=ResultCache(), batch_delay=0.3, sleep=sleeps.append)

    fetcher.prefetch(1, "south", start=date(2024, 10, 21))
    assert sleeps == []

    fetcher.prefetch(2, "south", start=date(2024, 10, 23))
    assert sleeps == [0.3]
