import time
from dataclasses import asdict, dataclass
from datetime import date, datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote

import requests
from loguru import logger

from xoso import config
from xoso.date_utils import DateManager
from xoso.models import ResultSet
from xoso.provinces import REGION_CODES, REGION_KEYS, REGIONS, normalize_region
from xoso.result_cache import ResultCache
from xoso.result_parser import parse_result_html


# ============================================================================
# SOURCE STATUS DIAGNOSTICS
# ============================================================================

class SourceStatus(str, Enum):
    """Diagnostic status codes for a single source attempt."""
    SUCCESS = "SUCCESS"                      # ✅ Page parsed into results
    NO_DATA = "NO_DATA"                      # ⏳ Page reachable but no results (not drawn / placeholder)
    BLOCKED_IP = "BLOCKED_IP"                # 🚫 403/429 from relay or site
    HTTP_ERROR = "HTTP_ERROR"                # ❌ Other non-success status
    TIMEOUT = "TIMEOUT"                      # ⏱️ Request exceeded timeout
    CONNECTION_ERROR = "CONNECTION_ERROR"    # 🌐 Network error
    PARSE_ERROR = "PARSE_ERROR"              # 🔧 Body could not be parsed
    UNKNOWN_ERROR = "UNKNOWN_ERROR"          # ❓ Anything else

    @property
    def is_transport_failure(self) -> bool:
        return self in (
            SourceStatus.BLOCKED_IP,
            SourceStatus.HTTP_ERROR,
            SourceStatus.TIMEOUT,
            SourceStatus.CONNECTION_ERROR,
            SourceStatus.UNKNOWN_ERROR,
        )


@dataclass
class SourceDiagnostic:
    """Outcome of one source attempt."""
    source: str
    status: SourceStatus
    success: bool
    region: Optional[str] = None
    http_status: Optional[int] = None
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None
    diagnostic_message: str = ""
    result_count: int = 0

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        result = asdict(self)
        result['status'] = self.status.value
        return result


def _get_status_emoji(status: SourceStatus) -> str:
    """Return emoji for status code."""
    emoji_map = {
        SourceStatus.SUCCESS: "✅",
        SourceStatus.NO_DATA: "⏳",
        SourceStatus.BLOCKED_IP: "🚫",
        SourceStatus.HTTP_ERROR: "❌",
        SourceStatus.TIMEOUT: "⏱️",
        SourceStatus.CONNECTION_ERROR: "🌐",
        SourceStatus.PARSE_ERROR: "🔧",
        SourceStatus.UNKNOWN_ERROR: "❓",
    }
    return emoji_map.get(status, "❓")


# ============================================================================
# SOURCE DESCRIPTORS
# ============================================================================

@dataclass(frozen=True)
class ResultSource:
    """
    One external result site.

    url_template placeholders: {dd} {mm} {yyyy} {region_path} {region_code}
    """
    name: str
    url_template: str

    def build_url(self, day: date, region: str) -> str:
        return self.url_template.format(
            dd=f"{day.day:02d}",
            mm=f"{day.month:02d}",
            yyyy=f"{day.year:04d}",
            region_path=REGION_KEYS[region],
            region_code=REGION_CODES[region],
        )


# Priority order; the first source that parses wins.
RESULT_SOURCES: Tuple[ResultSource, ...] = (
    ResultSource("minhngoc", "https://www.minhngoc.net.vn/ket-qua-xo-so/{region_path}/{dd}-{mm}-{yyyy}.html"),
    ResultSource("kqxs", "https://kqxs.vn/xo-so-{region_path}/{dd}-{mm}-{yyyy}"),
    ResultSource("xoso_me", "https://xoso.me/xskt/ngay-{dd}-{mm}-{yyyy}.html"),
    ResultSource("ketqua", "https://ketqua.net/xo-so-{region_path}-{dd}-{mm}-{yyyy}.html"),
    ResultSource("xskt", "https://xskt.com.vn/xskq-xo-so-ket-qua/{region_code}-{dd}-{mm}-{yyyy}.html"),
)

REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def _coerce_date(value: Union[str, date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return DateManager.parse_query_date(value)


# ============================================================================
# FETCHER
# ============================================================================

class ResultFetcher:
    """
    Resolves ResultSets for (date, region) queries: cache first, then the
    ordered source chain through the CORS relay.

    Sources are tried strictly one after another. Every per-source failure is
    recorded as a SourceDiagnostic and the loop moves on; nothing escapes
    fetch().
    """

    def __init__(self, cache: Optional[ResultCache] = None,
                 session: Optional[requests.Session] = None,
                 sources: Sequence[ResultSource] = RESULT_SOURCES,
                 proxy_url: Optional[str] = None,
                 timeout: Optional[float] = None,
                 batch_delay: Optional[float] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.cache = cache
        self.session = session or requests.Session()
        self.sources = tuple(sources)
        self.proxy_url = proxy_url if proxy_url is not None else config.get_cors_proxy_url()
        self.timeout = timeout if timeout is not None else config.get_source_timeout()
        self.batch_delay = batch_delay if batch_delay is not None else config.get_prefetch_delay()
        self._sleep = sleep

    def relay_url(self, target_url: str) -> str:
        return f"{self.proxy_url}{quote(target_url, safe='')}"

    def check_source(self, source: ResultSource, day: date, region: str) -> Tuple[ResultSet, SourceDiagnostic]:
        """
        Request one source through the relay and parse it.

        Never raises: all failures come back as a diagnostic with an empty ResultSet.
        """
        date_str = DateManager.format_query_date(day)
        start_time = time.time()

        def _elapsed() -> int:
            return int((time.time() - start_time) * 1000)

        def _fail(status: SourceStatus, message: str, http_status: Optional[int] = None,
                  error: Optional[str] = None) -> Tuple[ResultSet, SourceDiagnostic]:
            return {}, SourceDiagnostic(
                source=source.name,
                status=status,
                success=False,
                region=region,
                http_status=http_status,
                response_time_ms=_elapsed(),
                error_message=error,
                diagnostic_message=message,
            )

        try:
            url = self.relay_url(source.build_url(day, region))
            response = self.session.get(url, headers=REQUEST_HEADERS, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            return _fail(SourceStatus.TIMEOUT, f"No response within {self.timeout}s", error=str(e))
        except requests.exceptions.RequestException as e:
            return _fail(SourceStatus.CONNECTION_ERROR, "Network error reaching relay", error=str(e))
        except Exception as e:
            return _fail(SourceStatus.UNKNOWN_ERROR, "Unexpected error during request", error=str(e))

        status_code = response.status_code
        if status_code in (403, 429):
            return _fail(SourceStatus.BLOCKED_IP, f"Blocked or rate limited (HTTP {status_code})", status_code)
        if status_code < 200 or status_code >= 300:
            return _fail(SourceStatus.HTTP_ERROR, f"Non-success status (HTTP {status_code})", status_code)

        try:
            results = parse_result_html(response.text, date_str, region)
        except Exception as e:
            return _fail(SourceStatus.PARSE_ERROR, "Could not parse page", status_code, str(e))

        if not results:
            return _fail(SourceStatus.NO_DATA, "Page has no recognizable results", status_code)

        count = sum(r.number_count() for r in results.values())
        return results, SourceDiagnostic(
            source=source.name,
            status=SourceStatus.SUCCESS,
            success=True,
            region=region,
            http_status=status_code,
            response_time_ms=_elapsed(),
            diagnostic_message=f"{count} prize numbers parsed",
            result_count=count,
        )

    def fetch_region(self, day: date, region: str, batch: bool = False) -> Tuple[ResultSet, List[SourceDiagnostic]]:
        """
        Walk the source chain for one region, stopping at the first success.
        """
        date_str = DateManager.format_query_date(day)
        logger.info(f"🔍 [SOURCE CHECK] {date_str} region={region}")

        diagnostics: List[SourceDiagnostic] = []
        total = len(self.sources)

        for idx, source in enumerate(self.sources, start=1):
            if batch and idx > 1 and self.batch_delay > 0:
                self._sleep(self.batch_delay)

            results, diagnostic = self.check_source(source, day, region)
            diagnostics.append(diagnostic)

            log_parts = [f"   {_get_status_emoji(diagnostic.status)} {idx}/{total} {source.name}: {diagnostic.status.value}"]
            if diagnostic.http_status:
                log_parts.append(f"HTTP:{diagnostic.http_status}")
            if diagnostic.response_time_ms is not None:
                log_parts.append(f"({diagnostic.response_time_ms}ms)")
            logger.info(" | ".join(log_parts))
            if diagnostic.error_message:
                logger.debug(f"      → {diagnostic.error_message}")

            if diagnostic.success:
                logger.info(f"✅ {date_str}/{region} resolved via {source.name}")
                return results, diagnostics

        logger.info(f"❌ {date_str}/{region} not found in any source")
        return {}, diagnostics

    def fetch_with_diagnostics(self, when: Union[str, date, datetime], region: Optional[str] = None,
                               batch: bool = False) -> Dict:
        """
        Resolve a ResultSet and report how.

        Returns:
            {
                'results': ResultSet,
                'from_cache': bool,
                'diagnostics': [SourceDiagnostic, ...]
            }
        """
        day = _coerce_date(when)
        region_key = normalize_region(region)
        date_str = DateManager.format_query_date(day)

        if self.cache is not None:
            cached = self.cache.get(date_str, region_key)
            if cached:
                return {'results': cached, 'from_cache': True, 'diagnostics': []}

        regions = [region_key] if region_key else list(REGIONS)
        merged: ResultSet = {}
        diagnostics: List[SourceDiagnostic] = []

        for idx, current in enumerate(regions):
            if batch and idx > 0 and self.batch_delay > 0:
                self._sleep(self.batch_delay)
            results, region_diagnostics = self.fetch_region(day, current, batch=batch)
            merged.update(results)
            diagnostics.extend(region_diagnostics)

        if merged and self.cache is not None:
            self.cache.put(date_str, region_key, merged)

        return {'results': merged, 'from_cache': False, 'diagnostics': diagnostics}

    def fetch(self, when: Union[str, date, datetime], region: Optional[str] = None,
              batch: bool = False) -> ResultSet:
        """
        ResultSet for the date/region; {} when nothing could be resolved.
        """
        try:
            return self.fetch_with_diagnostics(when, region, batch=batch)['results']
        except Exception as e:
            logger.error(f"Result fetch failed for {when}/{region}: {e}")
            return {}

    def prefetch(self, days: int, region: Optional[str] = "south", start: Optional[date] = None) -> Dict:
        """
        Warm the cache for the last `days` days, newest first.

        Returns:
            {
                'summary': {'total', 'cached', 'fetched', 'noData', 'errors'},
                'results': [{'date', 'status', 'count'}, ...]
            }
        """
        region_key = normalize_region(region)
        rows: List[Dict] = []

        window = DateManager.days_back(days, start)
        for idx, day in enumerate(window):
            date_str = DateManager.format_query_date(day)
            try:
                if self.cache is not None:
                    cached = self.cache.get(date_str, region_key)
                    if cached:
                        rows.append({'date': date_str, 'status': 'cached', 'count': len(cached)})
                        continue

                outcome = self.fetch_with_diagnostics(day, region_key, batch=True)
                results = outcome['results']
                if results:
                    rows.append({'date': date_str, 'status': 'fetched', 'count': len(results)})
                elif outcome['diagnostics'] and all(d.status.is_transport_failure for d in outcome['diagnostics']):
                    rows.append({'date': date_str, 'status': 'error', 'count': 0})
                else:
                    rows.append({'date': date_str, 'status': 'no_data', 'count': 0})

                if self.batch_delay > 0 and idx < len(window) - 1:
                    self._sleep(self.batch_delay)
            except Exception as e:
                logger.error(f"Prefetch failed for {date_str}: {e}")
                rows.append({'date': date_str, 'status': 'error', 'count': 0})

        summary = {
            'total': len(rows),
            'cached': sum(1 for r in rows if r['status'] == 'cached'),
            'fetched': sum(1 for r in rows if r['status'] == 'fetched'),
            'noData': sum(1 for r in rows if r['status'] == 'no_data'),
            'errors': sum(1 for r in rows if r['status'] == 'error'),
        }
        logger.info(f"Prefetch {region_key or 'all'} x{days}: {summary}")
        return {'summary': summary, 'results': rows}
