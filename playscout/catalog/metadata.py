"""App metadata resolution and normalization.

Two fetch mechanisms are supported: the structured ``google-play-scraper``
client and raw detail-page scraping. Each has one normalizer that maps its
record shape onto ``AppMetadata``; the publisher-id and timestamp rules are
shared so both mechanisms behave the same downstream.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping, Optional, Tuple

from google_play_scraper import app as gp_app

from playscout.catalog.app_types import AppMetadata
from playscout.catalog.page_parse import parse_detail_page
from playscout.catalog.upstream import PLAY_BASE, Timeout, call_with_retry, fetch_page
from playscout.errors import ResolutionError

logger = logging.getLogger(__name__)

_TEXT_DATE_FORMATS = (
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%Y/%m/%d",
)

# numbers above this are taken as epoch milliseconds, below as seconds
_MS_THRESHOLD = 100_000_000_000


def _to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return max(0, int(dt.timestamp() * 1000))


# last instant a report can still render as a calendar date
_MAX_MS = _to_ms(datetime(9999, 12, 31, 23, 59, 59))


def parse_update_ms(value: Any) -> int:
    """Parse a date-like upstream value into epoch ms; 0 when unknown."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, datetime):
        return _to_ms(value)
    if isinstance(value, date):
        return _to_ms(datetime(value.year, value.month, value.day))
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value <= 0:
            return 0
        ms = int(value) if value >= _MS_THRESHOLD else int(value * 1000)
        return ms if ms <= _MAX_MS else 0
    s = str(value).strip()
    if not s:
        return 0
    if s.isdigit():
        return parse_update_ms(int(s))
    low = s.lower()
    for prefix in ("updated on", "updated"):
        if low.startswith(prefix):
            s = s[len(prefix):].strip(" :")
            break
    try:
        return _to_ms(datetime.fromisoformat(s.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _TEXT_DATE_FORMATS:
        try:
            return _to_ms(datetime.strptime(s, fmt))
        except ValueError:
            continue
    return 0


def _first_non_empty(raw: Mapping[str, Any], *keys: str) -> str:
    for k in keys:
        v = raw.get(k)
        if v is None:
            continue
        s = str(v).strip()
        if s:
            return s
    return ""


def publisher_identity(explicit_id: str, display_name: str) -> Tuple[str, str]:
    """Return (publisher_id, publisher_name).

    Falls back to the display name, then to a synthesized ``unknown:`` key, so
    unidentified publishers with different names never share a bucket.
    """
    name = (display_name or "").strip()
    pid = (explicit_id or "").strip() or name or f"unknown:{name or 'no-name'}"
    return pid, name


def _require_mapping(raw: Any, app_id: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping) or not raw:
        raise ResolutionError(app_id, "empty or malformed metadata response")
    return raw


def normalize_scraper_record(raw: Any, app_id: str) -> AppMetadata:
    """Normalize a ``google_play_scraper.app`` result."""
    rec = _require_mapping(raw, app_id)
    pid, name = publisher_identity(
        _first_non_empty(rec, "developerId", "developer_id", "developerIdRaw"),
        _first_non_empty(rec, "developer", "developerName", "author"),
    )
    updated = rec.get("updated")
    if updated in (None, "", 0):
        updated = rec.get("lastUpdatedOn")
    return AppMetadata(
        app_id=_first_non_empty(rec, "appId", "app_id") or app_id,
        publisher_id=pid,
        publisher_name=name,
        title=_first_non_empty(rec, "title", "name"),
        last_updated_ms=parse_update_ms(updated),
    )


def normalize_page_record(raw: Any, app_id: str) -> AppMetadata:
    """Normalize a record produced by ``parse_detail_page``."""
    rec = _require_mapping(raw, app_id)
    pid, name = publisher_identity(
        _first_non_empty(rec, "developerId"),
        _first_non_empty(rec, "developer"),
    )
    updated_ms = parse_update_ms(rec.get("dateModified")) or parse_update_ms(rec.get("updatedLabel"))
    return AppMetadata(
        app_id=app_id,
        publisher_id=pid,
        publisher_name=name,
        title=_first_non_empty(rec, "title"),
        last_updated_ms=updated_ms,
    )


@dataclass(frozen=True)
class ScraperAppFetcher:
    lang: str = "en"
    country: str = "in"
    attempts: int = 2
    app_fn: Callable[..., Any] = gp_app

    def __call__(self, app_id: str) -> Any:
        return call_with_retry(self.app_fn, app_id, lang=self.lang, country=self.country, attempts=self.attempts)


@dataclass(frozen=True)
class PageAppFetcher:
    lang: str = "en"
    country: str = "in"
    attempts: int = 2
    timeout: Timeout = (5, 15)
    get_page: Callable[..., str] = fetch_page

    def __call__(self, app_id: str) -> Any:
        html = call_with_retry(
            self.get_page,
            f"{PLAY_BASE}/store/apps/details",
            params={"id": app_id, "hl": self.lang, "gl": self.country},
            timeout=self.timeout,
            attempts=self.attempts,
        )
        return parse_detail_page(html)


class MetadataResolver:
    """Fetch + normalize one app; every failure becomes ``ResolutionError``."""

    def __init__(self, fetch: Callable[[str], Any], normalize: Callable[[Any, str], AppMetadata]):
        self.fetch = fetch
        self.normalize = normalize

    def resolve(self, app_id: str) -> AppMetadata:
        try:
            raw = self.fetch(app_id)
        except Exception as e:
            raise ResolutionError(app_id, str(e) or e.__class__.__name__) from e
        try:
            return self.normalize(raw, app_id)
        except ResolutionError:
            raise
        except Exception as e:
            raise ResolutionError(app_id, f"unusable metadata: {e}") from e


def scraper_resolver(*, lang: str = "en", country: str = "in", attempts: int = 2,
                     app_fn: Optional[Callable[..., Any]] = None) -> MetadataResolver:
    fetcher = ScraperAppFetcher(lang=lang, country=country, attempts=attempts, app_fn=app_fn or gp_app)
    return MetadataResolver(fetcher, normalize_scraper_record)


def page_resolver(*, lang: str = "en", country: str = "in", attempts: int = 2, timeout: Timeout = (5, 15),
                  get_page: Optional[Callable[..., str]] = None) -> MetadataResolver:
    fetcher = PageAppFetcher(lang=lang, country=country, attempts=attempts, timeout=timeout,
                             get_page=get_page or fetch_page)
    return MetadataResolver(fetcher, normalize_page_record)
