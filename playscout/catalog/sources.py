"""Candidate app sources and the ordered fallback chain.

Each strategy has the same contract: ``fetch(keyword, limit)`` returns a
non-empty list of ``AppCandidate`` or raises. The chain tries strategies in
order, turns every failure into ``SourceUnavailable`` and moves on; the seed
strategy at the end never fails, so a chain always yields something.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Sequence

from google_play_scraper import search as gp_search

from playscout.catalog.app_types import AppCandidate
from playscout.catalog.page_parse import extract_app_ids
from playscout.catalog.upstream import PLAY_BASE, Timeout, call_with_retry, fetch_page
from playscout.errors import SourceUnavailable

logger = logging.getLogger(__name__)

STATIC_SEED = (
    "com.whatsapp",
    "com.facebook.katana",
    "com.instagram.android",
    "com.google.android.apps.maps",
    "com.mxtech.videoplayer.ad",
)

_ID_KEYS = ("appId", "app_id", "app", "id")


def candidate_id(record: Any) -> Optional[str]:
    """App id from a record whose shape varies between client versions."""
    if isinstance(record, str):
        return record.strip() or None
    if isinstance(record, AppCandidate):
        return record.app_id
    if not isinstance(record, dict):
        return None
    for k in _ID_KEYS:
        v = record.get(k)
        if v is not None and str(v).strip():
            return str(v).strip()
    return None


def candidates_from(records: Iterable[Any], source: str, limit: int) -> List[AppCandidate]:
    seen = set()
    out: List[AppCandidate] = []
    for r in records:
        app_id = candidate_id(r)
        if not app_id or app_id in seen:
            continue
        seen.add(app_id)
        out.append(AppCandidate(app_id=app_id, source=source))
        if len(out) >= limit:
            break
    return out


class BaseSource:
    name: str = "base"
    max_limit: int = 100

    def bounded(self, limit: int) -> int:
        return min(max(int(limit), 1), self.max_limit)

    def fetch(self, keyword: str, limit: int) -> List[AppCandidate]:
        raise NotImplementedError


@dataclass(frozen=True)
class ListingSource(BaseSource):
    """Popularity-ranked collection listing.

    The listing is keyword-agnostic: ``keyword`` is accepted for the uniform
    contract and ignored, so every keyword gets the same generic set.
    """

    lang: str = "en"
    country: str = "in"
    collection: str = "topselling_free"
    category: str = "APPLICATION"
    max_limit: int = 100
    attempts: int = 2
    timeout: Timeout = (5, 15)
    get_page: Callable[..., str] = fetch_page

    name: str = "listing"

    def fetch(self, keyword: str, limit: int) -> List[AppCandidate]:
        url = f"{PLAY_BASE}/store/apps/category/{self.category}/collection/{self.collection}"
        html = call_with_retry(
            self.get_page,
            url,
            params={"hl": self.lang, "gl": self.country},
            timeout=self.timeout,
            attempts=self.attempts,
        )
        return candidates_from(extract_app_ids(html), self.name, self.bounded(limit))


@dataclass(frozen=True)
class SearchSource(BaseSource):
    """Keyword search through the structured google-play-scraper client."""

    lang: str = "en"
    country: str = "in"
    max_limit: int = 100
    attempts: int = 2
    search_fn: Callable[..., Any] = gp_search

    name: str = "search"

    def fetch(self, keyword: str, limit: int) -> List[AppCandidate]:
        n = self.bounded(limit)
        results = call_with_retry(
            self.search_fn, keyword, n_hits=n, lang=self.lang, country=self.country, attempts=self.attempts
        )
        if not isinstance(results, (list, tuple)):
            raise SourceUnavailable(self.name, f"malformed response ({type(results).__name__})")
        return candidates_from(results, self.name, n)


@dataclass(frozen=True)
class PageSearchSource(BaseSource):
    """Keyword search by scraping the store search results page."""

    lang: str = "en"
    country: str = "in"
    max_limit: int = 50
    attempts: int = 2
    timeout: Timeout = (5, 15)
    get_page: Callable[..., str] = fetch_page

    name: str = "page_search"

    def fetch(self, keyword: str, limit: int) -> List[AppCandidate]:
        html = call_with_retry(
            self.get_page,
            f"{PLAY_BASE}/store/search",
            params={"q": keyword, "c": "apps", "hl": self.lang, "gl": self.country},
            timeout=self.timeout,
            attempts=self.attempts,
        )
        return candidates_from(extract_app_ids(html), self.name, self.bounded(limit))


@dataclass(frozen=True)
class SeedSource(BaseSource):
    seed: Sequence[str] = STATIC_SEED
    max_limit: int = 100

    name: str = "seed"

    def fetch(self, keyword: str, limit: int) -> List[AppCandidate]:
        return candidates_from(self.seed, self.name, self.bounded(limit))


@dataclass
class SourceChain:
    """Ordered fallback over source strategies; first non-empty result wins."""

    strategies: List[BaseSource] = field(default_factory=list)
    default_limit: int = 20

    @property
    def max_limit(self) -> int:
        bounds = [s.max_limit for s in self.strategies if not isinstance(s, SeedSource)]
        return min(bounds) if bounds else 100

    def attempt(self, strategy: BaseSource, keyword: str, limit: int) -> List[AppCandidate]:
        try:
            found = strategy.fetch(keyword, limit)
        except SourceUnavailable:
            raise
        except Exception as e:
            raise SourceUnavailable(strategy.name, str(e) or e.__class__.__name__) from e
        if not isinstance(found, (list, tuple)):
            raise SourceUnavailable(strategy.name, "non-sequence result")
        if not found:
            raise SourceUnavailable(strategy.name, "empty result")
        return list(found)

    def fetch_candidates(
        self,
        keyword: str,
        limit: int,
        *,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> List[AppCandidate]:
        for strategy in self.strategies:
            if should_stop is not None and should_stop():
                return []
            try:
                found = self.attempt(strategy, keyword, limit)
            except SourceUnavailable as e:
                logger.warning("Source unavailable for keyword %r: %s", keyword, e)
                continue
            logger.info("Keyword %r: %d candidates from %s", keyword, len(found), strategy.name)
            return found[:limit]
        return []
