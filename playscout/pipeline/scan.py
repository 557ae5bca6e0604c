"""One scan: keywords -> candidates -> metadata -> publisher map.

Upstream calls are strictly sequential (keyword order, then candidate order).
Per-candidate failures are recorded and skipped; the cancel signal is checked
before every upstream call so an aborted request stops promptly.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from playscout.analytics.publishers import PublisherAggregate, merge, select
from playscout.catalog.metadata import MetadataResolver, page_resolver, scraper_resolver
from playscout.catalog.sources import (
    ListingSource,
    PageSearchSource,
    SearchSource,
    SeedSource,
    SourceChain,
)
from playscout.config import (
    DEFAULT_KEYWORDS,
    PER_KEYWORD_BOUNDS,
    EmptyFallbackPolicy,
    FilterPolicy,
    ScoutConfig,
    SourceMode,
)
from playscout.errors import ResolutionError, RunFailure, ScoutError
from playscout.reporting.csv_report import Report, RunDiagnostics, render_report

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    publishers: Dict[str, PublisherAggregate] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    total_candidates_seen: int = 0
    keywords: List[str] = field(default_factory=list)
    per_keyword: int = 0
    cancelled: bool = False

    def diagnostics(self) -> RunDiagnostics:
        return RunDiagnostics(
            keywords=tuple(self.keywords),
            per_keyword=self.per_keyword,
            total_apps_seen=self.total_candidates_seen,
            total_developers=len(self.publishers),
            errors=tuple(self.errors),
            cancelled=self.cancelled,
        )


def parse_keywords(raw: Optional[str]) -> List[str]:
    if raw is None or not str(raw).strip():
        return list(DEFAULT_KEYWORDS)
    keywords = [k.strip() for k in str(raw).split(",")]
    return [k for k in keywords if k]


def clamp_per(raw: Any, default: int, upper: int) -> int:
    try:
        value = int(str(raw).strip()) if raw is not None and str(raw).strip() else default
    except ValueError:
        value = default
    return max(1, min(upper, value))


class Scanner:
    def __init__(
        self,
        sources: SourceChain,
        resolver: MetadataResolver,
        *,
        budget_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sources = sources
        self.resolver = resolver
        self.budget_seconds = budget_seconds
        self.clock = clock

    def run(
        self,
        keywords: List[str],
        per_keyword: int,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunResult:
        result = RunResult(keywords=list(keywords), per_keyword=per_keyword)
        started = self.clock()

        def should_stop() -> bool:
            if cancel_event is not None and cancel_event.is_set():
                return True
            if self.budget_seconds and (self.clock() - started) > self.budget_seconds:
                return True
            return False

        try:
            for keyword in keywords:
                if should_stop():
                    result.cancelled = True
                    break
                candidates = self.sources.fetch_candidates(keyword, per_keyword, should_stop=should_stop)
                # an empty chain result may mean the stop fired mid-chain
                if not candidates and should_stop():
                    result.cancelled = True
                    break
                result.total_candidates_seen += len(candidates)
                for cand in candidates:
                    if should_stop():
                        result.cancelled = True
                        break
                    try:
                        meta = self.resolver.resolve(cand.app_id)
                    except ResolutionError as e:
                        logger.info("Skipping %s: %s", cand.app_id, e.reason)
                        result.errors.append(str(e))
                        continue
                    merge(result.publishers, meta)
                if result.cancelled:
                    break
        except ScoutError:
            raise
        except Exception as e:
            raise RunFailure(f"scan failed: {e}") from e

        if result.cancelled:
            logger.warning("Scan cancelled after %d candidates", result.total_candidates_seen)
        logger.info(
            "Scan done: keywords=%d candidates=%d publishers=%d errors=%d",
            len(keywords),
            result.total_candidates_seen,
            len(result.publishers),
            len(result.errors),
        )
        return result


def build_report(
    result: RunResult,
    filter_policy: FilterPolicy = FilterPolicy.INACTIVE_ONLY,
    empty_fallback: EmptyFallbackPolicy = EmptyFallbackPolicy.DIAGNOSTIC_JSON,
    *,
    now: Optional[int] = None,
) -> Report:
    rows = select(result.publishers, filter_policy, now=now)
    return render_report(rows, empty_fallback, result.diagnostics())


def build_sources(mode: SourceMode, config: ScoutConfig) -> SourceChain:
    default, upper = PER_KEYWORD_BOUNDS[mode]
    common = dict(lang=config.lang, country=config.country, attempts=config.upstream_attempts)
    listing = ListingSource(max_limit=upper, timeout=config.http_timeout, **common)
    if mode == SourceMode.SCRAPE:
        search = PageSearchSource(max_limit=upper, timeout=config.http_timeout, **common)
    else:
        search = SearchSource(max_limit=upper, **common)
    return SourceChain(strategies=[listing, search, SeedSource()], default_limit=default)


def build_resolver(mode: SourceMode, config: ScoutConfig) -> MetadataResolver:
    if mode == SourceMode.SCRAPE:
        return page_resolver(
            lang=config.lang, country=config.country, attempts=config.upstream_attempts,
            timeout=config.http_timeout,
        )
    return scraper_resolver(lang=config.lang, country=config.country, attempts=config.upstream_attempts)


def build_scanner(mode: SourceMode, config: ScoutConfig) -> Scanner:
    return Scanner(
        build_sources(mode, config),
        build_resolver(mode, config),
        budget_seconds=config.run_budget_seconds or None,
    )
