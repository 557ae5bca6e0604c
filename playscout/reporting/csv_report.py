"""CSV rendering for publisher reports, plus the empty-result fallbacks."""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from playscout.analytics.publishers import PublisherAggregate
from playscout.config import EmptyFallbackPolicy

HEADER = ["developerId", "developerName", "appCount", "latestUpdate", "sampleApps"]
MAX_DIAGNOSTIC_ERRORS = 30


@dataclass(frozen=True)
class RunDiagnostics:
    """What a run saw; used for the JSON and placeholder fallbacks."""

    keywords: Sequence[str] = ()
    per_keyword: int = 0
    total_apps_seen: int = 0
    total_developers: int = 0
    errors: Sequence[str] = field(default_factory=tuple)
    cancelled: bool = False


@dataclass(frozen=True)
class Report:
    body: str
    content_type: str = "text/csv"
    is_fallback: bool = False

    @property
    def extension(self) -> str:
        return "json" if self.content_type == "application/json" else "csv"


def format_update(ms: int) -> str:
    if not ms:
        return "unknown"
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")
    except (OverflowError, ValueError, OSError):
        return "unknown"


def format_samples(samples: Sequence[tuple]) -> str:
    return " | ".join(f"{title or ''} ({app_id})" for app_id, title in samples)


def publisher_row(agg: PublisherAggregate) -> List[str]:
    return [
        agg.publisher_id,
        agg.name or "",
        str(agg.app_count),
        format_update(agg.most_recent_update_ms),
        format_samples(agg.sample_apps),
    ]


def _write(rows: List[List[str]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(HEADER)
    writer.writerows(rows)
    return buf.getvalue()


def render_csv(publishers: Sequence[PublisherAggregate]) -> str:
    """Every field quoted, embedded quotes doubled."""
    return _write([publisher_row(agg) for agg in publishers])


def placeholder_row(diagnostics: Optional[RunDiagnostics]) -> List[str]:
    keywords = ", ".join(diagnostics.keywords) if diagnostics else ""
    return [
        "none",
        "No inactive developers found",
        "0",
        "unknown",
        f"Scanned keywords: {keywords}" if keywords else "",
    ]


def diagnostic_payload(diagnostics: Optional[RunDiagnostics]) -> dict:
    d = diagnostics or RunDiagnostics()
    message = "No developers matched the inactivity criteria."
    if d.cancelled:
        message = "Run was cancelled before completion; no developers matched."
    elif not d.total_apps_seen:
        message = "No apps could be fetched for the given keywords."
    return {
        "ok": False,
        "message": message,
        "keywords": list(d.keywords),
        "appsPerKeyword": d.per_keyword,
        "totalAppsSeen": d.total_apps_seen,
        "totalDevelopers": d.total_developers,
        "errors": list(d.errors)[:MAX_DIAGNOSTIC_ERRORS],
    }


def render_report(
    publishers: Sequence[PublisherAggregate],
    empty_fallback: EmptyFallbackPolicy = EmptyFallbackPolicy.DIAGNOSTIC_JSON,
    diagnostics: Optional[RunDiagnostics] = None,
) -> Report:
    if publishers:
        return Report(body=render_csv(publishers))
    if empty_fallback == EmptyFallbackPolicy.PLACEHOLDER_ROWS:
        return Report(body=_write([placeholder_row(diagnostics)]), is_fallback=True)
    if empty_fallback == EmptyFallbackPolicy.PLAIN_EMPTY_CSV:
        return Report(body=_write([]), is_fallback=True)
    return Report(
        body=json.dumps(diagnostic_payload(diagnostics), indent=2),
        content_type="application/json",
        is_fallback=True,
    )
