"""Publisher aggregation and inactivity classification.

Aggregates are keyed by publisher id in a plain dict, so iteration follows
first-seen order and reports are deterministic for a given merge sequence.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from playscout.catalog.app_types import AppMetadata
from playscout.config import FilterPolicy

SAMPLE_CAP = 5
MAX_APPS_INACTIVE = 3
TWO_YEARS_MS = 2 * 365 * 24 * 60 * 60 * 1000


@dataclass
class PublisherAggregate:
    publisher_id: str
    name: str = ""
    app_count: int = 0
    most_recent_update_ms: int = 0
    sample_apps: List[Tuple[str, str]] = field(default_factory=list)


def merge(publishers: Dict[str, PublisherAggregate], meta: AppMetadata) -> Dict[str, PublisherAggregate]:
    """Fold one metadata record into ``publishers`` (in place) and return it."""
    agg = publishers.get(meta.publisher_id)
    if agg is None:
        agg = PublisherAggregate(publisher_id=meta.publisher_id, name=meta.publisher_name)
        publishers[meta.publisher_id] = agg
    agg.app_count += 1
    if len(agg.sample_apps) < SAMPLE_CAP:
        agg.sample_apps.append((meta.app_id, meta.title))
    if meta.last_updated_ms > agg.most_recent_update_ms:
        agg.most_recent_update_ms = meta.last_updated_ms
    return publishers


def fold(records: Iterable[AppMetadata]) -> Dict[str, PublisherAggregate]:
    publishers: Dict[str, PublisherAggregate] = {}
    for meta in records:
        merge(publishers, meta)
    return publishers


def now_ms() -> int:
    return int(time.time() * 1000)


def is_inactive(
    agg: PublisherAggregate,
    *,
    now: Optional[int] = None,
    max_apps: int = MAX_APPS_INACTIVE,
    window_ms: int = TWO_YEARS_MS,
) -> bool:
    """Few apps and nothing updated inside the window; a 0 timestamp never counts as recent."""
    if agg.app_count > max_apps:
        return False
    if not agg.most_recent_update_ms:
        return True
    current = now_ms() if now is None else now
    return (current - agg.most_recent_update_ms) > window_ms


def select(
    publishers: Dict[str, PublisherAggregate],
    policy: FilterPolicy = FilterPolicy.INACTIVE_ONLY,
    *,
    now: Optional[int] = None,
) -> List[PublisherAggregate]:
    if policy == FilterPolicy.ALL:
        return list(publishers.values())
    current = now_ms() if now is None else now
    return [agg for agg in publishers.values() if is_inactive(agg, now=current)]
