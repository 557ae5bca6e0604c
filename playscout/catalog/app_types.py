"""Shared catalog data types."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AppCandidate:
    """App identifier surfaced by a source strategy, not yet resolved."""

    app_id: str
    source: str = "unknown"


@dataclass(frozen=True)
class AppMetadata:
    """Normalized app record.

    Whatever shape the upstream returned (structured client or scraped page),
    this is the only form that leaves the resolver.
    """

    app_id: str
    publisher_id: str
    publisher_name: str = ""
    title: str = ""
    # epoch milliseconds; 0 means no known update time
    last_updated_ms: int = 0
