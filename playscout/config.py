"""Environment-driven configuration.

Entrypoints call ``load_dotenv()`` first; this module only reads ``os.environ``.
"""

from __future__ import annotations

import logging
import os
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


class SourceMode(str, Enum):
    API = "api"
    SCRAPE = "scrape"


class FilterPolicy(str, Enum):
    INACTIVE_ONLY = "inactive_only"
    ALL = "all"


class EmptyFallbackPolicy(str, Enum):
    DIAGNOSTIC_JSON = "diagnostic_json"
    PLACEHOLDER_ROWS = "placeholder_rows"
    PLAIN_EMPTY_CSV = "plain_empty_csv"


DEFAULT_KEYWORDS = ("tools", "productivity", "education")

# (default per-keyword count, upper bound) per fetch mechanism
PER_KEYWORD_BOUNDS = {
    SourceMode.API: (20, 100),
    SourceMode.SCRAPE: (10, 50),
}


def parse_enum(enum_cls: Type[E], value: Optional[str], default: E) -> E:
    """Map a free-form string onto an enum member, falling back to ``default``."""
    if value is None:
        return default
    v = str(value).strip().lower().replace("-", "_")
    if not v:
        return default
    for member in enum_cls:
        if member.value == v:
            return member
    logger.warning("Unknown %s value %r, using %s", enum_cls.__name__, value, default.value)
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class ScoutConfig:
    country: str = "in"
    lang: str = "en"
    upstream_timeout: int = 15
    upstream_connect_timeout: int = 5
    upstream_attempts: int = 2
    source_mode: SourceMode = SourceMode.API
    filter_policy: FilterPolicy = FilterPolicy.INACTIVE_ONLY
    empty_fallback: EmptyFallbackPolicy = EmptyFallbackPolicy.DIAGNOSTIC_JSON
    run_budget_seconds: int = 600
    report_filename: str = "inactive_devs"
    run_rate_limit: str = "6 per minute"

    @classmethod
    def from_env(cls) -> "ScoutConfig":
        return cls(
            country=os.environ.get("PLAY_COUNTRY", "in").strip() or "in",
            lang=os.environ.get("PLAY_LANG", "en").strip() or "en",
            upstream_timeout=max(1, _env_int("UPSTREAM_TIMEOUT", 15)),
            upstream_attempts=max(1, _env_int("UPSTREAM_ATTEMPTS", 2)),
            source_mode=parse_enum(SourceMode, os.environ.get("SOURCE_MODE"), SourceMode.API),
            filter_policy=parse_enum(FilterPolicy, os.environ.get("FILTER_POLICY"), FilterPolicy.INACTIVE_ONLY),
            empty_fallback=parse_enum(
                EmptyFallbackPolicy, os.environ.get("EMPTY_FALLBACK"), EmptyFallbackPolicy.DIAGNOSTIC_JSON
            ),
            run_budget_seconds=max(0, _env_int("RUN_BUDGET_SECONDS", 600)),
            report_filename=os.environ.get("REPORT_FILENAME", "inactive_devs").strip() or "inactive_devs",
            run_rate_limit=os.environ.get("RUN_RATE_LIMIT", "6 per minute").strip() or "6 per minute",
        )

    @property
    def http_timeout(self):
        """(connect, read) tuple for requests."""
        return (self.upstream_connect_timeout, self.upstream_timeout)


def apply_socket_timeout(config: ScoutConfig) -> None:
    """google-play-scraper goes through urllib without a timeout argument."""
    socket.setdefaulttimeout(config.upstream_timeout)
