#!/usr/bin/env python3
"""Inactive-publisher scan worker.

Runs one scan cycle (or scheduled) and writes the report to disk:
- keywords from SCOUT_KEYWORDS (comma-separated)
- apps per keyword from SCOUT_PER
- output under SCOUT_OUTPUT_DIR as <REPORT_FILENAME>_<timestamp>.csv|json

SIGINT/SIGTERM stop an in-flight scan between upstream calls.
"""

from __future__ import annotations

import logging
import os
import signal
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import schedule
from dotenv import load_dotenv

from playscout.config import ScoutConfig, apply_socket_timeout
from playscout.pipeline.scan import build_report, build_scanner, clamp_per, parse_keywords

logger = logging.getLogger("scout_worker")

_stop = threading.Event()


def _handle_signal(signum, frame) -> None:
    logger.info("Received signal %s, stopping", signum)
    _stop.set()


def run_once(config: Optional[ScoutConfig] = None, out_dir: Optional[str] = None) -> Optional[Path]:
    config = config or ScoutConfig.from_env()
    scanner = build_scanner(config.source_mode, config)
    keywords = parse_keywords(os.environ.get("SCOUT_KEYWORDS"))
    per = clamp_per(os.environ.get("SCOUT_PER"), scanner.sources.default_limit, scanner.sources.max_limit)

    result = scanner.run(keywords, per, cancel_event=_stop)
    if result.cancelled and _stop.is_set():
        logger.warning("Scan interrupted; no report written")
        return None
    report = build_report(result, config.filter_policy, config.empty_fallback)

    target_dir = Path(out_dir or os.environ.get("SCOUT_OUTPUT_DIR", "reports"))
    target_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    path = target_dir / f"{config.report_filename}_{stamp}.{report.extension}"
    path.write_text(report.body, encoding="utf-8")
    logger.info(
        "[scout] candidates=%d publishers=%d errors=%d fallback=%s -> %s",
        result.total_candidates_seen,
        len(result.publishers),
        len(result.errors),
        report.is_fallback,
        path,
    )
    return path


def run_scheduled(every_hours: int) -> None:
    schedule.every(every_hours).hours.do(run_once)
    run_once()
    while not _stop.is_set():
        schedule.run_pending()
        time.sleep(5)


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)
    apply_socket_timeout(ScoutConfig.from_env())

    mode = (os.environ.get("SCOUT_MODE") or "once").lower().strip()
    if mode in ("scheduled", "daemon"):
        run_scheduled(max(1, int(os.environ.get("SCOUT_EVERY_HOURS", "24"))))
    else:
        run_once()
