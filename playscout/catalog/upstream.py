"""Upstream call helpers: bounded page fetches and capped retries.

Every upstream call goes through ``call_with_retry`` so the retry cap is
uniform across strategies and fetchers.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple, Union

import requests
from tenacity import Retrying, stop_after_attempt, wait_exponential

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

PLAY_BASE = "https://play.google.com"

Timeout = Union[float, Tuple[float, float]]

RETRY_WAIT = wait_exponential(min=1, max=4)


def call_with_retry(fn: Callable[..., Any], *args: Any, attempts: int = 2, **kwargs: Any) -> Any:
    """Call ``fn`` up to ``attempts`` times; the last error is re-raised."""
    for attempt in Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=RETRY_WAIT,
        reraise=True,
    ):
        with attempt:
            return fn(*args, **kwargs)


def fetch_page(
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    timeout: Timeout = (5, 15),
    max_bytes: int = 3_000_000,
) -> str:
    """GET a Play page and return its decoded HTML.

    Raises ``requests.HTTPError`` on 4xx/5xx and ``ValueError`` when the body is
    empty or larger than ``max_bytes``.
    """
    with requests.get(
        url,
        params=params,
        headers={
            "User-Agent": USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        },
        timeout=timeout,
        allow_redirects=True,
        stream=True,
    ) as resp:
        resp.raise_for_status()
        content = b""
        for chunk in resp.iter_content(chunk_size=64 * 1024):
            if not chunk:
                continue
            content += chunk
            if len(content) > max_bytes:
                raise ValueError(f"page too large: {url}")
        encoding = resp.encoding or "utf-8"
    html = content.decode(encoding, errors="replace")
    if not html.strip():
        raise ValueError(f"empty page: {url}")
    return html
