"""HTML parsing for Play listing, search and app detail pages.

Extraction is best-effort: the pages change often, so each field has a JSON-LD
path and an HTML fallback, and missing fields are simply left out of the
returned record.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup

_APP_ID_RE = re.compile(r"/store/apps/details\?id=([A-Za-z][A-Za-z0-9_]*(?:\.[A-Za-z0-9_]+)+)")
_UPDATED_LABEL_RE = re.compile(r"^\s*updated(?:\s+on)?\s*:?\s*$", re.IGNORECASE)


def _query_param(href: str, key: str) -> Optional[str]:
    try:
        values = parse_qs(urlparse(href).query).get(key) or []
    except Exception:
        return None
    for v in values:
        if v and v.strip():
            return v.strip()
    return None


def extract_app_ids(html: str) -> List[str]:
    """Ordered, de-duplicated app ids linked from a listing or search page."""
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    seen = set()
    out: List[str] = []
    for a in soup.find_all("a", href=True):
        href = a["href"]
        if "/store/apps/details" not in href:
            continue
        app_id = _query_param(href, "id")
        if app_id and app_id not in seen:
            seen.add(app_id)
            out.append(app_id)
    # ids embedded in inline scripts and data attributes
    for m in _APP_ID_RE.finditer(html):
        app_id = m.group(1)
        if app_id not in seen:
            seen.add(app_id)
            out.append(app_id)
    return out


def _json_ld_app(soup: BeautifulSoup) -> Dict[str, Any]:
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = tag.string or tag.get_text() or ""
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            continue
        items = data if isinstance(data, list) else [data]
        for item in items:
            if isinstance(item, dict) and "SoftwareApplication" in str(item.get("@type", "")):
                return item
    return {}


def _updated_label(soup: BeautifulSoup) -> Optional[str]:
    label = soup.find(string=_UPDATED_LABEL_RE)
    if label is None:
        return None
    node = label.parent
    # value usually sits in the next sibling element
    sibling = node.find_next_sibling() if node is not None else None
    if sibling is not None:
        text = sibling.get_text(" ", strip=True)
        if text:
            return text
    nxt = node.find_next(string=True) if node is not None else None
    while nxt is not None and not str(nxt).strip():
        nxt = nxt.find_next(string=True)
    return str(nxt).strip() if nxt is not None else None


def parse_detail_page(html: str) -> Dict[str, Any]:
    """Pull title, developer and last-update fields out of an app detail page.

    Keys in the returned dict (any may be absent): ``title``, ``developer``,
    ``developerId``, ``dateModified``, ``updatedLabel``.
    """
    if not html:
        return {}
    soup = BeautifulSoup(html, "html.parser")
    out: Dict[str, Any] = {}

    ld = _json_ld_app(soup)
    if ld:
        if ld.get("name"):
            out["title"] = str(ld["name"]).strip()
        author = ld.get("author")
        if isinstance(author, dict):
            if author.get("name"):
                out["developer"] = str(author["name"]).strip()
            dev_id = _query_param(str(author.get("url") or ""), "id")
            if dev_id:
                out["developerId"] = dev_id
        elif isinstance(author, str) and author.strip():
            out["developer"] = author.strip()
        if ld.get("dateModified"):
            out["dateModified"] = str(ld["dateModified"]).strip()

    if "title" not in out:
        h1 = soup.find("h1")
        if h1 is not None and h1.get_text(strip=True):
            out["title"] = h1.get_text(" ", strip=True)

    if "developer" not in out or "developerId" not in out:
        for a in soup.find_all("a", href=True):
            href = a["href"]
            if "/store/apps/dev" not in href:
                continue
            dev_id = _query_param(href, "id")
            if dev_id and "developerId" not in out:
                out["developerId"] = dev_id
            name = a.get_text(" ", strip=True)
            if name and "developer" not in out:
                out["developer"] = name
            break

    label = _updated_label(soup)
    if label:
        out["updatedLabel"] = label
    return out
