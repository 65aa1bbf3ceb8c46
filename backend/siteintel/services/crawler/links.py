"""Hyperlink extraction and path-based categorization."""

import html as html_lib
import logging
import re
from typing import List, Optional
from urllib.parse import urljoin, urlparse

from .models import ExtractedLink
from .constants import LINK_CATEGORY_PATTERNS, MAX_LINK_TEXT_CHARS

logger = logging.getLogger(__name__)

_ANCHOR_RE = re.compile(
    r"""<a\b[^>]*?(?<![\w-])href\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>"']+))[^>]*>(.*?)</a\s*>""",
    re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(r"<[^<>]*>")
_WS_RE = re.compile(r"\s+")
_CATEGORY_RES = [(name, re.compile(pattern, re.IGNORECASE)) for name, pattern in LINK_CATEGORY_PATTERNS.items()]


def normalize_url_key(url: str) -> str:
    """Dedup key for an absolute URL."""
    return (url or "").strip().lower()


def bare_hostname(url: str) -> str:
    """Lowercased hostname without a leading ``www.``."""
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def categorize_link(url: str) -> str:
    """Category from the URL path; informational only."""
    path = urlparse(url).path.lower() or "/"
    for name, pattern in _CATEGORY_RES:
        if pattern.search(path):
            return name
    return "other"


def _link_text(inner_html: str) -> str:
    text = _TAG_RE.sub(" ", inner_html)
    return _WS_RE.sub(" ", text).strip()[:MAX_LINK_TEXT_CHARS]


def _resolve(href: str, base_url: str) -> Optional[str]:
    """Absolute http(s) URL for ``href``, or None for anything unusable."""
    href = html_lib.unescape(href).strip()
    if not href or href.startswith("#"):
        return None
    try:
        absolute = urljoin(base_url, href)
        parsed = urlparse(absolute)
        _ = parsed.port  # raises ValueError on a malformed port
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    if parsed.fragment or "#" in absolute:
        return None
    return absolute


def extract_all_links(html: str, base_url: str) -> List[ExtractedLink]:
    """All unique anchors in ``html`` resolved against ``base_url``; never raises."""
    try:
        base_host = bare_hostname(base_url)
        links: List[ExtractedLink] = []
        seen = set()
        total = 0

        for match in _ANCHOR_RE.finditer(html or ""):
            total += 1
            href = next((group for group in match.groups()[:3] if group is not None), "")
            text = _link_text(match.group(4))
            if not text:
                continue

            url = _resolve(href, base_url)
            if url is None:
                continue

            key = normalize_url_key(url)
            if key in seen:
                continue
            seen.add(key)

            host = bare_hostname(url)
            links.append(ExtractedLink(
                url=url,
                text=text,
                is_external=host != base_host,
                domain=host,
                category=categorize_link(url),
            ))

        logger.debug("Extracted %d unique links from %d anchors on %s", len(links), total, base_url)
        return links
    except Exception as exc:
        logger.warning("Link extraction failed for %s: %s", base_url, exc)
        return []


def extract_company_name_from_url(url: str) -> str:
    """Capitalized first label of the host, e.g. ``https://www.acme.io`` -> ``Acme``."""
    cleaned = (url or "").strip().lower()
    for prefix in ("https://", "http://", "www."):
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):]
    label = cleaned.split("/")[0].split(".")[0]
    if not label:
        return "Unknown Company"
    return label[0].upper() + label[1:]
