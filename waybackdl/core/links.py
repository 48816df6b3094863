"""
Same-site link discovery for fetched HTML pages.

Collects src/href values that point back at the page's own host, either
root-relative ('/img/a.png') or absolute ('https://host/img/a.png',
'//host/img/a.png'), and returns them as absolute URLs on the page's
scheme and host so both spellings map to one download.
"""

from __future__ import annotations

import logging
from typing import List, Union
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from waybackdl.utils.validators import canonical_url, host_of, is_same_host


LINK_ATTRS = ("src", "href")
BAD_PREFIXES = ("javascript:", "mailto:", "tel:", "data:", "#")

logger = logging.getLogger(__name__)


def _is_candidate(value: str) -> bool:
    lowered = value.lower()
    if lowered.startswith(BAD_PREFIXES):
        return False
    return value.startswith("/") or lowered.startswith(("http://", "https://"))


def extract_site_links(html: Union[str, bytes], page_url: str) -> List[str]:
    """
    Extract same-host resource and link URLs from an HTML document.

    Args:
        html: Document body
        page_url: Original URL of the page, used for resolution and host checks

    Returns:
        Absolute URLs in document order, without duplicates or the page itself
    """
    page = urlparse(page_url)
    page_host = host_of(page_url)
    page_key = canonical_url(page_url)

    soup = BeautifulSoup(html, "lxml")
    links: List[str] = []
    seen = {page_key}

    for tag in soup.find_all(True):
        for attr in LINK_ATTRS:
            value = tag.get(attr)
            if not isinstance(value, str):
                continue
            value = value.strip()
            if not value or not _is_candidate(value):
                continue
            absolute, _ = urldefrag(urljoin(page_url, value))
            target = urlparse(absolute)
            if target.scheme not in ("http", "https"):
                continue
            if not is_same_host(absolute, page_host):
                continue
            # Same host: rewrite onto the page's scheme/netloc so http/https
            # and root-relative spellings collapse to one URL.
            resolved = urlunparse((page.scheme, page.netloc, target.path or "/",
                                   target.params, target.query, ""))
            key = canonical_url(resolved)
            if key in seen:
                continue
            seen.add(key)
            links.append(resolved)

    logger.debug(f"Found {len(links)} same-site links in {page_url}")
    return links
