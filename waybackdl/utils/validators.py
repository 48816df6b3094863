"""
URL Validation Utilities

This module provides URL validation and normalization functions used to build
CDX queries, derive dedup keys and decide whether a discovered link belongs
to the site being downloaded.
"""

import re
from typing import Optional, Tuple
from urllib.parse import urlparse, urlunparse


_DOMAIN_PATTERN = re.compile(
    r'^[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?)*$'
)

_DEFAULT_PORTS = {'http': '80', 'https': '443'}


def validate_url(url: str) -> Tuple[bool, str, str]:
    """
    Validate a site URL as typed by the user.

    Args:
        url: The URL to validate, with or without a scheme

    Returns:
        Tuple of (is_valid, url_with_scheme, error_message)
    """
    if not url or not isinstance(url, str):
        return False, "", "URL cannot be empty"

    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme:
        if parsed.scheme not in ('http', 'https'):
            return False, "", "URL must use HTTP or HTTPS protocol"
    else:
        url = 'http://' + url
        parsed = urlparse(url)

    if not parsed.hostname:
        return False, "", "URL must have a valid domain"
    if not _DOMAIN_PATTERN.match(parsed.hostname):
        return False, "", "Invalid domain format"

    return True, url, ""


def strip_default_port(scheme: str, netloc: str) -> str:
    """Lowercase a network location and drop the port when it is the scheme default."""
    netloc = netloc.lower()
    default = _DEFAULT_PORTS.get(scheme.lower())
    if default and netloc.endswith(':' + default):
        netloc = netloc[:-(len(default) + 1)]
    return netloc


def canonical_url(url: str) -> str:
    """
    Normalize a URL for deduplication.

    Lowercases scheme and host, removes default ports and the fragment, and
    turns an empty path into '/'. The query string is kept.
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    netloc = strip_default_port(scheme, parsed.netloc)
    path = parsed.path or '/'
    return urlunparse((scheme, netloc, path, parsed.params, parsed.query, ''))


def host_of(url: str) -> str:
    parsed = urlparse(url)
    return strip_default_port(parsed.scheme, parsed.netloc)


def is_same_host(url: str, host: str) -> bool:
    """True when url points at host (case-insensitive, default ports ignored)."""
    candidate = host_of(url)
    return bool(candidate) and candidate == host.lower()


def create_wildcard_pattern(base_url: str) -> Optional[str]:
    """
    Create a wildcard pattern for the CDX API from a base URL.

    The site URL is passed through as typed (the CDX server accepts bare hosts)
    with trailing slashes collapsed and '/*' appended.

    Args:
        base_url: Base URL to create pattern from

    Returns:
        Wildcard pattern string, or None for an empty URL
    """
    if not base_url or not base_url.strip():
        return None
    base = base_url.strip()
    if base.endswith('*'):
        return base
    return base.rstrip('/') + '/*'
