"""
Error taxonomy for waybackdl.

Per-item errors (transport, protocol, storage, path safety) are recorded in the
run summary; errors raised while fetching the CDX index abort the run.
"""

from typing import Optional


class WaybackError(Exception):
    """Base class for every error raised by waybackdl."""


class TransportError(WaybackError):
    """Network, DNS or connection failure while talking to the archive."""


class ProtocolError(WaybackError):
    """The archive answered with a status code other than 200."""

    def __init__(self, status_code: int, url: str, message: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message or f"HTTP {status_code} for {url}")


class IndexFormatError(WaybackError, ValueError):
    """The CDX response body was empty or not a JSON array of string rows."""


class StorageError(WaybackError, OSError):
    """Directory creation, file creation or write failure (including short writes)."""


class PathSafetyError(WaybackError, ValueError):
    """A mapped local path would land outside the output directory."""
