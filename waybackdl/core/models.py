"""
Value types shared by the index client, fetcher and scheduler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from waybackdl.utils.validators import host_of


@dataclass(frozen=True)
class Snapshot:
    """One archived capture: a 14-digit timestamp plus the original URL."""

    timestamp: str
    original: str

    @property
    def host(self) -> str:
        """Host of the original URL, lowercased, default port removed."""
        return host_of(self.original)

    @property
    def identifier(self) -> str:
        return f"{self.timestamp} {self.original}"

    @property
    def raw_url(self) -> str:
        """Archive URL serving the captured bytes without the Wayback toolbar."""
        return f"https://web.archive.org/web/{self.timestamp}id_/{self.original}"


@dataclass(frozen=True)
class SiteQuery:
    base_url: str
    output_dir: str = "websites"
    from_timestamp: Optional[str] = None
    to_timestamp: Optional[str] = None
    only_successful: bool = True
    only_filter: Optional[str] = None
    exclude_filter: Optional[str] = None
    max_pages: int = 100  # <= 0 disables paging

    def __post_init__(self):
        if not self.base_url or not self.base_url.strip():
            raise ValueError("Base URL cannot be empty")


@dataclass(frozen=True)
class FetchResult:
    snapshot: Snapshot
    local_path: Path
    bytes_written: int
    content_type: str = ""
    discovered: Tuple[Snapshot, ...] = ()


@dataclass
class Summary:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    bytes_written: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)
