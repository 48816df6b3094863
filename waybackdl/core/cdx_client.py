"""
CDX API Client for Internet Archive Wayback Machine

This module handles communication with the Internet Archive's CDX Server API
to enumerate every capture recorded for a site within a time window.
"""

import logging
from typing import Any, List, Optional, Set, Tuple

import requests

from waybackdl.core.config import create_session
from waybackdl.core.errors import IndexFormatError, ProtocolError, TransportError
from waybackdl.core.models import SiteQuery, Snapshot
from waybackdl.utils.validators import create_wildcard_pattern


def _pad_timestamp(value: str, fill: str) -> str:
    return (value + fill * 14)[:14]


class CDXClient:
    """
    Client for interacting with the Internet Archive CDX Server API.

    The CDX API lets us search the archive's index for every capture whose
    original URL matches a pattern. Captures are collapsed by content digest
    on the server, so identical bodies captured repeatedly come back once.
    """

    CDX_BASE_URL = "https://web.archive.org/cdx/search/cdx"

    def __init__(self,
                 session: Optional[requests.Session] = None,
                 timeout: float = 30.0,
                 rate_limiter=None):
        """
        Initialize the CDX client.

        Args:
            session: HTTP session to use; a new requests.Session when omitted
            timeout: Per-request timeout in seconds
            rate_limiter: Optional shared TokenBucket
        """
        self.timeout = timeout
        self.rate_limiter = rate_limiter
        self.logger = logging.getLogger(__name__)
        self._owns_session = session is None
        if session is None:
            session = create_session()
        self.session = session

    def build_params(self, query: SiteQuery, page: Optional[int] = None) -> List[Tuple[str, str]]:
        """
        Build CDX query parameters for a site query.

        Parameters are returned as a list of pairs because 'filter' may repeat.

        Args:
            query: The site query for this run
            page: Page index, or None for an unpaged request

        Returns:
            List of (name, value) pairs
        """
        params = [
            ('url', create_wildcard_pattern(query.base_url)),
            ('output', 'json'),
            ('fl', 'timestamp,original'),
            ('collapse', 'digest'),
            ('gzip', 'false'),
        ]
        if query.only_successful:
            params.append(('filter', 'statuscode:200'))
        if query.only_filter:
            params.append(('filter', query.only_filter))
        if query.exclude_filter:
            params.append(('exclude', query.exclude_filter))
        if query.from_timestamp:
            params.append(('from', query.from_timestamp))
        if query.to_timestamp:
            params.append(('to', query.to_timestamp))
        if page is not None:
            params.append(('page', str(page)))
        return params

    def list_snapshots(self, query: SiteQuery,
                       page: Optional[int] = None) -> Tuple[List[Snapshot], Optional[int]]:
        """
        Fetch one page of snapshots.

        Args:
            query: The site query for this run
            page: Page index, or None for a single unpaged request

        Returns:
            Tuple of (snapshots in index order, next page index or None)

        Raises:
            TransportError: If the request could not be completed
            ProtocolError: If the index answered with a non-200 status
            IndexFormatError: If the body is empty or not a JSON array of rows
        """
        response = self._make_request(self.build_params(query, page))
        rows = self._parse_cdx_json(response)
        snapshots = self._filter_window(query, self._rows_to_snapshots(rows))

        next_page = None
        if page is not None and rows and page + 1 < query.max_pages:
            next_page = page + 1
        return snapshots, next_page

    def discover_snapshots(self, query: SiteQuery) -> List[Snapshot]:
        """
        Drain every page of the index for a site query.

        Paging stops at the first empty page, at max_pages, or at the first
        page that adds nothing new (servers that ignore 'page' return the same
        rows every time).

        Returns:
            Deduplicated snapshots in first-seen order
        """
        self.logger.info(f"Discovering snapshots for: {query.base_url}")

        seen: Set[Tuple[str, str]] = set()
        snapshots: List[Snapshot] = []
        page: Optional[int] = 0 if query.max_pages > 0 else None

        while True:
            batch, next_page = self.list_snapshots(query, page)
            added = 0
            for snapshot in batch:
                key = (snapshot.timestamp, snapshot.original)
                if key in seen:
                    continue
                seen.add(key)
                snapshots.append(snapshot)
                added += 1
            self.logger.debug(f"CDX page {page}: {len(batch)} rows, {added} new")
            if next_page is None or added == 0:
                break
            page = next_page

        self.logger.info(f"Discovered {len(snapshots)} snapshots")
        return snapshots

    def _make_request(self, params: List[Tuple[str, str]]) -> requests.Response:
        if self.rate_limiter:
            self.rate_limiter.acquire()

        self.logger.debug(f"Making CDX API request with params: {params}")
        try:
            response = self.session.get(self.CDX_BASE_URL, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.error(f"CDX API request failed: {e}")
            raise TransportError(f"CDX API request failed: {e}") from e

        if response.status_code != 200:
            self.logger.error(f"CDX API returned HTTP {response.status_code}")
            raise ProtocolError(response.status_code, self.CDX_BASE_URL)
        return response

    def _parse_cdx_json(self, response: requests.Response) -> List[List[str]]:
        """
        Parse and validate a CDX JSON body.

        Returns:
            Data rows with any header row removed

        Raises:
            IndexFormatError: If the response format is unexpected
        """
        if not response.content or not response.content.strip():
            raise IndexFormatError("Received empty response body from CDX API")
        try:
            data: Any = response.json()
        except ValueError as e:
            raise IndexFormatError(f"Failed to parse CDX response as JSON: {e}") from e

        if not isinstance(data, list):
            raise IndexFormatError(f"Unexpected CDX response: expected a list, got {type(data).__name__}")
        for row in data:
            if not isinstance(row, list) or not all(isinstance(cell, str) for cell in row):
                raise IndexFormatError(f"Unexpected CDX row: {row!r}")

        # First row contains column headers
        if data and data[0] and data[0][0] == 'timestamp':
            data = data[1:]
        return data

    def _rows_to_snapshots(self, rows: List[List[str]]) -> List[Snapshot]:
        snapshots = []
        for row in rows:
            if len(row) < 2:
                self.logger.warning(f"Skipping short CDX row: {row!r}")
                continue
            snapshots.append(Snapshot(timestamp=row[0], original=row[1]))
        return snapshots

    def _filter_window(self, query: SiteQuery, snapshots: List[Snapshot]) -> List[Snapshot]:
        """Drop captures outside [from, to]; partial timestamps are padded like the CDX server does."""
        if not query.from_timestamp and not query.to_timestamp:
            return snapshots
        low = _pad_timestamp(query.from_timestamp, '0') if query.from_timestamp else None
        high = _pad_timestamp(query.to_timestamp, '9') if query.to_timestamp else None

        kept = []
        for snapshot in snapshots:
            stamp = _pad_timestamp(snapshot.timestamp, '0')
            if low and stamp < low:
                continue
            if high and stamp > high:
                continue
            kept.append(snapshot)
        if len(kept) != len(snapshots):
            self.logger.debug(f"Dropped {len(snapshots) - len(kept)} captures outside the time window")
        return kept

    def close(self):
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self.session.close()

