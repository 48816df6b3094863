"""
Snapshot Retrieval Module

Downloads the raw bytes of one archived capture from the Wayback Machine,
writes them under the output directory, and optionally reports same-site
links found in HTML captures.
"""

import logging
from typing import Optional

import requests

from .config import create_session
from .errors import ProtocolError, TransportError
from .links import extract_site_links
from .models import FetchResult, Snapshot
from waybackdl.utils.file_manager import FileManager, is_html


CHUNK_SIZE = 64 * 1024


class SnapshotFetcher:
    """
    Retrieves archived captures through the raw 'id_' endpoint and persists them.

    The raw endpoint serves the captured body as it was recorded, without
    the Wayback toolbar or rewritten links.
    """

    def __init__(self,
                 files: FileManager,
                 session: Optional[requests.Session] = None,
                 timeout: float = 30.0,
                 rate_limiter=None):
        """
        Initialize the fetcher.

        Args:
            files: File manager owning the output directory
            session: HTTP session to use; a new requests.Session when omitted
            timeout: Per-request timeout in seconds
            rate_limiter: Optional shared TokenBucket
        """
        self.files = files
        self.timeout = timeout
        self.rate_limiter = rate_limiter
        self.logger = logging.getLogger(__name__)
        self._owns_session = session is None
        if session is None:
            session = create_session()
        self.session = session

    def fetch(self, snapshot: Snapshot, discover: bool = False) -> FetchResult:
        """
        Download one snapshot to disk.

        Args:
            snapshot: The capture to download
            discover: Extract same-site links when the capture is HTML

        Returns:
            FetchResult with the local path, byte count and any discovered
            snapshots (same timestamp, same host)

        Raises:
            TransportError: If the request fails before a response arrives
            ProtocolError: If the archive answers with a non-200 status
            StorageError: If the body cannot be written completely
            PathSafetyError: If the mapped path escapes the output directory
        """
        url = snapshot.raw_url
        self.logger.debug(f"Retrieving {snapshot.original} via {url}")

        if self.rate_limiter:
            self.rate_limiter.acquire()

        try:
            response = self.session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request failed for {snapshot.original}: {e}") from e

        with response:
            if response.status_code != 200:
                raise ProtocolError(response.status_code, url)

            content_type = response.headers.get('Content-Type', '')
            path = self.files.get_file_path(snapshot.host, snapshot.timestamp,
                                            snapshot.original, content_type)
            written = self.files.save_stream(path, response.iter_content(chunk_size=CHUNK_SIZE),
                                             self._expected_size(response))

        discovered = ()
        if discover and is_html(content_type):
            discovered = self._discover(snapshot, path)

        return FetchResult(snapshot=snapshot, local_path=path, bytes_written=written,
                           content_type=content_type, discovered=discovered)

    def _expected_size(self, response) -> Optional[int]:
        # iter_content decodes gzip/deflate, so Content-Length only applies to identity bodies
        if response.headers.get('Content-Encoding', 'identity').lower() != 'identity':
            return None
        length = response.headers.get('Content-Length')
        if length is None or not length.strip().isdigit():
            return None
        return int(length)

    def _discover(self, snapshot: Snapshot, path) -> tuple:
        # The capture is already saved; a discovery problem only costs its links.
        try:
            with open(path, 'rb') as f:
                html = f.read()
            links = extract_site_links(html, snapshot.original)
        except Exception as e:
            self.logger.warning(f"Link discovery failed for {snapshot.original}: {e}")
            return ()
        if links:
            self.logger.info(f"Discovered {len(links)} linked resources in {snapshot.original}")
        return tuple(Snapshot(timestamp=snapshot.timestamp, original=link) for link in links)

    def close(self):
        """Close the HTTP session if this fetcher created it."""
        if self._owns_session:
            self.session.close()
