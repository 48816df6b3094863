"""
waybackdl Orchestrator: enumerate a site's captures and download each once.

Workers run on a ThreadPoolExecutor. Every work item is claimed on the dedup
ledger before it is fetched, and links discovered in HTML pages are submitted
back to the same pool until nothing is in flight.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import requests

from .cdx_client import CDXClient
from .config import RunConfig, create_session
from .fetcher import SnapshotFetcher
from .ledger import ClaimMode, DedupLedger
from .models import FetchResult, SiteQuery, Snapshot, Summary
from waybackdl.utils.file_manager import FileManager
from waybackdl.utils.rate_limiter import TokenBucket


ProgressCallback = Callable[[object], None]


class SummaryAccumulator:
    """Lock-guarded Summary shared by all workers."""

    def __init__(self):
        self._summary = Summary()
        self._lock = threading.Lock()

    def success(self, result: FetchResult) -> int:
        with self._lock:
            self._summary.total += 1
            self._summary.succeeded += 1
            self._summary.bytes_written += result.bytes_written
            return self._summary.total

    def failure(self, snapshot: Snapshot, error: BaseException) -> int:
        with self._lock:
            self._summary.total += 1
            self._summary.failed += 1
            self._summary.failures.append((snapshot.identifier, f"{type(error).__name__}: {error}"))
            return self._summary.total

    def skip(self):
        with self._lock:
            self._summary.skipped += 1

    def snapshot(self) -> Summary:
        with self._lock:
            s = self._summary
            return Summary(total=s.total, succeeded=s.succeeded, failed=s.failed,
                           skipped=s.skipped, bytes_written=s.bytes_written,
                           failures=list(s.failures))


class DownloadController:
    def __init__(self, config: Optional[RunConfig] = None,
                 session: Optional[requests.Session] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config or RunConfig()
        self.logger = logger or logging.getLogger(__name__)
        self._owns_session = session is None
        self.session = session or create_session(self.config.user_agent)
        self.rate_limiter = None
        if self.config.rate_limit > 0:
            self.rate_limiter = TokenBucket(rate_per_sec=self.config.rate_limit, burst=1)
        self.cdx = CDXClient(session=self.session, timeout=self.config.timeout,
                             rate_limiter=self.rate_limiter)

    def run(self, query: SiteQuery, progress: Optional[ProgressCallback] = None) -> Summary:
        """
        Download every capture the index lists for query.

        Index errors (TransportError, ProtocolError, IndexFormatError) propagate
        and abort the run before any download starts. Per-item errors are
        recorded in the returned Summary.
        """
        if progress:
            progress("Discovering snapshots via CDX...")
        snapshots = self.cdx.discover_snapshots(query)
        if progress:
            progress({"type": "discovery", "total": len(snapshots)})
        self.logger.info(f"Found {len(snapshots)} snapshots to download")

        mode = ClaimMode.PER_TIMESTAMP if self.config.all_timestamps else ClaimMode.PER_RESOURCE
        ledger = DedupLedger(mode)
        files = FileManager(query.output_dir)
        fetcher = SnapshotFetcher(files, session=self.session, timeout=self.config.timeout,
                                  rate_limiter=self.rate_limiter)
        stats = SummaryAccumulator()

        # Drain state is per run; a parent stays in flight until its children are counted.
        idle = threading.Condition()
        in_flight = 0

        def dispatch(snapshot: Snapshot, depth: int):
            nonlocal in_flight
            with idle:
                in_flight += 1
            pool.submit(process_one, snapshot, depth)

        def finish():
            nonlocal in_flight
            with idle:
                in_flight -= 1
                if in_flight == 0:
                    idle.notify_all()

        def handle(snapshot: Snapshot, depth: int):
            result = None
            try:
                claimed = ledger.claim(snapshot)
                if claimed:
                    discover = self.config.recursive and depth < self.config.max_depth
                    result = fetcher.fetch(snapshot, discover=discover)
            except Exception as e:
                count = stats.failure(snapshot, e)
                self.logger.warning(f"[{count}] Error downloading {snapshot.original} @ {snapshot.timestamp}: {e}")
                if progress:
                    progress({"type": "url", "stage": "failed", "url": snapshot.original, "reason": str(e)})
                return

            if not claimed:
                stats.skip()
                self.logger.debug(f"Skipping already claimed: {snapshot.identifier}")
                if progress:
                    progress({"type": "url", "stage": "skipped", "url": snapshot.original})
                return

            count = stats.success(result)
            self.logger.info(f"[{count}] Downloaded: {snapshot.original} -> {result.local_path}")
            for found in result.discovered:
                dispatch(found, depth + 1)
            if progress:
                progress({"type": "url", "stage": "completed", "url": snapshot.original,
                          "path": str(result.local_path)})

        def process_one(snapshot: Snapshot, depth: int):
            try:
                handle(snapshot, depth)
            except Exception:
                self.logger.exception(f"Unexpected error after handling {snapshot.identifier}")
            finally:
                finish()

        with ThreadPoolExecutor(max_workers=self.config.threads,
                                thread_name_prefix="waybackdl") as pool:
            for snapshot in snapshots:
                dispatch(snapshot, 0)
            with idle:
                idle.wait_for(lambda: in_flight == 0)

        summary = stats.snapshot()
        self.logger.info(f"Download completed: {summary.succeeded} succeeded, "
                         f"{summary.failed} failed, {summary.skipped} skipped")
        self.logger.debug(f"{ledger.claimed_count} keys claimed")
        if progress:
            progress({"type": "counters", "stats": summary})
        return summary

    def close(self):
        self.cdx.close()
        if self._owns_session:
            self.session.close()
