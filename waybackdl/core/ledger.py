"""
Dedup ledger: the single point that decides which worker downloads what.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Set

from .models import Snapshot
from waybackdl.utils.validators import canonical_url


class ClaimMode(Enum):
    PER_RESOURCE = "resource"    # one download per (timestamp, URL)
    PER_TIMESTAMP = "timestamp"  # one download per capture timestamp


class DedupLedger:
    """
    Concurrency-safe set of claimed keys.

    The keying policy is fixed when the ledger is created; claim() derives the
    key from the snapshot so a run cannot mix policies.
    """

    def __init__(self, mode: ClaimMode = ClaimMode.PER_RESOURCE):
        self.mode = mode
        self._claimed: Set[str] = set()
        self._lock = threading.Lock()

    def key_for(self, snapshot: Snapshot) -> str:
        if self.mode is ClaimMode.PER_TIMESTAMP:
            return snapshot.timestamp
        return f"{snapshot.timestamp} {canonical_url(snapshot.original)}"

    def try_claim(self, key: str) -> bool:
        """Atomically claim key. True for exactly one caller per key."""
        with self._lock:
            if key in self._claimed:
                return False
            self._claimed.add(key)
            return True

    def claim(self, snapshot: Snapshot) -> bool:
        return self.try_claim(self.key_for(snapshot))

    @property
    def claimed_count(self) -> int:
        with self._lock:
            return len(self._claimed)
