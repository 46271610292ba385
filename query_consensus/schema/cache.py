"""
Time-bounded cache for analyzed schemas.
"""

import threading
import time
from typing import Callable, Dict, Optional, Tuple

from query_consensus.core.models import SchemaAnalysis


class SchemaCache:
    """
    Caches SchemaAnalysis results per (cluster, index pattern).

    Expired entries are kept so callers can fall back to them when
    rediscovery fails.
    """

    def __init__(self, ttl_seconds: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        """
        Initialize schema cache.

        Args:
            ttl_seconds: Time-to-live for each entry
            clock: Monotonic time source (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Tuple[str, str], Tuple[SchemaAnalysis, float]] = {}
        self._lock = threading.Lock()

    def get(self, cluster_id: str, index_pattern: str) -> Optional[SchemaAnalysis]:
        """Return a fresh entry, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get((cluster_id, index_pattern))
        if entry is None:
            return None
        analysis, expires_at = entry
        if self._clock() >= expires_at:
            return None
        return analysis

    def get_stale(self, cluster_id: str, index_pattern: str) -> Optional[SchemaAnalysis]:
        """Return the entry regardless of expiry."""
        with self._lock:
            entry = self._entries.get((cluster_id, index_pattern))
        return entry[0] if entry else None

    def put(self, cluster_id: str, index_pattern: str, analysis: SchemaAnalysis) -> None:
        with self._lock:
            self._entries[(cluster_id, index_pattern)] = (
                analysis,
                self._clock() + self.ttl_seconds,
            )

    def clear(self, cluster_id: Optional[str] = None) -> None:
        """
        Drop cached entries.

        Args:
            cluster_id: Only drop entries of this cluster; all entries if None
        """
        with self._lock:
            if cluster_id is None:
                self._entries.clear()
                return
            for key in [k for k in self._entries if k[0] == cluster_id]:
                del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
