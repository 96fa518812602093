"""
Lookup Event Logging

One structured event per resolver operation, plus an in-memory history of
recent lookups for the HTTP surface.
"""

import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .logger import get_logger


class LookupLogger:
    """Logs and remembers completed resolver operations."""

    def __init__(self, max_recent: int = 1000, enabled: bool = True):
        """Initialize lookup logger.

        Args:
            max_recent: Number of recent lookups kept in memory
            enabled: Emit log events (history is kept either way)
        """
        self.logger = get_logger("fdns.lookups")
        self.enabled = enabled
        self._lock = threading.Lock()
        self.recent_lookups = deque(maxlen=max_recent)

    def log_lookup(
        self,
        operation: str,
        target: str,
        path: str,
        server: str,
        elapsed_ms: float,
        outcome: str,
    ) -> None:
        """Record one completed operation.

        Args:
            operation: resolve, reverse or resolve_extended
            target: Hostname or address looked up
            path: "system" or "custom"
            server: Server selection in effect ("" for system default)
            elapsed_ms: Wall time of the operation
            outcome: Answer, "?" or a record count summary
        """
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "operation": operation,
            "target": target,
            "path": path,
            "server": server or None,
            "elapsed_ms": round(elapsed_ms, 2),
            "outcome": outcome,
        }

        with self._lock:
            self.recent_lookups.appendleft(entry)

        if self.enabled:
            self.logger.info("Lookup completed", **entry)

    def get_recent(
        self, limit: int = 50, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Most recent lookups first, optionally filtered by exact field match."""
        with self._lock:
            lookups = list(self.recent_lookups)

        if filters:
            lookups = [
                entry
                for entry in lookups
                if all(entry.get(key) == value for key, value in filters.items())
            ]

        return lookups[:limit]

    def clear(self) -> None:
        with self._lock:
            self.recent_lookups.clear()
