"""
TTL result cache owned by one RecordEngine.

Entries expire lazily (checked on read) and eagerly (a daemon sweeper thread
removes expired entries every `sweep_interval` seconds). A disabled cache
accepts every call and stores nothing.
"""

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from ..utils.logger import logger


def identity_key(table: str, record_id: Any) -> str:
    return f"{table}:id:{record_id}"


def query_key(table: str, sql: str, params: Sequence[Any]) -> str:
    """Fingerprint of a statement and its bound parameters"""
    payload = json.dumps([sql, list(params or ())], default=str, sort_keys=True)
    return f"{table}:query:{hashlib.sha256(payload.encode('utf-8')).hexdigest()}"


@dataclass
class CacheEntry:
    key: str
    value: Any
    inserted_at: float


class ResultCache:
    def __init__(self, enabled: bool = False, ttl: float = 300.0, sweep_interval: float = 60.0,
                 clock=time.monotonic):
        self.enabled = enabled
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at >= self.ttl

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry, self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._entries[key] = CacheEntry(key, value, self._clock())

    def discard(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Remove every entry whose key starts with prefix (all entries when None)"""
        with self._lock:
            if prefix is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                stale = [key for key in self._entries if key.startswith(prefix)]
                for key in stale:
                    del self._entries[key]
                removed = len(stale)
        if removed:
            logger.debug(f"Cache invalidated {removed} entries (prefix={prefix})")
        return removed

    def sweep(self) -> int:
        """Drop expired entries; returns how many were removed"""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if self._expired(entry, now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -------------------------------------------------------------------------
    # Background sweeper
    # -------------------------------------------------------------------------

    def start_sweeper(self) -> None:
        if not self.enabled or (self._sweeper and self._sweeper.is_alive()):
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="recordbase-cache-sweeper", daemon=True)
        self._sweeper.start()

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self.sweep_interval):
            removed = self.sweep()
            if removed:
                logger.debug(f"Cache sweep removed {removed} expired entries")

    def close(self) -> None:
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1.0)
            self._sweeper = None
        self.invalidate()
