"""
Query Result Cache

Short-lived, in-process cache for record listings. The data-access layer
only depends on the QueryCache interface, so the default TTLQueryCache can be
replaced by a bounded LRU or an external store without touching the query
builder.
"""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def make_cache_key(options: Dict[str, Any]) -> str:
    """Serialize query options deterministically."""
    return json.dumps(options, sort_keys=True, default=str, ensure_ascii=False)


class QueryCache(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class TTLQueryCache(QueryCache):
    """
    Time-boxed map. Entries expire after `ttl_seconds`; once the map holds
    more than `max_entries` it is emptied wholesale before the next insert.
    """

    def __init__(self, ttl_seconds: float = 300, max_entries: int = 50,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if len(self._entries) > self.max_entries:
                logger.debug(f"Query cache exceeded {self.max_entries} entries, clearing")
                self._entries.clear()
            self._entries[key] = (self._clock(), value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
