"""In-memory, time-bounded cache for LLM-derived recipes."""

import hashlib
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class ResponseCache:
    """Expiring key -> value map.

    Expired entries are dropped lazily when looked up. Access happens on the
    event loop thread only, so no locking is done.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    @staticmethod
    def make_key(kind: str, url: str, html: str) -> str:
        html_hash = hashlib.sha256(html.encode("utf-8", "ignore")).hexdigest()
        combined = hashlib.sha256((url + html_hash).encode("utf-8", "ignore")).hexdigest()
        return f"{kind}:{combined}"

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("LLM cache miss for %s", key[:24])
            return None
        expires_at, value = entry
        if self._clock() > expires_at:
            self.evict(key)
            logger.debug("LLM cache entry expired for %s", key[:24])
            return None
        logger.debug("LLM cache hit for %s", key[:24])
        return value

    def put(self, key: str, value: Any) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def evict(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
