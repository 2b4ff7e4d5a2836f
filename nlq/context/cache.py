"""Process-local TTL cache for context payloads."""
from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from nlq.types import ContextPayload, EntityBag, Intent

DEFAULT_TTL_SECONDS = 1800


def cache_key(intent: Intent, entities: EntityBag) -> str:
    """SHA-256 of the canonical JSON form of ``(intent, entities)``."""
    canonical = json.dumps(
        {"intent": intent.value, "entities": entities.cache_fields()},
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    value: ContextPayload
    expires_at: float


class ContextCache:
    """Entries expire ``ttl_seconds`` after being stored and are evicted on lookup.

    No locking: two requests computing the same key simply both store it.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[ContextPayload]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock() >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: str, value: ContextPayload) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self.clock() + self.ttl_seconds)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
