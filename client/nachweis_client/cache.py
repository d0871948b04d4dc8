"""Explicit query cache for list and detail views.

Entries are keyed by ``(endpoint, params)``. Mutations name the keys or the
endpoint they invalidate; nothing is revalidated implicitly. Every invalidation
bumps ``generation``; a read that started before it does not write back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


def _param_value(value: Any) -> str:
    return str(getattr(value, "value", value))


@dataclass(frozen=True)
class CacheKey:
    endpoint: str
    params: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def build(cls, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> "CacheKey":
        items = tuple(
            sorted((str(key), _param_value(value)) for key, value in (params or {}).items() if value is not None)
        )
        return cls(endpoint=endpoint, params=items)


class QueryCache:
    def __init__(self) -> None:
        self._entries: Dict[CacheKey, Any] = {}
        self.generation = 0

    def read(self, key: CacheKey) -> Optional[Any]:
        return self._entries.get(key)

    def write(self, key: CacheKey, value: Any, generation: Optional[int] = None) -> bool:
        if generation is not None and generation != self.generation:
            logger.debug("Veraltetes Ergebnis für %s verworfen", key)
            return False
        self._entries[key] = value
        return True

    def invalidate(self, key: CacheKey) -> bool:
        self.generation += 1
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug("Cache invalidiert: %s", key)
        return removed

    def invalidate_endpoint(self, endpoint: str) -> int:
        self.generation += 1
        stale = [key for key in self._entries if key.endpoint == endpoint]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("%s Cache-Einträge für %s invalidiert", len(stale), endpoint)
        return len(stale)

    def keys(self) -> List[CacheKey]:
        return list(self._entries)

    def clear(self) -> None:
        self.generation += 1
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
