"""In-memory response cache.

Caches assembled answers by a fingerprint of the backend-bound request,
so two source requests that compile to the same instruction for the same
model share one backend call.  A hit replays the stored answer with a
fresh id and zeroed usage; content blocks, including tool-call ids, are
returned unchanged.

Eviction is pluggable: ``UnboundedPolicy`` keeps everything for the life
of the process, ``LRUPolicy`` bounds the entry count.  An optional TTL is
measured with an injectable clock.

Typical usage::

    from toolbridge.cache import LRUPolicy, ResponseCache

    cache = ResponseCache(policy=LRUPolicy(max_entries=512))
    key = ResponseCache.fingerprint(messages, "gpt-4o")
    if (hit := cache.get(key)) is None:
        cache.put(key, response)
"""

from __future__ import annotations

import hashlib
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from toolbridge.ids import IdGenerator
from toolbridge.models import AnswerResponse
from toolbridge.prompts import compact_json

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class EvictionPolicy(ABC):
    """Decides which keys leave the cache.

    The cache reports every access and insertion; the policy returns the
    keys to drop after an insertion.
    """

    @abstractmethod
    def touched(self, key: str) -> None:
        """Record a read of *key*."""

    @abstractmethod
    def inserted(self, key: str) -> list[str]:
        """Record an insertion of *key* and return keys to evict."""

    @abstractmethod
    def removed(self, key: str) -> None:
        """Forget *key* after the cache dropped it."""


class UnboundedPolicy(EvictionPolicy):
    """Never evicts."""

    def touched(self, key: str) -> None:
        pass

    def inserted(self, key: str) -> list[str]:
        return []

    def removed(self, key: str) -> None:
        pass


class LRUPolicy(EvictionPolicy):
    """Evicts the least recently used keys beyond ``max_entries``.

    Args:
        max_entries: Maximum number of cached keys, at least 1.
    """

    def __init__(self, max_entries: int) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._order: OrderedDict[str, None] = OrderedDict()

    def touched(self, key: str) -> None:
        if key in self._order:
            self._order.move_to_end(key)

    def inserted(self, key: str) -> list[str]:
        self._order[key] = None
        self._order.move_to_end(key)
        evicted: list[str] = []
        while len(self._order) > self.max_entries:
            oldest, _ = self._order.popitem(last=False)
            evicted.append(oldest)
        return evicted

    def removed(self, key: str) -> None:
        self._order.pop(key, None)


@dataclass
class _Entry:
    response: AnswerResponse
    stored_at: float


class ResponseCache:
    """Fingerprint → answer map with replay semantics.

    Not locked; concurrent writers of the same key are last-writer-wins.

    Args:
        policy: Eviction policy.  Defaults to ``UnboundedPolicy``.
        ttl: Seconds an entry stays valid, or ``None`` for no expiry.
        clock: Time source for TTL checks.
        ids: Generator for replayed response ids.
    """

    def __init__(
        self,
        policy: EvictionPolicy | None = None,
        *,
        ttl: float | None = None,
        clock: Clock = time.monotonic,
        ids: IdGenerator | None = None,
    ) -> None:
        self._policy = policy or UnboundedPolicy()
        self._ttl = ttl
        self._clock = clock
        self._ids = ids or IdGenerator()
        self._entries: dict[str, _Entry] = {}

    @staticmethod
    def fingerprint(messages: list[dict[str, Any]], model: str) -> str:
        """Cache key for a backend-bound request.

        Args:
            messages: The messages array sent to the backend.
            model: Resolved model identifier.

        Returns:
            ``<md5 of the compact messages JSON>-<model>``.
        """
        digest = hashlib.md5(compact_json(messages).encode("utf-8")).hexdigest()
        return f"{digest}-{model}"

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> AnswerResponse | None:
        """Return a replay of the cached answer, or ``None`` on a miss.

        Args:
            key: Fingerprint from ``fingerprint()``.

        Returns:
            A copy of the stored answer with a new id and zeroed usage.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._ttl is not None and self._clock() - entry.stored_at >= self._ttl:
            self._drop(key)
            return None
        self._policy.touched(key)
        return entry.response.replay(self._ids.message_id())

    def put(self, key: str, response: AnswerResponse) -> None:
        """Store *response* under *key*, evicting as the policy decides."""
        self._entries[key] = _Entry(response=response, stored_at=self._clock())
        for evicted in self._policy.inserted(key):
            self._entries.pop(evicted, None)
            logger.debug("Evicted cached answer %s", evicted)

    def clear(self) -> None:
        for key in list(self._entries):
            self._drop(key)

    def _drop(self, key: str) -> None:
        self._entries.pop(key, None)
        self._policy.removed(key)
