"""On-disk store of chat-completion replies, so reruns skip repeated model calls."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from diskcache import Cache

DEFAULT_CACHE_DIR = Path("~/.mongolens-cache")


@dataclass(slots=True)
class CacheConfig:
    directory: Optional[Path] = None
    timeout: float = 0.1
    # Seconds before a reply expires; None keeps replies until evicted.
    ttl: Optional[int] = None


class ResponseCache:
    """Chat-completion reply bodies keyed by the ``stable_hash`` of their request payload.

    Enrichment, context and query prompts all go through the same cache; the
    request payload already carries the model name, so switching models never
    reuses another model's replies.
    """

    def __init__(self, config: CacheConfig) -> None:
        directory = (config.directory or DEFAULT_CACHE_DIR).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        self._expire = config.ttl
        self._store = Cache(str(directory), timeout=config.timeout)

    def get(self, request_key: str) -> Optional[dict[str, Any]]:
        return self._store.get(request_key)

    def set(self, request_key: str, reply: dict[str, Any]) -> None:
        self._store.set(request_key, reply, expire=self._expire)

    def delete(self, request_key: str) -> None:
        self._store.delete(request_key)

    def close(self) -> None:
        self._store.close()
