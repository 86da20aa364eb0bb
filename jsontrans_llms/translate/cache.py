"""
Translation cache.

Maps (source text, target language) to a previously produced translation so
the same string is never sent to the API twice. Source text is normalized
before it becomes part of a key:

    normalize_text(text) = lower(escape_quotes(escape_newlines(text)))

Lookups and stores both go through ``cache_key()``; there is no other way to
build a key, so the two sides cannot drift apart.

The cache file is a JSON document:

    {
      "translations": {"hello world_es": "Hola Mundo", ...},
      "totalTokensUsed": 1234,
      "totalRequests": 12,
      "lastUpdated": "2025-01-01T12:00:00+00:00"
    }
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class TokenUsage:
    """Token counts reported by one API call."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class CacheStats:
    entries: int
    total_tokens_used: int
    total_requests: int


def escape_newlines(text: str) -> str:
    return text.replace("\n", "\\n")


def escape_quotes(text: str) -> str:
    return text.replace('"', '\\"')


def normalize_text(text: str) -> str:
    """Canonical form of source text used in cache keys."""
    return escape_quotes(escape_newlines(text)).lower()


def cache_key(text: str, language: str) -> str:
    """Cache key for ``text`` translated into ``language``.

    The language is joined with a plain underscore, so ``("a_b", "c")`` and
    ``("a", "b_c")`` share a key. Saved caches rely on this layout.
    """
    return f"{normalize_text(text)}_{language}"


class TranslationCache:
    """In-memory translation cache shared by all language workers.

    Thread-safe: every access to the underlying dict holds the lock. The
    cache never evicts; callers decide when to persist it (see
    ``pending_writes`` and ``save_cache``).
    """

    def __init__(
        self,
        translations: Optional[dict[str, str]] = None,
        total_tokens_used: int = 0,
        total_requests: int = 0,
    ):
        self._translations: dict[str, str] = dict(translations or {})
        self.total_tokens_used = total_tokens_used
        self.total_requests = total_requests
        self.pending_writes = 0
        self._lock = threading.Lock()

    def lookup(self, text: str, language: str) -> Optional[str]:
        """Return the cached translation of ``text`` or None."""
        key = cache_key(text, language)
        with self._lock:
            return self._translations.get(key)

    def store(self, text: str, language: str, translation: str) -> None:
        key = cache_key(text, language)
        with self._lock:
            self._translations[key] = translation
            self.pending_writes += 1

    def record_usage(self, usage: Optional[TokenUsage]) -> None:
        """Add one request's token usage to the running totals."""
        if usage is None:
            return
        with self._lock:
            self.total_tokens_used += usage.total_tokens
            self.total_requests += 1
        logger.debug(
            "Tokens used: %sp + %sc = %st (total: %s)",
            usage.prompt_tokens,
            usage.completion_tokens,
            usage.total_tokens,
            self.total_tokens_used,
        )

    def clear(self) -> None:
        """Drop every entry and reset the usage counters."""
        with self._lock:
            self._translations.clear()
            self.total_tokens_used = 0
            self.total_requests = 0
            self.pending_writes = 0

    def mark_saved(self) -> None:
        with self._lock:
            self.pending_writes = 0

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                entries=len(self._translations),
                total_tokens_used=self.total_tokens_used,
                total_requests=self.total_requests,
            )

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "translations": dict(self._translations),
                "totalTokensUsed": self.total_tokens_used,
                "totalRequests": self.total_requests,
                "lastUpdated": datetime.now(timezone.utc).isoformat(),
            }

    @classmethod
    def from_dict(cls, data: dict) -> "TranslationCache":
        return cls(
            translations=data.get("translations") or {},
            total_tokens_used=data.get("totalTokensUsed") or 0,
            total_requests=data.get("totalRequests") or 0,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._translations)


def load_cache(path: Path) -> TranslationCache:
    """Load the cache file, creating an empty one if it does not exist.

    An unreadable or corrupt file is logged and replaced by an empty cache
    in memory; it is overwritten on the next save.
    """
    path = Path(path)
    if not path.exists():
        cache = TranslationCache()
        save_cache(cache, path)
        logger.info("Created new translation cache at %s", path)
        return cache

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not load translation cache %s (%s), starting fresh", path, e)
        return TranslationCache()

    if not isinstance(data, dict):
        logger.warning("Translation cache %s is not a JSON object, starting fresh", path)
        return TranslationCache()

    cache = TranslationCache.from_dict(data)
    stats = cache.stats()
    logger.info(
        "Loaded translation cache with %s entries (%s tokens used, %s requests)",
        stats.entries,
        stats.total_tokens_used,
        stats.total_requests,
    )
    return cache


def save_cache(cache: TranslationCache, path: Path) -> None:
    """Write the cache to ``path`` (2-space indented JSON)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(cache.to_dict(), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    cache.mark_saved()
