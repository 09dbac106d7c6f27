from __future__ import annotations

import json
import logging
import os
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .models import PromotionSnapshot

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = 1

PAID_USERS_KEY = "paid_users_list"
PROMOTION_KEY = "active_promotion_data"

PAID_USERS_TTL_SECONDS = 60 * 60
PROMOTION_TTL_SECONDS = 10 * 60

DEFAULT_TTLS: Dict[str, int] = {
    PAID_USERS_KEY: PAID_USERS_TTL_SECONDS,
    PROMOTION_KEY: PROMOTION_TTL_SECONDS,
}


class EntitlementCache:
    """Redis-backed cache of global entitlement inputs with in-memory fallback.

    Entries are keyed by fixed names (the paid-user set and the resolved
    promotion are global, not per-user). Each name has a declared TTL.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttls: Optional[Dict[str, int]] = None,
        default_ttl_seconds: int = 300,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._ttls = dict(DEFAULT_TTLS)
        self._ttls.update(ttls or {})
        self._default_ttl_seconds = default_ttl_seconds
        self._clock = clock or time.monotonic
        self._redis = None
        self._mem: Dict[str, tuple[float, int, dict]] = {}
        self._generations: Dict[str, int] = {}
        self._lock = threading.Lock()
        redis_url = redis_url if redis_url is not None else os.getenv("REDIS_URL")

        if redis_url:
            try:
                import redis

                self._redis = redis.from_url(redis_url, decode_responses=True)
                self._redis.ping()
            except Exception as exc:
                logger.warning("Redis unavailable, using in-memory cache", extra={"error": str(exc)})
                self._redis = None

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    @staticmethod
    def _require_name(name: str) -> str:
        normalized = str(name).strip()
        if not normalized:
            raise ValueError("cache key name is required")
        return normalized

    @staticmethod
    def _key(name: str) -> str:
        return f"premium:v1:{name}"

    def ttl_for(self, name: str) -> int:
        return self._ttls.get(name, self._default_ttl_seconds)

    def get(self, name: str) -> Optional[Any]:
        key = self._key(self._require_name(name))

        if self._redis is not None:
            raw = self._redis.get(key)
            if not raw:
                return None
            return _unwrap(json.loads(raw))

        with self._lock:
            entry = self._mem.get(key)
            if entry is None:
                return None
            stored_at, ttl, envelope = entry
            if self._clock() - stored_at >= ttl:
                self._mem.pop(key, None)
                return None
        return _unwrap(envelope)

    @staticmethod
    def _generation_key(name: str) -> str:
        return f"premium:v1:{name}:generation"

    def generation(self, name: str) -> int:
        """Invalidation counter for `name`; bumped by every invalidate()."""
        normalized = self._require_name(name)
        if self._redis is not None:
            return int(self._redis.get(self._generation_key(normalized)) or 0)
        with self._lock:
            return self._generations.get(normalized, 0)

    def set(
        self,
        name: str,
        value: Any,
        *,
        ttl_seconds: Optional[int] = None,
        expected_generation: Optional[int] = None,
    ) -> bool:
        """
        Store `value` under `name`.

        With expected_generation the write only happens if no invalidate()
        ran since that generation was read, so a slow reader cannot put a
        superseded value back. Returns False when the write was skipped.
        """
        normalized = self._require_name(name)
        ttl = ttl_seconds or self.ttl_for(normalized)
        key = self._key(normalized)
        envelope = {"schema_version": CACHE_SCHEMA_VERSION, "value": value}

        if self._redis is not None:
            if expected_generation is None:
                self._redis.setex(key, ttl, json.dumps(envelope))
                return True
            return self._redis_set_if_generation(normalized, key, ttl, envelope, expected_generation)

        with self._lock:
            if expected_generation is not None and self._generations.get(normalized, 0) != expected_generation:
                return False
            self._mem[key] = (self._clock(), ttl, envelope)
        return True

    def _redis_set_if_generation(self, name: str, key: str, ttl: int, envelope: dict, expected: int) -> bool:
        from redis.exceptions import WatchError

        generation_key = self._generation_key(name)
        with self._redis.pipeline() as pipe:
            try:
                pipe.watch(generation_key)
                if int(pipe.get(generation_key) or 0) != expected:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.setex(key, ttl, json.dumps(envelope))
                pipe.execute()
            except WatchError:
                return False
        return True

    def invalidate(self, name: str) -> None:
        """Remove the entry outright so the next read goes to the source."""
        normalized = self._require_name(name)
        key = self._key(normalized)
        # bump before delete: a conditional write landing in between is still removed
        if self._redis is not None:
            self._redis.incr(self._generation_key(normalized))
            self._redis.delete(key)
        with self._lock:
            self._generations[normalized] = self._generations.get(normalized, 0) + 1
            self._mem.pop(key, None)

    # -------------------------------------------------------------------------
    # Typed accessors
    # -------------------------------------------------------------------------

    def get_paid_users(self) -> Optional[List[str]]:
        value = self.get(PAID_USERS_KEY)
        return list(value) if value is not None else None

    def paid_users_generation(self) -> int:
        return self.generation(PAID_USERS_KEY)

    def set_paid_users(self, emails: List[str], *, expected_generation: Optional[int] = None) -> bool:
        return self.set(PAID_USERS_KEY, list(emails), expected_generation=expected_generation)

    def invalidate_paid_users(self) -> None:
        self.invalidate(PAID_USERS_KEY)

    def get_promotion(self) -> Optional[PromotionSnapshot]:
        value = self.get(PROMOTION_KEY)
        return PromotionSnapshot.from_dict(value) if value is not None else None

    def set_promotion(self, snapshot: PromotionSnapshot) -> None:
        self.set(PROMOTION_KEY, snapshot.to_dict())

    def invalidate_promotion(self) -> None:
        self.invalidate(PROMOTION_KEY)


def _unwrap(envelope: dict) -> Optional[Any]:
    # entries written by another schema version are treated as a miss
    if not isinstance(envelope, dict):
        return None
    if int(envelope.get("schema_version", -1)) != CACHE_SCHEMA_VERSION:
        return None
    return envelope.get("value")
