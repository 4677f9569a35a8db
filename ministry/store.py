"""
Key-value store abstraction over an ordered key space.

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production. Keys are tuples of strings and integers;
scans are ordered by key so timestamp components give chronological order.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Protocol, Tuple, Union

import redis.asyncio as aioredis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

KeyPart = Union[str, int]
Key = Tuple[KeyPart, ...]

_INT_OFFSET = 2**63
_SEPARATOR = "\x00"
_STR_TAG = "1"
_INT_TAG = "2"


class StoreError(RuntimeError):
    """The underlying store operation failed (I/O, connection)."""


class KeyValueStore(Protocol):
    """Operations every component needs from the store."""

    async def get(self, key: Key) -> Optional[Any]:
        ...

    async def set(self, key: Key, value: Any) -> None:
        ...

    async def delete(self, key: Key) -> None:
        ...

    def scan(
        self, prefix: Key = (), *, reverse: bool = False
    ) -> AsyncIterator[tuple[Key, Any]]:
        ...


def _check_key(key: Key, *, allow_empty: bool = False) -> Key:
    key = tuple(key)
    if not key and not allow_empty:
        raise ValueError("Key must have at least one part")
    for part in key:
        if isinstance(part, bool) or not isinstance(part, (str, int)):
            raise TypeError(f"Unsupported key part {part!r} in {key!r}")
        if isinstance(part, str) and _SEPARATOR in part:
            raise ValueError(f"Key part may not contain NUL: {part!r}")
        if isinstance(part, int) and not -_INT_OFFSET <= part < _INT_OFFSET:
            raise ValueError(f"Integer key part out of range: {part}")
    return key


def sort_key(key: Key) -> tuple:
    """Total order over keys: strings sort before integers per component."""
    return tuple((0, part) if isinstance(part, str) else (1, part) for part in key)


def has_prefix(key: Key, prefix: Key) -> bool:
    return len(key) > len(prefix) and key[: len(prefix)] == prefix


def encode_key(key: Key) -> str:
    """
    Encode a key so that byte-wise ordering of encodings matches sort_key.
    """
    parts = []
    for part in _check_key(key, allow_empty=True):
        if isinstance(part, str):
            parts.append(_STR_TAG + part)
        else:
            parts.append(f"{_INT_TAG}{part + _INT_OFFSET:020d}")
    return _SEPARATOR.join(parts)


def decode_key(encoded: str) -> Key:
    parts: list[KeyPart] = []
    for raw in encoded.split(_SEPARATOR):
        tag, body = raw[:1], raw[1:]
        if tag == _STR_TAG:
            parts.append(body)
        elif tag == _INT_TAG:
            parts.append(int(body) - _INT_OFFSET)
        else:
            raise ValueError(f"Corrupt key encoding: {encoded!r}")
    return tuple(parts)


@dataclass
class InMemoryKeyValueStore:
    """Dict-backed store for testing/dev."""

    items: Dict[Key, str] = field(default_factory=dict)

    async def get(self, key: Key) -> Optional[Any]:
        raw = self.items.get(_check_key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: Key, value: Any) -> None:
        # Use JSON string to mimic real backend serialization
        self.items[_check_key(key)] = json.dumps(value, default=str)

    async def delete(self, key: Key) -> None:
        self.items.pop(_check_key(key), None)

    async def scan(
        self, prefix: Key = (), *, reverse: bool = False
    ) -> AsyncIterator[tuple[Key, Any]]:
        prefix = _check_key(prefix, allow_empty=True)
        matching = sorted(
            (key for key in self.items if has_prefix(key, prefix)),
            key=sort_key,
            reverse=reverse,
        )
        for key in matching:
            raw = self.items.get(key)
            if raw is None:
                # Deleted while the scan was in progress.
                continue
            yield key, json.loads(raw)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.items.clear()


@dataclass
class RedisKeyValueStore:
    """
    Redis-backed store.

    Values live in one hash keyed by the encoded key; the encoded keys also
    live in a sorted set (all scores 0) so prefix scans can use lexical
    ranges.
    """

    url: str
    namespace: str = "ministry"
    page_size: int = 100

    def __post_init__(self):
        self.client = aioredis.Redis.from_url(self.url, decode_responses=True)
        self._values_key = f"{self.namespace}:values"
        self._keys_key = f"{self.namespace}:keys"

    async def get(self, key: Key) -> Optional[Any]:
        member = encode_key(_check_key(key))
        try:
            raw = await self.client.hget(self._values_key, member)
        except redis_exceptions.RedisError as exc:
            raise StoreError(f"get {key!r} failed: {exc}") from exc
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: Key, value: Any) -> None:
        member = encode_key(_check_key(key))
        payload = json.dumps(value, default=str)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.hset(self._values_key, member, payload)
                pipe.zadd(self._keys_key, {member: 0})
                await pipe.execute()
        except redis_exceptions.RedisError as exc:
            raise StoreError(f"set {key!r} failed: {exc}") from exc

    async def delete(self, key: Key) -> None:
        member = encode_key(_check_key(key))
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.hdel(self._values_key, member)
                pipe.zrem(self._keys_key, member)
                await pipe.execute()
        except redis_exceptions.RedisError as exc:
            raise StoreError(f"delete {key!r} failed: {exc}") from exc

    async def scan(
        self, prefix: Key = (), *, reverse: bool = False
    ) -> AsyncIterator[tuple[Key, Any]]:
        prefix = _check_key(prefix, allow_empty=True)
        if prefix:
            encoded = encode_key(prefix)
            low, high = f"[{encoded}\x00", f"({encoded}\x01"
        else:
            low, high = "-", "+"

        while True:
            try:
                if reverse:
                    members = await self.client.zrevrangebylex(
                        self._keys_key, high, low, start=0, num=self.page_size
                    )
                else:
                    members = await self.client.zrangebylex(
                        self._keys_key, low, high, start=0, num=self.page_size
                    )
                if not members:
                    return
                values = await self.client.hmget(self._values_key, members)
            except redis_exceptions.RedisError as exc:
                raise StoreError(f"scan {prefix!r} failed: {exc}") from exc

            for member, raw in zip(members, values):
                if raw is None:
                    continue
                yield decode_key(member), json.loads(raw)

            if len(members) < self.page_size:
                return
            # Continue after the last member seen.
            if reverse:
                high = f"({members[-1]}"
            else:
                low = f"({members[-1]}"

    async def close(self) -> None:
        await self.client.aclose()
