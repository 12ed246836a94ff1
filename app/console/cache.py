"""Keyed cache of remote resources for the console.

Keys are tuples of path segments, optionally ending in a :class:`Params`
holding the query string, so ``"/api/plans?type=HOTSPOT"`` becomes
``("api", "plans", Params((("type", "HOTSPOT"),)))``. Invalidating the
prefix ``"/api/plans"`` then reaches every filtered variant as well as
``/api/plans/<id>``.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Union
from urllib.parse import parse_qsl, urlencode

from app.console.api import ApiClient, ConsoleError

logger = logging.getLogger(__name__)

Subscriber = Callable[[tuple, "QueryState"], None]

TRANSACTIONS_POLL_SECONDS = 30


@dataclass(frozen=True)
class Params:
    items: tuple

    @classmethod
    def from_mapping(cls, mapping: dict) -> "Params":
        return cls(tuple(sorted((str(k), str(v)) for k, v in mapping.items() if v is not None)))

    def as_dict(self) -> dict:
        return dict(self.items)


KeyLike = Union[str, tuple, list]


def normalize_key(key: KeyLike) -> tuple:
    if isinstance(key, str):
        parts = [key]
    else:
        parts = list(key)

    segments: list = []
    params: dict = {}
    for part in parts:
        if isinstance(part, Params):
            params.update(part.as_dict())
        elif isinstance(part, dict):
            params.update({k: v for k, v in part.items() if v is not None})
        else:
            path, _, query = str(part).partition("?")
            segments.extend(segment for segment in path.split("/") if segment)
            params.update(dict(parse_qsl(query)))

    if params:
        return tuple(segments) + (Params.from_mapping(params),)
    return tuple(segments)


def build_url(key: KeyLike) -> str:
    key = normalize_key(key)
    params = None
    if key and isinstance(key[-1], Params):
        params = key[-1]
        key = key[:-1]
    url = "/" + "/".join(key)
    if params and params.items:
        url += "?" + urlencode(params.items)
    return url


def key_matches(key: tuple, prefix: tuple) -> bool:
    """True when ``prefix`` selects ``key``.

    A prefix without params selects every params variant; a prefix with
    params only selects keys carrying the same params.
    """
    if prefix and isinstance(prefix[-1], Params):
        return key == prefix
    path = key[:-1] if key and isinstance(key[-1], Params) else key
    return path[: len(prefix)] == prefix


@dataclass
class QueryState:
    data: Any = None
    is_loading: bool = False
    error: Optional[ConsoleError] = None
    is_stale: bool = True
    updated_at: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.updated_at is not None


@dataclass(frozen=True)
class Snapshot:
    existed: bool
    data: Any = None
    updated_at: Optional[float] = None


class QueryCache:
    def __init__(self, client: ApiClient, clock: Callable[[], float] = time.monotonic):
        self.client = client
        self._clock = clock
        self._entries: dict[tuple, QueryState] = {}
        self._subscribers: dict[tuple, list[Subscriber]] = {}
        self._latest_fetch: dict[tuple, int] = {}
        self._sequence = itertools.count(1)
        self._pollers: dict[tuple, asyncio.Task] = {}

    def _state(self, key: tuple) -> QueryState:
        state = self._entries.get(key)
        if state is None:
            state = QueryState()
            self._entries[key] = state
        return state

    def _notify(self, key: tuple) -> None:
        state = self._entries.get(key)
        for callback in list(self._subscribers.get(key, ())):
            try:
                callback(key, state)
            except Exception:
                logger.exception("Cache subscriber failed for %s", build_url(key))

    def peek(self, key: KeyLike) -> Optional[QueryState]:
        return self._entries.get(normalize_key(key))

    def keys(self) -> list[tuple]:
        return list(self._entries)

    async def get(self, key: KeyLike) -> QueryState:
        key = normalize_key(key)
        state = self._entries.get(key)
        if state is None or state.is_stale:
            return await self.fetch(key)
        return state

    async def fetch(self, key: KeyLike) -> QueryState:
        """Fetch ``key`` now. Only the newest fetch issued for a key may write its result."""
        key = normalize_key(key)
        ticket = next(self._sequence)
        self._latest_fetch[key] = ticket
        state = self._state(key)
        state.is_loading = True
        self._notify(key)

        try:
            data = await self.client.get(build_url(key))
        except ConsoleError as exc:
            if self._latest_fetch.get(key) != ticket:
                return state
            state.error = exc
            state.is_loading = False
            self._notify(key)
            return state
        except BaseException:
            # Unexpected errors and cancelled polls must not leave the key loading.
            if self._latest_fetch.get(key) == ticket:
                state.is_loading = False
                self._notify(key)
            raise

        if self._latest_fetch.get(key) != ticket:
            logger.debug("Discarding superseded fetch for %s", build_url(key))
            return state
        state.data = data
        state.error = None
        state.is_loading = False
        state.is_stale = False
        state.updated_at = self._clock()
        self._notify(key)
        return state

    def subscribe(self, key: KeyLike, callback: Subscriber) -> Callable[[], None]:
        key = normalize_key(key)
        self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._subscribers.pop(key, None)

        return unsubscribe

    def has_subscribers(self, key: KeyLike) -> bool:
        return bool(self._subscribers.get(normalize_key(key)))

    async def invalidate(self, prefix: KeyLike) -> list[tuple]:
        """Mark every key under ``prefix`` stale and refetch the ones being watched."""
        prefix = normalize_key(prefix)
        matched = [key for key in set(self._entries) | set(self._subscribers) if key_matches(key, prefix)]
        for key in matched:
            self._state(key).is_stale = True
        active = [key for key in matched if self._subscribers.get(key)]
        if active:
            await asyncio.gather(*(self.fetch(key) for key in active))
        return active

    async def invalidate_many(self, prefixes: Iterable[KeyLike]) -> list[tuple]:
        refetched: list[tuple] = []
        seen: set = set()
        for prefix in prefixes:
            normalized = normalize_key(prefix)
            if normalized in seen:
                continue
            seen.add(normalized)
            for key in await self.invalidate(normalized):
                if key not in refetched:
                    refetched.append(key)
        return refetched

    def set_data(self, key: KeyLike, data: Any) -> QueryState:
        key = normalize_key(key)
        # A local write supersedes anything still in flight for this key.
        self._latest_fetch[key] = next(self._sequence)
        state = self._state(key)
        state.data = data
        state.error = None
        state.is_loading = False
        state.updated_at = self._clock()
        self._notify(key)
        return state

    def snapshot(self, key: KeyLike) -> Snapshot:
        state = self._entries.get(normalize_key(key))
        if state is None or not state.has_data:
            return Snapshot(existed=False)
        return Snapshot(existed=True, data=state.data, updated_at=state.updated_at)

    def restore(self, key: KeyLike, snapshot: Snapshot) -> None:
        key = normalize_key(key)
        self._latest_fetch[key] = next(self._sequence)
        if not snapshot.existed:
            state = self._entries.get(key)
            if state is not None:
                state.data = None
                state.updated_at = None
                state.is_stale = True
                state.is_loading = False
            self._notify(key)
            return
        state = self._state(key)
        state.data = snapshot.data
        state.updated_at = snapshot.updated_at
        state.is_loading = False
        self._notify(key)

    def remove(self, key: KeyLike) -> None:
        key = normalize_key(key)
        self._entries.pop(key, None)
        self._latest_fetch.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._latest_fetch.clear()

    async def refetch_active(self) -> list[tuple]:
        """Refetch every watched key, the console's stand-in for window focus."""
        active = [key for key, callbacks in self._subscribers.items() if callbacks]
        if active:
            await asyncio.gather(*(self.fetch(key) for key in active))
        return active

    def start_polling(self, key: KeyLike, interval: float = TRANSACTIONS_POLL_SECONDS) -> asyncio.Task:
        key = normalize_key(key)
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.stop_polling(key)
        task = asyncio.get_running_loop().create_task(self._poll(key, interval))
        self._pollers[key] = task
        return task

    async def _poll(self, key: tuple, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.fetch(key)
            except Exception:
                logger.exception("Polling %s failed", build_url(key))

    def stop_polling(self, key: KeyLike) -> bool:
        task = self._pollers.pop(normalize_key(key), None)
        if task is None:
            return False
        task.cancel()
        return True

    def is_polling(self, key: KeyLike) -> bool:
        task = self._pollers.get(normalize_key(key))
        return task is not None and not task.done()

    def stop_all_polling(self) -> None:
        for key in list(self._pollers):
            self.stop_polling(key)
