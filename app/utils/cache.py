import threading
import time
from typing import Any, Callable

# key -> (value, monotonic expiry)
_cache: dict[str, tuple[Any, float]] = {}
_lock = threading.Lock()


def get_cached(key: str):
    with _lock:
        entry = _cache.get(key)
        if not entry:
            return None
        value, expires_at = entry
        if expires_at < time.monotonic():
            _cache.pop(key, None)
            return None
        return value


def set_cached(key: str, value, ttl_seconds: int = 60):
    with _lock:
        _cache[key] = (value, time.monotonic() + ttl_seconds)


def remember(key: str, loader: Callable[[], Any], ttl_seconds: int = 60):
    value = get_cached(key)
    if value is None:
        value = loader()
        set_cached(key, value, ttl_seconds)
    return value


def invalidate_cached(prefix: str = "") -> int:
    with _lock:
        keys = [key for key in _cache if key.startswith(prefix)]
        for key in keys:
            del _cache[key]
    return len(keys)
