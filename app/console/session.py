"""Client-side session persistence and route guarding.

A session is ``{"user": {...}, "lastActivity": <iso8601>, "accessToken": ...,
"refreshToken": ...}`` stored under ``admin_session`` or
``superadmin_session``. It expires after ten idle minutes.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

logger = logging.getLogger(__name__)

ADMIN_SESSION_KEY = "admin_session"
SUPERADMIN_SESSION_KEY = "superadmin_session"
SESSION_TIMEOUT_SECONDS = 10 * 60

LOGIN_PATH = "/login"
SUPERADMIN_LOGIN_PATH = "/superadmin/login"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    def get(self, key: str) -> Optional[dict]:
        raise NotImplementedError

    def set(self, key: str, value: dict) -> None:
        raise NotImplementedError

    def clear(self, key: str) -> None:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[dict]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: dict) -> None:
        self._data[key] = json.dumps(value)

    def clear(self, key: str) -> None:
        self._data.pop(key, None)


class FileSessionStore(SessionStore):
    """All sessions in one JSON document; an unreadable file counts as empty."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> dict:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(data, handle)
        os.replace(tmp, self.path)

    def get(self, key: str) -> Optional[dict]:
        value = self._load().get(key)
        return value if isinstance(value, dict) else None

    def set(self, key: str, value: dict) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def clear(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


class SessionManager:
    def __init__(
        self,
        store: SessionStore,
        key: str = ADMIN_SESSION_KEY,
        timeout_seconds: int = SESSION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.key = key
        self.timeout = timedelta(seconds=timeout_seconds)
        self._clock = clock

    def login(self, user: dict, access_token: Optional[str] = None, refresh_token: Optional[str] = None) -> dict:
        session = {
            "user": user,
            "lastActivity": self._clock().isoformat(),
            "accessToken": access_token,
            "refreshToken": refresh_token,
        }
        self.store.set(self.key, session)
        return session

    def logout(self) -> None:
        self.store.clear(self.key)

    def current(self) -> Optional[dict]:
        session = self.store.get(self.key)
        if session is None:
            return None
        try:
            last_activity = datetime.fromisoformat(session["lastActivity"])
        except (KeyError, TypeError, ValueError):
            self.store.clear(self.key)
            return None
        if last_activity.tzinfo is None:
            last_activity = last_activity.replace(tzinfo=timezone.utc)
        if self._clock() - last_activity >= self.timeout:
            logger.info("Session %s expired after inactivity", self.key)
            self.store.clear(self.key)
            return None
        return session

    @property
    def user(self) -> Optional[dict]:
        session = self.current()
        return session.get("user") if session else None

    @property
    def is_authenticated(self) -> bool:
        return self.current() is not None

    def touch(self) -> None:
        session = self.current()
        if session is None:
            return
        session["lastActivity"] = self._clock().isoformat()
        self.store.set(self.key, session)

    def access_token(self) -> Optional[str]:
        session = self.current()
        return session.get("accessToken") if session else None

    def update_user(self, user: dict) -> None:
        session = self.current()
        if session is None:
            return
        session["user"] = user
        self.store.set(self.key, session)


class RouteGuard:
    """Decides whether a protected view may render, or where to send the operator instead."""

    def __init__(self, session: SessionManager, roles: Iterable[str], login_path: str = LOGIN_PATH):
        self.session = session
        self.roles = frozenset(roles)
        self.login_path = login_path

    def redirect_for(self) -> Optional[str]:
        user = self.session.user
        if not user:
            return self.login_path
        if user.get("role") not in self.roles:
            return self.login_path
        return None

    def allows(self) -> bool:
        return self.redirect_for() is None

    @classmethod
    def admin(cls, session: SessionManager) -> "RouteGuard":
        return cls(session, ("admin", "superadmin"), LOGIN_PATH)

    @classmethod
    def tech(cls, session: SessionManager) -> "RouteGuard":
        return cls(session, ("tech", "admin"), LOGIN_PATH)

    @classmethod
    def superadmin(cls, session: SessionManager) -> "RouteGuard":
        return cls(session, ("superadmin",), SUPERADMIN_LOGIN_PATH)
