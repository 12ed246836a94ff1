import asyncio
from datetime import datetime, timedelta, timezone

import httpx

from app.console.api import ApiClient
from app.console.session import (
    SUPERADMIN_SESSION_KEY,
    FileSessionStore,
    MemorySessionStore,
    RouteGuard,
    SessionManager,
)


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _manager(store=None, key="admin_session"):
    clock = FakeClock()
    return SessionManager(store or MemorySessionStore(), key, clock=clock), clock


def test_session_expires_after_ten_idle_minutes():
    session, clock = _manager()
    session.login({"id": 1, "role": "admin"}, "access", "refresh")

    clock.advance(minutes=9, seconds=59)
    assert session.is_authenticated

    clock.advance(seconds=1)
    assert session.current() is None
    assert session.store.get("admin_session") is None


def test_touch_extends_the_session():
    session, clock = _manager()
    session.login({"id": 1, "role": "admin"})

    clock.advance(minutes=8)
    session.touch()
    clock.advance(minutes=8)
    assert session.user == {"id": 1, "role": "admin"}


def test_corrupt_session_is_discarded():
    store = MemorySessionStore()
    store.set("admin_session", {"user": {"id": 1}, "lastActivity": "yesterday"})
    session, _ = _manager(store)
    assert session.current() is None
    assert store.get("admin_session") is None


def test_logout_and_update_user():
    session, _ = _manager()
    session.login({"id": 1, "role": "admin", "fullName": "A"}, "token")
    session.update_user({"id": 1, "role": "admin", "fullName": "B"})
    assert session.user["fullName"] == "B"
    assert session.access_token() == "token"

    session.logout()
    assert session.user is None
    assert session.access_token() is None


def test_file_store_shares_sessions_between_instances(tmp_path):
    path = tmp_path / "console" / "sessions.json"
    admin, clock = _manager(FileSessionStore(path))
    admin.login({"id": 1, "role": "admin"}, "a-token")
    superadmin = SessionManager(FileSessionStore(path), SUPERADMIN_SESSION_KEY, clock=clock)
    superadmin.login({"id": 2, "role": "superadmin"}, "s-token")

    reopened = SessionManager(FileSessionStore(path), clock=clock)
    assert reopened.access_token() == "a-token"
    assert SessionManager(FileSessionStore(path), SUPERADMIN_SESSION_KEY, clock=clock).user["id"] == 2

    reopened.logout()
    assert FileSessionStore(path).get("admin_session") is None
    assert FileSessionStore(path).get(SUPERADMIN_SESSION_KEY) is not None


def test_file_store_treats_unreadable_file_as_empty(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text("{not json", encoding="utf-8")
    store = FileSessionStore(path)
    assert store.get("admin_session") is None

    store.set("admin_session", {"user": {}, "lastActivity": "2026-01-01T00:00:00+00:00"})
    assert store.get("admin_session")["user"] == {}


def test_route_guards():
    session, _ = _manager()
    admin_guard = RouteGuard.admin(session)
    tech_guard = RouteGuard.tech(session)
    super_guard = RouteGuard.superadmin(session)

    assert admin_guard.redirect_for() == "/login"

    session.login({"id": 1, "role": "tech"})
    assert not admin_guard.allows()
    assert tech_guard.allows()
    assert super_guard.redirect_for() == "/superadmin/login"

    session.login({"id": 1, "role": "admin"})
    assert admin_guard.allows()
    assert tech_guard.allows()

    session.login({"id": 2, "role": "superadmin"})
    assert admin_guard.allows()
    assert super_guard.allows()
    assert not tech_guard.allows()


def test_api_client_sends_token_and_records_activity():
    session, clock = _manager()
    session.login({"id": 1, "role": "admin"}, "abc")
    seen = []

    def handler(request):
        seen.append(request.headers.get("authorization"))
        return httpx.Response(200, json={"ok": True})

    async def scenario():
        async with ApiClient("http://console.test", session=session, transport=httpx.MockTransport(handler)) as client:
            clock.advance(minutes=9)
            await client.get("/api/auth/me")
            clock.advance(minutes=9)
            return session.is_authenticated

    assert asyncio.run(scenario()) is True
    assert seen == ["Bearer abc"]
