import logging
from typing import Optional

import httpx

from app.console.api import ApiClient, ConsoleError
from app.console.cache import QueryCache
from app.console.mutations import MutationExecutor
from app.console.notifications import Notifier
from app.console.session import (
    ADMIN_SESSION_KEY,
    SUPERADMIN_SESSION_KEY,
    MemorySessionStore,
    RouteGuard,
    SessionManager,
    SessionStore,
)

logger = logging.getLogger(__name__)


class Console:
    """One operator's console: API client, cache, mutation executor, session and notifications."""

    def __init__(
        self,
        base_url: str,
        store: Optional[SessionStore] = None,
        session_key: str = ADMIN_SESSION_KEY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.notifier = Notifier()
        self.session = SessionManager(store or MemorySessionStore(), session_key)
        self.client = ApiClient(base_url, session=self.session, transport=transport, timeout=timeout)
        self.cache = QueryCache(self.client)
        self.mutations = MutationExecutor(self.client, self.cache, self.notifier)

    @property
    def guard(self) -> RouteGuard:
        if self.session.key == SUPERADMIN_SESSION_KEY:
            return RouteGuard.superadmin(self.session)
        return RouteGuard.admin(self.session)

    async def login(self, username: str, password: str, code: Optional[str] = None) -> Optional[dict]:
        body = {"username": username, "password": password}
        if code:
            body["code"] = code
        try:
            data = await self.client.post("/api/auth/login", json=body)
        except ConsoleError as exc:
            self.notifier.report(exc, "Login failed")
            return None
        user = data.get("user") or {}
        if self.session.key == SUPERADMIN_SESSION_KEY and user.get("role") != "superadmin":
            self.notifier.error("Access denied", "Superadmin access required")
            return None
        self.session.login(user, data.get("accessToken"), data.get("refreshToken"))
        return user

    async def logout(self) -> None:
        try:
            await self.client.post("/api/auth/logout")
        except ConsoleError as exc:
            logger.info("Logout request failed, clearing session anyway: %s", exc.message)
        finally:
            self.session.logout()
            self.cache.stop_all_polling()
            self.cache.clear()

    async def aclose(self) -> None:
        self.cache.stop_all_polling()
        await self.client.aclose()

    async def __aenter__(self) -> "Console":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
