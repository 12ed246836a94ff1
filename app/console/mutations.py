"""Write operations against the API with declarative cache invalidation.

Which cached resources a write touches is looked up in
``RESOURCE_DEPENDENCIES`` by the entity type of the write rather than
listed by each page.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from app.console.api import ApiClient, ConsoleError
from app.console.cache import KeyLike, QueryCache, Snapshot, normalize_key
from app.console.notifications import Notifier
from app.console.validation import ValidationFailed

logger = logging.getLogger(__name__)

RESOURCE_DEPENDENCIES: dict[str, tuple[str, ...]] = {
    "plans": ("/api/plans", "/api/dashboard"),
    "hotspots": ("/api/hotspots", "/api/dashboard"),
    "walled-gardens": ("/api/walled-gardens",),
    "wifi-users": ("/api/wifi-users", "/api/dashboard", "/api/reports", "/api/tech"),
    "transactions": ("/api/transactions", "/api/wifi-users", "/api/dashboard", "/api/reports"),
    "voucher-batches": ("/api/voucher-batches", "/api/vouchers"),
    "vouchers": ("/api/vouchers", "/api/voucher-batches"),
    "loyalty": ("/api/loyalty",),
    "tickets": ("/api/tickets", "/api/dashboard", "/api/tech"),
    "tenant": ("/api/tenant",),
    "auth": ("/api/auth/me", "/api/auth/2fa"),
    "superadmin": ("/api/superadmin",),
    "terminal": (),
}


def entity_for_path(path: str) -> Optional[str]:
    segments = [segment for segment in normalize_key(path) if isinstance(segment, str)]
    if segments and segments[0] == "api":
        segments = segments[1:]
    return segments[0] if segments else None


@dataclass
class Mutation:
    method: str
    path: str
    body: Any = None
    entity: Optional[str] = None
    invalidates: tuple = ()
    validate: Optional[Callable[[], None]] = None
    # cache key -> function of the current cached data returning the optimistic data
    optimistic: dict = field(default_factory=dict)
    success_title: Optional[str] = None
    success_message: str = ""
    error_title: str = "Error"

    @property
    def entity_type(self) -> Optional[str]:
        return self.entity or entity_for_path(self.path)


class MutationExecutor:
    def __init__(
        self,
        client: ApiClient,
        cache: QueryCache,
        notifier: Notifier,
        dependencies: Optional[dict[str, tuple[str, ...]]] = None,
    ):
        self.client = client
        self.cache = cache
        self.notifier = notifier
        self.dependencies = RESOURCE_DEPENDENCIES if dependencies is None else dependencies

    def keys_for(self, mutation: Mutation) -> list[KeyLike]:
        keys: list[KeyLike] = list(self.dependencies.get(mutation.entity_type or "", ()))
        keys.extend(mutation.invalidates)
        return keys

    def _apply_optimistic(self, mutation: Mutation) -> dict[tuple, Snapshot]:
        snapshots: dict[tuple, Snapshot] = {}
        for raw_key, updater in mutation.optimistic.items():
            key = normalize_key(raw_key)
            snapshots[key] = self.cache.snapshot(key)
            state = self.cache.peek(key)
            self.cache.set_data(key, updater(state.data if state else None))
        return snapshots

    def _rollback(self, snapshots: dict[tuple, Snapshot]) -> None:
        for key, snapshot in snapshots.items():
            self.cache.restore(key, snapshot)

    async def execute(self, mutation: Mutation) -> Any:
        """Validate, apply optimistic data, send, then invalidate or roll back.

        Failures are reported through the notifier and re-raised so the caller
        can keep its dialog open.
        """
        if mutation.validate is not None:
            try:
                mutation.validate()
            except ValidationFailed as exc:
                self.notifier.report(exc)
                raise

        snapshots = self._apply_optimistic(mutation)
        try:
            result = await self.client.request(mutation.method, mutation.path, json=mutation.body)
        except ConsoleError as exc:
            if snapshots:
                logger.info("Rolling back %s optimistic key(s) after %s %s", len(snapshots), mutation.method, mutation.path)
            self._rollback(snapshots)
            self.notifier.report(exc, mutation.error_title)
            raise

        await self.cache.invalidate_many(self.keys_for(mutation))
        if mutation.success_title:
            self.notifier.success(mutation.success_title, mutation.success_message)
        return result
