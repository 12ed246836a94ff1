import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from app.console.api import ConsoleError

logger = logging.getLogger(__name__)

DEFAULT = "default"
DESTRUCTIVE = "destructive"


@dataclass
class Notification:
    title: str
    description: str = ""
    variant: str = DEFAULT
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_error(self) -> bool:
        return self.variant == DESTRUCTIVE


class Notifier:
    """Transient toast-style messages, kept newest last."""

    def __init__(self, limit: int = 50):
        self.limit = limit
        self.entries: list[Notification] = []
        self._listeners: list[Callable[[Notification], None]] = []

    def listen(self, callback: Callable[[Notification], None]) -> None:
        self._listeners.append(callback)

    def notify(self, title: str, description: str = "", variant: str = DEFAULT) -> Notification:
        entry = Notification(title=title, description=description or "", variant=variant)
        self.entries.append(entry)
        if len(self.entries) > self.limit:
            del self.entries[: len(self.entries) - self.limit]
        if variant == DESTRUCTIVE:
            logger.warning("%s: %s", title, description)
        else:
            logger.info("%s: %s", title, description)
        for callback in self._listeners:
            callback(entry)
        return entry

    def success(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description)

    def error(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description, DESTRUCTIVE)

    def report(self, exc: ConsoleError, title: Optional[str] = None) -> Notification:
        return self.error(title or exc.title, exc.message)

    @property
    def latest(self) -> Optional[Notification]:
        return self.entries[-1] if self.entries else None

    def clear(self) -> None:
        self.entries.clear()
