"""Operator terminal for a hotspot's router.

Entries are kept in dispatch order: each command takes a sequence number
when it is sent, and its result is inserted by that number however late
the response arrives.
"""

import bisect
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from app.console.api import ApiClient, ConsoleError
from app.console.notifications import Notifier

logger = logging.getLogger(__name__)


@dataclass
class TerminalEntry:
    sequence: int
    command: str
    output: Any = None
    success: bool = False
    error: Optional[str] = None
    timestamp: str = ""
    pending: bool = True


class TerminalSession:
    def __init__(self, client: ApiClient, notifier: Notifier, hotspot_id: Optional[int] = None):
        self.client = client
        self.notifier = notifier
        self.hotspot_id = hotspot_id
        self.entries: list[TerminalEntry] = []
        self.pending: dict[int, TerminalEntry] = {}
        self.history: list[str] = []
        self._sequence = itertools.count(1)

    def select_hotspot(self, hotspot_id: Optional[int]) -> None:
        self.hotspot_id = hotspot_id

    def _insert(self, entry: TerminalEntry) -> None:
        keys = [existing.sequence for existing in self.entries]
        self.entries.insert(bisect.bisect(keys, entry.sequence), entry)

    async def run(self, command: str) -> Optional[TerminalEntry]:
        command = (command or "").strip()
        if not command:
            return None
        if self.hotspot_id is None:
            self.notifier.error("No router selected", "Select a hotspot before running commands.")
            return None

        entry = TerminalEntry(sequence=next(self._sequence), command=command)
        self.history.append(command)
        self.pending[entry.sequence] = entry
        try:
            result = await self.client.post(
                "/api/terminal/execute",
                json={"hotspotId": self.hotspot_id, "command": command},
            )
        except ConsoleError as exc:
            entry.success = False
            entry.error = exc.message
            entry.timestamp = datetime.now(timezone.utc).isoformat()
        else:
            entry.output = result.get("output")
            entry.success = bool(result.get("success"))
            entry.error = result.get("error")
            entry.timestamp = result.get("timestamp") or datetime.now(timezone.utc).isoformat()
        entry.pending = False
        del self.pending[entry.sequence]
        self._insert(entry)
        logger.debug("Terminal entry %s finished success=%s", entry.sequence, entry.success)
        return entry

    async def load_commands(self) -> list[dict]:
        return await self.client.get("/api/terminal/commands")

    def clear(self) -> None:
        self.entries.clear()
