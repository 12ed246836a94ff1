from typing import Any, Optional

from app.schemas.common import ApiModel


class TerminalExecuteRequest(ApiModel):
    hotspot_id: int
    command: str


class TerminalResult(ApiModel):
    command: str
    output: Any = None
    success: bool
    error: Optional[str] = None
    timestamp: str


class PredefinedCommand(ApiModel):
    label: str
    command: str
    description: str


class CommandCategory(ApiModel):
    category: str
    commands: list[PredefinedCommand]
