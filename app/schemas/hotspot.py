from datetime import datetime
from typing import Any, Optional

from app.schemas.common import ApiModel


class HotspotCreate(ApiModel):
    location_name: str
    description: Optional[str] = None
    nas_ip: str
    secret: str
    router_api_ip: Optional[str] = None
    router_api_user: Optional[str] = None
    router_api_pass: Optional[str] = None
    router_api_port: int = 8728
    is_active: bool = True


class HotspotUpdate(ApiModel):
    location_name: Optional[str] = None
    description: Optional[str] = None
    nas_ip: Optional[str] = None
    secret: Optional[str] = None
    router_api_ip: Optional[str] = None
    router_api_user: Optional[str] = None
    router_api_pass: Optional[str] = None
    router_api_port: Optional[int] = None
    is_active: Optional[bool] = None


class HotspotOut(ApiModel):
    id: int
    location_name: str
    description: Optional[str] = None
    nas_ip: str
    secret: str
    router_api_ip: Optional[str] = None
    router_api_user: Optional[str] = None
    router_api_port: int
    is_active: bool
    created_at: Optional[datetime] = None


class RouterResult(ApiModel):
    success: bool
    data: Any = None
    error: Optional[str] = None


class RouterSession(ApiModel):
    id: Optional[str] = None
    user: Optional[str] = None
    address: Optional[str] = None
    mac_address: Optional[str] = None
    uptime: Optional[str] = None
    bytes_in: int = 0
    bytes_out: int = 0


class RouterInterface(ApiModel):
    name: Optional[str] = None
    type: Optional[str] = None
    rx_bytes: int = 0
    tx_bytes: int = 0
    rx_packets: int = 0
    tx_packets: int = 0
    running: bool = False
    disabled: bool = False


class RouterStats(ApiModel):
    uptime: Optional[str] = None
    cpu_load: int = 0
    free_memory: int = 0
    total_memory: int = 0
    free_disk: int = 0
    total_disk: int = 0
    board_name: Optional[str] = None
    version: Optional[str] = None
    architecture: Optional[str] = None


class DisconnectRequest(ApiModel):
    username: Optional[str] = None


class RebootResult(ApiModel):
    success: bool
    message: str
