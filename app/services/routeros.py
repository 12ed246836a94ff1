"""RouterOS access: the operator terminal plus router monitoring and control.

Commands are written the way operators type them in Winbox/SSH
(``/ip hotspot active print``) and are mapped onto API calls:
menu path, verb and ``key=value`` arguments.
"""

import logging
import shlex
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional

from routeros_api import RouterOsApiPool
from routeros_api.exceptions import RouterOsApiError

from app.core.config import get_settings
from app.models import Hotspot

logger = logging.getLogger(__name__)

PoolFactory = Callable[[Hotspot], RouterOsApiPool]

READ_VERBS = {"print", "getall"}

BLOCKED_VERBS = {
    "reset-configuration",
    "reboot",
    "shutdown",
    "format-drive",
    "upgrade",
    "downgrade",
    "uninstall",
}

# Every verb is refused under these menus.
BLOCKED_PATHS = ("/system/package",)

# Read-only menus: print is fine, changes are not.
WRITE_PROTECTED_PATHS = (
    "/user",
    "/file",
    "/certificate",
    "/system/routerboard",
)

PREDEFINED_COMMANDS = [
    {
        "category": "System",
        "commands": [
            {"label": "System Resources", "command": "/system resource print", "description": "CPU, memory and uptime"},
            {"label": "Identity", "command": "/system identity print", "description": "Router name"},
            {"label": "Clock", "command": "/system clock print", "description": "Router date and time"},
            {"label": "Health", "command": "/system health print", "description": "Voltage and temperature"},
        ],
    },
    {
        "category": "Hotspot",
        "commands": [
            {"label": "Active Sessions", "command": "/ip hotspot active print", "description": "Connected hotspot users"},
            {"label": "Hotspot Users", "command": "/ip hotspot user print", "description": "Configured hotspot users"},
            {"label": "User Profiles", "command": "/ip hotspot user profile print", "description": "Speed profiles"},
            {"label": "Walled Garden", "command": "/ip hotspot walled-garden print", "description": "Pre-login allow-list"},
        ],
    },
    {
        "category": "PPPoE",
        "commands": [
            {"label": "Active Connections", "command": "/ppp active print", "description": "Connected PPPoE clients"},
            {"label": "Secrets", "command": "/ppp secret print", "description": "PPPoE accounts"},
            {"label": "Profiles", "command": "/ppp profile print", "description": "PPP profiles"},
        ],
    },
    {
        "category": "Network",
        "commands": [
            {"label": "Interfaces", "command": "/interface print", "description": "Interface list and status"},
            {"label": "IP Addresses", "command": "/ip address print", "description": "Assigned addresses"},
            {"label": "DHCP Leases", "command": "/ip dhcp-server lease print", "description": "Leased addresses"},
            {"label": "Routes", "command": "/ip route print", "description": "Routing table"},
            {"label": "ARP Table", "command": "/ip arp print", "description": "Neighbour MAC addresses"},
        ],
    },
    {
        "category": "Firewall",
        "commands": [
            {"label": "Filter Rules", "command": "/ip firewall filter print", "description": "Filter chain"},
            {"label": "NAT Rules", "command": "/ip firewall nat print", "description": "NAT chain"},
            {"label": "Queues", "command": "/queue simple print", "description": "Simple queues"},
        ],
    },
]


class CommandBlocked(Exception):
    pass


class CommandSyntaxError(ValueError):
    pass


@dataclass
class ParsedCommand:
    path: str
    verb: str
    args: dict[str, str] = field(default_factory=dict)


def parse_command(text: str) -> ParsedCommand:
    try:
        tokens = shlex.split((text or "").strip())
    except ValueError as exc:
        raise CommandSyntaxError(f"Invalid command: {exc}") from exc
    if not tokens:
        raise CommandSyntaxError("Command is empty")

    words: list[str] = []
    args: dict[str, str] = {}
    for token in tokens:
        if "=" in token and not token.startswith("/"):
            key, value = token.split("=", 1)
            if not key:
                raise CommandSyntaxError(f"Invalid argument: {token}")
            args[key] = value
        elif args:
            raise CommandSyntaxError("Arguments must come after the command")
        else:
            words.extend(part for part in token.split("/") if part)

    if not words:
        raise CommandSyntaxError("Command is missing a menu path")
    if len(words) == 1:
        # "/interface" alone reads like "/interface print".
        return ParsedCommand(path=f"/{words[0]}", verb="print", args=args)
    return ParsedCommand(path="/" + "/".join(words[:-1]), verb=words[-1], args=args)


def _under(path: str, root: str) -> bool:
    return path == root or path.startswith(root + "/")


def check_allowed(command: ParsedCommand) -> None:
    if command.verb in BLOCKED_VERBS:
        raise CommandBlocked(f"Command '{command.verb}' is blocked for safety")
    full = f"{command.path}/{command.verb}"
    for root in BLOCKED_PATHS:
        if _under(command.path, root) or _under(full, root):
            raise CommandBlocked(f"Commands under '{root}' are blocked for safety")
    if command.verb not in READ_VERBS:
        for root in WRITE_PROTECTED_PATHS:
            if _under(command.path, root):
                raise CommandBlocked(f"'{root}' is read-only from the terminal")


def _normalise_rows(rows: Any) -> Any:
    if rows is None:
        return []
    if isinstance(rows, (list, tuple)):
        return [dict(row) if hasattr(row, "keys") else row for row in rows]
    return rows


def _default_pool(hotspot: Hotspot) -> RouterOsApiPool:
    settings = get_settings()
    return RouterOsApiPool(
        hotspot.router_api_ip,
        username=hotspot.router_api_user,
        password=hotspot.router_api_pass or "",
        port=int(hotspot.router_api_port or 8728),
        use_ssl=settings.routeros_use_ssl,
        plaintext_login=True,
    )


def router_configured(hotspot: Hotspot) -> bool:
    return bool(hotspot.router_api_ip and hotspot.router_api_user)


class RouterUnavailable(Exception):
    pass


@contextmanager
def router_api(hotspot: Hotspot, pool_factory: Optional[PoolFactory] = None) -> Iterator[Any]:
    """Connected API for the hotspot's router; the pool is always disconnected afterwards."""
    pool = (pool_factory or _default_pool)(hotspot)
    try:
        yield pool.get_api()
    finally:
        try:
            pool.disconnect()
        except (RouterOsApiError, OSError):
            logger.debug("RouterOS disconnect failed hotspot=%s", hotspot.id)


def execute_command(hotspot: Hotspot, text: str, pool_factory: Optional[PoolFactory] = None) -> dict:
    """Run one operator command on the hotspot's router.

    Blocked or malformed commands raise; router-side failures come back as
    ``success: False`` so they can be shown inline in the terminal.
    """
    command = parse_command(text)
    check_allowed(command)

    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        with router_api(hotspot, pool_factory) as api:
            resource = api.get_resource(command.path)
            if command.verb in READ_VERBS:
                output = resource.get(**command.args)
            else:
                output = resource.call(command.verb, command.args)
        logger.info("RouterOS command ok hotspot=%s path=%s verb=%s", hotspot.id, command.path, command.verb)
        return {"command": text, "output": _normalise_rows(output), "success": True, "error": None, "timestamp": timestamp}
    except (RouterOsApiError, OSError) as exc:
        logger.warning("RouterOS command failed hotspot=%s path=%s error=%s", hotspot.id, command.path, exc)
        return {"command": text, "output": None, "success": False, "error": _describe(exc), "timestamp": timestamp}


def _describe(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _flag(value: Any) -> bool:
    return str(value).lower() in ("true", "yes")


def _row_id(row: dict) -> Optional[str]:
    return row.get(".id") or row.get("id")


def _read(hotspot: Hotspot, path: str, pool_factory: Optional[PoolFactory], **query) -> list[dict]:
    try:
        with router_api(hotspot, pool_factory) as api:
            return _normalise_rows(api.get_resource(path).get(**query))
    except (RouterOsApiError, OSError) as exc:
        logger.warning("RouterOS read failed hotspot=%s path=%s error=%s", hotspot.id, path, exc)
        raise RouterUnavailable(_describe(exc)) from exc


def check_connection(hotspot: Hotspot, pool_factory: Optional[PoolFactory] = None) -> dict:
    try:
        with router_api(hotspot, pool_factory) as api:
            identity = _normalise_rows(api.get_resource("/system/identity").get())
            resource = _normalise_rows(api.get_resource("/system/resource").get())
    except (RouterOsApiError, OSError) as exc:
        logger.warning("RouterOS connection test failed hotspot=%s error=%s", hotspot.id, exc)
        return {"success": False, "data": None, "error": _describe(exc)}
    info = resource[0] if resource else {}
    data = {
        "identity": identity[0].get("name") if identity else None,
        "version": info.get("version"),
        "boardName": info.get("board-name"),
        "uptime": info.get("uptime"),
    }
    logger.info("RouterOS connection test ok hotspot=%s identity=%s", hotspot.id, data["identity"])
    return {"success": True, "data": data, "error": None}


def active_sessions(hotspot: Hotspot, pool_factory: Optional[PoolFactory] = None) -> list[dict]:
    """Raw ``/ip/hotspot/active`` rows as the router reports them."""
    return _read(hotspot, "/ip/hotspot/active", pool_factory)


def hotspot_sessions(hotspot: Hotspot, pool_factory: Optional[PoolFactory] = None) -> list[dict]:
    return [
        {
            "id": _row_id(row),
            "user": row.get("user"),
            "address": row.get("address"),
            "macAddress": row.get("mac-address"),
            "uptime": row.get("uptime"),
            "bytesIn": _int(row.get("bytes-in")),
            "bytesOut": _int(row.get("bytes-out")),
        }
        for row in active_sessions(hotspot, pool_factory)
    ]


def interface_stats(hotspot: Hotspot, pool_factory: Optional[PoolFactory] = None) -> list[dict]:
    return [
        {
            "name": row.get("name"),
            "type": row.get("type"),
            "rxBytes": _int(row.get("rx-byte")),
            "txBytes": _int(row.get("tx-byte")),
            "rxPackets": _int(row.get("rx-packet")),
            "txPackets": _int(row.get("tx-packet")),
            "running": _flag(row.get("running")),
            "disabled": _flag(row.get("disabled")),
        }
        for row in _read(hotspot, "/interface", pool_factory)
    ]


def router_stats(hotspot: Hotspot, pool_factory: Optional[PoolFactory] = None) -> dict:
    rows = _read(hotspot, "/system/resource", pool_factory)
    info = rows[0] if rows else {}
    return {
        "uptime": info.get("uptime"),
        "cpuLoad": _int(info.get("cpu-load")),
        "freeMemory": _int(info.get("free-memory")),
        "totalMemory": _int(info.get("total-memory")),
        "freeDisk": _int(info.get("free-hdd-space")),
        "totalDisk": _int(info.get("total-hdd-space")),
        "boardName": info.get("board-name"),
        "version": info.get("version"),
        "architecture": info.get("architecture-name"),
    }


def disconnect_user(hotspot: Hotspot, username: str, pool_factory: Optional[PoolFactory] = None) -> int:
    """Remove every active hotspot session of ``username``; returns how many were removed."""
    try:
        with router_api(hotspot, pool_factory) as api:
            active = api.get_resource("/ip/hotspot/active")
            removed = 0
            for row in _normalise_rows(active.get(user=username)):
                session_id = _row_id(row)
                if session_id:
                    active.remove(id=session_id)
                    removed += 1
    except (RouterOsApiError, OSError) as exc:
        logger.warning("RouterOS disconnect failed hotspot=%s user=%s error=%s", hotspot.id, username, exc)
        raise RouterUnavailable(_describe(exc)) from exc
    logger.info("Disconnected hotspot user=%s sessions=%s hotspot=%s", username, removed, hotspot.id)
    return removed


def reboot_router(hotspot: Hotspot, pool_factory: Optional[PoolFactory] = None) -> None:
    try:
        with router_api(hotspot, pool_factory) as api:
            api.get_resource("/system").call("reboot")
    except (RouterOsApiError, OSError) as exc:
        logger.warning("RouterOS reboot failed hotspot=%s error=%s", hotspot.id, exc)
        raise RouterUnavailable(_describe(exc)) from exc
    logger.info("Reboot issued hotspot=%s", hotspot.id)
