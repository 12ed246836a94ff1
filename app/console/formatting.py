from typing import Optional, Union


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def format_duration(seconds: Optional[int]) -> str:
    """Human label for a plan duration: "30 min", "1 hour", "1 day", "7 days"."""
    seconds = int(seconds or 0)
    if seconds <= 0:
        return "0 min"
    if seconds % 86400 == 0:
        return _plural(seconds // 86400, "day")
    if seconds % 3600 == 0:
        return _plural(seconds // 3600, "hour")
    if seconds >= 86400:
        days, rest = divmod(seconds, 86400)
        return f"{_plural(days, 'day')} {_plural(rest // 3600, 'hour')}" if rest >= 3600 else _plural(days, "day")
    if seconds >= 3600:
        hours, rest = divmod(seconds, 3600)
        return f"{_plural(hours, 'hour')} {rest // 60} min" if rest >= 60 else _plural(hours, "hour")
    return f"{max(1, seconds // 60)} min"


def format_currency(amount: Union[int, float, None], currency: str = "KES") -> str:
    value = float(amount or 0)
    if value.is_integer():
        return f"{currency} {int(value):,}"
    return f"{currency} {value:,.2f}"


def format_speed(mbps: Optional[int]) -> str:
    return f"{mbps} Mbps" if mbps else "Unlimited"
