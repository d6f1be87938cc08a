from datetime import timezone as dt_timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

from .config import Config


LOG_PATH = Config.LOG_PATH
LOG_LEVEL = Config.LOG_LEVEL
LOG_ROTATION = Config.LOG_ROTATION
LOG_RETENTION = Config.LOG_RETENTION
TIMEZONE = Config.TIMEZONE

LOG_FORMAT = "[{extra[local_time]}] {level: <8} {name}:{function} - {message}"


def resolve_timezone(name):
    """Return a tzinfo for name, falling back to UTC for unknown zones."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return dt_timezone.utc


def is_valid_timezone(name) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def configure(path=LOG_PATH, level=LOG_LEVEL, timezone=TIMEZONE) -> int:
    """
    Route all log records to a file sink.

    The default stderr sink is removed because curses owns the screen while
    the client runs. Timestamps are rendered in the given timezone.
    """
    tz = resolve_timezone(timezone)

    def stamp(record):
        local = record["time"].astimezone(tz)
        record["extra"]["local_time"] = local.strftime("%Y-%m-%d %H:%M:%S %Z")

    logger.remove()
    logger.configure(patcher=stamp)

    # Log to a file
    return logger.add(
        path,
        rotation=LOG_ROTATION,
        retention=LOG_RETENTION,
        level=level,
        format=LOG_FORMAT,
    )
