"""
Persistent connection settings.

Stores the last successful WebUI URL and username (and the log timezone) as
JSON. The password is never written. Settings are read once at startup and
written only after a successful login.
"""

import json
import os
from dataclasses import asdict, dataclass
from typing import Optional

from .config import Config
from .logger import logger


CONFIG_PATH = Config.CONFIG_PATH
TIMEZONE = Config.TIMEZONE


@dataclass
class Settings:
    url: Optional[str] = None
    username: Optional[str] = None
    timezone: str = TIMEZONE

    def update_connection_info(self, url: str, username: str) -> None:
        self.url = url
        self.username = username


def load(path: str = CONFIG_PATH) -> Settings:
    """Load settings, falling back to defaults if the file is missing or unreadable."""
    if not os.path.exists(path):
        return Settings()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read config file {path}: {e}")
        return Settings()

    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: expected a JSON object")
        return Settings()

    defaults = Settings()
    values = {}
    for name in ("url", "username", "timezone"):
        value = data.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            logger.warning(f"Ignoring '{name}' in config file {path}: expected a string, got {type(value).__name__}")
            continue
        values[name] = value

    return Settings(
        url=values.get("url") or defaults.url,
        username=values.get("username") or defaults.username,
        timezone=values.get("timezone") or defaults.timezone,
    )


def save(settings: Settings, path: str = CONFIG_PATH) -> None:
    """
    Write settings as JSON.

    Raises:
        OSError: if the file cannot be written
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(asdict(settings), f, indent=2)
    os.replace(tmp_path, path)
    logger.debug(f"Saved connection info to {path}")
