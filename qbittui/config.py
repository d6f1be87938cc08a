import os
import dotenv


dotenv.load_dotenv()


# Defaults
DEBUG = False
LOG_PATH = "qbittui_debug.log"
LOG_LEVEL = "DEBUG" if DEBUG else "INFO"
LOG_ROTATION = "1 week"
LOG_RETENTION = "1 month"
CONFIG_PATH = os.path.expanduser("~/.qbittui_config.json")

DEFAULT_URL = "http://localhost:8080"
TIMEZONE = "UTC"

# Remote polling (in seconds)
POLL_INTERVAL = 1.5
REQUEST_TIMEOUT = 10.0
WORKERS = 4

# Smallest usable terminal surface
MIN_WIDTH = 80
MIN_HEIGHT = 24


class Config:
    DEBUG = os.getenv("QBITTUI_DEBUG", str(DEBUG)).lower() == "true"

    LOG_PATH = os.getenv("QBITTUI_LOG_PATH", LOG_PATH)
    LOG_LEVEL = os.getenv("QBITTUI_LOG_LEVEL", "DEBUG" if DEBUG else LOG_LEVEL)
    LOG_ROTATION = os.getenv("QBITTUI_LOG_ROTATION", LOG_ROTATION)
    LOG_RETENTION = os.getenv("QBITTUI_LOG_RETENTION", LOG_RETENTION)

    CONFIG_PATH = os.getenv("QBITTUI_CONFIG_PATH", CONFIG_PATH)

    DEFAULT_URL = os.getenv("QBITTUI_URL", DEFAULT_URL)
    TIMEZONE = os.getenv("QBITTUI_TIMEZONE", TIMEZONE)

    POLL_INTERVAL = float(os.getenv("QBITTUI_POLL_INTERVAL", POLL_INTERVAL))
    REQUEST_TIMEOUT = float(os.getenv("QBITTUI_REQUEST_TIMEOUT", REQUEST_TIMEOUT))
    WORKERS = int(os.getenv("QBITTUI_WORKERS", WORKERS))

    MIN_WIDTH = int(os.getenv("QBITTUI_MIN_WIDTH", MIN_WIDTH))
    MIN_HEIGHT = int(os.getenv("QBITTUI_MIN_HEIGHT", MIN_HEIGHT))
