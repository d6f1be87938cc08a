"""
qbittui - Terminal client for the qBittorrent WebUI.

Mirrors the torrent list of a remote qBittorrent instance and lets the user
pause, resume, delete and add torrents from the keyboard.
"""

__version__ = "0.1.0"

from .client import QBittorrentClient
from .config import Config

__all__ = ["QBittorrentClient", "Config"]
