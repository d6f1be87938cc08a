from urllib.parse import urlparse

import humanize


INFINITE_ETA = 8640000  # qBittorrent reports this for "never"
ETA_STATES = ("downloading", "stalledDL", "queuedDL", "forcedDL", "metaDL")


def normalize_url(url):
    """
    Validate a WebUI base URL and return it without a trailing slash.

    A bare host ("nas:8080") is assumed to be http.

    Raises:
        ValueError: if the URL has no host or a non-http scheme
    """
    url = (url or "").strip()
    if not url:
        raise ValueError("URL is empty")
    if "://" not in url:
        url = f"http://{url}"

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Unsupported URL scheme '{parsed.scheme}' (use http or https)")
    if not parsed.hostname:
        raise ValueError(f"Invalid URL '{url}' (e.g. http://localhost:8080)")
    try:
        parsed.port
    except ValueError:
        raise ValueError(f"Invalid port in URL '{url}'")
    return url.rstrip("/")


def format_size(size):
    """Format bytes as a human-readable binary size, e.g. '1.5 MiB'."""
    if size is None:
        return "N/A"
    return humanize.naturalsize(max(size, 0), binary=True)


def format_speed(rate):
    """Format a transfer rate; idle rates render as an empty cell."""
    if not rate or rate <= 0:
        return ""
    return f"{format_size(rate)}/s"


def format_eta(eta, raw_state):
    if raw_state not in ETA_STATES:
        return "-"
    if eta is None or eta < 0 or eta >= INFINITE_ETA:
        return "∞"
    if eta == 0:
        return "0s"
    if eta < 60:
        return f"{eta}s"
    if eta < 3600:
        return f"{eta // 60}m"
    if eta < 86400:
        return f"{eta // 3600}h{(eta % 3600) // 60}m"
    return f"{eta // 86400}d{(eta % 86400) // 3600}h"


def truncate(text, width):
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width <= 3:
        return text[:width]
    return text[:width - 3] + "..."
