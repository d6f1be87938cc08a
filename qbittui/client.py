"""
Python client for the qBittorrent WebUI API (v2).

Implements RemoteService over requests. The client itself holds no
authentication state: the SID cookie returned by login travels inside the
immutable SessionContext and is attached to every call explicitly, so worker
threads can share one client safely.

Usage:
    from qbittui.client import QBittorrentClient

    client = QBittorrentClient()
    context = client.login("http://localhost:8080", "admin", "adminadmin")
    torrents = client.list_torrents(context)
"""

import os
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

import requests

from .base_client import RemoteService
from .config import Config
from .errors import AuthError, AuthErrorKind, RemoteError, RemoteErrorKind
from .logger import logger
from .models import ActionKind, ServerState, SessionContext, Torrent


REQUEST_TIMEOUT = Config.REQUEST_TIMEOUT

URL_PREFIXES = ("magnet:", "http://", "https://", "bc://bt/")

# qBittorrent 5 renamed pause/resume to stop/start; older servers answer 404.
ACTION_ENDPOINTS = {
    ActionKind.PAUSE: ("torrents/stop", "torrents/pause"),
    ActionKind.RESUME: ("torrents/start", "torrents/resume"),
}


class QBittorrentClient(RemoteService):
    def __init__(self, timeout: float = REQUEST_TIMEOUT):
        self.timeout = timeout
        self.session = requests.Session()
        # Cookies live in SessionContext, never in the shared jar
        self.session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))

    def _url(self, base_url: str, endpoint: str) -> str:
        return urljoin(base_url.rstrip('/') + "/api/v2/", endpoint.lstrip('/'))

    def _request(
        self,
        base_url: str,
        method: str,
        endpoint: str,
        cookies: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> requests.Response:
        url = self._url(base_url, endpoint)
        headers = {"Referer": base_url}
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method, url, cookies=cookies, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.exceptions.Timeout:
            logger.error(f"{method} {url} timed out after {self.timeout}s")
            raise RemoteError(RemoteErrorKind.NETWORK, f"Timed out contacting {base_url}")
        except requests.exceptions.ConnectionError:
            logger.error(f"{method} {url} failed: could not connect")
            raise RemoteError(RemoteErrorKind.NETWORK, f"Could not connect to server at {base_url}")
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise RemoteError(RemoteErrorKind.NETWORK, f"Request failed: {e}")

        if response.status_code == 403:
            logger.error(f"{method} {url} answered 403 Forbidden")
            raise RemoteError(RemoteErrorKind.UNAUTHORIZED, "Session expired or not authorized")
        if response.status_code == 404:
            logger.error(f"{method} {url} answered 404 Not Found")
            raise RemoteError(RemoteErrorKind.NOT_FOUND, f"{endpoint} not found")
        if not response.ok:
            body = response.text.strip()
            logger.error(f"{method} {url} answered {response.status_code}: {body}")
            reason = f"{response.status_code} {response.reason}"
            if body:
                reason += f" - {body}"
            raise RemoteError(RemoteErrorKind.REJECTED, reason)

        return response

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            logger.error(f"Malformed JSON from {response.url}")
            raise RemoteError(RemoteErrorKind.REJECTED, "Malformed response from server")

    # -------------------------------------------------------------------------
    # Auth Methods
    # -------------------------------------------------------------------------

    def login(self, base_url: str, username: str, password: str) -> SessionContext:
        """Login with username and password, returning the session cookies."""
        try:
            response = self._request(
                base_url,
                "POST",
                "auth/login",
                data={"username": username, "password": password},
            )
        except RemoteError as e:
            if e.kind is RemoteErrorKind.NETWORK:
                raise AuthError(AuthErrorKind.UNREACHABLE, e.reason)
            if e.kind is RemoteErrorKind.UNAUTHORIZED:
                raise AuthError(
                    AuthErrorKind.INVALID_CREDENTIALS,
                    "Login refused (too many failed attempts?)",
                )
            raise AuthError(AuthErrorKind.UNREACHABLE, f"Not a qBittorrent WebUI: {e.reason}")

        text = response.text.strip()
        if text != "Ok.":
            logger.info(f"Login for {username} at {base_url} failed: {text}")
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS, "Invalid username or password")

        cookies = tuple(sorted(response.cookies.get_dict().items()))
        logger.info(f"Logged in to {base_url} as {username}")
        return SessionContext(base_url=base_url, cookies=cookies)

    def logout(self, context: SessionContext) -> None:
        self._request(context.base_url, "POST", "auth/logout", cookies=context.cookie_dict())

    def app_version(self, context: SessionContext) -> str:
        response = self._request(context.base_url, "GET", "app/version", cookies=context.cookie_dict())
        return response.text.strip()

    # -------------------------------------------------------------------------
    # Torrent Methods
    # -------------------------------------------------------------------------

    def list_torrents(self, context: SessionContext) -> List[Torrent]:
        return self._torrents(context)

    def _torrents(self, context: SessionContext, hashes: Optional[Iterable[str]] = None) -> List[Torrent]:
        params = {"hashes": "|".join(hashes)} if hashes else None
        response = self._request(
            context.base_url, "GET", "torrents/info", cookies=context.cookie_dict(), params=params
        )
        payload = self._json(response)
        if not isinstance(payload, list):
            raise RemoteError(RemoteErrorKind.REJECTED, "Unexpected torrent list payload")

        torrents = {}
        for item in payload:
            try:
                torrent = Torrent.from_api(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping malformed torrent entry: {e}")
                continue
            torrents[torrent.hash] = torrent
        return list(torrents.values())

    def transfer_info(self, context: SessionContext) -> ServerState:
        response = self._request(context.base_url, "GET", "transfer/info", cookies=context.cookie_dict())
        return ServerState.from_api(self._json(response))

    def _require_known(self, context: SessionContext, handles: List[str]) -> None:
        known = {torrent.hash for torrent in self._torrents(context, handles)}
        missing = [h for h in handles if h not in known]
        if missing:
            raise RemoteError(RemoteErrorKind.NOT_FOUND, "Torrent no longer exists")

    def apply_action(
        self,
        context: SessionContext,
        handles: Iterable[str],
        kind: ActionKind,
        delete_files: bool = False,
    ) -> None:
        handles = list(handles)
        self._require_known(context, handles)
        data = {"hashes": "|".join(handles)}
        logger.info(f"{kind.value} {data['hashes']}")

        if kind is ActionKind.DELETE:
            data["deleteFiles"] = "true" if delete_files else "false"
            self._request(context.base_url, "POST", "torrents/delete", cookies=context.cookie_dict(), data=data)
            return

        if kind not in ACTION_ENDPOINTS:
            raise ValueError(f"Unsupported action: {kind}")

        current, legacy = ACTION_ENDPOINTS[kind]
        try:
            self._request(context.base_url, "POST", current, cookies=context.cookie_dict(), data=data)
        except RemoteError as e:
            if e.kind is not RemoteErrorKind.NOT_FOUND:
                raise
            logger.debug(f"{current} unavailable, retrying with {legacy}")
            self._request(context.base_url, "POST", legacy, cookies=context.cookie_dict(), data=data)

    def add_torrent(self, context: SessionContext, path: str) -> None:
        if path.startswith(URL_PREFIXES):
            response = self._request(
                context.base_url, "POST", "torrents/add", cookies=context.cookie_dict(), data={"urls": path}
            )
        else:
            path = os.path.expanduser(path)
            try:
                with open(path, "rb") as f:
                    torrent_data = f.read()
            except OSError as e:
                raise RemoteError(RemoteErrorKind.REJECTED, f"Cannot read {path}: {e.strerror}")

            files = {"torrents": (os.path.basename(path), torrent_data, "application/x-bittorrent")}
            response = self._request(
                context.base_url, "POST", "torrents/add", cookies=context.cookie_dict(), files=files
            )

        if response.text.strip() == "Fails.":
            raise RemoteError(RemoteErrorKind.REJECTED, "Server rejected the torrent")
