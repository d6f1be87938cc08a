"""
Session management for the remote service.

Owns the authentication state machine of a Session:

    UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED -> EXPIRED
                              \\-> UNAUTHENTICATED (failed login)

Only the event loop calls into this class; network workers learn about the
session exclusively through the SessionContext snapshot they are handed.
"""

import dataclasses
from typing import Optional

from .base_client import RemoteService
from .errors import AuthError, AuthErrorKind, RemoteError
from .logger import logger
from .models import AuthStatus, Session, SessionContext


class SessionManager:
    def __init__(self, client: RemoteService):
        self.client = client
        self._generation = 0

    def begin(self, session: Session, url: str, username: str) -> None:
        """Record a login attempt for url/username."""
        session.base_url = url
        session.username = username
        session.status = AuthStatus.AUTHENTICATING
        session.last_error = None
        session.context = None

    def authenticate(self, url: str, username: str, password: str) -> Session:
        """
        Perform the login exchange.

        Blocking; the event loop runs it on a worker thread. The password is
        only forwarded to the transport and is not kept on the returned
        Session.

        Raises:
            AuthError: INVALID_CREDENTIALS or UNREACHABLE
        """
        context = self.client.login(url, username, password)

        try:
            version = self.client.app_version(context)
        except RemoteError as e:
            logger.debug(f"Could not read application version: {e}")
            version = None

        return Session(
            base_url=url,
            username=username,
            status=AuthStatus.AUTHENTICATED,
            context=context,
            version=version,
        )

    def accept(self, session: Session, authenticated: Session) -> None:
        """Adopt the result of a successful authenticate() into the live session."""
        self._generation += 1
        session.base_url = authenticated.base_url
        session.username = authenticated.username
        session.status = AuthStatus.AUTHENTICATED
        session.last_error = None
        session.version = authenticated.version
        session.generation = self._generation
        session.context = dataclasses.replace(authenticated.context, generation=self._generation)

    def reject(self, session: Session, error: AuthError) -> None:
        session.status = AuthStatus.UNAUTHENTICATED
        session.last_error = error.reason
        session.context = None

    def ensure_valid(self, session: Session) -> SessionContext:
        """
        Return the context to hand to a network task.

        Raises:
            AuthError: NOT_AUTHENTICATED unless the session is Authenticated
        """
        if session.status is not AuthStatus.AUTHENTICATED or session.context is None:
            raise AuthError(AuthErrorKind.NOT_AUTHENTICATED)
        return session.context

    def mark_expired(self, session: Session) -> bool:
        """
        Flag the session as expired.

        Idempotent. Returns True only for the Authenticated -> Expired
        transition, so callers react to an expiry once however many tasks
        report it.
        """
        if session.status is not AuthStatus.AUTHENTICATED:
            return False
        logger.info(f"Session for {session.username} at {session.base_url} expired")
        session.status = AuthStatus.EXPIRED
        session.last_error = "Session expired, please log in again"
        session.context = None
        return True

    def logout(self, session: Session) -> Optional[SessionContext]:
        """
        Reset the session to Unauthenticated.

        Returns the context that was active so the caller can end it remotely
        off the event loop thread.
        """
        context = session.context
        session.status = AuthStatus.UNAUTHENTICATED
        session.last_error = None
        session.context = None
        logger.info(f"Logged out {session.username} from {session.base_url}")
        return context
