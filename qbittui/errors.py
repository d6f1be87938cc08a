"""
Error taxonomy for the client.

Every failure that crosses a component boundary is one of three exception
types, each carrying a closed ``kind`` and a human readable ``reason``:

- AuthError: login exchange and session validity
- PollError: the periodic torrent list fetch
- ActionError: user initiated pause/resume/delete/add requests

The Unauthorized kinds are the only ones the event loop escalates; everything
else ends at the status banner.
"""

from enum import Enum


class AuthErrorKind(Enum):
    INVALID_CREDENTIALS = "invalid credentials"
    UNREACHABLE = "unreachable"
    NOT_AUTHENTICATED = "not authenticated"


class PollErrorKind(Enum):
    NETWORK = "network"
    UNAUTHORIZED = "unauthorized"


class ActionErrorKind(Enum):
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not found"
    REJECTED = "rejected"
    NETWORK = "network"


class RemoteErrorKind(Enum):
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not found"
    REJECTED = "rejected"
    NETWORK = "network"


class QbittuiError(Exception):
    """Base class for all client errors."""

    def __init__(self, kind, reason: str = ""):
        self.kind = kind
        self.reason = reason or kind.value
        super().__init__(self.reason)

    def __repr__(self):
        return f"{type(self).__name__}({self.kind.name}, {self.reason!r})"


class AuthError(QbittuiError):
    pass


class PollError(QbittuiError):
    @property
    def is_unauthorized(self) -> bool:
        return self.kind is PollErrorKind.UNAUTHORIZED


class ActionError(QbittuiError):
    @property
    def is_unauthorized(self) -> bool:
        return self.kind is ActionErrorKind.UNAUTHORIZED


class RemoteError(QbittuiError):
    """
    Raised by the transport layer.

    Carries a transport level kind which callers translate into the error type
    of their own operation (see ``as_poll_error`` and ``as_action_error``).
    """

    def as_poll_error(self) -> PollError:
        if self.kind is RemoteErrorKind.UNAUTHORIZED:
            return PollError(PollErrorKind.UNAUTHORIZED, self.reason)
        return PollError(PollErrorKind.NETWORK, self.reason)

    def as_action_error(self) -> ActionError:
        return ActionError(_ACTION_KINDS[self.kind], self.reason)


_ACTION_KINDS = {
    RemoteErrorKind.UNAUTHORIZED: ActionErrorKind.UNAUTHORIZED,
    RemoteErrorKind.NOT_FOUND: ActionErrorKind.NOT_FOUND,
    RemoteErrorKind.REJECTED: ActionErrorKind.REJECTED,
    RemoteErrorKind.NETWORK: ActionErrorKind.NETWORK,
}
