"""Error taxonomy for remote-state synchronization.

Every failure of a load or mutation is one of these:
- `NetworkFailure`: no response was received (offline, DNS, refused).
- `RequestTimeout`: the client-side timeout elapsed (a `NetworkFailure`).
- `AuthExpired`: HTTP 401, or no session to send.
- `ValidationFailure`: HTTP 4xx with a message, or a `success: false` envelope.
- `ServerFailure`: HTTP 5xx or a malformed success envelope.
"""

from __future__ import annotations

from typing import Any

GENERIC_FAILURE = "Request failed. Please try again."


class SyncError(Exception):
    """Base class.

    `server_message` is the text the API sent (if any); `message` falls back
    to a generic string when it did not send one.
    """

    retryable: bool = True

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        payload: Any = None,
    ) -> None:
        self.server_message = message.strip() if isinstance(message, str) and message.strip() else None
        self.message = self.server_message or GENERIC_FAILURE
        super().__init__(self.message)
        self.status_code = status_code
        self.payload = payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status_code={self.status_code!r})"


class NetworkFailure(SyncError):
    pass


class RequestTimeout(NetworkFailure):
    pass


class AuthExpired(SyncError):
    retryable = False

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        super().__init__(message or "Please log in to access this page", **kwargs)


class ValidationFailure(SyncError):
    retryable = False


class ServerFailure(SyncError):
    pass
