"""Error types raised by the service clients and the live-session surfaces."""
from __future__ import annotations

from typing import Any


class QuizClientError(Exception):
    """Base class for every error this client raises.

    `message` is what the screens show. When the backend sent a message in
    the response body it is used verbatim; otherwise a generic client message.
    """

    default_message = "Request failed."

    def __init__(self, message: str | None = None, *, status: int | None = None,
                 detail: Any = None) -> None:
        self.message = message or self.default_message
        self.status = status
        self.detail = detail
        super().__init__(self.message)


class ConnectivityError(QuizClientError):
    """No response from the service (network down, DNS, timeout)."""
    default_message = "Connection lost. Trying to reconnect..."


class Unauthorized(QuizClientError):
    """401-class response. Every host command reacts by forcing a logout."""
    default_message = "Your session has expired. Please log in again."


class NotFoundError(QuizClientError):
    default_message = "Quiz or question not found."


class ValidationError(QuizClientError):
    """Malformed form input. Raised before anything is sent."""
    default_message = "Invalid input."


class SessionStateError(QuizClientError):
    """Command attempted from the wrong lifecycle state."""
    default_message = "The quiz is not in a state that allows this action."


class AlreadyOpenError(SessionStateError):
    default_message = "This quiz is already open."


class SessionNotJoinableError(SessionStateError):
    default_message = "This quiz is not open for joining."
