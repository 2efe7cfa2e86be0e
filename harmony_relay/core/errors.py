"""Error taxonomy shared by the relay, the upstream client and the routes.

Every error carries a machine-readable ``code``, a human-readable ``message``
and the HTTP status the routes answer with when the error escapes a
non-streaming endpoint. Inside the streaming relay everything below
``BadRequest`` is turned into a single ``ErrorEvent`` instead.
"""

from typing import Optional


class RelayError(Exception):
    """Base class.

    Attributes:
        code: machine-readable code, e.g. ``"UPSTREAM_REJECTED"``.
        message: text shown to the client.
        http_status: status used when the error is answered as JSON.
    """

    code = "RELAY_ERROR"
    http_status = 500

    def __init__(self, message: str, *, code: Optional[str] = None, http_status: Optional[int] = None):
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        super().__init__(message)


class BadRequest(RelayError):
    """Malformed or missing client input. Raised before any store mutation."""

    code = "BAD_REQUEST"
    http_status = 400


class UpstreamUnavailable(RelayError):
    """The connection to the model backend could not be established."""

    code = "UPSTREAM_UNAVAILABLE"
    http_status = 502


class UpstreamRejected(RelayError):
    """The backend answered with a non-success status."""

    code = "UPSTREAM_REJECTED"

    def __init__(self, status_code: int, body: str = "", message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(
            message or body or "Ollama chat request failed",
            http_status=status_code if status_code >= 400 else 502,
        )


class StreamError(RelayError):
    """Mid-stream error record, dropped connection or read-idle timeout."""

    code = "STREAM_ERROR"
    http_status = 502


class Cancelled(RelayError):
    """The client went away. Never reported to anyone."""

    code = "CANCELLED"
    http_status = 499
