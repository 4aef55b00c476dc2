"""Error taxonomy shared by the resolver and proxy layers."""
from __future__ import annotations


class StreamingError(RuntimeError):
    """Base class for failures raised while resolving or proxying streams."""

    status_code: int = 500


class ParameterError(StreamingError):
    """Raised when a request is missing required parameters or carries invalid ones."""

    status_code = 400


class UpstreamTimeout(StreamingError):
    """Raised when the upstream aggregator does not answer within the hard ceiling."""

    status_code = 504


class UpstreamUnavailable(StreamingError):
    """Raised when an upstream host cannot be reached at all."""

    status_code = 502


class UpstreamError(StreamingError):
    """Raised when an upstream service answers with a non-success status."""

    def __init__(self, status_code: int, url: str, *, reason: str = "", body: str = "") -> None:
        self.status_code = status_code
        self.url = url
        self.reason = reason
        self.body = body
        detail = f" {reason}" if reason else ""
        super().__init__(f"Upstream responded with HTTP {status_code}{detail}")


class UpstreamServerError(UpstreamError):
    """5xx or 429 response; retried with backoff before it is surfaced."""


class UpstreamClientError(UpstreamError):
    """Any other 4xx response; surfaced immediately."""


def error_for_status(status_code: int, url: str, *, reason: str = "", body: str = "") -> UpstreamError:
    """Return the taxonomy member matching an upstream HTTP status."""

    if status_code >= 500 or status_code == 429:
        return UpstreamServerError(status_code, url, reason=reason, body=body)
    return UpstreamClientError(status_code, url, reason=reason, body=body)
