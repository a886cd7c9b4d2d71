"""Gateway error taxonomy.

Every failure the gateway reports to a caller is a ``GatewayError``
carrying the HTTP status code to answer with.  The server renders them
all as ``{"error": {"code": ..., "message": ...}}``.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for errors surfaced to the requester.

    Attributes:
        status_code: HTTP status code to respond with.
        message: Human-readable error message.
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        if status_code is not None:
            self.status_code = status_code
        self.message = message
        super().__init__(message)


class ConfigurationError(GatewayError):
    """Fatal startup problem: bad routing lists or missing templates."""


class AuthenticationError(GatewayError):
    """The inbound request carried no credential header."""

    status_code = 401


class UpstreamError(GatewayError):
    """The backend answered with a non-success HTTP status.

    Attributes:
        status_code: Status code returned by the backend, passed through.
        detail: Backend response body text.
    """

    def __init__(self, status_code: int, detail: str) -> None:
        self.detail = detail
        super().__init__(detail, status_code)


class ExtractionFailure(GatewayError):
    """No answer span in the backend reply, or its JSON was unusable.

    Attributes:
        candidate: The JSON candidate that failed to parse, if any.
        reason: Parser error message, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        candidate: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.candidate = candidate
        self.reason = reason
        super().__init__(message)


class RepairFailure(ExtractionFailure):
    """The JSON repair call could not produce a parseable object."""
