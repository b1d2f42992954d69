"""Exceptions raised by the request bridge."""

from browse_bridge.core.schemas import ResponseEnvelope


class BridgeError(Exception):
    """Base class for bridge failures."""


class StatusCodeError(BridgeError):
    """A request finished with an error status (>= 400) or none at all.

    Callers branch on ``status_code``; ``response`` holds the envelope when
    one was received.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        response: ResponseEnvelope | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class TransportError(StatusCodeError):
    """The fetch attempt failed before any HTTP status was observed."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Network request failed: {detail}", 0)
        self.detail = detail


class RedirectLimitError(StatusCodeError):
    """More redirects were followed than the bridge allows."""

    def __init__(self, redirects: int, limit: int, status_code: int) -> None:
        super().__init__(
            f"Exceeded {limit} redirections ({redirects} followed)", status_code,
        )
        self.redirects = redirects
        self.limit = limit
