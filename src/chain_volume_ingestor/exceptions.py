"""Exception hierarchy shared by the ingestion components."""


class IngestorError(Exception):
    """Base exception for ingestion errors."""


class RequestError(IngestorError):
    """Raised when an explorer request fails after all retry attempts."""

    def __init__(
        self,
        message: str,
        last_exception: Exception | None = None,
        *,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


class NotFoundError(IngestorError):
    """Raised when a block or price is absent. Callers fall back, never retry."""


class ValidationError(IngestorError):
    """Raised for a malformed transaction (e.g. missing txid)."""


class FatalError(IngestorError):
    """Raised when the run cannot continue (connectivity, blockchain lookup)."""
