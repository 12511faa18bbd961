from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    LOCKED = "LOCKED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    HTTP_STATUS = "HTTP_STATUS"
    NETWORK_ERROR = "NETWORK_ERROR"
    DECODE_FAILED = "DECODE_FAILED"
    LOAD_FAILED = "LOAD_FAILED"


class FeedLogError(Exception):
    """Base class for every expected failure condition in feedlog.

    Store errors propagate to the caller of ``put``. Fetch and decode errors
    are caught at the ConditionalFetcher boundary and logged there, so a
    single bad feed never aborts a batch.
    """

    code: ErrorCode = ErrorCode.INVALID_ARGUMENT
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        recoverable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable


class LockedError(FeedLogError):
    """The store's lock marker exists; another writer holds the log."""

    code = ErrorCode.LOCKED
    recoverable = True


class InvalidArgumentError(FeedLogError):
    code = ErrorCode.INVALID_ARGUMENT


class FetchError(FeedLogError):
    """Non-success HTTP status or network failure for a single URL."""

    code = ErrorCode.NETWORK_ERROR
    recoverable = True

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: int | None = None,
        code: ErrorCode | None = None,
        recoverable: bool | None = None,
    ) -> None:
        super().__init__(message, code=code, recoverable=recoverable)
        self.url = url
        self.status_code = status_code


class FeedDecodeError(FeedLogError):
    code = ErrorCode.DECODE_FAILED
