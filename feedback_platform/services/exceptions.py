from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    DEPENDENCY_UNAVAILABLE = "dependency_unavailable"
    LEDGER_CONTENTION = "ledger_contention"
    FOLLOW_UP_PUBLISH = "follow_up_publish"


class ServiceError(Exception):
    """Base exception for service layer failures."""

    kind: ErrorKind = ErrorKind.DEPENDENCY_UNAVAILABLE
    retryable: bool = False

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class DownstreamServiceError(ServiceError):
    """Raised when an external store, queue or directory is unreachable or timed out."""

    kind = ErrorKind.DEPENDENCY_UNAVAILABLE
    retryable = True

    def __init__(self, message: str, status_code: int | None = None, *, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.status_code = status_code


class LedgerContentionError(ServiceError):
    """Raised when a ledger append ran out of conditional-write attempts."""

    kind = ErrorKind.LEDGER_CONTENTION
    retryable = True

    def __init__(self, message: str, attempts: int, *, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.attempts = attempts


class FollowUpPublishError(ServiceError):
    """Raised by queue adapters when a follow-up event could not be published."""

    kind = ErrorKind.FOLLOW_UP_PUBLISH
    retryable = True
