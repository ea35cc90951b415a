"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  The global DRF exception handler
(``core.domain.exception_handler``) maps them to HTTP responses.

Mapping cheatsheet
------------------
┌─────────────────────┬──────────────────────────────┬──────┐
│ Domain Exception    │ Meaning                      │ Code │
├─────────────────────┼──────────────────────────────┼──────┤
│ DomainError         │ generic business-rule error  │ 400  │
│ ValidationError     │ missing / malformed fields   │ 400  │
│ PermissionDenied    │ actor not allowed            │ 403  │
│ AuthorizationError  │ creator role vs case type    │ 403  │
│ NotFound            │ resource does not exist      │ 404  │
│ Conflict            │ state conflict               │ 409  │
│ NoEligibleReceiver  │ empty candidate pool         │ 409  │
│ TransactionError    │ commit failed, rolled back   │ 503  │
│ NotificationError   │ dispatch failed (swallowed)  │  —   │
└─────────────────────┴──────────────────────────────┴──────┘

Recommended usage inside a service::

    from core.domain.exceptions import NoEligibleReceiver

    if not candidates:
        raise NoEligibleReceiver(case_type=case.case_type)
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class ValidationError(DomainError):
    """
    A case draft (or reassignment request) is missing a required field
    or carries a malformed value.  Raised before any allocation work.

    Maps to HTTP 400.
    """

    def __init__(self, message: str = "The submitted data is invalid.", *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class PermissionDenied(DomainError):
    """
    The authenticated user does not have the required role or permission
    for this operation.

    Maps to HTTP 403.
    """

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class AuthorizationError(PermissionDenied):
    """
    The creator's role is forbidden from creating the requested case type.

    Raised by the self-assignment policy before storage is touched.
    """

    def __init__(self, message: str = "Your role may not create this case type.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested resource does not exist.

    Maps to HTTP 404.
    """

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Maps to HTTP 409.
    """

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class NoEligibleReceiver(Conflict):
    """
    Rotation was requested but the candidate pool for the case type is
    empty and no fallback applies.
    """

    def __init__(self, message: str | None = None, *, case_type: str | None = None) -> None:
        if message is None:
            message = "No active receiver is eligible for this case type"
            if case_type:
                message += f" ('{case_type}')"
            message += "."
        super().__init__(message)
        self.case_type = case_type


class TransactionError(DomainError):
    """
    The datastore failed during the atomic allocation commit.  Both the
    case update and the audit append were rolled back.

    Maps to HTTP 503 with a generic message.
    """

    def __init__(self, message: str = "The allocation could not be saved. No changes were made.") -> None:
        super().__init__(message)


class NotificationError(DomainError):
    """
    A notification could not be dispatched.  Never surfaced to callers:
    the allocation it describes has already been committed.
    """

    def __init__(self, message: str = "Notification dispatch failed.") -> None:
        super().__init__(message)
