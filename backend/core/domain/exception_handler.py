"""
core.domain.exception_handler — Turns domain errors into HTTP responses.

Wired in as ``REST_FRAMEWORK["EXCEPTION_HANDLER"]``.  DRF's own handler
runs first; anything it does not recognise and that derives from
``DomainError`` becomes ``{"detail": ..., "field": ...}`` with the
status from ``_STATUS_MAP``.
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import (
    Conflict,
    DomainError,
    NotFound,
    PermissionDenied,
    TransactionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order, so the DomainError fallback stays last
_STATUS_MAP: dict[type, int] = {
    ValidationError:  400,
    PermissionDenied: 403,
    NotFound:         404,
    Conflict:         409,
    TransactionError: 503,
    DomainError:      400,
}


def _status_for(exc: Exception) -> int | None:
    for exc_class, status_code in _STATUS_MAP.items():
        if isinstance(exc, exc_class):
            return status_code
    return None


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """Return a response for DRF or domain errors, ``None`` for anything else."""
    response = drf_default_handler(exc, context)
    if response is not None:
        return response

    status_code = _status_for(exc)
    if status_code is None:
        return None

    logger.warning(
        "%s raised in %s: %s",
        type(exc).__name__,
        context.get("view", "unknown"),
        exc,
    )
    body = {"detail": str(exc)}
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    return Response(body, status=status_code)
