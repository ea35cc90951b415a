"""
core.domain.transactions — Helpers for all-or-nothing writes.

The allocation engine reads, decides and writes inside one transaction.
These helpers keep that pattern the same everywhere:

* ``atomic_commit`` opens the transaction and reports datastore
  failures as ``TransactionError``.
* ``lock_for_update`` / ``lock_or_create`` take the row locks that
  serialise concurrent allocations.

Usage::

    with atomic_commit("allocate case"):
        case = lock_for_update(Case, case.pk)
        cursor = lock_or_create(RotationCursor, bucket="general")
        ...
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, TypeVar

from django.db import DatabaseError, models, transaction

from core.domain.exceptions import NotFound, TransactionError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=models.Model)


@contextmanager
def atomic_commit(operation: str) -> Iterator[None]:
    """
    Run the enclosed block inside ``transaction.atomic()``.

    Any ``DatabaseError`` raised inside the block rolls the whole block
    back and is re-raised as ``TransactionError``.  Domain errors raised
    inside the block also roll it back but propagate unchanged.

    Args:
        operation: Short label used in the log line on failure.

    Raises:
        TransactionError: If the datastore failed; pre-call state is kept.
    """
    try:
        with transaction.atomic():
            yield
    except DatabaseError as exc:
        logger.exception("Transaction for '%s' rolled back: %s", operation, exc)
        raise TransactionError() from exc


def lock_for_update(model_class: type[M], pk: Any) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Convenience wrapper around ``select_for_update().get(pk=pk)``
    that must be called inside an ``atomic()`` block.

    Raises:
        NotFound: If no row with that PK exists.
    """
    try:
        return model_class.objects.select_for_update().get(pk=pk)
    except model_class.DoesNotExist:
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")


def lock_or_create(model_class: type[M], *, defaults: dict[str, Any] | None = None, **lookup: Any) -> M:
    """
    Return the row matching ``lookup`` locked for update, creating it
    first when it does not exist yet.

    Must be called inside an ``atomic()`` block.  Two transactions that
    race on creation both end up holding (sequentially) the lock on the
    single surviving row.
    """
    instance, _ = (
        model_class.objects
        .select_for_update()
        .get_or_create(defaults=defaults, **lookup)
    )
    return instance
