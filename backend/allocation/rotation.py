"""
allocation.rotation — Rotation Selector and its counter strategies.

Selection is ``candidates[counter % len(candidates)]``: with a stable,
pk-ordered candidate list and a counter that grows by one per case in
the bucket, every active receiver gets one case in turn.

What "counter" means is configurable (``ROTATION_STRATEGY``):

    lifetime         every case ever created in the bucket
    trailing_window  cases created in the last ``ROTATION_WINDOW_DAYS``
    same_day         cases created today (local calendar day)
    cursor           the bucket's persisted ``RotationCursor.position``

The counting strategies are scoped to the bucket (case-type family) and
always exclude the in-flight case.  Inside an allocation they run after
the bucket's cursor row has been locked, so two concurrent allocations
in one bucket never read the same count.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Sequence, TypeVar

from django.utils import timezone

from cases.models import Case, case_types_in_family
from core.domain.exceptions import NoEligibleReceiver

from .conf import AllocationSettings, RotationStrategy

T = TypeVar("T")


def _bucket_cases(bucket: str, exclude_case_id=None):
    qs = Case.objects.filter(case_type__in=case_types_in_family(bucket))
    if exclude_case_id is not None:
        qs = qs.exclude(pk=exclude_case_id)
    return qs


def rotation_counter(
    bucket: str,
    config: AllocationSettings,
    *,
    cursor_position: int = 0,
    exclude_case_id=None,
    now=None,
) -> int:
    """
    Return the rotation counter for ``bucket`` under the configured
    strategy.

    ``cursor_position`` is only consulted by the ``cursor`` strategy.
    """
    strategy = config.rotation_strategy
    if strategy == RotationStrategy.CURSOR:
        return cursor_position

    now = now or timezone.now()
    qs = _bucket_cases(bucket, exclude_case_id)

    if strategy == RotationStrategy.TRAILING_WINDOW:
        qs = qs.filter(created_at__gte=now - timedelta(days=config.rotation_window_days))
    elif strategy == RotationStrategy.SAME_DAY:
        qs = qs.filter(created_at__date=timezone.localdate(now))

    return qs.count()


class RotationSelector:

    @staticmethod
    def select(candidates: Sequence[T], counter: int, *, case_type: str | None = None) -> T:
        """
        Pick ``candidates[counter % K]``.

        Raises
        ------
        NoEligibleReceiver
            If ``candidates`` is empty.
        """
        if not candidates:
            raise NoEligibleReceiver(case_type=case_type)
        return candidates[counter % len(candidates)]
