"""
allocation.conf — Validated view of ``settings.INTAKE_ALLOCATION``.

Settings are re-read on every call so ``override_settings`` works in
tests.  Anything malformed raises ``ImproperlyConfigured``; a bad
override is never silently ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from accounts.models import RoleCategory
from cases.models import CaseTypeFamily
from core.constants import DEFAULT_ROTATION_WINDOW_DAYS

DEFAULT_DISPATCHER = "allocation.notifications.DatabaseNotificationDispatcher"


class RotationStrategy:
    LIFETIME = "lifetime"
    TRAILING_WINDOW = "trailing_window"
    SAME_DAY = "same_day"
    CURSOR = "cursor"

    ALL = (LIFETIME, TRAILING_WINDOW, SAME_DAY, CURSOR)
    DEFAULT = TRAILING_WINDOW


@dataclass(frozen=True)
class AllocationSettings:
    rotation_strategy: str = RotationStrategy.DEFAULT
    rotation_window_days: int = DEFAULT_ROTATION_WINDOW_DAYS
    notification_dispatcher: str = DEFAULT_DISPATCHER
    eligibility_overrides: dict[str, frozenset[str]] = field(default_factory=dict)


def _clean_overrides(raw) -> dict[str, frozenset[str]]:
    if not isinstance(raw, dict):
        raise ImproperlyConfigured("INTAKE_ALLOCATION['ELIGIBILITY_OVERRIDES'] must be a dict.")

    known_roles = set(RoleCategory.values)
    cleaned: dict[str, frozenset[str]] = {}
    for family, roles in raw.items():
        if family not in CaseTypeFamily.values:
            raise ImproperlyConfigured(
                f"ELIGIBILITY_OVERRIDES names unknown case-type family '{family}'."
            )
        if isinstance(roles, str) or not roles:
            raise ImproperlyConfigured(
                f"ELIGIBILITY_OVERRIDES['{family}'] must be a non-empty list of roles."
            )
        unknown = set(roles) - known_roles
        if unknown:
            raise ImproperlyConfigured(
                f"ELIGIBILITY_OVERRIDES['{family}'] names unknown roles: {sorted(unknown)}."
            )
        cleaned[family] = frozenset(roles)
    return cleaned


def allocation_settings() -> AllocationSettings:
    """Return the current allocation settings, validated."""
    raw = getattr(settings, "INTAKE_ALLOCATION", None) or {}

    strategy = raw.get("ROTATION_STRATEGY", RotationStrategy.DEFAULT)
    if strategy not in RotationStrategy.ALL:
        raise ImproperlyConfigured(
            f"Unknown ROTATION_STRATEGY '{strategy}'; "
            f"expected one of {', '.join(RotationStrategy.ALL)}."
        )

    window_days = raw.get("ROTATION_WINDOW_DAYS", DEFAULT_ROTATION_WINDOW_DAYS)
    if not isinstance(window_days, int) or isinstance(window_days, bool) or window_days < 1:
        raise ImproperlyConfigured("ROTATION_WINDOW_DAYS must be a positive integer.")

    return AllocationSettings(
        rotation_strategy=strategy,
        rotation_window_days=window_days,
        notification_dispatcher=raw.get("NOTIFICATION_DISPATCHER", DEFAULT_DISPATCHER),
        eligibility_overrides=_clean_overrides(raw.get("ELIGIBILITY_OVERRIDES", {})),
    )
