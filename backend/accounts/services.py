"""
Accounts Service Layer.

The allocation engine only needs one thing from the accounts app: the
roster of staff who may currently receive cases.  ``RosterService`` is
that provider.  Everything else about users (registration, login,
profile editing) belongs to the surrounding application.
"""

from __future__ import annotations

from typing import Iterable

from django.contrib.auth import get_user_model
from django.db.models import QuerySet

from .models import StaffStatus

User = get_user_model()


class RosterService:
    """Read-only queries over the staff roster."""

    @staticmethod
    def active_users() -> QuerySet:
        """Users that are both login-active and on active staff status."""
        return User.objects.filter(is_active=True, status=StaffStatus.ACTIVE)

    @staticmethod
    def active_receivers(roles: Iterable[str]) -> list[User]:
        """
        Return active users holding any of ``roles``.

        Parameters
        ----------
        roles : Iterable[str]
            ``RoleCategory`` values.

        Returns
        -------
        list[User]
            Ordered ascending by primary key.  The order is stable across
            calls for an unchanged roster, which rotation relies on.
        """
        roles = list(roles)
        if not roles:
            return []
        return list(
            RosterService.active_users()
            .filter(role__in=roles)
            .order_by("pk")
        )
