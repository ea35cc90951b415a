"""
allocation.notifications — Notification Dispatcher.

The engine talks to a dispatcher through two calls:

* ``notify_allocated(receiver, case_type, requesting_party)`` — a case
  has been given to ``receiver``.
* ``notify_upcoming(receiver, current_receiver_name, case_type,
  requesting_party)`` — ``receiver`` will get the next case of this
  type.

Which class implements them is configured by
``INTAKE_ALLOCATION['NOTIFICATION_DISPATCHER']`` (dotted path).  The
default stores inbox rows through ``core.domain.notifications``.

Dispatch is best-effort.  ``deliver`` wraps every failure in
``NotificationError``, logs it, and returns ``False``; nothing is
retried and nothing propagates to the caller, whose allocation has
already been committed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.utils.module_loading import import_string

from cases.models import CaseType
from core.domain.exceptions import NotificationError
from core.domain.notifications import NotificationService

from .conf import allocation_settings

if TYPE_CHECKING:
    from accounts.models import User
    from cases.models import Case

logger = logging.getLogger(__name__)


def _case_type_label(case_type: str) -> str:
    try:
        return CaseType(case_type).label
    except ValueError:
        return case_type


class NotificationDispatcher:
    """Interface; subclasses override both methods."""

    def notify_allocated(
        self,
        receiver: User,
        case_type: str,
        requesting_party: str,
        *,
        case: Case | None = None,
        actor: User | None = None,
        developer_created: bool = False,
        reassigned: bool = False,
    ) -> None:
        raise NotImplementedError

    def notify_upcoming(
        self,
        receiver: User,
        current_receiver_name: str,
        case_type: str,
        requesting_party: str,
        *,
        case: Case | None = None,
    ) -> None:
        raise NotImplementedError


class DatabaseNotificationDispatcher(NotificationDispatcher):
    """Writes ``core.Notification`` rows for the recipient's inbox."""

    def notify_allocated(
        self,
        receiver,
        case_type,
        requesting_party,
        *,
        case=None,
        actor=None,
        developer_created=False,
        reassigned=False,
    ):
        if reassigned:
            event_type = "case_reassigned"
        elif developer_created:
            event_type = "developer_case_allocated"
        else:
            event_type = "case_allocated"

        NotificationService.create(
            actor=actor,
            recipients=receiver,
            event_type=event_type,
            payload={
                "case_type": _case_type_label(case_type),
                "requesting_party": requesting_party or "-",
                "case_number": case.case_number if case is not None else "",
            },
            related_object=case,
        )

    def notify_upcoming(
        self,
        receiver,
        current_receiver_name,
        case_type,
        requesting_party,
        *,
        case=None,
    ):
        NotificationService.create(
            actor=None,
            recipients=receiver,
            event_type="next_in_line",
            payload={
                "current_receiver": current_receiver_name,
                "case_type": _case_type_label(case_type),
                "requesting_party": requesting_party or "-",
            },
            related_object=case,
        )


def get_dispatcher() -> NotificationDispatcher:
    dispatcher_class = import_string(allocation_settings().notification_dispatcher)
    return dispatcher_class()


def deliver(event: str, *args: Any, **kwargs: Any) -> bool:
    """
    Call ``event`` (``"notify_allocated"`` or ``"notify_upcoming"``) on
    the configured dispatcher.

    Returns ``True`` on success.  Failures are logged and swallowed.
    """
    try:
        getattr(get_dispatcher(), event)(*args, **kwargs)
    except Exception as exc:
        error = NotificationError(f"{event} failed: {exc}")
        logger.exception("Notification dropped: %s", error)
        return False
    return True
