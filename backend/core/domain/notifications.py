"""
core.domain.notifications — In-app notification rows for desk staff.

Every notice the intake desk sends ends up as a ``core.Notification``
row written here.  Callers pick an ``event_type``; the title and body
come from ``_EVENT_TEMPLATES`` filled in from ``payload``.

Writes are synchronous.  The allocation engine only calls in from a
``transaction.on_commit`` hook, so a rolled-back allocation never
produces a notice.

Example::

    NotificationService.create(
        actor=creator,
        recipients=receiver,
        event_type="case_allocated",
        payload={"case_type": "General", "requesting_party": "J. Smith"},
        related_object=case,
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from django.contrib.contenttypes.models import ContentType
from django.db import models

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification

logger = logging.getLogger(__name__)

# event_type -> (title, message); placeholders filled from the payload
_EVENT_TEMPLATES: dict[str, tuple[str, str]] = {
    "case_allocated": (
        "New Case Assigned",
        "A new {case_type} case has been assigned to you. Requesting party: {requesting_party}.",
    ),
    "developer_case_allocated": (
        "New Developer Case Assigned",
        "A developer has submitted a {case_type} case for {requesting_party}; it has been assigned to you.",
    ),
    "case_reassigned": (
        "Case Reassigned To You",
        "Case {case_number} ({case_type}) has been reassigned to you by {actor}.",
    ),
    "next_in_line": (
        "You Are Next In Line",
        "{current_receiver} has just received a {case_type} case for {requesting_party}. "
        "You will receive the next one.",
    ),
}


class _BlankDefault(dict):
    """``format_map`` helper: unknown placeholders render as ''."""

    def __missing__(self, key: str) -> str:
        return ""


def render_event(event_type: str, payload: dict[str, Any] | None = None) -> tuple[str, str]:
    """Return the ``(title, message)`` pair for ``event_type``."""
    title, message = _EVENT_TEMPLATES.get(
        event_type,
        (event_type.replace("_", " ").title(), f"Event: {event_type}"),
    )
    context = _BlankDefault(payload or {})
    return title.format_map(context), message.format_map(context)


def _as_list(recipients: User | Iterable[User]) -> list[User]:
    if isinstance(recipients, models.Model):
        return [recipients]
    return list(recipients)


class NotificationService:
    """Writes ``Notification`` rows; no instance state."""

    @classmethod
    def create(
        cls,
        *,
        actor: User | None,
        recipients: User | Iterable[User],
        event_type: str,
        payload: dict[str, Any] | None = None,
        related_object: models.Model | None = None,
    ) -> list[Notification]:
        """
        Write one notice per recipient and return them.

        ``actor`` fills the ``{actor}`` placeholder unless the payload
        names one.  ``related_object`` (usually the ``Case``) is linked
        through the generic relation when given.
        """
        from core.models import Notification

        targets = _as_list(recipients)
        if not targets:
            logger.warning("No recipients for %s notice (actor=%s)", event_type, actor)
            return []

        context = dict(payload or {})
        if actor is not None:
            context.setdefault("actor", getattr(actor, "display_name", str(actor)))
        title, message = render_event(event_type, context)

        link: dict[str, Any] = {}
        if related_object is not None:
            link = {
                "content_type": ContentType.objects.get_for_model(related_object),
                "object_id": related_object.pk,
            }

        created = [
            Notification.objects.create(
                recipient=target,
                event_type=event_type,
                title=title,
                message=message,
                **link,
            )
            for target in targets
        ]
        logger.info("Sent %s notice to %d recipient(s), actor=%s", event_type, len(created), actor)
        return created
