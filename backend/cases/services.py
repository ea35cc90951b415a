"""
Cases app Service Layer.

This module is the **single source of truth** for all business logic
in the ``cases`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``CaseDraftValidator``  — Field rules a draft must satisfy before any
  allocation work starts.
- ``CaseIntakeService``   — The three inbound operations of the intake
  desk: create-and-allocate, manual reassignment, allocation history.

Receiver choice itself lives in ``allocation.services``; this module only
validates, persists the ``Case`` row, and hands it to the engine inside
the same transaction.
"""

from __future__ import annotations

import logging
import secrets
from datetime import date
from typing import TYPE_CHECKING, Any

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.constants import (
    CASE_NUMBER_ALPHABET,
    CASE_NUMBER_DATE_FORMAT,
    CASE_NUMBER_SUFFIX_LENGTH,
)
from core.domain.exceptions import ValidationError
from core.domain.transactions import atomic_commit, lock_for_update

from .models import CASE_TYPE_FAMILY, Case, CaseTypeFamily

if TYPE_CHECKING:
    from accounts.models import User
    from allocation.models import AllocationRecord

logger = logging.getLogger(__name__)

# Free-text draft fields copied verbatim onto the Case row.
_TEXT_FIELDS = ("requesting_party", "agent", "contact_phone", "developer_name", "description")


def generate_case_number(case_date: date) -> str:
    """``YYYYMMDD_`` followed by random uppercase letters / digits."""
    suffix = "".join(
        secrets.choice(CASE_NUMBER_ALPHABET) for _ in range(CASE_NUMBER_SUFFIX_LENGTH)
    )
    return f"{case_date.strftime(CASE_NUMBER_DATE_FORMAT)}_{suffix}"


# ═══════════════════════════════════════════════════════════════════
#  Draft validation
# ═══════════════════════════════════════════════════════════════════


class CaseDraftValidator:
    """
    Checks a case draft before the engine is invoked.

    Rules
    -----
    * ``case_type`` is required and must be part of the taxonomy.
    * ``requesting_party`` is required for every developer-transfer case,
      and for every case created by someone who is not a developer.
      Developers may omit it on other case types.
    * A caller-supplied ``case_number`` must be unused.
    """

    @staticmethod
    def validate(draft: dict[str, Any], creator: User) -> dict[str, Any]:
        """
        Return a cleaned copy of ``draft``.

        Raises
        ------
        ValidationError
            With ``field`` naming the offending key.
        """
        case_type = draft.get("case_type")
        if not case_type:
            raise ValidationError("Case type is required.", field="case_type")
        if case_type not in CASE_TYPE_FAMILY:
            raise ValidationError(f"Unknown case type '{case_type}'.", field="case_type")

        cleaned: dict[str, Any] = {"case_type": case_type}
        for name in _TEXT_FIELDS:
            value = draft.get(name)
            cleaned[name] = value.strip() if isinstance(value, str) else ""

        needs_party = (
            CASE_TYPE_FAMILY[case_type] == CaseTypeFamily.DEVELOPER_TRANSFER
            or not creator.is_developer
        )
        if needs_party and not cleaned["requesting_party"]:
            raise ValidationError("Requesting party is required.", field="requesting_party")

        case_date = draft.get("case_date") or timezone.localdate()
        if not isinstance(case_date, date):
            raise ValidationError("Case date must be a date.", field="case_date")
        cleaned["case_date"] = case_date

        case_number = (draft.get("case_number") or "").strip()
        if case_number:
            if Case.objects.filter(case_number=case_number).exists():
                raise ValidationError(
                    f"Case number '{case_number}' is already in use.",
                    field="case_number",
                )
        else:
            case_number = generate_case_number(case_date)
        cleaned["case_number"] = case_number

        return cleaned


def _insert_case(cleaned: dict[str, Any], creator: User) -> Case:
    """
    Insert the case row.  A concurrent request may claim the same case
    number after validation; that surfaces as a field error rather than
    a datastore failure.
    """
    try:
        with transaction.atomic():
            return Case.objects.create(created_by=creator, **cleaned)
    except IntegrityError as exc:
        if not Case.objects.filter(case_number=cleaned["case_number"]).exists():
            raise
        raise ValidationError(
            f"Case number '{cleaned['case_number']}' is already in use.",
            field="case_number",
        ) from exc


# ═══════════════════════════════════════════════════════════════════
#  Case Intake Service
# ═══════════════════════════════════════════════════════════════════


class CaseIntakeService:
    """
    Inbound operations of the intake desk.

    Each write operation is all-or-nothing: either the case and its audit
    row are both committed, or nothing is.
    """

    @staticmethod
    def allocate_on_create(draft: dict[str, Any], creator: User) -> tuple[Case, Any]:
        """
        Validate ``draft``, persist the case and allocate it.

        Parameters
        ----------
        draft : dict
            ``case_type`` plus optional ``case_number``, ``case_date``,
            ``requesting_party``, ``agent``, ``contact_phone``,
            ``developer_name``, ``description``.
        creator : User
            The authenticated staff member creating the case.

        Returns
        -------
        tuple[Case, User]
            The committed case and its receiver.

        Raises
        ------
        ValidationError
            Draft is incomplete or malformed.
        AuthorizationError
            Creator's role may not create this case type.
        NoEligibleReceiver
            Nobody can receive the case and no fallback applies.
        TransactionError
            The datastore failed; nothing was written.
        """
        from allocation.services import AllocationTransactionManager  # lazy import — avoids circular deps

        cleaned = CaseDraftValidator.validate(draft, creator)
        # Refuse forbidden creations before the case row exists.
        AllocationTransactionManager.check_policy(creator, cleaned["case_type"])

        with atomic_commit("create case"):
            case = _insert_case(cleaned, creator)
            outcome = AllocationTransactionManager.allocate(case, creator)

        logger.info(
            "Case %s created by user=%s, receiver user=%s",
            case.case_number,
            creator.pk,
            outcome.receiver.pk,
        )
        return case, outcome.receiver

    @staticmethod
    def manual_reassign(
        case_id: int,
        target_receiver: User,
        acting_user: User,
        reason: str = "",
    ) -> AllocationRecord:
        """
        Reassign an existing case to ``target_receiver``.

        Raises
        ------
        NotFound
            No case with ``case_id``.
        ValidationError
            Target is inactive or already holds the case.
        TransactionError
            The datastore failed; nothing was written.
        """
        from allocation.services import AllocationTransactionManager  # lazy import — avoids circular deps

        with atomic_commit("reassign case"):
            case = lock_for_update(Case, case_id)
            return AllocationTransactionManager.reassign(
                case, target_receiver, acting_user, reason,
            )

    @staticmethod
    def get_allocation_history(case_id: int) -> list[AllocationRecord]:
        """
        Every allocation of ``case_id``, oldest first.

        Raises
        ------
        NotFound
            No case with ``case_id``.
        """
        from allocation.services import get_allocation_history

        return get_allocation_history(case_id)

    @staticmethod
    def preview_next_receiver(case_type: str):
        """Who would receive the next ``case_type`` case, or ``None``."""
        from allocation.services import AllocationTransactionManager  # lazy import — avoids circular deps

        if case_type not in CASE_TYPE_FAMILY:
            raise ValidationError(f"Unknown case type '{case_type}'.", field="case_type")
        return AllocationTransactionManager.preview_next_receiver(case_type)
