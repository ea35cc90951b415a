"""
Allocation app Service Layer.

``AllocationTransactionManager`` is the only place that changes a case's
receiver.  It combines the Self-Assignment Policy, the Eligibility
Resolver and the Rotation Selector into one decision, then commits the
case update and the audit row together.

Flow of ``allocate``
--------------------
::

    policy.decide(creator.role, case.case_type)
      REJECT       → AuthorizationError (nothing written)
      SELF_ASSIGN  → receiver = creator
      ROTATE       → lock RotationCursor[bucket]
                     candidates = eligibility.resolve(case_type)
                       empty + developer_transfer family → creator (fallback)
                       empty otherwise                   → NoEligibleReceiver
                     counter = rotation_counter(strategy)
                     receiver = candidates[counter % K]
    lock case row → set receiver / allocated_at / completed_at
                  → advance cursor (rotation only)
                  → append AllocationRecord
    on_commit    → notifications (best-effort)

Every write happens inside ``core.domain.transactions.atomic_commit`` so
a datastore failure rolls back the case update *and* the audit append
and surfaces as ``TransactionError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from cases.models import Case, CaseTypeFamily, family_of
from core.constants import CREATION_ALLOCATION_REASON
from core.domain.exceptions import (
    AuthorizationError,
    NoEligibleReceiver,
    NotFound,
    ValidationError,
)
from core.domain.transactions import atomic_commit, lock_for_update, lock_or_create

from .conf import AllocationSettings, allocation_settings
from .eligibility import EligibilityResolver
from .models import AllocationMethod, AllocationRecord, RotationCursor
from .notifications import deliver
from .policy import POLICY_VERSION, Decision, DecisionKind, SelfAssignmentPolicy
from .rotation import RotationSelector, rotation_counter

if TYPE_CHECKING:
    from accounts.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationOutcome:
    receiver: Any
    record: AllocationRecord
    method: str


# ═══════════════════════════════════════════════════════════════════
#  Allocation Transaction Manager
# ═══════════════════════════════════════════════════════════════════


class AllocationTransactionManager:
    """
    Decides and commits case allocations.

    All methods are static; the manager holds no state between calls.
    """

    @staticmethod
    def check_policy(creator: User, case_type: str) -> Decision:
        """
        Run the Self-Assignment Policy and raise on ``REJECT``.

        Callers creating a case use this before inserting it so a
        forbidden creation never touches storage.

        Raises
        ------
        AuthorizationError
            If the creator's role may not create ``case_type``.
        ValidationError
            If ``case_type`` is not part of the taxonomy.
        """
        decision = SelfAssignmentPolicy.decide(creator.role, case_type)
        if decision.is_reject:
            logger.warning(
                "Allocation refused for user=%s role=%s case_type=%s: %s",
                creator.pk,
                creator.role,
                case_type,
                decision.reason,
            )
            raise AuthorizationError(decision.reason)
        return decision

    @staticmethod
    def allocate(
        case: Case,
        creator: User,
        *,
        reason: str = CREATION_ALLOCATION_REASON,
    ) -> AllocationOutcome:
        """
        Choose and commit the receiver of a freshly created ``case``.

        Parameters
        ----------
        case : Case
            A saved case.  It must not be counted towards its own
            rotation, so its pk is excluded from every count.
        creator : User
            The user who created the case; also recorded as the acting
            user on the audit row.
        reason : str
            Free-text reason stored on the ``AllocationRecord``.

        Returns
        -------
        AllocationOutcome
            The chosen receiver, the appended record and the method used.
            ``case`` is updated in place to match the committed row.

        Raises
        ------
        AuthorizationError
            Policy rejected the (creator role, case type) pair.
        NoEligibleReceiver
            Rotation found nobody and no fallback applies.
        TransactionError
            The datastore failed; nothing was written.
        """
        decision = AllocationTransactionManager.check_policy(creator, case.case_type)
        config = allocation_settings()

        with atomic_commit("allocate case"):
            cursor = None
            if decision.kind is DecisionKind.SELF_ASSIGN:
                receiver, method = creator, AllocationMethod.SELF_ASSIGN
            else:
                receiver, method, cursor = AllocationTransactionManager._rotate(
                    case, creator, config,
                )

            record = AllocationTransactionManager._commit(
                case,
                receiver=receiver,
                actor=creator,
                method=method,
                reason=reason,
            )
            if method == AllocationMethod.ROTATION:
                RotationCursor.objects.filter(pk=cursor.pk).update(
                    position=F("position") + 1,
                    last_receiver=receiver,
                )

            outcome = AllocationOutcome(receiver=receiver, record=record, method=method)
            transaction.on_commit(
                lambda: AllocationTransactionManager._after_allocate(case, creator, receiver)
            )

        logger.info(
            "Case %s (%s) allocated to user=%s via %s by user=%s",
            case.case_number,
            case.case_type,
            receiver.pk,
            method,
            creator.pk,
        )
        return outcome

    @staticmethod
    def reassign(
        case: Case,
        target: User,
        acting_user: User,
        reason: str = "",
    ) -> AllocationRecord:
        """
        Move ``case`` to ``target``, bypassing eligibility and rotation.

        Same all-or-nothing guarantee as ``allocate``; the audit row has
        method ``manual``.

        Raises
        ------
        ValidationError
            ``target`` is not active for rotation, or already holds the case.
        TransactionError
            The datastore failed; nothing was written.
        """
        if target is None or not target.is_available_for_rotation:
            raise ValidationError(
                "The target receiver is not an active staff member.",
                field="target_receiver",
            )

        with atomic_commit("reassign case"):
            current = lock_for_update(Case, case.pk)
            if current.receiver_id == target.pk:
                raise ValidationError(
                    "The case is already allocated to this receiver.",
                    field="target_receiver",
                )
            record = AllocationTransactionManager._commit(
                case,
                receiver=target,
                actor=acting_user,
                method=AllocationMethod.MANUAL,
                reason=reason,
            )
            if target.pk != acting_user.pk:
                transaction.on_commit(
                    lambda: deliver(
                        "notify_allocated",
                        target,
                        case.case_type,
                        case.requesting_party,
                        case=case,
                        actor=acting_user,
                        reassigned=True,
                    )
                )

        logger.info(
            "Case %s reassigned from user=%s to user=%s by user=%s",
            case.case_number,
            record.previous_receiver_id,
            target.pk,
            acting_user.pk,
        )
        return record

    @staticmethod
    def preview_next_receiver(case_type: str):
        """
        Return who would be selected if one more case of ``case_type``
        arrived now, or ``None`` when the pool is empty.

        Read-only: no locks taken, no cursor created or advanced.
        """
        candidates = EligibilityResolver.resolve(case_type)
        if not candidates:
            return None
        bucket = family_of(case_type)
        position = (
            RotationCursor.objects
            .filter(bucket=bucket)
            .values_list("position", flat=True)
            .first()
        ) or 0
        counter = rotation_counter(bucket, allocation_settings(), cursor_position=position)
        return RotationSelector.select(candidates, counter, case_type=case_type)

    # ── Internals ───────────────────────────────────────────────────

    @staticmethod
    def _rotate(case: Case, creator: User, config: AllocationSettings):
        bucket = case.family
        # Held until commit; serialises read-count-decide-write per bucket.
        cursor = lock_or_create(RotationCursor, bucket=bucket)

        candidates = EligibilityResolver.resolve(case.case_type, creator.role)
        if not candidates:
            if bucket == CaseTypeFamily.DEVELOPER_TRANSFER:
                logger.warning(
                    "No eligible receiver for %s; falling back to creator user=%s",
                    case.case_type,
                    creator.pk,
                )
                return creator, AllocationMethod.FALLBACK_SELF_ASSIGN, cursor
            raise NoEligibleReceiver(case_type=case.case_type)

        counter = rotation_counter(
            bucket,
            config,
            cursor_position=cursor.position,
            exclude_case_id=case.pk,
        )
        receiver = RotationSelector.select(candidates, counter, case_type=case.case_type)
        logger.debug(
            "Rotation %s/%s: counter=%d of %d candidate(s) -> user=%s",
            bucket,
            config.rotation_strategy,
            counter,
            len(candidates),
            receiver.pk,
        )
        return receiver, AllocationMethod.ROTATION, cursor

    @staticmethod
    def _commit(case: Case, *, receiver, actor, method: str, reason: str) -> AllocationRecord:
        """Lock the case row, set its receiver and append the audit row."""
        locked = lock_for_update(Case, case.pk)
        previous_id = locked.receiver_id
        now = timezone.now()

        locked.receiver = receiver
        locked.allocated_at = now
        locked.completed_at = now
        locked.save(update_fields=["receiver", "allocated_at", "completed_at", "updated_at"])

        record = AllocationRecord.objects.create(
            case=locked,
            previous_receiver_id=previous_id,
            new_receiver=receiver,
            allocated_by=actor,
            allocated_by_name=actor.display_name,
            reason=reason,
            method=method,
            policy_version=POLICY_VERSION,
        )

        case.receiver = receiver
        case.allocated_at = now
        case.completed_at = now
        case.updated_at = locked.updated_at
        return record

    @staticmethod
    def _after_allocate(case: Case, creator: User, receiver) -> None:
        """Best-effort notifications once the allocation is committed."""
        if receiver.pk != creator.pk:
            deliver(
                "notify_allocated",
                receiver,
                case.case_type,
                case.requesting_party,
                case=case,
                actor=creator,
                developer_created=creator.is_developer,
            )

        if creator.is_developer:
            return
        try:
            upcoming = AllocationTransactionManager.preview_next_receiver(case.case_type)
        except Exception:
            logger.exception("Could not compute next receiver for %s", case.case_type)
            return
        if upcoming is not None and upcoming.pk != receiver.pk:
            deliver(
                "notify_upcoming",
                upcoming,
                receiver.display_name,
                case.case_type,
                case.requesting_party,
                case=case,
            )


def get_allocation_history(case_id) -> list[AllocationRecord]:
    """
    Return every ``AllocationRecord`` for ``case_id`` in insertion order.

    Raises
    ------
    NotFound
        If the case does not exist.
    """
    if not Case.objects.filter(pk=case_id).exists():
        raise NotFound(f"Case with pk={case_id} does not exist.")
    return list(
        AllocationRecord.objects
        .filter(case_id=case_id)
        .select_related("previous_receiver", "new_receiver", "allocated_by")
        .order_by("pk")
    )
