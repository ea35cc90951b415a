"""
allocation.policy — Self-Assignment Policy.

Decides, from the creator's role and the case type alone, whether a new
case goes straight to its creator, enters rotation, or is refused.  This
is the single authoritative rule table; ``POLICY_VERSION`` is stored on
every ``AllocationRecord`` so an audit row can always be traced back to
the rules that produced it.

Rules, first match wins::

    1. developer_first and creator is not the SOE desk  -> REJECT
    2. creator is a developer                           -> ROTATE
    3. general receiver, type outside developer_transfer -> SELF_ASSIGN
    4. SOE desk creating one of its own types            -> SELF_ASSIGN
    5. anything else                                     -> ROTATE

The policy is a pure function: no queries, no side effects.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from accounts.models import RoleCategory
from cases.models import CASE_TYPE_FAMILY, CaseType, CaseTypeFamily
from core.domain.exceptions import ValidationError

POLICY_VERSION = "2024.1"

DEVELOPER_FIRST_REJECTION = "only state-owned-enterprise desk may create this case type"

# Case types the state-owned-enterprise desk owns outright.
STATE_OWNED_DESK_TYPES = frozenset({
    CaseType.STATE_OWNED_ENTERPRISE,
    CaseType.ENTERPRISE,
    CaseType.DEVELOPER_FIRST,
})


class DecisionKind(enum.Enum):
    SELF_ASSIGN = "self_assign"
    ROTATE = "rotate"
    REJECT = "reject"


@dataclass(frozen=True)
class Decision:
    kind: DecisionKind
    reason: str = ""

    @property
    def is_reject(self) -> bool:
        return self.kind is DecisionKind.REJECT


SELF_ASSIGN = Decision(DecisionKind.SELF_ASSIGN)
ROTATE = Decision(DecisionKind.ROTATE)


class SelfAssignmentPolicy:
    """Ordered rule table mapping (creator role, case type) to a ``Decision``."""

    @staticmethod
    def decide(creator_role: str, case_type: str) -> Decision:
        """
        Parameters
        ----------
        creator_role : str
            ``RoleCategory`` value of the user creating the case.
        case_type : str
            ``CaseType`` value of the case being created.

        Raises
        ------
        ValidationError
            If ``case_type`` is not part of the taxonomy.
        """
        if case_type not in CASE_TYPE_FAMILY:
            raise ValidationError(f"Unknown case type '{case_type}'.", field="case_type")

        family = CASE_TYPE_FAMILY[case_type]

        if case_type == CaseType.DEVELOPER_FIRST and creator_role != RoleCategory.STATE_OWNED_DESK:
            return Decision(DecisionKind.REJECT, DEVELOPER_FIRST_REJECTION)

        if creator_role == RoleCategory.DEVELOPER:
            return ROTATE

        if (
            creator_role == RoleCategory.GENERAL_RECEIVER
            and family != CaseTypeFamily.DEVELOPER_TRANSFER
        ):
            return SELF_ASSIGN

        if creator_role == RoleCategory.STATE_OWNED_DESK and case_type in STATE_OWNED_DESK_TYPES:
            return SELF_ASSIGN

        return ROTATE
