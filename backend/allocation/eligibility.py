"""
allocation.eligibility — who may receive a case of a given type.

The family → role mapping below is total over the case-type taxonomy.
Families named in ``INTAKE_ALLOCATION['ELIGIBILITY_OVERRIDES']`` replace
their default entry; all other families keep it.
"""

from __future__ import annotations

import logging

from accounts.models import RoleCategory
from accounts.services import RosterService
from cases.models import CASE_TYPE_FAMILY, CaseTypeFamily
from core.domain.exceptions import ValidationError

from .conf import allocation_settings

logger = logging.getLogger(__name__)

DEFAULT_ELIGIBILITY: dict[str, frozenset[str]] = {
    CaseTypeFamily.STATE_OWNED: frozenset({RoleCategory.STATE_OWNED_DESK}),
    CaseTypeFamily.DEVELOPER_TRANSFER: frozenset({
        RoleCategory.GENERAL_RECEIVER,
        RoleCategory.STATE_OWNED_DESK,
    }),
    CaseTypeFamily.GENERAL: frozenset({RoleCategory.GENERAL_RECEIVER}),
    CaseTypeFamily.DEVELOPER_FIRST: frozenset({RoleCategory.GENERAL_RECEIVER}),
}


class EligibilityResolver:

    @staticmethod
    def roles_for(case_type: str) -> frozenset[str]:
        try:
            family = CASE_TYPE_FAMILY[case_type]
        except KeyError:
            raise ValidationError(f"Unknown case type '{case_type}'.", field="case_type")
        overrides = allocation_settings().eligibility_overrides
        return overrides.get(family, DEFAULT_ELIGIBILITY[family])

    @staticmethod
    def resolve(case_type: str, creator_role: str | None = None) -> list:
        """
        Return the candidate pool for ``case_type``.

        Only users active for rotation are included, ordered ascending
        by primary key.  An empty list is a valid answer; deciding what
        to do about it is the caller's job.  ``creator_role`` is accepted
        for callers that have it but does not narrow the default mapping.
        """
        roles = EligibilityResolver.roles_for(case_type)
        candidates = RosterService.active_receivers(roles)
        logger.debug(
            "Eligibility for %s (creator role %s): %d candidate(s)",
            case_type,
            creator_role,
            len(candidates),
        )
        return candidates
