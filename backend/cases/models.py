"""
Cases app models.

A ``Case`` is one piece of incoming administrative work recorded at the
intake desk.  Every case has exactly one current receiver once it has
been allocated; the full lineage of receivers lives in
``allocation.AllocationRecord``.

The case-type taxonomy is fixed.  Types are grouped into *families*
that drive both eligibility (who may receive the case) and rotation
(which cases count towards the same bucket).
"""

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class CaseType(models.TextChoices):
    GENERAL = "general", "General"
    COMPLEX = "complex", "Complex"
    SPECIAL = "special", "Special"
    PARTITION_TRANSFER = "partition_transfer", "Partition / Transfer"
    SELF_BUILT_HOUSE = "self_built_house", "Self-Built House"
    DEVELOPER_FIRST = "developer_first", "Developer First Registration"
    DEVELOPER_TRANSFER = "developer_transfer", "Developer Transfer"
    DEVELOPER_TRANSFER_REGISTRATION = (
        "developer_transfer_registration",
        "Developer Transfer Registration",
    )
    STATE_OWNED_ENTERPRISE = "state_owned_enterprise", "State-Owned Enterprise"
    ENTERPRISE = "enterprise", "Enterprise"
    OTHER = "other", "Other"


class CaseTypeFamily(models.TextChoices):
    """
    Grouping of case types.  A family is also the *bucket* that scopes a
    rotation: counting and cursor position are per family.
    """

    GENERAL = "general", "General"
    DEVELOPER_FIRST = "developer_first", "Developer First Registration"
    DEVELOPER_TRANSFER = "developer_transfer", "Developer Transfer"
    STATE_OWNED = "state_owned", "State-Owned"


CASE_TYPE_FAMILY: dict[str, str] = {
    CaseType.GENERAL: CaseTypeFamily.GENERAL,
    CaseType.COMPLEX: CaseTypeFamily.GENERAL,
    CaseType.SPECIAL: CaseTypeFamily.GENERAL,
    CaseType.PARTITION_TRANSFER: CaseTypeFamily.GENERAL,
    CaseType.SELF_BUILT_HOUSE: CaseTypeFamily.GENERAL,
    CaseType.OTHER: CaseTypeFamily.GENERAL,
    CaseType.DEVELOPER_FIRST: CaseTypeFamily.DEVELOPER_FIRST,
    CaseType.DEVELOPER_TRANSFER: CaseTypeFamily.DEVELOPER_TRANSFER,
    CaseType.DEVELOPER_TRANSFER_REGISTRATION: CaseTypeFamily.DEVELOPER_TRANSFER,
    CaseType.STATE_OWNED_ENTERPRISE: CaseTypeFamily.STATE_OWNED,
    CaseType.ENTERPRISE: CaseTypeFamily.STATE_OWNED,
}


def family_of(case_type: str) -> str:
    """Return the family of ``case_type``; ``KeyError`` for unknown types."""
    return CASE_TYPE_FAMILY[case_type]


def case_types_in_family(family: str) -> list[str]:
    return [ct for ct, fam in CASE_TYPE_FAMILY.items() if fam == family]


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Case(TimeStampedModel):
    """
    An intake case.

    * ``receiver`` is null only between insertion and allocation, which
      happen inside the same transaction; committed cases always have one.
    * ``allocated_at`` and ``completed_at`` are the same event: the
      moment the receiver was (re)assigned.
    """

    case_number = models.CharField(
        max_length=64,
        unique=True,
        verbose_name="Case Number",
    )
    case_type = models.CharField(
        max_length=40,
        choices=CaseType.choices,
        db_index=True,
        verbose_name="Case Type",
    )
    case_date = models.DateField(
        verbose_name="Case Date",
    )

    # ── Parties ─────────────────────────────────────────────────────
    requesting_party = models.CharField(
        max_length=255,
        blank=True,
        default="",
        verbose_name="Requesting Party",
    )
    agent = models.CharField(
        max_length=255,
        blank=True,
        default="",
        verbose_name="Agent",
    )
    contact_phone = models.CharField(
        max_length=32,
        blank=True,
        default="",
        verbose_name="Contact Phone",
    )
    developer_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        verbose_name="Developer",
    )
    description = models.TextField(
        blank=True,
        default="",
        verbose_name="Description",
    )

    # ── Key personnel ───────────────────────────────────────────────
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_cases",
        verbose_name="Created By",
    )
    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="received_cases",
        verbose_name="Current Receiver",
    )
    allocated_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Allocated At",
    )
    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Completed At",
    )

    class Meta:
        verbose_name = "Case"
        verbose_name_plural = "Cases"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["case_type", "created_at"], name="cases_case_type_created_idx"),
        ]

    def __str__(self):
        return f"Case {self.case_number} ({self.get_case_type_display()})"

    @property
    def family(self) -> str:
        return family_of(self.case_type)
