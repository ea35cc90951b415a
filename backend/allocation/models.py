"""
Allocation app models.

``AllocationRecord`` is the immutable audit trail of who received a case
and why.  Rows are only ever inserted: saving an existing row, deleting
one, or bulk-updating/deleting through the queryset raises ``Conflict``.

``RotationCursor`` holds one row per rotation bucket.  Locking that row
(``select_for_update``) serialises allocation within the bucket; the
``cursor`` rotation strategy also reads its ``position``.
"""

from django.conf import settings
from django.db import models

from cases.models import Case, CaseTypeFamily
from core.domain.exceptions import Conflict

_APPEND_ONLY = "Allocation records are append-only."


class AllocationMethod(models.TextChoices):
    SELF_ASSIGN = "self_assign", "Self-Assigned"
    ROTATION = "rotation", "Rotation"
    FALLBACK_SELF_ASSIGN = "fallback_self_assign", "Self-Assigned (empty pool fallback)"
    MANUAL = "manual", "Manual Reassignment"


class AllocationRecordQuerySet(models.QuerySet):

    def update(self, **kwargs):
        raise Conflict(_APPEND_ONLY)

    def delete(self):
        raise Conflict(_APPEND_ONLY)


class AllocationRecord(models.Model):
    """
    One allocation event for a case.

    The newest record (highest pk) for a case always names the case's
    current receiver.
    """

    case = models.ForeignKey(
        Case,
        on_delete=models.PROTECT,
        related_name="allocation_records",
        verbose_name="Case",
    )
    previous_receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Previous Receiver",
    )
    new_receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="+",
        verbose_name="New Receiver",
    )
    allocated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Allocated By",
    )
    allocated_by_name = models.CharField(
        max_length=301,
        verbose_name="Allocated By (name)",
        help_text="Display name of the acting user at the time of allocation.",
    )
    reason = models.TextField(
        blank=True,
        default="",
        verbose_name="Reason",
    )
    method = models.CharField(
        max_length=24,
        choices=AllocationMethod.choices,
        verbose_name="Method",
    )
    policy_version = models.CharField(
        max_length=32,
        verbose_name="Policy Version",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Allocated At",
    )

    objects = AllocationRecordQuerySet.as_manager()

    class Meta:
        verbose_name = "Allocation Record"
        verbose_name_plural = "Allocation Records"
        ordering = ["pk"]

    def __str__(self):
        return (
            f"Case #{self.case_id}: "
            f"{self.previous_receiver_id or '-'} → {self.new_receiver_id} ({self.method})"
        )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise Conflict(_APPEND_ONLY)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise Conflict(_APPEND_ONLY)


class RotationCursor(models.Model):
    bucket = models.CharField(
        max_length=32,
        choices=CaseTypeFamily.choices,
        unique=True,
        verbose_name="Bucket",
    )
    position = models.PositiveBigIntegerField(
        default=0,
        verbose_name="Position",
        help_text="Number of rotated allocations made in this bucket.",
    )
    last_receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Last Receiver",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name="Updated At",
    )

    class Meta:
        verbose_name = "Rotation Cursor"
        verbose_name_plural = "Rotation Cursors"

    def __str__(self):
        return f"{self.bucket} @ {self.position}"
