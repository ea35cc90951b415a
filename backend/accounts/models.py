"""
Accounts app models.

Defines the staff roster used by the allocation engine: a custom
``User`` extending Django's ``AbstractUser`` with a fixed role category
and a staff status.  A user takes part in rotation only while both the
Django ``is_active`` login flag is set *and* the staff status is
``active``; staff on leave or disabled keep their history but never
receive rotated cases.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models


class RoleCategory(models.TextChoices):
    GENERAL_RECEIVER = "general_receiver", "General Receiver"
    DEVELOPER = "developer", "Developer"
    STATE_OWNED_DESK = "state_owned_desk", "State-Owned Enterprise Desk"
    ADMINISTRATOR = "administrator", "Administrator"


class StaffStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    ON_LEAVE = "on_leave", "On Leave"
    DISABLED = "disabled", "Disabled"


class User(AbstractUser):
    """
    Intake desk staff member.

    Each user holds exactly **one** role category.  Receivers are
    always referenced by primary key; ``display_name`` is for messages
    and audit rows only and is never used for ordering or identity.
    """

    real_name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        verbose_name="Real Name",
    )
    role = models.CharField(
        max_length=32,
        choices=RoleCategory.choices,
        default=RoleCategory.GENERAL_RECEIVER,
        db_index=True,
        verbose_name="Role Category",
    )
    status = models.CharField(
        max_length=16,
        choices=StaffStatus.choices,
        default=StaffStatus.ACTIVE,
        db_index=True,
        verbose_name="Staff Status",
    )

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ["id"]

    def __str__(self):
        return f"{self.username} ({self.display_name}) - {self.get_role_display()}"

    # ── Helper predicates for role checks ────────────────────────────

    @property
    def display_name(self) -> str:
        """Real name, else full name, else username."""
        return self.real_name or self.get_full_name() or self.username

    @property
    def is_developer(self) -> bool:
        return self.role == RoleCategory.DEVELOPER

    @property
    def is_available_for_rotation(self) -> bool:
        return self.is_active and self.status == StaffStatus.ACTIVE
