"""
Cases app serializers.

Serializers handle field definitions, read/write constraints, and
field-level validation only.  **No allocation rules live here** — those
belong in ``services.py`` and ``allocation``.

Structure
---------
1. Staff summary serializer
2. Case read serializer
3. Case write / action serializers
"""

from __future__ import annotations

import re

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Case, CaseType

User = get_user_model()

# ── Phone number validation regex ───────────────────────────────────
_PHONE_REGEX = re.compile(r"^\+?[\d\- ]{7,20}$")


# ═══════════════════════════════════════════════════════════════════
#  1. Staff summary
# ═══════════════════════════════════════════════════════════════════


class StaffSummarySerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    role_display = serializers.CharField(source="get_role_display", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "display_name", "role", "role_display"]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  2. Case read serializer
# ═══════════════════════════════════════════════════════════════════


class CaseDetailSerializer(serializers.ModelSerializer):
    case_type_display = serializers.CharField(source="get_case_type_display", read_only=True)
    family = serializers.CharField(read_only=True)
    created_by = StaffSummarySerializer(read_only=True)
    receiver = StaffSummarySerializer(read_only=True)

    class Meta:
        model = Case
        fields = [
            "id",
            "case_number",
            "case_type",
            "case_type_display",
            "family",
            "case_date",
            "requesting_party",
            "agent",
            "contact_phone",
            "developer_name",
            "description",
            "created_by",
            "receiver",
            "allocated_at",
            "completed_at",
            "created_at",
        ]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  3. Case write / action serializers
# ═══════════════════════════════════════════════════════════════════


class CaseCreateSerializer(serializers.Serializer):
    """
    Input for ``POST /api/cases/``.

    Only shapes are checked here.  Which fields are *required* depends
    on the creator's role and is enforced by ``CaseDraftValidator``.
    """

    case_type = serializers.ChoiceField(choices=CaseType.choices)
    case_number = serializers.CharField(required=False, allow_blank=True, max_length=64)
    case_date = serializers.DateField(required=False, allow_null=True)
    requesting_party = serializers.CharField(required=False, allow_blank=True, max_length=255)
    agent = serializers.CharField(required=False, allow_blank=True, max_length=255)
    contact_phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    developer_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)

    def validate_contact_phone(self, value: str) -> str:
        if value and not _PHONE_REGEX.match(value):
            raise serializers.ValidationError("Enter a valid phone number.")
        return value


class CaseReassignSerializer(serializers.Serializer):
    """Input for ``POST /api/cases/{id}/reassign/``."""

    target_receiver = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class NextReceiverQuerySerializer(serializers.Serializer):
    case_type = serializers.ChoiceField(choices=CaseType.choices)
