"""
Allocation app serializers (read-only; records are never written via the API).
"""

from rest_framework import serializers

from .models import AllocationRecord


class AllocationRecordSerializer(serializers.ModelSerializer):
    method_display = serializers.CharField(source="get_method_display", read_only=True)
    previous_receiver_name = serializers.SerializerMethodField()
    new_receiver_name = serializers.SerializerMethodField()

    class Meta:
        model = AllocationRecord
        fields = [
            "id",
            "case",
            "previous_receiver",
            "previous_receiver_name",
            "new_receiver",
            "new_receiver_name",
            "allocated_by",
            "allocated_by_name",
            "reason",
            "method",
            "method_display",
            "policy_version",
            "created_at",
        ]
        read_only_fields = fields

    def get_previous_receiver_name(self, obj: AllocationRecord) -> str | None:
        return obj.previous_receiver.display_name if obj.previous_receiver else None

    def get_new_receiver_name(self, obj: AllocationRecord) -> str:
        return obj.new_receiver.display_name
