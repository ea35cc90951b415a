from django.contrib import admin

from .models import AllocationRecord, RotationCursor


@admin.register(AllocationRecord)
class AllocationRecordAdmin(admin.ModelAdmin):
    list_display = ("id", "case", "previous_receiver", "new_receiver", "method", "allocated_by_name", "created_at")
    list_filter = ("method", "policy_version")
    search_fields = ("case__case_number", "allocated_by_name", "reason")
    ordering = ("-id",)

    # Audit rows are append-only.
    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def has_add_permission(self, request):
        return False


@admin.register(RotationCursor)
class RotationCursorAdmin(admin.ModelAdmin):
    list_display = ("bucket", "position", "last_receiver", "updated_at")
    readonly_fields = ("bucket", "position", "last_receiver", "updated_at")
