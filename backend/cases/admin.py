from django.contrib import admin

from .models import Case


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    list_display = ("case_number", "case_type", "case_date", "requesting_party", "created_by", "receiver", "allocated_at")
    list_filter = ("case_type", "case_date")
    search_fields = ("case_number", "requesting_party", "developer_name")
    # Receiver changes go through the allocation engine only.
    readonly_fields = ("receiver", "allocated_at", "completed_at", "created_by")
