from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "real_name", "role", "status", "is_active")
    search_fields = ("username", "real_name", "first_name", "last_name")
    list_filter = ("role", "status", "is_active")
    ordering = ("id",)
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Intake Desk", {"fields": ("real_name", "role", "status")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Intake Desk", {"fields": ("real_name", "role", "status")}),
    )
