# events/admin.py
"""
Django admin configuration for the event log.

Events are read-only in admin (they're immutable).
"""

import json

from django.contrib import admin
from django.utils.html import format_html

from .models import Event


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    """
    Admin interface for Events.
    Read-only since events are immutable.
    """

    list_display = ["id_short", "metric", "subject_display", "actor", "occurred_at", "company"]
    list_filter = ["metric", "subject_type", "occurred_at", "company"]
    search_fields = ["subject_id", "actor__email", "dedup_key"]
    date_hierarchy = "occurred_at"
    list_select_related = ["company", "actor"]
    ordering = ["-recorded_at"]

    readonly_fields = [
        "id", "company", "metric", "subject_type", "subject_id", "actor",
        "data_formatted", "metadata_formatted", "dedup_key", "schema_version",
        "occurred_at", "recorded_at",
    ]

    fieldsets = (
        ("Event Identity", {
            "fields": ("id", "metric", "schema_version", "dedup_key"),
        }),
        ("Subject", {
            "fields": ("subject_type", "subject_id"),
        }),
        ("Payload", {
            "fields": ("data_formatted",),
        }),
        ("Context", {
            "fields": ("company", "actor"),
        }),
        ("Metadata", {
            "fields": ("metadata_formatted",),
            "classes": ("collapse",),
        }),
        ("Timestamps", {
            "fields": ("occurred_at", "recorded_at"),
        }),
    )

    @admin.display(description="ID")
    def id_short(self, obj):
        return str(obj.id)[:8] + "..."

    @admin.display(description="Subject")
    def subject_display(self, obj):
        return f"{obj.subject_type}#{obj.subject_id}"

    @admin.display(description="Data")
    def data_formatted(self, obj):
        return format_html(
            "<pre style='white-space: pre-wrap; max-width: 600px;'>{}</pre>",
            json.dumps(obj.data, indent=2, default=str),
        )

    @admin.display(description="Metadata")
    def metadata_formatted(self, obj):
        return format_html(
            "<pre style='white-space: pre-wrap; max-width: 600px;'>{}</pre>",
            json.dumps(obj.metadata, indent=2, default=str),
        )

    def has_add_permission(self, request):
        return False  # Events are recorded through record_event only

    def has_change_permission(self, request, obj=None):
        return False  # Events are immutable

    def has_delete_permission(self, request, obj=None):
        return False  # Events are immutable
