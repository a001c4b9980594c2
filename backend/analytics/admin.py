from django.contrib import admin

from .models import Aggregate


@admin.register(Aggregate)
class AggregateAdmin(admin.ModelAdmin):
    """
    Read-only view of aggregates.
    Values are owned by the reconciler; repair them with reconcile_aggregates.
    """

    list_display = ["metric", "subject_id", "period", "value", "company", "updated_at", "last_reconciled_at"]
    list_filter = ["metric", "company"]
    search_fields = ["subject_id"]
    list_select_related = ["company"]
    ordering = ["metric", "subject_id", "period"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
