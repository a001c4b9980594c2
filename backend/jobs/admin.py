from django.contrib import admin

from .models import Application, Interview, Job, SavedJob


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ("title", "company", "status", "is_active", "created_at")
    list_filter = ("status", "is_active", "company")
    search_fields = ("title", "company__name")
    readonly_fields = ("public_id",)


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ("student", "job", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("student__email", "job__title")
    readonly_fields = ("public_id",)


@admin.register(Interview)
class InterviewAdmin(admin.ModelAdmin):
    list_display = ("application", "scheduled_at", "scheduled_by")
    readonly_fields = ("public_id",)


@admin.register(SavedJob)
class SavedJobAdmin(admin.ModelAdmin):
    list_display = ("user", "job", "created_at")
