# jobs/apps.py
"""Jobs app configuration."""

from django.apps import AppConfig


class JobsConfig(AppConfig):
    """Configuration for the jobs app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "jobs"
    verbose_name = "Jobs & Applications"
