# analytics/apps.py
"""Analytics app configuration."""

from django.apps import AppConfig


class AnalyticsConfig(AppConfig):
    """Configuration for the analytics app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "analytics"
    verbose_name = "Analytics"
