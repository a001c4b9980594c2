"""
Celery application configuration.

This is the main Celery app for the recruitment backend.
It runs the analytics tick (reconcile + dashboard broadcast) and the
nightly aggregate repair.

Usage:
    # Start worker
    celery -A recruitment_backend worker -l INFO

    # Start beat scheduler (for periodic tasks)
    celery -A recruitment_backend beat -l INFO

    # Start both (development only)
    celery -A recruitment_backend worker -B -l INFO
"""
import os

from celery import Celery

# Set default Django settings
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "recruitment_backend.settings")

# Create Celery app
app = Celery("recruitment_backend")

# Load config from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()
