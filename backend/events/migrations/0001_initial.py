import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

METRIC_CHOICES = [
    ("job_view", "Job View"),
    ("application_submit", "Application Submit"),
    ("interview_scheduled", "Interview Scheduled"),
    ("job_save", "Job Save"),
    ("company_view", "Company View"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("metric", models.CharField(choices=METRIC_CHOICES, help_text="Metric name (e.g., 'job_view')", max_length=50)),
                ("subject_type", models.CharField(help_text="Kind of thing being counted (job, company)", max_length=20)),
                ("subject_id", models.CharField(help_text="Public id of the counted subject", max_length=64)),
                ("data", models.JSONField(default=dict, help_text="Schema-validated payload for the metric")),
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Request context (IP, user agent, etc.)")),
                ("dedup_key", models.CharField(blank=True, editable=False, max_length=255, null=True)),
                ("schema_version", models.PositiveSmallIntegerField(default=1, help_text="Schema version for data migration")),
                ("occurred_at", models.DateTimeField(default=django.utils.timezone.now, help_text="Advisory client/server time of the action; used for day buckets")),
                ("recorded_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("actor", models.ForeignKey(blank=True, help_text="User who caused this event (empty for anonymous views)", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="events", to=settings.AUTH_USER_MODEL)),
                ("company", models.ForeignKey(help_text="Company whose dashboard this event feeds", on_delete=django.db.models.deletion.CASCADE, related_name="events", to="accounts.company")),
            ],
            options={
                "ordering": ["recorded_at"],
                "indexes": [
                    models.Index(fields=["metric", "subject_id", "occurred_at"], name="event_metric_subject_idx"),
                    models.Index(fields=["company", "metric", "occurred_at"], name="event_company_metric_idx"),
                    models.Index(fields=["actor", "metric"], name="event_actor_metric_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("dedup_key__isnull", False)), fields=("dedup_key",), name="uniq_event_dedup_key"),
                ],
            },
        ),
    ]
