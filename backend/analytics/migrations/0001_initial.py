import django.db.models.deletion
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
    ]

    operations = [
        migrations.CreateModel(
            name="Aggregate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("metric", models.CharField(choices=METRIC_CHOICES, max_length=50)),
                ("subject_id", models.CharField(max_length=64)),
                ("period", models.CharField(max_length=10)),
                ("value", models.BigIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("last_reconciled_at", models.DateTimeField(blank=True, null=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="aggregates", to="accounts.company")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "metric", "period"], name="aggregate_company_metric_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("metric", "subject_id", "period"), name="uniq_aggregate_metric_subject_period"),
                ],
            },
        ),
    ]
