# analytics/management/commands/reconcile_aggregates.py
"""
Management command to recompute aggregates from the event log.

The event log is the source of truth; aggregates can always be rebuilt
from it. This is the manual counterpart of the nightly reconcile task.

Usage:
    # Recompute every aggregate of one metric
    python manage.py reconcile_aggregates --metric job_view

    # Recompute the counters of a single subject
    python manage.py reconcile_aggregates --metric job_view --subject <job public id>

    # Recompute everything for one company
    python manage.py reconcile_aggregates --all --company acme

    # Recompute everything
    python manage.py reconcile_aggregates --all

    # Dry run - report drift without writing
    python manage.py reconcile_aggregates --all --dry-run

    # List all available metrics
    python manage.py reconcile_aggregates --list
"""

import logging
import time

from django.core.management.base import BaseCommand, CommandError

from accounts.models import Company
from analytics.models import Aggregate
from analytics.reconciler import count_events, known_keys, recompute
from events.types import Metrics

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Recompute aggregates from events."""

    help = "Recompute aggregates from the event log"

    def add_arguments(self, parser):
        # Target selection
        parser.add_argument(
            "--metric",
            type=str,
            help="Metric to recompute",
        )
        parser.add_argument(
            "--subject",
            type=str,
            help="Subject id to recompute (requires --metric)",
        )
        parser.add_argument(
            "--all",
            action="store_true",
            dest="all_metrics",
            help="Recompute ALL metrics",
        )
        parser.add_argument(
            "--company",
            type=str,
            help="Company slug to limit the recompute to",
        )

        # Operation modes
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report drift without making changes",
        )
        parser.add_argument(
            "--quiet",
            action="store_true",
            help="Only print the summary",
        )

        # Information commands
        parser.add_argument(
            "--list",
            action="store_true",
            help="List all available metrics",
        )

    def handle(self, *args, **options):
        if options["list"]:
            return self._list_metrics()

        self._validate_arguments(options)
        company = self._get_company(options)

        keys = known_keys(
            metric=options["metric"],
            subject_id=options["subject"],
            company=company,
        )
        if not keys:
            self.stdout.write(self.style.WARNING("No aggregates to recompute."))
            return

        self.stdout.write(f"Aggregates to check: {len(keys):,}")

        if options["dry_run"]:
            self._report_drift(keys, options)
            self.stdout.write(self.style.WARNING("\n[DRY RUN] No changes made."))
            return

        self._recompute_all(keys, company, options)

    def _validate_arguments(self, options):
        has_metric = options["metric"] is not None
        has_all = options["all_metrics"]

        if not has_metric and not has_all:
            raise CommandError("Must specify --metric <name> or --all")

        if has_metric and has_all:
            raise CommandError("Cannot use --metric and --all together")

        if options["subject"] and not has_metric:
            raise CommandError("--subject requires --metric <name>")

        if has_metric and options["metric"] not in Metrics.all():
            available = ", ".join(Metrics.all())
            raise CommandError(f"Unknown metric: {options['metric']}\nAvailable: {available}")

    def _list_metrics(self):
        self.stdout.write("\nAvailable metrics:\n")
        for metric in Metrics.all():
            stored = Aggregate.objects.filter(metric=metric).count()
            self.stdout.write(f"  {metric} ({stored:,} stored aggregates)")
        self.stdout.write(f"\nTotal: {len(Metrics.all())} metrics")

    def _get_company(self, options):
        slug = options["company"]
        if not slug:
            return None
        try:
            return Company.objects.get(slug=slug)
        except Company.DoesNotExist:
            raise CommandError(f"Company not found: {slug}")

    def _report_drift(self, keys, options):
        """Print every key whose stored value disagrees with the event log."""
        stored = {
            (metric, subject_id, period): value
            for metric, subject_id, period, value in Aggregate.objects.values_list(
                "metric", "subject_id", "period", "value"
            )
        }
        drifted = 0
        for key in keys:
            actual = count_events(*key)
            value = stored.get(key)
            if value == actual:
                continue
            drifted += 1
            if not options["quiet"]:
                metric, subject_id, period = key
                self.stdout.write(
                    f"  {metric} {subject_id} {period}: stored={value if value is not None else '-'} actual={actual}"
                )
        self.stdout.write(f"\nDrifted: {drifted:,}")

    def _recompute_all(self, keys, company, options):
        start_time = time.time()
        checked = corrected = failed = 0

        for metric, subject_id, period in keys:
            try:
                result = recompute(metric, subject_id, period, company=company)
            except Exception as e:
                failed += 1
                self.stdout.write(self.style.ERROR(f"  {metric} {subject_id} {period}: {e}"))
                logger.exception(f"Recompute failed: {metric} {subject_id} {period}")
                continue

            checked += 1
            if result.drifted:
                corrected += 1
                if not options["quiet"]:
                    self.stdout.write(
                        f"  {metric} {subject_id} {period}: {result.previous} -> {result.value}"
                    )

        elapsed = time.time() - start_time
        self.stdout.write("\n" + "=" * 60)
        if failed:
            self.stdout.write(self.style.ERROR("RECOMPUTE FINISHED WITH ERRORS"))
        else:
            self.stdout.write(self.style.SUCCESS("RECOMPUTE COMPLETE"))
        self.stdout.write("=" * 60)
        self.stdout.write(f"Checked: {checked:,}")
        self.stdout.write(f"Corrected: {corrected:,}")
        self.stdout.write(f"Failed: {failed:,}")
        self.stdout.write(f"Total time: {elapsed:.2f} seconds")
