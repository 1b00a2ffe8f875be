"""
Management command to register the periodic follow-up sweep with django-q.

Usage:
    python manage.py setup_followup_sweep

This creates (or updates) a Schedule entry that runs run_followup_sweep()
every FOLLOWUP_SWEEP_MINUTES. Safe to run multiple times, it uses update_or_create.
"""
from django.conf import settings
from django.core.management.base import BaseCommand
from django_q.models import Schedule

SWEEP_NAME = "followup_sweep"


class Command(BaseCommand):
    help = "Register the periodic follow-up job sweep task with django-q"

    def add_arguments(self, parser):
        parser.add_argument(
            "--minutes", type=int, default=None,
            help="Sweep interval (defaults to FOLLOWUP_SWEEP_MINUTES)",
        )

    def handle(self, *args, **options):
        minutes = options["minutes"] or settings.FOLLOWUP_SWEEP_MINUTES
        schedule, created = Schedule.objects.update_or_create(
            name=SWEEP_NAME,
            defaults={
                "func": "crm.services.followup_processor.run_followup_sweep",
                "schedule_type": Schedule.MINUTES,
                "minutes": minutes,
                "repeats": -1,  # run forever
            },
        )
        verb = "Created" if created else "Updated"
        self.stdout.write(self.style.SUCCESS(
            f"{verb} periodic task: {schedule.name} (every {minutes} minutes)"
        ))
