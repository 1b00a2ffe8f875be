"""
Follow-Up Scheduler — expands a user's automation rules into FollowUpJob rows.

Runs once when a lead is created. Each rule is copied by value into its own
job, so later edits to the rule set never change jobs that already exist.
Besides the periodic sweep, every job gets a one-off django-q wake-up at its
run_at so delivery is not delayed by the sweep cadence.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction

from crm.models.automation import AutomationRuleSet
from crm.models.followup_job import FollowUpJob
from crm.services.event_log import record_event
from crm.utils import snippet, utcnow

logger = logging.getLogger(__name__)

CHANNEL_ALIASES = {"whatsapp": "messaging"}


def normalize_channel(channel: str | None) -> str:
    channel = (channel or "messaging").strip().lower()
    return CHANNEL_ALIASES.get(channel, channel)


def schedule_follow_ups(user, lead, now=None) -> list[FollowUpJob]:
    """
    Create one job per automation rule, due at now + delay_hours.
    No-op when the user has no rule set, it is disabled, or it is empty.
    """
    if user is None or lead is None:
        return []

    rules = AutomationRuleSet.objects.filter(user=user).first()
    if rules is None or not rules.enabled or not rules.follow_ups:
        return []

    now = now or utcnow()
    jobs = [
        FollowUpJob(
            user=user,
            lead=lead,
            channel=normalize_channel(rule.get("channel")),
            message=rule["message"],
            run_at=now + timedelta(hours=float(rule["delay_hours"])),
        )
        for rule in rules.follow_ups
    ]

    with transaction.atomic():
        FollowUpJob.objects.bulk_create(jobs)

        for job in jobs:
            record_event(
                "followup_scheduled",
                lead=lead,
                user=user,
                source="automation",
                payload={
                    "job_id": str(job.id),
                    "channel": job.channel,
                    "run_at": job.run_at.isoformat(),
                    "message_snippet": snippet(job.message),
                },
            )

        if settings.FOLLOWUP_WAKE_TASKS:
            transaction.on_commit(lambda: _arm_wake_tasks(jobs))

    logger.info(f"Scheduled {len(jobs)} follow-ups for lead {lead.id}")
    return jobs


def _arm_wake_tasks(jobs):
    """One-off django-q schedules that process each job at its due time."""
    from django_q.models import Schedule

    for job in jobs:
        try:
            Schedule.objects.create(
                name=f"followup_{job.id}",
                func="crm.services.followup_processor.process_job",
                args=f"('{job.id}',)",
                schedule_type=Schedule.ONCE,
                next_run=job.run_at,
                repeats=1,
            )
        except Exception:
            # The periodic sweep still picks the job up
            logger.exception(f"Could not arm wake-up task for follow-up {job.id}")
