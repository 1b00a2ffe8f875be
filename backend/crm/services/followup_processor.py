"""
Follow-Up Job Processor

Delivers due FollowUpJob rows. Two entry points feed the same pipeline:

- run_followup_sweep() — periodic django-q Schedule (every FOLLOWUP_SWEEP_MINUTES)
- process_job(job_id)   — one-off wake-up armed by the scheduler at the job's run_at

Pipeline per job:
1. Claim   — stamp claimed_at under SELECT ... FOR UPDATE SKIP LOCKED so
             overlapping ticks and other workers skip it while the lease is live
2. Dispatch — messaging or email; yields delivered, skipped or failed
3. Finalize — delivered appends a bot message and a followup_sent fact;
             skipped is terminal; failed is re-armed until FOLLOWUP_MAX_ATTEMPTS

sent=True always means terminal. A job that crashes mid-pipeline keeps its
claim until the lease expires and is then picked up again (at-least-once).
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.db.models import Q

from crm.models.followup_job import FollowUpJob
from crm.providers.messaging_provider import get_messaging_provider
from crm.services.conversation import append_message
from crm.services.event_log import record_event
from crm.utils import lock_lead, snippet, utcnow

logger = logging.getLogger(__name__)

DELIVERED = "delivered"
SKIPPED = "skipped"
FAILED = "failed"


# ─── Entry points ─────────────────────────────────────────────────────────────

def run_followup_sweep() -> str:
    """django-q task. Returns a short status string for the task log."""
    counts = process_due_jobs()
    return (
        f"sweep complete: {counts['claimed']} claimed, {counts[DELIVERED]} delivered, "
        f"{counts[SKIPPED]} skipped, {counts[FAILED]} failed, {counts['errors']} errors"
    )


def process_due_jobs(now=None, batch_size: int | None = None) -> dict:
    """Claim up to batch_size due jobs and process them sequentially in run_at order."""
    now = now or utcnow()
    batch_size = batch_size or settings.FOLLOWUP_BATCH_SIZE

    job_ids = _claim_due_jobs(now, batch_size)
    counts = {"claimed": len(job_ids), DELIVERED: 0, SKIPPED: 0, FAILED: 0, "retrying": 0, "errors": 0}

    for job_id in job_ids:
        try:
            outcome = _process_claimed(job_id, now)
        except Exception:
            logger.exception(f"Follow-up job {job_id} crashed; claim left to expire")
            counts["errors"] += 1
            continue
        if outcome in counts:
            counts[outcome] += 1

    if job_ids:
        logger.info(f"Follow-up sweep at {now.isoformat()}: {counts}")
    return counts


def process_job(job_id: str, now=None) -> str:
    """
    Wake-up task for a single job. Accepts job_id as a string
    (django-q serializes task args). Returns a status string.
    """
    now = now or utcnow()
    # A conditional UPDATE is its own compare-and-set claim
    claimed = _claimable(now).filter(pk=job_id).update(claimed_at=now)
    if not claimed:
        return "not_due_or_claimed"
    return _process_claimed(job_id, now)


# ─── Claim ────────────────────────────────────────────────────────────────────

def _claimable(now):
    lease_cutoff = now - timedelta(minutes=settings.FOLLOWUP_CLAIM_LEASE_MINUTES)
    return FollowUpJob.objects.filter(sent=False, run_at__lte=now).filter(
        Q(claimed_at__isnull=True) | Q(claimed_at__lte=lease_cutoff)
    )


def _claim_due_jobs(now, batch_size: int) -> list:
    with transaction.atomic():
        job_ids = list(
            _claimable(now)
            .select_for_update(skip_locked=True)
            .order_by("run_at", "id")
            .values_list("id", flat=True)[:batch_size]
        )
        if job_ids:
            FollowUpJob.objects.filter(id__in=job_ids).update(claimed_at=now)
    return job_ids


# ─── Dispatch ─────────────────────────────────────────────────────────────────

def _process_claimed(job_id, now) -> str:
    job = FollowUpJob.objects.select_related("user", "lead").get(pk=job_id)
    if job.sent:
        return "already_sent"

    outcome, error = _dispatch(job)
    _finalize(job, outcome, error, now)
    return outcome if outcome != FAILED or job.sent else "retrying"


def _dispatch(job) -> tuple[str, str | None]:
    """Deliver one job. Never raises for collaborator failures."""
    user, lead = job.user, job.lead
    if user is None or lead is None:
        return SKIPPED, "missing user or lead"

    if job.channel == "messaging":
        if not lead.phone:
            return SKIPPED, "lead has no phone"
        if not user.has_messaging_credentials:
            return SKIPPED, "messaging not connected"
        result = get_messaging_provider().send_text(user, lead.phone, job.message)
        if result.ok:
            return DELIVERED, None
        return FAILED, result.error or "send failed"

    if job.channel == "email":
        if not settings.EMAIL_FOLLOWUPS_ENABLED:
            return SKIPPED, "email not configured"
        if not lead.email:
            return SKIPPED, "lead has no email"
        try:
            send_mail(
                subject=f"Following up, {lead.name or 'there'}",
                message=job.message,
                from_email=None,
                recipient_list=[lead.email],
            )
        except Exception as e:
            logger.error(f"Email follow-up {job.id} failed: {e}")
            return FAILED, str(e)
        return DELIVERED, None

    return SKIPPED, f"unknown channel {job.channel}"


# ─── Finalize ─────────────────────────────────────────────────────────────────

def _finalize(job, outcome: str, error: str | None, now) -> None:
    with transaction.atomic():
        if outcome == DELIVERED:
            lead = lock_lead(job.lead_id)
            append_message(lead, "bot", job.message, sent_at=utcnow())
            record_event(
                "followup_sent",
                lead=lead,
                user=job.user_id,
                source="automation",
                payload={
                    "job_id": str(job.id),
                    "channel": job.channel,
                    "direction": "outbound",
                    "message_snippet": snippet(job.message),
                },
            )

        job.last_error = error
        update_fields = ["last_error", "claimed_at"]

        if outcome != SKIPPED:
            job.attempts += 1
            update_fields.append("attempts")

        if outcome == FAILED and job.attempts < settings.FOLLOWUP_MAX_ATTEMPTS:
            job.run_at = now + timedelta(minutes=settings.FOLLOWUP_RETRY_DELAY_MINUTES)
            update_fields.append("run_at")
            logger.warning(f"Follow-up {job.id} failed ({error}); retry {job.attempts} at {job.run_at}")
        else:
            job.sent = True
            job.sent_at = now
            job.outcome = outcome
            update_fields += ["sent", "sent_at", "outcome"]
            if outcome != DELIVERED:
                logger.info(f"Follow-up {job.id} finished as {outcome}: {error}")

        job.claimed_at = None
        job.save(update_fields=update_fields)
