"""
Auto-Assigner — least-recently-assigned round-robin over an agency's agents.

last_assigned_at is only a rotation cursor: the agent who was assigned
longest ago (or never) gets the next lead. Ties fall back to account age.
"""
import logging

from django.db import transaction
from django.db.models import F

from crm.models.user import User
from crm.services.event_log import record_event
from crm.utils import lock_lead, utcnow

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = ("owner", "agent")


def eligible_agents(agency_id):
    return (
        User.objects
        .filter(agency_id=agency_id, is_active=True, role__in=ASSIGNABLE_ROLES)
        .order_by(F("last_assigned_at").asc(nulls_first=True), "created_at", "id")
    )


def auto_assign(lead, acting_user, now=None):
    """
    Assign a new lead to the next agent in rotation.
    No-op when the acting user has no agency or the agency has no eligible agent.
    Returns the chosen agent or None.
    """
    if acting_user is None or acting_user.agency_id is None:
        return None
    now = now or utcnow()

    with transaction.atomic():
        # Lock the candidate rows so two concurrent assignments rotate correctly
        agent = eligible_agents(acting_user.agency_id).select_for_update().first()
        if agent is None:
            logger.info(f"No eligible agents in agency {acting_user.agency_id}; lead {lead.id} left unassigned")
            return None

        lead = lock_lead(lead)
        if lead.assigned_to_id is not None:
            return None

        lead.assigned_to = agent
        lead.save(update_fields=["assigned_to", "updated_at"])
        User.objects.filter(pk=agent.pk).update(last_assigned_at=now)

        record_event(
            "lead_assigned",
            lead=lead,
            user=acting_user,
            source="auto_assign",
            payload={"assigned_to": str(agent.id), "mode": "round_robin"},
        )

    logger.info(f"Lead {lead.id} auto-assigned to {agent.id}")
    return agent


def assign_lead(lead, agent, actor=None, now=None):
    """Manual assignment (e.g. an agent taking a lead). Also advances the rotation cursor."""
    now = now or utcnow()

    with transaction.atomic():
        lead = lock_lead(lead)
        previous = lead.assigned_to_id
        if previous == agent.pk:
            return lead

        lead.assigned_to = agent
        lead.save(update_fields=["assigned_to", "updated_at"])
        User.objects.filter(pk=agent.pk).update(last_assigned_at=now)

        record_event(
            "lead_assigned",
            lead=lead,
            user=actor or agent,
            source="manual",
            payload={
                "assigned_to": str(agent.id),
                "previous": str(previous) if previous else None,
                "mode": "manual",
            },
        )

    return lead
