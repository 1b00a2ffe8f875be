"""
Conversation history helpers.

append_message() expects the caller to hold the lead's row lock (see utils.lock_lead).
"""
import logging

from django.db import transaction

from crm.models.lead_message import LeadMessage
from crm.providers.messaging_provider import SendResult, get_messaging_provider
from crm.services.event_log import record_event
from crm.services.stage_machine import advance_on_outbound
from crm.utils import lock_lead, snippet, utcnow

logger = logging.getLogger(__name__)


def append_message(lead, sender: str, text: str, sent_at=None) -> LeadMessage:
    """Append one message and refresh the lead's last-message summary."""
    sent_at = sent_at or utcnow()
    message = LeadMessage.objects.create(lead=lead, sender=sender, text=text, sent_at=sent_at)

    lead.last_message = text
    lead.save(update_fields=["last_message", "updated_at"])
    return message


def send_agent_reply(agent, lead, text: str):
    """
    Send a manual reply through the owner's messaging channel.
    Returns (lead, SendResult); the history is only touched on delivery.
    """
    if not lead.phone:
        return lead, SendResult(ok=False, error="lead has no phone")

    # Agents send through the agency owner's connected number
    sender = lead.user or agent
    result = get_messaging_provider().send_text(sender, lead.phone, text)
    if not result.ok:
        logger.warning(f"Agent reply to lead {lead.id} failed: {result.error}")
        return lead, result

    with transaction.atomic():
        lead = lock_lead(lead)
        append_message(lead, "agent", text)
        record_event(
            "whatsapp_out_agent",
            lead=lead,
            user=agent,
            source="manual",
            payload={"direction": "outbound", "channel": "whatsapp", "message_snippet": snippet(text)},
        )
        lead = advance_on_outbound(lead, actor=agent, source="manual")

    return lead, result
