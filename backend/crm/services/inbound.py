"""
Inbound Pipelines — what happens when a prospect reaches out.

Messaging (webhook):
  resolve lead → whatsapp_in fact → classify + apply verdict
  → AI reply (send, bot message, whatsapp_out_ai, new → contacted)
  → optional voice note for hot/urgent leads

Contact form:
  resolve lead → classify + apply verdict
  → welcome message; on confirmed delivery, bot message + new → contacted

Collaborator failures never abort a pipeline: a missing verdict leaves the
lead unchanged and a failed send is logged and skipped.
"""
import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.db import transaction

from crm.models.user import User
from crm.providers.messaging_provider import get_messaging_provider
from crm.services import llm_service
from crm.services.conversation import append_message
from crm.services.event_log import record_event
from crm.services.lead_resolver import resolve_lead
from crm.services.stage_machine import advance_on_outbound, apply_verdict
from crm.utils import lock_lead, snippet

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Hi {name}, thanks for reaching out! We have received your enquiry "
    "and will share the best options with you shortly."
)


@dataclass
class InboundText:
    phone_number_id: str
    sender: str
    text: str
    sender_name: str | None = None


@dataclass
class InboundResult:
    lead: object
    created: bool
    replied: bool = False
    voice_note_sent: bool = False
    notes: list[str] = field(default_factory=list)


def extract_text_messages(payload: dict) -> list[InboundText]:
    """
    Pull text messages out of a WhatsApp Cloud webhook payload.
    Status callbacks, non-text messages and entries without routing
    metadata are ignored.
    """
    found = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            phone_number_id = (value.get("metadata") or {}).get("phone_number_id")
            if not phone_number_id:
                continue

            names = {
                c.get("wa_id"): (c.get("profile") or {}).get("name")
                for c in value.get("contacts") or []
            }
            for msg in value.get("messages") or []:
                if msg.get("type") != "text":
                    continue
                text = ((msg.get("text") or {}).get("body") or "").strip()
                sender = msg.get("from")
                if not text or not sender:
                    continue
                found.append(InboundText(
                    phone_number_id=str(phone_number_id),
                    sender=sender,
                    text=text,
                    sender_name=names.get(sender),
                ))
    return found


def route_to_user(phone_number_id: str):
    """The user whose messaging channel owns this routing id, if any."""
    return (
        User.objects
        .filter(phone_number_id=phone_number_id, is_active=True)
        .select_related("agency")
        .first()
    )


def handle_webhook_payload(payload: dict) -> int:
    """Process every routable text message in a webhook payload. Returns how many were handled."""
    handled = 0
    for inbound in extract_text_messages(payload):
        user = route_to_user(inbound.phone_number_id)
        if user is None:
            logger.warning(f"Webhook for unknown phone_number_id {inbound.phone_number_id} ignored")
            continue
        try:
            handle_whatsapp_message(user, inbound.sender, inbound.text, name=inbound.sender_name)
        except Exception:
            logger.exception(f"Failed to handle inbound message from {inbound.sender}")
            continue
        handled += 1
    return handled


def handle_whatsapp_message(user, sender: str, text: str, name: str | None = None) -> InboundResult:
    resolution = resolve_lead(user, sender, text, origin="whatsapp_inbound", name=name)
    lead = resolution.lead

    record_event(
        "whatsapp_in",
        lead=lead,
        user=user,
        source="whatsapp",
        payload={"direction": "inbound", "channel": "whatsapp", "message_snippet": snippet(text)},
    )

    verdict = llm_service.analyze_lead(text)
    lead = apply_verdict(lead, verdict, actor=user, source="whatsapp")
    result = InboundResult(lead=lead, created=resolution.created)

    if lead.stage == "lost" and lead.is_fake:
        result.notes.append("fake lead; no reply sent")
        return result

    provider = get_messaging_provider()
    reply = llm_service.generate_reply(text)
    sent = provider.send_text(user, lead.phone, reply)
    if not sent.ok:
        logger.warning(f"AI reply to lead {lead.id} not delivered: {sent.error}")
        result.notes.append("reply not delivered")
        return result

    with transaction.atomic():
        lead = lock_lead(lead)
        append_message(lead, "bot", reply)
        record_event(
            "whatsapp_out_ai",
            lead=lead,
            user=user,
            source="whatsapp",
            payload={"direction": "outbound", "channel": "whatsapp", "message_snippet": snippet(reply)},
        )
        lead = advance_on_outbound(lead, actor=user, source="whatsapp")
    result.lead = lead
    result.replied = True

    if _wants_voice_note(lead, verdict):
        result.voice_note_sent = _send_voice_note(user, lead, reply)

    return result


def handle_contact_form(user, name: str, email: str, phone: str, message: str = "") -> InboundResult:
    text = message or f"Contact form submission from {name}"
    resolution = resolve_lead(user, phone, text, origin="contact_form", name=name, email=email)
    lead = resolution.lead

    verdict = llm_service.analyze_lead(text)
    lead = apply_verdict(lead, verdict, actor=user, source="contact_form")
    result = InboundResult(lead=lead, created=resolution.created)

    if not lead.phone or (lead.stage == "lost" and lead.is_fake):
        return result

    welcome = WELCOME_MESSAGE.format(name=(name or "there").split()[0])
    sent = get_messaging_provider().send_text(user, lead.phone, welcome)
    if not sent.ok:
        logger.info(f"Welcome message to lead {lead.id} not delivered: {sent.error}")
        result.notes.append("welcome not delivered")
        return result

    with transaction.atomic():
        lead = lock_lead(lead)
        append_message(lead, "bot", welcome)
        record_event(
            "whatsapp_out_ai",
            lead=lead,
            user=user,
            source="contact_form",
            payload={"direction": "outbound", "channel": "whatsapp", "message_snippet": snippet(welcome)},
        )
        lead = advance_on_outbound(lead, actor=user, source="contact_form")
    result.lead = lead
    result.replied = True
    return result


def _wants_voice_note(lead, verdict) -> bool:
    if not settings.VOICE_NOTES_ENABLED:
        return False
    urgent = verdict is not None and verdict.ai_urgency == "high"
    return lead.qualification_level == "hot" or urgent


def _send_voice_note(user, lead, text: str) -> bool:
    audio = llm_service.synthesize_voice_note(text)
    if not audio:
        return False
    sent = get_messaging_provider().send_audio(user, lead.phone, audio)
    if not sent.ok:
        logger.warning(f"Voice note to lead {lead.id} failed: {sent.error}")
    return sent.ok
