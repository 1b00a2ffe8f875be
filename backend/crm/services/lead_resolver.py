"""
Lead Resolver — maps an inbound contact to exactly one Lead.

Identity is the canonical phone key within the owner's agency. When several
leads share a key the latest wins (created_at desc, then id desc). Resolution
for one owner is serialized on the owner's row, so two near-simultaneous
messages from the same number cannot both create a lead.

A new lead is committed before follow-ups are scheduled and the lead is
auto-assigned, since both reference its id.
"""
import logging
from dataclasses import dataclass

from django.db import transaction

from crm.models.agency import Agency
from crm.models.lead import Lead
from crm.models.user import User
from crm.services.assignment import auto_assign
from crm.services.conversation import append_message
from crm.services.event_log import record_event
from crm.services.followup_scheduler import schedule_follow_ups
from crm.services.phone import normalize_phone
from crm.utils import lock_lead, snippet, utcnow

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    lead: Lead
    created: bool


def ensure_agency(user) -> Agency:
    """Return the user's agency, creating one (owned by the user) if missing."""
    if user.agency_id:
        return user.agency

    with transaction.atomic():
        user = User.objects.select_for_update().get(pk=user.pk)
        if user.agency_id:
            return user.agency

        agency = Agency.objects.create(name=f"{user.name or user.email}'s Agency", owner=user)
        user.agency = agency
        user.role = "owner"
        user.save(update_fields=["agency", "role"])

    logger.info(f"Created agency {agency.id} for user {user.id}")
    return agency


def find_lead(user, phone_key: str | None):
    """Latest lead for this phone key in the owner's agency (or owned by the user when agency-less)."""
    if not phone_key:
        return None

    qs = Lead.objects.filter(phone=phone_key)
    if user.agency_id:
        qs = qs.filter(agency_id=user.agency_id)
    else:
        qs = qs.filter(user=user)
    return qs.order_by("-created_at", "-id").first()


def resolve_lead(
    user,
    raw_phone,
    text: str,
    origin: str,
    name: str | None = None,
    email: str | None = None,
    now=None,
) -> Resolution:
    """
    Find-or-create the lead for raw_phone and record `text` as a lead message.

    origin becomes Lead.source on creation (contact_form, whatsapp_inbound).
    Leads without a phone (web-only contacts) are always created fresh.
    """
    now = now or utcnow()
    phone_key = normalize_phone(raw_phone)
    agency = ensure_agency(user)
    # ensure_agency may have changed the row
    user.agency = agency

    with transaction.atomic():
        # Serialize identity resolution per owner
        User.objects.select_for_update().filter(pk=user.pk).first()

        existing = find_lead(user, phone_key)
        if existing is not None:
            lead = lock_lead(existing)
            _merge_contact(lead, name, email)
            append_message(lead, "lead", text, sent_at=now)
            created = False
        else:
            lead = Lead.objects.create(
                agency=agency,
                user=user,
                name=name or "",
                email=email or None,
                phone=phone_key,
                message=text,
                source=origin,
                last_message=text,
            )
            append_message(lead, "lead", text, sent_at=now)
            record_event(
                "lead_created",
                lead=lead,
                user=user,
                source=origin,
                payload={"channel": origin, "message_snippet": snippet(text)},
            )
            created = True

    if created:
        logger.info(f"New lead {lead.id} from {origin} ({phone_key or 'no phone'})")
        schedule_follow_ups(user, lead, now=now)
        auto_assign(lead, user)
        lead.refresh_from_db()

    return Resolution(lead=lead, created=created)


def _merge_contact(lead, name, email):
    """Fill contact details the lead does not have yet. Never overwrites."""
    changed = []
    if name and not lead.name:
        lead.name = name
        changed.append("name")
    if email and not lead.email:
        lead.email = email
        changed.append("email")
    if changed:
        lead.save(update_fields=changed + ["updated_at"])
