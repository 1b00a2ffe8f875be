"""
Site visits — booking and status updates for a lead's property visits.

A visit is a calendar entry, not a pipeline action: booking never moves the
lead's stage. Only pending and confirmed visits can still change status.
"""
import logging

from crm.models.visit import Visit

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("pending", "confirmed")

_STATUS_EDGES = {
    "pending": {"confirmed", "completed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
}


class InvalidVisitStatus(ValueError):
    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Visit cannot move from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status


def book_visit(lead, date, time_slot: str, family_coming: bool = False,
               pickup_required: bool = False, notes: str = "", source: str = "whatsapp") -> Visit:
    visit = Visit.objects.create(
        lead=lead,
        agency_id=lead.agency_id,
        assigned_agent_id=lead.assigned_to_id,
        date=date,
        time_slot=time_slot,
        family_coming=family_coming,
        pickup_required=pickup_required,
        notes=notes or "",
        source=source or "whatsapp",
    )
    logger.info(f"Visit {visit.id} booked for lead {lead.id} on {date} ({time_slot})")
    return visit


def set_visit_status(visit: Visit, status: str) -> Visit:
    """Raises InvalidVisitStatus once a visit is completed or cancelled."""
    if visit.status == status:
        return visit
    if status not in _STATUS_EDGES.get(visit.status, set()):
        raise InvalidVisitStatus(visit.status, status)

    visit.status = status
    visit.save(update_fields=["status", "updated_at"])
    logger.info(f"Visit {visit.id} marked {status}")
    return visit
