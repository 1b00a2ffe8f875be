"""
Event Log Service — best-effort writer for the append-only audit trail.

record_event() never raises: a fact that fails to persist is logged and
dropped so that lead creation, stage changes and job dispatch carry on.
The insert runs in its own savepoint so a failure does not poison an
enclosing transaction.
"""
import logging

from django.db import DatabaseError, transaction

from crm.models.event_log import EventLog, EVENT_TYPES

logger = logging.getLogger(__name__)


def record_event(
    event_type: str,
    *,
    agency=None,
    user=None,
    lead=None,
    payload: dict | None = None,
    ip: str | None = None,
    source: str | None = None,
) -> EventLog | None:
    """
    Append one fact. agency/user/lead accept model instances or ids.
    When agency is omitted it is taken from the lead.
    Returns the stored fact, or None if it could not be recorded.
    """
    if event_type not in EVENT_TYPES:
        logger.error("record_event: unknown event type %r dropped", event_type)
        return None

    agency_id = _pk(agency)
    if agency_id is None and lead is not None and not _is_id(lead):
        agency_id = lead.agency_id

    try:
        with transaction.atomic():
            return EventLog.objects.create(
                agency_id=agency_id,
                user_id=_pk(user),
                lead_id=_pk(lead),
                event_type=event_type,
                payload=payload or {},
                ip=ip,
                source=source,
            )
    except (DatabaseError, ValueError, TypeError):
        logger.exception("record_event: failed to store %s for lead %s", event_type, _pk(lead))
        return None


def _is_id(value) -> bool:
    return not hasattr(value, "pk")


def _pk(value):
    if value is None:
        return None
    return value if _is_id(value) else value.pk
