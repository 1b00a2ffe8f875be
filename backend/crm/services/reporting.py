"""
Reporting read model — dashboard aggregates over Lead and EventLog.

Read-only: nothing here writes, and the orchestration services never call in.
Time series come from the event log only.
Every report is scoped to one agency; without an agency there is nothing to count.
"""
from datetime import timedelta

from django.db.models import Count, Q
from django.db.models.functions import TruncDate

from crm.models.event_log import EventLog
from crm.models.lead import Lead
from crm.models.user import User
from crm.utils import utcnow

INBOUND_EVENTS = ("whatsapp_in",)
OUTBOUND_EVENTS = ("whatsapp_out_ai", "whatsapp_out_agent", "followup_sent")


def _rate(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 1) if whole else 0.0


def _day_series(start, days: int) -> list:
    return [(start + timedelta(days=i)).date() for i in range(days)]


def analytics_summary(agency_id, now=None) -> dict:
    now = now or utcnow()
    if agency_id is None:
        leads = Lead.objects.none()
        facts = EventLog.objects.none()
    else:
        leads = Lead.objects.filter(agency_id=agency_id)
        facts = EventLog.objects.filter(agency_id=agency_id)

    totals = leads.aggregate(
        total=Count("id"),
        hot=Count("id", filter=Q(qualification_level="hot")),
        warm=Count("id", filter=Q(qualification_level="warm")),
        cold=Count("id", filter=Q(qualification_level="cold")),
        fake=Count("id", filter=Q(is_fake=True)),
        converted=Count("id", filter=Q(is_converted=True)),
    )

    week_start = (now - timedelta(days=6)).replace(hour=0, minute=0, second=0, microsecond=0)
    created = dict(
        leads.filter(created_at__gte=week_start)
        .annotate(day=TruncDate("created_at"))
        .values("day")
        .annotate(n=Count("id"))
        .values_list("day", "n")
    )
    converted = dict(
        leads.filter(converted_at__gte=week_start)
        .annotate(day=TruncDate("converted_at"))
        .values("day")
        .annotate(n=Count("id"))
        .values_list("day", "n")
    )
    trend = [
        {"date": day.isoformat(), "leads": created.get(day, 0), "conversions": converted.get(day, 0)}
        for day in _day_series(week_start, 7)
    ]

    recent_events = facts.filter(created_at__gte=now - timedelta(days=30))
    event_counts = recent_events.aggregate(
        followups_sent=Count("id", filter=Q(event_type="followup_sent")),
        inbound_messages=Count("id", filter=Q(event_type="whatsapp_in")),
        ai_replies=Count("id", filter=Q(event_type="whatsapp_out_ai")),
        stage_changes=Count("id", filter=Q(event_type="stage_changed")),
    )

    recent = [
        {
            "id": str(e.id),
            "event_type": e.event_type,
            "lead_id": str(e.lead_id) if e.lead_id else None,
            "payload": e.payload,
            "created_at": e.created_at.isoformat(),
        }
        for e in facts.order_by("-created_at")[:20]
    ]

    return {
        "total_leads": totals["total"],
        "hot_leads": totals["hot"],
        "warm_leads": totals["warm"],
        "cold_leads": totals["cold"],
        "fake_leads": totals["fake"],
        "converted_leads": totals["converted"],
        "conversion_rate": _rate(totals["converted"], totals["total"]),
        "trend": trend,
        "last_30_days": event_counts,
        "recent_events": recent,
    }


def agent_stats(agency_id) -> list[dict]:
    if agency_id is None:
        return []
    agents = (
        User.objects
        .filter(agency_id=agency_id, is_active=True)
        .annotate(
            assigned=Count("assigned_leads"),
            hot=Count("assigned_leads", filter=Q(assigned_leads__stage="hot")),
            closed=Count("assigned_leads", filter=Q(assigned_leads__stage="closed")),
        )
        .order_by("created_at")
    )
    return [
        {
            "id": str(a.id),
            "name": a.name,
            "email": a.email,
            "role": a.role,
            "assigned": a.assigned,
            "hot": a.hot,
            "closed": a.closed,
            "conversion_rate": _rate(a.closed, a.assigned),
        }
        for a in agents
    ]


def daily_report(agency_id, days: int = 30, now=None) -> list[dict]:
    """Per-day counts of lead_created, inbound and outbound facts."""
    now = now or utcnow()
    start = (now - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)

    facts = EventLog.objects.none() if agency_id is None else EventLog.objects.filter(agency_id=agency_id)
    rows = (
        facts
        .filter(created_at__gte=start)
        .annotate(day=TruncDate("created_at"))
        .values("day")
        .annotate(
            leads=Count("id", filter=Q(event_type="lead_created")),
            inbound=Count("id", filter=Q(event_type__in=INBOUND_EVENTS)),
            outbound=Count("id", filter=Q(event_type__in=OUTBOUND_EVENTS)),
        )
    )
    by_day = {r["day"]: r for r in rows}

    series = []
    for day in _day_series(start, days):
        r = by_day.get(day, {})
        series.append({
            "date": day.isoformat(),
            "leads": r.get("leads", 0),
            "inbound": r.get("inbound", 0),
            "outbound": r.get("outbound", 0),
        })
    return series
