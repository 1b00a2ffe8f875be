"""
Stage State Machine — the only code that changes a lead's pipeline stage.

Pipeline: new → contacted → qualified → hot → closed, with a side exit to
lost from any stage except closed.

Two forces move a lead:

1. Classification (apply_verdict). Populated verdict fields are merged, then
   one stage rule fires, in priority order:
       fake verdict and not closed     → lost
       hot level, not closed/lost      → hot
       warm level, stage exactly new   → qualified
   closed and lost are sticky here.

2. Manual actions. An outbound reply moves new → contacted; convert sets
   closed; mark_lost sets lost; move_stage is the drag-and-drop override and
   is the only path that can take a lead out of closed or lost.

Every real stage change appends a stage_changed fact; merged classification
fields append a lead_updated fact.
"""
import logging

from django.db import transaction

from crm.services.event_log import record_event
from crm.utils import lock_lead, utcnow

logger = logging.getLogger(__name__)

STAGES = ("new", "contacted", "qualified", "hot", "closed", "lost")
TERMINAL_STAGES = frozenset({"closed", "lost"})

# Edges reachable without the manual override (closed is explicit-only)
_ALLOWED_EDGES = frozenset(
    {("new", "contacted"), ("new", "qualified")}
    | {(s, "hot") for s in ("new", "contacted", "qualified")}
    | {(s, "lost") for s in ("new", "contacted", "qualified", "hot")}
    | {(s, "closed") for s in ("new", "contacted", "qualified", "hot", "lost")}
)

# Verdict field → Lead field (identical names except where noted)
_VERDICT_FIELDS = (
    "qualification_level", "budget", "timeline", "use_case",
    "ai_intent", "ai_urgency", "ai_notes", "ai_tags", "score",
    "will_respond_score", "will_buy_score", "priority_level",
    "engagement_notes", "is_fake", "fake_reason",
)


class InvalidStageTransition(ValueError):
    def __init__(self, from_stage: str, to_stage: str):
        super().__init__(f"cannot move lead from {from_stage} to {to_stage}")
        self.from_stage = from_stage
        self.to_stage = to_stage


def is_allowed_transition(from_stage: str, to_stage: str) -> bool:
    return (from_stage, to_stage) in _ALLOWED_EDGES


def next_stage_for_verdict(stage: str, verdict) -> str:
    """Pure stage rule for one verdict. Returns the current stage when nothing fires."""
    if verdict.is_fake and stage != "closed":
        return "lost"
    if verdict.qualification_level == "hot" and stage not in TERMINAL_STAGES:
        return "hot"
    if verdict.qualification_level == "warm" and stage == "new":
        return "qualified"
    return stage


def apply_verdict(lead, verdict, actor=None, source: str | None = None):
    """
    Merge a classification verdict into the lead and apply the stage rules.
    A None verdict is a no-op. Returns the refreshed lead.
    """
    if verdict is None:
        return lead

    with transaction.atomic():
        lead = lock_lead(lead)

        changed = []
        for name, value in verdict.populated().items():
            if name not in _VERDICT_FIELDS:
                continue
            if getattr(lead, name) != value:
                setattr(lead, name, value)
                changed.append(name)

        from_stage = lead.stage
        to_stage = next_stage_for_verdict(from_stage, verdict)
        if to_stage != from_stage:
            lead.stage = to_stage
            changed.append("stage")

        if changed:
            lead.save(update_fields=changed + ["updated_at"])

        fields_changed = [c for c in changed if c != "stage"]
        if fields_changed:
            record_event(
                "lead_updated",
                lead=lead,
                user=actor,
                source=source,
                payload={
                    "fields": fields_changed,
                    "qualification_level": lead.qualification_level,
                    "score": lead.score,
                },
            )

        if to_stage != from_stage:
            _record_stage_change(lead, from_stage, to_stage, actor, source, reason="classification")

    return lead


def advance_on_outbound(lead, actor=None, source: str | None = None):
    """First outbound message moves new → contacted. Caller holds the lead lock."""
    if lead.stage != "new":
        return lead

    lead.stage = "contacted"
    lead.save(update_fields=["stage", "updated_at"])
    _record_stage_change(lead, "new", "contacted", actor, source, reason="outbound_message")
    return lead


def convert_lead(lead, actor=None, now=None):
    """Explicit conversion: stage closed, conversion flag and timestamp set."""
    now = now or utcnow()

    with transaction.atomic():
        lead = lock_lead(lead)
        from_stage = lead.stage
        if from_stage == "closed" and lead.is_converted:
            return lead

        lead.stage = "closed"
        lead.is_converted = True
        lead.converted_at = lead.converted_at or now
        lead.save(update_fields=["stage", "is_converted", "converted_at", "updated_at"])

        if from_stage != "closed":
            _record_stage_change(lead, from_stage, "closed", actor, "manual", reason="convert")
        record_event("lead_converted", lead=lead, user=actor, source="manual", payload={"from_stage": from_stage})

    logger.info(f"Lead {lead.id} converted by {getattr(actor, 'id', None)}")
    return lead


def mark_lost(lead, actor=None, reason: str | None = None):
    """Explicit loss. Raises InvalidStageTransition for a closed lead."""
    with transaction.atomic():
        lead = lock_lead(lead)
        from_stage = lead.stage
        if from_stage == "lost":
            return lead
        if not is_allowed_transition(from_stage, "lost"):
            raise InvalidStageTransition(from_stage, "lost")

        lead.stage = "lost"
        lead.save(update_fields=["stage", "updated_at"])

        _record_stage_change(lead, from_stage, "lost", actor, "manual", reason="mark_lost")
        record_event(
            "lead_lost",
            lead=lead,
            user=actor,
            source="manual",
            payload={"from_stage": from_stage, "notes": reason},
        )

    return lead


def move_stage(lead, to_stage: str, actor=None, now=None):
    """
    Pipeline drag-and-drop. The manual override: any stage may be targeted,
    including leaving closed or lost. Moving to hot forces qualification hot;
    moving to closed sets the conversion flag and moving out of closed clears it.
    """
    if to_stage not in STAGES:
        raise InvalidStageTransition("?", to_stage)
    now = now or utcnow()

    with transaction.atomic():
        lead = lock_lead(lead)
        from_stage = lead.stage

        updates = {"stage": to_stage}
        if to_stage == "hot":
            updates["qualification_level"] = "hot"
        if to_stage == "closed":
            updates["is_converted"] = True
            updates["converted_at"] = lead.converted_at or now
        elif lead.is_converted:
            updates["is_converted"] = False
            updates["converted_at"] = None

        changed = [name for name, value in updates.items() if getattr(lead, name) != value]
        if not changed:
            return lead

        for name in changed:
            setattr(lead, name, updates[name])
        lead.save(update_fields=changed + ["updated_at"])

        if from_stage != to_stage:
            _record_stage_change(lead, from_stage, to_stage, actor, "pipeline", reason="manual_move")
            if to_stage == "closed":
                record_event("lead_converted", lead=lead, user=actor, source="pipeline", payload={"from_stage": from_stage})

    return lead


def _record_stage_change(lead, from_stage, to_stage, actor, source, reason):
    logger.info(f"Lead {lead.id}: {from_stage} → {to_stage} ({reason})")
    record_event(
        "stage_changed",
        lead=lead,
        user=actor,
        source=source,
        payload={"from_stage": from_stage, "to_stage": to_stage, "reason": reason},
    )
