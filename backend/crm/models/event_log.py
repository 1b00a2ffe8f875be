import uuid
from django.db import models

EVENT_TYPE_CHOICES = [
    ("lead_created", "Lead created"),
    ("lead_updated", "Lead updated"),
    ("stage_changed", "Stage changed"),
    ("whatsapp_in", "Inbound message"),
    ("whatsapp_out_ai", "Outbound AI message"),
    ("whatsapp_out_agent", "Outbound agent message"),
    ("followup_scheduled", "Follow-up scheduled"),
    ("followup_sent", "Follow-up sent"),
    ("lead_assigned", "Lead assigned"),
    ("lead_converted", "Lead converted"),
    ("lead_lost", "Lead lost"),
]

EVENT_TYPES = frozenset(code for code, _ in EVENT_TYPE_CHOICES)


class ImmutableFactError(Exception):
    """Raised when code tries to modify an already-recorded fact."""


class EventLog(models.Model):
    """
    Append-only audit log. Every state change is recorded as an immutable fact.
    The orchestration engine only writes here; reporting is the only reader.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    agency = models.ForeignKey(
        "Agency", on_delete=models.SET_NULL, null=True, blank=True, related_name="events"
    )
    user = models.ForeignKey(
        "User", on_delete=models.SET_NULL, null=True, blank=True, related_name="events"
    )
    lead = models.ForeignKey(
        "Lead", on_delete=models.SET_NULL, null=True, blank=True, related_name="events"
    )

    event_type = models.CharField(max_length=30, choices=EVENT_TYPE_CHOICES, db_index=True)

    # Small structured payload: from_stage, to_stage, channel, direction, message_snippet, notes
    payload = models.JSONField(default=dict, blank=True)

    ip = models.GenericIPAddressField(null=True, blank=True)
    source = models.CharField(max_length=50, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "event_log"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["agency", "-created_at"], name="idx_event_agency_date"),
            models.Index(fields=["event_type", "agency"], name="idx_event_type_agency"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableFactError(f"EventLog {self.id} is immutable")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.event_type} for lead={self.lead_id} at {self.created_at}"
