import uuid
from django.db import models

STAGE_CHOICES = [
    ("new", "New"),
    ("contacted", "Contacted"),
    ("qualified", "Qualified"),
    ("hot", "Hot"),
    ("closed", "Closed"),
    ("lost", "Lost"),
]

QUALIFICATION_CHOICES = [
    ("new", "New"),
    ("cold", "Cold"),
    ("warm", "Warm"),
    ("hot", "Hot"),
]

PRIORITY_CHOICES = [
    ("low", "Low"),
    ("medium", "Medium"),
    ("high", "High"),
]


class Lead(models.Model):
    """
    A Lead is one conversation thread with a prospect.
    It is keyed by the canonical phone number (see services.phone) within an
    agency, and is the central entity — messages, follow-up jobs and audit
    facts all link to a lead.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    agency = models.ForeignKey(
        "Agency", on_delete=models.SET_NULL, null=True, blank=True, related_name="leads"
    )
    user = models.ForeignKey(
        "User", on_delete=models.SET_NULL, null=True, blank=True, related_name="owned_leads"
    )

    # Contact info. phone holds the canonical key, never the raw input.
    name = models.CharField(max_length=200, blank=True, default="")
    email = models.EmailField(null=True, blank=True)
    phone = models.CharField(max_length=32, null=True, blank=True, db_index=True)
    message = models.TextField(blank=True, default="")
    source = models.CharField(max_length=50, default="contact_form")  # contact_form, whatsapp_inbound

    # Pipeline state
    stage = models.CharField(max_length=20, choices=STAGE_CHOICES, default="new")
    qualification_level = models.CharField(max_length=10, choices=QUALIFICATION_CHOICES, default="new")

    # Classification fields (merged from verdicts; absent verdict fields never overwrite)
    budget = models.CharField(max_length=200, null=True, blank=True)
    timeline = models.CharField(max_length=200, null=True, blank=True)
    use_case = models.TextField(null=True, blank=True)
    score = models.IntegerField(null=True, blank=True)
    ai_intent = models.CharField(max_length=100, null=True, blank=True)
    ai_urgency = models.CharField(max_length=20, null=True, blank=True)
    ai_notes = models.TextField(null=True, blank=True)
    ai_tags = models.JSONField(default=list, blank=True)
    is_fake = models.BooleanField(default=False)
    fake_reason = models.TextField(null=True, blank=True)
    will_respond_score = models.IntegerField(null=True, blank=True)
    will_buy_score = models.IntegerField(null=True, blank=True)
    priority_level = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default="medium")
    engagement_notes = models.TextField(null=True, blank=True)

    last_message = models.TextField(blank=True, default="")

    assigned_to = models.ForeignKey(
        "User", on_delete=models.SET_NULL, null=True, blank=True, related_name="assigned_leads"
    )

    is_converted = models.BooleanField(default=False)
    converted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "leads"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["agency", "phone"], name="idx_lead_agency_phone"),
            models.Index(fields=["agency", "stage"], name="idx_lead_agency_stage"),
            models.Index(fields=["assigned_to", "agency"], name="idx_lead_assignee"),
        ]

    def __str__(self):
        return f"{self.name or self.phone or self.id} ({self.stage})"
