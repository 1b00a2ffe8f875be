import uuid
from django.db import models

TIME_SLOT_CHOICES = [
    ("morning", "Morning"),
    ("afternoon", "Afternoon"),
    ("evening", "Evening"),
]

VISIT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("confirmed", "Confirmed"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
]


class Visit(models.Model):
    """
    A site visit booked for a lead. The agency and agent are copied from the
    lead at booking time, so later reassignment does not move the visit.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    lead = models.ForeignKey("Lead", on_delete=models.CASCADE, related_name="visits")
    agency = models.ForeignKey(
        "Agency", on_delete=models.SET_NULL, null=True, blank=True, related_name="visits"
    )
    assigned_agent = models.ForeignKey(
        "User", on_delete=models.SET_NULL, null=True, blank=True, related_name="visits"
    )

    date = models.DateField()
    time_slot = models.CharField(max_length=20, choices=TIME_SLOT_CHOICES)
    status = models.CharField(max_length=20, choices=VISIT_STATUS_CHOICES, default="pending")

    family_coming = models.BooleanField(default=False)
    pickup_required = models.BooleanField(default=False)
    notes = models.TextField(blank=True, default="")
    source = models.CharField(max_length=50, default="whatsapp")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "visits"
        ordering = ["-date", "-created_at"]
        indexes = [
            models.Index(fields=["agency", "date"], name="idx_visit_agency_date"),
        ]

    def __str__(self):
        return f"Visit {self.date} {self.time_slot} ({self.status})"
