from django.db import models
from django.utils import timezone

SENDER_CHOICES = [
    ("lead", "Lead"),
    ("bot", "Bot"),
    ("agent", "Agent"),
]


class LeadMessage(models.Model):
    """
    One message in a lead's conversation. Rows are only ever appended;
    arrival order is (sent_at, id).
    """

    lead = models.ForeignKey("Lead", on_delete=models.CASCADE, related_name="messages")
    sender = models.CharField(max_length=10, choices=SENDER_CHOICES)
    text = models.TextField()
    sent_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "lead_messages"
        ordering = ["sent_at", "id"]
        indexes = [
            models.Index(fields=["lead", "sent_at"], name="idx_message_lead_sent"),
        ]

    def __str__(self):
        return f"{self.sender}: {self.text[:40]}"
