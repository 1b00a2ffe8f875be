import uuid
from django.db import models

CHANNEL_CHOICES = [
    ("messaging", "Messaging"),
    ("email", "Email"),
]

OUTCOME_CHOICES = [
    ("delivered", "Delivered"),
    ("skipped", "Skipped"),
    ("failed", "Failed"),
]


class FollowUpJob(models.Model):
    """
    One scheduled follow-up: a snapshot of one automation rule applied to one lead.

    Once sent=True the job is terminal and must never be dispatched again;
    `outcome` records whether it was delivered, skipped or failed.
    `claimed_at` is the sweep's lease so two workers never dispatch the same job.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        "User", on_delete=models.SET_NULL, null=True, blank=True, related_name="followup_jobs"
    )
    lead = models.ForeignKey(
        "Lead", on_delete=models.SET_NULL, null=True, blank=True, related_name="followup_jobs"
    )

    channel = models.CharField(max_length=20, choices=CHANNEL_CHOICES, default="messaging")
    message = models.TextField()

    # When
    run_at = models.DateTimeField(db_index=True)

    # Execution tracking
    sent = models.BooleanField(default=False)
    sent_at = models.DateTimeField(null=True, blank=True)
    outcome = models.CharField(max_length=20, choices=OUTCOME_CHOICES, null=True, blank=True)
    attempts = models.IntegerField(default=0)
    last_error = models.TextField(null=True, blank=True)
    claimed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "followup_jobs"
        ordering = ["run_at"]
        indexes = [
            models.Index(fields=["sent", "run_at"], name="idx_followup_due"),
        ]

    def __str__(self):
        state = self.outcome or ("sent" if self.sent else "pending")
        return f"{self.channel} follow-up at {self.run_at} ({state})"
