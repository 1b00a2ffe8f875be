import uuid
from django.db import models


class AutomationRuleSet(models.Model):
    """
    A user's follow-up policy: an enabled flag plus an ordered list of rules,
    each {"delay_hours": float, "message": str, "channel": "messaging"|"email"}.

    The whole list is replaced on every update. The scheduler copies rules
    into FollowUpJob rows, so edits here never touch jobs already created.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField("User", on_delete=models.CASCADE, related_name="automation")

    enabled = models.BooleanField(default=True)
    follow_ups = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "automation_rule_sets"

    def __str__(self):
        state = "on" if self.enabled else "off"
        return f"automation({state}, {len(self.follow_ups)} rules) for user={self.user_id}"
