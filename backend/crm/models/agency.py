import uuid
from django.db import models


class Agency(models.Model):
    """
    The tenant that owns users and leads. Created lazily for a user the first
    time an inbound event needs one.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    owner = models.ForeignKey(
        "User", on_delete=models.SET_NULL, null=True, blank=True, related_name="owned_agencies"
    )
    plan = models.CharField(max_length=20, default="free")  # free, pro, agency

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "agencies"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.name} ({self.plan})"
