import uuid
from django.db import models

ROLE_CHOICES = [
    ("owner", "Owner"),
    ("admin", "Admin"),
    ("agent", "Agent"),
]


class User(models.Model):
    """
    An account holder: the owner of an agency or one of its agents.

    Login/session handling lives outside this service; here a user is the
    acting party of manual actions, the owner of automation rules, the holder
    of messaging credentials, and a candidate for lead assignment.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200, blank=True, default="")
    email = models.EmailField(unique=True)

    agency = models.ForeignKey(
        "Agency", on_delete=models.SET_NULL, null=True, blank=True, related_name="members"
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="owner")
    is_active = models.BooleanField(default=True)

    # Round-robin cursor for auto-assignment; earliest (or never) wins
    last_assigned_at = models.DateTimeField(null=True, blank=True)

    # Messaging channel credentials. phone_number_id also routes inbound webhooks.
    whatsapp_access_token = models.TextField(blank=True, default="")
    phone_number_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    whatsapp_connected = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "users"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.name or self.email} ({self.role})"

    @property
    def has_messaging_credentials(self) -> bool:
        return bool(self.whatsapp_access_token and self.phone_number_id)
