import pytest

from crm.models import Agency, AutomationRuleSet, User
from crm.providers import messaging_provider


@pytest.fixture(autouse=True)
def engine_settings(settings):
    settings.LLM_PROVIDER = "mock"
    settings.MESSAGING_PROVIDER = "mock"
    settings.FOLLOWUP_WAKE_TASKS = False
    settings.FOLLOWUP_MAX_ATTEMPTS = 1
    settings.FOLLOWUP_BATCH_SIZE = 50
    settings.EMAIL_FOLLOWUPS_ENABLED = False
    settings.VOICE_NOTES_ENABLED = False
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    return settings


@pytest.fixture
def outbox_provider(monkeypatch):
    """A fresh mock messaging provider per test; .sent records every send."""
    provider = messaging_provider.MockMessagingProvider()
    monkeypatch.setattr(messaging_provider, "_mock_provider", provider)
    return provider


@pytest.fixture
def agency(db):
    return Agency.objects.create(name="Skyline Realty")


@pytest.fixture
def owner(agency):
    user = User.objects.create(
        name="Rohan",
        email="rohan@example.com",
        role="owner",
        agency=agency,
        whatsapp_access_token="token",
        phone_number_id="100200300",
        whatsapp_connected=True,
    )
    agency.owner = user
    agency.save(update_fields=["owner"])
    return user


@pytest.fixture
def agents(agency):
    return [
        User.objects.create(name=f"Agent {i}", email=f"agent{i}@example.com", role="agent", agency=agency)
        for i in range(2)
    ]


@pytest.fixture
def automation(owner):
    return AutomationRuleSet.objects.create(
        user=owner,
        enabled=True,
        follow_ups=[{"delay_hours": 1, "message": "Hi", "channel": "messaging"}],
    )


@pytest.fixture
def make_lead(owner):
    from crm.models import Lead

    def _make(**kwargs):
        defaults = {"agency": owner.agency, "user": owner, "name": "Lead", "phone": "919876543210"}
        defaults.update(kwargs)
        return Lead.objects.create(**defaults)

    return _make


@pytest.fixture
def api_client():
    from rest_framework.test import APIClient
    return APIClient()
