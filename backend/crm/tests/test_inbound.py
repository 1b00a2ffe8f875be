import pytest

from crm.models import EventLog, Lead
from crm.providers.messaging_provider import MockMessagingProvider, SendResult
from crm.services import inbound, llm_service
from crm.services.inbound import (
    extract_text_messages, handle_contact_form, handle_webhook_payload, handle_whatsapp_message,
)
from crm.services.llm_service import Verdict


def webhook(phone_number_id="100200300", messages=None, statuses=None):
    value = {"metadata": {"phone_number_id": phone_number_id}}
    if messages is not None:
        value["messages"] = messages
        value["contacts"] = [{"wa_id": m.get("from"), "profile": {"name": "Karan"}} for m in messages]
    if statuses is not None:
        value["statuses"] = statuses
    return {"entry": [{"changes": [{"value": value}]}]}


def text_message(body, sender="919876543210"):
    return {"from": sender, "type": "text", "text": {"body": body}}


def event_types(lead):
    return list(EventLog.objects.filter(lead=lead).order_by("created_at").values_list("event_type", flat=True))


def test_extract_ignores_non_text_and_statuses():
    payload = webhook(messages=[
        text_message("Hi"),
        {"from": "919876543210", "type": "image", "image": {"id": "x"}},
        text_message("   "),
    ])
    payload["entry"].append({"changes": [{"value": {"statuses": [{"status": "read"}]}}]})

    found = extract_text_messages(payload)
    assert [(m.sender, m.text, m.sender_name) for m in found] == [("919876543210", "Hi", "Karan")]


def test_extract_requires_routing_metadata():
    payload = {"entry": [{"changes": [{"value": {"messages": [text_message("Hi")]}}]}]}
    assert extract_text_messages(payload) == []


@pytest.mark.django_db
def test_inbound_message_pipeline(owner, outbox_provider):
    result = handle_whatsapp_message(owner, "+91 98765 43210", "Need 2BHK, budget 80 lakh, want to visit this week")
    lead = result.lead

    assert result.created is True
    assert result.replied is True
    assert lead.stage == "hot"
    assert lead.qualification_level == "hot"
    assert [m.sender for m in lead.messages.all()] == ["lead", "bot"]
    assert outbox_provider.sent[0]["to"] == "919876543210"

    types = event_types(lead)
    assert types[0] == "lead_created"
    assert types.index("lead_created") < types.index("whatsapp_in") < types.index("whatsapp_out_ai")
    assert "stage_changed" in types


@pytest.mark.django_db
def test_hot_lead_stays_hot_after_reply(owner, outbox_provider):
    lead = handle_whatsapp_message(owner, "9876543210", "Budget 80 lakh, visit this week").lead
    # Reply only advances new → contacted; a hot lead is already past that
    assert lead.stage == "hot"


@pytest.mark.django_db
def test_cold_lead_is_contacted_after_reply(owner, outbox_provider):
    lead = handle_whatsapp_message(owner, "9876543210", "what are your office hours").lead
    assert lead.stage == "contacted"
    assert lead.last_message == llm_service.FALLBACK_REPLY


@pytest.mark.django_db
def test_fake_message_gets_no_reply(owner, outbox_provider):
    result = handle_whatsapp_message(owner, "9876543210", "test")
    assert result.lead.stage == "lost"
    assert result.replied is False
    assert outbox_provider.sent == []


@pytest.mark.django_db
def test_classifier_failure_leaves_lead_unchanged(owner, outbox_provider, monkeypatch):
    monkeypatch.setattr(llm_service, "analyze_lead", lambda text: None)
    lead = handle_whatsapp_message(owner, "9876543210", "Hello there").lead
    assert lead.qualification_level == "new"
    assert lead.stage == "contacted"


@pytest.mark.django_db
def test_failed_reply_does_not_advance(owner, monkeypatch):
    monkeypatch.setattr(MockMessagingProvider, "send_text", lambda self, u, to, body: SendResult(ok=False, error="down"))
    result = handle_whatsapp_message(owner, "9876543210", "what are your office hours")
    assert result.replied is False
    assert result.lead.stage == "new"
    assert [m.sender for m in result.lead.messages.all()] == ["lead"]


@pytest.mark.django_db
def test_voice_note_for_hot_leads(owner, outbox_provider, monkeypatch, settings):
    settings.VOICE_NOTES_ENABLED = True
    monkeypatch.setattr(llm_service, "synthesize_voice_note", lambda text: b"mp3-bytes")

    result = handle_whatsapp_message(owner, "9876543210", "Budget 80 lakh, visit this week")

    assert result.voice_note_sent is True
    assert outbox_provider.sent[-1] == {"type": "audio", "to": "919876543210", "bytes": 9}


@pytest.mark.django_db
def test_webhook_routes_by_phone_number_id(owner, outbox_provider):
    handled = handle_webhook_payload(webhook(messages=[text_message("Hi there, 3BHK?")]))
    assert handled == 1
    lead = Lead.objects.get()
    assert lead.user_id == owner.id
    assert lead.name == "Karan"
    assert lead.source == "whatsapp_inbound"


@pytest.mark.django_db
def test_webhook_unknown_routing_id_is_ignored(owner, outbox_provider):
    assert handle_webhook_payload(webhook(phone_number_id="999", messages=[text_message("Hi")])) == 0
    assert Lead.objects.count() == 0


@pytest.mark.django_db
def test_contact_form_pipeline(owner, outbox_provider):
    result = handle_contact_form(owner, name="Meera Iyer", email="meera@example.com",
                                 phone="9123456780", message="Exploring 3BHK, maybe next year")
    lead = result.lead

    assert result.created is True
    assert lead.source == "contact_form"
    assert lead.name == "Meera Iyer"
    assert lead.email == "meera@example.com"
    assert lead.phone == "919123456780"
    assert lead.stage == "contacted"
    assert outbox_provider.sent[0]["body"].startswith("Hi Meera,")
    assert event_types(lead).count("lead_created") == 1


@pytest.mark.django_db
def test_contact_form_undelivered_welcome_keeps_stage(owner, monkeypatch):
    monkeypatch.setattr(MockMessagingProvider, "send_text", lambda self, u, to, body: SendResult(ok=False, error="down"))
    monkeypatch.setattr(inbound.llm_service, "analyze_lead", lambda text: Verdict(qualification_level="warm"))

    result = handle_contact_form(owner, name="Meera", email="m@example.com", phone="9123456780")
    assert result.lead.stage == "qualified"
    assert result.replied is False


@pytest.mark.django_db
def test_webhook_message_failure_does_not_drop_the_rest(owner, outbox_provider, monkeypatch):
    real_analyze = llm_service.analyze_lead

    def analyze(text):
        if text == "boom":
            raise RuntimeError("classifier exploded")
        return real_analyze(text)

    monkeypatch.setattr(llm_service, "analyze_lead", analyze)
    payload = webhook(messages=[
        text_message("boom", sender="919000000001"),
        text_message("Looking for a 2BHK", sender="919000000002"),
    ])

    assert handle_webhook_payload(payload) == 1
    assert Lead.objects.filter(phone="919000000002").exists()
