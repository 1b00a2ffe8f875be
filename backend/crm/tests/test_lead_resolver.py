from datetime import datetime, timezone

import pytest

from crm.models import Agency, EventLog, Lead, User
from crm.services.lead_resolver import ensure_agency, resolve_lead

T = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


@pytest.mark.django_db
def test_two_inbound_events_share_one_lead(owner):
    first = resolve_lead(owner, "+91 98765-43210", "Need a 2BHK", origin="whatsapp_inbound")
    second = resolve_lead(owner, "9876543210", "Budget 80 lakh", origin="whatsapp_inbound")

    assert first.created is True
    assert second.created is False
    assert first.lead.id == second.lead.id
    assert Lead.objects.count() == 1

    lead = Lead.objects.get()
    assert lead.phone == "919876543210"
    assert lead.last_message == "Budget 80 lakh"
    assert [m.text for m in lead.messages.all()] == ["Need a 2BHK", "Budget 80 lakh"]
    assert {m.sender for m in lead.messages.all()} == {"lead"}


@pytest.mark.django_db
def test_new_lead_records_creation_fact(owner):
    lead = resolve_lead(owner, "9876543210", "Hello there", origin="contact_form", name="Asha").lead

    assert lead.source == "contact_form"
    assert lead.agency_id == owner.agency_id
    assert lead.user_id == owner.id
    fact = EventLog.objects.get(event_type="lead_created")
    assert fact.lead_id == lead.id
    assert fact.payload["message_snippet"] == "Hello there"


@pytest.mark.django_db
def test_latest_lead_wins_for_duplicate_keys(owner, make_lead):
    make_lead(name="older")
    newer = make_lead(name="newer")

    resolution = resolve_lead(owner, "9876543210", "Still interested", origin="whatsapp_inbound")
    assert resolution.lead.id == newer.id


@pytest.mark.django_db
def test_lookup_is_scoped_to_agency(owner, make_lead):
    other_agency = Agency.objects.create(name="Elsewhere")
    stranger = User.objects.create(email="x@example.com", agency=other_agency)
    make_lead(agency=other_agency, user=stranger)

    resolution = resolve_lead(owner, "9876543210", "Hi", origin="whatsapp_inbound")
    assert resolution.created is True
    assert resolution.lead.agency_id == owner.agency_id


@pytest.mark.django_db
def test_merge_fills_missing_contact_details_only(owner, make_lead):
    lead = make_lead(name="", email=None)
    resolve_lead(owner, "9876543210", "Hi", origin="contact_form", name="Asha", email="asha@example.com")
    resolve_lead(owner, "9876543210", "Hi again", origin="contact_form", name="Someone Else")

    lead.refresh_from_db()
    assert lead.name == "Asha"
    assert lead.email == "asha@example.com"


@pytest.mark.django_db
def test_web_only_contacts_are_not_merged(owner):
    a = resolve_lead(owner, None, "first", origin="contact_form")
    b = resolve_lead(owner, "", "second", origin="contact_form")
    assert a.lead.id != b.lead.id
    assert a.lead.phone is None


@pytest.mark.django_db
def test_agency_created_lazily(db):
    user = User.objects.create(name="Solo", email="solo@example.com", role="agent")

    resolution = resolve_lead(user, "9876543210", "Hi", origin="whatsapp_inbound")

    user.refresh_from_db()
    assert user.agency is not None
    assert user.agency.name == "Solo's Agency"
    assert user.agency.owner_id == user.id
    assert user.role == "owner"
    assert resolution.lead.agency_id == user.agency_id


@pytest.mark.django_db
def test_ensure_agency_is_stable(owner):
    assert ensure_agency(owner).id == owner.agency_id


@pytest.mark.django_db
def test_creation_schedules_and_assigns(owner, automation):
    lead = resolve_lead(owner, "9876543210", "Hi", origin="whatsapp_inbound", now=T).lead

    assert lead.assigned_to_id == owner.id
    job = lead.followup_jobs.get()
    assert job.run_at == datetime(2026, 3, 1, 11, 0, tzinfo=timezone.utc)


@pytest.mark.django_db
def test_merge_does_not_reschedule(owner, automation):
    resolve_lead(owner, "9876543210", "Hi", origin="whatsapp_inbound")
    resolve_lead(owner, "9876543210", "Hi again", origin="whatsapp_inbound")
    assert Lead.objects.get().followup_jobs.count() == 1
