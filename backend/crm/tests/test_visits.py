from datetime import date

import pytest

from crm.models import Visit
from crm.services import llm_service
from crm.services.visits import InvalidVisitStatus, book_visit, set_visit_status


@pytest.fixture
def client(api_client, owner):
    api_client.credentials(HTTP_X_USER_ID=str(owner.id))
    return api_client


@pytest.mark.django_db
def test_booking_copies_agency_and_agent(make_lead, agents):
    lead = make_lead(assigned_to=agents[0], stage="hot")
    visit = book_visit(lead, date(2026, 11, 7), "morning", family_coming=True)

    assert visit.agency_id == lead.agency_id
    assert visit.assigned_agent_id == agents[0].id
    assert visit.status == "pending"
    assert visit.family_coming is True
    lead.refresh_from_db()
    assert lead.stage == "hot"


@pytest.mark.django_db
def test_visit_status_moves_forward_only(make_lead):
    visit = book_visit(make_lead(), date(2026, 11, 7), "evening")

    visit = set_visit_status(visit, "confirmed")
    visit = set_visit_status(visit, "completed")
    assert visit.status == "completed"

    with pytest.raises(InvalidVisitStatus):
        set_visit_status(visit, "pending")


@pytest.mark.django_db
def test_book_and_list_visits_api(client, make_lead):
    lead = make_lead()
    resp = client.post(f"/api/leads/{lead.id}/visits", {
        "date": "2026-11-07", "time_slot": "afternoon", "pickup_required": True,
    }, format="json")

    assert resp.status_code == 201
    assert resp.data["status"] == "pending"
    assert resp.data["pickup_required"] is True
    assert resp.data["source"] == "whatsapp"

    assert len(client.get(f"/api/leads/{lead.id}/visits").data) == 1
    assert len(client.get("/api/visits").data) == 1
    assert client.get("/api/visits", {"status": "cancelled"}).data == []


@pytest.mark.django_db
def test_booking_requires_date_and_slot(client, make_lead):
    resp = client.post(f"/api/leads/{make_lead().id}/visits", {"date": "2026-11-07"}, format="json")
    assert resp.status_code == 400
    assert "time_slot" in resp.data
    assert not Visit.objects.exists()


@pytest.mark.django_db
def test_update_visit_status_api(client, make_lead):
    visit = book_visit(make_lead(), date(2026, 11, 7), "morning")

    resp = client.patch(f"/api/visits/{visit.id}", {"status": "cancelled"}, format="json")
    assert resp.status_code == 200
    assert resp.data["status"] == "cancelled"

    resp = client.patch(f"/api/visits/{visit.id}", {"status": "confirmed"}, format="json")
    assert resp.status_code == 409


@pytest.mark.django_db
def test_visits_of_other_agencies_are_hidden(api_client, make_lead):
    from crm.models import Agency, User

    visit = book_visit(make_lead(), date(2026, 11, 7), "morning")
    other = User.objects.create(
        name="Other", email="other@example.com", role="owner",
        agency=Agency.objects.create(name="Elsewhere"),
    )
    api_client.credentials(HTTP_X_USER_ID=str(other.id))

    assert api_client.get("/api/visits").data == []
    assert api_client.patch(f"/api/visits/{visit.id}", {"status": "confirmed"}, format="json").status_code == 404


@pytest.mark.django_db
def test_coach_endpoint(client, make_lead):
    lead = make_lead(qualification_level="hot", stage="hot")
    resp = client.get(f"/api/leads/{lead.id}/coach")

    assert resp.status_code == 200
    assert resp.data["lead_id"] == str(lead.id)
    assert resp.data["advice"]["hot_alert"]


@pytest.mark.django_db
def test_coach_unavailable(client, make_lead, monkeypatch):
    monkeypatch.setattr(llm_service, "coach_advice", lambda lead: None)
    resp = client.get(f"/api/leads/{make_lead().id}/coach")
    assert resp.status_code == 503
