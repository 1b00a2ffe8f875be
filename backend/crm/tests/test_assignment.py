from collections import Counter

import pytest

from crm.models import Agency, EventLog, Lead, User
from crm.services.assignment import assign_lead, auto_assign


@pytest.mark.django_db
@pytest.mark.parametrize("n_leads", [1, 3, 6, 7])
def test_round_robin_is_balanced(owner, agents, make_lead, n_leads):
    k = 1 + len(agents)  # owner is assignable too
    for i in range(n_leads):
        auto_assign(make_lead(phone=f"91900000000{i}"), owner)

    counts = Counter(Lead.objects.values_list("assigned_to", flat=True))
    assert None not in counts
    per_agent = [counts.get(u.id, 0) for u in [owner, *agents]]
    assert all(n_leads // k <= c <= -(-n_leads // k) for c in per_agent)


@pytest.mark.django_db
def test_least_recently_assigned_wins(owner, agents, make_lead):
    first = auto_assign(make_lead(phone="911"), owner)
    second = auto_assign(make_lead(phone="912"), owner)
    third = auto_assign(make_lead(phone="913"), owner)
    fourth = auto_assign(make_lead(phone="914"), owner)

    assert len({first.id, second.id, third.id}) == 3
    assert fourth.id == first.id


@pytest.mark.django_db
def test_inactive_and_admin_users_are_skipped(owner, agency, make_lead):
    owner.is_active = False
    owner.save()
    User.objects.create(email="admin@example.com", role="admin", agency=agency)
    agent = User.objects.create(email="agent@example.com", role="agent", agency=agency)

    assert auto_assign(make_lead(), owner) == agent


@pytest.mark.django_db
def test_zero_agents_leaves_lead_unassigned(db):
    agency = Agency.objects.create(name="Empty")
    admin = User.objects.create(email="admin@example.com", role="admin", agency=agency)
    lead = Lead.objects.create(agency=agency, user=admin, phone="919876543210")

    assert auto_assign(lead, admin) is None
    lead.refresh_from_db()
    assert lead.assigned_to is None
    assert not EventLog.objects.filter(event_type="lead_assigned").exists()


@pytest.mark.django_db
def test_no_agency_is_a_no_op(db):
    user = User.objects.create(email="solo@example.com")
    lead = Lead.objects.create(user=user, phone="919876543210")
    assert auto_assign(lead, user) is None


@pytest.mark.django_db
def test_assignment_records_fact_and_cursor(owner, make_lead):
    lead = make_lead()
    auto_assign(lead, owner)

    owner.refresh_from_db()
    assert owner.last_assigned_at is not None
    fact = EventLog.objects.get(event_type="lead_assigned")
    assert fact.payload["assigned_to"] == str(owner.id)


@pytest.mark.django_db
def test_assign_self(owner, agents, make_lead):
    lead = make_lead()
    auto_assign(lead, owner)

    lead = assign_lead(lead, agents[1], actor=agents[1])
    assert lead.assigned_to_id == agents[1].id
    fact = EventLog.objects.filter(event_type="lead_assigned").order_by("-created_at").first()
    assert fact.payload["mode"] == "manual"
