"""
Seed data script — populates the database with a demo agency: an owner
with a connected messaging number, two agents, a follow-up rule set, and a
handful of inbound conversations run through the real pipelines.

Usage: cd backend && python seed_data.py
"""
import os
import sys
import django
from datetime import timedelta

# Setup Django
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'leadflow.settings')
django.setup()

from crm.models import AutomationRuleSet, Lead, User
from crm.services.inbound import handle_contact_form, handle_whatsapp_message
from crm.services.lead_resolver import ensure_agency
from crm.services.stage_machine import convert_lead, mark_lost
from crm.services.visits import book_visit
from crm.utils import utcnow


OWNER = {
    "name": "Rohan Mehta",
    "email": "rohan@skyline-realty.example",
    "role": "owner",
    "whatsapp_access_token": "demo-token",
    "phone_number_id": "100200300",
    "whatsapp_connected": True,
}

AGENTS = [
    {"name": "Anita Rao", "email": "anita@skyline-realty.example", "role": "agent"},
    {"name": "Vikram Singh", "email": "vikram@skyline-realty.example", "role": "agent"},
]

FOLLOW_UPS = [
    {"delay_hours": 2, "message": "Hi! Just checking if you had a chance to look at the options we shared.", "channel": "messaging"},
    {"delay_hours": 24, "message": "Would you like to schedule a site visit this weekend?", "channel": "messaging"},
    {"delay_hours": 72, "message": "Sharing our latest brochure. Reply here if anything catches your eye.", "channel": "email"},
]

# (channel, phone, name, email, message)
CONVERSATIONS = [
    ("whatsapp", "+91 98765-43210", "Karan", None,
     "Looking for 2BHK in Whitefield, budget 80 lakh, want to visit this week"),
    ("whatsapp", "98765 43210", "Karan", None,
     "Also need home loan assistance"),
    ("form", "9123456780", "Meera Iyer", "meera@example.com",
     "Exploring 3BHK options near the airport, maybe next year"),
    ("whatsapp", "+91 99887 76655", "Sam", None,
     "Interested in renting a 1BHK, what is the price?"),
    ("whatsapp", "+91 90000 11111", None, None, "test"),
    ("form", "+91 91234 00000", "Neha Kapoor", "neha@example.com",
     "Budget 1.2 cr, need 3BHK urgent, can we book a site visit?"),
]


def seed():
    # Check if already seeded
    existing = Lead.objects.count()
    if existing > 0:
        print(f"Database already has {existing} leads. Skipping seed.")
        print("Run 'python manage.py flush --no-input' to clear, then re-seed.")
        return

    owner = User.objects.create(**OWNER)
    agency = ensure_agency(owner)
    owner.refresh_from_db()
    for agent_data in AGENTS:
        User.objects.create(agency=agency, **agent_data)
    print(f"Created agency '{agency.name}' with owner + {len(AGENTS)} agents")

    AutomationRuleSet.objects.create(user=owner, enabled=True, follow_ups=FOLLOW_UPS)
    print(f"Created automation rule set with {len(FOLLOW_UPS)} follow-ups")

    for i, (channel, phone, name, email, text) in enumerate(CONVERSATIONS):
        if channel == "form":
            result = handle_contact_form(owner, name=name, email=email, phone=phone, message=text)
        else:
            result = handle_whatsapp_message(owner, phone, text, name=name)
        lead = result.lead
        verb = "created" if result.created else "merged"
        print(
            f"  [{i+1}/{len(CONVERSATIONS)}] {lead.name or lead.phone} ({verb}): "
            f"{lead.stage}/{lead.qualification_level}"
        )

    # A couple of closed-out deals for the analytics screens
    leads = list(Lead.objects.filter(agency=agency).order_by("created_at"))
    if len(leads) >= 2:
        book_visit(leads[0], (utcnow() + timedelta(days=3)).date(), "morning", family_coming=True)
        convert_lead(leads[0], actor=owner)
        if leads[-1].stage != "closed":
            mark_lost(leads[-1], actor=owner, reason="Bought elsewhere")

    print(f"\n{'='*50}")
    print(f"Seed complete! {Lead.objects.filter(agency=agency).count()} leads:\n")
    for lead in Lead.objects.filter(agency=agency).select_related("assigned_to").order_by("created_at"):
        assignee = lead.assigned_to.name if lead.assigned_to else "unassigned"
        print(f"  {(lead.name or '-'):12s} | {lead.phone or '-':14s} | {lead.stage:10s} | {assignee}")
    print(f"\nAct as the owner with header: X-User-Id: {owner.id}")
    print(f"Run the server: python manage.py runserver")
    print(f"Run the worker: python manage.py qcluster")


if __name__ == "__main__":
    seed()
