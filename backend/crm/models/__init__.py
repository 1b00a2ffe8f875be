from crm.models.agency import Agency
from crm.models.user import User
from crm.models.lead import Lead
from crm.models.lead_message import LeadMessage
from crm.models.automation import AutomationRuleSet
from crm.models.followup_job import FollowUpJob
from crm.models.event_log import EventLog
from crm.models.visit import Visit

__all__ = [
    "Agency", "User", "Lead", "LeadMessage",
    "AutomationRuleSet", "FollowUpJob", "EventLog", "Visit",
]
