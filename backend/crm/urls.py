"""
CRM URL configuration — the JSON API consumed by the dashboard, the public
contact form and the messaging webhook.
"""
from django.urls import path
from crm.api import analytics, automation, contact, followups, leads, messaging_settings, visits, webhook

urlpatterns = [
    # Inbound
    path('contact', contact.ContactFormView.as_view()),
    path('webhooks/whatsapp', webhook.WhatsAppWebhookView.as_view()),

    # Leads
    path('leads/', leads.LeadListView.as_view()),
    path('leads/<uuid:lead_id>', leads.LeadDetailView.as_view()),
    path('leads/<uuid:lead_id>/messages', leads.LeadMessagesView.as_view()),
    path('leads/<uuid:lead_id>/reply', leads.LeadReplyView.as_view()),
    path('leads/<uuid:lead_id>/convert', leads.LeadConvertView.as_view()),
    path('leads/<uuid:lead_id>/lost', leads.LeadLostView.as_view()),
    path('leads/<uuid:lead_id>/assign-self', leads.LeadAssignSelfView.as_view()),
    path('leads/<uuid:lead_id>/coach', leads.LeadCoachView.as_view()),
    path('leads/<uuid:lead_id>/visits', visits.LeadVisitsView.as_view()),

    # Visits
    path('visits', visits.VisitListView.as_view()),
    path('visits/<uuid:visit_id>', visits.VisitDetailView.as_view()),

    # Pipeline board
    path('pipeline', leads.PipelineView.as_view()),

    # Automation
    path('automation', automation.AutomationView.as_view()),
    path('followups', followups.FollowUpListView.as_view()),

    # Settings
    path('settings/messaging', messaging_settings.MessagingSettingsView.as_view()),

    # Analytics
    path('analytics/summary', analytics.AnalyticsSummaryView.as_view()),
    path('analytics/agents', analytics.AgentStatsView.as_view()),
    path('analytics/reports', analytics.DailyReportView.as_view()),
]
