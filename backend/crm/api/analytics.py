"""
Analytics API — dashboard numbers for the acting user's agency.

All endpoints are read-only views over services.reporting.
"""
from rest_framework.response import Response
from rest_framework.views import APIView

from crm.services.reporting import analytics_summary, agent_stats, daily_report
from crm.utils import query_int, require_user


class AnalyticsSummaryView(APIView):
    @require_user
    def get(self, request, user):
        return Response(analytics_summary(user.agency_id))


class AgentStatsView(APIView):
    @require_user
    def get(self, request, user):
        return Response(agent_stats(user.agency_id))


class DailyReportView(APIView):
    @require_user
    def get(self, request, user):
        days = query_int(request, "days", 30, lo=1, hi=90)
        return Response(daily_report(user.agency_id, days=days))
