"""
Visits API — site visits booked against leads.

  POST  leads/<id>/visits   book a visit for a lead
  GET   leads/<id>/visits   the lead's visits, newest date first
  GET   visits              every visit the acting user can see
  PATCH visits/<id>         confirm, complete or cancel
"""
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from crm.api.leads import _get_lead, _not_found, visible_leads
from crm.models.visit import Visit
from crm.serializers import VisitBookingSerializer, VisitSerializer, VisitStatusSerializer
from crm.services.visits import InvalidVisitStatus, book_visit, set_visit_status
from crm.utils import query_int, require_user


def visible_visits(user):
    return Visit.objects.filter(lead__in=visible_leads(user)).select_related("lead", "assigned_agent")


class LeadVisitsView(APIView):
    @require_user
    def get(self, request, lead_id, user):
        lead = _get_lead(user, lead_id)
        if lead is None:
            return _not_found()
        visits = lead.visits.select_related("lead", "assigned_agent")
        return Response(VisitSerializer(visits, many=True).data)

    @require_user
    def post(self, request, lead_id, user):
        lead = _get_lead(user, lead_id)
        if lead is None:
            return _not_found()

        serializer = VisitBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        visit = book_visit(lead, **serializer.validated_data)
        return Response(VisitSerializer(visit).data, status=status.HTTP_201_CREATED)


class VisitListView(APIView):
    @require_user
    def get(self, request, user):
        visits = visible_visits(user)

        visit_status = request.query_params.get("status")
        if visit_status:
            visits = visits.filter(status=visit_status)

        limit = query_int(request, "limit", 100, lo=1, hi=500)
        return Response(VisitSerializer(visits[:limit], many=True).data)


class VisitDetailView(APIView):
    @require_user
    def patch(self, request, visit_id, user):
        visit = visible_visits(user).filter(id=visit_id).first()
        if visit is None:
            return Response({"detail": "Visit not found"}, status=status.HTTP_404_NOT_FOUND)

        serializer = VisitStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            visit = set_visit_status(visit, serializer.validated_data["status"])
        except InvalidVisitStatus as e:
            return Response({"detail": str(e)}, status=status.HTTP_409_CONFLICT)
        return Response(VisitSerializer(visit).data)
