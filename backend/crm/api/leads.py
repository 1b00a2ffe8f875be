"""
Lead API — listing, detail and the manual actions agents take from the dashboard.

Manual actions:
  reply        → send via messaging, agent message, new → contacted
  convert      → stage closed + conversion flag
  lost         → stage lost (refused for closed leads)
  assign-self  → acting agent takes the lead
  coach        → sales-coach suggestions for the agent
  pipeline     → board grouped by stage; move is the drag-and-drop override
"""
from django.db.models import Q
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from crm.models.followup_job import FollowUpJob
from crm.models.lead import Lead, STAGE_CHOICES
from crm.serializers import (
    LeadSerializer, LeadSummarySerializer, LeadMessageSerializer,
    FollowUpJobSerializer, EventLogSerializer, ReplySerializer, MarkLostSerializer,
    PipelineMoveSerializer,
)
from crm.services import llm_service
from crm.services.assignment import assign_lead
from crm.services.conversation import send_agent_reply
from crm.services.stage_machine import (
    InvalidStageTransition, convert_lead, mark_lost, move_stage,
)
from crm.utils import query_int, require_user


def visible_leads(user):
    """Leads the acting user may see: the whole agency, or their own when agency-less."""
    if user.agency_id:
        return Lead.objects.filter(agency_id=user.agency_id)
    return Lead.objects.filter(user=user)


def _get_lead(user, lead_id):
    return visible_leads(user).select_related("user", "assigned_to").filter(id=lead_id).first()


def _not_found():
    return Response({"detail": "Lead not found"}, status=status.HTTP_404_NOT_FOUND)


def _conflict(exc):
    return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)


class LeadListView(APIView):
    """List leads with filtering and search."""

    @require_user
    def get(self, request, user):
        queryset = visible_leads(user)

        if request.query_params.get("assigned_only") in ("1", "true", "yes"):
            queryset = queryset.filter(assigned_to=user)

        stage = request.query_params.get("stage")
        if stage:
            queryset = queryset.filter(stage=stage)

        qualification = request.query_params.get("qualification")
        if qualification:
            queryset = queryset.filter(qualification_level=qualification)

        search = request.query_params.get("search")
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(phone__icontains=search) |
                Q(email__icontains=search)
            )

        limit = query_int(request, "limit", 50, lo=1, hi=200)
        offset = query_int(request, "offset", 0)
        queryset = queryset.order_by("-created_at", "-id")[offset:offset + limit]

        return Response(LeadSummarySerializer(queryset, many=True).data)


class LeadDetailView(APIView):
    @require_user
    def get(self, request, lead_id, user):
        lead = _get_lead(user, lead_id)
        if lead is None:
            return _not_found()

        jobs = FollowUpJob.objects.filter(lead=lead).order_by("run_at")
        return Response({
            "lead": LeadSerializer(lead).data,
            "messages": LeadMessageSerializer(lead.messages.all(), many=True).data,
            "follow_ups": FollowUpJobSerializer(jobs, many=True).data,
            "events": EventLogSerializer(lead.events.order_by("-created_at")[:50], many=True).data,
        })


class LeadMessagesView(APIView):
    @require_user
    def get(self, request, lead_id, user):
        lead = _get_lead(user, lead_id)
        if lead is None:
            return _not_found()
        return Response(LeadMessageSerializer(lead.messages.all(), many=True).data)


class LeadReplyView(APIView):
    """Agent sends a manual reply over the messaging channel."""

    @require_user
    def post(self, request, lead_id, user):
        lead = _get_lead(user, lead_id)
        if lead is None:
            return _not_found()

        serializer = ReplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lead, result = send_agent_reply(user, lead, serializer.validated_data["text"])
        if not result.ok:
            return Response(
                {"detail": f"Message not delivered: {result.error}"},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        return Response(LeadSerializer(lead).data)


class LeadConvertView(APIView):
    @require_user
    def post(self, request, lead_id, user):
        lead = _get_lead(user, lead_id)
        if lead is None:
            return _not_found()
        lead = convert_lead(lead, actor=user)
        return Response(LeadSerializer(lead).data)


class LeadLostView(APIView):
    @require_user
    def post(self, request, lead_id, user):
        lead = _get_lead(user, lead_id)
        if lead is None:
            return _not_found()

        serializer = MarkLostSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            lead = mark_lost(lead, actor=user, reason=serializer.validated_data.get("reason"))
        except InvalidStageTransition as e:
            return _conflict(e)
        return Response(LeadSerializer(lead).data)


class LeadAssignSelfView(APIView):
    @require_user
    def post(self, request, lead_id, user):
        lead = _get_lead(user, lead_id)
        if lead is None:
            return _not_found()
        lead = assign_lead(lead, user, actor=user)
        return Response(LeadSerializer(lead).data)


class LeadCoachView(APIView):
    """Sales-coach suggestions for the agent working this lead."""

    @require_user
    def get(self, request, lead_id, user):
        lead = _get_lead(user, lead_id)
        if lead is None:
            return _not_found()

        advice = llm_service.coach_advice(lead)
        if advice is None:
            return Response({"detail": "AI coach not available"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response({"lead_id": str(lead.id), "advice": advice})


class PipelineView(APIView):
    """Kanban board: leads grouped by stage, plus the drag-and-drop move."""

    @require_user
    def get(self, request, user):
        leads = visible_leads(user).order_by("-updated_at")
        board = {code: [] for code, _ in STAGE_CHOICES}
        for lead in leads:
            board[lead.stage].append(LeadSummarySerializer(lead).data)
        return Response(board)

    @require_user
    def post(self, request, user):
        serializer = PipelineMoveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lead = _get_lead(user, serializer.validated_data["lead_id"])
        if lead is None:
            return _not_found()

        try:
            lead = move_stage(lead, serializer.validated_data["stage"], actor=user)
        except InvalidStageTransition as e:
            return _conflict(e)
        return Response(LeadSerializer(lead).data)
