"""Follow-up jobs API — what the automation has scheduled, sent or skipped."""
from rest_framework.response import Response
from rest_framework.views import APIView

from crm.models.followup_job import FollowUpJob
from crm.serializers import FollowUpJobSerializer
from crm.utils import require_user


class FollowUpListView(APIView):
    @require_user
    def get(self, request, user):
        queryset = FollowUpJob.objects.filter(user=user).select_related("lead")

        state = request.query_params.get("status")
        if state == "pending":
            queryset = queryset.filter(sent=False)
        elif state in ("delivered", "skipped", "failed"):
            queryset = queryset.filter(sent=True, outcome=state)

        lead_id = request.query_params.get("lead_id")
        if lead_id:
            queryset = queryset.filter(lead_id=lead_id)

        queryset = queryset.order_by("run_at")[:200]
        return Response(FollowUpJobSerializer(queryset, many=True).data)
