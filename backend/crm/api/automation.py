"""Automation rules API — the acting user's follow-up policy, replaced wholesale on PUT."""
from rest_framework.response import Response
from rest_framework.views import APIView

from crm.models.automation import AutomationRuleSet
from crm.serializers import AutomationRuleSetSerializer
from crm.utils import require_user


class AutomationView(APIView):
    @require_user
    def get(self, request, user):
        rule_set = AutomationRuleSet.objects.filter(user=user).first()
        if rule_set is None:
            return Response({"enabled": False, "follow_ups": []})
        return Response(AutomationRuleSetSerializer(rule_set).data)

    @require_user
    def put(self, request, user):
        serializer = AutomationRuleSetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rule_set = serializer.save_for(user)
        return Response(AutomationRuleSetSerializer(rule_set).data)
