"""
Messaging settings API — connect the acting user's WhatsApp Cloud number.

The stored phone_number_id is what inbound webhooks route on, and follow-ups
on the messaging channel are skipped until a number is connected.
"""
import logging

from rest_framework.response import Response
from rest_framework.views import APIView

from crm.serializers import MessagingSettingsSerializer
from crm.utils import require_user

logger = logging.getLogger(__name__)


class MessagingSettingsView(APIView):
    @require_user
    def get(self, request, user):
        return Response(MessagingSettingsSerializer(user).data)

    @require_user
    def put(self, request, user):
        serializer = MessagingSettingsSerializer(data=request.data, context={"user": user})
        serializer.is_valid(raise_exception=True)
        user = serializer.save_for(user)
        logger.info(f"User {user.id} connected messaging number {user.phone_number_id}")
        return Response(MessagingSettingsSerializer(user).data)

    @require_user
    def delete(self, request, user):
        user.whatsapp_access_token = ""
        user.phone_number_id = ""
        user.whatsapp_connected = False
        user.save(update_fields=["whatsapp_access_token", "phone_number_id", "whatsapp_connected"])
        logger.info(f"User {user.id} disconnected messaging")
        return Response(MessagingSettingsSerializer(user).data)
