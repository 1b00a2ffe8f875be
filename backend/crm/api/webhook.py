"""
Messaging webhook — WhatsApp Cloud API callbacks.

GET  is the subscription handshake (hub.mode / hub.verify_token / hub.challenge).
POST carries inbound messages and delivery statuses. It always answers 200:
the provider retries anything else, and a retry storm would only replay the
same failure. Failures are logged instead.
"""
import logging

from django.conf import settings
from django.http import HttpResponse
from rest_framework.response import Response
from rest_framework.views import APIView

from crm.services.inbound import handle_webhook_payload

logger = logging.getLogger(__name__)


class WhatsAppWebhookView(APIView):
    def get(self, request):
        mode = request.query_params.get("hub.mode")
        token = request.query_params.get("hub.verify_token")
        challenge = request.query_params.get("hub.challenge", "")

        if mode == "subscribe" and settings.WHATSAPP_VERIFY_TOKEN and token == settings.WHATSAPP_VERIFY_TOKEN:
            return HttpResponse(challenge, content_type="text/plain")
        return HttpResponse("Forbidden", status=403, content_type="text/plain")

    def post(self, request):
        payload = request.data if isinstance(request.data, dict) else {}
        try:
            handled = handle_webhook_payload(payload)
        except Exception:
            logger.exception("Webhook processing failed")
            return Response({"status": "error_logged"})
        return Response({"status": "ok", "handled": handled})
