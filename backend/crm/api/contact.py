"""
Contact form API — public endpoint behind the website's enquiry form.

No acting-user header here: the form carries the owner_id of the account
whose leads it feeds.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from crm.serializers import ContactFormSerializer, LeadSerializer
from crm.services.inbound import handle_contact_form

logger = logging.getLogger(__name__)


class ContactFormView(APIView):
    def post(self, request):
        serializer = ContactFormSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = handle_contact_form(
            serializer.context["owner"],
            name=data["name"],
            email=data["email"],
            phone=data["phone"],
            message=data["message"],
        )

        return Response(
            {"lead": LeadSerializer(result.lead).data, "created": result.created},
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        )
