"""
Root URL configuration for LeadFlow.

The dashboard frontend is served separately; Django only exposes the JSON API
and the messaging webhook.
"""
from django.urls import path, include
from django.http import JsonResponse


def health_check(request):
    return JsonResponse({"status": "healthy"})


urlpatterns = [
    path('api/', include('crm.urls')),
    path('health', health_check),
]
