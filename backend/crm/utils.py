"""Shared utility helpers used across services and API views."""
from datetime import datetime, timezone

SNIPPET_LENGTH = 120


def utcnow() -> datetime:
    """Return timezone-aware UTC now. Replaces deprecated datetime.utcnow()."""
    return datetime.now(timezone.utc)


def snippet(text: str | None) -> str:
    """Truncate message text for audit payloads."""
    return (text or "")[:SNIPPET_LENGTH]


def get_acting_user(request):
    """
    Resolve the acting user from the X-User-Id header.
    Session handling is done by the gateway in front of this service.
    Returns None when the header is missing, malformed, or unknown.
    """
    from django.core.exceptions import ValidationError
    from crm.models.user import User

    user_id = request.headers.get("X-User-Id")
    if not user_id:
        return None
    try:
        return User.objects.filter(id=user_id, is_active=True).first()
    except (ValidationError, ValueError):
        return None


def lock_lead(lead_or_id):
    """
    Re-fetch a lead with a row lock. Must be called inside transaction.atomic();
    all read-modify-write of a lead goes through here so concurrent writers
    to the same lead are serialized.
    """
    from crm.models.lead import Lead

    lead_id = getattr(lead_or_id, "pk", lead_or_id)
    return Lead.objects.select_for_update().get(pk=lead_id)


def require_user(method):
    """
    APIView method decorator: resolve the acting user or answer 401.
    The user is passed to the method as `user`.
    """
    from functools import wraps
    from rest_framework import status
    from rest_framework.response import Response

    @wraps(method)
    def wrapper(self, request, *args, **kwargs):
        user = get_acting_user(request)
        if user is None:
            return Response({"detail": "Authentication required"}, status=status.HTTP_401_UNAUTHORIZED)
        return method(self, request, *args, user=user, **kwargs)

    return wrapper


def query_int(request, name: str, default: int, lo: int = 0, hi: int | None = None) -> int:
    """Integer query parameter clamped to [lo, hi]; malformed values fall back to the default."""
    try:
        value = int(request.query_params.get(name, default))
    except (TypeError, ValueError):
        value = default
    value = max(value, lo)
    if hi is not None:
        value = min(value, hi)
    return value
