"""
Messaging Provider — outbound transport for the messaging channel (WhatsApp Cloud API).

The engine only sees SendResult: ok=True with the provider's response data,
or ok=False with an error string. Nothing here raises for transport failures;
a failed send is "attempted", and the caller decides what that means.
"""
import logging
from dataclasses import dataclass, field

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    ok: bool
    data: dict = field(default_factory=dict)
    error: str | None = None


class MockMessagingProvider:
    """Stubbed provider for development and tests. Records what would have been sent."""

    def __init__(self):
        self.name = "messaging_mock"
        self.sent: list[dict] = []

    def send_text(self, user, to: str, body: str) -> SendResult:
        if not user.has_messaging_credentials:
            return SendResult(ok=False, error="messaging credentials missing")
        self.sent.append({"type": "text", "to": to, "body": body})
        logger.info(f"[mock] text to {to}: {body[:60]}")
        return SendResult(ok=True, data={"messages": [{"id": f"mock-{len(self.sent)}"}]})

    def send_audio(self, user, to: str, audio: bytes) -> SendResult:
        if not user.has_messaging_credentials:
            return SendResult(ok=False, error="messaging credentials missing")
        self.sent.append({"type": "audio", "to": to, "bytes": len(audio)})
        logger.info(f"[mock] audio to {to} ({len(audio)} bytes)")
        return SendResult(ok=True, data={"messages": [{"id": f"mock-{len(self.sent)}"}]})


class WhatsAppProvider:
    """WhatsApp Cloud (Graph) API transport using the user's own credentials."""

    def __init__(self):
        self.name = "whatsapp_cloud"
        self.base_url = settings.WHATSAPP_API_BASE.rstrip("/")
        self.timeout = settings.WHATSAPP_TIMEOUT_SECONDS

    def send_text(self, user, to: str, body: str) -> SendResult:
        if not user.has_messaging_credentials:
            return SendResult(ok=False, error="messaging credentials missing")

        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body},
        }
        return self._post(user, f"{user.phone_number_id}/messages", json=payload)

    def upload_audio(self, user, audio: bytes, mime_type: str = "audio/mpeg") -> str | None:
        """Upload audio to the media endpoint. Returns the media id, or None."""
        result = self._post(
            user,
            f"{user.phone_number_id}/media",
            data={"messaging_product": "whatsapp", "type": mime_type},
            files={"file": ("voice-note.mp3", audio, mime_type)},
        )
        if not result.ok:
            return None
        return result.data.get("id")

    def send_audio(self, user, to: str, audio: bytes) -> SendResult:
        if not user.has_messaging_credentials:
            return SendResult(ok=False, error="messaging credentials missing")

        media_id = self.upload_audio(user, audio)
        if not media_id:
            return SendResult(ok=False, error="audio upload failed")

        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "audio",
            "audio": {"id": media_id},
        }
        return self._post(user, f"{user.phone_number_id}/messages", json=payload)

    def _post(self, user, path: str, **kwargs) -> SendResult:
        url = f"{self.base_url}/{path}"
        headers = {"Authorization": f"Bearer {user.whatsapp_access_token}"}
        try:
            response = requests.post(url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"WhatsApp request to {path} failed: {e}")
            return SendResult(ok=False, error=str(e))

        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}

        if not response.ok:
            logger.error(f"WhatsApp API error {response.status_code} on {path}: {data}")
            return SendResult(ok=False, data=data, error=f"HTTP {response.status_code}")

        return SendResult(ok=True, data=data)


_mock_provider = None


def get_messaging_provider():
    """Provider selected by MESSAGING_PROVIDER. The mock is a process-wide singleton."""
    global _mock_provider

    if settings.MESSAGING_PROVIDER == "whatsapp":
        return WhatsAppProvider()

    if _mock_provider is None:
        _mock_provider = MockMessagingProvider()
    return _mock_provider
