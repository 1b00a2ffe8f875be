"""
DRF serializers for API request/response validation.
Separates API contract from DB models.
"""
from rest_framework import serializers

from crm.models import Lead, LeadMessage, FollowUpJob, EventLog, AutomationRuleSet, User, Visit
from crm.models.lead import STAGE_CHOICES
from crm.models.visit import TIME_SLOT_CHOICES, VISIT_STATUS_CHOICES
from crm.services.followup_scheduler import normalize_channel

FOLLOWUP_CHANNELS = ("messaging", "email")


# ─── Lead Serializers ────────────────────────────────────────────────────────

class LeadSerializer(serializers.ModelSerializer):
    assigned_to_name = serializers.CharField(source="assigned_to.name", read_only=True, default=None)

    class Meta:
        model = Lead
        fields = [
            'id', 'agency', 'user', 'name', 'email', 'phone', 'message', 'source',
            'stage', 'qualification_level', 'budget', 'timeline', 'use_case',
            'score', 'ai_intent', 'ai_urgency', 'ai_notes', 'ai_tags',
            'is_fake', 'fake_reason', 'will_respond_score', 'will_buy_score',
            'priority_level', 'engagement_notes', 'last_message',
            'assigned_to', 'assigned_to_name', 'is_converted', 'converted_at',
            'created_at', 'updated_at',
        ]


class LeadSummarySerializer(serializers.ModelSerializer):
    """Lightweight lead listing for the leads table and pipeline board."""
    class Meta:
        model = Lead
        fields = [
            'id', 'name', 'phone', 'email', 'source', 'stage',
            'qualification_level', 'score', 'priority_level', 'is_fake',
            'last_message', 'assigned_to', 'is_converted', 'created_at', 'updated_at',
        ]


class LeadMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = LeadMessage
        fields = ['id', 'lead', 'sender', 'text', 'sent_at']


# ─── Inbound / manual action payloads ────────────────────────────────────────

class ContactFormSerializer(serializers.Serializer):
    """Public contact form. owner_id routes the submission to an account."""
    owner_id = serializers.UUIDField()
    name = serializers.CharField(max_length=200)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=32)
    message = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_owner_id(self, value):
        user = User.objects.filter(id=value, is_active=True).select_related("agency").first()
        if user is None:
            raise serializers.ValidationError("Unknown account")
        self.context["owner"] = user
        return value


class ReplySerializer(serializers.Serializer):
    text = serializers.CharField()


class MarkLostSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class PipelineMoveSerializer(serializers.Serializer):
    lead_id = serializers.UUIDField()
    stage = serializers.ChoiceField(choices=[code for code, _ in STAGE_CHOICES])


# ─── Automation Serializers ──────────────────────────────────────────────────

class FollowUpRuleSerializer(serializers.Serializer):
    delay_hours = serializers.FloatField(min_value=0)
    message = serializers.CharField(allow_blank=False, trim_whitespace=True)
    channel = serializers.CharField(required=False, default="messaging")

    def validate_channel(self, value):
        channel = normalize_channel(value)
        if channel not in FOLLOWUP_CHANNELS:
            raise serializers.ValidationError(f"channel must be one of {', '.join(FOLLOWUP_CHANNELS)}")
        return channel


class AutomationRuleSetSerializer(serializers.Serializer):
    """Full replacement of a user's rule set (no partial patch)."""
    enabled = serializers.BooleanField()
    follow_ups = FollowUpRuleSerializer(many=True)

    def to_representation(self, instance):
        return {"enabled": instance.enabled, "follow_ups": instance.follow_ups}

    def save_for(self, user) -> AutomationRuleSet:
        data = self.validated_data
        rules = [
            {"delay_hours": r["delay_hours"], "message": r["message"], "channel": r["channel"]}
            for r in data["follow_ups"]
        ]
        rule_set, _ = AutomationRuleSet.objects.update_or_create(
            user=user,
            defaults={"enabled": data["enabled"], "follow_ups": rules},
        )
        return rule_set


# ─── Visit Serializers ───────────────────────────────────────────────────────

class VisitSerializer(serializers.ModelSerializer):
    lead_name = serializers.CharField(source="lead.name", read_only=True)
    assigned_agent_name = serializers.CharField(source="assigned_agent.name", read_only=True, default=None)

    class Meta:
        model = Visit
        fields = [
            'id', 'lead', 'lead_name', 'assigned_agent', 'assigned_agent_name',
            'date', 'time_slot', 'status', 'family_coming', 'pickup_required',
            'notes', 'source', 'created_at', 'updated_at',
        ]


class VisitBookingSerializer(serializers.Serializer):
    date = serializers.DateField()
    time_slot = serializers.ChoiceField(choices=TIME_SLOT_CHOICES)
    family_coming = serializers.BooleanField(required=False, default=False)
    pickup_required = serializers.BooleanField(required=False, default=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    source = serializers.CharField(required=False, allow_blank=True, default="whatsapp")


class VisitStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=VISIT_STATUS_CHOICES)


# ─── Settings Serializers ────────────────────────────────────────────────────

class MessagingSettingsSerializer(serializers.Serializer):
    """
    Messaging channel credentials of the acting user. The access token is
    write-only; reads show whether a channel is connected and a masked token.
    """
    access_token = serializers.CharField(write_only=True, trim_whitespace=True)
    phone_number_id = serializers.CharField(max_length=64, trim_whitespace=True)

    def validate_phone_number_id(self, value):
        # phone_number_id routes inbound webhooks, so it must name one user
        user = self.context["user"]
        taken = User.objects.filter(phone_number_id=value, is_active=True).exclude(id=user.id)
        if taken.exists():
            raise serializers.ValidationError("This phone number id is already connected to another account")
        return value

    def to_representation(self, instance):
        token = instance.whatsapp_access_token
        return {
            "connected": instance.whatsapp_connected and instance.has_messaging_credentials,
            "phone_number_id": instance.phone_number_id,
            "access_token": f"****{token[-4:]}" if len(token) > 8 else ("****" if token else ""),
        }

    def save_for(self, user) -> User:
        user.whatsapp_access_token = self.validated_data["access_token"]
        user.phone_number_id = self.validated_data["phone_number_id"]
        user.whatsapp_connected = True
        user.save(update_fields=["whatsapp_access_token", "phone_number_id", "whatsapp_connected"])
        return user


# ─── Follow-up / Event Serializers ───────────────────────────────────────────

class FollowUpJobSerializer(serializers.ModelSerializer):
    status = serializers.SerializerMethodField()
    lead_name = serializers.CharField(source="lead.name", read_only=True, default=None)

    class Meta:
        model = FollowUpJob
        fields = [
            'id', 'lead', 'lead_name', 'channel', 'message', 'run_at',
            'sent', 'sent_at', 'outcome', 'attempts', 'last_error',
            'status', 'created_at',
        ]

    def get_status(self, obj):
        if obj.sent:
            return obj.outcome or "sent"
        return "retrying" if obj.attempts else "pending"


class EventLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = EventLog
        fields = ['id', 'agency', 'user', 'lead', 'event_type', 'payload', 'source', 'created_at']
