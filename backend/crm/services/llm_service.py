"""
LLM Service — handles all LLM calls with a pluggable provider (OpenAI or Mock).

Four calls, each failure-tolerant:
1. analyze_lead()          — classify one inbound message into a Verdict (None on failure)
2. generate_reply()        — short auto-reply for the messaging channel (fallback text on failure)
3. synthesize_voice_note() — TTS audio for hot leads (None on failure)
4. coach_advice()          — sales-coach suggestions for an agent (None on failure)

The classifier is a black box to the rest of the engine: callers only see a
Verdict whose unset fields are None, and must never let None overwrite data.
"""
import json
import logging
from dataclasses import dataclass, field, fields

from django.conf import settings

logger = logging.getLogger(__name__)

QUALIFICATION_LEVELS = ("hot", "warm", "cold")
PRIORITY_LEVELS = ("low", "medium", "high")

FALLBACK_REPLY = (
    "Thank you for your message! We have noted your requirement and "
    "our team will get back to you shortly with the best options."
)


@dataclass
class Verdict:
    """Structured classification of one inbound message. None means "not populated"."""
    qualification_level: str | None = None
    budget: str | None = None
    timeline: str | None = None
    use_case: str | None = None
    ai_intent: str | None = None
    ai_urgency: str | None = None
    ai_notes: str | None = None
    ai_tags: list[str] = field(default_factory=list)
    score: int | None = None
    will_respond_score: int | None = None
    will_buy_score: int | None = None
    priority_level: str | None = None
    engagement_notes: str | None = None
    is_fake: bool | None = None
    fake_reason: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Verdict":
        """
        Build a Verdict from the model's JSON (camelCase keys).
        Unknown enum values, non-numeric scores and wrong types become None.
        """
        level = data.get("qualificationLevel")
        priority = data.get("priorityLevel")
        tags = data.get("aiTags")
        is_fake = data.get("isFake")

        return cls(
            qualification_level=level if level in QUALIFICATION_LEVELS else None,
            budget=_text(data.get("budget")),
            timeline=_text(data.get("timeline")),
            use_case=_text(data.get("useCase")),
            ai_intent=_text(data.get("aiIntent") or data.get("intent")),
            ai_urgency=_text(data.get("aiUrgency") or data.get("urgency")),
            ai_notes=_text(data.get("aiNotes")),
            ai_tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            score=_score(data.get("score")),
            will_respond_score=_score(data.get("willRespondScore")),
            will_buy_score=_score(data.get("willBuyScore")),
            priority_level=priority if priority in PRIORITY_LEVELS else None,
            engagement_notes=_text(data.get("engagementNotes")),
            is_fake=is_fake if isinstance(is_fake, bool) else None,
            fake_reason=_text(data.get("fakeReason")),
        )

    def populated(self) -> dict:
        """Only the fields this verdict actually set."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or value == "" or value == []:
                continue
            result[f.name] = value
        return result


def _text(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _score(value) -> int | None:
    """Accept numbers or numeric strings; clamp to 0-100."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = int(value)
    elif isinstance(value, str):
        try:
            number = int(float(value.strip()))
        except ValueError:
            return None
    else:
        return None
    return max(0, min(100, number))


ANALYZE_SYSTEM_PROMPT = (
    "You are an AI assistant for real estate sales leads. "
    "You must analyse inbound messages from property leads and return ONLY a valid JSON. No extra text."
)

ANALYZE_PROMPT = """Message from lead:

{message}

Infer their intent and details as much as possible.
They may use mixed languages, short forms or spelling mistakes.

Return a JSON object with EXACTLY these fields:
{{
  "qualificationLevel": "hot" | "warm" | "cold",
  "budget": string | null,
  "timeline": string | null,
  "useCase": string | null,
  "aiIntent": string | null,
  "aiUrgency": "low" | "medium" | "high" | null,
  "aiNotes": string | null,
  "aiTags": string[] | null,
  "score": number | null,
  "willRespondScore": number | null,
  "willBuyScore": number | null,
  "priorityLevel": "low" | "medium" | "high",
  "engagementNotes": string | null,
  "isFake": boolean,
  "fakeReason": string | null
}}

Guidelines:
- "hot": clear budget, clear location, timeline within 0-3 months and strong intent to visit or buy.
- "warm": some intent but not urgent, or exploring within 3-6 months.
- "cold": very vague, only checking price, or no clear timeline.
- isFake = true for gibberish, test messages, abuse/spam, brokers selling their own service,
  or an obviously unrelated context (job enquiry, selling a car).
- Scores are 0-100. Always return VALID JSON ONLY."""

REPLY_SYSTEM_PROMPT = (
    "You are a messaging sales assistant for a real estate agency. "
    "Reply in 1-3 short lines, friendly and respectful. "
    "Serious leads (clear budget, location, timeline) get a direct next step (visit, call, shortlist). "
    "Unsure leads get gentle help clarifying budget, area and size. "
    "Vague messages get one short clarifying question. "
    "Always end with a simple question that moves the conversation forward."
)


def analyze_lead(message: str) -> Verdict | None:
    """
    Classify one inbound message. Returns None when there is nothing to
    classify or the provider fails; callers treat None as "no change".
    """
    if not message or not message.strip():
        return None

    if settings.LLM_PROVIDER == "mock":
        return _mock_analysis(message)

    return _openai_analysis(message)


def _openai_analysis(message: str) -> Verdict | None:
    """Call OpenAI API for classification."""
    try:
        from openai import OpenAI

        client = OpenAI(api_key=settings.OPENAI_API_KEY)
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": ANALYZE_SYSTEM_PROMPT},
                {"role": "user", "content": ANALYZE_PROMPT.format(message=message)},
            ],
            temperature=0.25,
            max_tokens=350,
        )

        content = _strip_fences(response.choices[0].message.content.strip())
        data = json.loads(content)
        if not isinstance(data, dict):
            logger.error("OpenAI analysis returned non-object JSON")
            return None
        return Verdict.from_dict(data)
    except Exception as e:
        logger.error(f"OpenAI analysis failed: {e}")
        return None


def _strip_fences(content: str) -> str:
    # Strip markdown code fences if present
    if content.startswith("```"):
        content = content.split("\n", 1)[1]
        content = content.rsplit("```", 1)[0]
    return content


_FAKE_MARKERS = {"test", "hi", "hii", "hello", "ok", "asdf", "gfdhdfh"}


def _mock_analysis(message: str) -> Verdict:
    """
    Mock classification for development/demo without API keys.
    Keyword heuristics that produce realistic-looking verdicts.
    """
    text = message.lower().strip()

    if text in _FAKE_MARKERS or len(text) < 3:
        return Verdict(
            qualification_level="cold",
            score=5,
            priority_level="low",
            is_fake=True,
            fake_reason="random / test / no buying intent",
        )

    has_budget = any(w in text for w in ["budget", "lakh", "lac", " cr", "crore", "price range"])
    has_timeline = any(w in text for w in ["this month", "next month", "asap", "urgent", "immediately", "this week"])
    wants_visit = any(w in text for w in ["visit", "site", "see the", "book", "schedule"])
    exploring = any(w in text for w in ["exploring", "just checking", "maybe", "thinking", "later"])

    tags = []
    for bhk in ("1bhk", "2bhk", "3bhk", "4bhk"):
        if bhk in text.replace(" ", ""):
            tags.append(bhk)
    if "loan" in text:
        tags.append("loan_needed")
    if "rent" in text:
        tags.append("rental")

    if has_budget and (has_timeline or wants_visit):
        level, score, priority, urgency = "hot", 85, "high", "high"
    elif has_budget or wants_visit or (has_timeline and not exploring):
        level, score, priority, urgency = "warm", 60, "medium", "medium"
    else:
        level, score, priority, urgency = "cold", 25, "low", "low"

    intent = "renting" if "rent" in text else ("visit_booking" if wants_visit else "buying")
    if not has_budget and "price" in text:
        intent = "price_enquiry"

    return Verdict(
        qualification_level=level,
        timeline="this month" if has_timeline else ("just exploring" if exploring else None),
        ai_intent=intent,
        ai_urgency=urgency,
        ai_notes=f"Lead appears {level}; intent {intent.replace('_', ' ')}.",
        ai_tags=tags,
        score=score,
        will_respond_score=min(100, score + 10),
        will_buy_score=max(0, score - 10),
        priority_level=priority,
        is_fake=False,
    )


def generate_reply(message: str) -> str:
    """Short auto-reply for an inbound message. Never raises; falls back to a polite default."""
    if settings.LLM_PROVIDER == "mock":
        return FALLBACK_REPLY

    try:
        from openai import OpenAI

        client = OpenAI(api_key=settings.OPENAI_API_KEY)
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": REPLY_SYSTEM_PROMPT},
                {"role": "user", "content": message},
            ],
            temperature=0.7,
            max_tokens=220,
        )
        reply = (response.choices[0].message.content or "").strip()
        return reply or FALLBACK_REPLY
    except Exception as e:
        logger.error(f"OpenAI reply failed: {e}")
        return FALLBACK_REPLY


def synthesize_voice_note(text: str) -> bytes | None:
    """Text-to-speech for a voice note. Returns MP3 bytes, or None when unavailable."""
    if settings.LLM_PROVIDER == "mock" or not text:
        return None

    try:
        from openai import OpenAI

        client = OpenAI(api_key=settings.OPENAI_API_KEY)
        response = client.audio.speech.create(
            model=settings.OPENAI_TTS_MODEL,
            voice="alloy",
            input=f"Friendly real estate sales tone:\n\n{text}",
        )
        return response.content
    except Exception as e:
        logger.error(f"OpenAI TTS failed: {e}")
        return None


COACH_SYSTEM_PROMPT = "You are a messaging sales coach assistant for real estate agents."

COACH_PROMPT = """Help a human agent close this lead with short, clear messaging replies.

Lead context:
- Latest message: "{last_message}"
- Score: {score}
- Intent: {intent}
- Urgency: {urgency}
- Budget: {budget}
- Stage: {stage}
- Fake flag: {is_fake}

Return ONLY valid JSON with this shape:
{{
  "suggestedReply": "short reply the agent can send now (max 2 lines)",
  "closingTip": "how to move towards booking or payment in 1-2 lines",
  "objectionHandling": [
    {{"label": "too expensive", "reply": "..."}},
    {{"label": "not now", "reply": "..."}}
  ],
  "hotAlert": null or short text if this is a hot lead,
  "fakeAlert": null or short text if this looks like test/fake/junk
}}

Rules:
- suggestedReply must be polite, sales-focused and ask a simple question.
- Keep all replies very short and messaging-friendly."""

_COACH_KEYS = {
    "suggestedReply": "suggested_reply",
    "closingTip": "closing_tip",
    "objectionHandling": "objection_handling",
    "hotAlert": "hot_alert",
    "fakeAlert": "fake_alert",
}


def coach_advice(lead) -> dict | None:
    """
    Sales-coach suggestions for the agent working a lead: a reply to send,
    a closing tip, canned objection replies and hot/fake alerts.
    Returns None when the coach is unavailable.
    """
    if settings.LLM_PROVIDER == "mock":
        return _mock_coach(lead)

    try:
        from openai import OpenAI

        client = OpenAI(api_key=settings.OPENAI_API_KEY)
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": COACH_SYSTEM_PROMPT},
                {"role": "user", "content": COACH_PROMPT.format(
                    last_message=lead.last_message or lead.message or "",
                    score=lead.score,
                    intent=lead.ai_intent,
                    urgency=lead.ai_urgency,
                    budget=lead.budget,
                    stage=lead.stage,
                    is_fake="true" if lead.is_fake else "false",
                )},
            ],
            temperature=0.4,
            max_tokens=350,
        )

        data = json.loads(_strip_fences(response.choices[0].message.content.strip()))
        if not isinstance(data, dict):
            logger.error("OpenAI coach returned non-object JSON")
            return None
        advice = {_COACH_KEYS.get(key, key): value for key, value in data.items()}
        return {
            "suggested_reply": advice.get("suggested_reply") or "",
            "closing_tip": advice.get("closing_tip") or "",
            "objection_handling": advice.get("objection_handling") or [],
            "hot_alert": advice.get("hot_alert"),
            "fake_alert": advice.get("fake_alert"),
        }
    except Exception as e:
        logger.error(f"OpenAI coach failed: {e}")
        return None


def _mock_coach(lead) -> dict:
    if lead.is_fake:
        reply = "Hi! Could you share what kind of property you are looking for?"
    elif lead.qualification_level == "hot" or lead.stage == "hot":
        reply = "Great! Shall I book a site visit for you this weekend?"
    elif lead.budget:
        reply = f"We have good options around {lead.budget}. Which area do you prefer?"
    else:
        reply = "Happy to help! What budget range are you considering?"

    return {
        "suggested_reply": reply,
        "closing_tip": "Offer two concrete visit slots and ask them to pick one.",
        "objection_handling": [
            {"label": "too expensive", "reply": "We also have options slightly outside the city at a lower price. Shall I share them?"},
            {"label": "not now", "reply": "No problem! Should I check back with you next month?"},
        ],
        "hot_alert": "High-intent lead: call within the hour." if lead.qualification_level == "hot" else None,
        "fake_alert": f"Looks like a test or junk message ({lead.fake_reason})." if lead.is_fake else None,
    }
