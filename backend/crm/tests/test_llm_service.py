import json
from types import SimpleNamespace

import pytest

from crm.services import llm_service
from crm.services.llm_service import FALLBACK_REPLY, Verdict, analyze_lead, generate_reply


def test_verdict_from_model_json():
    verdict = Verdict.from_dict({
        "qualificationLevel": "hot",
        "budget": "80 lakh",
        "timeline": "",
        "aiTags": ["2bhk", "loan_needed"],
        "score": "87",
        "willRespondScore": 140,
        "willBuyScore": "n/a",
        "priorityLevel": "urgent",
        "isFake": "no",
    })

    assert verdict.qualification_level == "hot"
    assert verdict.budget == "80 lakh"
    assert verdict.timeline is None
    assert verdict.ai_tags == ["2bhk", "loan_needed"]
    assert verdict.score == 87
    assert verdict.will_respond_score == 100
    assert verdict.will_buy_score is None
    assert verdict.priority_level is None
    assert verdict.is_fake is None


def test_populated_drops_absent_fields():
    verdict = Verdict(qualification_level="warm", is_fake=False, budget="")
    assert verdict.populated() == {"qualification_level": "warm", "is_fake": False}


@pytest.mark.parametrize("text", ["", "   ", None])
def test_nothing_to_classify(text):
    assert analyze_lead(text) is None


def test_mock_marks_test_messages_fake():
    verdict = analyze_lead("test")
    assert verdict.is_fake is True
    assert verdict.qualification_level == "cold"


def test_mock_hot_lead():
    verdict = analyze_lead("Need 2BHK, budget 80 lakh, want to visit this week")
    assert verdict.qualification_level == "hot"
    assert verdict.is_fake is False
    assert "2bhk" in verdict.ai_tags


def test_mock_reply_is_fallback():
    assert generate_reply("anything") == FALLBACK_REPLY


class FakeOpenAI:
    """Stands in for openai.OpenAI; returns `content` from chat completions."""
    content = ""
    error = None

    def __init__(self, api_key=None):
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        if FakeOpenAI.error:
            raise FakeOpenAI.error
        message = SimpleNamespace(content=FakeOpenAI.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_openai(monkeypatch, settings):
    import openai

    settings.LLM_PROVIDER = "openai"
    FakeOpenAI.content = ""
    FakeOpenAI.error = None
    monkeypatch.setattr(openai, "OpenAI", FakeOpenAI)
    return FakeOpenAI


def test_openai_json_in_code_fence(fake_openai):
    fake_openai.content = "```json\n" + json.dumps({"qualificationLevel": "warm", "score": 55}) + "\n```"
    verdict = analyze_lead("2BHK options?")
    assert verdict.qualification_level == "warm"
    assert verdict.score == 55


def test_openai_garbage_is_soft_failure(fake_openai):
    fake_openai.content = "I think this lead is hot!"
    assert analyze_lead("hello") is None


def test_openai_error_falls_back(fake_openai):
    fake_openai.error = RuntimeError("rate limited")
    assert analyze_lead("hello") is None
    assert generate_reply("hello") == FALLBACK_REPLY


def test_voice_note_disabled_in_mock():
    assert llm_service.synthesize_voice_note("hi") is None


def test_mock_coach_flags_hot_lead():
    from crm.models import Lead

    advice = llm_service.coach_advice(Lead(qualification_level="hot", stage="hot", budget="80 lakh"))
    assert "site visit" in advice["suggested_reply"]
    assert advice["hot_alert"]
    assert advice["fake_alert"] is None
    assert {o["label"] for o in advice["objection_handling"]} == {"too expensive", "not now"}


def test_openai_coach_keys_are_snake_case(fake_openai):
    from crm.models import Lead

    fake_openai.content = json.dumps({
        "suggestedReply": "Shall we visit Saturday?",
        "closingTip": "Offer two slots",
        "objectionHandling": [{"label": "not now", "reply": "Next month?"}],
        "hotAlert": None,
        "fakeAlert": None,
    })
    advice = llm_service.coach_advice(Lead(last_message="Budget 80 lakh"))
    assert advice == {
        "suggested_reply": "Shall we visit Saturday?",
        "closing_tip": "Offer two slots",
        "objection_handling": [{"label": "not now", "reply": "Next month?"}],
        "hot_alert": None,
        "fake_alert": None,
    }


def test_openai_coach_failure_is_none(fake_openai):
    from crm.models import Lead

    fake_openai.content = "not json"
    assert llm_service.coach_advice(Lead()) is None
