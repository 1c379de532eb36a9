"""
LLM output validation and the disabled / failing client paths.
"""
import asyncio
import json
from types import SimpleNamespace

from app.services.llm_service import LLMService


class FakeMessages:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


def _client(text="", error=None):
    return SimpleNamespace(messages=FakeMessages(text, error))


def _valid(**overrides):
    data = {
        "action": "increase budget",
        "reasoning": "ROAS 4.2x with budget to spare",
        "impact": "+$800 revenue per week",
        "confidence": 8,
        "implementation": "1. Raise budget",
        "forecast": "Next 7 days: ~$1,600 spend",
    }
    data.update(overrides)
    return json.dumps(data)


# ---------------------------------------------------------------------------
# parse_recommendation
# ---------------------------------------------------------------------------

def test_parse_valid():
    rec = LLMService.parse_recommendation(_valid())
    assert rec["action"] == "increase budget"
    assert rec["confidence"] == 8


def test_parse_fenced_json():
    rec = LLMService.parse_recommendation(f"Here you go:\n```json\n{_valid()}\n```")
    assert rec["action"] == "increase budget"


def test_parse_invalid_json():
    assert LLMService.parse_recommendation("increase the budget, it is going well") is None
    assert LLMService.parse_recommendation("") is None
    assert LLMService.parse_recommendation(None) is None
    assert LLMService.parse_recommendation("[1, 2]") is None


def test_parse_missing_fields():
    assert LLMService.parse_recommendation(json.dumps({"action": "increase budget"})) is None
    assert LLMService.parse_recommendation(json.dumps({"reasoning": "because"})) is None


def test_parse_rejects_unknown_action():
    assert LLMService.parse_recommendation(_valid(action="double everything")) is None


def test_parse_normalizes_fields():
    rec = LLMService.parse_recommendation(_valid(
        action="  Reduce CPC ",
        confidence=15,
        implementation=["Set a bid cap", "Broaden placements"],
        specific_actions={"ads_to_pause": ["Static"]},
    ))
    assert rec["action"] == "reduce cpc"
    assert rec["confidence"] == 10
    assert rec["implementation"] == "1. Set a bid cap\n2. Broaden placements"
    assert rec["specific_actions"] == {"ads_to_pause": ["Static"]}


def test_parse_bad_confidence_defaults():
    assert LLMService.parse_recommendation(_valid(confidence="high"))["confidence"] == 5
    assert LLMService.parse_recommendation(_valid(confidence=0))["confidence"] == 1


# ---------------------------------------------------------------------------
# Client paths
# ---------------------------------------------------------------------------

def test_disabled_without_key():
    service = LLMService()
    assert service.is_available() is False
    assert asyncio.run(service.generate_campaign_recommendation({}, {}, {})) is None
    assert asyncio.run(service.answer_marketing_question("How are we doing?", {})) is None


def test_recommendation_from_client():
    client = _client(_valid())
    service = LLMService(client=client)
    rec = asyncio.run(service.generate_campaign_recommendation(
        {"campaign_name": "Prospecting", "spent": None, "budget": 100},
        {"budget_utilization": 50.0},
        {"trends": {"spend_trend": 0.0, "performance_trend": 12.5}},
    ))
    assert rec["action"] == "increase budget"
    call = client.messages.calls[0]
    assert "Prospecting" in call["messages"][0]["content"]
    assert "system" in call


def test_client_error_returns_none():
    service = LLMService(client=_client(error=RuntimeError("overloaded")))
    assert asyncio.run(service.generate_campaign_recommendation({}, {}, {})) is None
    assert asyncio.run(service.answer_marketing_question("How are we doing?", {})) is None


def test_unusable_output_returns_none():
    service = LLMService(client=_client("I think you should scale."))
    assert asyncio.run(service.generate_campaign_recommendation({}, {}, {})) is None


def test_marketing_answer():
    client = _client("Spend is up 20% and ROAS held at 3.1x.")
    service = LLMService(client=client)
    answer = asyncio.run(service.answer_marketing_question("How did last week go?", {"total_spend": 1200}, "grow revenue"))
    assert answer.startswith("Spend is up")
    prompt = client.messages.calls[0]["messages"][0]["content"]
    assert "grow revenue" in prompt
    assert "1200" in prompt
