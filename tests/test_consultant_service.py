"""
Marketing consultant tests: range resolution, LLM answer and rules fallback.
"""
import asyncio
import time
from datetime import date, datetime
from types import SimpleNamespace

from sqlalchemy.exc import OperationalError

from app.models.meta import MetaCampaign, MetaDailyStat
from app.services.consultant_service import ConsultantService
from app.services import llm_service
from app.services.llm_service import LLMService

NOW = datetime(2024, 3, 15, 10, 0)


class FakeMessages:
    def __init__(self, text, delay=0.0):
        self.text = text
        self.delay = delay
        self.prompts = []

    def create(self, **kwargs):
        self.prompts.append(kwargs["messages"][0]["content"])
        if self.delay:
            time.sleep(self.delay)
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


def _seed(db):
    db.add_all([
        MetaCampaign(brand_id="b1", campaign_id="c1", campaign_name="Prospecting", status="ACTIVE"),
        MetaCampaign(brand_id="b1", campaign_id="c2", campaign_name="Retargeting", status="ACTIVE"),
        MetaDailyStat(brand_id="b1", level="campaign", entity_id="c1", campaign_id="c1",
                      date=date(2024, 3, 12), spend=300, revenue=1200, impressions=20000, clicks=400, conversions=12),
        MetaDailyStat(brand_id="b1", level="campaign", entity_id="c2", campaign_id="c2",
                      date=date(2024, 3, 13), spend=100, revenue=50, impressions=5000, clicks=40, conversions=1),
        # Outside "last 7 days"
        MetaDailyStat(brand_id="b1", level="campaign", entity_id="c1", campaign_id="c1",
                      date=date(2024, 3, 1), spend=999, revenue=0),
    ])
    db.commit()


def test_default_range_is_last_30_complete_days(db_session):
    service = ConsultantService(db_session, llm=LLMService())
    date_range = service.resolve_range("Where should I put more budget?", NOW)
    assert date_range.start == date(2024, 2, 14)
    assert date_range.end == date(2024, 3, 14)
    assert date_range.days == 30


def test_prompt_range_used(db_session):
    service = ConsultantService(db_session, llm=LLMService())
    date_range = service.resolve_range("how was yesterday", NOW)
    assert date_range.start == date_range.end == date(2024, 3, 14)


def test_rules_answer_names_campaigns(db_session):
    _seed(db_session)
    result = asyncio.run(ConsultantService(db_session, llm=LLMService()).answer("b1", "Recap the last 7 days", now=NOW))

    assert result["source"] == "rules"
    assert result["analysis"]["total_spend"] == 400
    assert "$400.00" in result["answer"]
    assert "Best campaign: Prospecting" in result["answer"]
    assert "Weakest campaign: Retargeting" in result["answer"]


def test_llm_answer_gets_brand_numbers(db_session):
    _seed(db_session)
    messages = FakeMessages("Shift budget from Retargeting to Prospecting.")
    llm = LLMService(client=SimpleNamespace(messages=messages))

    result = asyncio.run(ConsultantService(db_session, llm=llm).answer(
        "b1", "Recap the last 7 days", marketing_goal="profitable growth", now=NOW,
    ))
    assert result["source"] == "llm"
    assert result["answer"] == "Shift budget from Retargeting to Prospecting."
    assert "Prospecting" in messages.prompts[0]
    assert "profitable growth" in messages.prompts[0]
    assert "2024-03-08" in messages.prompts[0]


def test_database_error_still_answers(db_session, monkeypatch):
    service = ConsultantService(db_session, llm=LLMService())

    def _fail(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(service, "gather_analysis", _fail)
    result = asyncio.run(service.answer("b1", "How are we doing?", now=NOW))
    assert result["success"] is True
    assert "notice" in result
    assert result["answer"].startswith("No Meta ad spend recorded")


def test_slow_llm_answer_falls_back_to_rules(db_session, monkeypatch):
    _seed(db_session)
    monkeypatch.setattr(llm_service.settings, "llm_timeout_seconds", 0.05)
    messages = FakeMessages("Too late to matter.", delay=0.5)
    service = ConsultantService(db_session, llm=LLMService(client=SimpleNamespace(messages=messages)))

    async def _timed():
        started = time.monotonic()
        result = await service.answer("b1", "Recap the last 7 days", now=NOW)
        return result, time.monotonic() - started

    result, elapsed = asyncio.run(_timed())
    assert result["source"] == "rules"
    assert "Best campaign: Prospecting" in result["answer"]
    assert elapsed < 0.5
