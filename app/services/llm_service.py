"""
LLM Service for AI-Powered Campaign Recommendations
Turns campaign, ad set and ad performance into a structured recommendation
"""
import asyncio
import json
import re
from typing import Dict, List, Optional, Sequence

from anthropic import Anthropic

from app.config import get_settings
from app.services.recommendation_rules import ACTIONS, Anomaly
from app.utils.logger import log

settings = get_settings()

SYSTEM_PROMPT = (
    "You are an expert Meta advertising strategist focused on actionable, "
    "data-driven recommendations. Always respond with valid JSON only."
)

_JSON_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class LLMService:
    """
    Service for generating campaign recommendations and answers using Claude
    """

    def __init__(self, client=None):
        self.client = client
        self.enabled = client is not None

        if client is None and settings.enable_llm_insights and settings.anthropic_api_key:
            try:
                self.client = Anthropic(api_key=settings.anthropic_api_key)
                self.enabled = True
                log.info("LLM Service initialized with Claude")
            except Exception as e:
                log.error(f"Failed to initialize Anthropic client: {str(e)}")
                self.enabled = False
        elif client is None:
            log.info("LLM insights disabled (no API key or feature disabled)")

    def is_available(self) -> bool:
        """Check if LLM service is available"""
        return self.enabled

    def _complete(self, prompt: str, system: Optional[str] = None) -> str:
        kwargs = {
            "model": settings.llm_model,
            "max_tokens": settings.llm_max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        response = self.client.messages.create(**kwargs)
        return response.content[0].text

    # ------------------------------------------------------------------
    # Campaign recommendation
    # ------------------------------------------------------------------

    async def generate_campaign_recommendation(
        self,
        campaign: Dict,
        metrics: Dict,
        history: Dict,
        adsets: Sequence[Dict] = (),
        ads: Sequence[Dict] = (),
        anomalies: Sequence[Anomaly] = (),
        specific_actions: Optional[Dict[str, List[str]]] = None,
    ) -> Optional[Dict]:
        """
        Ask the model for one recommendation.

        Returns None on timeout, API error or unusable output so the caller
        can fall back to the rule engine.
        """
        if not self.enabled:
            return None

        try:
            prompt = self._build_campaign_prompt(campaign, metrics, history, adsets, ads, anomalies, specific_actions)
            raw = await asyncio.wait_for(
                asyncio.to_thread(self._complete, prompt, SYSTEM_PROMPT),
                timeout=settings.llm_timeout_seconds,
            )
        except asyncio.TimeoutError:
            log.warning(f"LLM recommendation timed out after {settings.llm_timeout_seconds}s")
            return None
        except Exception as e:
            log.error(f"Error generating campaign recommendation: {str(e)}")
            return None

        recommendation = self.parse_recommendation(raw)
        if recommendation is None:
            log.warning("LLM returned an unusable recommendation, falling back to rules")
        else:
            log.info(f"Generated campaign recommendation via LLM: {recommendation['action']}")
        return recommendation

    @staticmethod
    def parse_recommendation(raw: Optional[str]) -> Optional[Dict]:
        """Validate model output. Anything malformed is None."""
        if not raw:
            return None
        fenced = _JSON_FENCE.search(raw)
        text = fenced.group(1) if fenced else raw
        try:
            data = json.loads(text.strip())
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None

        action = str(data.get("action") or "").strip().lower()
        reasoning = str(data.get("reasoning") or "").strip()
        if not action or not reasoning or action not in ACTIONS:
            return None

        try:
            confidence = int(float(data.get("confidence", 5)))
        except (TypeError, ValueError):
            confidence = 5

        implementation = data.get("implementation") or ""
        if isinstance(implementation, list):
            implementation = "\n".join(f"{i}. {step}" for i, step in enumerate(implementation, start=1))

        recommendation = {
            "action": action,
            "reasoning": reasoning,
            "impact": str(data.get("impact") or ""),
            "confidence": max(1, min(10, confidence)),
            "implementation": str(implementation),
            "forecast": str(data.get("forecast") or ""),
        }
        if isinstance(data.get("specific_actions"), dict):
            recommendation["specific_actions"] = data["specific_actions"]
        return recommendation

    def _build_campaign_prompt(
        self,
        campaign: Dict,
        metrics: Dict,
        history: Dict,
        adsets: Sequence[Dict],
        ads: Sequence[Dict],
        anomalies: Sequence[Anomaly],
        specific_actions: Optional[Dict[str, List[str]]],
    ) -> str:
        trends = metrics.get("trends", {})
        consistency = metrics.get("consistency", {})
        history_trends = history.get("trends", {})

        adset_lines = "\n".join(
            f"- {a.get('adset_name')} ({a.get('status')}): spent ${a.get('spent') or 0:,.2f}, "
            f"CTR {a.get('ctr') or 0:.2f}%, CPC ${a.get('cpc') or 0:.2f}, ROAS {a.get('roas') or 0:.2f}x, "
            f"trend {a['historical']['trend']} ({a['historical']['week_over_week_change']:+.1f}% WoW)"
            for a in adsets
        ) or "None"
        ad_lines = "\n".join(
            f"- {a.get('ad_name')} ({a.get('status')}): CTR {a.get('ctr') or 0:.2f}%, "
            f"ROAS {a.get('roas') or 0:.2f}x, trend {a['historical']['trend']} "
            f"({a['historical']['week_over_week_change']:+.1f}% WoW)"
            for a in ads
        ) or "None"
        anomaly_lines = "\n".join(
            f"- [{a.severity.upper()}] {a.type}: {a.description}" for a in anomalies
        ) or "None"
        actions = specific_actions or {}

        return f"""Analyze this Meta campaign and give ONE recommendation.

CAMPAIGN:
Name: {campaign.get('campaign_name')}
Objective: {campaign.get('objective')}
Status: {campaign.get('status')}
Budget: ${campaign.get('budget') or 0:,.2f}, Spent: ${campaign.get('spent') or 0:,.2f} ({metrics.get('budget_utilization', 0):.1f}% utilization)
Impressions: {campaign.get('impressions') or 0:,.0f}, Clicks: {campaign.get('clicks') or 0:,.0f}, Conversions: {campaign.get('conversions', 0)}
CTR: {campaign.get('ctr') or 0:.2f}%, CPC: ${campaign.get('cpc') or 0:.2f}, ROAS: {campaign.get('roas') or 0:.2f}x
Conversion rate: {metrics.get('conversion_rate', 0):.2f}%

7-DAY TRENDS:
Spend: {trends.get('spend_trend')} ({history_trends.get('spend_trend', 0):+.1f}% vs previous week)
CTR: {trends.get('ctr_trend')}
ROAS: {trends.get('roas_trend')} ({history_trends.get('performance_trend', 0):+.1f}% WoW)
Consistency: {'Stable' if consistency.get('is_stable') else 'Volatile'} ({consistency.get('volatility_score', 0):.1f}% volatility)

ASSESSMENT:
Grade: {metrics.get('performance_grade')}, Cost efficiency: {metrics.get('cost_efficiency')}, Reach: {metrics.get('audience_reach')}
Key issues: {', '.join(metrics.get('key_issues', [])) or 'None'}
Strengths: {', '.join(metrics.get('strengths', [])) or 'None'}

DETECTED ANOMALIES:
{anomaly_lines}

AD SETS ({len(adsets)}):
{adset_lines}

ADS ({len(ads)}):
{ad_lines}

CANDIDATES:
Ad sets to scale: {', '.join(actions.get('adsets_to_scale', [])) or 'None'}
Ad sets to pause: {', '.join(actions.get('adsets_to_pause', [])) or 'None'}
Ads to pause: {', '.join(actions.get('ads_to_pause', [])) or 'None'}
Ads to duplicate: {', '.join(actions.get('ads_to_duplicate', [])) or 'None'}

Respond with JSON only:
{{
  "action": "one of: {' | '.join(sorted(ACTIONS))}",
  "reasoning": "why, citing the numbers above",
  "impact": "expected outcome with numbers",
  "confidence": 1-10,
  "implementation": "numbered steps naming specific ad sets / ads",
  "forecast": "projected change over the next 7 days",
  "specific_actions": {{
    "adsets_to_scale": [], "adsets_to_optimize": [], "adsets_to_pause": [],
    "ads_to_pause": [], "ads_to_duplicate": []
  }}
}}
"""

    # ------------------------------------------------------------------
    # Marketing consultant
    # ------------------------------------------------------------------

    async def answer_marketing_question(
        self,
        question: str,
        analysis: Dict,
        marketing_goal: Optional[str] = None,
    ) -> Optional[str]:
        """
        Answer a free-text marketing question from the brand's own numbers.

        Returns None on timeout or API error.
        """
        if not self.enabled:
            return None

        try:
            context = json.dumps(analysis, indent=2, default=str)
            prompt = f"""You're a performance marketing consultant for an e-commerce brand.

Question: {question}
Marketing goal: {marketing_goal or 'not specified'}

CRITICAL: Only use numbers from the data below. Do NOT invent statistics.
Platform-attributed revenue and storefront revenue are different figures; never add them together.

Data:
{context}

Answer in 3-5 short paragraphs with specific, prioritized actions."""

            answer = await asyncio.wait_for(
                asyncio.to_thread(self._complete, prompt),
                timeout=settings.llm_timeout_seconds,
            )
            log.info("Answered marketing question via LLM")
            return answer

        except asyncio.TimeoutError:
            log.warning(f"LLM marketing answer timed out after {settings.llm_timeout_seconds}s")
            return None
        except Exception as e:
            log.error(f"Error answering marketing question: {str(e)}")
            return None
