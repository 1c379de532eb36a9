"""
Campaign Recommendation Rules

Deterministic (no LLM) recommendation engine. Used as the fallback whenever
the LLM is unavailable, slow or returns something unusable, and as the
anomaly context handed to the LLM prompt otherwise.

The rules are an ordered list. The first rule whose predicate matches builds
the recommendation, so priority is simply list order:

    critical anomaly > high anomalies > ROAS/CPC/CTR bands > tracking > catch-all
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from app.config import get_settings
from app.services import metric_ratios
from app.utils.helpers import field_value, to_float, to_optional_float
from app.utils.logger import log

settings = get_settings()

ACTIONS = frozenset({
    "increase budget",
    "reduce budget",
    "increase cpc",
    "reduce cpc",
    "optimize targeting",
    "pause campaign",
    "restructure adsets",
    "pause underperforming ads",
    "scale top performers",
    "refresh creative",
    "expand audience",
    "narrow targeting",
    "optimize bidding",
    "fix conversion tracking",
})

SEVERITY_ORDER = {"critical": 0, "high": 1, "medium": 2}

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

BUDGET_OVERRUN_UTILIZATION = 95.0
BUDGET_OVERRUN_ROAS = 1.5
LOW_ENGAGEMENT_CTR = 0.5
LOW_ENGAGEMENT_IMPRESSIONS = 10_000
HIGH_CPC_WITH_CONVERSIONS = 8.0
DECLINE_WOW_DROP = -20.0

VERY_LOW_ROAS = 1.0
LOW_ROAS = 2.0
SPARE_BUDGET_UTILIZATION = 80.0
HIGH_CPC = 4.0
LOW_CTR = 1.0
LOW_CTR_IMPRESSIONS = 50_000
TRACKING_MIN_CLICKS = 10

BUDGET_CUT_MULTIPLIER = 0.6
BUDGET_SCALE_MULTIPLIER = 1.6
BID_CAP_MULTIPLIER = 0.7

SCALE_ENTITY_ROAS = 2.0
PAUSE_ENTITY_ROAS = 1.0


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass
class RuleInputs:
    """Campaign metrics the rules read. Every field defaults to 0."""
    spend: float = 0.0
    budget: float = 0.0
    impressions: float = 0.0
    clicks: float = 0.0
    conversions: float = 0.0
    revenue: float = 0.0
    ctr: float = 0.0
    cpc: float = 0.0
    roas: float = 0.0
    budget_utilization: float = 0.0
    trend: str = "stable"
    week_over_week_change: float = 0.0
    days: int = 7
    average_daily_spend: Optional[float] = None
    target_roas: float = field(default_factory=lambda: settings.target_roas)

    @property
    def daily_spend(self) -> float:
        """Recent average daily spend when known, else spend spread over ``days``"""
        if self.average_daily_spend is not None:
            return self.average_daily_spend
        return self.spend / max(self.days, 1)

    @classmethod
    def from_campaign(
        cls,
        campaign: Any,
        metrics: Optional[Dict] = None,
        days: int = 7,
        average_daily_spend: Optional[float] = None,
    ) -> "RuleInputs":
        """
        Build inputs from a campaign record (dict or ORM) and optional period
        metrics. Ratios missing from the record are derived from its raw sums.
        ``average_daily_spend`` comes from recent daily stats; without it the
        campaign's spend is treated as ``days`` worth of spend.
        """
        metrics = metrics or {}
        spend = to_float(field_value(campaign, "spend", field_value(campaign, "spent")))
        budget = to_float(field_value(campaign, "budget"))
        impressions = to_float(field_value(campaign, "impressions"))
        clicks = to_float(field_value(campaign, "clicks"))
        conversions = to_float(field_value(campaign, "conversions"))
        revenue = to_float(field_value(campaign, "revenue"))

        def _ratio(name: str, derived: float) -> float:
            value = to_optional_float(field_value(campaign, name))
            return derived if value is None else value

        trends = metrics.get("trends") or {}
        utilization = to_optional_float(metrics.get("budget_utilization"))
        return cls(
            spend=spend,
            budget=budget,
            impressions=impressions,
            clicks=clicks,
            conversions=conversions,
            revenue=revenue,
            ctr=_ratio("ctr", metric_ratios.ctr(clicks, impressions)),
            cpc=_ratio("cpc", metric_ratios.cpc(spend, clicks)),
            roas=_ratio("roas", metric_ratios.roas(revenue, spend)),
            budget_utilization=(
                metric_ratios.budget_utilization(spend, budget) if utilization is None else utilization
            ),
            trend=trends.get("roas_trend") or "stable",
            week_over_week_change=to_float(trends.get("week_over_week_change")),
            days=max(int(days or 1), 1),
            average_daily_spend=to_optional_float(average_daily_spend),
        )


@dataclass
class Anomaly:
    type: str
    severity: str  # critical | high | medium
    description: str
    impact: str

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class Recommendation:
    action: str
    reasoning: str
    impact: str
    confidence: int
    implementation: str
    forecast: str
    specific_actions: Optional[Dict[str, List[str]]] = None
    rule: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        if data["specific_actions"] is None:
            data.pop("specific_actions")
        return data


@dataclass
class Rule:
    name: str
    predicate: Callable[[RuleInputs, List[Anomaly]], bool]
    build: Callable[[RuleInputs, List[Anomaly]], Recommendation]


def _steps(*lines: str) -> str:
    return "\n".join(f"{i}. {line}" for i, line in enumerate(lines, start=1))


def _money(value: float) -> str:
    return f"${value:,.2f}"


# ---------------------------------------------------------------------------
# Anomaly detection
# ---------------------------------------------------------------------------

def detect_performance_anomalies(inputs: RuleInputs) -> List[Anomaly]:
    """Threshold checks over campaign metrics, most severe first"""
    anomalies: List[Anomaly] = []

    if inputs.budget_utilization > BUDGET_OVERRUN_UTILIZATION and inputs.roas < BUDGET_OVERRUN_ROAS:
        anomalies.append(Anomaly(
            type="budget_overrun",
            severity="high",
            description=(
                f"{inputs.budget_utilization:.0f}% of budget spent at {inputs.roas:.2f}x ROAS"
            ),
            impact=f"{_money(inputs.spend)} spent with little return; the budget is nearly exhausted",
        ))

    if inputs.conversions == 0 and inputs.spend > settings.zero_conversion_spend_floor:
        anomalies.append(Anomaly(
            type="zero_conversions",
            severity="critical",
            description=f"{_money(inputs.spend)} spent with zero conversions",
            impact=f"{_money(inputs.daily_spend)} per day is being spent without a single sale",
        ))

    if inputs.ctr < LOW_ENGAGEMENT_CTR and inputs.impressions > LOW_ENGAGEMENT_IMPRESSIONS:
        anomalies.append(Anomaly(
            type="low_engagement",
            severity="medium",
            description=f"CTR of {inputs.ctr:.2f}% across {inputs.impressions:,.0f} impressions",
            impact="Ads are being shown but not clicked; creative or audience is off",
        ))

    if inputs.cpc > HIGH_CPC_WITH_CONVERSIONS and inputs.conversions > 0:
        anomalies.append(Anomaly(
            type="high_cpc",
            severity="medium",
            description=f"CPC of {_money(inputs.cpc)} on a converting campaign",
            impact="Each conversion costs more than it should; margins are being squeezed",
        ))

    if inputs.trend == "declining" and inputs.week_over_week_change < DECLINE_WOW_DROP:
        anomalies.append(Anomaly(
            type="performance_decline",
            severity="high",
            description=f"ROAS down {abs(inputs.week_over_week_change):.1f}% week over week",
            impact="Performance is sliding; creative fatigue or audience saturation is likely",
        ))

    anomalies.sort(key=lambda a: SEVERITY_ORDER.get(a.severity, len(SEVERITY_ORDER)))
    return anomalies


# ---------------------------------------------------------------------------
# Forecast
# ---------------------------------------------------------------------------

def generate_performance_forecast(
    inputs: RuleInputs,
    budget_multiplier: float = 1.0,
    roas_change_pct: float = 0.0,
) -> str:
    """7-day projection after applying a budget multiplier and an expected ROAS change"""
    weekly_spend = inputs.daily_spend * 7 * budget_multiplier
    projected_roas = max(inputs.roas * (1 + roas_change_pct / 100), 0.0)
    projected_revenue = weekly_spend * projected_roas
    aov = metric_ratios.safe_ratio(inputs.revenue, inputs.conversions)
    projected_conversions = metric_ratios.safe_ratio(projected_revenue, aov)

    if weekly_spend <= 0:
        return "No spend projected for the next 7 days."
    return (
        f"Next 7 days: ~{_money(weekly_spend)} spend, ~{_money(projected_revenue)} revenue "
        f"at {projected_roas:.2f}x ROAS, ~{projected_conversions:.0f} conversions."
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def _has(anomalies: List[Anomaly], anomaly_type: str) -> bool:
    return any(a.type == anomaly_type for a in anomalies)


def _base_budget(inputs: RuleInputs) -> float:
    """Budget to scale from; falls back to daily spend when no budget is set"""
    return inputs.budget if inputs.budget > 0 else inputs.daily_spend


def _pause_for_critical(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    critical = [a for a in anomalies if a.severity == "critical"]
    return Recommendation(
        action="pause campaign",
        reasoning="; ".join(a.description for a in critical) + ". This needs to stop before it costs more.",
        impact=f"Saves ~{_money(inputs.daily_spend * 7)} over the next week",
        confidence=10,
        implementation=_steps(
            "Pause the campaign now",
            "Check the pixel and conversion events fire on the purchase page",
            "Review audience and creative before relaunching at a reduced budget",
        ),
        forecast=generate_performance_forecast(inputs, budget_multiplier=0.0),
    )


def _reduce_budget(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    new_budget = _base_budget(inputs) * BUDGET_CUT_MULTIPLIER
    return Recommendation(
        action="reduce budget",
        reasoning=(
            f"Budget is {inputs.budget_utilization:.0f}% used at only {inputs.roas:.2f}x ROAS."
        ),
        impact=f"Cuts weekly spend by ~{_money(inputs.daily_spend * 7 * (1 - BUDGET_CUT_MULTIPLIER))}",
        confidence=8,
        implementation=_steps(
            f"Lower the budget from {_money(_base_budget(inputs))} to {_money(new_budget)}",
            "Move the saved spend to the best performing ad sets",
            "Re-check ROAS after 3 days",
        ),
        forecast=generate_performance_forecast(inputs, BUDGET_CUT_MULTIPLIER, 10.0),
    )


def _refresh_creative_for_decline(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    return Recommendation(
        action="refresh creative",
        reasoning=(
            f"ROAS dropped {abs(inputs.week_over_week_change):.1f}% week over week, "
            "a typical sign of creative fatigue."
        ),
        impact=f"Recovering last week's ROAS would add ~{_money(inputs.daily_spend * 7 * inputs.roas * 0.2)} revenue per week",
        confidence=7,
        implementation=_steps(
            "Launch 2-3 new creatives in the strongest ad set",
            "Pause ads whose CTR fell the most",
            "Compare ROAS after 5 days",
        ),
        forecast=generate_performance_forecast(inputs, 1.0, 20.0),
    )


def _pause_very_low_roas(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    weekly_loss = inputs.daily_spend * 7 * (1 - inputs.roas)
    return Recommendation(
        action="pause campaign",
        reasoning=f"ROAS of {inputs.roas:.2f}x means every dollar spent returns less than a dollar.",
        impact=f"Stops a loss of ~{_money(weekly_loss)} per week",
        confidence=9,
        implementation=_steps(
            "Pause the campaign",
            "Review targeting, offer and landing page",
            "Relaunch with a smaller test budget",
        ),
        forecast=generate_performance_forecast(inputs, budget_multiplier=0.0),
    )


def _optimize_targeting(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    return Recommendation(
        action="optimize targeting",
        reasoning=f"ROAS of {inputs.roas:.2f}x is profitable but thin.",
        impact=f"Lifting ROAS to 2x would add ~{_money(inputs.daily_spend * 7 * (LOW_ROAS - inputs.roas))} revenue per week",
        confidence=7,
        implementation=_steps(
            "Exclude recent purchasers and low-intent placements",
            "Narrow interests or test a lookalike of top customers",
            "Review results after 7 days",
        ),
        forecast=generate_performance_forecast(inputs, 1.0, 25.0),
    )


def _increase_budget(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    new_budget = _base_budget(inputs) * BUDGET_SCALE_MULTIPLIER
    return Recommendation(
        action="increase budget",
        reasoning=(
            f"ROAS of {inputs.roas:.2f}x meets the {inputs.target_roas:.1f}x target "
            f"with only {inputs.budget_utilization:.0f}% of budget used."
        ),
        impact=f"~{_money(inputs.daily_spend * 7 * (BUDGET_SCALE_MULTIPLIER - 1) * inputs.roas)} extra revenue per week",
        confidence=8,
        implementation=_steps(
            f"Raise the budget from {_money(_base_budget(inputs))} to {_money(new_budget)}",
            "Increase in steps of no more than 20% per day",
            "Watch CPA daily for the first week",
        ),
        forecast=generate_performance_forecast(inputs, BUDGET_SCALE_MULTIPLIER, -10.0),
    )


def _reduce_cpc(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    bid_cap = inputs.cpc * BID_CAP_MULTIPLIER
    return Recommendation(
        action="reduce cpc",
        reasoning=f"CPC of {_money(inputs.cpc)} is above the {_money(HIGH_CPC)} ceiling.",
        impact=f"Same spend buys ~{(1 / BID_CAP_MULTIPLIER - 1) * 100:.0f}% more clicks",
        confidence=7,
        implementation=_steps(
            f"Set a bid cap of {_money(bid_cap)}",
            "Broaden placements to lower auction pressure",
            "Monitor delivery for 3-5 days",
        ),
        forecast=generate_performance_forecast(inputs, 1.0, 15.0),
    )


def _refresh_creative_for_ctr(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    return Recommendation(
        action="refresh creative",
        reasoning=(
            f"CTR of {inputs.ctr:.2f}% across {inputs.impressions:,.0f} impressions: "
            "people see the ads and scroll past."
        ),
        impact=f"Doubling CTR would add ~{inputs.clicks:,.0f} clicks at the same spend",
        confidence=6,
        implementation=_steps(
            "Test new hooks in the first 3 seconds of video",
            "Try a different offer or headline",
            "Pause the lowest CTR ads after 5 days",
        ),
        forecast=generate_performance_forecast(inputs, 1.0, 15.0),
    )


def _optimize_bidding(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    gap = inputs.target_roas - inputs.roas
    return Recommendation(
        action="optimize bidding",
        reasoning=f"ROAS of {inputs.roas:.2f}x is {gap:.2f}x short of the {inputs.target_roas:.1f}x target.",
        impact=f"Closing the gap adds ~{_money(inputs.daily_spend * 7 * gap)} revenue per week",
        confidence=6,
        implementation=_steps(
            f"Switch to a minimum ROAS bid strategy at {inputs.target_roas:.1f}x",
            "Consolidate ad sets with overlapping audiences",
            "Review after one full learning phase",
        ),
        forecast=generate_performance_forecast(inputs, 1.0, gap / inputs.roas * 100 if inputs.roas else 0.0),
    )


def _scale_top_performers(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    return Recommendation(
        action="scale top performers",
        reasoning=(
            f"ROAS of {inputs.roas:.2f}x beats the target but the budget is "
            f"{inputs.budget_utilization:.0f}% used."
        ),
        impact=f"Shifting 20% of spend to the best ad sets adds ~{_money(inputs.daily_spend * 7 * 0.2 * inputs.roas * 0.1)} revenue per week",
        confidence=7,
        implementation=_steps(
            "Move budget from the weakest ad sets into the top ones",
            "Duplicate the best ads into a new ad set",
            "Raise the campaign budget only if ROAS holds",
        ),
        forecast=generate_performance_forecast(inputs, 1.2, -5.0),
    )


def _fix_tracking(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    return Recommendation(
        action="fix conversion tracking",
        reasoning=f"{inputs.clicks:,.0f} clicks and not one conversion recorded.",
        impact="Without conversions recorded, every other metric here is unreliable",
        confidence=8,
        implementation=_steps(
            "Check the Meta pixel fires a Purchase event on the order confirmation page",
            "Confirm the Conversions API is connected",
            "Place a test order and verify it in Events Manager",
        ),
        forecast=generate_performance_forecast(inputs),
    )


def _catch_all(inputs: RuleInputs, anomalies: List[Anomaly]) -> Recommendation:
    return Recommendation(
        action="pause campaign",
        reasoning="Not enough signal to justify continued spend in the current setup.",
        impact=f"Saves ~{_money(inputs.daily_spend * 7)} per week until the campaign is redesigned",
        confidence=5,
        implementation=_steps(
            "Pause the campaign",
            "Redesign audience, creative and offer",
            "Relaunch with a small test budget",
        ),
        forecast=generate_performance_forecast(inputs, budget_multiplier=0.0),
    )


RULES: List[Rule] = [
    Rule("critical_anomaly", lambda i, a: any(x.severity == "critical" for x in a), _pause_for_critical),
    Rule("budget_overrun", lambda i, a: _has(a, "budget_overrun"), _reduce_budget),
    Rule("performance_decline", lambda i, a: _has(a, "performance_decline"), _refresh_creative_for_decline),
    Rule("very_low_roas", lambda i, a: i.spend > 0 and i.roas < VERY_LOW_ROAS, _pause_very_low_roas),
    Rule("low_roas", lambda i, a: VERY_LOW_ROAS <= i.roas < LOW_ROAS, _optimize_targeting),
    Rule(
        "scale_up",
        lambda i, a: i.roas >= i.target_roas and i.budget_utilization < SPARE_BUDGET_UTILIZATION,
        _increase_budget,
    ),
    Rule("high_cpc", lambda i, a: i.cpc > HIGH_CPC, _reduce_cpc),
    Rule("low_ctr", lambda i, a: i.ctr < LOW_CTR and i.impressions > LOW_CTR_IMPRESSIONS, _refresh_creative_for_ctr),
    Rule("below_target_roas", lambda i, a: LOW_ROAS <= i.roas < i.target_roas, _optimize_bidding),
    Rule("at_target_roas", lambda i, a: i.roas >= i.target_roas, _scale_top_performers),
    Rule(
        "tracking_gap",
        lambda i, a: i.clicks > TRACKING_MIN_CLICKS and i.conversions == 0,
        _fix_tracking,
    ),
    Rule("catch_all", lambda i, a: True, _catch_all),
]


# ---------------------------------------------------------------------------
# Ad set / ad level actions
# ---------------------------------------------------------------------------

def _entity_name(entity: Any, *names: str) -> str:
    for name in names:
        value = field_value(entity, name)
        if value:
            return str(value)
    return "Unnamed"


def _entity_trend(entity: Any) -> str:
    historical = field_value(entity, "historical") or {}
    return field_value(historical, "trend") or field_value(entity, "trend") or "stable"


def build_specific_actions(adsets: Sequence[Any] = (), ads: Sequence[Any] = ()) -> Dict[str, List[str]]:
    """Which ad sets to scale/optimize/pause and which ads to pause/duplicate"""
    actions: Dict[str, List[str]] = {
        "adsets_to_scale": [],
        "adsets_to_optimize": [],
        "adsets_to_pause": [],
        "ads_to_pause": [],
        "ads_to_duplicate": [],
    }
    for adset in adsets or ():
        name = _entity_name(adset, "adset_name", "name", "adset_id")
        roas_value = to_float(field_value(adset, "roas"))
        trend = _entity_trend(adset)
        if trend == "improving" and roas_value > SCALE_ENTITY_ROAS:
            actions["adsets_to_scale"].append(name)
        elif roas_value < PAUSE_ENTITY_ROAS:
            actions["adsets_to_pause"].append(name)
        elif trend == "declining":
            actions["adsets_to_optimize"].append(name)

    for ad in ads or ():
        name = _entity_name(ad, "ad_name", "name", "ad_id")
        roas_value = to_float(field_value(ad, "roas"))
        trend = _entity_trend(ad)
        if trend == "improving" and roas_value > SCALE_ENTITY_ROAS:
            actions["ads_to_duplicate"].append(name)
        elif trend == "declining" or roas_value < PAUSE_ENTITY_ROAS:
            actions["ads_to_pause"].append(name)

    return actions


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def determine_primary_recommendation(
    inputs: Optional[RuleInputs] = None,
    anomalies: Optional[List[Anomaly]] = None,
    adsets: Sequence[Any] = (),
    ads: Sequence[Any] = (),
) -> Recommendation:
    """
    Walk RULES in order and return the first match. Never raises: a rule
    that blows up is logged and skipped, and the catch-all always matches.
    """
    inputs = inputs or RuleInputs()
    if anomalies is None:
        anomalies = detect_performance_anomalies(inputs)

    recommendation = None
    for rule in RULES:
        try:
            if rule.predicate(inputs, anomalies):
                recommendation = rule.build(inputs, anomalies)
                recommendation.rule = rule.name
                break
        except Exception as e:
            log.error(f"Recommendation rule '{rule.name}' failed: {str(e)}")

    if recommendation is None:
        recommendation = _catch_all(RuleInputs(), [])
        recommendation.rule = "catch_all"

    if adsets or ads:
        recommendation.specific_actions = build_specific_actions(adsets, ads)

    log.debug(f"Rule engine chose '{recommendation.action}' via {recommendation.rule}")
    return recommendation
