from __future__ import annotations
import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional, Sequence
import numpy as np
import pandas as pd
from .canonical import DealRecord, ScoreRecord, effective_cost, margin_fraction, margin_pct, total_scan
from .tables import (
    COMPETITIVE_BEHIND_SCORE, COMPETITIVE_BUCKETS, COMPETITIVE_DEFAULT_SCORE, DEFAULT_MARGIN_FLOOR,
    DEFAULT_MVMT, DEFAULT_WEIGHTS, DEPT_MONTH_BOOST, FUNDING_ANY_SCORE, FUNDING_BUCKETS,
    HEALTH_BONUS, HEALTH_KEYWORDS, HERO_SCORE, HOLIDAY_WINDOWS, MARGIN_CEILING, MARGIN_FLOORS,
    NEW_ITEM_KEYWORDS, PRIVATE_LABEL_KEYWORDS, PRIVATE_LABEL_MULTIPLIER, SCORE_TIERS,
    SEASONAL_KEYWORDS, SEASONAL_MULTIPLIER_RANGE, SKIP_TIER, STRATEGIC_CAP, STRATEGIC_KEYWORDS,
    SUMMER_KEYWORDS, SUMMER_MONTHS, SUMMER_MULTIPLIER, THEME_BASE, TIMING_BUCKETS,
    TIMING_DEFAULT_SCORE, TIMING_FAR_SCORE, VELOCITY_BUCKETS, VELOCITY_FLOOR_SCORE, WEIGHT_KEYS,
)
from .utils import load_json, save_json, weights_path

logger = logging.getLogger(__name__)

WEIGHT_SUM_TOLERANCE = 0.01
# =========================

# Weights
# =========================
def check_weights(weights: Dict[str, Any]) -> List[str]:
    """
    Problems with a caller-supplied weight set; [] means usable.
    score_deal itself never validates: totals scale with the weight sum.
    """
    problems: List[str] = []
    if not isinstance(weights, dict):
        return ["Weights must be a mapping of component -> fraction"]

    for k in weights:
        if k not in WEIGHT_KEYS:
            problems.append(f"Unknown weight: {k}")
    for k in WEIGHT_KEYS:
        if k not in weights:
            problems.append(f"Missing weight: {k}")

    total = 0.0
    for k in WEIGHT_KEYS:
        if k not in weights:
            continue
        try:
            v = float(weights[k])
        except (TypeError, ValueError):
            problems.append(f"Weight {k} is not a number")
            continue
        if v < 0:
            problems.append(f"Weight {k} is negative")
        total += v

    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        problems.append(f"Weights sum to {total:.2f}, expected 1.00")
    return problems


def load_saved_weights() -> Dict[str, float]:
    saved = load_json(weights_path(), {})
    if not isinstance(saved, dict):
        return dict(DEFAULT_WEIGHTS)
    out = dict(DEFAULT_WEIGHTS)
    for k in WEIGHT_KEYS:
        if k in saved:
            try:
                out[k] = float(saved[k])
            except (TypeError, ValueError):
                logger.warning("Ignoring saved weight %s=%r", k, saved[k])
    return out


def save_weights(weights: Dict[str, float]) -> None:
    save_json(weights_path(), {k: float(weights[k]) for k in WEIGHT_KEYS if k in weights})
# =========================

# Components (0..100 each)
# =========================
def _desc(deal: DealRecord) -> str:
    return (deal.get("description") or "").lower()


def _bucket(value: float, buckets, below: float) -> float:
    for minimum, score in buckets:
        if value >= minimum:
            return score
    return below


def margin_score(deal: DealRecord) -> float:
    m = margin_fraction(deal)
    if m is None:
        return 0.0
    floor = MARGIN_FLOORS.get(deal.get("dept") or "", DEFAULT_MARGIN_FLOOR)
    if m < floor:
        return 0.0
    if m >= MARGIN_CEILING:
        return 100.0
    return 50.0 + (m - floor) / (MARGIN_CEILING - floor) * 50.0


def velocity_score(deal: DealRecord) -> float:
    mvmt = deal.get("mvmt")
    return _bucket(DEFAULT_MVMT if mvmt is None else mvmt, VELOCITY_BUCKETS, VELOCITY_FLOOR_SCORE)


def funding_score(deal: DealRecord) -> float:
    f = deal.get("vendor_funding_pct")
    if f is None:
        return 0.0
    return _bucket(f, FUNDING_BUCKETS, FUNDING_ANY_SCORE if f > 0 else 0.0)


def _in_window(day: date, start: tuple, end: tuple) -> bool:
    return start <= (day.month, day.day) <= end


def theme_score(deal: DealRecord, as_of: date) -> float:
    desc = _desc(deal)
    score = THEME_BASE

    for kw, boost in SEASONAL_KEYWORDS.get(as_of.month, []):
        if kw in desc:
            score += boost

    for window in HOLIDAY_WINDOWS:
        if _in_window(as_of, window["start"], window["end"]):
            for kw, boost in window["keywords"]:
                if kw in desc:
                    score += boost

    for kw in HEALTH_KEYWORDS:
        if kw in desc:
            score += HEALTH_BONUS

    return min(100.0, score)


def timing_score(deal: DealRecord, as_of: date) -> float:
    start = deal.get("promo_start")
    if start is None:
        return TIMING_DEFAULT_SCORE
    days = abs((start - as_of).days)
    for max_days, score in TIMING_BUCKETS:
        if days <= max_days:
            return score
    return TIMING_FAR_SCORE


def competitive_score(deal: DealRecord) -> float:
    comp = deal.get("competitor_price")
    ad = deal.get("ad_srp")
    if comp is None or ad is None or comp <= 0:
        return COMPETITIVE_DEFAULT_SCORE
    advantage = (comp - ad) / comp
    return _bucket(advantage, COMPETITIVE_BUCKETS, COMPETITIVE_BEHIND_SCORE)


def compute_components(deal: DealRecord, as_of: date) -> Dict[str, float]:
    return {
        "margin": margin_score(deal),
        "velocity": velocity_score(deal),
        "funding": funding_score(deal),
        "theme": theme_score(deal, as_of),
        "timing": timing_score(deal, as_of),
        "competitive": competitive_score(deal),
    }
# =========================

# Multipliers
# =========================
def seasonal_multiplier(deal: DealRecord, as_of: date) -> float:
    desc = _desc(deal)
    mult = 1.0
    if as_of.month in SUMMER_MONTHS and any(kw in desc for kw in SUMMER_KEYWORDS):
        mult = SUMMER_MULTIPLIER
    boost = DEPT_MONTH_BOOST.get(deal.get("dept") or "", {}).get(as_of.month, 0)
    lo, hi = SEASONAL_MULTIPLIER_RANGE
    return float(np.clip(mult + boost / 100.0, lo, hi))


def strategic_multiplier(deal: DealRecord) -> float:
    desc = _desc(deal)
    mult = 1.0
    for keywords, bonus in STRATEGIC_KEYWORDS:
        if any(kw in desc for kw in keywords):
            mult += bonus
    return min(STRATEGIC_CAP, mult)


def historical_multiplier(deal: DealRecord) -> float:
    # rough performance estimate from movement x margin
    mvmt = deal.get("mvmt")
    mvmt = DEFAULT_MVMT if mvmt is None else mvmt
    m = margin_pct(deal)
    if mvmt > 2.5 and m > 20:
        return 1.25
    if mvmt > 2.0 and m > 15:
        return 1.15
    if mvmt < 1.5 or m < 10:
        return 0.9
    return 1.0


def _has_word(desc: str, kw: str) -> bool:
    return re.search(rf"\b{re.escape(kw)}\b", desc) is not None


def new_item_multiplier(deal: DealRecord) -> float:
    desc = _desc(deal)
    for keywords, mult in NEW_ITEM_KEYWORDS:
        if any(_has_word(desc, kw) for kw in keywords):
            return mult
    return 1.0


def compute_multipliers(deal: DealRecord, as_of: date) -> Dict[str, float]:
    out = {
        "seasonal": seasonal_multiplier(deal, as_of),
        "strategic": strategic_multiplier(deal),
        "historical": historical_multiplier(deal),
        "new_item": new_item_multiplier(deal),
    }
    desc = _desc(deal)
    if any(kw in desc for kw in PRIVATE_LABEL_KEYWORDS):
        out["private_label"] = PRIVATE_LABEL_MULTIPLIER
    return out
# =========================

# Reasons
# =========================
def build_reasons(deal: DealRecord, components: Dict[str, float], multipliers: Dict[str, float]) -> List[str]:
    reasons: List[str] = []
    insights: List[str] = []

    m = margin_pct(deal)
    if components["margin"] >= 80:
        reasons.append(f"Strong margin of {m:.1f}% exceeds department standards.")
        insights.append("optimal profitability")
    elif components["margin"] < 40:
        reasons.append(f"Low margin of {m:.1f}% below optimal levels.")
        if m > 15:
            insights.append("price optimization opportunity")

    if components["velocity"] >= 80:
        mvmt = deal.get("mvmt")
        mvmt = DEFAULT_MVMT if mvmt is None else mvmt
        reasons.append(f"High velocity multiplier of {mvmt:.1f}x indicates strong sales potential.")
        insights.append("high turnover potential")
    elif components["velocity"] < 40:
        insights.append("consider promotional support to boost velocity")

    if components["funding"] >= 70:
        pct = (deal.get("vendor_funding_pct") or 0.0) * 100
        reasons.append(f"Vendor funding of {pct:.0f}% significantly improves net profitability.")
        insights.append("strong vendor partnership")
    elif components["funding"] == 0:
        reasons.append("No vendor funding support reduces deal attractiveness.")
        insights.append("negotiate vendor funding")

    if components["theme"] >= 80:
        reasons.append("Excellent seasonal/thematic alignment enhances promotional effectiveness.")
        insights.append("strong seasonal fit")
    elif components["theme"] >= 60:
        insights.append("good thematic fit")

    if components["competitive"] >= 80:
        reasons.append("Strong competitive pricing advantage drives market share growth.")
        insights.append("price leadership")
    elif components["competitive"] < 40:
        insights.append("priced above competition")

    if multipliers.get("new_item", 1.0) > 1.1:
        insights.append("new item potential")
    if multipliers.get("strategic", 1.0) > 1.0:
        insights.append("strategic category value")
    if components["timing"] >= 80:
        insights.append("promo starts soon")

    if insights:
        reasons.append(f"Insights: {'; '.join(insights)}.")
    return reasons
# =========================

# Scoring
# =========================
def score_deal(
    deal: DealRecord,
    weights: Optional[Dict[str, float]] = None,
    as_of: Optional[date] = None,
) -> ScoreRecord:
    """
    Six weighted components x multipliers, clamped to [0, 100].

    Pure function of (deal, weights, as_of). Weights are used as given:
    a set that does not sum to 1.0 scales the total; run check_weights first.
    """
    weights = DEFAULT_WEIGHTS if weights is None else weights
    as_of = as_of or date.today()

    components = compute_components(deal, as_of)
    multipliers = compute_multipliers(deal, as_of)

    weighted = sum(components[k] * float(weights.get(k, 0.0)) for k in WEIGHT_KEYS)
    total = float(np.clip(weighted * float(np.prod(list(multipliers.values()))), 0.0, 100.0))

    return {
        "item_code": deal.get("item_code", ""),
        "total": round(total, 2),
        "components": {k: round(v, 2) for k, v in components.items()},
        "multipliers": {k: round(v, 4) for k, v in multipliers.items()},
        "reasons": build_reasons(deal, components, multipliers),
    }


def score_batch(
    deals: Sequence[DealRecord],
    weights: Optional[Dict[str, float]] = None,
    as_of: Optional[date] = None,
) -> List[ScoreRecord]:
    as_of = as_of or date.today()
    scores = [score_deal(d, weights, as_of) for d in deals]
    logger.info("Scored %d deals (as of %s)", len(scores), as_of.isoformat())
    return scores


def interpret_score(total: float) -> str:
    for cut, label in SCORE_TIERS:
        if total >= cut:
            return label
    return SKIP_TIER
# =========================

# Ranking / portfolio
# =========================
RANK_COLUMNS = [
    "rank", "item_code", "description", "dept", "total", "tier",
    "margin", "velocity", "funding", "theme", "timing", "competitive",
    "cost", "ad_srp", "margin_pct", "vendor_funding_pct", "mvmt", "total_scan", "reasons", "source_file",
]


def rank_scores(deals: Sequence[DealRecord], scores: Sequence[ScoreRecord]) -> pd.DataFrame:
    """
    Deals + their scores (same order) -> ranking table.
    Sort: total desc, margin desc, funding desc, item code asc (stable).
    """
    rows = []
    for deal, sc in zip(deals, scores):
        comp = sc["components"]
        rows.append({
            "item_code": sc["item_code"],
            "description": deal.get("description", ""),
            "dept": deal.get("dept", ""),
            "total": sc["total"],
            "tier": interpret_score(sc["total"]),
            **{k: comp.get(k, 0.0) for k in WEIGHT_KEYS},
            "cost": effective_cost(deal),
            "ad_srp": deal.get("ad_srp"),
            "margin_pct": round(margin_pct(deal), 1),
            "vendor_funding_pct": deal.get("vendor_funding_pct"),
            "mvmt": deal.get("mvmt"),
            "total_scan": total_scan(deal),
            "reasons": " ".join(sc["reasons"]),
            "source_file": deal.get("source_file", ""),
        })

    if not rows:
        return pd.DataFrame(columns=RANK_COLUMNS)

    df = pd.DataFrame(rows)
    df = df.sort_values(
        ["total", "margin", "funding", "item_code"],
        ascending=[False, False, False, True],
        kind="mergesort",
    ).reset_index(drop=True)
    df.insert(0, "rank", df.index + 1)
    return df[RANK_COLUMNS]


def analyze_portfolio(deals: Sequence[DealRecord], scores: Sequence[ScoreRecord]) -> Dict[str, List[str]]:
    recommendations: List[str] = []
    risk_factors: List[str] = []
    optimization: List[str] = []

    if not deals:
        return {"recommendations": recommendations, "risk_factors": risk_factors, "optimization": optimization}

    heroes = sum(1 for s in scores if s["total"] >= HERO_SCORE)
    hero_ratio = heroes / len(deals)
    if hero_ratio > 0.3:
        recommendations.append("Strong hero item selection - excellent promotional foundation")
    elif hero_ratio < 0.15:
        risk_factors.append("Low hero item ratio may impact promotional effectiveness")
        optimization.append("Focus on improving deal quality through better margins or vendor funding")

    avg_margin = float(np.mean([margin_pct(d) for d in deals]))
    if avg_margin < 18:
        risk_factors.append("Below-average portfolio margin may impact profitability")
        optimization.append("Negotiate better costs or adjust promotional pricing strategy")

    return {"recommendations": recommendations, "risk_factors": risk_factors, "optimization": optimization}
