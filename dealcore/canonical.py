"""
Canonical shapes shared by the whole pipeline.

DealRecord is the normalized, layout-agnostic representation of one vendor
deal row. Every layout parser, the generic mapper and the intake of externally
extracted records must produce it before gating and scoring.

Numeric fields are Optional on purpose: None means "no data" and switches the
dependent scoring rule to its documented default, 0.0 is a real value.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, TypedDict


class DealRecord(TypedDict, total=False):
    item_code: str
    description: str
    dept: str
    upc: Optional[str]

    cost: Optional[float]
    net_unit_cost: Optional[float]
    srp: Optional[float]
    ad_srp: Optional[float]
    vendor_funding_pct: Optional[float]
    mvmt: Optional[float]

    ad_scan: Optional[float]
    tpr_scan: Optional[float]
    edlc_scan: Optional[float]

    competitor_price: Optional[float]
    pack: Optional[str]
    size: Optional[str]

    promo_start: Optional[date]
    promo_end: Optional[date]

    source_file: Optional[str]
    source_row: Optional[int]
    source_ref: Optional[Dict[str, Any]]


class ScoreRecord(TypedDict):
    item_code: str
    total: float
    components: Dict[str, float]
    multipliers: Dict[str, float]
    reasons: List[str]


class ParseResult(TypedDict, total=False):
    source_file: str
    detected_type: str
    header_row: Optional[int]
    deals: List[DealRecord]
    total_rows: int
    parsed_rows: int
    skipped_rows: int
    failed_rows: int
    errors: List[str]
    status: str
    low_confidence: bool
    needs_extraction: bool
    fingerprint: Optional[str]


class QualityReport(TypedDict):
    passed: bool
    issues: List[Dict[str, Any]]
    stats: Dict[str, Any]


def effective_cost(deal: DealRecord) -> Optional[float]:
    # net unit cost wins; plain cost is the fallback
    net = deal.get("net_unit_cost")
    if net is not None:
        return net
    return deal.get("cost")


def margin_fraction(deal: DealRecord) -> Optional[float]:
    cost = effective_cost(deal)
    ad = deal.get("ad_srp")
    if cost is None or ad is None or ad == 0:
        return None
    return (ad - cost) / ad


def margin_pct(deal: DealRecord) -> float:
    """Margin in percent units for display; 0.0 when it cannot be computed."""
    m = margin_fraction(deal)
    return 0.0 if m is None else m * 100


def total_scan(deal: DealRecord) -> Optional[float]:
    vals = [deal.get(k) for k in ("ad_scan", "tpr_scan", "edlc_scan")]
    vals = [v for v in vals if v is not None]
    if not vals:
        return None
    return float(sum(vals))


def is_resolved_description(desc: Optional[str], min_len: int) -> bool:
    return bool(desc) and len(desc.strip()) >= min_len
