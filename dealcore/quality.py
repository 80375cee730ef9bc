"""
Batch-level quality gate.

Every check runs (no early exit) so the buyer sees all problems at once.
A failed gate blocks scoring for the week.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Sequence
from .canonical import DealRecord, QualityReport, effective_cost, is_resolved_description
from .tables import MIN_DESCRIPTION_LEN, QUALITY_THRESHOLDS

logger = logging.getLogger(__name__)

# code -> (predicate "deal has the problem", label, remediation hint)
_CHECKS: List[tuple[str, Callable[[DealRecord], bool], str, str]] = [
    (
        "missing_cost",
        lambda d: effective_cost(d) is None,
        "missing cost",
        "fill the UCOST / NET UNIT COST column in the source documents",
    ),
    (
        "missing_ad_srp",
        lambda d: d.get("ad_srp") is None,
        "missing ad price",
        "fill the AD SRP column in the source documents",
    ),
    (
        "unresolved_description",
        lambda d: not is_resolved_description(d.get("description"), MIN_DESCRIPTION_LEN),
        "unresolved description",
        f"descriptions must have at least {MIN_DESCRIPTION_LEN} characters",
    ),
]


def validate_quality(deals: Sequence[DealRecord], thresholds: Dict[str, float] | None = None) -> QualityReport:
    thresholds = {**QUALITY_THRESHOLDS, **(thresholds or {})}
    total = len(deals)

    if total == 0:
        logger.warning("Quality gate failed: empty batch")
        return {
            "passed": False,
            "issues": [{
                "code": "empty_batch",
                "count": 0,
                "total": 0,
                "pct": 0.0,
                "threshold": 0.0,
                "message": "No deals found for this week. Upload at least one parsable document.",
                "item_codes": [],
            }],
            "stats": {"total": 0},
        }

    issues: List[Dict[str, Any]] = []
    stats: Dict[str, Any] = {"total": total}

    for code, has_problem, label, hint in _CHECKS:
        offenders = [d for d in deals if has_problem(d)]
        count = len(offenders)
        pct = count / total
        limit = float(thresholds.get(code, 0.0))
        stats[code] = count
        stats[f"{code}_pct"] = pct

        if pct > limit:
            issues.append({
                "code": code,
                "count": count,
                "total": total,
                "pct": pct,
                "threshold": limit,
                "message": f"{count} of {total} deals ({pct:.1%}) have {label} (limit {limit:.0%}); {hint}.",
                "item_codes": [d.get("item_code", "") for d in offenders],
            })

    passed = not issues
    if passed:
        logger.info("Quality gate passed for %d deals", total)
    else:
        logger.warning("Quality gate failed: %s", ", ".join(i["code"] for i in issues))
    return {"passed": passed, "issues": issues, "stats": stats}
