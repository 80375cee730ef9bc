"""
Week-level orchestration: many uploads -> one gated, scored batch.

Status values of score_week:
  "rejected" - the weight set failed check_weights, nothing was scored
  "blocked"  - the quality gate failed, nothing was scored
  "scored"   - scores, ranking and portfolio analysis are filled
"""
from __future__ import annotations
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple
from .canonical import DealRecord, ParseResult
from .dedupe import dedupe_deals
from .ingest import parse_file
from .quality import validate_quality
from .scoring import analyze_portfolio, check_weights, rank_scores, score_batch
from .tables import DEFAULT_WEIGHTS

logger = logging.getLogger(__name__)


def parse_documents(files: Iterable[Tuple[str, bytes]]) -> List[ParseResult]:
    """(filename, bytes) pairs -> one ParseResult each, input order kept."""
    results: List[ParseResult] = []
    seen: Dict[str, str] = {}
    for name, data in files:
        res = parse_file(data, name)
        fp = res.get("fingerprint")
        if fp and fp in seen:
            # same bytes uploaded twice: keep the result but contribute no deals
            res["errors"].append(f"Same content as {seen[fp]}; deals ignored")
            res["deals"] = []
            res["parsed_rows"] = 0
            if res["status"] == "parsed":
                res["status"] = "parsed_with_errors"
            logger.info("%s duplicates %s, skipped", name, seen[fp])
        elif fp:
            seen[fp] = name
        results.append(res)
    return results


def collect_deals(results: Iterable[ParseResult]) -> List[DealRecord]:
    deals: List[DealRecord] = []
    for res in results:
        deals.extend(res.get("deals") or [])
    return deals


def score_week(
    deals: List[DealRecord],
    weights: Optional[Dict[str, float]] = None,
    as_of: Optional[date] = None,
    dedupe: bool = True,
) -> Dict[str, Any]:
    weights = dict(DEFAULT_WEIGHTS) if weights is None else weights
    out: Dict[str, Any] = {
        "status": "scored",
        "problems": [],
        "deals": deals,
        "duplicates": [],
        "quality": None,
        "scores": [],
        "ranking": None,
        "portfolio": None,
    }

    problems = check_weights(weights)
    if problems:
        logger.warning("Weights rejected: %s", "; ".join(problems))
        out["status"] = "rejected"
        out["problems"] = problems
        return out

    if dedupe:
        deals, duplicates = dedupe_deals(deals)
        out["deals"] = deals
        out["duplicates"] = duplicates
        if duplicates:
            logger.info("Dropped %d duplicate deal rows", len(duplicates))

    quality = validate_quality(deals)
    out["quality"] = quality
    if not quality["passed"]:
        out["status"] = "blocked"
        out["problems"] = [i["message"] for i in quality["issues"]]
        return out

    scores = score_batch(deals, weights, as_of)
    out["scores"] = scores
    out["ranking"] = rank_scores(deals, scores)
    out["portfolio"] = analyze_portfolio(deals, scores)
    return out
