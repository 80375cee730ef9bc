from __future__ import annotations
import re
from typing import Any, Dict, List, Optional, Tuple
from .canonical import DealRecord, effective_cost

# fields counted when judging which copy of a deal is more complete
_COMPLETENESS_FIELDS = (
    "dept", "upc", "cost", "net_unit_cost", "srp", "ad_srp", "vendor_funding_pct",
    "mvmt", "competitor_price", "pack", "size", "promo_start", "promo_end",
)


def _norm_code(s: Any) -> str:
    # "000123 " / "123" / "123.0" -> "123"
    t = str(s or "").strip().upper()
    t = re.sub(r"\.0+$", "", t)
    t = re.sub(r"[^A-Z0-9]", "", t)
    return t.lstrip("0") or t


def _dedupe_key(d: DealRecord) -> Optional[str]:
    code = _norm_code(d.get("item_code"))
    if not code:
        return None
    return f"{code}|{d.get('upc') or ''}"


def _rank_for_keep(d: DealRecord) -> Tuple[int, int, int]:
    """
    Bigger is better:
      1) scoring inputs present (effective cost + ad price)
      2) number of filled fields
      3) description length
    Ties keep the copy seen first.
    """
    priced = int(effective_cost(d) is not None) + int(d.get("ad_srp") is not None)
    filled = sum(1 for f in _COMPLETENESS_FIELDS if d.get(f) not in (None, ""))
    dlen = len((d.get("description") or "").strip())
    return (priced, filled, dlen)


def _log_entry(kept: DealRecord, dropped: DealRecord, key: str) -> Dict[str, Any]:
    return {
        "reason": "duplicate_item",
        "key": key,
        "item_code": kept.get("item_code", ""),
        "upc": kept.get("upc") or "",
        "description": kept.get("description", ""),
        "kept_source": kept.get("source_file", ""),
        "kept_row": kept.get("source_row"),
        "dropped_source": dropped.get("source_file", ""),
        "dropped_row": dropped.get("source_row"),
    }


def dedupe_deals(deals: List[DealRecord]) -> Tuple[List[DealRecord], List[Dict[str, Any]]]:
    """
    Collapse deals with the same normalized item code + UPC (across documents of one week).

    Returns:
      - kept deals, in first-seen order
      - duplicates log (one entry per dropped row, naming what was kept)
    """
    kept: List[DealRecord] = []
    duplicates: List[Dict[str, Any]] = []
    seen: Dict[str, int] = {}

    for d in deals:
        key = _dedupe_key(d)
        if not key:
            kept.append(d)
            continue

        if key not in seen:
            seen[key] = len(kept)
            kept.append(d)
            continue

        kept_idx = seen[key]
        current = kept[kept_idx]
        if _rank_for_keep(d) > _rank_for_keep(current):
            kept[kept_idx] = d
            duplicates.append(_log_entry(d, current, key))
        else:
            duplicates.append(_log_entry(current, d, key))

    return kept, duplicates
