from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
from rapidfuzz import fuzz
from .canonical import DealRecord, ParseResult
from .header_detect import Grid, as_grid, find_header_row, match_layout
from .tables import (
    DEPT_SYNONYMS, EXTRACTED_FIELD_KEYS, FUZZY_HEADER_THRESHOLD, GENERIC_HEADER_VARIANTS,
    GENERIC_SUBSTRING_ORDER, GENERIC_SYNONYMS, LAYOUT_FIELDS, MAX_HEADER_SCAN_ROWS,
    MIN_CONFIDENT_ROWS, MIN_SUBSTRING_VARIANT_LEN, NUMERIC_FIELDS, PERCENT_FIELDS,
    TEXT_FIELDS, UNKNOWN_DEPT, UNKNOWN_LAYOUT,
)
from .utils import (
    cell_text, clean_text, clean_upc, norm_header, parse_date_range, squash,
    title_case, to_number, to_percentage, try_parse_date,
)

logger = logging.getLogger(__name__)
# =========================

# Field normalization
# =========================
def normalize_dept(raw: Any, default: Optional[str] = None) -> str:
    s = cell_text(raw)
    if not s:
        return default or UNKNOWN_DEPT
    mapped = DEPT_SYNONYMS.get(s.upper())
    return mapped or title_case(s)


def _is_total_row(description: str) -> bool:
    return "total" in description.lower()


def _build_deal(
    values: Dict[str, Any],
    default_dept: Optional[str] = None,
    source_file: Optional[str] = None,
    source_row: Optional[int] = None,
    source_ref: Optional[Dict[str, Any]] = None,
) -> DealRecord:
    """
    Raw cell values keyed by canonical field -> DealRecord.
    Unparsable numbers stay None (absent), never 0.
    """
    deal: DealRecord = {
        "item_code": cell_text(clean_text(values.get("item_code")) or ""),
        "description": cell_text(values.get("description")),
        "dept": normalize_dept(values.get("dept"), default_dept),
        "upc": clean_upc(values.get("upc")),
    }
    for f in NUMERIC_FIELDS:
        deal[f] = to_number(values.get(f))
    for f in PERCENT_FIELDS:
        deal[f] = to_percentage(values.get(f))
    for f in TEXT_FIELDS:
        deal[f] = clean_text(values.get(f))

    start, end = parse_date_range(values.get("date_range"))
    if start is None:
        start = try_parse_date(values.get("promo_start"))
    if end is None:
        end = try_parse_date(values.get("promo_end"))
    deal["promo_start"] = start
    deal["promo_end"] = end

    deal["source_file"] = source_file
    deal["source_row"] = source_row
    deal["source_ref"] = dict(source_ref) if source_ref else None
    return deal


def _new_result(source_file: str, detected_type: str) -> ParseResult:
    return {
        "source_file": source_file,
        "detected_type": detected_type,
        "header_row": None,
        "deals": [],
        "total_rows": 0,
        "parsed_rows": 0,
        "skipped_rows": 0,
        "failed_rows": 0,
        "errors": [],
        "status": "parsed",
        "low_confidence": False,
        "needs_extraction": False,
        "fingerprint": None,
    }


def failed_result(source_file: str, detected_type: str, message: str) -> ParseResult:
    res = _new_result(source_file, detected_type)
    res["errors"].append(message)
    res["status"] = "failed"
    res["low_confidence"] = True
    return res
# =========================

# Row loop shared by every layout
# =========================
def _is_blank_row(row: List[Any]) -> bool:
    return not any(cell_text(v) for v in (row or []))


def _collect_rows(
    grid: Grid,
    header_row: int,
    columns: Dict[str, List[int]],
    res: ParseResult,
    default_dept: Optional[str],
    source_ref: Optional[Dict[str, Any]],
    skip_totals: bool = True,
) -> None:
    # columns: canonical field -> candidate column indexes, in priority order
    def pick(row: List[Any], field: str) -> Any:
        for idx in columns.get(field, []):
            if idx < len(row) and cell_text(row[idx]):
                return row[idx]
        return None

    res["total_rows"] = max(0, len(grid) - header_row - 1)
    for i in range(header_row + 1, len(grid)):
        row = grid[i]
        if _is_blank_row(row):
            continue

        item_code = cell_text(clean_text(pick(row, "item_code")) or "")
        description = cell_text(pick(row, "description"))
        if not item_code or not description or (skip_totals and _is_total_row(description)):
            res["skipped_rows"] += 1
            logger.debug("%s row %d skipped (id=%r, desc=%r)", res["source_file"], i + 1, item_code, description)
            continue

        try:
            values = {f: pick(row, f) for f in columns}
            deal = _build_deal(values, default_dept, res["source_file"], i + 1, source_ref)
        except Exception as e:  # one bad row never sinks the document
            res["failed_rows"] += 1
            res["errors"].append(f"Row {i + 1}: {e}")
            logger.debug("%s row %d failed: %s", res["source_file"], i + 1, e)
            continue
        res["deals"].append(deal)

    res["parsed_rows"] = len(res["deals"])
# =========================

# Known layouts (data-driven)
# =========================
def _header_map(header: List[Any]) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for idx, h in enumerate(header or []):
        key = norm_header(h)
        if key:
            out.setdefault(key, idx)
    return out


def parse_known_layout(
    grid: Grid,
    tag: str,
    source_file: str = "",
    source_ref: Optional[Dict[str, Any]] = None,
    header_row: Optional[int] = None,
) -> ParseResult:
    """
    header_row: the row the format detector matched on; located by the
    layout's id variants when not given.
    """
    layout = LAYOUT_FIELDS[tag]
    res = _new_result(source_file, tag)

    if header_row is None:
        header_row = find_header_row(grid, layout["id_variants"], MAX_HEADER_SCAN_ROWS)
    if header_row is None:
        msg = f"Could not find header row with {' / '.join(layout['id_variants'])} column"
        logger.warning("%s: %s", source_file, msg)
        return failed_result(source_file, tag, msg)
    res["header_row"] = header_row

    header_map = _header_map(grid[header_row])
    missing = [c for c in layout.get("required", []) if c not in header_map]
    if missing:
        msg = f"Missing required columns: {', '.join(missing)}"
        logger.warning("%s: %s", source_file, msg)
        out = failed_result(source_file, tag, msg)
        out["header_row"] = header_row
        return out

    columns: Dict[str, List[int]] = {}
    for field, aliases in layout["fields"].items():
        idxs = [header_map[a] for a in aliases if a in header_map]
        if idxs:
            columns[field] = idxs

    unresolved = [f for f in ("item_code", "description") if f not in columns]
    if unresolved:
        msg = f"Header row {header_row + 1} has no {' / '.join(unresolved)} column"
        logger.warning("%s: %s", source_file, msg)
        out = failed_result(source_file, tag, msg)
        out["header_row"] = header_row
        return out

    _collect_rows(grid, header_row, columns, res, layout.get("default_dept"), source_ref)
    if not res["deals"] and res["total_rows"]:
        res["errors"].append(
            f"No valid {tag} items found ({res['skipped_rows']} rows skipped, {res['failed_rows']} failed)"
        )
    return res
# =========================

# Generic (unknown layout)
# =========================
def resolve_generic_columns(header: List[Any]) -> Dict[str, int]:
    """
    Canonical field -> column index for an arbitrary header row.

    Tiers, each only over columns not yet claimed:
      1) exact match ignoring case and non-alphanumerics
      2) substring containment (variants of 3+ chars)
      3) fuzzy ratio >= FUZZY_HEADER_THRESHOLD on the squashed text
    Variants are tried in their listed priority.
    """
    cols = [(idx, norm_header(h), squash(h)) for idx, h in enumerate(header or [])]
    cols = [c for c in cols if c[1]]
    resolved: Dict[str, int] = {}
    claimed: set[int] = set()

    def claim(field: str, idx: int) -> None:
        resolved[field] = idx
        claimed.add(idx)

    for field, variants in GENERIC_SYNONYMS.items():
        for v in variants:
            sv = squash(v)
            hit = next((idx for idx, _, sq in cols if idx not in claimed and sq == sv), None)
            if hit is not None:
                claim(field, hit)
                break

    for field in GENERIC_SUBSTRING_ORDER:
        if field in resolved:
            continue
        for v in GENERIC_SYNONYMS.get(field, []):
            if len(v) < MIN_SUBSTRING_VARIANT_LEN:
                continue
            hit = next((idx for idx, up, _ in cols if idx not in claimed and v in up), None)
            if hit is not None:
                claim(field, hit)
                break

    for field, variants in GENERIC_SYNONYMS.items():
        if field in resolved:
            continue
        best_idx, best_score = None, 0.0
        for idx, _, sq in cols:
            if idx in claimed or not sq:
                continue
            score = max((fuzz.ratio(sq, squash(v)) for v in variants), default=0.0)
            if score > best_score:
                best_idx, best_score = idx, score
        if best_idx is not None and best_score >= FUZZY_HEADER_THRESHOLD:
            claim(field, best_idx)

    return resolved


def parse_generic(
    grid: Grid,
    source_file: str = "",
    detected_type: str = UNKNOWN_LAYOUT,
    source_ref: Optional[Dict[str, Any]] = None,
) -> ParseResult:
    res = _new_result(source_file, detected_type)

    header_row = find_header_row(grid, GENERIC_HEADER_VARIANTS, MAX_HEADER_SCAN_ROWS)
    if header_row is None:
        msg = (
            "Unable to locate a header row "
            f"(looked for {' / '.join(GENERIC_HEADER_VARIANTS)} in the first {MAX_HEADER_SCAN_ROWS} rows)"
        )
        logger.warning("%s: %s", source_file, msg)
        return failed_result(source_file, detected_type, msg)
    res["header_row"] = header_row

    mapping = resolve_generic_columns(grid[header_row])
    logger.debug("%s generic columns: %s", source_file, mapping)
    columns = {f: [idx] for f, idx in mapping.items()}
    _collect_rows(grid, header_row, columns, res, None, source_ref, skip_totals=False)

    if not res["deals"]:
        res["errors"].append("Unable to parse this layout. Consider manual column mapping or external extraction.")
    return res
# =========================

# Document entry point
# =========================
def _finalize(res: ParseResult) -> ParseResult:
    if res["status"] != "failed":
        if res["errors"]:
            res["status"] = "parsed_with_errors"
        if res["detected_type"] == UNKNOWN_LAYOUT or res["parsed_rows"] < MIN_CONFIDENT_ROWS:
            res["low_confidence"] = True
    return res


def parse_document(
    grid: Any,
    filename: str = "",
    source_ref: Optional[Dict[str, Any]] = None,
) -> ParseResult:
    """
    Grid of raw cells + file name -> ParseResult.

    Layout is classified first; known layouts go through their alias tables,
    everything else through the generic mapper. source_ref is carried onto
    every deal for provenance only.
    """
    grid = as_grid(grid)
    if not grid:
        return failed_result(filename, UNKNOWN_LAYOUT, "Document has no rows")

    match = match_layout(grid, filename)
    tag = match["tag"]
    if tag in LAYOUT_FIELDS:
        res = parse_known_layout(grid, tag, filename, source_ref, header_row=match["header_row"])
    else:
        res = parse_generic(grid, filename, tag, source_ref)

    res = _finalize(res)
    logger.info(
        "%s: %s, %d/%d rows parsed, %d skipped, %d failed (%s)",
        filename, res["detected_type"], res["parsed_rows"], res["total_rows"],
        res["skipped_rows"], res["failed_rows"], res["status"],
    )
    return res
# =========================

# Records from the external extraction service
# =========================
def canonicalize_extracted(records: Any, source_file: str = "") -> List[DealRecord]:
    """
    Pre-canonicalized dicts (as produced by the document-extraction service)
    -> DealRecords through the same coercion rules. Records without an item
    code or description are dropped; a record that fails conversion is
    counted and skipped.
    """
    if isinstance(records, dict):
        records = [records]
    elif not isinstance(records, (list, tuple)):
        logger.warning("%s: expected a list of extracted records, got %s", source_file, type(records).__name__)
        return []

    out: List[DealRecord] = []
    failed = 0
    for n, rec in enumerate(records, start=1):
        if not isinstance(rec, dict):
            continue
        values: Dict[str, Any] = {}
        for field, keys in EXTRACTED_FIELD_KEYS.items():
            values[field] = next((rec[k] for k in keys if rec.get(k) not in (None, "")), None)

        if not cell_text(values.get("item_code")) or not cell_text(values.get("description")):
            logger.debug("%s extracted record %d dropped: missing id/description", source_file, n)
            continue

        ref = rec.get("sourceRef")
        try:
            deal = _build_deal(values, None, source_file, n, ref if isinstance(ref, dict) else None)
        except Exception as e:  # one bad record never sinks the batch
            failed += 1
            logger.debug("%s extracted record %d failed: %s", source_file, n, e)
            continue
        out.append(deal)

    if failed:
        logger.warning("%s: %d extracted records failed conversion", source_file, failed)
    return out
