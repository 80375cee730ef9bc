from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Sequence
from .utils import cell_text, norm_header
from .tables import ITEM_ID_KEYWORDS, LAYOUT_SIGNATURES, MAX_HEADER_SCAN_ROWS, UNKNOWN_LAYOUT

logger = logging.getLogger(__name__)

Grid = List[List[Any]]


def as_grid(data: Any) -> Grid:
    # DataFrame (header=None) or any sequence of rows -> list of lists
    if data is None:
        return []
    if hasattr(data, "itertuples"):
        return [list(r) for r in data.itertuples(index=False, name=None)]
    return [list(r) if r is not None else [] for r in data]


def _row_upper(row: Sequence[Any]) -> List[str]:
    return [cell_text(v).upper() for v in (row or [])]


def _row_has_any(row: Sequence[Any], variants: Sequence[str]) -> bool:
    for s in _row_upper(row):
        if not s:
            continue
        if any(v in s for v in variants):
            return True
    return False


def find_header_row(grid: Grid, variants: Sequence[str], max_rows: int = MAX_HEADER_SCAN_ROWS) -> Optional[int]:
    """
    Index of the first row (top-down, within max_rows) with a cell containing
    one of the item-identifier variants. None when nothing qualifies; callers
    treat that as a parse failure for the document.
    """
    variants = [v.upper() for v in variants if v]
    for i in range(min(max_rows, len(grid))):
        if _row_has_any(grid[i], variants):
            return i
    return None


def header_candidates(grid: Grid, max_rows: int = MAX_HEADER_SCAN_ROWS) -> List[int]:
    # rows that name an item somewhere (titles / logos / banners don't)
    return [i for i in range(min(max_rows, len(grid))) if _row_has_any(grid[i], ITEM_ID_KEYWORDS)]


def _signature_strength(sig: Dict[str, Any], cells: set[str], filename_lower: str) -> Optional[int]:
    all_of = sig.get("all_of") or []
    any_of = sig.get("any_of") or []
    hints = sig.get("filename") or []

    if hints and not any(h in filename_lower for h in hints):
        return None
    if not all(t in cells for t in all_of):
        return None
    strength = len(all_of)
    if any_of:
        if not any(t in cells for t in any_of):
            return None
        strength += 1
    return strength


def match_layout(grid: Grid, filename: str = "", max_rows: int = MAX_HEADER_SCAN_ROWS) -> Dict[str, Any]:
    """
    Best layout signature over the header-candidate rows.

    Ranking: header signature strength first (ad-planner's four required
    tokens beat a single keyword); the file-name hint only separates
    signatures of equal strength; table order settles the rest.
    """
    filename_lower = (filename or "").lower()
    best: Dict[str, Any] = {"tag": UNKNOWN_LAYOUT, "header_row": None, "strength": 0}
    best_key: Optional[tuple] = None

    for row_idx in header_candidates(grid, max_rows):
        cells = {norm_header(v) for v in grid[row_idx]}
        cells.discard("")
        for order, sig in enumerate(LAYOUT_SIGNATURES):
            strength = _signature_strength(sig, cells, filename_lower)
            if strength is None:
                continue
            key = (strength, 1 if sig.get("filename") else 0, -order, -row_idx)
            if best_key is None or key > best_key:
                best_key = key
                best = {"tag": sig["tag"], "header_row": row_idx, "strength": strength}

    logger.debug("Layout match for %r: %s", filename, best)
    return best


def detect_layout(grid: Grid, filename: str = "") -> str:
    return match_layout(grid, filename)["tag"]
