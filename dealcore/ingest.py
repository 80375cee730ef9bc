from __future__ import annotations
import csv
import logging
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Dict, Optional
import pandas as pd
from openpyxl import load_workbook
from .canonical import ParseResult
from .extract import failed_result, parse_document
from .header_detect import Grid, as_grid
from .tables import UNKNOWN_LAYOUT
from .utils import file_fingerprint

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = {".xlsx", ".xlsm", ".xls"}
CSV_EXTENSIONS = {".csv", ".txt"}
EXTRACTION_EXTENSIONS = {".pdf", ".pptx"}
DELIMITERS = [",", ";", "\t", "|"]


# =========================
# Excel: sheet as a matrix, merged cells unrolled
# =========================
def _merged_fill(ws) -> Dict[tuple, Any]:
    # vendor title blocks are merged across the sheet; every covered cell gets the anchor value
    fill: Dict[tuple, Any] = {}
    for rng in ws.merged_cells.ranges:
        c0, r0, c1, r1 = rng.bounds
        anchor = ws.cell(r0, c0).value
        for r in range(r0, r1 + 1):
            for c in range(c0, c1 + 1):
                fill[(r, c)] = anchor
    return fill


def _sheet_to_matrix_with_merged(wb_bytes: bytes, sheet_name: Optional[str] = None, max_rows: Optional[int] = None) -> Grid:
    wb = load_workbook(BytesIO(wb_bytes), read_only=False, data_only=True)
    ws = wb[sheet_name] if sheet_name else wb.worksheets[0]
    fill = _merged_fill(ws)

    grid: Grid = []
    for r_idx, values in enumerate(ws.iter_rows(max_row=max_rows, values_only=True), start=1):
        row = list(values)
        for c_idx, v in enumerate(row, start=1):
            if v in (None, "") and (r_idx, c_idx) in fill:
                row[c_idx - 1] = fill[(r_idx, c_idx)]
        grid.append(row)
    return grid


def _read_excel_bytes(data: bytes, ext: str, sheet_name: Optional[str] = None) -> Grid:
    if ext == ".xls":
        # legacy binary workbooks go through pandas (xlrd engine)
        df = pd.read_excel(BytesIO(data), sheet_name=sheet_name or 0, header=None)
        return as_grid(df)
    return _sheet_to_matrix_with_merged(data, sheet_name=sheet_name)


# =========================
# CSV: tolerant read from bytes
# =========================
def _decode_sample(data: bytes, enc: str, limit: int = 65536) -> str:
    return data[:limit].decode(enc, errors="replace")


def _guess_delimiter(sample_text: str) -> str:
    try:
        return csv.Sniffer().sniff(sample_text, delimiters="".join(DELIMITERS)).delimiter or ","
    except csv.Error:
        pass

    # fallback: the delimiter used most often over the first non-empty lines
    lines = [ln for ln in sample_text.splitlines() if ln.strip()][:20]
    counts = {d: sum(ln.count(d) for ln in lines) for d in DELIMITERS}
    best = max(DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] else ","


def _read_csv_bytes(data: bytes) -> pd.DataFrame:
    # header=None: title rows above the real header stay in the matrix
    encodings = ["utf-8-sig", "cp1252", "latin-1"]
    last_err: Exception | None = None

    for enc in encodings:
        try:
            sample = _decode_sample(data, enc)
            delim = _guess_delimiter(sample)
            # title rows are narrower than the table; size the frame by the widest line
            text = data.decode(enc)
            width = max((len(r) for r in csv.reader(StringIO(text), delimiter=delim)), default=0)
            if width == 0:
                return pd.DataFrame()
            return pd.read_csv(
                StringIO(text),
                header=None,
                names=list(range(width)),
                sep=delim,
                engine="python",
                skip_blank_lines=True,
                dtype=str,
                keep_default_na=False,
            )
        except (UnicodeDecodeError, csv.Error, pd.errors.ParserError) as e:
            last_err = e
            logger.debug("CSV read with %s failed: %s", enc, e)
            continue
        except pd.errors.EmptyDataError:
            return pd.DataFrame()

    raise last_err or ValueError("Unreadable CSV")


def read_grid(data: bytes, filename: str, sheet_name: Optional[str] = None) -> Grid:
    """
    Uploaded bytes -> grid of raw cell values (first sheet unless sheet_name).
    Raises ValueError for extensions that have no tabular reader.
    """
    ext = Path(filename or "").suffix.lower()
    if ext in CSV_EXTENSIONS:
        return as_grid(_read_csv_bytes(data))
    if ext in EXCEL_EXTENSIONS:
        return _read_excel_bytes(data, ext, sheet_name)
    raise ValueError(f"Unsupported file type: {ext or filename}")


# =========================
# Boundary: one upload -> ParseResult
# =========================
def needs_extraction_result(filename: str, fingerprint: Optional[str] = None) -> ParseResult:
    res = failed_result(filename, UNKNOWN_LAYOUT, "Document is not tabular; send it to the extraction service.")
    res["status"] = "parsed_with_errors"
    res["needs_extraction"] = True
    res["fingerprint"] = fingerprint
    return res


def parse_file(data: bytes, filename: str, source_ref: Optional[Dict[str, Any]] = None) -> ParseResult:
    """
    Read + detect + canonicalize one uploaded document.

    Never raises: reader or parser errors come back as a "failed" ParseResult.
    """
    fp = file_fingerprint(data or b"")
    ext = Path(filename or "").suffix.lower()

    if ext in EXTRACTION_EXTENSIONS:
        logger.info("%s: non-tabular document, flagged for extraction", filename)
        return needs_extraction_result(filename, fp)

    if ext not in EXCEL_EXTENSIONS | CSV_EXTENSIONS:
        logger.warning("%s: unsupported file type", filename)
        res = failed_result(filename, UNKNOWN_LAYOUT, f"Unsupported file type: {ext or 'none'}")
        res["fingerprint"] = fp
        return res

    try:
        grid = read_grid(data, filename)
        res = parse_document(grid, filename, source_ref)
    except Exception as e:
        logger.exception("Failed to parse %s", filename)
        res = failed_result(filename, UNKNOWN_LAYOUT, f"Could not read file: {e}")

    res["fingerprint"] = fp
    return res
