from __future__ import annotations
import os
import re
import sys
import json
import hashlib
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional, Tuple
from dateutil import parser as dtparser

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"

_ENV_DATA_DIR = os.environ.get("DEALCORE_DATA_DIR")
APPDATA = os.environ.get("APPDATA")
if _ENV_DATA_DIR:
    USER_DATA_DIR = Path(_ENV_DATA_DIR)
elif APPDATA:
    USER_DATA_DIR = Path(APPDATA) / "DealCore" / "data"
else:
    USER_DATA_DIR = DEFAULT_DATA_DIR  # fallback

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default

def save_json(path: Path, obj: Any):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)

def rules_path() -> Path:
    env = os.environ.get("DEALCORE_RULES")
    if env:
        return Path(env)
    return DEFAULT_DATA_DIR / "rules.json"

def weights_path() -> Path:
    USER_DATA_DIR.mkdir(parents=True, exist_ok=True)
    return USER_DATA_DIR / "weights.json"

def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Configure root logging for the app / scripts.

    Stream handler always; a file handler (dealcore.log) only when log_dir is given.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / "dealcore.log", encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    return logging.getLogger("dealcore")

_DASH_CHARS_RE = re.compile(r"[\u2010\u2011\u2012\u2013\u2014\u2212]")
_NBSP_RE = re.compile(r"[\u00A0\u2007\u202F]")  # NBSP variants


def cell_text(v: Any) -> str:
    # Text of a raw grid cell; None / NaN -> ""
    if v is None:
        return ""
    if isinstance(v, float) and v != v:
        return ""
    s = str(v)
    if s.lower() == "nan":
        return ""
    s = s.replace("\ufeff", "")
    s = _NBSP_RE.sub(" ", s)
    return s.strip()


def norm_text(s: Any) -> str:
    """
    Generic normalization for matching:
    - BOM / non-breaking spaces
    - outer quotes
    - every dash variant -> '-'
    - collapsed whitespace
    - lower case
    """
    s = cell_text(s)
    if not s:
        return ""
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ('"', "'"):
        s = s[1:-1].strip()
    s = _DASH_CHARS_RE.sub("-", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s.lower()


def norm_header(s: Any) -> str:
    # Header key used by the per-layout maps: trimmed, upper case, single spaces
    return norm_text(s).upper()


def squash(s: Any) -> str:
    # Upper-cased alphanumerics only ("Ad_Price " -> "ADPRICE")
    return re.sub(r"[^A-Z0-9]", "", norm_text(s).upper())


def title_case(s: str) -> str:
    return re.sub(r"\w\S*", lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), s)

_NUM_CLEAN_RE = re.compile(r"[$,\s]")


def to_number(value: Any) -> Optional[float]:
    """
    Parse a currency / numeric cell.
    Strips '$', thousands separators and spaces; '(1.20)' -> -1.2.
    Anything unparsable is absent (None), never 0.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = float(value)
        return None if f != f else f

    s = cell_text(value)
    if not s:
        return None
    s = _NUM_CLEAN_RE.sub("", s)
    if s.endswith("%"):
        s = s[:-1]
    if len(s) >= 2 and s[0] == "(" and s[-1] == ")":
        s = "-" + s[1:-1]
    try:
        f = float(s)
    except ValueError:
        return None
    if f != f or f in (float("inf"), float("-inf")):
        return None
    return f


def to_percentage(value: Any) -> Optional[float]:
    # > 1 means the vendor wrote percent units ("15" == 15%)
    num = to_number(value)
    if num is None:
        return None
    return num / 100 if num > 1 else num


def clean_upc(value: Any) -> Optional[str]:
    if isinstance(value, float) and value == value and value.is_integer():
        value = int(value)
    digits = re.sub(r"\D", "", cell_text(value))
    if 10 <= len(digits) <= 14:
        return digits
    return None


def clean_text(value: Any) -> Optional[str]:
    if isinstance(value, float) and value == value and value.is_integer():
        value = int(value)
    s = cell_text(value)
    return s or None

_DATE_TOKEN_RE = re.compile(r"\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}|\d{4}-\d{1,2}-\d{1,2}")


def try_parse_date(value: Any) -> Optional[date]:
    # datetime / date cells come straight from openpyxl
    if value is None or isinstance(value, (bool, int, float)):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if hasattr(value, "to_pydatetime"):
        try:
            return value.to_pydatetime().date()
        except (ValueError, TypeError):
            return None

    txt = cell_text(value)
    if not txt:
        return None
    try:
        return dtparser.parse(txt, dayfirst=False).date()
    except (ValueError, OverflowError):
        return None


def parse_date_range(value: Any) -> Tuple[Optional[date], Optional[date]]:
    """
    "06/25/2025 - 07/01/2025" -> (start, end).
    A lone date gives (start, None).
    """
    d = try_parse_date(value) if not isinstance(value, str) else None
    if d is not None:
        return d, None

    txt = cell_text(value)
    if not txt:
        return None, None
    tokens = _DATE_TOKEN_RE.findall(txt)
    parsed = [try_parse_date(t) for t in tokens]
    parsed = [p for p in parsed if p is not None]
    if not parsed:
        return None, None
    if len(parsed) == 1:
        return parsed[0], None
    return parsed[0], parsed[1]


def file_fingerprint(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
