"""
Declarative lookup tables for detection, canonicalization, gating and scoring.

New vendor layouts, synonyms or seasonal keywords are added here, as data.
A rules.json file (see utils.rules_path) may override margin_floors,
dept_synonyms, quality_thresholds and default_weights key by key.
"""
from __future__ import annotations
from typing import Any, Dict, List
from .utils import load_json, rules_path

RULES: Dict[str, Any] = load_json(rules_path(), {})
if not isinstance(RULES, dict):
    RULES = {}


def _override(name: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    extra = RULES.get(name) or {}
    if not isinstance(extra, dict):
        return dict(defaults)
    return {**defaults, **extra}

MAX_HEADER_SCAN_ROWS = 10
MIN_CONFIDENT_ROWS = 5

# =========================
# Format detection
# =========================
UNKNOWN_LAYOUT = "unknown"

# a row "names an item" if any of these appear (upper case, substring)
ITEM_ID_KEYWORDS = ["ORDER #", "ORDER NO", "ORDER", "ITEM", "SKU", "PRODUCT CODE", "PROD CODE"]

# Signatures are tested against the exact (trimmed, upper-cased) header cells.
#   all_of   - every token required; len(all_of) is the signature strength
#   any_of   - at least one token required (adds 1 to strength)
#   filename - at least one hint must occur in the lower-cased file name
LAYOUT_SIGNATURES: List[Dict[str, Any]] = [
    {"tag": "ad-planner", "all_of": ["ORDER #", "ITEM DESC", "AD SRP", "UCOST"], "any_of": [], "filename": []},
    {"tag": "rolling-stock", "all_of": ["ITEM CD", "NET COST"], "any_of": [], "filename": []},
    {"tag": "meat-planner", "all_of": ["ITEM NO"], "any_of": [], "filename": ["meat"]},
    {"tag": "grocery-planner", "all_of": ["ITEM DESC"], "any_of": [], "filename": ["grocery"]},
    {"tag": "produce-planner", "all_of": ["ITEM #"], "any_of": [], "filename": ["produce"]},
    {
        "tag": "deli-bakery-planner",
        "all_of": [],
        "any_of": ["ITEM NO", "ITEM #", "ORDER #", "AWG ITEM", "AWG", "DELI"],
        "filename": ["deli", "bakery"],
    },
]

# =========================
# Per-layout column aliases (canonical field -> accepted spellings, in priority order)
# =========================
_DELI_BAKERY_FIELDS = {
    "item_code": ["ITEM NO", "ITEM #", "ORDER #", "ITEM", "ITEM CODE", "AWG ITEM", "AWG"],
    "description": ["ITEM DESC", "DESCRIPTION", "DESC", "ITEM DESCRIPTION", "DELI", "PACK/"],
    "dept": ["DEPT", "DEPARTMENT"],
    "upc": ["UPC"],
    "cost": ["COST", "UCOST", "NET COST", "UNIT COST", "COST/", "EST."],
    "srp": ["SRP", "REGSRP", "REG SRP", "RETAIL"],
    "ad_srp": ["AD SRP", "ADSRP", "AD_SRP", "SALE"],
    "mvmt": ["MVMT", "MOVEMENT", "UNITS"],
    "vendor_funding_pct": ["FUNDING", "VENDOR FUNDING", "AMAP"],
    "pack": ["PK", "PACK"],
    "size": ["SZ", "SIZE"],
}

LAYOUT_FIELDS: Dict[str, Dict[str, Any]] = {
    "ad-planner": {
        "id_variants": ["ORDER #"],
        "required": ["ORDER #", "ITEM DESC", "DEPT"],
        "default_dept": None,
        "fields": {
            "item_code": ["ORDER #"],
            "description": ["ITEM DESC"],
            "dept": ["DEPT"],
            "upc": ["UPC"],
            "cost": ["UCOST", "COST"],
            "net_unit_cost": ["NET UNIT COST"],
            "srp": ["REGSRP"],
            "ad_srp": ["AD SRP", "AD_SRP"],
            "vendor_funding_pct": ["AMAP"],
            "mvmt": ["MVMT"],
            "ad_scan": ["ADSCAN"],
            "tpr_scan": ["TPRSCAN"],
            "edlc_scan": ["EDLC SCAN"],
            "pack": ["PK"],
            "size": ["SZ"],
            "date_range": ["TPR DATES"],
        },
    },
    "meat-planner": {
        "id_variants": ["ITEM NO"],
        "required": ["ITEM NO"],
        "default_dept": "Meat",
        "fields": {
            "item_code": ["ITEM NO"],
            "description": ["ITEM DESC", "DESCRIPTION", "DESC"],
            "dept": ["DEPT"],
            "upc": ["UPC"],
            "cost": ["UCOST", "COST", "CASE COST"],
            "net_unit_cost": ["NET UNIT COST", "NET COST"],
            "srp": ["REGSRP", "REG SRP", "RETAIL"],
            "ad_srp": ["AD SRP", "AD PRICE", "AD_SRP"],
            "vendor_funding_pct": ["AMAP", "FUNDING"],
            "mvmt": ["MVMT", "MOVEMENT"],
            "pack": ["PK", "PACK"],
            "size": ["SZ", "SIZE", "WT"],
            "date_range": ["AD DATES", "TPR DATES", "DATES"],
        },
    },
    "grocery-planner": {
        "id_variants": ["ORDER #", "ITEM #", "ITEM NO", "ITEM CODE"],
        "required": ["ITEM DESC"],
        "default_dept": "Grocery",
        "fields": {
            "item_code": ["ORDER #", "ITEM #", "ITEM NO", "ITEM CODE"],
            "description": ["ITEM DESC"],
            "dept": ["DEPT"],
            "upc": ["UPC"],
            "cost": ["UCOST", "COST"],
            "net_unit_cost": ["NET UNIT COST"],
            "srp": ["REGSRP", "REG SRP"],
            "ad_srp": ["AD SRP", "AD_SRP"],
            "vendor_funding_pct": ["AMAP", "FUNDING"],
            "mvmt": ["MVMT"],
            "ad_scan": ["ADSCAN"],
            "tpr_scan": ["TPRSCAN"],
            "edlc_scan": ["EDLC SCAN"],
            "pack": ["PK"],
            "size": ["SZ"],
            "date_range": ["TPR DATES", "AD DATES"],
        },
    },
    "produce-planner": {
        "id_variants": ["ITEM #"],
        "required": ["ITEM #"],
        "default_dept": "Produce",
        "fields": {
            "item_code": ["ITEM #"],
            "description": ["ITEM DESC", "DESCRIPTION", "COMMODITY"],
            "dept": ["DEPT"],
            "upc": ["UPC", "PLU/UPC"],
            "cost": ["COST", "UCOST", "FOB"],
            "net_unit_cost": ["NET UNIT COST", "NET COST"],
            "srp": ["REGSRP", "RETAIL"],
            "ad_srp": ["AD SRP", "AD RETAIL", "AD PRICE"],
            "vendor_funding_pct": ["FUNDING", "AMAP"],
            "mvmt": ["MVMT", "LIFT"],
            "pack": ["PK", "PACK"],
            "size": ["SZ", "SIZE"],
            "date_range": ["AD DATES", "DATES"],
        },
    },
    "rolling-stock": {
        "id_variants": ["ITEM CD"],
        "required": ["ITEM CD", "NET COST"],
        "default_dept": None,
        "fields": {
            "item_code": ["ITEM CD"],
            "description": ["ITEM DESC", "DESCRIPTION", "DESC"],
            "dept": ["DEPT", "DEPARTMENT"],
            "upc": ["UPC"],
            "cost": ["BASE COST", "COST"],
            "net_unit_cost": ["NET COST"],
            "srp": ["REGSRP", "SRP"],
            "ad_srp": ["AD SRP", "AD PRICE"],
            "vendor_funding_pct": ["ALLOWANCE %", "FUNDING"],
            "mvmt": ["MVMT"],
            "competitor_price": ["COMP PRICE", "COMPETITOR"],
            "pack": ["PK", "PACK"],
            "size": ["SZ", "SIZE"],
            "date_range": ["DATES", "AD DATES"],
        },
    },
    "deli-bakery-planner": {
        "id_variants": ["ITEM", "ORDER", "DESC"],
        "required": [],
        "default_dept": "Deli/Bakery",
        "fields": _DELI_BAKERY_FIELDS,
    },
}

NUMERIC_FIELDS = [
    "cost", "net_unit_cost", "srp", "ad_srp", "mvmt",
    "ad_scan", "tpr_scan", "edlc_scan", "competitor_price",
]
PERCENT_FIELDS = ["vendor_funding_pct"]
TEXT_FIELDS = ["pack", "size"]

# =========================
# Generic (unknown layout) synonyms
# =========================
GENERIC_HEADER_VARIANTS = ["ITEM", "DESCRIPTION", "COST"]

GENERIC_SYNONYMS: Dict[str, List[str]] = {
    "item_code": ["ITEM CODE", "CODE", "ITEM NO", "ORDER #", "ITEM", "SKU", "PRODUCT CODE"],
    "description": ["DESCRIPTION", "ITEM DESC", "PRODUCT DESCRIPTION", "NAME", "PRODUCT NAME"],
    "dept": ["DEPARTMENT", "DEPT", "RETAIL DEPT", "CATEGORY"],
    "cost": [
        "COST", "NET COST", "UCOST", "UNIT COST", "CASE COST", "WHOLESALE",
        "WHOLESALE COST", "BASE COST", "ITEM COST", "PRODUCT COST",
    ],
    "srp": [
        "SRP", "REGSRP", "REGULAR PRICE", "RETAIL", "RETAIL PRICE", "REG PRICE",
        "MSRP", "LIST PRICE", "NORMAL PRICE",
    ],
    "ad_srp": [
        "AD PRICE", "AD SRP", "SALE PRICE", "PROMO PRICE", "SPECIAL", "AD",
        "SPECIAL PRICE", "PROMOTIONAL", "PROMOTIONAL PRICE", "DISCOUNT PRICE", "OFFER PRICE",
    ],
    "upc": ["UPC", "BARCODE", "EAN"],
    "pack": ["PACK", "PK", "PACKAGE", "CASE"],
    "size": ["SIZE", "SZ", "WEIGHT", "WT"],
    "mvmt": ["MVMT", "MOVEMENT", "VELOCITY", "UNITS"],
    "vendor_funding_pct": ["FUNDING", "VENDOR FUNDING", "REBATE", "ALLOWANCE"],
    "competitor_price": ["COMPETITOR PRICE", "COMP PRICE", "COMPETITOR"],
    "promo_start": ["START DATE", "AD START", "PROMO START"],
    "promo_end": ["END DATE", "AD END", "PROMO END"],
    "date_range": ["TPR DATES", "AD DATES", "PROMO DATES"],
}

FUZZY_HEADER_THRESHOLD = 90
MIN_SUBSTRING_VARIANT_LEN = 3

# substring tier claims columns in this order so "Item Description" is not taken as an item code
GENERIC_SUBSTRING_ORDER = [
    "description", "item_code", "dept", "cost", "ad_srp", "srp", "competitor_price",
    "vendor_funding_pct", "mvmt", "upc", "date_range", "promo_start", "promo_end", "pack", "size",
]

# keys used by the external extraction service for its pre-canonicalized records
EXTRACTED_FIELD_KEYS: Dict[str, List[str]] = {
    "item_code": ["itemCode", "item_code"],
    "description": ["description"],
    "dept": ["dept", "department"],
    "upc": ["upc"],
    "cost": ["cost"],
    "net_unit_cost": ["netUnitCost", "net_unit_cost"],
    "srp": ["srp"],
    "ad_srp": ["adSrp", "ad_srp"],
    "vendor_funding_pct": ["funding", "vendorFundingPct", "vendor_funding_pct"],
    "mvmt": ["mvmt"],
    "competitor_price": ["competitorPrice", "competitor_price"],
    "pack": ["pack"],
    "size": ["size"],
    "promo_start": ["startDate", "promoStart", "promo_start"],
    "promo_end": ["endDate", "promoEnd", "promo_end"],
}

# =========================
# Departments
# =========================
DEPT_SYNONYMS: Dict[str, str] = _override("dept_synonyms", {
    "GM": "Grocery",
    "GROC": "Grocery",
    "GROCERY": "Grocery",
    "MEAT": "Meat",
    "PROD": "Produce",
    "PRODUCE": "Produce",
    "DELI": "Bakery",
    "BAKERY": "Bakery",
    "DAIRY": "Dairy",
    "FROZEN": "Frozen",
})
UNKNOWN_DEPT = "Unknown"

MARGIN_FLOORS: Dict[str, float] = _override("margin_floors", {
    "Meat": 0.18,
    "Grocery": 0.22,
    "Produce": 0.25,
    "Bakery": 0.30,
})
DEFAULT_MARGIN_FLOOR = 0.15
MARGIN_CEILING = 0.30

TARGET_MIX: Dict[str, str] = {
    "Meat": "25-30%",
    "Grocery": "30-35%",
    "Produce": "20-25%",
    "Bakery": "15-20%",
}
DEFAULT_TARGET_MIX = "10-15%"

# =========================
# Quality gate
# =========================
QUALITY_THRESHOLDS: Dict[str, float] = _override("quality_thresholds", {
    "missing_cost": 0.05,
    "missing_ad_srp": 0.05,
    "unresolved_description": 0.01,
})
MIN_DESCRIPTION_LEN = 5

# =========================
# Scoring
# =========================
WEIGHT_KEYS = ["margin", "velocity", "funding", "theme", "timing", "competitive"]

DEFAULT_WEIGHTS: Dict[str, float] = _override("default_weights", {
    "margin": 0.25,
    "velocity": 0.25,
    "funding": 0.20,
    "theme": 0.15,
    "timing": 0.10,
    "competitive": 0.05,
})

# (minimum value, score), checked top-down
VELOCITY_BUCKETS = [(4.0, 100.0), (3.0, 85.0), (2.5, 70.0), (2.0, 55.0), (1.5, 40.0)]
VELOCITY_FLOOR_SCORE = 20.0
DEFAULT_MVMT = 1.0

FUNDING_BUCKETS = [(0.20, 100.0), (0.15, 85.0), (0.10, 70.0), (0.05, 40.0)]
FUNDING_ANY_SCORE = 20.0

# (max days away, score)
TIMING_BUCKETS = [(3, 100.0), (7, 80.0), (14, 60.0)]
TIMING_FAR_SCORE = 40.0
TIMING_DEFAULT_SCORE = 60.0

# (minimum fractional advantage, score)
COMPETITIVE_BUCKETS = [(0.15, 100.0), (0.10, 80.0), (0.05, 60.0)]
COMPETITIVE_BEHIND_SCORE = 20.0
COMPETITIVE_DEFAULT_SCORE = 50.0

THEME_BASE = 50.0
HEALTH_KEYWORDS = ["organic", "keto", "gluten", "plant", "protein", "natural"]
HEALTH_BONUS = 15.0

SEASONAL_KEYWORDS: Dict[int, List[tuple]] = {
    1: [("soup", 25), ("comfort", 20), ("hot", 15)],
    2: [("chocolate", 30), ("valentine", 35), ("heart", 20)],
    3: [("spring", 25), ("fresh", 20), ("green", 15)],
    4: [("easter", 35), ("lamb", 25), ("spring", 20)],
    5: [("mother", 30), ("brunch", 25), ("flower", 15)],
    6: [("bbq", 30), ("grill", 30), ("outdoor", 25)],
    7: [("summer", 25), ("cold", 30), ("ice", 35)],
    8: [("back", 20), ("school", 20), ("lunch", 25)],
    9: [("apple", 30), ("pumpkin", 25), ("fall", 20)],
    10: [("halloween", 35), ("candy", 30), ("orange", 15)],
    11: [("thanksgiving", 40), ("turkey", 35), ("cranberry", 25)],
    12: [("holiday", 35), ("christmas", 40), ("party", 25)],
}

# inclusive (month, day) windows
HOLIDAY_WINDOWS: List[Dict[str, Any]] = [
    {
        "name": "big game",
        "start": (2, 1),
        "end": (2, 15),
        "keywords": [("wing", 30), ("chip", 25), ("dip", 20)],
    },
    {
        "name": "memorial day to july 4th",
        "start": (5, 20),
        "end": (6, 30),
        "keywords": [("patriotic", 25), ("red", 15), ("blue", 15)],
    },
]

# department x month, in percentage points added to the seasonal multiplier
DEPT_MONTH_BOOST: Dict[str, Dict[int, int]] = {
    "Meat": {1: -5, 2: 0, 3: 5, 4: 10, 5: 15, 6: 20, 7: 15, 8: 10, 9: 5, 10: 0, 11: 10, 12: 5},
    "Produce": {1: -10, 2: -5, 3: 10, 4: 20, 5: 25, 6: 20, 7: 15, 8: 10, 9: 15, 10: 10, 11: -5, 12: -10},
    "Bakery": {1: 5, 2: 15, 3: 10, 4: 15, 5: 10, 6: 5, 7: 0, 8: 5, 9: 10, 10: 20, 11: 25, 12: 30},
    "Grocery": {1: 0, 2: 0, 3: 5, 4: 5, 5: 0, 6: 5, 7: 5, 8: 10, 9: 5, 10: 0, 11: 5, 12: 10},
}
SUMMER_MONTHS = (6, 7, 8)
SUMMER_KEYWORDS = ["ice cream", "soda", "chips", "beer"]
SUMMER_MULTIPLIER = 1.2
SEASONAL_MULTIPLIER_RANGE = (0.8, 1.4)

# (keywords, additive bonus)
STRATEGIC_KEYWORDS = [
    (["premium", "signature"], 0.20),
    (["milk", "bread", "egg"], 0.15),
    (["candy", "snack"], 0.10),
]
STRATEGIC_CAP = 1.5

# first match wins
NEW_ITEM_KEYWORDS = [
    (["new", "launch"], 1.3),
    (["limited", "exclusive"], 1.2),
    (["seasonal", "special"], 1.15),
]

PRIVATE_LABEL_KEYWORDS = ["store brand"]
PRIVATE_LABEL_MULTIPLIER = 1.4

# =========================
# Interpretation tiers
# =========================
SCORE_TIERS = [
    (85.0, "MUST INCLUDE"),
    (70.0, "STRONGLY RECOMMENDED"),
    (55.0, "RECOMMENDED"),
    (40.0, "CONSIDER"),
]
SKIP_TIER = "SKIP"
HERO_SCORE = 85.0
EXPORT_MIN_SCORE = 40.0
