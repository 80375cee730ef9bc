from datetime import date

import pytest

AD_PLANNER_HEADER = [
    "ORDER #", "ITEM DESC", "DEPT", "UPC", "UCOST", "NET UNIT COST", "REGSRP", "AD SRP",
    "AMAP", "MVMT", "ADSCAN", "TPRSCAN", "EDLC SCAN", "PK", "SZ", "TPR DATES",
]

AD_PLANNER_ROWS = [
    ["1001", "Organic Milk Gallon", "GROC", "0-12345-67890-5", "3.45", "", "5.49", "4.99",
     "15", "3.2", "10", "5", "", "4", "128OZ", "06/25/2025 - 07/01/2025"],
    ["1002", "Ribeye Steak Family Pack", "MEAT", "", "$6.10", "5.80", "9.99", "7.99",
     "0.10", "2.1", "", "", "", "1", "LB", ""],
    ["1003", "Fresh Strawberries 1lb", "produce", "1234567890", "1.50", "", "3.49", "2.50",
     "", "", "", "", "", "8", "16OZ", ""],
    ["1004", "Store Brand Cola 12pk", "GM", "", "3.00", "", "6.99", "4.49",
     "5", "1.8", "", "", "", "2", "12OZ", ""],
    ["1005", "Sourdough Bread Loaf", "BAKERY", "", "2.20", "", "4.49", "3.99",
     "", "1.0", "", "", "", "1", "24OZ", ""],
    ["1006", "Health Beauty Shampoo", "health & beauty", "", "2.00", "", "5.99", "3.99",
     "20", "", "", "", "", "6", "12OZ", ""],
    ["9999", "Grocery Dept Total", "GROC", "", "", "", "", "", "", "", "", "", "", "", "", ""],
    ["1007", "", "GROC", "", "1.00", "", "", "2.00", "", "", "", "", "", "", "", ""],
]


def build_grid(header, rows, title_rows=3):
    width = len(header)
    titles = [["Weekly Ad Promotions"] + [None] * (width - 1), ["Vendor: Acme Foods"] + [None] * (width - 1)]
    titles += [[None] * width for _ in range(max(0, title_rows - 2))]
    return titles[:title_rows] + [list(header)] + [list(r) for r in rows]


@pytest.fixture
def ad_planner_grid():
    return build_grid(AD_PLANNER_HEADER, AD_PLANNER_ROWS)


@pytest.fixture
def ad_planner_csv():
    lines = ["Weekly Ad Promotions", "Vendor: Acme Foods", "", ",".join(AD_PLANNER_HEADER)]
    lines += [",".join(r) for r in AD_PLANNER_ROWS]
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def as_of():
    return date(2025, 3, 10)


def make_deal(i=1, **overrides):
    deal = {
        "item_code": f"{i:04d}",
        "description": "Plain Crackers",
        "dept": "Grocery",
        "upc": None,
        "cost": 3.0,
        "net_unit_cost": None,
        "ad_srp": 4.99,
        "vendor_funding_pct": None,
        "mvmt": None,
        "competitor_price": None,
        "promo_start": None,
        "promo_end": None,
        "source_file": "week.csv",
        "source_row": i + 4,
    }
    deal.update(overrides)
    return deal


@pytest.fixture
def deal_factory():
    return make_deal
