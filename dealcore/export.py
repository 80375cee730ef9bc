from __future__ import annotations
import pandas as pd
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence
from .canonical import DealRecord, ScoreRecord, effective_cost, margin_pct, total_scan
from .scoring import interpret_score
from .tables import DEFAULT_TARGET_MIX, EXPORT_MIN_SCORE, HERO_SCORE, TARGET_MIX, UNKNOWN_DEPT

RANKED_SHEET = "Ranked Deals"
DEPT_SHEET = "Department Summary"
QUALITY_SHEET = "Quality Issues"
DUPLICATES_SHEET = "Duplicates"


def pricing_strategy(deal: DealRecord) -> str:
    price = deal.get("ad_srp")
    if not price:
        return "Regular Price"
    if price <= 2.00:
        return "3 for $5"
    if price <= 3.50:
        return "2 for $5"
    if price <= 5.00:
        return "2 for $8"
    return "Unit Price"


def price_copy(deal: DealRecord) -> str:
    price = deal.get("ad_srp")
    if not price:
        return ""
    strategy = pricing_strategy(deal)
    if "for $" in strategy:
        return strategy
    return f"${price:.2f}"


def deal_tags(deal: DealRecord, total: float) -> List[str]:
    tags: List[str] = []
    if total >= HERO_SCORE:
        tags.append("hero")
    if (deal.get("mvmt") or 0) >= 3.0:
        tags.append("high-velocity")
    if (deal.get("vendor_funding_pct") or 0) >= 0.15:
        tags.append("well-funded")
    if margin_pct(deal) >= 30:
        tags.append("high-margin")

    desc = (deal.get("description") or "").lower()
    if "organic" in desc or "natural" in desc:
        tags.append("premium")
    if "sale" in desc or "special" in desc:
        tags.append("promotional")
    return tags


def target_mix(dept: str) -> str:
    return TARGET_MIX.get(dept, DEFAULT_TARGET_MIX)


def ranked_export_rows(deals: Sequence[DealRecord], scores: Sequence[ScoreRecord]) -> pd.DataFrame:
    """Pick list: deals scoring at least EXPORT_MIN_SCORE, best first."""
    pairs = [(d, s) for d, s in zip(deals, scores) if s["total"] >= EXPORT_MIN_SCORE]
    # stable: equal totals keep input order
    pairs.sort(key=lambda p: -p[1]["total"])

    rows = []
    for i, (d, s) in enumerate(pairs, start=1):
        rows.append({
            "Rank": i,
            "Item Code": d.get("item_code", ""),
            "Product Name": d.get("description", ""),
            "Department": d.get("dept") or UNKNOWN_DEPT,
            "Cost": effective_cost(d),
            "Ad Price": d.get("ad_srp"),
            "Margin %": round(margin_pct(d), 1),
            "Total Scan": total_scan(d),
            "Pricing Strategy": pricing_strategy(d),
            "Price Copy": price_copy(d),
            "Score": round(s["total"], 1),
            "Interpretation": interpret_score(s["total"]),
            "Tags": ", ".join(deal_tags(d, s["total"])),
            "Reasons": " ".join(s["reasons"]),
            "Source File": d.get("source_file") or "Unknown",
        })
    return pd.DataFrame(rows, columns=[
        "Rank", "Item Code", "Product Name", "Department", "Cost", "Ad Price", "Margin %", "Total Scan",
        "Pricing Strategy", "Price Copy", "Score", "Interpretation", "Tags", "Reasons", "Source File",
    ])


def department_summary(deals: Sequence[DealRecord], scores: Sequence[ScoreRecord]) -> pd.DataFrame:
    cols = ["Department", "Total Deals", "Hero Deals", "Average Score", "Average Margin %", "Target Mix"]
    if not deals:
        return pd.DataFrame(columns=cols)

    df = pd.DataFrame({
        "Department": [d.get("dept") or UNKNOWN_DEPT for d in deals],
        "total": [s["total"] for s in scores],
        "margin": [margin_pct(d) for d in deals],
    })
    out = df.groupby("Department", sort=True).agg(
        **{
            "Total Deals": ("total", "count"),
            "Hero Deals": ("total", lambda s: int((s >= HERO_SCORE).sum())),
            "Average Score": ("total", "mean"),
            "Average Margin %": ("margin", "mean"),
        }
    ).reset_index()
    out["Average Score"] = out["Average Score"].round(1)
    out["Average Margin %"] = out["Average Margin %"].round(1)
    out["Target Mix"] = out["Department"].map(target_mix)
    return out[cols]


def quality_issues_frame(issues: Sequence[Dict[str, Any]]) -> pd.DataFrame:
    rows = [{
        "Code": i.get("code", ""),
        "Count": i.get("count", 0),
        "Total": i.get("total", 0),
        "Share %": round(float(i.get("pct", 0.0)) * 100, 1),
        "Limit %": round(float(i.get("threshold", 0.0)) * 100, 1),
        "Message": i.get("message", ""),
        "Items": ", ".join(str(c) for c in i.get("item_codes", [])),
    } for i in issues or []]
    return pd.DataFrame(rows, columns=["Code", "Count", "Total", "Share %", "Limit %", "Message", "Items"])


def export_to_excel_bytes(
    deals: Sequence[DealRecord],
    scores: Sequence[ScoreRecord],
    *,
    quality_issues: Optional[Sequence[Dict[str, Any]]] = None,
    duplicates: Optional[Sequence[Dict[str, Any]]] = None,
) -> bytes:
    ranked_df = ranked_export_rows(deals, scores)
    dept_df = department_summary(deals, scores)
    quality_df = quality_issues_frame(quality_issues or [])
    duplicates_df = pd.DataFrame(list(duplicates or []))

    bio = BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        ranked_df.to_excel(writer, index=False, sheet_name=RANKED_SHEET)
        dept_df.to_excel(writer, index=False, sheet_name=DEPT_SHEET)
        if not quality_df.empty:
            quality_df.to_excel(writer, index=False, sheet_name=QUALITY_SHEET)
        if not duplicates_df.empty:
            duplicates_df.to_excel(writer, index=False, sheet_name=DUPLICATES_SHEET)

        wb = writer.book
        fmt_header = wb.add_format({"bold": True, "bg_color": "#F2F2F2", "border": 1, "valign": "vcenter"})
        fmt_money = wb.add_format({"num_format": "$0.00"})
        fmt_hero = wb.add_format({"bg_color": "#E6F4EA"})
        fmt_skip = wb.add_format({"bg_color": "#FCE8E6"})

        def format_df_sheet(sheet_name: str, df: pd.DataFrame, default_width: int = 14, max_width: int = 60):
            ws = writer.sheets.get(sheet_name)
            if ws is None:
                return
            ws.freeze_panes(1, 0)
            ws.autofilter(0, 0, max(1, len(df)), max(0, len(df.columns) - 1))
            for col, name in enumerate(df.columns):
                ws.write(0, col, name, fmt_header)
                w = max(10, min(max_width, int(len(str(name)) * 1.2) + 4))
                ws.set_column(col, col, max(default_width, w))

        format_df_sheet(RANKED_SHEET, ranked_df)
        ws = writer.sheets[RANKED_SHEET]
        cols = list(ranked_df.columns)
        ws.set_column(cols.index("Product Name"), cols.index("Product Name"), 40)
        ws.set_column(cols.index("Reasons"), cols.index("Reasons"), 80)
        for name in ("Cost", "Ad Price"):
            j = cols.index(name)
            ws.set_column(j, j, 12, fmt_money)
        if len(ranked_df):
            j = cols.index("Score")
            ws.conditional_format(1, j, len(ranked_df), j, {
                "type": "cell", "criteria": ">=", "value": HERO_SCORE, "format": fmt_hero,
            })
            ws.conditional_format(1, j, len(ranked_df), j, {
                "type": "cell", "criteria": "<", "value": 55, "format": fmt_skip,
            })

        format_df_sheet(DEPT_SHEET, dept_df, default_width=16)
        if not quality_df.empty:
            format_df_sheet(QUALITY_SHEET, quality_df, default_width=12)
            writer.sheets[QUALITY_SHEET].set_column(5, 6, 70)
        if not duplicates_df.empty:
            format_df_sheet(DUPLICATES_SHEET, duplicates_df, default_width=16)

    return bio.getvalue()
