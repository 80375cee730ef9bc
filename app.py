from __future__ import annotations
import json
import os
from datetime import date
import streamlit as st
import pandas as pd
from dealcore.pipeline import parse_documents, collect_deals, score_week
from dealcore.extract import canonicalize_extracted
from dealcore.export import export_to_excel_bytes, quality_issues_frame
from dealcore.scoring import check_weights, load_saved_weights, save_weights
from dealcore.tables import WEIGHT_KEYS
from dealcore.utils import setup_logging, USER_DATA_DIR

setup_logging(os.environ.get("DEALCORE_LOG_LEVEL", "INFO"), USER_DATA_DIR / "logs")

st.set_page_config(page_title="Weekly Ad Deal Ranking", layout="wide")
st.title("Weekly ad deal ranking")
# =========================

# Helpers
# =========================
STATUS_LABELS = {
    "parsed": "parsed",
    "parsed_with_errors": "parsed with errors",
    "failed": "failed",
}


def _results_frame(results: list[dict]) -> pd.DataFrame:
    rows = []
    for r in results:
        rows.append({
            "File": r.get("source_file", ""),
            "Layout": r.get("detected_type", ""),
            "Header row": "" if r.get("header_row") is None else int(r["header_row"]) + 1,
            "Deals": r.get("parsed_rows", 0),
            "Skipped": r.get("skipped_rows", 0),
            "Failed": r.get("failed_rows", 0),
            "Status": STATUS_LABELS.get(r.get("status", ""), r.get("status", "")),
            "Low confidence": bool(r.get("low_confidence")),
            "Needs extraction": bool(r.get("needs_extraction")),
            "Messages": " | ".join(r.get("errors") or []),
        })
    return pd.DataFrame(rows)


def _load_extracted(files) -> list[dict]:
    # JSON lists produced by the extraction service for low-confidence documents
    deals: list[dict] = []
    for f in files or []:
        try:
            payload = json.loads(f.getvalue().decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            st.error(f"{f.name}: not a JSON deal list ({e})")
            continue
        records = payload.get("deals", []) if isinstance(payload, dict) else payload
        deals.extend(canonicalize_extracted(records, f.name))
    return deals
# =========================

# Uploads
# =========================
uploads = st.file_uploader(
    "Upload vendor documents (XLSX / XLS / CSV; PDF and PPTX are flagged for extraction)",
    type=["xlsx", "xlsm", "xls", "csv", "pdf", "pptx"],
    accept_multiple_files=True,
)

with st.expander("Extracted deal lists (JSON)", expanded=False):
    extracted_files = st.file_uploader(
        "Records returned by the extraction service",
        type=["json"],
        accept_multiple_files=True,
    )

# Weights
st.subheader("Scoring weights")
saved = load_saved_weights()
cols = st.columns(len(WEIGHT_KEYS))
weights: dict[str, float] = {}
for col, k in zip(cols, WEIGHT_KEYS):
    with col:
        weights[k] = float(st.number_input(k.capitalize(), min_value=0.0, max_value=1.0, value=float(saved[k]), step=0.05))

weight_problems = check_weights(weights)
if weight_problems:
    st.warning("; ".join(weight_problems))
if st.button("Save weights", disabled=bool(weight_problems)):
    save_weights(weights)
    st.success("Weights saved.")

c1, c2 = st.columns(2)
with c1:
    as_of = st.date_input("Scoring date", value=date.today())
with c2:
    dedupe_rows = st.checkbox("Collapse duplicate items across documents", value=True)

if not uploads and not extracted_files:
    st.warning("Upload at least one document.")
    st.stop()
# =========================

# Parse
# =========================
results = parse_documents([(up.name, up.getvalue()) for up in uploads or []])
st.subheader("Documents")
st.dataframe(_results_frame(results), width="stretch")

low_conf = [r["source_file"] for r in results if r.get("low_confidence")]
if low_conf:
    st.info(
        "Low-confidence documents (consider the extraction service): " + ", ".join(low_conf)
    )

deals = collect_deals(results) + _load_extracted(extracted_files)
st.write(f"Deals collected: {len(deals)}")

if st.button("Score week", type="primary"):
    st.session_state["week"] = score_week(deals, weights=weights, as_of=as_of, dedupe=dedupe_rows)

week = st.session_state.get("week")
if week is None:
    st.stop()
# =========================

# Results
# =========================
if week["status"] == "rejected":
    st.error("Weights rejected: " + "; ".join(week["problems"]))
    st.stop()

quality = week["quality"]
with st.expander("Data quality", expanded=not quality["passed"]):
    stats = quality["stats"]
    q1, q2, q3, q4 = st.columns(4)
    q1.metric("Deals", stats.get("total", 0))
    q2.metric("Missing cost", stats.get("missing_cost", 0))
    q3.metric("Missing ad price", stats.get("missing_ad_srp", 0))
    q4.metric("Unresolved descriptions", stats.get("unresolved_description", 0))
    if quality["issues"]:
        st.dataframe(quality_issues_frame(quality["issues"]), width="stretch")
    if week["duplicates"]:
        st.write("Duplicate rows dropped:")
        st.dataframe(pd.DataFrame(week["duplicates"]), width="stretch")

if week["status"] == "blocked":
    st.error("Quality gate failed; fix the documents above before scoring.")
    for msg in week["problems"]:
        st.write(f"- {msg}")
    st.stop()

ranking = week["ranking"]
st.subheader("Ranking")
f1, f2 = st.columns(2)
with f1:
    q = st.text_input("Search description", value="")
with f2:
    depts = ["(all)"] + sorted(ranking["dept"].astype(str).unique().tolist())
    dsel = st.selectbox("Department", depts, index=0)

view = ranking.copy()
if q.strip():
    view = view[view["description"].astype(str).str.contains(q.strip(), case=False, na=False)]
if dsel != "(all)":
    view = view[view["dept"].astype(str) == dsel]
st.dataframe(view.head(500), width="stretch")

portfolio = week["portfolio"]
p1, p2, p3 = st.columns(3)
with p1:
    st.markdown("**Recommendations**")
    for s in portfolio["recommendations"] or ["-"]:
        st.write(s)
with p2:
    st.markdown("**Risk factors**")
    for s in portfolio["risk_factors"] or ["-"]:
        st.write(s)
with p3:
    st.markdown("**Optimization**")
    for s in portfolio["optimization"] or ["-"]:
        st.write(s)

xbytes = export_to_excel_bytes(
    week["deals"],
    week["scores"],
    quality_issues=quality["issues"],
    duplicates=week["duplicates"],
)
st.download_button(
    "Download Excel report",
    data=xbytes,
    file_name=f"weekly-ad-{as_of.isoformat()}.xlsx",
    mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
)
