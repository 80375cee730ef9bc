"""
This package contains:
- reading vendor documents (XLSX/XLS/CSV) into cell grids
- layout detection and header location
- canonicalization into deal records
- deduplication of deal rows across documents
- the batch quality gate
- deal scoring, ranking and portfolio analysis
- report export
"""
from .ingest import parse_file, read_grid
from .header_detect import detect_layout, find_header_row
from .extract import parse_document, canonicalize_extracted
from .dedupe import dedupe_deals
from .quality import validate_quality
from .scoring import (score_deal, score_batch, rank_scores, interpret_score, check_weights, analyze_portfolio)
from .export import export_to_excel_bytes
from .pipeline import parse_documents, score_week

__all__ = [
    "parse_file",
    "read_grid",
    "detect_layout",
    "find_header_row",
    "parse_document",
    "canonicalize_extracted",
    "dedupe_deals",
    "validate_quality",
    "score_deal",
    "score_batch",
    "rank_scores",
    "interpret_score",
    "check_weights",
    "analyze_portfolio",
    "export_to_excel_bytes",
    "parse_documents",
    "score_week",
]
