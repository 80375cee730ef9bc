from io import BytesIO

import pytest
from openpyxl import Workbook

from dealcore.ingest import parse_file, read_grid
from tests.conftest import AD_PLANNER_HEADER, AD_PLANNER_ROWS


def _xlsx_bytes(rows, merge=None):
    wb = Workbook()
    ws = wb.active
    for r in rows:
        ws.append(r)
    if merge:
        ws.merge_cells(merge)
    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


class TestReadGrid:
    def test_csv_keeps_title_rows(self, ad_planner_csv):
        grid = read_grid(ad_planner_csv, "week.csv")
        assert grid[0][0] == "Weekly Ad Promotions"
        assert grid[2][:2] == ["ORDER #", "ITEM DESC"]
        assert len(grid[2]) == len(AD_PLANNER_HEADER)

    def test_semicolon_csv(self):
        data = "ITEM;DESCRIPTION;COST\nA1;Tortilla Chips;1,10\n".encode("utf-8")
        grid = read_grid(data, "misc.csv")
        assert grid[1] == ["A1", "Tortilla Chips", "1,10"]

    def test_xlsx_merged_title(self):
        rows = [["Weekly Ad Promotions"], [], AD_PLANNER_HEADER] + AD_PLANNER_ROWS
        data = _xlsx_bytes(rows, merge="A1:D1")
        grid = read_grid(data, "week.xlsx")
        assert grid[0][:4] == ["Weekly Ad Promotions"] * 4
        assert grid[2][0] == "ORDER #"

    def test_unsupported(self):
        with pytest.raises(ValueError):
            read_grid(b"", "notes.docx")


class TestParseFile:
    def test_csv_ad_planner(self, ad_planner_csv):
        res = parse_file(ad_planner_csv, "week.csv")
        assert res["detected_type"] == "ad-planner"
        assert res["header_row"] == 2
        assert res["parsed_rows"] == 6
        assert res["deals"][0]["upc"] == "012345678905"
        assert len(res["fingerprint"]) == 64

    def test_xlsx_ad_planner(self):
        rows = [["Weekly Ad Promotions"], [], [], AD_PLANNER_HEADER] + AD_PLANNER_ROWS
        res = parse_file(_xlsx_bytes(rows), "week.xlsx")
        assert res["status"] == "parsed"
        assert res["header_row"] == 3
        assert res["parsed_rows"] == 6

    def test_pdf_needs_extraction(self):
        res = parse_file(b"%PDF-1.4", "flyer.pdf")
        assert res["needs_extraction"] is True
        assert res["low_confidence"] is True
        assert res["deals"] == []
        assert res["status"] != "failed"

    def test_unsupported_extension_fails(self):
        res = parse_file(b"hello", "notes.docx")
        assert res["status"] == "failed"
        assert res["deals"] == []

    def test_corrupt_workbook_does_not_raise(self):
        res = parse_file(b"not a zip file", "broken.xlsx")
        assert res["status"] == "failed"
        assert res["errors"]
        assert res["fingerprint"]
