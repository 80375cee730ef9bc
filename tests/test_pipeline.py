from datetime import date

from dealcore.pipeline import collect_deals, parse_documents, score_week
from dealcore.tables import DEFAULT_WEIGHTS
from tests.conftest import make_deal


class TestParseDocuments:
    def test_same_bytes_twice(self, ad_planner_csv):
        results = parse_documents([("a.csv", ad_planner_csv), ("b.csv", ad_planner_csv)])
        assert results[0]["parsed_rows"] == 6
        assert results[1]["deals"] == []
        assert results[1]["status"] == "parsed_with_errors"
        assert "a.csv" in results[1]["errors"][-1]
        assert len(collect_deals(results)) == 6

    def test_mixed_uploads(self, ad_planner_csv):
        results = parse_documents([("week.csv", ad_planner_csv), ("flyer.pdf", b"%PDF"), ("x.doc", b"")])
        assert [r["status"] for r in results] == ["parsed", "parsed_with_errors", "failed"]
        assert results[1]["needs_extraction"] is True


class TestScoreWeek:
    def test_rejected_weights(self):
        out = score_week([make_deal(1)], weights={"margin": 2.0})
        assert out["status"] == "rejected"
        assert out["problems"]
        assert out["scores"] == []

    def test_blocked_by_quality_gate(self):
        deals = [make_deal(i, cost=None) for i in range(10)]
        out = score_week(deals, as_of=date(2025, 3, 10))
        assert out["status"] == "blocked"
        assert out["quality"]["passed"] is False
        assert out["scores"] == []

    def test_scored(self, ad_planner_csv):
        deals = collect_deals(parse_documents([("week.csv", ad_planner_csv)]))
        out = score_week(deals, weights=dict(DEFAULT_WEIGHTS), as_of=date(2025, 6, 24))
        assert out["status"] == "scored"
        assert len(out["scores"]) == 6
        assert out["ranking"]["rank"].tolist() == [1, 2, 3, 4, 5, 6]
        assert set(out["portfolio"]) == {"recommendations", "risk_factors", "optimization"}

    def test_duplicates_collapsed_before_gate(self):
        deals = [make_deal(i) for i in range(5)] + [make_deal(0)]
        out = score_week(deals, as_of=date(2025, 3, 10))
        assert len(out["deals"]) == 5
        assert len(out["duplicates"]) == 1
        assert len(out["scores"]) == 5
