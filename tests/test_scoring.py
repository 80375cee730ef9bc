from datetime import date, timedelta

import pandas as pd
import pytest

from dealcore.scoring import (
    analyze_portfolio, check_weights, competitive_score, compute_multipliers, funding_score,
    historical_multiplier, interpret_score, load_saved_weights, margin_score, new_item_multiplier,
    rank_scores, save_weights, score_batch, score_deal, seasonal_multiplier, strategic_multiplier,
    theme_score, timing_score, velocity_score,
)
from dealcore.tables import DEFAULT_WEIGHTS
from tests.conftest import make_deal


class TestMargin:
    def test_above_ceiling(self):
        assert margin_score(make_deal(cost=3.45, ad_srp=4.99, dept="Grocery")) == 100.0

    def test_below_department_floor(self):
        assert margin_score(make_deal(cost=4.0, ad_srp=5.0, dept="Grocery")) == 0.0

    def test_interpolated(self):
        # 20% margin, meat floor 18%: 50 + 2/12 * 50
        assert margin_score(make_deal(cost=4.0, ad_srp=5.0, dept="Meat")) == pytest.approx(58.333, abs=0.01)

    def test_at_floor_is_fifty(self):
        assert margin_score(make_deal(cost=4.25, ad_srp=5.0, dept="Other")) == pytest.approx(50.0)

    def test_absent_prices(self):
        assert margin_score(make_deal(ad_srp=None)) == 0.0
        assert margin_score(make_deal(cost=None)) == 0.0

    def test_net_unit_cost_preferred(self):
        assert margin_score(make_deal(cost=4.5, net_unit_cost=3.0, ad_srp=5.0)) == 100.0


class TestBuckets:
    def test_funding_boundaries(self):
        assert funding_score(make_deal(vendor_funding_pct=0.15)) == 85.0
        assert funding_score(make_deal(vendor_funding_pct=0.149)) == 70.0
        assert funding_score(make_deal(vendor_funding_pct=0.20)) == 100.0
        assert funding_score(make_deal(vendor_funding_pct=0.01)) == 20.0
        assert funding_score(make_deal(vendor_funding_pct=0.0)) == 0.0
        assert funding_score(make_deal(vendor_funding_pct=None)) == 0.0

    def test_velocity(self):
        assert velocity_score(make_deal(mvmt=4.0)) == 100.0
        assert velocity_score(make_deal(mvmt=2.5)) == 70.0
        assert velocity_score(make_deal(mvmt=1.5)) == 40.0
        assert velocity_score(make_deal(mvmt=None)) == 20.0

    def test_timing(self, as_of):
        assert timing_score(make_deal(promo_start=as_of + timedelta(days=2)), as_of) == 100.0
        assert timing_score(make_deal(promo_start=as_of - timedelta(days=5)), as_of) == 80.0
        assert timing_score(make_deal(promo_start=as_of + timedelta(days=10)), as_of) == 60.0
        assert timing_score(make_deal(promo_start=as_of + timedelta(days=30)), as_of) == 40.0
        assert timing_score(make_deal(promo_start=None), as_of) == 60.0

    def test_competitive(self):
        assert competitive_score(make_deal(ad_srp=4.0, competitor_price=5.0)) == 100.0
        assert competitive_score(make_deal(ad_srp=4.5, competitor_price=5.0)) == 80.0
        assert competitive_score(make_deal(ad_srp=4.0, competitor_price=4.0)) == 20.0
        assert competitive_score(make_deal(ad_srp=4.0, competitor_price=None)) == 50.0
        assert competitive_score(make_deal(ad_srp=None, competitor_price=5.0)) == 50.0


class TestTheme:
    def test_base(self, as_of):
        assert theme_score(make_deal(description="Plain Crackers"), as_of) == 50.0

    def test_month_and_health_keywords(self, as_of):
        # march: fresh +20, keto +15
        assert theme_score(make_deal(description="Fresh Keto Bread"), as_of) == 85.0

    def test_capped(self, as_of):
        assert theme_score(make_deal(description="Organic Spring Greens"), as_of) == 100.0

    def test_holiday_window(self):
        deal = make_deal(description="Buffalo Wing Dip")
        assert theme_score(deal, date(2025, 2, 5)) == 100.0
        assert theme_score(deal, date(2025, 2, 20)) == 50.0


class TestMultipliers:
    def test_seasonal_department_month(self):
        assert seasonal_multiplier(make_deal(dept="Produce"), date(2025, 4, 1)) == pytest.approx(1.2)
        assert seasonal_multiplier(make_deal(dept="Produce"), date(2025, 1, 1)) == pytest.approx(0.9)
        assert seasonal_multiplier(make_deal(dept="Unknown"), date(2025, 4, 1)) == 1.0

    def test_seasonal_summer_keyword(self):
        deal = make_deal(dept="Grocery", description="Vanilla Ice Cream")
        assert seasonal_multiplier(deal, date(2025, 7, 4)) == pytest.approx(1.25)

    def test_strategic(self):
        assert strategic_multiplier(make_deal(description="Premium Milk Chocolate Candy")) == pytest.approx(1.45)
        assert strategic_multiplier(make_deal(description="Plain Crackers")) == 1.0

    def test_historical(self):
        assert historical_multiplier(make_deal(mvmt=3.0, cost=2.0, ad_srp=4.0)) == 1.25
        assert historical_multiplier(make_deal(mvmt=2.2, cost=3.3, ad_srp=4.0)) == 1.15
        assert historical_multiplier(make_deal(mvmt=None, cost=2.0, ad_srp=4.0)) == 0.9
        assert historical_multiplier(make_deal(mvmt=1.8, cost=3.2, ad_srp=4.0)) == 1.0

    def test_new_item_word_match(self):
        assert new_item_multiplier(make_deal(description="New Flavor Chips")) == 1.3
        assert new_item_multiplier(make_deal(description="Limited Edition Cookies")) == 1.2
        assert new_item_multiplier(make_deal(description="Renewed Formula Soap")) == 1.0

    def test_private_label_only_when_matched(self, as_of):
        assert compute_multipliers(make_deal(description="Store Brand Cola"), as_of)["private_label"] == 1.4
        assert "private_label" not in compute_multipliers(make_deal(), as_of)


def _hero_deal():
    return make_deal(
        description="Organic Spring Greens", dept="Produce", cost=2.0, ad_srp=4.0, mvmt=3.5,
        vendor_funding_pct=0.15, competitor_price=5.0, promo_start=date(2025, 3, 12),
    )


class TestScoreDeal:
    def test_clamped_at_hundred(self, as_of):
        sc = score_deal(_hero_deal(), as_of=as_of)
        assert sc["components"] == {
            "margin": 100.0, "velocity": 85.0, "funding": 85.0,
            "theme": 100.0, "timing": 100.0, "competitive": 100.0,
        }
        assert sc["total"] == 100.0
        assert interpret_score(sc["total"]) == "MUST INCLUDE"

    def test_reason_order(self, as_of):
        reasons = score_deal(_hero_deal(), as_of=as_of)["reasons"]
        assert reasons[:5] == [
            "Strong margin of 50.0% exceeds department standards.",
            "High velocity multiplier of 3.5x indicates strong sales potential.",
            "Vendor funding of 15% significantly improves net profitability.",
            "Excellent seasonal/thematic alignment enhances promotional effectiveness.",
            "Strong competitive pricing advantage drives market share growth.",
        ]
        assert reasons[5].startswith("Insights: optimal profitability; high turnover potential;")
        assert len(reasons) == 6

    def test_weak_deal_reasons(self, as_of):
        deal = make_deal(description="Plain Crackers", cost=None, ad_srp=None)
        sc = score_deal(deal, as_of=as_of)
        assert sc["reasons"] == [
            "Low margin of 0.0% below optimal levels.",
            "No vendor funding support reduces deal attractiveness.",
            "Insights: consider promotional support to boost velocity; negotiate vendor funding.",
        ]
        assert 0.0 <= sc["total"] <= 100.0

    def test_deterministic(self, as_of):
        deals = [_hero_deal(), make_deal(2), make_deal(3, description="New Store Brand Soda")]
        assert score_batch(deals, as_of=as_of) == score_batch(deals, as_of=as_of)

    def test_total_never_negative(self, as_of):
        deal = make_deal(cost=100.0, ad_srp=1.0, mvmt=-5.0, vendor_funding_pct=-1.0, competitor_price=0.5)
        assert score_deal(deal, as_of=as_of)["total"] >= 0.0

    def test_unnormalized_weights_scale_total(self, as_of):
        deal = make_deal(description="Plain Crackers", cost=None, ad_srp=None)
        base = score_deal(deal, DEFAULT_WEIGHTS, as_of)["total"]
        doubled = score_deal(deal, {k: v * 2 for k, v in DEFAULT_WEIGHTS.items()}, as_of)["total"]
        assert doubled == pytest.approx(2 * base, abs=0.02)


class TestTiers:
    def test_cut_points(self):
        assert interpret_score(85) == "MUST INCLUDE"
        assert interpret_score(84.99) == "STRONGLY RECOMMENDED"
        assert interpret_score(70) == "STRONGLY RECOMMENDED"
        assert interpret_score(55) == "RECOMMENDED"
        assert interpret_score(40) == "CONSIDER"
        assert interpret_score(39.9) == "SKIP"


class TestWeights:
    def test_defaults_ok(self):
        assert check_weights(dict(DEFAULT_WEIGHTS)) == []

    def test_missing_and_unknown(self):
        problems = check_weights({"margin": 1.0, "foo": 0.0})
        assert "Unknown weight: foo" in problems
        assert "Missing weight: velocity" in problems

    def test_bad_sum(self):
        w = dict(DEFAULT_WEIGHTS, margin=0.5)
        assert any("sum" in p for p in check_weights(w))

    def test_negative(self):
        w = dict(DEFAULT_WEIGHTS, margin=-0.25, velocity=0.75)
        assert "Weight margin is negative" in check_weights(w)

    def test_save_and_load(self, tmp_path, monkeypatch):
        monkeypatch.setattr("dealcore.scoring.weights_path", lambda: tmp_path / "weights.json")
        w = dict(DEFAULT_WEIGHTS, margin=0.3, competitive=0.0)
        save_weights(w)
        assert load_saved_weights() == w

    def test_load_defaults_when_missing(self, tmp_path, monkeypatch):
        monkeypatch.setattr("dealcore.scoring.weights_path", lambda: tmp_path / "none.json")
        assert load_saved_weights() == DEFAULT_WEIGHTS


def _score(code, total, margin, funding):
    return {
        "item_code": code,
        "total": total,
        "components": {"margin": margin, "velocity": 0.0, "funding": funding,
                       "theme": 50.0, "timing": 60.0, "competitive": 50.0},
        "multipliers": {},
        "reasons": [],
    }


class TestRanking:
    def test_tie_breaks(self):
        codes = ["A", "B", "C", "D", "E"]
        deals = [make_deal(i, item_code=c) for i, c in enumerate(codes)]
        scores = [
            _score("A", 80.0, 50.0, 85.0),
            _score("B", 80.0, 70.0, 40.0),
            _score("C", 80.0, 70.0, 85.0),
            _score("D", 90.0, 10.0, 0.0),
            _score("E", 80.0, 70.0, 85.0),
        ]
        df = rank_scores(deals, scores)
        assert df["item_code"].tolist() == ["D", "C", "E", "B", "A"]
        assert df["rank"].tolist() == [1, 2, 3, 4, 5]
        assert df.loc[0, "tier"] == "MUST INCLUDE"

    def test_empty(self):
        df = rank_scores([], [])
        assert df.empty
        assert "rank" in df.columns

    def test_total_scan_column(self):
        deals = [make_deal(1, ad_scan=10.0, tpr_scan=5.0), make_deal(2)]
        scores = [_score("0001", 70.0, 50.0, 50.0), _score("0002", 60.0, 50.0, 50.0)]
        df = rank_scores(deals, scores)
        assert df.loc[0, "total_scan"] == 15.0
        assert pd.isna(df.loc[1, "total_scan"])


class TestPortfolio:
    def test_strong_heroes(self):
        deals = [make_deal(i, cost=2.0, ad_srp=4.0) for i in range(10)]
        scores = [_score(d["item_code"], 90.0 if i < 4 else 60.0, 100.0, 0.0) for i, d in enumerate(deals)]
        out = analyze_portfolio(deals, scores)
        assert out["recommendations"] == ["Strong hero item selection - excellent promotional foundation"]
        assert out["risk_factors"] == []

    def test_weak_portfolio(self):
        deals = [make_deal(i, cost=None, ad_srp=None) for i in range(10)]
        scores = [_score(d["item_code"], 90.0 if i == 0 else 30.0, 0.0, 0.0) for i, d in enumerate(deals)]
        out = analyze_portfolio(deals, scores)
        assert len(out["risk_factors"]) == 2
        assert len(out["optimization"]) == 2

    def test_empty(self):
        assert analyze_portfolio([], []) == {"recommendations": [], "risk_factors": [], "optimization": []}
