from dealcore.canonical import effective_cost, margin_fraction, total_scan
from tests.conftest import make_deal


class TestTotalScan:
    def test_sum_of_present_values(self):
        assert total_scan(make_deal(ad_scan=10.0, tpr_scan=5.0, edlc_scan=None)) == 15.0

    def test_all_absent_is_none(self):
        assert total_scan(make_deal()) is None
        assert total_scan(make_deal(ad_scan=None, tpr_scan=None, edlc_scan=None)) is None

    def test_zero_is_kept(self):
        assert total_scan(make_deal(ad_scan=0.0)) == 0.0


class TestCost:
    def test_net_unit_cost_wins(self):
        assert effective_cost(make_deal(cost=3.0, net_unit_cost=2.5)) == 2.5
        assert effective_cost(make_deal(cost=3.0)) == 3.0
        assert effective_cost(make_deal(cost=None)) is None

    def test_margin_needs_both_prices(self):
        assert margin_fraction(make_deal(ad_srp=None)) is None
        assert margin_fraction(make_deal(cost=2.0, ad_srp=4.0)) == 0.5
