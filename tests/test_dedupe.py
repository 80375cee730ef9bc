from dealcore.dedupe import dedupe_deals
from tests.conftest import make_deal


class TestDedupeDeals:
    def test_keeps_more_complete_copy(self):
        sparse = make_deal(1, item_code="00123", upc="012345678905", ad_srp=None, source_file="a.xlsx")
        full = make_deal(2, item_code="123", upc="012345678905", mvmt=2.0, source_file="b.xlsx")
        kept, dups = dedupe_deals([sparse, full])
        assert kept == [full]
        assert len(dups) == 1
        assert dups[0]["kept_source"] == "b.xlsx"
        assert dups[0]["dropped_source"] == "a.xlsx"

    def test_first_copy_wins_ties(self):
        a = make_deal(1, item_code="500", source_file="a.xlsx")
        b = make_deal(1, item_code="500", source_file="b.xlsx")
        kept, dups = dedupe_deals([a, b])
        assert kept == [a]
        assert dups[0]["dropped_source"] == "b.xlsx"

    def test_different_upc_not_merged(self):
        a = make_deal(1, item_code="500", upc="012345678905")
        b = make_deal(2, item_code="500", upc="099999999999")
        kept, dups = dedupe_deals([a, b])
        assert len(kept) == 2
        assert dups == []

    def test_order_preserved(self):
        deals = [make_deal(i) for i in range(5)] + [make_deal(2)]
        kept, dups = dedupe_deals(deals)
        assert [d["item_code"] for d in kept] == ["0000", "0001", "0002", "0003", "0004"]
        assert len(dups) == 1

    def test_missing_code_kept(self):
        a = make_deal(1, item_code="")
        b = make_deal(2, item_code="")
        kept, _ = dedupe_deals([a, b])
        assert len(kept) == 2
