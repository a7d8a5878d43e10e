from decimal import Decimal

import pytest

from app.core.errors import NotFoundError, ValidationError
from app.models.loan_model import LOAN_FUNDED
from app.services import explore, funding, identity, offers
from app.services.explore import ExploreFilters
from tests.conftest import BORROWER, DAY, ETH, LENDER, OTHER_LENDER, offer_request


@pytest.fixture
def market(db, borrower, clock):
    """Three offers from alice, one from carol; the 2 ETH one gets funded."""
    identity.register_user(db, "carol", OTHER_LENDER)

    a, _ = offers.create_offer(
        db, offer_request(token_id="1", principal_wei=5 * ETH, interest_rate_bps=1000, duration_seconds=30 * DAY),
        now=clock,
    )
    clock.advance(minutes=1)
    b, _ = offers.create_offer(
        db, offer_request(token_id="2", principal_wei=2 * ETH, interest_rate_bps=500, duration_seconds=90 * DAY),
        now=clock,
    )
    clock.advance(minutes=1)
    c, _ = offers.create_offer(
        db, offer_request(token_id="3", principal_wei=8 * ETH, interest_rate_bps=2000, duration_seconds=7 * DAY),
        now=clock,
    )
    clock.advance(minutes=1)
    d, _ = offers.create_offer(
        db,
        offer_request(borrower_wallet=OTHER_LENDER, token_id="4", principal_wei=ETH, interest_rate_bps=1500),
        now=clock,
    )
    funding.fund_loan(db, b.id, LENDER, "0xfund-b", now=clock)
    return {"a": a, "b": b, "c": c, "d": d}


def _ids(rows):
    return [r["loan"].id for r in rows]


class TestExplore:
    def test_defaults_to_active_newest_first(self, db, market):
        rows = explore.explore_loans(db, ExploreFilters())
        assert _ids(rows) == [market["d"].id, market["c"].id, market["a"].id]

    def test_status_filter(self, db, market):
        rows = explore.explore_loans(db, ExploreFilters(status="funded"))
        assert _ids(rows) == [market["b"].id]
        assert rows[0]["loan"].status == LOAN_FUNDED

    def test_interest_range(self, db, market):
        rows = explore.explore_loans(db, ExploreFilters(min_interest_rate=1000, max_interest_rate=1500))
        assert sorted(_ids(rows)) == sorted([market["a"].id, market["d"].id])

    def test_amount_range_compares_numerically(self, db, market):
        rows = explore.explore_loans(db, ExploreFilters(min_amount=2 * ETH, max_amount=10 * ETH))
        assert sorted(_ids(rows)) == sorted([market["a"].id, market["c"].id])

    def test_exclude_wallet(self, db, market):
        rows = explore.explore_loans(db, ExploreFilters(exclude_wallet=BORROWER.upper().replace("0X", "0x")))
        assert _ids(rows) == [market["d"].id]

    @pytest.mark.parametrize(
        "sort_by, order, expected",
        [
            ("amount", "asc", ["d", "a", "c"]),
            ("amount", "desc", ["c", "a", "d"]),
            ("interestRate", "asc", ["a", "d", "c"]),
            ("duration", "asc", ["c", "a", "d"]),
            ("createdAt", "asc", ["a", "c", "d"]),
            ("nonsense", "desc", ["d", "c", "a"]),
        ],
    )
    def test_sorting(self, db, market, sort_by, order, expected):
        rows = explore.explore_loans(db, ExploreFilters(sort_by=sort_by, sort_order=order))
        assert _ids(rows) == [market[k].id for k in expected]

    def test_derived_fields(self, db, market, borrower):
        rows = explore.explore_loans(db, ExploreFilters(user_id=borrower.id))
        row = next(r for r in rows if r["loan"].id == market["a"].id)

        # 5 ETH against 10 ETH
        assert row["ltv_bps"] == 5000
        assert row["ltv_ratio"] == Decimal("0.5000")
        assert row["duration_days"] == Decimal("30.00")
        expected_interest = 5 * ETH * 1000 * 30 // (10_000 * 365)
        assert row["projected_interest_wei"] == expected_interest
        assert row["total_return_wei"] == 5 * ETH + expected_interest
        assert row["is_own_loan"]

        other = next(r for r in rows if r["loan"].id == market["d"].id)
        assert not other["is_own_loan"]

    def test_malformed_exclude_wallet_rejected(self, db, market):
        with pytest.raises(ValidationError, match="excludeWallet"):
            explore.explore_loans(db, ExploreFilters(exclude_wallet="0x1234"))

    def test_unknown_status_rejected(self, db, market):
        with pytest.raises(ValidationError):
            explore.explore_loans(db, ExploreFilters(status="PENDING"))

    def test_inverted_range_rejected(self, db, market):
        with pytest.raises(ValidationError):
            explore.explore_loans(db, ExploreFilters(min_amount=5, max_amount=1))


class TestOpenOffers:
    def test_only_unfunded_active(self, db, market):
        ids = [l.id for l in explore.list_open_offers(db)]
        assert market["b"].id not in ids
        assert sorted(ids) == sorted([market["a"].id, market["c"].id, market["d"].id])

    def test_exclude_address(self, db, market):
        ids = [l.id for l in explore.list_open_offers(db, exclude_wallet=BORROWER)]
        assert ids == [market["d"].id]

    def test_malformed_exclude_address_rejected(self, db, market):
        with pytest.raises(ValidationError, match="excludeAddress"):
            explore.list_open_offers(db, exclude_wallet="alice")


class TestUserLoans:
    def test_split_by_role(self, db, market):
        out = explore.list_user_loans(db, wallet_address=LENDER)
        assert [l.id for l in out["lent"]] == [market["b"].id]
        assert out["borrowed"] == []
        assert out["total_lent"] == 1

        alice = explore.list_user_loans(db, wallet_address=BORROWER)
        assert alice["total_borrowed"] == 3
        assert len(alice["all"]) == 3

    def test_by_user_id(self, db, market, borrower):
        out = explore.list_user_loans(db, user_id=borrower.id)
        assert out["user"].id == borrower.id

    def test_identifier_required(self, db):
        with pytest.raises(ValidationError):
            explore.list_user_loans(db)

    def test_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            explore.list_user_loans(db, wallet_address="0x" + "9" * 40)


class TestStats:
    def test_platform_stats(self, db, market):
        stats = explore.platform_stats(db)
        assert stats["total_loans"] == 4
        assert stats["total_loans_issued_wei"] == 2 * ETH
        assert stats["unique_borrowers"] == 2
        assert stats["locked_collaterals"] == 4
        assert stats["avg_interest_rate_bps"] == (1000 + 500 + 2000 + 1500) // 4

    def test_empty(self, db):
        stats = explore.platform_stats(db)
        assert stats["total_loans"] == 0
        assert stats["total_loans_issued_wei"] == 0
        assert stats["avg_interest_rate_bps"] == 0
