from decimal import Decimal

import pytest

from app.models.wei_type import WeiAmount, WEI_DIGITS
from app.utils.loan_calculations import (
    duration_days,
    is_within_ltv,
    ltv_bps,
    ltv_ratio,
    max_principal_wei,
    MAX_WEI,
    normalize_address,
    parse_wei,
    projected_interest_wei,
)

ETH = 10 ** 18


class TestLtv:
    def test_exactly_eighty_percent_is_accepted(self):
        assert is_within_ltv(8 * ETH, 10 * ETH, 80)

    def test_one_wei_over_is_rejected(self):
        assert not is_within_ltv(8 * ETH + 1, 10 * ETH, 80)

    def test_8_01_eth_rejected(self):
        assert not is_within_ltv(8_010_000_000_000_000_000, 10 ** 19, 80)

    def test_no_float_drift_on_huge_values(self):
        collateral = 2 ** 255
        assert is_within_ltv(max_principal_wei(collateral, 80), collateral, 80)
        assert not is_within_ltv(max_principal_wei(collateral, 80) + 1, collateral, 80)

    def test_ltv_bps_and_ratio(self):
        assert ltv_bps(8 * ETH, 10 * ETH) == 8000
        assert ltv_ratio(8 * ETH, 10 * ETH) == Decimal("0.8000")
        assert ltv_ratio(1, 3) == Decimal("0.3333")
        assert ltv_bps(1, 0) == 0


class TestInterest:
    def test_full_year_at_ten_percent(self):
        assert projected_interest_wei(10 * ETH, 1000, 365 * 86_400) == ETH

    def test_thirty_days_pro_rated(self):
        # 10 ETH * 10% * 30/365
        expected = 10 * ETH * 1000 * 30 * 86_400 // (10_000 * 365 * 86_400)
        assert projected_interest_wei(10 * ETH, 1000, 30 * 86_400) == expected

    def test_zero_rate(self):
        assert projected_interest_wei(10 * ETH, 0, 86_400) == 0

    def test_duration_days(self):
        assert duration_days(86_400 * 7) == Decimal("7.00")
        assert duration_days(3600) == Decimal("0.04")


class TestAddress:
    def test_lower_cases(self):
        assert normalize_address("0x" + "AB" * 20) == "0x" + "ab" * 20

    @pytest.mark.parametrize("bad", [None, "", "0x123", "ab" * 21, "0x" + "zz" * 20])
    def test_rejects_malformed(self, bad):
        assert normalize_address(bad) == ""


class TestParseWei:
    def test_plain_digits(self):
        assert parse_wei(" 0042 ") == 42
        assert parse_wei(str(MAX_WEI)) == MAX_WEI

    @pytest.mark.parametrize("bad", ["", "1.5", "-1", "1e18", "0x10", "\u00b2", str(MAX_WEI + 1)])
    def test_rejects_non_decimal_or_oversized(self, bad):
        with pytest.raises(ValueError):
            parse_wei(bad)


class TestWeiAmount:
    def test_padded_round_trip(self):
        t = WeiAmount()
        stored = t.process_bind_param(12345, None)
        assert len(stored) == WEI_DIGITS
        assert t.process_result_value(stored, None) == 12345

    def test_padding_preserves_order(self):
        t = WeiAmount()
        assert t.process_bind_param(9 * ETH, None) < t.process_bind_param(10 * ETH, None)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            WeiAmount().process_bind_param(-1, None)

    def test_more_than_78_digits_rejected(self):
        with pytest.raises(ValueError):
            WeiAmount().process_bind_param(10 ** WEI_DIGITS, None)
        assert len(WeiAmount().process_bind_param(MAX_WEI, None)) == WEI_DIGITS
