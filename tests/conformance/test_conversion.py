"""
Conversion Conformance Tests

INVARIANT: Converting to USD and back never yields more than was started with.

    ∀ asset price p > 0 (scaled to 18 decimals as P), amount x:
        back = token_amount_from_usd(usd_value(x))
        0 <= x - back <= PRECISION // P + 1

Both directions truncate toward zero; the gap is at most one unit of
truncation on each leg.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from dsc_ledger import (
    PRECISION,
    MockPriceFeed, PriceOracleAdapter, ValueConverter,
)


def _converter(answer, decimals):
    return ValueConverter({"X": PriceOracleAdapter(MockPriceFeed(decimals, answer))})


class TestConversionProperties:

    @given(
        answer=st.integers(min_value=1, max_value=10 ** 12),
        decimals=st.integers(min_value=0, max_value=18),
        amount=st.integers(min_value=0, max_value=10 ** 30),
    )
    @settings(max_examples=300)
    def test_round_trip_bounded(self, answer, decimals, amount):
        """
        PROPERTY: usd -> token round trip loses at most one truncation step.
        """
        converter = _converter(answer, decimals)
        scaled_price = answer * 10 ** (18 - decimals)

        back = converter.token_amount_from_usd("X", converter.usd_value("X", amount))

        assert 0 <= amount - back <= PRECISION // scaled_price + 1

    @given(
        answer=st.integers(min_value=1, max_value=10 ** 12),
        a=st.integers(min_value=0, max_value=10 ** 30),
        b=st.integers(min_value=0, max_value=10 ** 30),
    )
    @settings(max_examples=200)
    def test_usd_value_is_monotonic(self, answer, a, b):
        """
        PROPERTY: more collateral is never worth less.
        """
        converter = _converter(answer, 8)
        low, high = sorted((a, b))
        assert converter.usd_value("X", low) <= converter.usd_value("X", high)

    @given(
        answer=st.integers(min_value=1, max_value=10 ** 12),
        amount=st.integers(min_value=0, max_value=10 ** 30),
    )
    @settings(max_examples=200)
    def test_usd_value_never_rounds_up(self, answer, amount):
        """
        PROPERTY: usd_value(x) * PRECISION <= P * x.
        """
        converter = _converter(answer, 8)
        scaled_price = answer * 10 ** 10
        assert converter.usd_value("X", amount) * PRECISION <= scaled_price * amount


class TestConversionExamples:

    def test_fifteen_eth(self):
        converter = _converter(2000 * 10 ** 8, 8)
        assert converter.usd_value("X", 15 * PRECISION) == 30_000 * PRECISION

    def test_hundred_dollars_of_eth(self):
        converter = _converter(2000 * 10 ** 8, 8)
        assert converter.token_amount_from_usd("X", 100 * PRECISION) == 5 * 10 ** 16
