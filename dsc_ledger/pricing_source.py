"""
pricing_source.py - Price feeds and USD value conversion

Provides the pricing layer the engine values collateral with.

Classes:
- MockPriceFeed: In-memory feed reporting a settable answer (local deployments, tests)
- PriceOracleAdapter: Wraps one feed; rejects bad answers and normalizes to 18 decimals
- ValueConverter: Converts between native asset amounts and USD value (both wad)

All conversions are integer-only and truncate toward zero.
"""

from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Mapping, Optional

from .core import (
    PRECISION, WAD_DECIMALS,
    PriceFeed, PriceRound,
    AssetNotAllowed, InvalidPrice, StalePrice,
    checked_add, checked_mul,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current time."""
    return datetime.now(timezone.utc)


class MockPriceFeed:
    """
    Price feed with a manually updated answer.

    Mirrors the read surface of an aggregator: a fixed number of decimals and
    a latest round carrying the answer and its update time.

    Example:
        feed = MockPriceFeed(decimals=8, initial_answer=2000_00000000)
        feed.update_answer(1800_00000000)
    """

    def __init__(self, decimals: int, initial_answer: int, clock: Optional[Clock] = None):
        if decimals < 0:
            raise ValueError(f"decimals cannot be negative, got {decimals}")
        self.decimals = decimals
        self._clock = clock or utc_now
        self._round = PriceRound(answer=initial_answer, updated_at=self._clock(), round_id=1)

    def latest_round_data(self) -> PriceRound:
        return self._round

    def update_answer(self, answer: int, updated_at: Optional[datetime] = None) -> None:
        """Publish a new answer; updated_at defaults to the feed clock."""
        self._round = PriceRound(
            answer=answer,
            updated_at=updated_at or self._clock(),
            round_id=self._round.round_id + 1,
        )

    def __repr__(self):
        return f"MockPriceFeed(answer={self._round.answer}, decimals={self.decimals})"


class PriceOracleAdapter:
    """
    Reads one feed and returns its price on the canonical 18-decimal scale.

    A zero or negative answer is a fatal input (InvalidPrice). When
    max_staleness is set, an answer older than that window raises StalePrice.
    """

    def __init__(
        self,
        feed: PriceFeed,
        max_staleness: Optional[timedelta] = None,
        clock: Optional[Clock] = None,
    ):
        self.feed = feed
        self.max_staleness = max_staleness
        self._clock = clock or utc_now

    def latest_price(self) -> int:
        """
        Return the latest answer scaled to 18 decimals.

        Raises:
            InvalidPrice: If the answer is zero or negative.
            StalePrice: If the answer is older than max_staleness.
        """
        data = self.feed.latest_round_data()
        if data.answer <= 0:
            raise InvalidPrice(f"Feed {self.feed!r} reported non-positive answer {data.answer}")
        if self.max_staleness is not None:
            age = self._clock() - data.updated_at
            if age > self.max_staleness:
                raise StalePrice(
                    f"Feed {self.feed!r} last updated {age} ago (limit {self.max_staleness})"
                )
        decimals = self.feed.decimals
        if decimals <= WAD_DECIMALS:
            price = checked_mul(data.answer, 10 ** (WAD_DECIMALS - decimals))
        else:
            price = data.answer // 10 ** (decimals - WAD_DECIMALS)
        logger.debug("Read %r round %d -> %d", self.feed, data.round_id, price)
        return price

    @property
    def additional_feed_precision(self) -> int:
        """Factor applied to raw answers to reach 18 decimals (1 for feeds at or above 18)."""
        return 10 ** max(WAD_DECIMALS - self.feed.decimals, 0)


class ValueConverter:
    """
    Converts between native asset quantities and USD value.

    Both sides are 18-decimal fixed point. Division truncates, so the
    conversions are inverses only up to one truncation unit.
    """

    def __init__(self, oracles: Mapping[str, PriceOracleAdapter]):
        self._oracles: Dict[str, PriceOracleAdapter] = dict(oracles)

    def _price(self, asset: str) -> int:
        oracle = self._oracles.get(asset)
        if oracle is None:
            raise AssetNotAllowed(f"No price feed registered for {asset}")
        price = oracle.latest_price()
        # A feed with more than 18 decimals may truncate a tiny answer to zero.
        if price <= 0:
            raise InvalidPrice(f"Price for {asset} truncates to zero at 18 decimals")
        return price

    def usd_value(self, asset: str, amount: int) -> int:
        """USD value (wad) of amount native units of asset."""
        return checked_mul(self._price(asset), amount) // PRECISION

    def token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        """Native units of asset worth usd_amount (wad)."""
        return checked_mul(usd_amount, PRECISION) // self._price(asset)

    def total_usd_value(self, positions: Mapping[str, int]) -> int:
        """Sum the USD value of an asset -> amount mapping, skipping empty positions."""
        total = 0
        for asset, amount in positions.items():
            if amount:
                total = checked_add(total, self.usd_value(asset, amount))
        return total
