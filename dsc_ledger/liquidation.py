"""
liquidation.py - Liquidation sizing and settlement against the ledgers

A third party (the liquidator) repays part of an insolvent user's debt and
receives the equivalent collateral plus a bonus.

Key Formulas:
    seized_base  = debt_to_cover * PRECISION / price(asset)
    bonus        = seized_base * liquidation_bonus / liquidation_precision
    total_seized = seized_base + bonus

Rules:
    - only positions with health factor < min_health_factor can be liquidated
    - the target's health factor must strictly improve
    - the liquidator must remain solvent afterwards

If the user's remaining collateral cannot fund total_seized, the collateral
debit underflows and the liquidation fails; the uncovered debt stays on the
books. This is an accepted risk of the model rather than something patched
over here.

LiquidationEngine only touches the ledgers; token movements are performed by
the Engine inside the same atomic scope.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import EngineParameters
from .core import (
    HealthFactorIntact, HealthFactorNotImproved,
    CollateralRedeemed, DscBurned, Liquidated,
    checked_add, checked_mul, require_positive_amount,
)
from .health import HealthFactorEngine
from .positions import CollateralLedger, DebtLedger
from .pricing_source import ValueConverter


_DEFAULT_PARAMETERS = EngineParameters()


@dataclass(frozen=True, slots=True)
class LiquidationQuote:
    """How much collateral covering debt_to_cover of debt is worth to a liquidator."""
    asset: str
    debt_to_cover: int
    seized_base: int
    bonus: int

    @property
    def total_seized(self) -> int:
        return self.seized_base + self.bonus


@dataclass(frozen=True, slots=True)
class LiquidationResult:
    """Outcome of a settled liquidation, including the events it produced."""
    quote: LiquidationQuote
    starting_health_factor: int
    ending_health_factor: int
    events: Tuple[object, ...]


def calculate_liquidation_bonus(
    seized_base: int,
    parameters: Optional[EngineParameters] = None,
) -> int:
    """
    Bonus collateral owed to a liquidator on top of seized_base.

    PURE FUNCTION - truncates toward zero.
    """
    params = parameters or _DEFAULT_PARAMETERS
    return checked_mul(seized_base, params.liquidation_bonus) // params.liquidation_precision


class LiquidationEngine:
    """Sizes liquidations and applies them to the ledgers."""

    def __init__(
        self,
        collateral: CollateralLedger,
        debt: DebtLedger,
        converter: ValueConverter,
        health: HealthFactorEngine,
        parameters: EngineParameters,
    ):
        self._collateral = collateral
        self._debt = debt
        self._converter = converter
        self._health = health
        self.parameters = parameters

    def quote(self, asset: str, debt_to_cover: int) -> LiquidationQuote:
        """Size a liquidation of debt_to_cover (wad) paid out in asset."""
        require_positive_amount(debt_to_cover, "debt_to_cover")
        seized_base = self._converter.token_amount_from_usd(asset, debt_to_cover)
        bonus = calculate_liquidation_bonus(seized_base, self.parameters)
        checked_add(seized_base, bonus)
        return LiquidationQuote(
            asset=asset,
            debt_to_cover=debt_to_cover,
            seized_base=seized_base,
            bonus=bonus,
        )

    def settle(self, liquidator: str, asset: str, user: str, debt_to_cover: int) -> LiquidationResult:
        """
        Apply a liquidation to the ledgers.

        Mutates the ledgers in place; the caller owns rollback.

        Raises:
            InvalidAmount: If debt_to_cover is not positive.
            HealthFactorIntact: If user is solvent.
            ArithmeticUnderflow: If user lacks the collateral or the debt.
            HealthFactorNotImproved: If user's health factor does not rise.
            HealthFactorBroken: If the liquidator ends up insolvent.
        """
        require_positive_amount(debt_to_cover, "debt_to_cover")
        starting = self._health.health_factor(user)
        if starting >= self.parameters.min_health_factor:
            raise HealthFactorIntact(
                f"Health factor of {user} is {starting}; nothing to liquidate"
            )

        quote = self.quote(asset, debt_to_cover)
        events = []
        # Dust debt against a very expensive asset can size to zero collateral.
        if quote.total_seized:
            redeemed: CollateralRedeemed = self._collateral.redeem(
                asset, quote.total_seized, from_=user, to=liquidator
            )
            events.append(redeemed)
        burned: DscBurned = self._debt.burn(user, liquidator, debt_to_cover)
        events.append(burned)

        ending = self._health.health_factor(user)
        if ending <= starting:
            raise HealthFactorNotImproved(
                f"Health factor of {user} went from {starting} to {ending}"
            )
        self._health.assert_healthy(liquidator)

        summary = Liquidated(
            liquidator=liquidator,
            user=user,
            asset=asset,
            debt_covered=debt_to_cover,
            collateral_seized=quote.total_seized,
            bonus=quote.bonus,
        )
        return LiquidationResult(
            quote=quote,
            starting_health_factor=starting,
            ending_health_factor=ending,
            events=(*events, summary),
        )
