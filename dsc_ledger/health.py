"""
health.py - Health factor computation

ARCHITECTURE (Pure Function Pattern):
=====================================

1. PURE CALCULATION FUNCTION (calculate_health_factor):
   - Takes debt, collateral value and parameters explicitly
   - No ledger access, trivially testable

2. HealthFactorEngine:
   - Reads a user's positions from the ledgers once
   - Values them through the ValueConverter
   - Delegates to the pure function

Key Formula:
    adjusted_collateral = collateral_value_usd * threshold / liquidation_precision
    health_factor = adjusted_collateral * PRECISION / total_debt
    health_factor = MAX_UINT256 when total_debt == 0 (never divides)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .config import EngineParameters
from .core import MAX_UINT256, HealthFactorBroken, checked_mul
from .positions import CollateralLedger, DebtLedger
from .pricing_source import ValueConverter


_DEFAULT_PARAMETERS = EngineParameters()


@dataclass(frozen=True, slots=True)
class AccountInformation:
    """A user's debt and the USD value (wad) of all their collateral."""
    total_dsc_minted: int
    collateral_value_in_usd: int


def calculate_health_factor(
    total_dsc_minted: int,
    collateral_value_in_usd: int,
    parameters: Optional[EngineParameters] = None,
) -> int:
    """
    Compute a health factor from explicit inputs.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Args:
        total_dsc_minted: Outstanding debt (wad)
        collateral_value_in_usd: Unadjusted collateral value (wad)
        parameters: Risk parameters (defaults: 50% threshold, 1e18 precision)

    Returns:
        Health factor in wad; MAX_UINT256 for a debt-free account.

    Example:
        # 20000 USD of collateral against 9999 DSC -> ~1.0001e18
        calculate_health_factor(9999 * 10**18, 20000 * 10**18)
    """
    params = parameters or _DEFAULT_PARAMETERS
    if total_dsc_minted == 0:
        return MAX_UINT256
    adjusted = checked_mul(collateral_value_in_usd, params.liquidation_threshold) \
        // params.liquidation_precision
    return checked_mul(adjusted, params.precision) // total_dsc_minted


class HealthFactorEngine:
    """Computes solvency ratios from the engine's ledgers."""

    def __init__(
        self,
        collateral: CollateralLedger,
        debt: DebtLedger,
        converter: ValueConverter,
        parameters: EngineParameters,
    ):
        self._collateral = collateral
        self._debt = debt
        self._converter = converter
        self.parameters = parameters

    def collateral_value(self, user: str) -> int:
        """USD value (wad) of every collateral position held by user."""
        return self._converter.total_usd_value(self._collateral.positions(user))

    def account_information(self, user: str) -> AccountInformation:
        return AccountInformation(
            total_dsc_minted=self._debt.debt_of(user),
            collateral_value_in_usd=self.collateral_value(user),
        )

    def health_factor(self, user: str) -> int:
        """
        Current health factor of user.

        Debt-free users short-circuit to MAX_UINT256 without reading prices.
        """
        debt = self._debt.debt_of(user)
        if debt == 0:
            return MAX_UINT256
        return calculate_health_factor(debt, self.collateral_value(user), self.parameters)

    def is_healthy(self, user: str) -> bool:
        return self.health_factor(user) >= self.parameters.min_health_factor

    def assert_healthy(self, user: str) -> int:
        """
        Raise unless user is solvent; return the health factor otherwise.

        Raises:
            HealthFactorBroken: If the health factor is below the minimum.
        """
        health_factor = self.health_factor(user)
        if health_factor < self.parameters.min_health_factor:
            raise HealthFactorBroken(user, health_factor, self.parameters.min_health_factor)
        return health_factor
