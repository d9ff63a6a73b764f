"""
positions.py - Collateral and debt ledgers

The engine's only mutable state. Both ledgers enforce unsigned, checked
arithmetic: a decrement below zero raises ArithmeticUnderflow and an
increment past uint256 raises ArithmeticOverflow. Mutators return the event
record describing the change; publishing it is the engine's job.

snapshot() / restore() give the engine an all-or-nothing transaction scope.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Mapping, Tuple

from .core import (
    CollateralDeposited, CollateralRedeemed, DscBurned, DscMinted,
    checked_add, checked_sub, require_positive_amount,
)


# user -> asset -> amount
CollateralSnapshot = Tuple[Tuple[str, Tuple[Tuple[str, int], ...]], ...]
# user -> amount minted
DebtSnapshot = Tuple[Tuple[str, int], ...]


class CollateralLedger:
    """
    Per-user, per-asset deposited collateral.

    Amounts are in native asset units (18 decimals). Whether an asset is
    accepted is checked by the caller against the registry.
    """

    def __init__(self):
        self._deposits: Dict[str, Dict[str, int]] = defaultdict(dict)

    def balance(self, user: str, asset: str) -> int:
        """Collateral of asset deposited by user (0 if none)."""
        return self._deposits.get(user, {}).get(asset, 0)

    def positions(self, user: str) -> Dict[str, int]:
        """Copy of user's non-zero collateral positions."""
        return {a: q for a, q in self._deposits.get(user, {}).items() if q}

    def total_deposited(self, asset: str) -> int:
        """Sum of asset across all users."""
        return sum(positions.get(asset, 0) for positions in self._deposits.values())

    def deposit(self, user: str, asset: str, amount: int) -> CollateralDeposited:
        """
        Credit amount of asset to user.

        Raises:
            InvalidAmount: If amount is not positive.
            ArithmeticOverflow: If the position would exceed uint256.
        """
        require_positive_amount(amount)
        new_balance = checked_add(self.balance(user, asset), amount)
        self._deposits[user][asset] = new_balance
        return CollateralDeposited(user=user, asset=asset, amount=amount)

    def redeem(self, asset: str, amount: int, from_: str, to: str) -> CollateralRedeemed:
        """
        Debit amount of asset from from_'s position in favour of `to`.

        Raises:
            InvalidAmount: If amount is not positive.
            ArithmeticUnderflow: If from_ holds less than amount.
        """
        require_positive_amount(amount)
        new_balance = checked_sub(self.balance(from_, asset), amount)
        self._deposits[from_][asset] = new_balance
        return CollateralRedeemed(redeemed_from=from_, redeemed_to=to, asset=asset, amount=amount)

    def snapshot(self) -> CollateralSnapshot:
        return tuple(
            (user, tuple(sorted(assets.items())))
            for user, assets in sorted(self._deposits.items())
        )

    def restore(self, snapshot: CollateralSnapshot) -> None:
        self._deposits = defaultdict(dict)
        for user, assets in snapshot:
            self._deposits[user] = dict(assets)

    def __repr__(self):
        return f"CollateralLedger({len(self._deposits)} users)"


class DebtLedger:
    """Per-user minted liability (18-decimal DSC units)."""

    def __init__(self):
        self._minted: Dict[str, int] = {}

    def debt_of(self, user: str) -> int:
        return self._minted.get(user, 0)

    def total_debt(self) -> int:
        return sum(self._minted.values())

    def debts(self) -> Mapping[str, int]:
        """Copy of every non-zero debt position."""
        return {u: d for u, d in self._minted.items() if d}

    def mint(self, on_behalf_of: str, amount: int) -> DscMinted:
        """
        Record amount of new debt for on_behalf_of.

        The caller must verify solvency afterwards and roll back on failure.
        """
        require_positive_amount(amount)
        self._minted[on_behalf_of] = checked_add(self.debt_of(on_behalf_of), amount)
        return DscMinted(user=on_behalf_of, amount=amount)

    def burn(self, on_behalf_of: str, payer: str, amount: int) -> DscBurned:
        """
        Reduce on_behalf_of's debt by amount, paid for by payer.

        Raises:
            InvalidAmount: If amount is not positive.
            ArithmeticUnderflow: If on_behalf_of owes less than amount.
        """
        require_positive_amount(amount)
        self._minted[on_behalf_of] = checked_sub(self.debt_of(on_behalf_of), amount)
        return DscBurned(on_behalf_of=on_behalf_of, payer=payer, amount=amount)

    def snapshot(self) -> DebtSnapshot:
        return tuple(sorted(self._minted.items()))

    def restore(self, snapshot: DebtSnapshot) -> None:
        self._minted = dict(snapshot)

    def __repr__(self):
        return f"DebtLedger({len(self._minted)} users, total={self.total_debt()})"
