"""
Core types and pure functions for the stable-value accounting engine.

This module provides the foundational data structures and protocols:
1. Protocols: capability surfaces of the external collaborators
   (collateral tokens, the liability token, price feeds)
2. Immutable data structures: PriceRound and the event records
3. Exceptions: EngineError and the domain-specific error types
4. Checked fixed-point helpers emulating unsigned 256-bit arithmetic

All quantities are integers. USD values and DSC amounts use the canonical
18-decimal fixed-point scale ("wad").
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import Optional, Protocol, runtime_checkable


# ============================================================================
# CONSTANTS
# ============================================================================

# Canonical fixed-point base: 1.0 == 10**18.
PRECISION = 10 ** 18
WAD_DECIMALS = 18

# Health factor at or above which a position is solvent (ratio 1.0).
MIN_HEALTH_FACTOR = PRECISION

# Only LIQUIDATION_THRESHOLD / LIQUIDATION_PRECISION of the collateral value
# counts toward solvency (50% -> 200% over-collateralization).
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_BONUS = 10
LIQUIDATION_PRECISION = 100

# Upper bound of every ledger quantity and intermediate product.
MAX_UINT256 = 2 ** 256 - 1

# Address used by the engine when it acts on external tokens.
DEFAULT_ENGINE_ADDRESS = "dsc_engine"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine failures. Every failure aborts the whole call."""
    pass


class InvalidAmount(EngineError):
    """Raised when a zero, negative or non-integer quantity is supplied."""
    pass


class AssetNotAllowed(EngineError):
    """Raised when an operation references an asset that is not registered."""
    pass


class ConfigurationMismatch(EngineError):
    """Raised when the asset and price feed lists do not line up at construction."""
    pass


class TransferFailed(EngineError):
    """Raised when an external token reports that a transfer did not happen."""
    pass


class MintFailed(EngineError):
    """Raised when the liability token reports that a mint did not happen."""
    pass


class HealthFactorBroken(EngineError):
    """Raised when a solvency check fails after a ledger mutation."""

    def __init__(self, user: str, health_factor: int, minimum: int = MIN_HEALTH_FACTOR):
        self.user = user
        self.health_factor = health_factor
        self.minimum = minimum
        super().__init__(f"Health factor of {user} is broken: {health_factor} < {minimum}")


class HealthFactorIntact(EngineError):
    """Raised when a liquidation targets a solvent position."""
    pass


class HealthFactorNotImproved(EngineError):
    """Raised when a liquidation does not strictly raise the target's health factor."""
    pass


class ArithmeticUnderflow(EngineError):
    """Raised when a ledger decrement would go below zero."""
    pass


class ArithmeticOverflow(EngineError):
    """Raised when a quantity leaves the unsigned 256-bit range."""
    pass


class Reentrancy(EngineError):
    """Raised when a guarded entry point is invoked while the engine is executing."""
    pass


class InvalidPrice(EngineError):
    """Raised when a price feed reports a zero or negative answer."""
    pass


class StalePrice(EngineError):
    """Raised when a price feed has not been updated within the allowed window."""
    pass


class InvalidCaller(EngineError):
    """Raised when the engine's own address is passed as a caller or target."""
    pass


class TokenError(Exception):
    """Raised by the reference tokens for privileged-call and argument violations."""
    pass


# ============================================================================
# CHECKED ARITHMETIC
# ============================================================================

def checked_add(a: int, b: int) -> int:
    """Add two unsigned quantities, raising ArithmeticOverflow past MAX_UINT256."""
    result = a + b
    if result > MAX_UINT256:
        raise ArithmeticOverflow(f"{a} + {b} overflows uint256")
    return result


def checked_sub(a: int, b: int) -> int:
    """Subtract b from a, raising ArithmeticUnderflow instead of going negative."""
    if b > a:
        raise ArithmeticUnderflow(f"{a} - {b} underflows")
    return a - b


def checked_mul(a: int, b: int) -> int:
    """Multiply two unsigned quantities, raising ArithmeticOverflow past MAX_UINT256."""
    result = a * b
    if result > MAX_UINT256:
        raise ArithmeticOverflow(f"{a} * {b} overflows uint256")
    return result


def require_uint(amount: int, name: str = "amount") -> int:
    """
    Validate a quantity against the unsigned 256-bit range. Zero is allowed.

    bool is rejected explicitly since it is a subclass of int.

    Raises:
        InvalidAmount: If amount is not an int or is negative.
        ArithmeticOverflow: If amount exceeds MAX_UINT256.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"{name} must be an int, got {type(amount).__name__}")
    if amount < 0:
        raise InvalidAmount(f"{name} must not be negative, got {amount}")
    if amount > MAX_UINT256:
        raise ArithmeticOverflow(f"{name} exceeds uint256: {amount}")
    return amount


def require_positive_amount(amount: int, name: str = "amount") -> int:
    """
    Validate a quantity supplied to a mutating operation.

    Raises:
        InvalidAmount: If amount is not a strictly positive int.
    """
    if require_uint(amount, name) == 0:
        raise InvalidAmount(f"{name} must be more than zero, got {amount}")
    return amount


# ============================================================================
# WAD CONVERSION
# ============================================================================

def to_wad(value) -> int:
    """
    Convert a human-readable quantity to 18-decimal fixed point.

    Accepts int, str or Decimal (floats are converted through str to avoid
    binary artifacts). Digits beyond 18 decimals are truncated toward zero.

    Example:
        to_wad("1.5") == 1_500_000_000_000_000_000
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    scaled = (value * PRECISION).quantize(Decimal("1"), rounding=ROUND_DOWN)
    return int(scaled)


def from_wad(amount: int) -> Decimal:
    """Convert an 18-decimal fixed-point integer back to a Decimal."""
    return Decimal(amount) / Decimal(PRECISION)


# ============================================================================
# PRICE DATA
# ============================================================================

@dataclass(frozen=True, slots=True)
class PriceRound:
    """
    One answer reported by a price feed.

    Attributes:
        answer: Signed price in the feed's own precision (e.g. 8 decimals).
        updated_at: When the answer was last written by the feed.
        round_id: Monotonic round counter of the feed.
    """
    answer: int
    updated_at: datetime
    round_id: int = 0


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class PriceFeed(Protocol):
    """
    Read capability of an external price oracle for a single asset.

    decimals is the fixed precision of every answer the feed reports.
    """

    decimals: int

    def latest_round_data(self) -> PriceRound:
        """Return the most recent answer."""
        ...


@runtime_checkable
class CollateralToken(Protocol):
    """
    Transfer capability of a collateral asset.

    address identifies the token; the engine registers the asset under it.
    Both methods report failure by returning False rather than raising.
    """

    address: str

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """Move amount from sender's own balance to `to`."""
        ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        """Move amount from owner to `to` using spender's allowance."""
        ...


@runtime_checkable
class LiabilityToken(CollateralToken, Protocol):
    """
    Capability surface of the pegged liability token.

    mint and burn are privileged: only the token owner (the engine) may call them.
    burn only destroys tokens held by the caller.
    """

    def mint(self, sender: str, to: str, amount: int) -> bool:
        """Create amount new tokens for `to`."""
        ...

    def burn(self, sender: str, amount: int) -> None:
        """Destroy amount tokens from sender's own balance."""
        ...


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    """A user credited collateral to their position."""
    user: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    """Collateral left a position; redeemed_to differs from redeemed_from on liquidation."""
    redeemed_from: str
    redeemed_to: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class DscMinted:
    """Debt was created against a user's collateral."""
    user: str
    amount: int


@dataclass(frozen=True, slots=True)
class DscBurned:
    """Debt of on_behalf_of was repaid with tokens pulled from payer."""
    on_behalf_of: str
    payer: str
    amount: int


@dataclass(frozen=True, slots=True)
class Liquidated:
    """
    Summary of a completed liquidation.

    collateral_seized includes the bonus.
    """
    liquidator: str
    user: str
    asset: str
    debt_covered: int
    collateral_seized: int
    bonus: int


# Every record type the engine can emit.
EVENT_TYPES = (CollateralDeposited, CollateralRedeemed, DscMinted, DscBurned, Liquidated)


def describe_event(event) -> str:
    """Render an event as a single log line."""
    rendered = ", ".join(f"{f.name}={getattr(event, f.name)}" for f in fields(event))
    return f"{type(event).__name__}({rendered})"


def is_address(value: Optional[str]) -> bool:
    """Return True if value is a usable (non-empty) address."""
    return bool(value and value.strip())
