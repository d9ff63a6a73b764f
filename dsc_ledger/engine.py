"""
engine.py - Stable-value accounting engine

The Engine is the composition root and the only module that mutates
ledger state, ensuring controlled and auditable changes.

Key responsibilities:
    - Owns the collateral and debt ledgers and the asset registry
    - Gates every mutating call with a non-reentrant guard
    - Executes every call atomically: all ledger changes and events commit
      together or none do
    - Asserts solvency after every change that can reduce it
    - Moves tokens only after the ledgers are updated and checked

Order inside a call:
    checks -> ledger effects -> solvency assertions -> token interactions

Token interactions run in three phases: pulls into the engine, burns of the
DSC pulled, then payouts (collateral transfers and DSC mints). Each call
queues at most one payout, so nothing can fail after it. Pulls and burns
that succeeded are compensated in reverse order if a later interaction
fails (a burn by re-minting to the engine, then a pull by refunding the
payer), so a rejected call leaves the collaborators as it found them.
"""

from __future__ import annotations
import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from .config import EngineParameters
from .core import (
    DEFAULT_ENGINE_ADDRESS,
    CollateralToken, LiabilityToken, PriceFeed,
    InvalidCaller, MintFailed, Reentrancy, TransferFailed,
    describe_event, require_positive_amount, require_uint,
)
from .health import AccountInformation, HealthFactorEngine, calculate_health_factor
from .liquidation import LiquidationEngine, LiquidationResult
from .positions import CollateralLedger, CollateralSnapshot, DebtLedger, DebtSnapshot
from .pricing_source import Clock, PriceOracleAdapter, ValueConverter
from .registry import AssetRegistry

logger = logging.getLogger(__name__)

Interaction = Tuple[str, Callable[[], None]]


@dataclass
class _Transaction:
    """Scratch state of one in-flight engine call."""
    operation: str
    collateral_snapshot: CollateralSnapshot
    debt_snapshot: DebtSnapshot
    events: List[object] = field(default_factory=list)
    pulls: List[Interaction] = field(default_factory=list)
    payouts: List[Interaction] = field(default_factory=list)
    burns: List[Interaction] = field(default_factory=list)
    refunds: List[Interaction] = field(default_factory=list)


def non_reentrant(method):
    """
    Guard a public mutating entry point.

    The flag is released on every exit path. A call arriving while the flag
    is held fails with Reentrancy instead of executing.
    """
    @functools.wraps(method)
    def wrapper(self: 'Engine', *args, **kwargs):
        if self._entered:
            raise Reentrancy(f"{method.__name__} called while the engine is executing")
        self._entered = True
        try:
            with self._atomic(method.__name__):
                return method(self, *args, **kwargs)
        finally:
            self._entered = False
    return wrapper


class Engine:
    """
    Over-collateralized stable-value engine.

    Users deposit accepted collateral, mint DSC against it while keeping
    their health factor at or above the minimum, and may be liquidated by
    third parties once it falls below.

    Thread Safety:
        Not thread-safe. Calls are expected to be serialized.

    Example:
        engine = Engine([weth], [weth_feed], dsc)
        weth.approve("alice", engine.address, amount)
        engine.deposit_collateral_and_mint_dsc("alice", "WETH", amount, to_mint)
    """

    def __init__(
        self,
        collateral_tokens: Sequence[CollateralToken],
        price_feeds: Sequence[PriceFeed],
        dsc: LiabilityToken,
        parameters: Optional[EngineParameters] = None,
        address: str = DEFAULT_ENGINE_ADDRESS,
        clock: Optional[Clock] = None,
    ):
        """
        Create an engine.

        Args:
            collateral_tokens: Accepted collateral, registered under token.address
            price_feeds: One feed per collateral token, in the same order
            dsc: The liability token; the engine must be its owner
            parameters: Risk parameters (defaults: 50% threshold, 10% bonus)
            address: Address the engine acts under on the tokens
            clock: Time source for feed staleness checks

        Raises:
            ConfigurationMismatch: If the token and feed lists do not line up.
        """
        self.parameters = parameters or EngineParameters()
        self.address = address
        self.dsc = dsc
        self.registry = AssetRegistry.from_lists(
            [token.address for token in collateral_tokens],
            list(price_feeds),
            tokens={token.address: token for token in collateral_tokens},
        )
        self._oracles = {
            entry.asset: PriceOracleAdapter(entry.feed, self.parameters.oracle_timeout, clock)
            for entry in self.registry
        }
        self._converter = ValueConverter(self._oracles)
        self._collateral = CollateralLedger()
        self._debt = DebtLedger()
        self._health = HealthFactorEngine(
            self._collateral, self._debt, self._converter, self.parameters
        )
        self._liquidation = LiquidationEngine(
            self._collateral, self._debt, self._converter, self._health, self.parameters
        )
        self.event_log: List[object] = []
        self._entered = False
        self._txn: Optional[_Transaction] = None

    # ========================================================================
    # TRANSACTION SCOPE
    # ========================================================================

    @contextmanager
    def _atomic(self, operation: str):
        txn = _Transaction(
            operation=operation,
            collateral_snapshot=self._collateral.snapshot(),
            debt_snapshot=self._debt.snapshot(),
        )
        self._txn = txn
        try:
            yield txn
            self._interact(txn)
        except Exception as exc:
            self._collateral.restore(txn.collateral_snapshot)
            self._debt.restore(txn.debt_snapshot)
            self._run_refunds(txn)
            logger.warning("%s rolled back: %s: %s", operation, type(exc).__name__, exc)
            raise
        finally:
            self._txn = None

        self.event_log.extend(txn.events)
        for event in txn.events:
            logger.info("%s: %s", operation, describe_event(event))

    def _interact(self, txn: _Transaction) -> None:
        for description, action in txn.pulls:
            action()
            logger.debug("%s: %s", txn.operation, description)
        for description, action in txn.burns + txn.payouts:
            action()
            logger.debug("%s: %s", txn.operation, description)

    def _run_refunds(self, txn: _Transaction) -> None:
        for description, refund in reversed(txn.refunds):
            try:
                refund()
            except Exception:
                logger.exception("%s: %s failed during rollback", txn.operation, description)

    def _pull(self, token: CollateralToken, owner: str, amount: int) -> None:
        """Queue a transfer of amount from owner into the engine."""
        txn = self._txn

        def refund() -> None:
            if not token.transfer(self.address, owner, amount):
                raise TransferFailed(f"refund of {amount} {token.address} to {owner} failed")

        def pull() -> None:
            if not token.transfer_from(self.address, owner, self.address, amount):
                raise TransferFailed(f"transfer of {amount} {token.address} from {owner} failed")
            txn.refunds.append((f"refund {amount} {token.address} to {owner}", refund))

        txn.pulls.append((f"pull {amount} {token.address} from {owner}", pull))

    def _pay(self, token: CollateralToken, to: str, amount: int) -> None:
        """Queue a transfer of amount from the engine to `to`."""
        def pay() -> None:
            if not token.transfer(self.address, to, amount):
                raise TransferFailed(f"transfer of {amount} {token.address} to {to} failed")

        self._txn.payouts.append((f"pay {amount} {token.address} to {to}", pay))

    def _mint_to(self, to: str, amount: int) -> None:
        def mint() -> None:
            if not self.dsc.mint(self.address, to, amount):
                raise MintFailed(f"mint of {amount} {self.dsc.address} to {to} failed")

        self._txn.payouts.append((f"mint {amount} {self.dsc.address} to {to}", mint))

    def _burn_held(self, amount: int) -> None:
        """Queue a burn of amount DSC from the engine's own balance."""
        txn = self._txn

        def remint() -> None:
            if not self.dsc.mint(self.address, self.address, amount):
                raise MintFailed(f"re-mint of {amount} {self.dsc.address} failed")

        def burn() -> None:
            self.dsc.burn(self.address, amount)
            txn.refunds.append((f"re-mint {amount} {self.dsc.address}", remint))

        txn.burns.append((f"burn {amount} {self.dsc.address}", burn))

    def _require_external(self, **parties: str) -> None:
        """Reject calls made under, or aimed at, the engine's own address."""
        for role, party in parties.items():
            if party == self.address:
                raise InvalidCaller(f"{role} cannot be the engine itself ({self.address})")

    # ========================================================================
    # LEDGER STEPS (run inside a transaction scope)
    # ========================================================================

    def _deposit(self, user: str, asset: str, amount: int) -> None:
        require_positive_amount(amount)
        token = self.registry.token_for(asset)
        self._txn.events.append(self._collateral.deposit(user, asset, amount))
        self._pull(token, user, amount)

    def _mint(self, user: str, amount: int) -> None:
        require_positive_amount(amount)
        self._txn.events.append(self._debt.mint(user, amount))
        self._health.assert_healthy(user)
        self._mint_to(user, amount)

    def _redeem(self, asset: str, amount: int, from_: str, to: str) -> None:
        require_positive_amount(amount)
        token = self.registry.token_for(asset)
        self._txn.events.append(self._collateral.redeem(asset, amount, from_, to))
        self._pay(token, to, amount)

    def _burn(self, amount: int, on_behalf_of: str, payer: str) -> None:
        require_positive_amount(amount)
        self._txn.events.append(self._debt.burn(on_behalf_of, payer, amount))
        self._pull(self.dsc, payer, amount)
        self._burn_held(amount)

    # ========================================================================
    # PUBLIC MUTATING OPERATIONS
    # ========================================================================

    @non_reentrant
    def deposit_collateral(self, sender: str, asset: str, amount: int) -> None:
        """
        Deposit amount of an accepted asset as collateral.

        The engine must hold an allowance of at least amount from sender.

        Raises:
            InvalidAmount: If amount is not positive.
            AssetNotAllowed: If asset is not accepted.
            TransferFailed: If the token refuses the transfer.
        """
        self._require_external(sender=sender)
        self._deposit(sender, asset, amount)

    @non_reentrant
    def mint_dsc(self, sender: str, amount: int) -> None:
        """
        Mint amount of DSC against sender's collateral.

        Raises:
            InvalidAmount: If amount is not positive.
            HealthFactorBroken: If the new debt breaks sender's health factor.
            MintFailed: If the DSC token refuses the mint.
        """
        self._require_external(sender=sender)
        self._mint(sender, amount)

    @non_reentrant
    def deposit_collateral_and_mint_dsc(
        self,
        sender: str,
        asset: str,
        collateral_amount: int,
        amount_to_mint: int,
    ) -> None:
        """Deposit collateral and mint DSC in one atomic call."""
        self._require_external(sender=sender)
        self._deposit(sender, asset, collateral_amount)
        self._mint(sender, amount_to_mint)

    @non_reentrant
    def redeem_collateral(self, sender: str, asset: str, amount: int) -> None:
        """
        Withdraw amount of collateral back to sender.

        Raises:
            InvalidAmount: If amount is not positive.
            AssetNotAllowed: If asset is not accepted.
            ArithmeticUnderflow: If sender deposited less than amount.
            HealthFactorBroken: If the withdrawal breaks sender's health factor.
        """
        self._require_external(sender=sender)
        require_positive_amount(amount)
        self.registry.get(asset)
        self._redeem(asset, amount, sender, sender)
        self._health.assert_healthy(sender)

    @non_reentrant
    def burn_dsc(self, sender: str, amount: int) -> None:
        """
        Repay amount of sender's own debt with DSC sender holds.

        Burning can only improve the health factor; it is checked anyway.
        """
        self._require_external(sender=sender)
        self._burn(amount, on_behalf_of=sender, payer=sender)
        self._health.assert_healthy(sender)

    @non_reentrant
    def redeem_collateral_for_dsc(
        self,
        sender: str,
        asset: str,
        collateral_amount: int,
        amount_to_burn: int,
    ) -> None:
        """Burn DSC, then withdraw collateral, in one atomic call."""
        self._require_external(sender=sender)
        require_positive_amount(collateral_amount, "collateral_amount")
        self.registry.get(asset)
        self._burn(amount_to_burn, on_behalf_of=sender, payer=sender)
        self._redeem(asset, collateral_amount, sender, sender)
        self._health.assert_healthy(sender)

    @non_reentrant
    def liquidate(self, liquidator: str, asset: str, user: str, debt_to_cover: int) -> LiquidationResult:
        """
        Repay debt_to_cover of user's debt and seize the equivalent collateral plus bonus.

        The liquidator pays with DSC they hold; the engine must have an
        allowance of at least debt_to_cover.

        Returns:
            LiquidationResult with the sizing and both health factors.

        Raises:
            HealthFactorIntact: If user is solvent.
            HealthFactorNotImproved: If the liquidation does not help user.
            HealthFactorBroken: If the liquidator becomes insolvent.
            ArithmeticUnderflow: If user's collateral cannot fund the seizure.
        """
        self._require_external(liquidator=liquidator, user=user)
        require_positive_amount(debt_to_cover, "debt_to_cover")
        token = self.registry.token_for(asset)
        result = self._liquidation.settle(liquidator, asset, user, debt_to_cover)
        self._txn.events.extend(result.events)
        self._pull(self.dsc, liquidator, debt_to_cover)
        if result.quote.total_seized:
            self._pay(token, liquidator, result.quote.total_seized)
        self._burn_held(debt_to_cover)
        return result

    # ========================================================================
    # READ-ONLY SURFACE
    # ========================================================================

    def get_usd_value(self, asset: str, amount: int) -> int:
        """USD value (wad) of amount of asset."""
        self.registry.get(asset)
        require_uint(amount)
        return self._converter.usd_value(asset, amount)

    def get_token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        """Amount of asset worth usd_amount (wad)."""
        self.registry.get(asset)
        require_uint(usd_amount, "usd_amount")
        return self._converter.token_amount_from_usd(asset, usd_amount)

    def get_account_collateral_value(self, user: str) -> int:
        return self._health.collateral_value(user)

    def get_account_information(self, user: str) -> AccountInformation:
        return self._health.account_information(user)

    def get_health_factor(self, user: str) -> int:
        return self._health.health_factor(user)

    def calculate_health_factor(self, total_dsc_minted: int, collateral_value_in_usd: int) -> int:
        return calculate_health_factor(total_dsc_minted, collateral_value_in_usd, self.parameters)

    def get_collateral_balance_of_user(self, user: str, asset: str) -> int:
        return self._collateral.balance(user, asset)

    def get_dsc_minted(self, user: str) -> int:
        return self._debt.debt_of(user)

    def get_total_dsc_minted(self) -> int:
        return self._debt.total_debt()

    def get_total_collateral_deposited(self, asset: str) -> int:
        return self._collateral.total_deposited(asset)

    def get_collateral_tokens(self) -> Tuple[str, ...]:
        return self.registry.assets

    def get_collateral_token_price_feed(self, asset: str) -> PriceFeed:
        return self.registry.feed_for(asset)

    def get_dsc(self) -> LiabilityToken:
        return self.dsc

    def get_precision(self) -> int:
        return self.parameters.precision

    def get_additional_feed_precision(self, asset: str) -> int:
        self.registry.get(asset)
        return self._oracles[asset].additional_feed_precision

    def get_liquidation_threshold(self) -> int:
        return self.parameters.liquidation_threshold

    def get_liquidation_bonus(self) -> int:
        return self.parameters.liquidation_bonus

    def get_liquidation_precision(self) -> int:
        return self.parameters.liquidation_precision

    def get_min_health_factor(self) -> int:
        return self.parameters.min_health_factor

    def __repr__(self):
        return (
            f"Engine({self.address}, assets={list(self.registry.assets)}, "
            f"total_debt={self._debt.total_debt()})"
        )
