"""
tokens.py - In-memory reference tokens

The engine treats tokens as external collaborators reached through the
capability protocols in core.py. These implementations back local
deployments, the demo and the test-suite:

- Erc20Token: balances, allowances, transfer / transfer_from reporting
  failure by returning False
- StableToken: the pegged liability token; mint and burn are restricted
  to its owner (the engine)

Every call names its acting address explicitly (sender / spender / owner).
"""

from __future__ import annotations
import logging
from collections import defaultdict
from typing import Callable, Dict, Optional

from .core import TokenError, is_address

logger = logging.getLogger(__name__)

# Called before every balance move as (source, dest, amount); raising aborts the move.
TransferHook = Callable[[str, str, int], None]


class Erc20Token:
    """
    Minimal fungible token with allowances.

    Example:
        weth = Erc20Token("WETH", "Wrapped Ether")
        weth.faucet("alice", 10 * 10**18)
        weth.approve("alice", "dsc_engine", 10 * 10**18)
    """

    def __init__(
        self,
        symbol: str,
        name: Optional[str] = None,
        decimals: int = 18,
        address: Optional[str] = None,
    ):
        if not is_address(symbol):
            raise ValueError("Token symbol cannot be empty")
        self.symbol = symbol
        self.name = name or symbol
        self.decimals = decimals
        self.address = address or symbol
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[str, Dict[str, int]] = defaultdict(dict)
        self._total_supply = 0
        self.on_transfer: Optional[TransferHook] = None

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, owner: str) -> int:
        return self._balances.get(owner, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get(owner, {}).get(spender, 0)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0 or not is_address(spender):
            return False
        self._allowances[owner][spender] = amount
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        return self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        if spender != owner:
            allowed = self.allowance(owner, spender)
            if allowed < amount:
                logger.debug("%s: allowance %d of %s for %s below %d",
                             self.symbol, allowed, owner, spender, amount)
                return False
            if not self._move(owner, to, amount):
                return False
            self._allowances[owner][spender] = allowed - amount
            return True
        return self._move(owner, to, amount)

    def faucet(self, to: str, amount: int) -> None:
        """Create tokens out of thin air (local deployments and tests only)."""
        self._credit(to, amount)

    def _credit(self, to: str, amount: int) -> None:
        if amount <= 0:
            raise TokenError(f"{self.symbol}: amount must be more than zero")
        if not is_address(to):
            raise TokenError(f"{self.symbol}: cannot credit the empty address")
        self._balances[to] += amount
        self._total_supply += amount

    def _move(self, source: str, dest: str, amount: int) -> bool:
        if amount < 0 or not is_address(dest) or self.balance_of(source) < amount:
            return False
        if self.on_transfer is not None:
            self.on_transfer(source, dest, amount)
        self._balances[source] -= amount
        self._balances[dest] += amount
        return True

    def __repr__(self):
        return f"{type(self).__name__}({self.symbol}, supply={self._total_supply})"


class StableToken(Erc20Token):
    """
    The pegged liability token.

    Only the owner may mint or burn; burning destroys tokens from the
    owner's own balance, so the engine pulls tokens in before burning them.
    """

    def __init__(
        self,
        owner: str,
        symbol: str = "DSC",
        name: str = "Decentralized Stable Coin",
    ):
        super().__init__(symbol, name, decimals=18)
        if not is_address(owner):
            raise ValueError("StableToken owner cannot be empty")
        self.owner = owner

    def _only_owner(self, sender: str) -> None:
        if sender != self.owner:
            raise TokenError(f"{self.symbol}: caller {sender} is not the owner")

    def mint(self, sender: str, to: str, amount: int) -> bool:
        """
        Mint amount tokens to `to`.

        Raises:
            TokenError: If sender is not the owner, to is empty or amount <= 0.
        """
        self._only_owner(sender)
        self._credit(to, amount)
        return True

    def burn(self, sender: str, amount: int) -> None:
        """
        Burn amount tokens from the owner's balance.

        Raises:
            TokenError: If sender is not the owner, amount <= 0 or exceeds the balance.
        """
        self._only_owner(sender)
        if amount <= 0:
            raise TokenError(f"{self.symbol}: amount must be more than zero")
        if self.balance_of(sender) < amount:
            raise TokenError(f"{self.symbol}: burn amount exceeds balance")
        self._balances[sender] -= amount
        self._total_supply -= amount
