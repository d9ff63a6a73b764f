"""
helpers.py - Test doubles and builders for engine tests

Provides failing collaborators (tokens that refuse transfers or mints) and
small builders shared by the unit, conformance and functional suites.
Plain functions rather than fixtures so hypothesis tests can call them.
"""

from __future__ import annotations
from typing import Dict, Optional, Tuple

from dsc_ledger import (
    DEFAULT_ENGINE_ADDRESS, MAX_UINT256,
    Engine, EngineParameters, Erc20Token, MockPriceFeed, StableToken, TokenError,
    to_wad,
)


ENGINE = DEFAULT_ENGINE_ADDRESS
USER = "alice"
LIQUIDATOR = "liquidator"
ETH_USD_PRICE = 2000 * 10 ** 8
BTC_USD_PRICE = 1000 * 10 ** 8
AMOUNT_COLLATERAL = to_wad(10)
AMOUNT_TO_MINT = to_wad(100)


class FailingTransferToken(Erc20Token):
    """Collateral whose outbound transfer() always reports failure."""

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        return False


class FailingTransferFromToken(Erc20Token):
    """Collateral whose transfer_from() always reports failure."""

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        return False


class FailingMintStableToken(StableToken):
    """Stable token whose mint() reports failure without minting."""

    def mint(self, sender: str, to: str, amount: int) -> bool:
        return False


class FailingTransferStableToken(StableToken):
    """Stable token whose transfer() reports failure (breaks refunds)."""

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        return False


class FailingBurnStableToken(StableToken):
    """Stable token whose burn() raises without burning."""

    def burn(self, sender: str, amount: int) -> None:
        raise TokenError(f"{self.symbol}: burn disabled")


def make_engine(
    eth_price: int = ETH_USD_PRICE,
    btc_price: int = BTC_USD_PRICE,
    weth: Optional[Erc20Token] = None,
    dsc: Optional[StableToken] = None,
    parameters: Optional[EngineParameters] = None,
) -> Tuple[Engine, Dict[str, Erc20Token], Dict[str, MockPriceFeed], StableToken]:
    """
    Build a WETH/WBTC engine.

    Returns:
        (engine, tokens by symbol, feeds by symbol, dsc)
    """
    tokens = {
        "WETH": weth or Erc20Token("WETH", "Wrapped Ether"),
        "WBTC": Erc20Token("WBTC", "Wrapped Bitcoin"),
    }
    feeds = {
        "WETH": MockPriceFeed(8, eth_price),
        "WBTC": MockPriceFeed(8, btc_price),
    }
    dsc = dsc or StableToken(owner=ENGINE)
    engine = Engine(
        [tokens["WETH"], tokens["WBTC"]],
        [feeds["WETH"], feeds["WBTC"]],
        dsc,
        parameters=parameters,
    )
    return engine, tokens, feeds, dsc


def fund(token: Erc20Token, user: str, amount: int, spender: str = ENGINE) -> None:
    """Give user amount of token and approve the engine for it."""
    token.faucet(user, amount)
    token.approve(user, spender, amount)


def approve_dsc(dsc: StableToken, user: str, spender: str = ENGINE) -> None:
    dsc.approve(user, spender, MAX_UINT256)
