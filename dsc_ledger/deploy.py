"""
deploy.py - Local deployment wiring

Builds a self-contained deployment from a DeploymentConfig: one mock price
feed and one in-memory token per collateral asset, the stable token owned by
the engine, and the engine itself.

Usage:
    from dsc_ledger import deploy, load_deployment_config

    deployment = deploy(load_deployment_config("deployments/local.yaml"))
    engine = deployment.engine
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .config import AssetDeployment, DeploymentConfig
from .engine import Engine
from .pricing_source import Clock, MockPriceFeed
from .tokens import Erc20Token, StableToken

logger = logging.getLogger(__name__)

# Default local collateral: prices in 8-decimal feed precision.
ETH_USD_PRICE = 2000 * 10 ** 8
BTC_USD_PRICE = 1000 * 10 ** 8


@dataclass(frozen=True)
class Deployment:
    """Everything a local deployment created, keyed by asset symbol."""
    engine: Engine
    dsc: StableToken
    tokens: Dict[str, Erc20Token]
    feeds: Dict[str, MockPriceFeed]
    config: DeploymentConfig


def local_deployment_config() -> DeploymentConfig:
    """Two-asset (WETH, WBTC) configuration with default parameters."""
    return DeploymentConfig(
        assets=(
            AssetDeployment("WETH", "Wrapped Ether", feed_decimals=8, initial_price=ETH_USD_PRICE),
            AssetDeployment("WBTC", "Wrapped Bitcoin", feed_decimals=8, initial_price=BTC_USD_PRICE),
        ),
    )


def deploy(config: Optional[DeploymentConfig] = None, clock: Optional[Clock] = None) -> Deployment:
    """
    Create feeds, tokens, the stable token and the engine.

    Args:
        config: Deployment description (defaults to local_deployment_config())
        clock: Shared time source for feeds and staleness checks

    Raises:
        ValueError: If the config has no assets or an asset has no positive price.
    """
    config = config or local_deployment_config()
    if not config.assets:
        raise ValueError("deployment needs at least one collateral asset")

    feeds: Dict[str, MockPriceFeed] = {}
    tokens: Dict[str, Erc20Token] = {}
    for asset in config.assets:
        if asset.initial_price <= 0:
            raise ValueError(f"initial_price for {asset.symbol} must be positive")
        feeds[asset.symbol] = MockPriceFeed(asset.feed_decimals, asset.initial_price, clock=clock)
        tokens[asset.symbol] = Erc20Token(asset.symbol, asset.name)

    dsc = StableToken(owner=config.engine_address, symbol=config.dsc_symbol, name=config.dsc_name)
    engine = Engine(
        collateral_tokens=list(tokens.values()),
        price_feeds=list(feeds.values()),
        dsc=dsc,
        parameters=config.parameters,
        address=config.engine_address,
        clock=clock,
    )
    logger.info("Deployed %r", engine)
    return Deployment(engine=engine, dsc=dsc, tokens=tokens, feeds=feeds, config=config)
