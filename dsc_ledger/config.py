"""
config.py - Engine parameters and deployment configuration

Two layers:
- EngineParameters: the risk constants the engine gates on. Frozen and
  validated at construction, held by the Engine for its whole lifetime.
- DeploymentConfig: a description of a local deployment (parameters plus
  the accepted collateral assets, their feed precision and starting price),
  loaded from YAML with ${VAR} environment interpolation.
"""

from __future__ import annotations
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .core import (
    LIQUIDATION_BONUS, LIQUIDATION_PRECISION, LIQUIDATION_THRESHOLD,
    MIN_HEALTH_FACTOR, PRECISION, DEFAULT_ENGINE_ADDRESS,
    to_wad,
)

logger = logging.getLogger(__name__)

# Feeds silent for longer than this are treated as stale.
DEFAULT_ORACLE_TIMEOUT = timedelta(hours=3)


# ============================================================================
# ENGINE PARAMETERS
# ============================================================================

@dataclass(frozen=True, slots=True)
class EngineParameters:
    """
    Immutable risk parameters of an engine.

    Attributes:
        liquidation_threshold: Share of collateral value (out of
            liquidation_precision) that counts toward solvency.
        liquidation_bonus: Extra share of seized collateral paid to liquidators.
        liquidation_precision: Denominator of threshold and bonus.
        min_health_factor: Health factor (wad) below which a position is broken.
        precision: Fixed-point base of health factors and USD values.
        oracle_timeout: Maximum feed age; None disables the staleness check.
    """
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_bonus: int = LIQUIDATION_BONUS
    liquidation_precision: int = LIQUIDATION_PRECISION
    min_health_factor: int = MIN_HEALTH_FACTOR
    precision: int = PRECISION
    oracle_timeout: Optional[timedelta] = DEFAULT_ORACLE_TIMEOUT

    def __post_init__(self):
        if self.liquidation_precision <= 0:
            raise ValueError(f"liquidation_precision must be positive, got {self.liquidation_precision}")
        if not 0 < self.liquidation_threshold <= self.liquidation_precision:
            raise ValueError(
                f"liquidation_threshold must be in (0, {self.liquidation_precision}], "
                f"got {self.liquidation_threshold}"
            )
        if self.liquidation_bonus < 0:
            raise ValueError(f"liquidation_bonus cannot be negative, got {self.liquidation_bonus}")
        if self.min_health_factor <= 0:
            raise ValueError(f"min_health_factor must be positive, got {self.min_health_factor}")
        if self.precision <= 0:
            raise ValueError(f"precision must be positive, got {self.precision}")
        if self.oracle_timeout is not None and self.oracle_timeout <= timedelta(0):
            raise ValueError(f"oracle_timeout must be positive, got {self.oracle_timeout}")


# ============================================================================
# DEPLOYMENT CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class AssetDeployment:
    """One accepted collateral asset in a deployment."""
    symbol: str
    name: str
    feed_decimals: int = 8
    initial_price: int = 0  # in feed precision


@dataclass(frozen=True, slots=True)
class DeploymentConfig:
    """A complete local deployment description."""
    engine_address: str = DEFAULT_ENGINE_ADDRESS
    dsc_symbol: str = "DSC"
    dsc_name: str = "Decentralized Stable Coin"
    parameters: EngineParameters = field(default_factory=EngineParameters)
    assets: Tuple[AssetDeployment, ...] = ()


_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


def _to_price(raw: Any, decimals: int) -> int:
    """
    Parse a feed price.

    Strings and floats are human prices ("2000.5") scaled to the feed's
    precision; plain ints are taken as already scaled.
    """
    if isinstance(raw, bool):
        raise ValueError(f"invalid price {raw!r}")
    if isinstance(raw, int):
        return raw
    scaled = to_wad(raw)
    return scaled // 10 ** (18 - decimals) if decimals <= 18 else scaled * 10 ** (decimals - 18)


def _build_parameters(raw: Dict[str, Any]) -> EngineParameters:
    timeout = raw.get("oracle_timeout_seconds", int(DEFAULT_ORACLE_TIMEOUT.total_seconds()))
    return EngineParameters(
        liquidation_threshold=int(raw.get("liquidation_threshold", LIQUIDATION_THRESHOLD)),
        liquidation_bonus=int(raw.get("liquidation_bonus", LIQUIDATION_BONUS)),
        liquidation_precision=int(raw.get("liquidation_precision", LIQUIDATION_PRECISION)),
        min_health_factor=int(raw.get("min_health_factor", MIN_HEALTH_FACTOR)),
        oracle_timeout=None if timeout is None else timedelta(seconds=int(timeout)),
    )


def _build_asset(raw: Dict[str, Any]) -> AssetDeployment:
    if "symbol" not in raw:
        raise ValueError(f"asset entry missing 'symbol': {raw}")
    decimals = int(raw.get("feed_decimals", 8))
    return AssetDeployment(
        symbol=str(raw["symbol"]),
        name=str(raw.get("name", raw["symbol"])),
        feed_decimals=decimals,
        initial_price=_to_price(raw.get("initial_price", 0), decimals),
    )


def parse_deployment_config(raw: Dict[str, Any]) -> DeploymentConfig:
    """
    Build a DeploymentConfig from an already-parsed mapping.

    Raises:
        ValueError: If assets are malformed or parameters are out of range.
    """
    raw = _interpolate_env(raw or {})
    engine = raw.get("engine", {}) or {}
    dsc = raw.get("dsc", {}) or {}
    assets = tuple(_build_asset(entry) for entry in raw.get("assets", []) or [])

    symbols = [a.symbol for a in assets]
    if len(set(symbols)) != len(symbols):
        raise ValueError(f"duplicate asset symbols in deployment: {symbols}")

    return DeploymentConfig(
        engine_address=str(engine.get("address") or DEFAULT_ENGINE_ADDRESS),
        dsc_symbol=str(dsc.get("symbol", "DSC")),
        dsc_name=str(dsc.get("name", "Decentralized Stable Coin")),
        parameters=_build_parameters(raw.get("parameters", {}) or {}),
        assets=assets,
    )


def load_deployment_config(path: str | Path) -> DeploymentConfig:
    """
    Load a deployment description from a YAML file.

    Example file:
        engine:
          address: dsc_engine
        parameters:
          liquidation_threshold: 50
          liquidation_bonus: 10
        assets:
          - symbol: WETH
            feed_decimals: 8
            initial_price: "2000"
    """
    path = Path(path)
    with path.open() as fh:
        raw = yaml.safe_load(fh)
    config = parse_deployment_config(raw)
    logger.info("Loaded deployment config from %s (%d assets)", path, len(config.assets))
    return config
