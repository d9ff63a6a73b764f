"""
registry.py - Immutable registry of accepted collateral assets

Built once from parallel lists at engine construction. The registered
assets define which tokens the engine accepts; each one is backed by exactly
one price feed.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .core import (
    AssetNotAllowed, ConfigurationMismatch,
    CollateralToken, PriceFeed,
    is_address,
)


@dataclass(frozen=True, slots=True)
class AssetConfig:
    """
    Registry entry for one collateral asset.

    Attributes:
        asset: Asset identifier (token address or symbol).
        feed: Price feed backing the asset.
        token: Transfer capability of the asset, if the engine moves it.
    """
    asset: str
    feed: PriceFeed
    token: Optional[CollateralToken] = None


class AssetRegistry:
    """
    Ordered, read-only set of accepted collateral assets.

    Iteration order is registration order; collateral is always valued in
    that order.
    """

    def __init__(self, entries: Sequence[AssetConfig]):
        self._entries: Tuple[AssetConfig, ...] = tuple(entries)
        self._by_asset: Dict[str, AssetConfig] = {e.asset: e for e in self._entries}

    @classmethod
    def from_lists(
        cls,
        assets: Sequence[str],
        feeds: Sequence[PriceFeed],
        tokens: Optional[Mapping[str, CollateralToken]] = None,
    ) -> 'AssetRegistry':
        """
        Build a registry from parallel lists of assets and feeds.

        Raises:
            ConfigurationMismatch: If the lists differ in length, an asset is
                listed twice, an asset id is empty, or a feed is missing.
        """
        if len(assets) != len(feeds):
            raise ConfigurationMismatch(
                f"Token addresses and price feed addresses must be the same length "
                f"({len(assets)} != {len(feeds)})"
            )
        if len(set(assets)) != len(assets):
            raise ConfigurationMismatch(f"Duplicate collateral assets: {list(assets)}")
        tokens = tokens or {}
        entries = []
        for asset, feed in zip(assets, feeds):
            if not is_address(asset):
                raise ConfigurationMismatch("Collateral asset id cannot be empty")
            if feed is None:
                raise ConfigurationMismatch(f"Asset {asset} has no price feed")
            entries.append(AssetConfig(asset=asset, feed=feed, token=tokens.get(asset)))
        return cls(entries)

    @property
    def assets(self) -> Tuple[str, ...]:
        return tuple(e.asset for e in self._entries)

    def __contains__(self, asset: object) -> bool:
        return asset in self._by_asset

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, asset: str) -> AssetConfig:
        """
        Return the entry for an accepted asset.

        Raises:
            AssetNotAllowed: If asset is not registered.
        """
        entry = self._by_asset.get(asset)
        if entry is None:
            raise AssetNotAllowed(f"Token {asset} is not allowed as collateral")
        return entry

    def feed_for(self, asset: str) -> PriceFeed:
        return self.get(asset).feed

    def token_for(self, asset: str) -> CollateralToken:
        entry = self.get(asset)
        if entry.token is None:
            raise AssetNotAllowed(f"Token {asset} has no transfer capability registered")
        return entry.token

    def __repr__(self):
        return f"AssetRegistry({list(self.assets)})"
