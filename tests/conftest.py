"""
conftest.py - Shared pytest fixtures for engine tests

Provides common fixtures used across unit, conformance and functional tests:
- A WETH/WBTC engine with 8-decimal feeds (2000 / 1000 USD)
- A user with collateral deposited, and one that also minted DSC
"""

import pytest

from tests.helpers import (
    AMOUNT_COLLATERAL, AMOUNT_TO_MINT, USER,
    approve_dsc, fund, make_engine,
)


@pytest.fixture
def deployment():
    """(engine, tokens, feeds, dsc) with nothing deposited."""
    return make_engine()


@pytest.fixture
def engine(deployment):
    return deployment[0]


@pytest.fixture
def weth(deployment):
    return deployment[1]["WETH"]


@pytest.fixture
def wbtc(deployment):
    return deployment[1]["WBTC"]


@pytest.fixture
def eth_feed(deployment):
    return deployment[2]["WETH"]


@pytest.fixture
def dsc(deployment):
    return deployment[3]


@pytest.fixture
def funded_user(weth):
    """USER holds AMOUNT_COLLATERAL WETH and has approved the engine for it."""
    fund(weth, USER, AMOUNT_COLLATERAL)
    return USER


@pytest.fixture
def deposited_collateral(engine, funded_user):
    engine.deposit_collateral(funded_user, "WETH", AMOUNT_COLLATERAL)
    return funded_user


@pytest.fixture
def deposited_and_minted(engine, dsc, funded_user):
    engine.deposit_collateral_and_mint_dsc(funded_user, "WETH", AMOUNT_COLLATERAL, AMOUNT_TO_MINT)
    approve_dsc(dsc, funded_user)
    return funded_user
