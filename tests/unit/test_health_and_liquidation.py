"""
test_health_and_liquidation.py - Unit tests for solvency and liquidation sizing

Tests:
- calculate_health_factor: pure formula, zero debt, custom parameters
- HealthFactorEngine against real ledgers and a mock feed
- calculate_liquidation_bonus and LiquidationEngine.quote / settle
"""

import pytest

from dsc_ledger import (
    MAX_UINT256, PRECISION,
    HealthFactorBroken, HealthFactorIntact, HealthFactorNotImproved, InvalidAmount,
    CollateralRedeemed, DscBurned, Liquidated,
    CollateralLedger, DebtLedger, EngineParameters,
    HealthFactorEngine, LiquidationEngine,
    MockPriceFeed, PriceOracleAdapter, ValueConverter,
    calculate_health_factor, calculate_liquidation_bonus,
    to_wad,
)


def _build(price=2000 * 10 ** 8, parameters=None):
    parameters = parameters or EngineParameters()
    feed = MockPriceFeed(8, price)
    converter = ValueConverter({"WETH": PriceOracleAdapter(feed)})
    collateral = CollateralLedger()
    debt = DebtLedger()
    health = HealthFactorEngine(collateral, debt, converter, parameters)
    liquidation = LiquidationEngine(collateral, debt, converter, health, parameters)
    return feed, collateral, debt, health, liquidation


class TestCalculateHealthFactor:

    def test_zero_debt_is_max(self):
        assert calculate_health_factor(0, 0) == MAX_UINT256
        assert calculate_health_factor(0, to_wad(1_000)) == MAX_UINT256

    def test_exactly_two_hundred_percent(self):
        assert calculate_health_factor(to_wad(100), to_wad(200)) == PRECISION

    def test_just_below(self):
        hf = calculate_health_factor(to_wad(100), to_wad(200) - 2)
        assert hf == PRECISION - 1

    def test_truncates(self):
        expected = (to_wad(10_000) * PRECISION) // to_wad(9_999)
        assert calculate_health_factor(to_wad(9_999), to_wad(20_000)) == expected

    def test_custom_threshold(self):
        params = EngineParameters(liquidation_threshold=80)
        # 100 USD * 80% / 80 DSC = 1.0
        assert calculate_health_factor(to_wad(80), to_wad(100), params) == PRECISION


class TestHealthFactorEngine:

    def test_account_information(self):
        _, collateral, debt, health, _ = _build()
        collateral.deposit("alice", "WETH", to_wad(10))
        debt.mint("alice", to_wad(100))
        info = health.account_information("alice")
        assert info.total_dsc_minted == to_wad(100)
        assert info.collateral_value_in_usd == to_wad(20_000)
        assert health.health_factor("alice") == 100 * PRECISION

    def test_debt_free_user_reads_no_prices(self):
        feed, collateral, _, health, _ = _build()
        collateral.deposit("alice", "WETH", to_wad(10))
        feed.update_answer(0)
        assert health.health_factor("alice") == MAX_UINT256
        assert health.assert_healthy("alice") == MAX_UINT256

    def test_assert_healthy_raises_below_minimum(self):
        feed, collateral, debt, health, _ = _build()
        collateral.deposit("alice", "WETH", to_wad(1))
        debt.mint("alice", to_wad(1_000))
        assert health.is_healthy("alice")
        feed.update_answer(1_999 * 10 ** 8)
        assert not health.is_healthy("alice")
        with pytest.raises(HealthFactorBroken) as excinfo:
            health.assert_healthy("alice")
        assert excinfo.value.user == "alice"
        assert excinfo.value.health_factor == to_wad("0.9995")


class TestLiquidationSizing:

    def test_bonus_is_ten_percent(self):
        assert calculate_liquidation_bonus(to_wad(10)) == to_wad(1)

    def test_bonus_truncates(self):
        assert calculate_liquidation_bonus(9) == 0
        assert calculate_liquidation_bonus(19) == 1

    def test_quote(self):
        *_, liquidation = _build(price=10 * 10 ** 8)
        quote = liquidation.quote("WETH", to_wad(100))
        assert quote.seized_base == to_wad(10)
        assert quote.bonus == to_wad(1)
        assert quote.total_seized == to_wad(11)

    def test_quote_rejects_zero(self):
        *_, liquidation = _build()
        with pytest.raises(InvalidAmount):
            liquidation.quote("WETH", 0)


class TestSettle:

    def _underwater(self):
        # 40 units at $15 backing 300 DSC, then the price drops to $10.
        feed, collateral, debt, health, liquidation = _build(price=15 * 10 ** 8)
        collateral.deposit("alice", "WETH", to_wad(40))
        debt.mint("alice", to_wad(300))
        feed.update_answer(10 * 10 ** 8)
        return feed, collateral, debt, health, liquidation

    def test_settle_updates_ledgers(self):
        _, collateral, debt, health, liquidation = self._underwater()
        assert health.health_factor("alice") == 666_666_666_666_666_666

        result = liquidation.settle("liq", "WETH", "alice", to_wad(100))

        assert result.starting_health_factor == 666_666_666_666_666_666
        assert result.ending_health_factor == 725_000_000_000_000_000
        assert collateral.balance("alice", "WETH") == to_wad(29)
        assert debt.debt_of("alice") == to_wad(200)
        assert result.events == (
            CollateralRedeemed("alice", "liq", "WETH", to_wad(11)),
            DscBurned("alice", "liq", to_wad(100)),
            Liquidated("liq", "alice", "WETH", to_wad(100), to_wad(11), to_wad(1)),
        )

    def test_solvent_user_cannot_be_liquidated(self):
        _, collateral, debt, _, liquidation = _build()
        collateral.deposit("alice", "WETH", to_wad(10))
        debt.mint("alice", to_wad(100))
        with pytest.raises(HealthFactorIntact):
            liquidation.settle("liq", "WETH", "alice", to_wad(10))

    def test_user_without_debt_cannot_be_liquidated(self):
        *_, liquidation = _build()
        with pytest.raises(HealthFactorIntact):
            liquidation.settle("liq", "WETH", "alice", to_wad(10))

    def test_deeply_underwater_does_not_improve(self):
        # Collateral worth less than debt * 1.1: each seizure worsens the ratio.
        feed, collateral, debt, _, liquidation = _build(price=1_000 * 10 ** 8)
        collateral.deposit("alice", "WETH", to_wad(2))
        debt.mint("alice", to_wad(1_000))
        feed.update_answer(500 * 10 ** 8)
        with pytest.raises(HealthFactorNotImproved):
            liquidation.settle("liq", "WETH", "alice", to_wad(100))

    def test_liquidator_must_stay_healthy(self):
        _, collateral, debt, _, liquidation = self._underwater()
        debt.mint("liq", to_wad(1))
        with pytest.raises(HealthFactorBroken) as excinfo:
            liquidation.settle("liq", "WETH", "alice", to_wad(100))
        assert excinfo.value.user == "liq"
