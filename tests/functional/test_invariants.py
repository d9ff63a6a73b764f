"""
test_invariants.py - Stateful fuzzing of the Engine

Drives random sequences of deposits, mints, redeems, burns, price moves and
liquidations through one engine and checks after every step that:
- the engine holds exactly the collateral its ledger records
- the collateral held is worth at least the DSC supply once every position
  has been re-checked since the last price move
- DSC supply equals recorded debt, and the engine holds no DSC between calls
- every indebted user is solvent, except users whose position has not been
  re-checked since the last price move
- no getter raises
"""

from hypothesis import settings
from hypothesis import strategies as st
from hypothesis.stateful import RuleBasedStateMachine, invariant, rule

from dsc_ledger import MAX_UINT256, EngineError
from tests.helpers import ENGINE, LIQUIDATOR, fund, make_engine


USERS = ("alice", "bob", "carol", LIQUIDATOR)
ASSETS = ("WETH", "WBTC")

users = st.sampled_from(USERS)
assets = st.sampled_from(ASSETS)
amounts = st.integers(min_value=1, max_value=10 ** 22)


class EngineStateMachine(RuleBasedStateMachine):

    def __init__(self):
        super().__init__()
        self.engine, self.tokens, self.feeds, self.dsc = make_engine()
        for user in USERS:
            self.dsc.approve(user, ENGINE, MAX_UINT256)
        # Users that may have gone insolvent through a price move alone.
        self.unchecked = set()

    def _call(self, operation, *args, checks=None):
        try:
            operation(*args)
        except EngineError:
            return False
        if checks is not None:
            self.unchecked.discard(checks)
        return True

    @rule(user=users, asset=assets, amount=amounts)
    def deposit(self, user, asset, amount):
        fund(self.tokens[asset], user, amount)
        self._call(self.engine.deposit_collateral, user, asset, amount)

    @rule(user=users, amount=amounts)
    def mint(self, user, amount):
        self._call(self.engine.mint_dsc, user, amount, checks=user)

    @rule(user=users, asset=assets, collateral=amounts, to_mint=amounts)
    def deposit_and_mint(self, user, asset, collateral, to_mint):
        fund(self.tokens[asset], user, collateral)
        self._call(self.engine.deposit_collateral_and_mint_dsc, user, asset, collateral, to_mint, checks=user)

    @rule(user=users, asset=assets, data=st.data())
    def redeem(self, user, asset, data):
        deposited = self.engine.get_collateral_balance_of_user(user, asset)
        amount = data.draw(st.integers(min_value=1, max_value=deposited + 1))
        self._call(self.engine.redeem_collateral, user, asset, amount, checks=user)

    @rule(user=users, data=st.data())
    def burn(self, user, data):
        held = self.dsc.balance_of(user)
        amount = data.draw(st.integers(min_value=1, max_value=held + 1))
        self._call(self.engine.burn_dsc, user, amount, checks=user)

    @rule(user=users, asset=assets, data=st.data())
    def redeem_for_dsc(self, user, asset, data):
        deposited = self.engine.get_collateral_balance_of_user(user, asset)
        held = self.dsc.balance_of(user)
        collateral = data.draw(st.integers(min_value=1, max_value=deposited + 1))
        to_burn = data.draw(st.integers(min_value=1, max_value=held + 1))
        self._call(self.engine.redeem_collateral_for_dsc, user, asset, collateral, to_burn, checks=user)

    @rule(asset=assets, percent=st.integers(min_value=20, max_value=150))
    def move_price(self, asset, percent):
        feed = self.feeds[asset]
        answer = feed.latest_round_data().answer * percent // 100
        feed.update_answer(max(answer, 1))
        self.unchecked.update(u for u in USERS if self.engine.get_dsc_minted(u))

    @rule(liquidator=users, user=users, asset=assets, data=st.data())
    def liquidate(self, liquidator, user, asset, data):
        debt = self.engine.get_dsc_minted(user)
        amount = data.draw(st.integers(min_value=1, max_value=debt + 1))
        self._call(self.engine.liquidate, liquidator, asset, user, amount, checks=liquidator)

    @invariant()
    def engine_holds_recorded_collateral(self):
        for asset in ASSETS:
            held = self.tokens[asset].balance_of(ENGINE)
            assert held == self.engine.get_total_collateral_deposited(asset)

    @invariant()
    def supply_matches_debt(self):
        assert self.dsc.total_supply == self.engine.get_total_dsc_minted()
        assert self.dsc.balance_of(ENGINE) == 0

    @invariant()
    def indebted_users_are_solvent(self):
        for user in USERS:
            if user not in self.unchecked and self.engine.get_dsc_minted(user):
                assert self.engine.get_health_factor(user) >= self.engine.get_min_health_factor()

    @invariant()
    def protocol_is_over_collateralized(self):
        if any(self.engine.get_dsc_minted(u) for u in self.unchecked):
            return
        held_value = sum(
            self.engine.get_usd_value(asset, self.tokens[asset].balance_of(ENGINE))
            for asset in ASSETS
        )
        assert held_value >= self.dsc.total_supply

    @invariant()
    def getters_do_not_raise(self):
        for user in USERS:
            self.engine.get_health_factor(user)
            self.engine.get_account_information(user)
            for asset in ASSETS:
                self.engine.get_collateral_balance_of_user(user, asset)
        for asset in ASSETS:
            self.engine.get_usd_value(asset, 10 ** 18)
            self.engine.get_token_amount_from_usd(asset, 10 ** 18)


EngineStateMachine.TestCase.settings = settings(
    max_examples=50, stateful_step_count=40, deadline=None,
)
TestEngineInvariants = EngineStateMachine.TestCase
