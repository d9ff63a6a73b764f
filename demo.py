#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Stable-Value Engine Step by Step

A pedagogical walk through the engine's life cycle. Each step builds on the
previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3: Foundation   - Deployment, collateral, minting against it
  4-5: Solvency     - The health factor and rejected mints
  6-8: Liquidation  - A price crash, a liquidator, the aftermath
  9:   Exit         - Repaying debt and taking collateral back

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
    python demo.py --quick --log   # Also show the engine's INFO log lines
"""

from dataclasses import dataclass
import logging
import sys

from dsc_ledger import (
    MAX_UINT256,
    Deployment, EngineError, HealthFactorBroken, HealthFactorIntact,
    deploy, from_wad, to_wad,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    alice_collateral: str = "10"        # WETH
    alice_mint: str = "5000"            # DSC
    greedy_mint: str = "5001"           # DSC, one more than allowed
    crash_price: int = 900 * 10 ** 8    # WETH/USD in feed precision
    liquidator_collateral: str = "40"   # WETH
    liquidator_mint: str = "5000"       # DSC
    debt_to_cover: str = "2500"         # DSC


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv
SHOW_LOG = "--log" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def fmt_hf(health_factor: int) -> str:
    if health_factor == MAX_UINT256:
        return "MAX (no debt)"
    return f"{from_wad(health_factor):.4f}"


def show_position(deployment: Deployment, user: str):
    engine = deployment.engine
    info = engine.get_account_information(user)
    print(f"{user:>10}: collateral {from_wad(engine.get_collateral_balance_of_user(user, 'WETH')):>10.4f} WETH"
          f"  (${from_wad(info.collateral_value_in_usd):,.2f})"
          f"  debt {from_wad(info.total_dsc_minted):>9,.2f} DSC"
          f"  HF {fmt_hf(engine.get_health_factor(user))}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_deploy() -> Deployment:
    """Deploy a local engine with two collateral assets."""
    step_header(1, "Deploying the Engine",
        "An engine, its stable token and one price feed per collateral asset.")

    print("""
    The engine accepts collateral (WETH, WBTC) and issues DSC, a token pegged
    to one US dollar. Every quantity is an integer with 18 decimals:
    1 WETH is written 10**18.
    """)

    print(">>> deployment = deploy()")
    deployment = deploy()
    engine = deployment.engine

    section_header("Deployment")
    print(f"Engine:             {engine!r}")
    print(f"Collateral tokens:  {engine.get_collateral_tokens()}")
    print(f"WETH price:         ${from_wad(engine.get_usd_value('WETH', to_wad(1))):,.2f}")
    print(f"WBTC price:         ${from_wad(engine.get_usd_value('WBTC', to_wad(1))):,.2f}")
    print(f"DSC owner:          {deployment.dsc.owner}")
    print(f"Threshold / bonus:  {engine.get_liquidation_threshold()}% / {engine.get_liquidation_bonus()}%")
    return deployment


def step_02_deposit(deployment: Deployment):
    """Deposit collateral."""
    step_header(2, "Depositing Collateral",
        "Collateral moves into the engine and is recorded against the depositor.")

    engine, weth = deployment.engine, deployment.tokens["WETH"]
    amount = to_wad(CONFIG.alice_collateral)

    print(f'>>> weth.faucet("alice", to_wad("{CONFIG.alice_collateral}"))')
    print(f'>>> weth.approve("alice", engine.address, to_wad("{CONFIG.alice_collateral}"))')
    print(f'>>> engine.deposit_collateral("alice", "WETH", to_wad("{CONFIG.alice_collateral}"))')
    weth.faucet("alice", amount)
    weth.approve("alice", engine.address, amount)
    engine.deposit_collateral("alice", "WETH", amount)

    section_header("Balances")
    print(f"alice WETH wallet:  {from_wad(weth.balance_of('alice'))}")
    print(f"engine WETH wallet: {from_wad(weth.balance_of(engine.address))}")
    show_position(deployment, "alice")


def step_03_mint(deployment: Deployment):
    """Mint DSC against the collateral."""
    step_header(3, "Minting DSC",
        "Debt is created against collateral; half the collateral value counts.")

    engine = deployment.engine
    print(f'>>> engine.mint_dsc("alice", to_wad("{CONFIG.alice_mint}"))')
    engine.mint_dsc("alice", to_wad(CONFIG.alice_mint))

    show_position(deployment, "alice")
    section_header("Key Insight")
    print("""
    health factor = (collateral value * 50%) / debt

    20,000 USD of WETH backs at most 10,000 DSC. With 5,000 minted the
    health factor is 2.0.
    """)


# ============================================================================
# PHASE 2: SOLVENCY (Steps 4-5)
# ============================================================================

def step_04_rejected_mint(deployment: Deployment):
    """A mint that would break the health factor is rejected."""
    step_header(4, "A Rejected Mint",
        "Every call that can lower a health factor checks it before committing.")

    engine = deployment.engine
    events_before = len(engine.event_log)
    print(f'>>> engine.mint_dsc("alice", to_wad("{CONFIG.greedy_mint}"))')
    try:
        engine.mint_dsc("alice", to_wad(CONFIG.greedy_mint))
    except HealthFactorBroken as exc:
        print(f"HealthFactorBroken: would be {fmt_hf(exc.health_factor)}")

    section_header("Nothing Changed")
    show_position(deployment, "alice")
    print(f"Events logged by the failed call: {len(engine.event_log) - events_before}")


def step_05_events(deployment: Deployment):
    """Inspect the event log."""
    step_header(5, "The Event Log",
        "Committed calls publish one record per ledger change.")

    for event in deployment.engine.event_log:
        print(f"  {event}")


# ============================================================================
# PHASE 3: LIQUIDATION (Steps 6-8)
# ============================================================================

def step_06_crash(deployment: Deployment):
    """The collateral price crashes."""
    step_header(6, "Price Crash",
        "Positions become liquidatable when the health factor drops below 1.0.")

    engine = deployment.engine
    print(f">>> deployment.feeds['WETH'].update_answer({CONFIG.crash_price})")
    deployment.feeds["WETH"].update_answer(CONFIG.crash_price)
    print(f"WETH price: ${from_wad(engine.get_usd_value('WETH', to_wad(1))):,.2f}")
    show_position(deployment, "alice")


def step_07_liquidate(deployment: Deployment):
    """A third party repays part of alice's debt and seizes collateral."""
    step_header(7, "Liquidation",
        "The liquidator burns DSC and receives the equivalent collateral plus 10%.")

    engine, weth, dsc = deployment.engine, deployment.tokens["WETH"], deployment.dsc
    collateral = to_wad(CONFIG.liquidator_collateral)
    weth.faucet("bob", collateral)
    weth.approve("bob", engine.address, collateral)
    engine.deposit_collateral_and_mint_dsc("bob", "WETH", collateral, to_wad(CONFIG.liquidator_mint))
    dsc.approve("bob", engine.address, MAX_UINT256)
    show_position(deployment, "bob")

    print(f'\n>>> engine.liquidate("bob", "WETH", "alice", to_wad("{CONFIG.debt_to_cover}"))')
    try:
        result = engine.liquidate("bob", "WETH", "alice", to_wad(CONFIG.debt_to_cover))
    except HealthFactorIntact:
        print("alice is solvent; nothing to liquidate. Try a lower crash_price.")
        return

    section_header("Result")
    print(f"Collateral seized:  {from_wad(result.quote.total_seized):.6f} WETH"
          f" (bonus {from_wad(result.quote.bonus):.6f})")
    print(f"alice HF:           {fmt_hf(result.starting_health_factor)} -> "
          f"{fmt_hf(result.ending_health_factor)}")


def step_08_aftermath(deployment: Deployment):
    """Check the books after the liquidation."""
    step_header(8, "Aftermath",
        "Collateral held by the engine and DSC supply still match the ledgers.")

    engine, weth, dsc = deployment.engine, deployment.tokens["WETH"], deployment.dsc
    show_position(deployment, "alice")
    show_position(deployment, "bob")
    print(f"\nEngine WETH held:   {from_wad(weth.balance_of(engine.address))}")
    print(f"Ledger WETH total:  {from_wad(engine.get_total_collateral_deposited('WETH'))}")
    print(f"DSC supply:         {from_wad(dsc.total_supply)}")
    print(f"Recorded debt:      {from_wad(engine.get_total_dsc_minted())}")


# ============================================================================
# PHASE 4: EXIT (Step 9)
# ============================================================================

def step_09_exit(deployment: Deployment):
    """bob repays debt and withdraws most of the collateral."""
    step_header(9, "Repaying and Withdrawing",
        "Burning DSC and redeeming collateral in one atomic call.")

    engine, weth, dsc = deployment.engine, deployment.tokens["WETH"], deployment.dsc
    # Part of bob's DSC went into the liquidation: repay what is held and
    # withdraw three quarters of the collateral.
    to_burn = dsc.balance_of("bob")
    to_redeem = engine.get_collateral_balance_of_user("bob", "WETH") * 3 // 4
    print(f">>> engine.redeem_collateral_for_dsc('bob', 'WETH', {to_redeem}, {to_burn})")
    try:
        engine.redeem_collateral_for_dsc("bob", "WETH", to_redeem, to_burn)
    except EngineError as exc:
        print(f"{type(exc).__name__}: {exc}")
    show_position(deployment, "bob")
    print(f"bob WETH wallet: {from_wad(weth.balance_of('bob')):.6f}")


# ============================================================================
# MAIN
# ============================================================================

def main():
    if SHOW_LOG:
        logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s %(message)s")

    print("=" * 70)
    print("       STABLE-VALUE ENGINE TUTORIAL")
    print("=" * 70)

    deployment = step_01_deploy()
    wait_for_enter()
    step_02_deposit(deployment)
    wait_for_enter()
    step_03_mint(deployment)
    wait_for_enter()
    step_04_rejected_mint(deployment)
    wait_for_enter()
    step_05_events(deployment)
    wait_for_enter()
    step_06_crash(deployment)
    wait_for_enter()
    step_07_liquidate(deployment)
    wait_for_enter()
    step_08_aftermath(deployment)
    wait_for_enter()
    step_09_exit(deployment)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:
      - Collateral is recorded before tokens move; failures roll everything back
      - Only half the collateral value backs debt (health factor >= 1.0)
      - Liquidators repay debt of insolvent users and earn a 10% bonus

    Next steps:
      - See deployments/local.yaml for a configurable deployment
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
