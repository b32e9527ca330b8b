#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Conversion Engine Step by Step

This is a pedagogical demonstration of how Checks convert into $BLKCHK and back.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation   - The rank table, a first deposit, delegated deposits
  4-5:  Guard Rails  - Rejections, raw value, redemption
  6:    Merges       - Pair merges in custody and what they do to prices
  7-8:  Black Check  - Sixty-four single checks, aggregation, consolidation

Run:
    python demo.py             # Interactive mode (press Enter for each step)
    python demo.py --quick     # Run all steps without pausing
    python demo.py --verbose   # Also show the engine's log lines
"""

from dataclasses import dataclass
import logging
import sys

from blackcheck import (
    # Components
    CheckRegistry, ConversionEngine,
    # Rank model
    amount_for, checks_count, conversion_table,
    # Errors
    ConversionError,
    # Constants and helpers
    UNIT, MAX_RANK, AGGREGATE_RANK, AGGREGATE_COUNT, format_amount,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    # Participants
    alice: str = "alice"
    bob: str = "bob"
    pool: str = "pool"

    # Ranks used in the first steps
    first_deposit_rank: int = AGGREGATE_RANK
    merge_rank: int = 0

    # Holders pooling single checks in step 7
    holders: int = AGGREGATE_COUNT


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv
VERBOSE = "--verbose" in sys.argv


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


def show_balances(engine: ConversionEngine, *accounts: str):
    for account in accounts:
        print(f"  {account:<12} {format_amount(engine.balance_of(account)):>18} {engine.symbol}")
    print(f"  {'supply':<12} {format_amount(engine.total_issued()):>18} {engine.symbol}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_rank_table():
    """Show what every rank converts to."""
    step_header(1, "The Rank Table",
        "Understand that an item's rank alone determines its fungible value.")

    print("""
    Every Check has a rank from 0 (80 checks) to 7 (the black check).
    Each step up doubles the value, except the last: a black check is worth
    the ENTIRE supply, exactly one whole token.
    """)

    section_header("amount_for(rank)")
    print(f"  {'rank':<6}{'checks':<8}{'amount':>20}")
    for rank, amount in conversion_table().items():
        print(f"  {rank:<6}{checks_count(rank):<8}{format_amount(amount):>20}")

    section_header("Key Insight")
    print(f"""
    {AGGREGATE_COUNT} single checks x {format_amount(amount_for(AGGREGATE_RANK))} = {format_amount(AGGREGATE_COUNT * amount_for(AGGREGATE_RANK))}
    which is exactly amount_for({MAX_RANK}). Aggregation conserves value.
    """)


def step_02_first_deposit():
    """Create the registry and engine, deposit one check."""
    step_header(2, "A First Deposit",
        "See a check move into custody and the fungible unit being issued.")

    print(">>> registry = CheckRegistry()")
    print(">>> engine = ConversionEngine(registry)")
    print(">>> registry.register_receiver(engine.address, engine)")
    registry = CheckRegistry()
    engine = ConversionEngine(registry)
    registry.register_receiver(engine.address, engine)

    check = registry.mint(CONFIG.alice, CONFIG.first_deposit_rank)
    print(f"\n>>> engine.deposit('{CONFIG.alice}', [{check}])")
    issued = engine.deposit(CONFIG.alice, [check])

    section_header("After")
    print(f"  issued:          {format_amount(issued)}")
    print(f"  custodian of #{check}: {registry.owner_of(check)}")
    show_balances(engine, CONFIG.alice)
    return registry, engine


def step_03_delegated_deposit(registry: CheckRegistry, engine: ConversionEngine):
    """An approved operator deposits on the owner's behalf."""
    step_header(3, "Delegated Deposits",
        "Learn that the prior custodian is credited, not whoever called.")

    check = registry.mint(CONFIG.bob, CONFIG.first_deposit_rank)
    print(f">>> registry.approve('{CONFIG.bob}', '{CONFIG.pool}', {check})")
    registry.approve(CONFIG.bob, CONFIG.pool, check)
    print(f">>> engine.deposit('{CONFIG.pool}', [{check}])")
    engine.deposit(CONFIG.pool, [check])

    section_header("Balances")
    show_balances(engine, CONFIG.alice, CONFIG.bob, CONFIG.pool)


# ============================================================================
# PHASE 2: GUARD RAILS (Steps 4-5)
# ============================================================================

def step_04_rejections(registry: CheckRegistry, engine: ConversionEngine):
    """Show that failed requests change nothing."""
    step_header(4, "Rejections",
        "See that every failure leaves custody, balances and supply untouched.")

    foreign = registry.mint(CONFIG.bob, 3)
    before = engine.total_issued()

    attempts = [
        ("deposit someone else's check", lambda: engine.deposit(CONFIG.alice, [foreign])),
        ("deposit a batch with an unknown id", lambda: engine.deposit(CONFIG.bob, [foreign, 999])),
        ("merge with keep > burn", lambda: engine.merge_pair(CONFIG.alice, 5, 2)),
        ("send raw value", lambda: engine.receive_value(CONFIG.alice, UNIT)),
    ]
    for label, attempt in attempts:
        try:
            attempt()
        except ConversionError as exc:
            print(f"  {label:<38} -> {type(exc).__name__}")

    section_header("Unchanged")
    print(f"  custodian of #{foreign}: {registry.owner_of(foreign)}")
    print(f"  supply before/after: {format_amount(before)} / {format_amount(engine.total_issued())}")


def step_05_redeem(registry: CheckRegistry, engine: ConversionEngine):
    """Redeem a check held in custody."""
    step_header(5, "Redemption",
        "Burn the fungible unit to take a specific check out of custody.")

    held = registry.tokens_of(engine.address)
    target = held[-1]
    print(f"  In custody: {held}")
    print(f"\n>>> engine.redeem('{CONFIG.alice}', {target})")
    burned = engine.redeem(CONFIG.alice, target)

    section_header("After")
    print(f"  burned:          {format_amount(burned)}")
    print(f"  custodian of #{target}: {registry.owner_of(target)}")
    show_balances(engine, CONFIG.alice, CONFIG.bob)

    print("""
    Alice redeemed the check Bob deposited. Any holder of enough $BLKCHK may
    redeem any check in custody.
    """)


# ============================================================================
# PHASE 3: MERGES (Step 6)
# ============================================================================

def step_06_pair_merge():
    """Pair merges in custody and the resulting redemption price."""
    step_header(6, "Pair Merges",
        "Learn that merges conserve value globally but reprice individual items.")

    registry = CheckRegistry()
    engine = ConversionEngine(registry)
    registry.register_receiver(engine.address, engine)

    keep = registry.mint(CONFIG.alice, CONFIG.merge_rank)
    burn = registry.mint(CONFIG.bob, CONFIG.merge_rank)
    engine.deposit(CONFIG.alice, [keep])
    engine.deposit(CONFIG.bob, [burn])
    print(f">>> engine.merge_pair('anyone', {keep}, {burn})")
    engine.merge_pair("anyone", keep, burn)

    section_header("After")
    print(f"  {registry.get_item(keep)!r}  worth {format_amount(amount_for(registry.get_item(keep).rank))}")
    print(f"  {registry.get_item(burn)!r}")
    show_balances(engine, CONFIG.alice, CONFIG.bob)

    section_header("Redeeming")
    try:
        engine.redeem(CONFIG.alice, keep)
    except ConversionError as exc:
        print(f"  alice alone: {type(exc).__name__}")
    engine.transfer(CONFIG.bob, CONFIG.alice, amount_for(CONFIG.merge_rank))
    engine.redeem(CONFIG.alice, keep)
    print(f"  after bob's transfer: alice holds #{keep}, supply {format_amount(engine.total_issued())}")


# ============================================================================
# PHASE 4: THE BLACK CHECK (Steps 7-8)
# ============================================================================

def step_07_aggregate():
    """Sixty-four holders deposit single checks, then anyone aggregates them."""
    step_header(7, "Aggregation",
        f"Pool {AGGREGATE_COUNT} single checks into one black check.")

    registry = CheckRegistry()
    engine = ConversionEngine(registry)
    registry.register_receiver(engine.address, engine)

    holders = [f"holder_{n}" for n in range(CONFIG.holders)]
    ids = [registry.mint(holder, AGGREGATE_RANK) for holder in holders]
    for holder, item_id in zip(holders, ids):
        engine.deposit(holder, [item_id])
    print(f"  {len(ids)} deposits, supply {format_amount(engine.total_issued())}")

    late = registry.mint("latecomer", AGGREGATE_RANK)
    try:
        engine.deposit("latecomer", [late])
    except ConversionError as exc:
        print(f"  a 65th single check: {type(exc).__name__}")

    print("\n>>> engine.merge_aggregate('anyone', ids)")
    black = engine.merge_aggregate("anyone", ids)
    print(f"  survivor: {registry.get_item(black)!r}")
    print(f"  in custody: {registry.tokens_of(engine.address)}")
    return registry, engine, holders, black


def step_08_consolidate(registry: CheckRegistry, engine: ConversionEngine, holders, black: int):
    """Consolidate the supply and redeem the black check."""
    step_header(8, "Consolidation",
        "Only a holder of the whole supply can take the black check out.")

    collector = holders[0]
    for holder in holders[1:]:
        engine.transfer(holder, collector, engine.balance_of(holder))
    show_balances(engine, collector)

    print(f"\n>>> engine.redeem('{collector}', {black})")
    engine.redeem(collector, black)
    print(f"  custodian of #{black}: {registry.owner_of(black)}")

    section_header("Supply Verification")
    report = engine.verify_supply()
    print(f"  valid:           {report['valid']}")
    print(f"  total_issued:    {format_amount(report['total_issued'])}")
    print(f"  sum of balances: {format_amount(report['sum_of_balances'])}")

    section_header("Record Log (last 3)")
    for record in engine.record_log[-3:]:
        print(f"  {record!r}")


def main():
    """Run the complete tutorial."""
    if VERBOSE:
        logging.basicConfig(level=logging.INFO, format="    [%(name)s] %(message)s")

    print("=" * 70)
    print("       BLACK CHECK - INTERACTIVE TUTORIAL")
    print("=" * 70)
    print("""
    Welcome! This tutorial shows how Checks convert into $BLKCHK and back.

    PHASES:
      1-3:  Foundation   - Rank table, deposits, delegated deposits
      4-5:  Guard Rails  - Rejections, redemption
      6:    Merges       - Pair merges and repricing
      7-8:  Black Check  - Aggregation and consolidation
    """)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    # Phase 1: Foundation
    step_01_rank_table()
    wait_for_enter()

    registry, engine = step_02_first_deposit()
    wait_for_enter()

    step_03_delegated_deposit(registry, engine)
    wait_for_enter()

    # Phase 2: Guard Rails
    step_04_rejections(registry, engine)
    wait_for_enter()

    step_05_redeem(registry, engine)
    wait_for_enter()

    # Phase 3: Merges
    step_06_pair_merge()
    wait_for_enter()

    # Phase 4: The Black Check
    registry, engine, holders, black = step_07_aggregate()
    wait_for_enter()

    step_08_consolidate(registry, engine, holders, black)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:

      - Rank alone sets an item's value; the black check is the whole supply
      - Deposits credit the prior custodian; failures change nothing
      - Merges conserve value but reprice the surviving item
      - Sixty-four single checks aggregate into one black check

    Next steps:
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
