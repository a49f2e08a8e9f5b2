"""
Ledgerline Bootstrap — Self-Check Orchestrator
==============================================
Runs all invariant checks at startup.
If any check fails → SystemBootstrapError propagates → refuse to start.

Check order:
1. Manifest strategies registered
2. Variant targets registered
3. Strategy arguments consistent with declared variants
4. (Django persistence) ledger tables exist
5. (Django persistence) history immutability guards active

No auto-fix. No fallback. No silence.
"""

import logging

from core.bootstrap.invariants import (
    check_history_guards,
    check_ledger_tables,
    check_strategies_registered,
    check_strategy_arguments,
    check_targets_registered,
)

logger = logging.getLogger("ledgerline.bootstrap")


def run_bootstrap_checks(snapshot, strategies, targets, *, check_persistence=False):
    logger.info("═══ Ledgerline Bootstrap Self-Check Starting ═══")

    check_strategies_registered(snapshot, strategies)
    check_targets_registered(snapshot, targets)
    check_strategy_arguments(snapshot)
    if check_persistence:
        check_ledger_tables()
        check_history_guards()

    logger.info("═══ Ledgerline Bootstrap Self-Check PASSED ═══")
