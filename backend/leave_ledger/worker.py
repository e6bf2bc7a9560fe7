"""One-shot reconciliation sweep over every person with leave history.

Reports balances whose stored categories drifted from the ledger. With
``--repair`` the stored categories are rewritten from the ledger.
Exits non-zero when any person failed to reconcile.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from leave_ledger.config import get_settings
from leave_ledger.db import dispose_engine, get_session_factory
from leave_ledger.middleware import setup_logging
from leave_ledger.services.reconcile import SweepResult, reconcile_all

logger = logging.getLogger(__name__)


async def run_reconciliation(*, repair: bool = False) -> SweepResult:
    """Run a single sweep and log its summary."""
    logger.info("Reconciliation sweep started (repair=%s)", repair)
    try:
        result = await reconcile_all(get_session_factory(), repair=repair)
    finally:
        await dispose_engine()
    logger.info(
        "Reconciliation sweep complete: processed=%d drifted=%d repaired=%d errors=%d",
        result.processed,
        result.drifted,
        result.repaired,
        result.errors,
    )
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="leave-ledger-reconcile", description=__doc__.splitlines()[0])
    parser.add_argument("--repair", action="store_true", help="rewrite drifted balances from the ledger")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the reconciliation command."""
    args = build_parser().parse_args(argv)
    setup_logging(get_settings())
    result = asyncio.run(run_reconciliation(repair=args.repair))
    return 1 if result.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
