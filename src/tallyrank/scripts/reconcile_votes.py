"""Recount stored vote aggregates from the live vote rows.

Usage::

    python -m tallyrank.scripts.reconcile_votes [--product-id ID ...] [--refresh-rankings]
"""
from __future__ import annotations

import argparse
import logging
import sys

from tallyrank.core.errors import StoreUnavailableError
from tallyrank.db.session import SessionLocal
from tallyrank.services.ranking_refresh import refresh_rankings
from tallyrank.services.vote_store import VoteStore

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Repair drifted product vote counts")
    parser.add_argument(
        "--product-id",
        type=int,
        action="append",
        dest="product_ids",
        help="Limit the repair to these products (repeatable).",
    )
    parser.add_argument(
        "--refresh-rankings",
        action="store_true",
        help="Rebuild rank snapshots after repairing.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    db = SessionLocal()
    try:
        repaired = VoteStore(db).reconcile_aggregates(args.product_ids)
        logger.info("Repaired %d product aggregate(s): %s", len(repaired), repaired)
        if args.refresh_rankings:
            refresh_rankings(db)
    except StoreUnavailableError as exc:
        logger.error("Reconciliation failed: %s", exc)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
