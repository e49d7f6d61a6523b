#!/usr/bin/env python3
"""Rebuild the billing code chain table from the catalog.

Reads billing codes and predecessor edges, recomputes every chain and
replaces the contents of billing_code_chains in one transaction.
Malformed chains are skipped and listed.

Usage:
    python -m billing_engine.scripts.rebuild_chains
    python -m billing_engine.scripts.rebuild_chains --dry-run
"""

import argparse
import logging
import sys

from billing_engine.core.database import close_db, get_session_factory
from billing_engine.services.chain_analysis_db import rebuild_chain_table

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Rebuild the billing code chain table")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute chains and report failures without committing",
    )
    parser.add_argument("--user-id", default=None, help="User recorded in the audit log")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    session = get_session_factory()()
    try:
        result = rebuild_chain_table(session, user_id=args.user_id)
        if args.dry_run:
            session.rollback()
            logger.info("Dry run: changes rolled back")
        else:
            session.commit()
    except Exception:
        session.rollback()
        logger.exception("Chain rebuild failed")
        return 1
    finally:
        session.close()
        close_db()

    print("=" * 60)
    print(f"Chains: {len(result.chains)}")
    print(f"Records: {len(result.records)}")
    print(f"Failures: {len(result.failures)}")
    for failure in result.failures:
        print(f"  {failure}")
    print("=" * 60)

    return 1 if result.failures else 0


if __name__ == "__main__":
    sys.exit(main())
