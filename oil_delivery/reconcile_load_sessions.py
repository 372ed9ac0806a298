from __future__ import annotations

import argparse
import logging

from oil_delivery.config import settings
from oil_delivery.db import SessionLocal, run_with_retry
from oil_delivery.services.load_session_service import reconcile_all_load_sessions

logger = logging.getLogger(__name__)


def reconcile(*, dry_run: bool = False) -> tuple[int, int]:
    """Re-derive every load session balance from the transaction log."""
    with SessionLocal() as db:
        results = run_with_retry(db, lambda: reconcile_all_load_sessions(db))
        changed = [result for result in results if result.changed]
        for result in changed:
            logger.info(
                '%s: supplied=%s remaining=%s status=%s',
                result.load_session_id,
                result.total_supplied,
                result.remaining_liters,
                result.status.value,
            )
        if dry_run:
            db.rollback()
        else:
            db.commit()
    return len(results), len(changed)


def main() -> None:
    parser = argparse.ArgumentParser(description='Recompute load session balances from supply transactions.')
    parser.add_argument('--dry-run', action='store_true', help='Report drifted sessions without saving changes.')
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper(), format='%(levelname)s %(name)s: %(message)s')
    total, changed = reconcile(dry_run=args.dry_run)
    action = 'would update' if args.dry_run else 'updated'
    print(f'Load session reconcile complete: checked={total}, {action}={changed}')


if __name__ == '__main__':
    main()
