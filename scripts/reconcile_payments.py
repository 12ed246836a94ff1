"""Time out stale STK pushes and mark completed payments matched or for review.

Meant to run from cron; pass a tenant id to limit the run to one tenant.
"""
import sys
from datetime import datetime, timezone

from app.core.database import session_scope
from app.core.logging import configure_logging
from app.services.payments import reconcile_transactions


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    tenant_id = int(argv[0]) if argv else None
    configure_logging()
    with session_scope() as db:
        counts = reconcile_transactions(db, datetime.now(timezone.utc), tenant_id=tenant_id)
    print(", ".join(f"{key}={value}" for key, value in counts.items()))


if __name__ == "__main__":
    main()
