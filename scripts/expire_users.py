"""Flip ACTIVE customers whose expiry time has passed to EXPIRED."""
from datetime import datetime, timezone

from app.core.database import session_scope
from app.core.logging import configure_logging
from app.services.billing import expire_overdue_users


def main():
    configure_logging()
    with session_scope() as db:
        expired = expire_overdue_users(db, datetime.now(timezone.utc))
    print(f"expired={expired}")


if __name__ == "__main__":
    main()
