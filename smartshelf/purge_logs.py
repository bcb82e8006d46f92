from __future__ import annotations

import argparse

from smartshelf.config import settings
from smartshelf.db import SessionLocal, init_db
from smartshelf.logging_config import configure_logging
from smartshelf.services.audit_service import Actor, purge_older_than_days


def main() -> None:
    parser = argparse.ArgumentParser(description='Delete audit log entries older than a retention window.')
    parser.add_argument('--days', type=int, default=settings.log_retention_days, help='Retention window in days.')
    parser.add_argument('--actor', required=True, help='Email recorded as the actor of the LOG_CLEANUP entry.')
    args = parser.parse_args()

    configure_logging()
    init_db()
    with SessionLocal() as db:
        deleted = purge_older_than_days(
            db,
            days=args.days,
            actor=Actor(email=args.actor, client_agent='smartshelf.purge_logs'),
        )
    print(f'Deleted {deleted} logs older than {args.days} days')


if __name__ == '__main__':
    main()
