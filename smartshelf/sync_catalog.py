from __future__ import annotations

import argparse

from smartshelf.db import SessionLocal, init_db
from smartshelf.logging_config import configure_logging
from smartshelf.services.audit_service import Actor
from smartshelf.services.catalog_client import build_catalog_client
from smartshelf.services.catalog_service import CatalogReconciler, SyncResult
from smartshelf.services.notification_service import NotificationPublisher


def sync_catalog(*, actor_email: str) -> SyncResult:
    client = build_catalog_client()
    with SessionLocal() as db:
        reconciler = CatalogReconciler(db, NotificationPublisher(), client)
        return reconciler.sync(actor=Actor(email=actor_email, client_agent='smartshelf.sync_catalog'))


def main() -> None:
    parser = argparse.ArgumentParser(description='Sync items from the Shopify catalog (create/update only).')
    parser.add_argument('--actor', required=True, help='Email recorded as the actor of the CATALOG_SYNC audit entry.')
    args = parser.parse_args()

    configure_logging()
    init_db()
    result = sync_catalog(actor_email=args.actor)
    print(f'Catalog sync complete: created={result.created}, updated={result.updated}, errors={len(result.errors)}')
    for error in result.errors:
        print(f"  product={error['productId']} variant={error['variantId']}: {error['error']}")


if __name__ == '__main__':
    main()
