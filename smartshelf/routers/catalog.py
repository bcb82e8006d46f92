from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smartshelf.auth import get_actor, get_current_principal
from smartshelf.db import get_db
from smartshelf.dependencies import get_publisher
from smartshelf.schemas import CatalogQuantityPush
from smartshelf.serializers import item_to_dict
from smartshelf.services.audit_service import Actor
from smartshelf.services.catalog_client import ShopifyClient, build_catalog_client
from smartshelf.services.catalog_service import CatalogReconciler
from smartshelf.services.notification_service import NotificationPublisher

router = APIRouter(prefix='/shopify', tags=['catalog'], dependencies=[Depends(get_current_principal)])


def get_catalog_client() -> ShopifyClient:
    return build_catalog_client()


def get_reconciler(
    db: Session = Depends(get_db),
    publisher: NotificationPublisher = Depends(get_publisher),
    client: ShopifyClient = Depends(get_catalog_client),
) -> CatalogReconciler:
    return CatalogReconciler(db, publisher, client)


@router.get('/products')
def list_products(
    limit: int = Query(50, ge=1, le=250),
    page_info: str | None = Query(None),
    reconciler: CatalogReconciler = Depends(get_reconciler),
):
    return reconciler.list_remote_products(limit=limit, page_info=page_info)


@router.post('/sync')
def sync_catalog(
    actor: Actor = Depends(get_actor),
    reconciler: CatalogReconciler = Depends(get_reconciler),
):
    result = reconciler.sync(actor=actor)
    return {'message': 'Catalog sync completed', 'results': result.to_dict()}


@router.put('/inventory/{item_id}')
def push_inventory(
    item_id: str,
    payload: CatalogQuantityPush,
    actor: Actor = Depends(get_actor),
    reconciler: CatalogReconciler = Depends(get_reconciler),
):
    item = reconciler.push_quantity(item_id, payload.quantity, actor=actor)
    return {'message': 'Inventory updated in catalog', 'item': item_to_dict(item)}
