from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smartshelf.auth import get_actor, get_current_principal
from smartshelf.db import get_db
from smartshelf.dependencies import get_publisher
from smartshelf.schemas import ItemCreate, ItemUpdate, QuantityAdjustment
from smartshelf.serializers import item_to_dict, to_jsonable
from smartshelf.services.audit_service import Actor
from smartshelf.services.inventory_service import InventoryService
from smartshelf.services.notification_service import NotificationPublisher

router = APIRouter(prefix='/inventory', tags=['inventory'], dependencies=[Depends(get_current_principal)])


def get_inventory_service(
    db: Session = Depends(get_db),
    publisher: NotificationPublisher = Depends(get_publisher),
) -> InventoryService:
    return InventoryService(db, publisher)


@router.get('')
def list_items(
    page: int = Query(1),
    limit: int = Query(50),
    search: str = Query(''),
    category: str = Query(''),
    status: str = Query(''),
    sort_by: str = Query('createdAt', alias='sortBy'),
    sort_order: str = Query('DESC', alias='sortOrder'),
    service: InventoryService = Depends(get_inventory_service),
):
    result = service.list_items(
        search=search,
        category=category,
        status=status,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return {'items': [item_to_dict(item) for item in result.rows], 'pagination': result.pagination()}


@router.get('/stats/summary')
def stats_summary(service: InventoryService = Depends(get_inventory_service)):
    return to_jsonable(service.get_stats())


@router.get('/{item_id}')
def get_item(item_id: str, service: InventoryService = Depends(get_inventory_service)):
    return item_to_dict(service.get_item(item_id))


@router.post('', status_code=201)
def create_item(
    payload: ItemCreate,
    actor: Actor = Depends(get_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    return item_to_dict(service.create_item(payload.to_fields(), actor=actor))


@router.put('/{item_id}')
def update_item(
    item_id: str,
    payload: ItemUpdate,
    actor: Actor = Depends(get_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    return item_to_dict(service.update_item(item_id, payload.to_fields(), actor=actor))


@router.delete('/{item_id}')
def delete_item(
    item_id: str,
    actor: Actor = Depends(get_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    service.delete_item(item_id, actor=actor)
    return {'message': 'Item deleted successfully', 'id': item_id}


@router.patch('/{item_id}/quantity')
def adjust_quantity(
    item_id: str,
    payload: QuantityAdjustment,
    actor: Actor = Depends(get_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    item = service.adjust_quantity(item_id, payload.quantity, payload.operation, actor=actor)
    return item_to_dict(item)
