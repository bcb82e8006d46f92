from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smartshelf.auth import get_actor, get_current_principal
from smartshelf.db import get_db
from smartshelf.dependencies import get_publisher
from smartshelf.schemas import PalletCreate, PalletUpdate
from smartshelf.serializers import item_to_dict, pallet_to_dict
from smartshelf.services.audit_service import Actor
from smartshelf.services.notification_service import NotificationPublisher
from smartshelf.services.pallet_service import PalletService

router = APIRouter(prefix='/pallets', tags=['pallets'], dependencies=[Depends(get_current_principal)])


def get_pallet_service(
    db: Session = Depends(get_db),
    publisher: NotificationPublisher = Depends(get_publisher),
) -> PalletService:
    return PalletService(db, publisher)


@router.get('')
def list_pallets(
    page: int = Query(1),
    limit: int = Query(50),
    search: str = Query(''),
    status: str = Query(''),
    sort_by: str = Query('createdAt', alias='sortBy'),
    sort_order: str = Query('DESC', alias='sortOrder'),
    service: PalletService = Depends(get_pallet_service),
):
    result = service.list_pallets(
        search=search,
        status=status,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return {
        'pallets': [pallet_to_dict(pallet, items='summary') for pallet in result.rows],
        'pagination': result.pagination(),
    }


@router.get('/{pallet_id}')
def get_pallet(pallet_id: str, service: PalletService = Depends(get_pallet_service)):
    return pallet_to_dict(service.get_pallet(pallet_id), items='full')


@router.post('', status_code=201)
def create_pallet(
    payload: PalletCreate,
    actor: Actor = Depends(get_actor),
    service: PalletService = Depends(get_pallet_service),
):
    return pallet_to_dict(service.create_pallet(payload.to_fields(), actor=actor))


@router.put('/{pallet_id}')
def update_pallet(
    pallet_id: str,
    payload: PalletUpdate,
    actor: Actor = Depends(get_actor),
    service: PalletService = Depends(get_pallet_service),
):
    return pallet_to_dict(service.update_pallet(pallet_id, payload.to_fields(), actor=actor))


@router.delete('/{pallet_id}')
def delete_pallet(
    pallet_id: str,
    actor: Actor = Depends(get_actor),
    service: PalletService = Depends(get_pallet_service),
):
    service.delete_pallet(pallet_id, actor=actor)
    return {'message': 'Pallet deleted successfully', 'id': pallet_id}


@router.post('/{pallet_id}/items/{item_id}')
def assign_item(
    pallet_id: str,
    item_id: str,
    actor: Actor = Depends(get_actor),
    service: PalletService = Depends(get_pallet_service),
):
    pallet, item = service.assign_item(pallet_id, item_id, actor=actor)
    return {
        'message': 'Item assigned to pallet successfully',
        'pallet': pallet_to_dict(pallet),
        'item': item_to_dict(item),
    }


@router.delete('/{pallet_id}/items/{item_id}')
def remove_item(
    pallet_id: str,
    item_id: str,
    actor: Actor = Depends(get_actor),
    service: PalletService = Depends(get_pallet_service),
):
    item = service.remove_item(pallet_id, item_id, actor=actor)
    return {'message': 'Item removed from pallet successfully', 'palletId': pallet_id, 'itemId': item.id}
