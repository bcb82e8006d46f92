from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from smartshelf.models import AuditLog, Item, Pallet


def to_jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): to_jsonable(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(val) for val in value]
    return value


def _money(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(Decimal(value).quantize(Decimal('0.01')))


def pallet_summary(pallet: Pallet | None) -> dict | None:
    if pallet is None:
        return None
    return {'id': pallet.id, 'palletNumber': pallet.pallet_number, 'location': pallet.location}


def item_summary(item: Item) -> dict:
    return {'id': item.id, 'sku': item.sku, 'name': item.name, 'quantity': item.quantity}


def item_to_dict(item: Item, *, include_pallet: bool = True) -> dict:
    payload = {
        'id': item.id,
        'sku': item.sku,
        'name': item.name,
        'description': item.description,
        'category': item.category,
        'quantity': item.quantity,
        'minQuantity': item.min_quantity,
        'maxQuantity': item.max_quantity,
        'price': _money(item.price),
        'cost': _money(item.cost),
        'location': item.location,
        'barcode': item.barcode,
        'externalProductId': item.external_product_id,
        'externalVariantId': item.external_variant_id,
        'imageUrl': item.image_url,
        'status': to_jsonable(item.status),
        'metadata': to_jsonable(item.meta or {}),
        'palletId': item.pallet_id,
        'createdAt': to_jsonable(item.created_at),
        'updatedAt': to_jsonable(item.updated_at),
    }
    if include_pallet:
        payload['pallet'] = pallet_summary(item.pallet)
    return payload


def pallet_to_dict(pallet: Pallet, *, items: str | None = None) -> dict:
    """Serialize a pallet; ``items`` is ``'summary'``, ``'full'`` or ``None`` to omit linked items."""
    payload = {
        'id': pallet.id,
        'palletNumber': pallet.pallet_number,
        'location': pallet.location,
        'status': to_jsonable(pallet.status),
        'capacity': pallet.capacity,
        'currentLoad': pallet.current_load,
        'notes': pallet.notes,
        'metadata': to_jsonable(pallet.meta or {}),
        'createdAt': to_jsonable(pallet.created_at),
        'updatedAt': to_jsonable(pallet.updated_at),
    }
    if items == 'summary':
        payload['items'] = [item_summary(item) for item in pallet.items]
    elif items == 'full':
        payload['items'] = [item_to_dict(item, include_pallet=False) for item in pallet.items]
    return payload


def log_to_dict(entry: AuditLog) -> dict:
    return {
        'id': entry.id,
        'action': entry.action,
        'entityType': entry.entity_type,
        'entityId': entry.entity_id,
        'actor': entry.actor,
        'details': to_jsonable(entry.details or {}),
        'sourceAddress': entry.source_address,
        'clientAgent': entry.client_agent,
        'createdAt': to_jsonable(entry.created_at),
    }
