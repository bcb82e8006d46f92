from __future__ import annotations

from enum import Enum

from sqlalchemy.orm import selectinload

from smartshelf.errors import ValidationError
from smartshelf.models import Item, ItemStatus
from smartshelf.serializers import item_to_dict
from smartshelf.services.audit_service import Actor
from smartshelf.services.entity_store import (
    ITEM,
    Page,
    count_entities,
    create_entity,
    delete_entity,
    get_entity,
    list_entities,
    sum_field,
    update_entity,
)
from smartshelf.services.mutation_service import MutationService

ENTITY_TYPE = 'Item'


class QuantityMode(str, Enum):
    ADD = 'add'
    SUBTRACT = 'subtract'
    SET = 'set'


def compute_new_quantity(current: int, amount: int, mode: QuantityMode | str) -> int:
    try:
        mode = QuantityMode(mode.value if isinstance(mode, Enum) else mode)
    except ValueError as exc:
        raise ValidationError('operation must be one of: add, subtract, set', fields=['operation']) from exc
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError('quantity must be an integer', fields=['quantity'])

    if mode is QuantityMode.ADD:
        new_quantity = current + amount
    elif mode is QuantityMode.SUBTRACT:
        new_quantity = current - amount
    else:
        new_quantity = amount

    if new_quantity < 0:
        raise ValidationError('Quantity cannot be negative', fields=['quantity'])
    return new_quantity


class InventoryService(MutationService):
    def list_items(
        self,
        *,
        search: str | None = None,
        category: str | None = None,
        status: str | None = None,
        sort_by: str | None = None,
        sort_order: str = 'DESC',
        page: int = 1,
        limit: int = 50,
    ) -> Page:
        return list_entities(
            self.db,
            ITEM,
            search=search,
            filters={'category': category, 'status': status},
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
            options=(selectinload(Item.pallet),),
        )

    def get_item(self, item_id: str) -> Item:
        return get_entity(self.db, ITEM, item_id, options=(selectinload(Item.pallet),))

    def create_item(self, fields: dict, *, actor: Actor) -> Item:
        item = self._mutate(lambda: create_entity(self.db, ITEM, fields))
        snapshot = item_to_dict(item)
        self._finish(
            actor=actor,
            action='CREATE',
            entity_type=ENTITY_TYPE,
            entity_id=item.id,
            details={'item': snapshot},
            event='inventory:created',
            payload=snapshot,
        )
        return item

    def update_item(self, item_id: str, partial: dict, *, actor: Actor) -> Item:
        captured: dict = {}

        def _apply() -> Item:
            current = get_entity(self.db, ITEM, item_id, refresh=True)
            captured['before'] = item_to_dict(current, include_pallet=False)
            return update_entity(self.db, ITEM, item_id, partial)

        item = self._mutate(_apply, lock_key=item_id)
        after = item_to_dict(item)
        self._finish(
            actor=actor,
            action='UPDATE',
            entity_type=ENTITY_TYPE,
            entity_id=item.id,
            details={'before': captured['before'], 'after': item_to_dict(item, include_pallet=False)},
            event='inventory:updated',
            payload=after,
        )
        return item

    def delete_item(self, item_id: str, *, actor: Actor) -> dict:
        def _apply() -> dict:
            current = get_entity(self.db, ITEM, item_id, refresh=True)
            snapshot = item_to_dict(current, include_pallet=False)
            delete_entity(self.db, ITEM, item_id)
            return snapshot

        snapshot = self._mutate(_apply, lock_key=item_id)
        self._finish(
            actor=actor,
            action='DELETE',
            entity_type=ENTITY_TYPE,
            entity_id=item_id,
            details={'item': snapshot},
            event='inventory:deleted',
            payload={'id': item_id},
        )
        return snapshot

    def adjust_quantity(self, item_id: str, amount: int, mode: QuantityMode | str, *, actor: Actor) -> Item:
        captured: dict = {}

        def _apply() -> Item:
            current = get_entity(self.db, ITEM, item_id, refresh=True)
            new_quantity = compute_new_quantity(current.quantity, amount, mode)
            captured['old'] = current.quantity
            captured['new'] = new_quantity
            return update_entity(self.db, ITEM, item_id, {'quantity': new_quantity})

        item = self._mutate(_apply, lock_key=item_id)
        self._finish(
            actor=actor,
            action='QUANTITY_UPDATE',
            entity_type=ENTITY_TYPE,
            entity_id=item.id,
            details={
                'oldQuantity': captured['old'],
                'newQuantity': captured['new'],
                'mode': QuantityMode(mode.value if isinstance(mode, Enum) else mode).value,
            },
            event='inventory:quantity_updated',
            payload=item_to_dict(item),
        )
        return item

    def get_stats(self) -> dict:
        active = Item.status == ItemStatus.ACTIVE
        return {
            'totalItems': count_entities(self.db, ITEM),
            'activeItems': count_entities(self.db, ITEM, active),
            'lowStockItems': count_entities(self.db, ITEM, Item.quantity <= Item.min_quantity),
            'totalValue': sum_field(self.db, ITEM, 'price', active),
        }
