from __future__ import annotations

from sqlalchemy.orm import selectinload

from smartshelf.errors import ConflictError
from smartshelf.models import Item, Pallet
from smartshelf.serializers import item_to_dict, pallet_to_dict
from smartshelf.services.audit_service import Actor
from smartshelf.services.entity_store import (
    ITEM,
    PALLET,
    Page,
    count_entities,
    create_entity,
    delete_entity,
    get_entity,
    list_entities,
    update_entity,
)
from smartshelf.services.mutation_service import MutationService

ENTITY_TYPE = 'Pallet'


class PalletService(MutationService):
    """Pallet CRUD and item placement.

    Capacity and current load are advisory here: assigning or removing an
    item never reads or changes ``current_load``.
    """

    def list_pallets(
        self,
        *,
        search: str | None = None,
        status: str | None = None,
        sort_by: str | None = None,
        sort_order: str = 'DESC',
        page: int = 1,
        limit: int = 50,
    ) -> Page:
        return list_entities(
            self.db,
            PALLET,
            search=search,
            filters={'status': status},
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
            options=(selectinload(Pallet.items),),
        )

    def get_pallet(self, pallet_id: str) -> Pallet:
        return get_entity(self.db, PALLET, pallet_id, options=(selectinload(Pallet.items),))

    def create_pallet(self, fields: dict, *, actor: Actor) -> Pallet:
        pallet = self._mutate(lambda: create_entity(self.db, PALLET, fields))
        snapshot = pallet_to_dict(pallet)
        self._finish(
            actor=actor,
            action='CREATE',
            entity_type=ENTITY_TYPE,
            entity_id=pallet.id,
            details={'pallet': snapshot},
            event='pallet:created',
            payload=snapshot,
        )
        return pallet

    def update_pallet(self, pallet_id: str, partial: dict, *, actor: Actor) -> Pallet:
        captured: dict = {}

        def _apply() -> Pallet:
            current = get_entity(self.db, PALLET, pallet_id, refresh=True)
            captured['before'] = pallet_to_dict(current)
            return update_entity(self.db, PALLET, pallet_id, partial)

        pallet = self._mutate(_apply, lock_key=pallet_id)
        after = pallet_to_dict(pallet)
        self._finish(
            actor=actor,
            action='UPDATE',
            entity_type=ENTITY_TYPE,
            entity_id=pallet.id,
            details={'before': captured['before'], 'after': after},
            event='pallet:updated',
            payload=after,
        )
        return pallet

    def delete_pallet(self, pallet_id: str, *, actor: Actor) -> dict:
        def _apply() -> dict:
            current = get_entity(self.db, PALLET, pallet_id, refresh=True)
            linked = count_entities(self.db, ITEM, Item.pallet_id == current.id)
            if linked > 0:
                raise ConflictError('Cannot delete pallet with items. Please remove items first.')
            snapshot = pallet_to_dict(current)
            delete_entity(self.db, PALLET, pallet_id)
            return snapshot

        snapshot = self._mutate(_apply, lock_key=pallet_id)
        self._finish(
            actor=actor,
            action='DELETE',
            entity_type=ENTITY_TYPE,
            entity_id=pallet_id,
            details={'pallet': snapshot},
            event='pallet:deleted',
            payload={'id': pallet_id},
        )
        return snapshot

    def assign_item(self, pallet_id: str, item_id: str, *, actor: Actor) -> tuple[Pallet, Item]:
        def _apply() -> tuple[Pallet, Item]:
            pallet = get_entity(self.db, PALLET, pallet_id, refresh=True)
            get_entity(self.db, ITEM, item_id, refresh=True)
            item = update_entity(self.db, ITEM, item_id, {'pallet_id': pallet.id})
            return pallet, item

        pallet, item = self._mutate(_apply, lock_key=item_id)
        self._finish(
            actor=actor,
            action='ASSIGN_ITEM',
            entity_type=ENTITY_TYPE,
            entity_id=pallet.id,
            details={'palletId': pallet.id, 'itemId': item.id},
            event='pallet:item_assigned',
            payload={'pallet': pallet_to_dict(pallet), 'item': item_to_dict(item)},
        )
        return pallet, item

    def remove_item(self, pallet_id: str, item_id: str, *, actor: Actor) -> Item:
        def _apply() -> Item:
            get_entity(self.db, ITEM, item_id, refresh=True)
            return update_entity(self.db, ITEM, item_id, {'pallet_id': None})

        item = self._mutate(_apply, lock_key=item_id)
        self._finish(
            actor=actor,
            action='REMOVE_ITEM',
            entity_type=ENTITY_TYPE,
            entity_id=pallet_id,
            details={'palletId': pallet_id, 'itemId': item.id},
            event='pallet:item_removed',
            payload={'palletId': pallet_id, 'itemId': item.id},
        )
        return item
