from __future__ import annotations

import unittest

from sqlalchemy import select
from support import ACTOR, StoreTestCase

from smartshelf.errors import ConflictError, NotFoundError, ValidationError
from smartshelf.models import AuditLog, PalletStatus
from smartshelf.services.inventory_service import InventoryService
from smartshelf.services.pallet_service import PalletService


class PalletServiceTests(StoreTestCase, unittest.TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.service = PalletService(self.db, self.publisher, self.locks)
        self.inventory = InventoryService(self.db, self.publisher, self.locks)

    def _actions(self) -> list[str]:
        return list(self.db.execute(select(AuditLog.action)).scalars().all())

    def _single_log(self, action: str) -> AuditLog:
        return self.db.execute(select(AuditLog).where(AuditLog.action == action)).scalar_one()

    def test_create_applies_defaults(self) -> None:
        pallet = self.service.create_pallet({'pallet_number': 'PAL-1'}, actor=ACTOR)
        self.assertEqual(pallet.status, PalletStatus.AVAILABLE)
        self.assertEqual(pallet.capacity, 100)
        self.assertEqual(pallet.current_load, 0)
        self.assertEqual(self.publisher.names(), ['pallet:created'])

    def test_duplicate_pallet_number_conflicts(self) -> None:
        self.service.create_pallet({'pallet_number': 'PAL-1'}, actor=ACTOR)
        with self.assertRaises(ConflictError):
            self.service.create_pallet({'pallet_number': 'PAL-1'}, actor=ACTOR)
        self.assertEqual(self._actions(), ['CREATE'])

    def test_invalid_status_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.create_pallet({'pallet_number': 'PAL-1', 'status': 'lost'}, actor=ACTOR)

    def test_update_pallet(self) -> None:
        pallet = self.service.create_pallet({'pallet_number': 'PAL-1'}, actor=ACTOR)
        updated = self.service.update_pallet(pallet.id, {'status': 'full', 'location': 'Dock'}, actor=ACTOR)
        self.assertEqual(updated.status, PalletStatus.FULL)
        self.assertEqual(updated.location, 'Dock')
        self.assertEqual(self.publisher.names(), ['pallet:created', 'pallet:updated'])

        log = self._single_log('UPDATE')
        self.assertEqual(log.entity_type, 'Pallet')
        self.assertEqual(log.entity_id, pallet.id)
        self.assertEqual(log.actor, ACTOR.email)
        self.assertEqual(log.details['before']['status'], 'available')
        self.assertEqual(log.details['after']['status'], 'full')

    def test_assign_and_remove_item(self) -> None:
        pallet = self.service.create_pallet({'pallet_number': 'PAL-1'}, actor=ACTOR)
        item = self.inventory.create_item({'sku': 'W-1', 'name': 'Widget', 'quantity': 500}, actor=ACTOR)

        _, assigned = self.service.assign_item(pallet.id, item.id, actor=ACTOR)
        self.assertEqual(assigned.pallet_id, pallet.id)
        # capacity is advisory; load is never recomputed
        self.assertEqual(self.service.get_pallet(pallet.id).current_load, 0)

        removed = self.service.remove_item(pallet.id, item.id, actor=ACTOR)
        self.assertIsNone(removed.pallet_id)

        for action in ('ASSIGN_ITEM', 'REMOVE_ITEM'):
            log = self._single_log(action)
            self.assertEqual(log.entity_type, 'Pallet')
            self.assertEqual(log.entity_id, pallet.id)
            self.assertEqual(log.actor, ACTOR.email)
            self.assertEqual(log.details, {'palletId': pallet.id, 'itemId': item.id})
        self.assertIn('pallet:item_assigned', self.publisher.names())
        self.assertEqual(
            self.publisher.events[-1],
            ('pallet:item_removed', {'palletId': pallet.id, 'itemId': item.id}),
        )

    def test_reassign_moves_item_between_pallets(self) -> None:
        first = self.service.create_pallet({'pallet_number': 'PAL-1'}, actor=ACTOR)
        second = self.service.create_pallet({'pallet_number': 'PAL-2'}, actor=ACTOR)
        item = self.inventory.create_item({'sku': 'W-1', 'name': 'Widget'}, actor=ACTOR)

        self.service.assign_item(first.id, item.id, actor=ACTOR)
        _, moved = self.service.assign_item(second.id, item.id, actor=ACTOR)
        self.assertEqual(moved.pallet_id, second.id)

    def test_assign_to_missing_pallet_or_item_is_not_found(self) -> None:
        pallet = self.service.create_pallet({'pallet_number': 'PAL-1'}, actor=ACTOR)
        item = self.inventory.create_item({'sku': 'W-1', 'name': 'Widget'}, actor=ACTOR)
        with self.assertRaises(NotFoundError):
            self.service.assign_item('missing', item.id, actor=ACTOR)
        with self.assertRaises(NotFoundError):
            self.service.assign_item(pallet.id, 'missing', actor=ACTOR)
        self.assertNotIn('ASSIGN_ITEM', self._actions())

    def test_delete_with_linked_items_conflicts(self) -> None:
        pallet = self.service.create_pallet({'pallet_number': 'PAL-1'}, actor=ACTOR)
        item = self.inventory.create_item({'sku': 'W-1', 'name': 'Widget'}, actor=ACTOR)
        self.service.assign_item(pallet.id, item.id, actor=ACTOR)

        with self.assertRaises(ConflictError):
            self.service.delete_pallet(pallet.id, actor=ACTOR)
        self.db.expire_all()
        self.assertEqual(self.service.get_pallet(pallet.id).pallet_number, 'PAL-1')
        self.assertEqual(self.inventory.get_item(item.id).pallet_id, pallet.id)
        self.assertNotIn('DELETE', self._actions())

        self.service.remove_item(pallet.id, item.id, actor=ACTOR)
        self.service.delete_pallet(pallet.id, actor=ACTOR)
        with self.assertRaises(NotFoundError):
            self.service.get_pallet(pallet.id)
        self.assertEqual(self.publisher.events[-1], ('pallet:deleted', {'id': pallet.id}))

        log = self._single_log('DELETE')
        self.assertEqual(log.entity_type, 'Pallet')
        self.assertEqual(log.entity_id, pallet.id)
        self.assertEqual(log.actor, ACTOR.email)
        self.assertEqual(log.details['pallet']['palletNumber'], 'PAL-1')

    def test_list_filters_by_status(self) -> None:
        self.service.create_pallet({'pallet_number': 'PAL-1', 'status': 'in_use'}, actor=ACTOR)
        self.service.create_pallet({'pallet_number': 'PAL-2'}, actor=ACTOR)

        page = self.service.list_pallets(status='in_use')
        self.assertEqual([pallet.pallet_number for pallet in page.rows], ['PAL-1'])

        page = self.service.list_pallets(search='pal-')
        self.assertEqual(page.total, 2)


if __name__ == '__main__':
    unittest.main()
