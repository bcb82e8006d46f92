from decimal import Decimal

from sqlalchemy import select

from smartshelf.db import SessionLocal, init_db
from smartshelf.models import Item, Pallet, PalletStatus

DEMO_PALLETS = [
    {'pallet_number': 'PAL-001', 'location': 'Aisle A / Bay 1', 'status': PalletStatus.IN_USE, 'capacity': 120},
    {'pallet_number': 'PAL-002', 'location': 'Aisle A / Bay 2', 'status': PalletStatus.AVAILABLE, 'capacity': 100},
    {'pallet_number': 'PAL-003', 'location': 'Dock', 'status': PalletStatus.MAINTENANCE, 'capacity': 80},
]

DEMO_ITEMS = [
    {'sku': 'WID-100', 'name': 'Widget, small', 'category': 'Widgets', 'quantity': 42, 'min_quantity': 10, 'price': Decimal('4.50'), 'cost': Decimal('1.75'), 'pallet': 'PAL-001'},
    {'sku': 'WID-200', 'name': 'Widget, large', 'category': 'Widgets', 'quantity': 6, 'min_quantity': 8, 'price': Decimal('9.99'), 'cost': Decimal('4.10'), 'pallet': 'PAL-001'},
    {'sku': 'GAD-010', 'name': 'Gadget', 'category': 'Gadgets', 'quantity': 0, 'min_quantity': 5, 'price': Decimal('24.00'), 'cost': Decimal('11.00'), 'pallet': None},
]


def seed() -> None:
    with SessionLocal() as db:
        pallets_by_number = {
            pallet.pallet_number: pallet for pallet in db.execute(select(Pallet)).scalars().all()
        }
        for spec in DEMO_PALLETS:
            if spec['pallet_number'] in pallets_by_number:
                continue
            pallet = Pallet(**spec)
            db.add(pallet)
            pallets_by_number[spec['pallet_number']] = pallet
        db.flush()

        existing_skus = set(db.execute(select(Item.sku)).scalars().all())
        for spec in DEMO_ITEMS:
            if spec['sku'] in existing_skus:
                continue
            values = {key: value for key, value in spec.items() if key != 'pallet'}
            pallet = pallets_by_number.get(spec['pallet']) if spec['pallet'] else None
            db.add(Item(**values, pallet_id=pallet.id if pallet else None))

        db.commit()


if __name__ == '__main__':
    init_db()
    seed()
    print('Seed complete.')
