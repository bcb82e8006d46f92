from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from smartshelf.config import settings
from smartshelf.errors import InventoryError, UpstreamError, ValidationError
from smartshelf.models import Item, ItemStatus
from smartshelf.serializers import item_to_dict
from smartshelf.services.audit_service import SYSTEM_ENTITY, Actor
from smartshelf.services.entity_store import ITEM, create_entity, get_entity, parse_money, update_entity
from smartshelf.services.locks import KeyedLock
from smartshelf.services.mutation_service import MutationService
from smartshelf.services.notification_service import NotificationPublisher

logger = logging.getLogger(__name__)

DEFAULT_VARIANT_TITLE = 'Default Title'
FALLBACK_SKU_PREFIX = 'EXT-'


class CatalogClient(Protocol):
    def list_products_page(self, *, limit: int, page_info: str | None = None) -> tuple[list[dict], str | None]: ...

    def list_products(self, *, page_size: int, max_pages: int) -> list[dict]: ...

    def get_variant(self, variant_id: str) -> dict: ...

    def list_locations(self) -> list[dict]: ...

    def set_inventory_level(self, *, inventory_item_id: str, location_id: str, available: int) -> dict: ...


@dataclass
class SyncResult:
    created: int = 0
    updated: int = 0
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {'created': self.created, 'updated': self.updated, 'errors': list(self.errors)}


def variant_display_name(product: dict, variant: dict) -> str:
    title = (product.get('title') or '').strip()
    variant_title = (variant.get('title') or '').strip()
    if variant_title and variant_title != DEFAULT_VARIANT_TITLE:
        return f'{title} - {variant_title}'
    return title


def first_image_url(product: dict) -> str | None:
    images = product.get('images') or []
    if not images:
        return None
    return images[0].get('src') or None


def variant_fields(product: dict, variant: dict) -> dict:
    """Item fields the catalog owns; sku, location and pallet stay local once created."""
    return {
        'name': variant_display_name(product, variant),
        'description': product.get('body_html'),
        'price': parse_money(variant.get('price'), field_name='price'),
        'quantity': variant.get('inventory_quantity') or 0,
        'image_url': first_image_url(product),
        'barcode': variant.get('barcode') or None,
        'external_product_id': str(product['id']),
    }


class CatalogReconciler(MutationService):
    def __init__(
        self,
        db: Session,
        publisher: NotificationPublisher,
        client: CatalogClient,
        locks: KeyedLock | None = None,
    ) -> None:
        super().__init__(db, publisher, locks)
        self.client = client

    def list_remote_products(self, *, limit: int = 50, page_info: str | None = None) -> dict:
        products, next_page = self.client.list_products_page(limit=limit, page_info=page_info)
        return {'products': products, 'nextPageInfo': next_page}

    def _find_by_variant(self, variant_id: str) -> Item | None:
        return self.db.execute(
            select(Item).where(Item.external_variant_id == variant_id).order_by(Item.created_at.asc()).limit(1)
        ).scalar_one_or_none()

    def _upsert_variant(self, product: dict, variant: dict) -> bool:
        variant_id = str(variant['id'])
        fields = variant_fields(product, variant)
        existing = self._find_by_variant(variant_id)
        if existing is None:
            create_entity(
                self.db,
                ITEM,
                {
                    **fields,
                    'sku': variant.get('sku') or f'{FALLBACK_SKU_PREFIX}{variant_id}',
                    'external_variant_id': variant_id,
                    'status': ItemStatus.ACTIVE,
                },
            )
            return True
        update_entity(self.db, ITEM, existing.id, fields)
        return False

    def sync(self, *, actor: Actor) -> SyncResult:
        # An upstream failure here aborts the whole run before anything is written.
        products = self.client.list_products(page_size=settings.shopify_page_size, max_pages=settings.shopify_max_pages)

        result = SyncResult()
        for product in products:
            for variant in product.get('variants') or []:
                try:
                    with self.db.begin_nested():
                        created = self._upsert_variant(product, variant)
                except Exception as exc:
                    message = exc.message if isinstance(exc, InventoryError) else str(exc)
                    logger.warning(
                        'Catalog variant %s of product %s skipped: %s', variant.get('id'), product.get('id'), message
                    )
                    result.errors.append(
                        {'productId': product.get('id'), 'variantId': variant.get('id'), 'error': message}
                    )
                    continue
                if created:
                    result.created += 1
                else:
                    result.updated += 1

        self.db.commit()
        logger.info(
            'Catalog sync complete: created=%s updated=%s errors=%s', result.created, result.updated, len(result.errors)
        )
        summary = result.to_dict()
        self._finish(
            actor=actor,
            action='CATALOG_SYNC',
            entity_type=SYSTEM_ENTITY,
            entity_id=None,
            details=summary,
            event='catalog:synced',
            payload=summary,
        )
        return result

    def push_quantity(self, item_id: str, quantity: int, *, actor: Actor) -> Item:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValidationError('quantity must be a non-negative integer', fields=['quantity'])
        item = get_entity(self.db, ITEM, item_id, refresh=True)
        if not item.external_variant_id:
            raise ValidationError('Item not linked to the catalog', fields=['externalVariantId'])

        variant = self.client.get_variant(item.external_variant_id)
        inventory_item_id = variant.get('inventory_item_id')
        if not inventory_item_id:
            raise UpstreamError(f'Catalog variant {item.external_variant_id} has no inventory item')
        locations = self.client.list_locations()
        if not locations or not locations[0].get('id'):
            raise UpstreamError('Catalog returned no locations')
        location_id = locations[0]['id']
        self.client.set_inventory_level(inventory_item_id=inventory_item_id, location_id=location_id, available=quantity)

        captured: dict = {}

        def _apply() -> Item:
            current = get_entity(self.db, ITEM, item_id, refresh=True)
            captured['old'] = current.quantity
            return update_entity(self.db, ITEM, item_id, {'quantity': quantity})

        item = self._mutate(_apply, lock_key=item_id)
        self._finish(
            actor=actor,
            action='CATALOG_INVENTORY_UPDATE',
            entity_type='Item',
            entity_id=item.id,
            details={
                'itemId': item.id,
                'oldQuantity': captured['old'],
                'quantity': quantity,
                'inventoryItemId': inventory_item_id,
                'locationId': location_id,
            },
            event='catalog:inventory_pushed',
            payload=item_to_dict(item),
        )
        return item
