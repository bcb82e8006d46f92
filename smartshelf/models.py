from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class ItemStatus(str, Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    DISCONTINUED = 'discontinued'


class PalletStatus(str, Enum):
    AVAILABLE = 'available'
    IN_USE = 'in_use'
    FULL = 'full'
    MAINTENANCE = 'maintenance'


class Pallet(Base):
    __tablename__ = 'pallets'
    __table_args__ = (
        CheckConstraint('capacity >= 0', name='pallets_capacity_non_negative'),
        CheckConstraint('current_load >= 0', name='pallets_current_load_non_negative'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    pallet_number: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    location: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[PalletStatus] = mapped_column(
        SQLEnum(PalletStatus, name='pallet_status', values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PalletStatus.AVAILABLE,
    )
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    current_load: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    items: Mapped[list[Item]] = relationship(back_populates='pallet', order_by='Item.sku')


class Item(Base):
    __tablename__ = 'items'
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='items_quantity_non_negative'),
        CheckConstraint('min_quantity >= 0', name='items_min_quantity_non_negative'),
        CheckConstraint('max_quantity IS NULL OR max_quantity >= 0', name='items_max_quantity_non_negative'),
        CheckConstraint('price >= 0', name='items_price_non_negative'),
        CheckConstraint('cost >= 0', name='items_cost_non_negative'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    sku: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(255))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_quantity: Mapped[int | None] = mapped_column(Integer)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    location: Mapped[str | None] = mapped_column(String(255))
    barcode: Mapped[str | None] = mapped_column(String(255), unique=True)
    external_product_id: Mapped[str | None] = mapped_column(String(64))
    external_variant_id: Mapped[str | None] = mapped_column(String(64), index=True)
    image_url: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ItemStatus] = mapped_column(
        SQLEnum(ItemStatus, name='item_status', values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ItemStatus.ACTIVE,
    )
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    pallet_id: Mapped[str | None] = mapped_column(String(36), ForeignKey('pallets.id'), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    pallet: Mapped[Pallet | None] = relationship(back_populates='items')


class AuditLog(Base):
    __tablename__ = 'logs'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64))
    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    source_address: Mapped[str | None] = mapped_column(String(255))
    client_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now, index=True)
