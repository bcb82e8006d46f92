from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartshelf.errors import ConflictError, NotFoundError, ValidationError
from smartshelf.models import AuditLog, Item, ItemStatus, Pallet, PalletStatus

MONEY_QUANT = Decimal('0.01')
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class EntitySpec:
    model: type
    label: str
    json_names: dict[str, str]
    required: tuple[str, ...] = ()
    non_negative_ints: tuple[str, ...] = ()
    nullable_ints: tuple[str, ...] = ()
    money: tuple[str, ...] = ()
    enums: dict[str, type[Enum]] = field(default_factory=dict)
    unique: tuple[str, ...] = ()
    blank_as_null: tuple[str, ...] = ()
    maps: tuple[str, ...] = ()
    search: tuple[str, ...] = ()
    filters: tuple[str, ...] = ()
    default_sort: str = 'created_at'

    @property
    def writable(self) -> set[str]:
        return set(self.json_names) - {'id', 'created_at', 'updated_at'}

    def json_name(self, attr: str) -> str:
        return self.json_names.get(attr, attr)


@dataclass
class Page:
    rows: list
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict:
        return {
            'total': self.total,
            'page': self.page,
            'limit': self.limit,
            'totalPages': self.total_pages,
        }


ITEM = EntitySpec(
    model=Item,
    label='Item',
    json_names={
        'id': 'id',
        'sku': 'sku',
        'name': 'name',
        'description': 'description',
        'category': 'category',
        'quantity': 'quantity',
        'min_quantity': 'minQuantity',
        'max_quantity': 'maxQuantity',
        'price': 'price',
        'cost': 'cost',
        'location': 'location',
        'barcode': 'barcode',
        'external_product_id': 'externalProductId',
        'external_variant_id': 'externalVariantId',
        'image_url': 'imageUrl',
        'status': 'status',
        'meta': 'metadata',
        'pallet_id': 'palletId',
        'created_at': 'createdAt',
        'updated_at': 'updatedAt',
    },
    required=('sku', 'name'),
    non_negative_ints=('quantity', 'min_quantity', 'max_quantity'),
    nullable_ints=('max_quantity',),
    money=('price', 'cost'),
    enums={'status': ItemStatus},
    unique=('sku', 'barcode'),
    blank_as_null=('barcode', 'pallet_id'),
    maps=('meta',),
    search=('name', 'sku', 'description'),
    filters=('category', 'status'),
)

PALLET = EntitySpec(
    model=Pallet,
    label='Pallet',
    json_names={
        'id': 'id',
        'pallet_number': 'palletNumber',
        'location': 'location',
        'status': 'status',
        'capacity': 'capacity',
        'current_load': 'currentLoad',
        'notes': 'notes',
        'meta': 'metadata',
        'created_at': 'createdAt',
        'updated_at': 'updatedAt',
    },
    required=('pallet_number',),
    non_negative_ints=('capacity', 'current_load'),
    enums={'status': PalletStatus},
    unique=('pallet_number',),
    maps=('meta',),
    search=('pallet_number', 'location'),
    filters=('status',),
)

AUDIT_LOG = EntitySpec(
    model=AuditLog,
    label='Log',
    json_names={
        'id': 'id',
        'action': 'action',
        'entity_type': 'entityType',
        'entity_id': 'entityId',
        'actor': 'actor',
        'details': 'details',
        'source_address': 'sourceAddress',
        'client_agent': 'clientAgent',
        'created_at': 'createdAt',
    },
    required=('action', 'entity_type', 'actor'),
    maps=('details',),
    filters=('action', 'entity_type'),
)


def _coerce_int(spec: EntitySpec, attr: str, value: Any) -> int | None:
    if value is None:
        if attr in spec.nullable_ints:
            return None
        raise ValidationError(f'{spec.json_name(attr)} is required', fields=[spec.json_name(attr)])
    if isinstance(value, bool):
        raise ValidationError(f'{spec.json_name(attr)} must be an integer', fields=[spec.json_name(attr)])
    try:
        number = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f'{spec.json_name(attr)} must be an integer', fields=[spec.json_name(attr)]) from exc
    if not isinstance(value, (int, str)) and number != value:
        raise ValidationError(f'{spec.json_name(attr)} must be an integer', fields=[spec.json_name(attr)])
    if number < 0:
        raise ValidationError(f'{spec.json_name(attr)} cannot be negative', fields=[spec.json_name(attr)])
    return number


def parse_money(value: Any, *, field_name: str = 'price') -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f'{field_name} must be a number', fields=[field_name])
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError(f'{field_name} must be a number', fields=[field_name]) from exc
    if not amount.is_finite():
        raise ValidationError(f'{field_name} must be a number', fields=[field_name])
    amount = amount.quantize(MONEY_QUANT)
    if amount < 0:
        raise ValidationError(f'{field_name} cannot be negative', fields=[field_name])
    return amount


def _clean(spec: EntitySpec, fields: dict, *, partial: bool) -> dict:
    unknown = sorted(set(fields) - spec.writable)
    if unknown:
        raise ValidationError(
            f'Unknown field(s) for {spec.label}: {", ".join(unknown)}',
            fields=[spec.json_name(name) for name in unknown],
        )

    values: dict[str, Any] = {}
    for attr, value in fields.items():
        if attr in spec.blank_as_null and isinstance(value, str) and not value.strip():
            value = None

        if attr in spec.required:
            if value is None or not str(value).strip():
                raise ValidationError(f'{spec.json_name(attr)} is required', fields=[spec.json_name(attr)])
            value = str(value).strip()
        elif attr in spec.non_negative_ints:
            value = _coerce_int(spec, attr, value)
        elif attr in spec.money:
            value = parse_money(value, field_name=spec.json_name(attr))
        elif attr in spec.enums:
            enum_cls = spec.enums[attr]
            allowed = [member.value for member in enum_cls]
            raw = value.value if isinstance(value, Enum) else value
            if raw not in allowed:
                raise ValidationError(
                    f'{spec.json_name(attr)} must be one of: {", ".join(allowed)}',
                    fields=[spec.json_name(attr)],
                )
            value = enum_cls(raw)
        elif attr in spec.maps:
            if value is None:
                value = {}
            if not isinstance(value, dict):
                raise ValidationError(f'{spec.json_name(attr)} must be an object', fields=[spec.json_name(attr)])
            value = dict(value)
        values[attr] = value

    if not partial:
        missing = [attr for attr in spec.required if attr not in values]
        if missing:
            raise ValidationError(
                f'Missing required field(s): {", ".join(spec.json_name(attr) for attr in missing)}',
                fields=[spec.json_name(attr) for attr in missing],
            )
    return values


def _check_unique(db: Session, spec: EntitySpec, values: dict, *, exclude_id: str | None) -> None:
    for attr in spec.unique:
        value = values.get(attr)
        if value is None:
            continue
        column = getattr(spec.model, attr)
        stmt = select(spec.model.id).where(column == value)
        if exclude_id is not None:
            stmt = stmt.where(spec.model.id != exclude_id)
        if db.execute(stmt.limit(1)).scalar_one_or_none() is not None:
            json_name = spec.json_name(attr)
            raise ConflictError(f'{spec.label} with {json_name} "{value}" already exists', fields=[json_name])


def _check_references(db: Session, spec: EntitySpec, values: dict) -> None:
    pallet_id = values.get('pallet_id') if spec is ITEM else None
    if pallet_id is None:
        return
    if db.get(Pallet, pallet_id) is None:
        raise ValidationError('Pallet not found', fields=['palletId'])


def _flush(db: Session, spec: EntitySpec) -> None:
    # The storage constraint is the final guard when two writers pass the pre-check together.
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError(f'{spec.label} violates a uniqueness or reference constraint') from exc


def create_entity(db: Session, spec: EntitySpec, fields: dict):
    values = _clean(spec, fields, partial=False)
    _check_unique(db, spec, values, exclude_id=None)
    _check_references(db, spec, values)
    entity = spec.model(**values)
    db.add(entity)
    _flush(db, spec)
    return entity


def get_entity(db: Session, spec: EntitySpec, entity_id: str, *, options: tuple = (), refresh: bool = False):
    entity = db.get(spec.model, entity_id, options=list(options), populate_existing=refresh)
    if entity is None:
        raise NotFoundError(f'{spec.label} not found')
    return entity


def update_entity(db: Session, spec: EntitySpec, entity_id: str, partial: dict):
    entity = get_entity(db, spec, entity_id)
    values = _clean(spec, partial, partial=True)
    _check_unique(db, spec, values, exclude_id=entity.id)
    _check_references(db, spec, values)
    for attr, value in values.items():
        setattr(entity, attr, value)
    _flush(db, spec)
    return entity


def delete_entity(db: Session, spec: EntitySpec, entity_id: str):
    entity = get_entity(db, spec, entity_id)
    db.delete(entity)
    _flush(db, spec)
    return entity


def _sort_column(spec: EntitySpec, sort_by: str | None):
    key = sort_by or spec.default_sort
    by_json = {json_name: attr for attr, json_name in spec.json_names.items()}
    attr = by_json.get(key, key)
    if attr not in spec.json_names or attr in spec.maps:
        raise ValidationError(f'Cannot sort {spec.label} by {key}', fields=['sortBy'])
    return getattr(spec.model, attr)


def search_condition(spec: EntitySpec, term: str):
    return or_(*[getattr(spec.model, attr).icontains(term, autoescape=True) for attr in spec.search])


def build_conditions(spec: EntitySpec, *, search: str | None = None, filters: dict | None = None) -> list:
    conditions = []
    if search and search.strip() and spec.search:
        conditions.append(search_condition(spec, search.strip()))
    for attr, value in (filters or {}).items():
        if attr not in spec.filters:
            raise ValidationError(f'Cannot filter {spec.label} by {spec.json_name(attr)}', fields=[spec.json_name(attr)])
        if value is None or value == '':
            continue
        if attr in spec.enums:
            value = _clean(spec, {attr: value}, partial=True)[attr]
        conditions.append(getattr(spec.model, attr) == value)
    return conditions


def list_entities(
    db: Session,
    spec: EntitySpec,
    *,
    search: str | None = None,
    filters: dict | None = None,
    conditions: list | None = None,
    sort_by: str | None = None,
    sort_order: str = 'DESC',
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    options: tuple = (),
) -> Page:
    if page < 1:
        raise ValidationError('page must be at least 1', fields=['page'])
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f'limit must be between 1 and {MAX_PAGE_SIZE}', fields=['limit'])
    direction = (sort_order or 'DESC').strip().upper()
    if direction not in {'ASC', 'DESC'}:
        raise ValidationError('sortOrder must be ASC or DESC', fields=['sortOrder'])

    where = build_conditions(spec, search=search, filters=filters) + list(conditions or [])
    column = _sort_column(spec, sort_by)
    order = column.asc() if direction == 'ASC' else column.desc()

    total = count_entities(db, spec, *where)
    rows = db.execute(
        select(spec.model)
        .where(*where)
        .options(*options)
        .order_by(order, spec.model.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return Page(rows=list(rows), total=total, page=page, limit=limit)


def count_entities(db: Session, spec: EntitySpec, *conditions) -> int:
    return db.execute(select(func.count()).select_from(spec.model).where(*conditions)).scalar_one()


def sum_field(db: Session, spec: EntitySpec, attr: str, *conditions) -> Decimal:
    column = getattr(spec.model, attr)
    total = db.execute(select(func.coalesce(func.sum(column), 0)).where(*conditions)).scalar_one()
    return Decimal(str(total)).quantize(MONEY_QUANT) if attr in spec.money else Decimal(str(total))
