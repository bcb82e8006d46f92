from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smartshelf.auth import get_actor, get_current_principal
from smartshelf.config import settings
from smartshelf.db import get_db
from smartshelf.errors import ValidationError
from smartshelf.serializers import log_to_dict
from smartshelf.services.audit_service import Actor, get_log, list_logs, log_stats, purge_older_than_days

router = APIRouter(prefix='/logs', tags=['logs'], dependencies=[Depends(get_current_principal)])


def _parse_date(raw: str, field_name: str) -> datetime | None:
    raw = raw.strip()
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError as exc:
        raise ValidationError('Invalid date filter', fields=[field_name]) from exc
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@router.get('')
def list_log_entries(
    page: int = Query(1),
    limit: int = Query(50),
    action: str = Query(''),
    entity_type: str = Query('', alias='entityType'),
    actor: str = Query(''),
    start_date: str = Query('', alias='startDate'),
    end_date: str = Query('', alias='endDate'),
    sort_by: str = Query('createdAt', alias='sortBy'),
    sort_order: str = Query('DESC', alias='sortOrder'),
    db: Session = Depends(get_db),
):
    result = list_logs(
        db,
        action=action,
        entity_type=entity_type,
        actor=actor,
        start_date=_parse_date(start_date, 'startDate'),
        end_date=_parse_date(end_date, 'endDate'),
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return {'logs': [log_to_dict(entry) for entry in result.rows], 'pagination': result.pagination()}


@router.get('/stats/summary')
def log_summary(db: Session = Depends(get_db)):
    return log_stats(db)


@router.delete('/cleanup')
def cleanup_logs(
    days: int | None = Query(None),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    retention = settings.log_retention_days if days is None else days
    deleted = purge_older_than_days(db, days=retention, actor=actor)
    return {'message': f'Deleted {deleted} logs older than {retention} days', 'deletedCount': deleted}


@router.get('/{log_id}')
def get_log_entry(log_id: str, db: Session = Depends(get_db)):
    return log_to_dict(get_log(db, log_id))
