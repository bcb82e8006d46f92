from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from smartshelf.errors import ValidationError
from smartshelf.models import AuditLog
from smartshelf.serializers import log_to_dict, to_jsonable
from smartshelf.services.entity_store import AUDIT_LOG, Page, get_entity, list_entities

logger = logging.getLogger(__name__)

SYSTEM_ENTITY = 'System'


@dataclass(frozen=True)
class Actor:
    email: str
    source_address: str | None = None
    client_agent: str | None = None


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def log_audit(
    db: Session,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None,
    actor: Actor,
    details: dict | None = None,
) -> AuditLog:
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor=actor.email,
        details=to_jsonable(details or {}),
        source_address=actor.source_address,
        client_agent=actor.client_agent,
        created_at=_now(),
    )
    db.add(entry)
    db.flush()
    return entry


def purge_older_than(db: Session, *, cutoff: datetime, actor: Actor, days: int | None = None) -> int:
    deleted = db.execute(delete(AuditLog).where(AuditLog.created_at < cutoff)).rowcount or 0
    db.commit()

    # Written after the purge commits so the cleanup entry is never part of its own cutoff.
    try:
        log_audit(
            db,
            action='LOG_CLEANUP',
            entity_type=SYSTEM_ENTITY,
            entity_id=None,
            actor=actor,
            details={'deletedCount': deleted, 'days': days, 'cutoffDate': cutoff},
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception('Audit write failed: action=LOG_CLEANUP deleted=%s actor=%s', deleted, actor.email)
    return deleted


def purge_older_than_days(db: Session, *, days: int, actor: Actor) -> int:
    if days < 0:
        raise ValidationError('days cannot be negative', fields=['days'])
    return purge_older_than(db, cutoff=_now() - timedelta(days=days), actor=actor, days=days)


def list_logs(
    db: Session,
    *,
    action: str | None = None,
    entity_type: str | None = None,
    actor: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    sort_by: str | None = None,
    sort_order: str = 'DESC',
    page: int = 1,
    limit: int = 50,
) -> Page:
    conditions = []
    if actor and actor.strip():
        conditions.append(AuditLog.actor.icontains(actor.strip(), autoescape=True))
    if start_date:
        conditions.append(AuditLog.created_at >= start_date)
    if end_date:
        conditions.append(AuditLog.created_at <= end_date)
    return list_entities(
        db,
        AUDIT_LOG,
        filters={'action': action, 'entity_type': entity_type},
        conditions=conditions,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


def get_log(db: Session, log_id: str) -> AuditLog:
    return get_entity(db, AUDIT_LOG, log_id)


def log_stats(db: Session) -> dict:
    total = db.execute(select(func.count()).select_from(AuditLog)).scalar_one()
    count_col = func.count(AuditLog.id)
    action_counts = db.execute(
        select(AuditLog.action, count_col.label('count'))
        .group_by(AuditLog.action)
        .order_by(count_col.desc(), AuditLog.action.asc())
        .limit(10)
    ).all()
    recent = db.execute(select(AuditLog).order_by(AuditLog.created_at.desc()).limit(10)).scalars().all()
    return {
        'totalLogs': total,
        'actionCounts': [{'action': row.action, 'count': row.count} for row in action_counts],
        'recentActivity': [log_to_dict(entry) for entry in recent],
    }
