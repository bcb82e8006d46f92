from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from smartshelf.services.audit_service import Actor, log_audit
from smartshelf.services.locks import KeyedLock, mutation_locks
from smartshelf.services.notification_service import NotificationPublisher

logger = logging.getLogger(__name__)

T = TypeVar('T')


class MutationService:
    """Shared mutate -> audit -> notify sequence.

    The store mutation is committed first. The audit row and the live event
    follow on the same task; a failure in either is logged and never undoes
    the committed mutation.
    """

    def __init__(self, db: Session, publisher: NotificationPublisher, locks: KeyedLock | None = None) -> None:
        self.db = db
        self.publisher = publisher
        self.locks = locks if locks is not None else mutation_locks

    def _mutate(self, fn: Callable[[], T], *, lock_key: str | None = None) -> T:
        if lock_key is None:
            return self._commit(fn)
        with self.locks.hold(lock_key):
            return self._commit(fn)

    def _commit(self, fn: Callable[[], T]) -> T:
        try:
            result = fn()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return result

    def _record(self, *, actor: Actor, action: str, entity_type: str, entity_id: str | None, details: dict) -> None:
        try:
            log_audit(
                self.db,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                actor=actor,
                details=details,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception('Audit write failed: action=%s entity=%s:%s actor=%s', action, entity_type, entity_id, actor.email)

    def _notify(self, event: str, payload: Any) -> None:
        try:
            self.publisher.publish(event, payload)
        except Exception:
            logger.exception('Live update publish failed: event=%s', event)

    def _finish(
        self,
        *,
        actor: Actor,
        action: str,
        entity_type: str,
        entity_id: str | None,
        details: dict,
        event: str,
        payload: Any,
    ) -> None:
        self._record(actor=actor, action=action, entity_type=entity_type, entity_id=entity_id, details=details)
        self._notify(event, payload)
