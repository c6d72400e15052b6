from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from maintflow.errors import CONCURRENT_MODIFICATION, NOT_FOUND, STORAGE_FAILURE, WorkflowError
from maintflow.models.org import User
from maintflow.utils.clock import Clock, SYSTEM_CLOCK
from maintflow.workflow.engine import evaluate
from maintflow.workflow.types import EntityKind, TransitionRequest, TransitionResult

logger = logging.getLogger(__name__)


def actor_type_of(actor: Optional[User]) -> str:
    if actor is None:
        return 'SYSTEM'
    return 'VENDOR' if actor.is_vendor else 'INTERNAL'


class WorkflowService:
    """Shared plumbing: row loading, engine calls and the fail-closed commit."""

    entity_kind: EntityKind

    def __init__(self, session, clock: Optional[Clock] = None):
        self.session = session
        self.clock = clock or SYSTEM_CLOCK

    @contextmanager
    def unit_of_work(self):
        """Commit everything written inside the block, or nothing.

        Denials and storage failures roll back, so status, owner, QR usage and
        audit rows are never left half-written.
        """
        try:
            yield
            self.session.commit()
        except WorkflowError:
            self.session.rollback()
            raise
        except StaleDataError:
            self.session.rollback()
            logger.info('Concurrent modification detected, transition denied')
            raise WorkflowError(CONCURRENT_MODIFICATION, 'The record was changed by someone else, reload and retry')
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception('Storage failure while applying transition')
            raise WorkflowError(STORAGE_FAILURE, 'Storage failure, transition not applied')
        except Exception:
            self.session.rollback()
            raise

    def _load_locked(self, model, entity_id, label: str):
        try:
            pk = int(entity_id)
        except (TypeError, ValueError):
            raise WorkflowError(NOT_FOUND, f'{label} {entity_id} not found')
        row = self.session.execute(
            select(model).where(model.id == pk).with_for_update().execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise WorkflowError(NOT_FOUND, f'{label} {entity_id} not found')
        return row

    def _evaluate(self, current_status: str, current_owner_id, action: str, actor: Optional[User],
                  actor_role: Optional[str] = None, context: Optional[Dict[str, Any]] = None) -> TransitionResult:
        result = evaluate(TransitionRequest(
            entity_kind=self.entity_kind,
            current_status=current_status,
            action=action,
            actor_id=actor.id if actor is not None else None,
            actor_role=actor_role if actor_role is not None else (actor.role if actor is not None else None),
            current_owner_id=current_owner_id,
            context=context or {},
        ))
        return result

    def _require(self, result: TransitionResult, action: str) -> TransitionResult:
        if not result.allowed:
            logger.info('%s %s denied: %s', self.entity_kind.value, action, result.error_code)
            raise WorkflowError(result.error_code, result.error)
        return result


__all__ = ['WorkflowService', 'actor_type_of']
