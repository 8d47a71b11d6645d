import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from quiz_engine.core.config import PROGRESS_WRITE_RETRIES
from quiz_engine.core.errors import ConcurrencyConflict
from quiz_engine.models.orm import StaffQuizProgress
from quiz_engine.models.schemas import ProgressSummary
from quiz_engine.services.stores import ProgressCreateConflict, ProgressStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

def run_with_retry(db: Session, unit: Callable[[], T], what: str,
                   retries: Optional[int] = None) -> T:
    """Run ``unit`` and commit, re-running it from scratch on a version conflict.

    ``unit`` must re-read everything it writes, since a rollback discards the
    session state of the failed try. Only lost version checks and a raced
    progress insert are retried; any other database error propagates as is.
    """
    retries = PROGRESS_WRITE_RETRIES if retries is None else retries
    for attempt in range(1, retries + 1):
        try:
            result = unit()
            db.commit()
            return result
        except (StaleDataError, ProgressCreateConflict) as exc:
            db.rollback()
            logger.warning("Conflict during %s (try %d/%d): %s", what, attempt, retries, exc)
        except Exception:
            db.rollback()
            raise
    raise ConcurrencyConflict(f"Could not complete {what} after {retries} attempts; please retry.",
                              retries=retries)

def run_once(db: Session, unit: Callable[[], T]) -> T:
    """Single transaction without retries, for destructive operations."""
    try:
        result = unit()
        db.commit()
        return result
    except Exception:
        db.rollback()
        raise

def summarize(progress: Optional[StaffQuizProgress], staff_id: str, quiz_id: str) -> ProgressSummary:
    if progress is None:
        return ProgressSummary(staff_id=staff_id, quiz_id=quiz_id, seen_count=0,
                               total_unique_questions=0, is_complete=False, last_attempt_at=None)
    return ProgressSummary(
        staff_id=progress.staff_id,
        quiz_id=progress.quiz_id,
        seen_count=len(set(progress.seen_question_ids or [])),
        total_unique_questions=progress.pool_size_known,
        is_complete=progress.is_complete,
        last_attempt_at=progress.last_attempt_at,
    )

def get_progress(store: ProgressStore, staff_id: str, quiz_id: str, tenant_id: str) -> ProgressSummary:
    return summarize(store.get(staff_id, quiz_id, tenant_id), staff_id, quiz_id)
