"""
Snapshot reconciliation for quiz definitions.

``Quiz.pool_size_snapshot`` caches the number of unique active questions
across a quiz's source banks. It is recomputed here, and only here, whenever
the quiz's structure changes. Staff progress rows are not touched: their
``pool_size_known`` catches up the next time an attempt starts.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from quiz_engine.core.errors import NotFound, QuizValidationError
from quiz_engine.models.orm import Quiz
from quiz_engine.models.schemas import QuizCreate, QuizUpdate
from quiz_engine.services.pool_resolver import PoolResolver
from quiz_engine.services.progress import run_once
from quiz_engine.services.stores import BankStore, QuizStore

logger = logging.getLogger(__name__)


class SnapshotReconciler:
    def __init__(self, db: Session, quizzes: QuizStore, banks: BankStore, resolver: PoolResolver):
        self.db = db
        self.quizzes = quizzes
        self.banks = banks
        self.resolver = resolver

    def _require_quiz(self, quiz_id: str, tenant_id: Optional[str]) -> Quiz:
        quiz = self.quizzes.get(quiz_id, tenant_id)
        if quiz is None:
            raise NotFound("Quiz not found.", quiz_id=quiz_id)
        return quiz

    def _check_banks(self, bank_ids: List[str], tenant_id: str) -> None:
        if not bank_ids:
            raise QuizValidationError("A quiz needs at least one source question bank.")
        found = {b.id for b in self.banks.get_by_ids(bank_ids, tenant_id)}
        missing = [b for b in bank_ids if b not in found]
        if missing:
            raise QuizValidationError(
                f"Question banks not found for this restaurant: {', '.join(missing)}", missing=missing)

    @staticmethod
    def _check_size(attempt_size: int, pool_size: int) -> None:
        if attempt_size > pool_size:
            raise QuizValidationError(
                f"Questions per attempt ({attempt_size}) cannot exceed the {pool_size} unique "
                f"active questions available in the selected banks.",
                attempt_size=attempt_size, pool_size=pool_size,
            )

    def recompute_snapshot(self, quiz_id: str, tenant_id: Optional[str] = None) -> int:
        """Recompute and store the snapshot; rejects the result if the quiz would become invalid."""
        def unit() -> int:
            quiz = self._require_quiz(quiz_id, tenant_id)
            size = len(self.resolver.resolve_pool(quiz.source_bank_ids, quiz.tenant_id))
            self._check_size(quiz.attempt_size, size)
            if size != quiz.pool_size_snapshot:
                logger.info("Quiz %s snapshot %d -> %d", quiz.id, quiz.pool_size_snapshot, size)
                quiz.pool_size_snapshot = size
            return size
        return run_once(self.db, unit)

    def create_quiz(self, tenant_id: str, data: QuizCreate) -> Quiz:
        def unit() -> Quiz:
            bank_ids = list(dict.fromkeys(data.source_bank_ids))
            self._check_banks(bank_ids, tenant_id)
            size = len(self.resolver.resolve_pool(bank_ids, tenant_id))
            self._check_size(data.attempt_size, size)
            quiz = self.quizzes.add(Quiz(
                tenant_id=tenant_id, title=data.title.strip(), description=data.description,
                source_bank_ids=bank_ids, attempt_size=data.attempt_size, pool_size_snapshot=size,
                is_available=data.is_available, target_roles=list(data.target_roles),
            ))
            self.db.flush()
            logger.info("Created quiz %s for tenant %s with pool of %d", quiz.id, tenant_id, size)
            return quiz
        return run_once(self.db, unit)

    def update_quiz(self, quiz_id: str, tenant_id: str, changes: QuizUpdate) -> Quiz:
        """Apply a quiz configuration change.

        Every check runs against the would-be state before anything is
        assigned, so a rejected update leaves the stored quiz untouched.
        """
        def unit() -> Quiz:
            quiz = self._require_quiz(quiz_id, tenant_id)
            bank_ids = quiz.source_bank_ids
            size = quiz.pool_size_snapshot
            attempt_size = changes.attempt_size if changes.attempt_size is not None else quiz.attempt_size
            available = changes.is_available if changes.is_available is not None else quiz.is_available

            banks_changed = changes.source_bank_ids is not None and \
                list(dict.fromkeys(changes.source_bank_ids)) != list(quiz.source_bank_ids)
            if banks_changed:
                bank_ids = list(dict.fromkeys(changes.source_bank_ids))
                self._check_banks(bank_ids, quiz.tenant_id)
                size = len(self.resolver.resolve_pool(bank_ids, quiz.tenant_id))

            if banks_changed or attempt_size != quiz.attempt_size or (available and not quiz.is_available):
                self._check_size(attempt_size, size)

            if changes.title is not None:
                quiz.title = changes.title.strip()
            if changes.description is not None:
                quiz.description = changes.description
            if changes.target_roles is not None:
                quiz.target_roles = list(changes.target_roles)
            quiz.source_bank_ids = bank_ids
            quiz.pool_size_snapshot = size
            quiz.attempt_size = attempt_size
            quiz.is_available = available
            return quiz
        return run_once(self.db, unit)

    def refresh_for_banks(self, bank_ids: Iterable[str], tenant_id: str) -> int:
        """Recompute snapshots for every quiz sourcing any of ``bank_ids``.

        Bank edits are not rejected on behalf of the quizzes that use them; a
        quiz left asking for more questions than its pool holds is closed instead.
        """
        def unit() -> int:
            updated = 0
            for quiz in self.quizzes.sourcing_banks(bank_ids, tenant_id):
                size = len(self.resolver.resolve_pool(quiz.source_bank_ids, quiz.tenant_id))
                if size != quiz.pool_size_snapshot:
                    quiz.pool_size_snapshot = size
                    updated += 1
                if quiz.is_available and quiz.attempt_size > size:
                    logger.warning("Quiz %s needs %d questions but its pool has %d; marking unavailable",
                                   quiz.id, quiz.attempt_size, size)
                    quiz.is_available = False
            return updated
        return run_once(self.db, unit)
