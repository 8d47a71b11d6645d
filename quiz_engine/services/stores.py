"""
Store handles over the SQLAlchemy session.

Each store owns the queries for one table family. Services are built with
explicit store instances, so tests can hand them doubles or a throwaway
database without any module-level state.
"""
from typing import Iterable, List, Optional, Set

from sqlalchemy import select, delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quiz_engine.models.orm import (
    Question, QuestionStatus, QuestionBank, Quiz,
    StaffQuizProgress, QuizAttempt, AttemptItem
)


class ProgressCreateConflict(Exception):
    """Another writer created the same progress row first; the unit should be re-run."""


class QuestionStore:
    def __init__(self, db: Session):
        self.db = db

    def get_by_ids(self, ids: Iterable[str], tenant_id: str,
                   status: Optional[QuestionStatus] = None) -> List[Question]:
        ids = list(ids)
        if not ids:
            return []
        stmt = select(Question).where(Question.id.in_(ids), Question.tenant_id == tenant_id)
        if status is not None:
            stmt = stmt.where(Question.status == status)
        return list(self.db.scalars(stmt).all())

    def active_ids(self, ids: Iterable[str], tenant_id: str) -> Set[str]:
        ids = list(ids)
        if not ids:
            return set()
        stmt = select(Question.id).where(
            Question.id.in_(ids),
            Question.tenant_id == tenant_id,
            Question.status == QuestionStatus.ACTIVE,
        )
        return set(self.db.scalars(stmt).all())

    def existing_ids(self, ids: Iterable[str], tenant_id: str) -> Set[str]:
        ids = list(ids)
        if not ids:
            return set()
        stmt = select(Question.id).where(Question.id.in_(ids), Question.tenant_id == tenant_id)
        return set(self.db.scalars(stmt).all())


class BankStore:
    def __init__(self, db: Session):
        self.db = db

    def get_by_ids(self, ids: Iterable[str], tenant_id: str) -> List[QuestionBank]:
        ids = list(ids)
        if not ids:
            return []
        stmt = select(QuestionBank).where(QuestionBank.id.in_(ids), QuestionBank.tenant_id == tenant_id)
        return list(self.db.scalars(stmt).all())

    def list_for_tenant(self, tenant_id: str) -> List[QuestionBank]:
        stmt = select(QuestionBank).where(QuestionBank.tenant_id == tenant_id).order_by(QuestionBank.id)
        return list(self.db.scalars(stmt).all())


class QuizStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, quiz_id: str, tenant_id: Optional[str] = None) -> Optional[Quiz]:
        stmt = select(Quiz).where(Quiz.id == quiz_id)
        if tenant_id is not None:
            stmt = stmt.where(Quiz.tenant_id == tenant_id)
        return self.db.scalar(stmt)

    def list_available(self, tenant_id: str) -> List[Quiz]:
        stmt = select(Quiz).where(Quiz.tenant_id == tenant_id, Quiz.is_available.is_(True)) \
            .order_by(Quiz.created_at.desc(), Quiz.id)
        return list(self.db.scalars(stmt).all())

    def sourcing_banks(self, bank_ids: Iterable[str], tenant_id: str) -> List[Quiz]:
        # JSON containment is not portable across backends; filter in Python.
        wanted = set(bank_ids)
        stmt = select(Quiz).where(Quiz.tenant_id == tenant_id).order_by(Quiz.id)
        return [q for q in self.db.scalars(stmt).all() if wanted.intersection(q.source_bank_ids or [])]

    def add(self, quiz: Quiz) -> Quiz:
        self.db.add(quiz)
        return quiz

    def delete(self, quiz: Quiz) -> None:
        self.db.delete(quiz)


class ProgressStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, staff_id: str, quiz_id: str, tenant_id: str) -> Optional[StaffQuizProgress]:
        return self.db.scalar(select(StaffQuizProgress).where(
            StaffQuizProgress.staff_id == staff_id,
            StaffQuizProgress.quiz_id == quiz_id,
            StaffQuizProgress.tenant_id == tenant_id,
        ))

    def get_or_create(self, staff_id: str, quiz_id: str, tenant_id: str) -> StaffQuizProgress:
        progress = self.get(staff_id, quiz_id, tenant_id)
        if progress is None:
            progress = StaffQuizProgress(
                staff_id=staff_id, quiz_id=quiz_id, tenant_id=tenant_id,
                seen_question_ids=[], pool_size_known=0, is_complete=False,
            )
            self.db.add(progress)
            # The quiz row was just read, so only the unique key can fail here.
            try:
                self.db.flush()
            except IntegrityError as exc:
                raise ProgressCreateConflict(staff_id, quiz_id) from exc
        return progress

    def reset_for_quiz(self, quiz_id: str, tenant_id: str) -> int:
        # Bulk UPDATE skips the ORM version check, so bump the counter by hand
        # to make in-flight writers on these rows conflict and re-read.
        result = self.db.execute(
            update(StaffQuizProgress)
            .where(StaffQuizProgress.quiz_id == quiz_id, StaffQuizProgress.tenant_id == tenant_id)
            .values(seen_question_ids=[], is_complete=False, version=StaffQuizProgress.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def delete_for_quiz(self, quiz_id: str, tenant_id: str) -> int:
        result = self.db.execute(
            delete(StaffQuizProgress)
            .where(StaffQuizProgress.quiz_id == quiz_id, StaffQuizProgress.tenant_id == tenant_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


class AttemptStore:
    def __init__(self, db: Session):
        self.db = db

    def add(self, attempt: QuizAttempt) -> QuizAttempt:
        self.db.add(attempt)
        return attempt

    def get(self, attempt_id: str, tenant_id: str) -> Optional[QuizAttempt]:
        return self.db.scalar(select(QuizAttempt).where(
            QuizAttempt.id == attempt_id, QuizAttempt.tenant_id == tenant_id
        ))

    def list_for(self, staff_id: str, quiz_id: str, tenant_id: str) -> List[QuizAttempt]:
        stmt = select(QuizAttempt).where(
            QuizAttempt.staff_id == staff_id,
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.tenant_id == tenant_id,
        ).order_by(QuizAttempt.submitted_at.desc(), QuizAttempt.id)
        return list(self.db.scalars(stmt).all())

    def delete_for_quiz(self, quiz_id: str, tenant_id: str) -> int:
        attempt_ids = select(QuizAttempt.id).where(
            QuizAttempt.quiz_id == quiz_id, QuizAttempt.tenant_id == tenant_id
        )
        self.db.execute(
            delete(AttemptItem).where(AttemptItem.attempt_id.in_(attempt_ids))
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(
            delete(QuizAttempt).where(QuizAttempt.quiz_id == quiz_id, QuizAttempt.tenant_id == tenant_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
