import random
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from quiz_engine.core.errors import NotFound, Unauthorized
from quiz_engine.models.orm import Quiz
from quiz_engine.models.schemas import (
    AnswerIn, AttemptDetails, AttemptResult, AttemptSummary, BankRepair, DeleteSummary,
    IncorrectQuestionDetail, PresentedQuestion, ProgressSummary, QuizCreate, QuizUpdate, ResetSummary
)
from quiz_engine.services import grader
from quiz_engine.services.admin import QuizAdministration
from quiz_engine.services.maintenance import repair_banks
from quiz_engine.services.pool_resolver import PoolResolver
from quiz_engine.services.progress import get_progress
from quiz_engine.services.recorder import AttemptRecorder
from quiz_engine.services.selector import AttemptSelector
from quiz_engine.services.snapshot import SnapshotReconciler
from quiz_engine.services.stores import AttemptStore, BankStore, ProgressStore, QuestionStore, QuizStore

def can_take(quiz: Quiz, roles: Iterable[str]) -> bool:
    """Quizzes without target roles are open to every role in the tenant."""
    targets = set(quiz.target_roles or [])
    return not targets or bool(targets.intersection(roles))

class QuizEngine:
    """Entry point for the calling layer: one instance per session/request."""

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.questions = QuestionStore(db)
        self.banks = BankStore(db)
        self.quizzes = QuizStore(db)
        self.progress = ProgressStore(db)
        self.attempts = AttemptStore(db)
        self.resolver = PoolResolver(self.banks, self.questions)
        self.selector = AttemptSelector(db, self.quizzes, self.progress, self.questions, self.resolver, rng=rng)
        self.recorder = AttemptRecorder(db, self.quizzes, self.progress, self.questions, self.attempts, self.resolver)
        self.reconciler = SnapshotReconciler(db, self.quizzes, self.banks, self.resolver)
        self.admin = QuizAdministration(db, self.quizzes, self.progress, self.attempts)

    # ---- staff operations ----

    def start_attempt(self, staff_id: str, quiz_id: str, tenant_id: str) -> List[PresentedQuestion]:
        return self.selector.start_attempt(staff_id, quiz_id, tenant_id)

    def submit_attempt(self, staff_id: str, quiz_id: str, tenant_id: str,
                       answers: Sequence[AnswerIn], duration_seconds: Optional[int] = None) -> AttemptResult:
        return self.recorder.submit_attempt(staff_id, quiz_id, tenant_id, answers, duration_seconds)

    def get_progress(self, staff_id: str, quiz_id: str, tenant_id: str) -> ProgressSummary:
        self.get_quiz(quiz_id, tenant_id)
        return get_progress(self.progress, staff_id, quiz_id, tenant_id)

    def get_quiz(self, quiz_id: str, tenant_id: str) -> Quiz:
        quiz = self.quizzes.get(quiz_id, tenant_id)
        if quiz is None:
            raise NotFound("Quiz not found.", quiz_id=quiz_id)
        return quiz

    def ensure_entitled(self, quiz_id: str, tenant_id: str, roles: Iterable[str]) -> Optional[Quiz]:
        """Role check only; a missing quiz is left for the operation itself to report."""
        quiz = self.quizzes.get(quiz_id, tenant_id)
        if quiz is not None and not can_take(quiz, roles):
            raise Unauthorized("This quiz is not assigned to your role.", quiz_id=quiz_id)
        return quiz

    def list_available_quizzes(self, tenant_id: str, roles: Iterable[str]) -> List[Quiz]:
        roles = list(roles)
        return [q for q in self.quizzes.list_available(tenant_id) if can_take(q, roles)]

    def list_attempts(self, staff_id: str, quiz_id: str, tenant_id: str) -> List[AttemptSummary]:
        return [
            AttemptSummary(attempt_id=a.id, quiz_id=a.quiz_id, score=a.score, total_questions=a.total_questions,
                           submitted_at=a.submitted_at, duration_seconds=a.duration_seconds)
            for a in self.attempts.list_for(staff_id, quiz_id, tenant_id)
        ]

    def get_attempt_details(self, attempt_id: str, staff_id: str, tenant_id: str) -> AttemptDetails:
        attempt = self.attempts.get(attempt_id, tenant_id)
        if attempt is None or attempt.staff_id != staff_id:
            raise NotFound("Attempt not found.", attempt_id=attempt_id)
        wrong = [item for item in attempt.items if not item.is_correct]
        questions = {q.id: q for q in self.questions.get_by_ids([i.question_id for i in wrong], tenant_id)}
        incorrect = []
        for item in wrong:
            question = questions.get(item.question_id)
            if question is None:
                continue
            incorrect.append(IncorrectQuestionDetail(
                question_id=question.id, question_text=question.question_text,
                user_answer=grader.answer_text(question, item.answer_given),
                correct_answer=grader.correct_answer_text(question),
            ))
        return AttemptDetails(
            attempt_id=attempt.id, quiz_id=attempt.quiz_id, staff_id=attempt.staff_id, score=attempt.score,
            total_questions=attempt.total_questions, submitted_at=attempt.submitted_at,
            duration_seconds=attempt.duration_seconds, incorrect_questions=incorrect,
        )

    # ---- quiz configuration ----

    def create_quiz(self, tenant_id: str, data: QuizCreate) -> Quiz:
        return self.reconciler.create_quiz(tenant_id, data)

    def update_quiz(self, quiz_id: str, tenant_id: str, changes: QuizUpdate) -> Quiz:
        return self.reconciler.update_quiz(quiz_id, tenant_id, changes)

    def recompute_snapshot(self, quiz_id: str, tenant_id: Optional[str] = None) -> int:
        return self.reconciler.recompute_snapshot(quiz_id, tenant_id)

    def refresh_snapshots_for_banks(self, bank_ids: Iterable[str], tenant_id: str) -> int:
        return self.reconciler.refresh_for_banks(bank_ids, tenant_id)

    # ---- administration ----

    def reset_progress(self, quiz_id: str, tenant_id: str) -> ResetSummary:
        return self.admin.reset_progress(quiz_id, tenant_id)

    def delete_quiz(self, quiz_id: str, tenant_id: str) -> DeleteSummary:
        return self.admin.delete_quiz(quiz_id, tenant_id)

    def repair_banks(self, tenant_id: str, bank_ids: Optional[Iterable[str]] = None) -> List[BankRepair]:
        return repair_banks(self.db, self.banks, self.questions, self.reconciler, tenant_id, bank_ids)
