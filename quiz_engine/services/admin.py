import logging

from sqlalchemy.orm import Session

from quiz_engine.core.errors import NotFound
from quiz_engine.models.schemas import DeleteSummary, ResetSummary
from quiz_engine.services.progress import run_once
from quiz_engine.services.stores import AttemptStore, ProgressStore, QuizStore

logger = logging.getLogger(__name__)

class QuizAdministration:
    """Destructive, tenant-scoped operations.

    Each call is one transaction across progress, attempts and (for delete)
    the quiz row. Failures roll back and propagate; nothing here is retried.
    """

    def __init__(self, db: Session, quizzes: QuizStore, progress: ProgressStore, attempts: AttemptStore):
        self.db = db
        self.quizzes = quizzes
        self.progress = progress
        self.attempts = attempts

    def reset_progress(self, quiz_id: str, tenant_id: str) -> ResetSummary:
        def unit() -> ResetSummary:
            quiz = self.quizzes.get(quiz_id, tenant_id)
            if quiz is None:
                raise NotFound("Quiz not found.", quiz_id=quiz_id)
            attempts_deleted = self.attempts.delete_for_quiz(quiz.id, tenant_id)
            progress_reset = self.progress.reset_for_quiz(quiz.id, tenant_id)
            return ResetSummary(quiz_id=quiz.id, progress_reset=progress_reset, attempts_deleted=attempts_deleted)

        summary = run_once(self.db, unit)
        logger.warning("Reset progress for quiz %s: %d progress rows cleared, %d attempts deleted",
                       summary.quiz_id, summary.progress_reset, summary.attempts_deleted)
        return summary

    def delete_quiz(self, quiz_id: str, tenant_id: str) -> DeleteSummary:
        def unit() -> DeleteSummary:
            quiz = self.quizzes.get(quiz_id, tenant_id)
            if quiz is None:
                raise NotFound("Quiz not found.", quiz_id=quiz_id)
            attempts_deleted = self.attempts.delete_for_quiz(quiz.id, tenant_id)
            progress_deleted = self.progress.delete_for_quiz(quiz.id, tenant_id)
            self.quizzes.delete(quiz)
            return DeleteSummary(quiz_id=quiz_id, progress_deleted=progress_deleted,
                                 attempts_deleted=attempts_deleted)

        summary = run_once(self.db, unit)
        logger.warning("Deleted quiz %s with %d progress rows and %d attempts",
                       summary.quiz_id, summary.progress_deleted, summary.attempts_deleted)
        return summary
