import logging
import random
from typing import List, Optional

from sqlalchemy.orm import Session

from quiz_engine.core.errors import NotAvailable
from quiz_engine.models.orm import Question, QuestionStatus
from quiz_engine.models.schemas import PresentedOption, PresentedQuestion
from quiz_engine.services.pool_resolver import PoolResolver
from quiz_engine.services.progress import run_with_retry
from quiz_engine.services.stores import ProgressStore, QuestionStore, QuizStore

logger = logging.getLogger(__name__)

def present(question: Question) -> PresentedQuestion:
    return PresentedQuestion(
        question_id=question.id,
        question_text=question.question_text,
        question_type=question.question_type.value,
        options=[PresentedOption(option_id=o.id, text=o.text) for o in question.options],
    )

class AttemptSelector:
    """Builds a new attempt from the questions a staff member has not seen yet."""

    def __init__(self, db: Session, quizzes: QuizStore, progress: ProgressStore,
                 questions: QuestionStore, resolver: PoolResolver,
                 rng: Optional[random.Random] = None):
        self.db = db
        self.quizzes = quizzes
        self.progress = progress
        self.questions = questions
        self.resolver = resolver
        self.rng = rng or random.SystemRandom()

    def start_attempt(self, staff_id: str, quiz_id: str, tenant_id: str) -> List[PresentedQuestion]:
        def unit() -> List[PresentedQuestion]:
            quiz = self.quizzes.get(quiz_id, tenant_id)
            if quiz is None:
                raise NotAvailable("Quiz not found or not available for this restaurant.", quiz_id=quiz_id)
            if not quiz.is_available:
                raise NotAvailable("Quiz is not open for attempts.", quiz_id=quiz_id)

            progress = self.progress.get_or_create(staff_id, quiz.id, quiz.tenant_id)
            if progress.is_complete:
                return []

            pool = self.resolver.resolve_pool(quiz.source_bank_ids, quiz.tenant_id)
            if progress.pool_size_known != len(pool):
                progress.pool_size_known = len(pool)
            # An empty pool never completes progress, so staff resume once questions return.
            if not pool:
                logger.info("Quiz %s has no active questions in its source banks", quiz.id)
                return []

            # Sorted first so a seeded rng gives a reproducible draw.
            available = sorted(pool - set(progress.seen_question_ids or []))
            if not available:
                progress.is_complete = True
                logger.info("Staff %s exhausted quiz %s", staff_id, quiz.id)
                return []

            self.rng.shuffle(available)
            chosen = available[:min(quiz.attempt_size, len(available))]

            records = {q.id: q for q in self.questions.get_by_ids(chosen, quiz.tenant_id, QuestionStatus.ACTIVE)}
            if len(records) < len(chosen):
                logger.info("Quiz %s: %d of %d drawn questions vanished before fetch",
                            quiz.id, len(chosen) - len(records), len(chosen))
            return [present(records[qid]) for qid in chosen if qid in records]

        return run_with_retry(self.db, unit, what=f"attempt start for quiz {quiz_id}")
