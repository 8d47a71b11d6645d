import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from sqlalchemy.orm import Session

from quiz_engine.core.errors import NotFound, ProgressNotFound
from quiz_engine.models.orm import AttemptItem, QuizAttempt
from quiz_engine.models.schemas import AnswerIn, AttemptResult, GradedQuestion
from quiz_engine.services import grader
from quiz_engine.services.pool_resolver import PoolResolver
from quiz_engine.services.progress import run_with_retry
from quiz_engine.services.stores import AttemptStore, ProgressStore, QuestionStore, QuizStore

logger = logging.getLogger(__name__)

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def _first_per_question(answers: Sequence[AnswerIn]) -> List[AnswerIn]:
    unique, seen = [], set()
    for answer in answers:
        if answer.question_id in seen:
            continue
        seen.add(answer.question_id)
        unique.append(answer)
    return unique

class AttemptRecorder:
    """Grades a submission, stores it and advances the staff member's progress.

    The attempt insert and the progress update commit together; when another
    writer got to the progress row first the whole unit is replayed against
    the fresh row.
    """

    def __init__(self, db: Session, quizzes: QuizStore, progress: ProgressStore,
                 questions: QuestionStore, attempts: AttemptStore, resolver: PoolResolver,
                 clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self.quizzes = quizzes
        self.progress = progress
        self.questions = questions
        self.attempts = attempts
        self.resolver = resolver
        self.clock = clock

    def submit_attempt(self, staff_id: str, quiz_id: str, tenant_id: str,
                       answers: Sequence[AnswerIn], duration_seconds: Optional[int] = None) -> AttemptResult:
        answers = _first_per_question(answers)

        def unit() -> AttemptResult:
            quiz = self.quizzes.get(quiz_id, tenant_id)
            if quiz is None:
                raise NotFound("Quiz not found.", quiz_id=quiz_id)
            progress = self.progress.get(staff_id, quiz.id, quiz.tenant_id)
            if progress is None:
                raise ProgressNotFound("No attempt was started for this quiz.", quiz_id=quiz_id, staff_id=staff_id)

            # Only questions this quiz's banks list can be scored, whatever their status.
            claimed = self.resolver.claimed_ids(quiz.source_bank_ids, quiz.tenant_id)
            records = {q.id: q for q in self.questions.get_by_ids(
                [a.question_id for a in answers if a.question_id in claimed], quiz.tenant_id)}

            graded: List[GradedQuestion] = []
            items: List[AttemptItem] = []
            for answer in answers:
                question = records.get(answer.question_id)
                if question is None:
                    logger.warning("Submission for quiz %s references question %s outside its banks; ignored",
                                   quiz.id, answer.question_id)
                    continue
                ok = grader.grade(question, answer.answer_given)
                graded.append(GradedQuestion(
                    question_id=question.id, answer_given=answer.answer_given,
                    is_correct=ok, correct_answer=grader.correct_answer_text(question),
                ))
                items.append(AttemptItem(position=len(items), question_id=question.id,
                                         answer_given=answer.answer_given, is_correct=ok))

            now = self.clock()
            score = sum(1 for g in graded if g.is_correct)
            attempt = self.attempts.add(QuizAttempt(
                staff_id=staff_id, quiz_id=quiz.id, tenant_id=quiz.tenant_id,
                score=score, total_questions=len(graded), submitted_at=now,
                duration_seconds=duration_seconds, items=items,
            ))

            seen = list(progress.seen_question_ids or [])
            already = set(seen)
            seen.extend(g.question_id for g in graded if g.question_id not in already)
            progress.seen_question_ids = seen
            progress.last_attempt_at = now

            pool = self.resolver.resolve_pool(quiz.source_bank_ids, quiz.tenant_id)
            progress.pool_size_known = len(pool)
            was_complete = progress.is_complete
            # Complete only when every current pool question was seen; ids that left
            # the pool do not count towards it.
            progress.is_complete = bool(pool) and pool.issubset(seen)
            if progress.is_complete and not was_complete:
                logger.info("Staff %s completed quiz %s (%d questions)", staff_id, quiz.id, len(pool))

            self.db.flush()
            return AttemptResult(attempt_id=attempt.id, score=score, total=len(graded),
                                 is_complete=progress.is_complete, questions=graded)

        return run_with_retry(self.db, unit, what=f"attempt submission for quiz {quiz_id}")
