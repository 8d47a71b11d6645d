import random
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from quiz_engine.core.errors import ConcurrencyConflict, NotFound, ProgressNotFound
from quiz_engine.models.orm import QuizAttempt, StaffQuizProgress
from quiz_engine.models.schemas import AnswerIn
from quiz_engine.services.engine import QuizEngine
from quiz_engine.services.recorder import AttemptRecorder
from conftest import TENANT, OTHER_TENANT, STAFF, correct_answer


def answers_for(db, questions, right=True):
    out = []
    for q in questions:
        given = correct_answer(db, q.question_id) if right else "nope"
        out.append(AnswerIn(question_id=q.question_id, answer_given=given))
    return out


def take(qe, quiz_id, right=True):
    drawn = qe.start_attempt(STAFF, quiz_id, TENANT)
    return drawn, qe.submit_attempt(STAFF, quiz_id, TENANT, answers_for(qe.db, drawn, right))


def test_submit_without_start_has_no_progress(qe, factory):
    q = factory.question()
    quiz = factory.quiz([factory.bank([q.id]).id], attempt_size=1)

    with pytest.raises(ProgressNotFound):
        qe.submit_attempt(STAFF, quiz.id, TENANT, [AnswerIn(question_id=q.id, answer_given=q.id + "-o0")])


def test_submit_to_missing_or_foreign_quiz(qe, factory):
    q = factory.question()
    quiz = factory.quiz([factory.bank([q.id]).id], attempt_size=1)
    qe.start_attempt(STAFF, quiz.id, TENANT)

    with pytest.raises(NotFound):
        qe.submit_attempt(STAFF, "no-such-quiz", TENANT, [])
    with pytest.raises(NotFound):
        qe.submit_attempt(STAFF, quiz.id, OTHER_TENANT, [])


def test_overlapping_banks_walkthrough(qe, factory):
    q1, q2, q3 = factory.questions(3)
    a = factory.bank([q1.id, q2.id])
    b = factory.bank([q2.id, q3.id])
    quiz = factory.quiz([a.id, b.id], attempt_size=2, snapshot=3)

    first, result = take(qe, quiz.id)
    assert len(first) == 2
    assert (result.score, result.total, result.is_complete) == (2, 2, False)

    second, result = take(qe, quiz.id)
    assert len(second) == 1
    assert {q.question_id for q in first + second} == {q1.id, q2.id, q3.id}
    assert result.is_complete is True

    assert qe.start_attempt(STAFF, quiz.id, TENANT) == []
    summary = qe.get_progress(STAFF, quiz.id, TENANT)
    assert (summary.seen_count, summary.total_unique_questions, summary.is_complete) == (3, 3, True)


def test_no_question_repeats_until_exhaustion(qe, factory):
    qs = factory.questions(7)
    quiz = factory.quiz([factory.bank([q.id for q in qs]).id], attempt_size=3, snapshot=7)

    sizes, presented = [], []
    for _ in range(3):
        drawn, _ = take(qe, quiz.id, right=False)
        sizes.append(len(drawn))
        presented.extend(q.question_id for q in drawn)

    assert sizes == [3, 3, 1]
    assert len(presented) == len(set(presented)) == 7
    assert qe.progress.get(STAFF, quiz.id, TENANT).is_complete is True


def test_wrong_answers_still_count_as_seen(qe, factory):
    qs = factory.questions(2)
    quiz = factory.quiz([factory.bank([q.id for q in qs]).id], attempt_size=1, snapshot=2)

    drawn, result = take(qe, quiz.id, right=False)

    assert result.score == 0
    assert result.questions[0].correct_answer
    assert qe.progress.get(STAFF, quiz.id, TENANT).seen_question_ids == [drawn[0].question_id]


def test_duplicate_and_unknown_answers(qe, factory):
    qs = factory.questions(3)
    quiz = factory.quiz([factory.bank([q.id for q in qs]).id], attempt_size=3)
    qe.start_attempt(STAFF, quiz.id, TENANT)
    target = qs[0].id

    result = qe.submit_attempt(STAFF, quiz.id, TENANT, [
        AnswerIn(question_id=target, answer_given=correct_answer(qe.db, target)),
        AnswerIn(question_id=target, answer_given="wrong"),
        AnswerIn(question_id="ghost-question", answer_given="x"),
    ])

    assert (result.score, result.total) == (1, 1)
    assert qe.progress.get(STAFF, quiz.id, TENANT).seen_question_ids == [target]


def test_attempt_is_persisted_with_items_and_duration(qe, factory):
    qs = factory.questions(2)
    quiz = factory.quiz([factory.bank([q.id for q in qs]).id], attempt_size=2)
    drawn = qe.start_attempt(STAFF, quiz.id, TENANT)
    answers = answers_for(qe.db, drawn)
    answers[1] = AnswerIn(question_id=answers[1].question_id, answer_given="wrong")

    result = qe.submit_attempt(STAFF, quiz.id, TENANT, answers, duration_seconds=95)

    attempt = qe.attempts.get(result.attempt_id, TENANT)
    assert (attempt.score, attempt.total_questions, attempt.duration_seconds) == (1, 2, 95)
    assert [i.question_id for i in attempt.items] == [a.question_id for a in answers]
    assert [i.is_correct for i in attempt.items] == [True, False]
    assert qe.progress.get(STAFF, quiz.id, TENANT).last_attempt_at is not None


def test_completion_uses_the_current_pool(qe, factory):
    qs = factory.questions(3)
    quiz = factory.quiz([factory.bank([q.id for q in qs]).id], attempt_size=2, snapshot=3)
    drawn = qe.start_attempt(STAFF, quiz.id, TENANT)
    remaining = ({q.id for q in qs} - {q.question_id for q in drawn}).pop()
    factory.archive(remaining)

    result = qe.submit_attempt(STAFF, quiz.id, TENANT, answers_for(qe.db, drawn))

    assert result.is_complete is True
    assert qe.progress.get(STAFF, quiz.id, TENANT).pool_size_known == 2


def test_archived_question_is_still_graded(qe, factory):
    q = factory.question()
    other = factory.question()
    quiz = factory.quiz([factory.bank([q.id, other.id]).id], attempt_size=2)
    qe.start_attempt(STAFF, quiz.id, TENANT)
    factory.archive(q.id)

    result = qe.submit_attempt(STAFF, quiz.id, TENANT, [AnswerIn(question_id=q.id, answer_given=q.id + "-o0")])

    assert (result.score, result.total) == (1, 1)


class InterleavingResolver:
    """Commits a competing write through a second session before each resolve."""

    def __init__(self, inner, compete, times=1):
        self.inner = inner
        self.compete = compete
        self.times = times
        self.calls = 0

    def resolve_pool(self, bank_ids, tenant_id):
        self.calls += 1
        if self.calls <= self.times:
            self.compete()
        return self.inner.resolve_pool(bank_ids, tenant_id)

    def claimed_ids(self, bank_ids, tenant_id):
        return self.inner.claimed_ids(bank_ids, tenant_id)


def test_concurrent_submissions_merge_seen_sets(qe, factory, session_factory):
    qs = factory.questions(4)
    quiz = factory.quiz([factory.bank([q.id for q in qs]).id], attempt_size=4)
    qe.start_attempt(STAFF, quiz.id, TENANT)
    mine, theirs = qs[0].id, qs[1].id

    def compete():
        other = session_factory()
        try:
            QuizEngine(other, rng=random.Random(0)).submit_attempt(
                STAFF, quiz.id, TENANT, [AnswerIn(question_id=theirs, answer_given=theirs + "-o0")])
        finally:
            other.close()

    resolver = InterleavingResolver(qe.resolver, compete)
    recorder = AttemptRecorder(qe.db, qe.quizzes, qe.progress, qe.questions, qe.attempts, resolver)

    recorder.submit_attempt(STAFF, quiz.id, TENANT, [AnswerIn(question_id=mine, answer_given=mine + "-o0")])

    assert resolver.calls == 2
    qe.db.expire_all()
    assert set(qe.progress.get(STAFF, quiz.id, TENANT).seen_question_ids) == {mine, theirs}
    assert len(qe.attempts.list_for(STAFF, quiz.id, TENANT)) == 2


def test_persistent_conflict_gives_up_without_writing(qe, factory, session_factory):
    q = factory.question()
    quiz = factory.quiz([factory.bank([q.id]).id], attempt_size=1)
    qe.start_attempt(STAFF, quiz.id, TENANT)

    def compete():
        other = session_factory()
        try:
            progress = other.scalar(select(StaffQuizProgress).where(StaffQuizProgress.quiz_id == quiz.id))
            progress.last_attempt_at = datetime.now(timezone.utc)
            other.commit()
        finally:
            other.close()

    resolver = InterleavingResolver(qe.resolver, compete, times=10)
    recorder = AttemptRecorder(qe.db, qe.quizzes, qe.progress, qe.questions, qe.attempts, resolver)

    with pytest.raises(ConcurrencyConflict):
        recorder.submit_attempt(STAFF, quiz.id, TENANT, [AnswerIn(question_id=q.id, answer_given=q.id + "-o0")])

    assert resolver.calls == 3
    assert qe.db.scalars(select(QuizAttempt)).all() == []
    assert qe.progress.get(STAFF, quiz.id, TENANT).seen_question_ids == []


def test_seen_ids_that_left_the_pool_do_not_complete_it(qe, factory, db):
    a, b, c, d = factory.questions(4)
    bank = factory.bank([a.id, b.id, c.id])
    quiz = factory.quiz([bank.id], attempt_size=2, snapshot=3)
    progress = qe.progress.get_or_create(STAFF, quiz.id, TENANT)
    progress.seen_question_ids = [a.id, b.id]
    db.commit()
    factory.archive(a.id)
    factory.archive(b.id)
    bank.question_ids = [a.id, b.id, c.id, d.id]
    db.commit()

    qe.start_attempt(STAFF, quiz.id, TENANT)
    result = qe.submit_attempt(STAFF, quiz.id, TENANT, [AnswerIn(question_id=c.id, answer_given=c.id + "-o0")])

    assert result.is_complete is False
    assert [q.question_id for q in qe.start_attempt(STAFF, quiz.id, TENANT)] == [d.id]


def test_questions_from_other_quizzes_are_not_scored(qe, factory):
    mine = factory.question()
    elsewhere = factory.question()
    factory.bank([elsewhere.id])
    quiz = factory.quiz([factory.bank([mine.id]).id], attempt_size=1)
    qe.start_attempt(STAFF, quiz.id, TENANT)

    result = qe.submit_attempt(STAFF, quiz.id, TENANT, [
        AnswerIn(question_id=elsewhere.id, answer_given=elsewhere.id + "-o0"),
    ])

    assert (result.score, result.total) == (0, 0)
    assert qe.progress.get(STAFF, quiz.id, TENANT).seen_question_ids == []
    assert qe.progress.get(STAFF, quiz.id, TENANT).is_complete is False


def test_submission_time_comes_from_the_clock_and_keeps_its_zone(qe, factory):
    fixed = datetime(2026, 3, 1, 22, 15, tzinfo=timezone.utc)
    q = factory.question()
    quiz = factory.quiz([factory.bank([q.id]).id], attempt_size=1)
    qe.start_attempt(STAFF, quiz.id, TENANT)
    recorder = AttemptRecorder(qe.db, qe.quizzes, qe.progress, qe.questions, qe.attempts, qe.resolver,
                               clock=lambda: fixed)

    result = recorder.submit_attempt(STAFF, quiz.id, TENANT, [AnswerIn(question_id=q.id, answer_given="x")])

    assert QuizAttempt.__table__.c.submitted_at.type.timezone is True
    assert StaffQuizProgress.__table__.c.last_attempt_at.type.timezone is True
    # SQLite hands back naive values; the wall time must still be the UTC one.
    stored = qe.attempts.get(result.attempt_id, TENANT).submitted_at
    assert stored.replace(tzinfo=None) == fixed.replace(tzinfo=None)
