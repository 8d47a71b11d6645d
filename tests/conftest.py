"""
Shared fixtures: a throwaway SQLite database per test plus a small factory
for the content the engine only reads (questions, banks, quizzes).
"""
import os

# Point the module-level engine away from Postgres before anything imports it.
os.environ["DATABASE_URL"] = "sqlite://"

import random

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from quiz_engine.models.orm import (
    Base, Question, QuestionOption, QuestionBank, Quiz, QuestionStatus, QuestionType, new_id
)
from quiz_engine.services.engine import QuizEngine

TENANT = "restaurant-1"
OTHER_TENANT = "restaurant-2"
STAFF = "staff-1"


@pytest.fixture
def db_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'quiz.db'}", future=True,
                           connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def qe(db):
    return QuizEngine(db, rng=random.Random(1234))


class Factory:
    def __init__(self, db):
        self.db = db
        self._n = 0

    def question(self, qtype=QuestionType.SINGLE_CHOICE, correct=(0,), options=3,
                 status=QuestionStatus.ACTIVE, tenant=TENANT, qid=None):
        self._n += 1
        qid = qid or f"q{self._n}"
        if qtype == QuestionType.TRUE_FALSE:
            texts = ["True", "False"]
        else:
            texts = [f"{qid} option {i}" for i in range(options)]
        question = Question(
            id=qid, tenant_id=tenant, question_text=f"Question {qid}?", question_type=qtype, status=status,
            options=[QuestionOption(id=f"{qid}-o{i}", position=i, text=t, is_correct=i in correct)
                     for i, t in enumerate(texts)],
        )
        self.db.add(question)
        self.db.commit()
        return question

    def questions(self, count, **kwargs):
        return [self.question(**kwargs) for _ in range(count)]

    def bank(self, question_ids, tenant=TENANT, bank_id=None):
        bank = QuestionBank(id=bank_id or new_id(), tenant_id=tenant, name="Bank",
                            question_ids=list(question_ids), question_count=len(question_ids))
        self.db.add(bank)
        self.db.commit()
        return bank

    def quiz(self, bank_ids, attempt_size, snapshot=None, available=True, tenant=TENANT, target_roles=()):
        """Insert a quiz row directly, bypassing validation, for setting up edge states."""
        quiz = Quiz(tenant_id=tenant, title="Menu basics", source_bank_ids=list(bank_ids),
                    attempt_size=attempt_size, pool_size_snapshot=snapshot if snapshot is not None else attempt_size,
                    is_available=available, target_roles=list(target_roles))
        self.db.add(quiz)
        self.db.commit()
        return quiz

    def archive(self, question_id):
        question = self.db.get(Question, question_id)
        question.status = QuestionStatus.ARCHIVED
        self.db.commit()


@pytest.fixture
def factory(db):
    return Factory(db)


def correct_answer(db, question_id):
    """The answer a well-trained staff member would give."""
    question = db.get(Question, question_id)
    ids = [o.id for o in question.options if o.is_correct]
    if question.question_type == QuestionType.MULTI_SELECT:
        return ids
    return ids[0]
