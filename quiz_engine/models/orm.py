from sqlalchemy import (
    Integer, String, Text, Boolean, ForeignKey, JSON, DateTime,
    UniqueConstraint, Index, CheckConstraint, Enum as SQLEnum, func
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from datetime import datetime
from typing import Optional, List, Any
import uuid
import enum

def new_id() -> str:
    return str(uuid.uuid4())

class Base(DeclarativeBase): pass

class QuestionType(str, enum.Enum):
    SINGLE_CHOICE = "multiple-choice-single"
    MULTI_SELECT = "multiple-choice-multiple"
    TRUE_FALSE = "true-false"

class QuestionStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING_REVIEW = "pending_review"
    ARCHIVED = "archived"

# ========== Content Models ==========

class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        Index("idx_questions_tenant_status", "tenant_id", "status"),
        Index("idx_questions_bank", "bank_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Owning bank; banks also claim questions through their own id list.
    bank_id: Mapped[Optional[str]] = mapped_column(String(36))
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[QuestionType] = mapped_column(SQLEnum(QuestionType), nullable=False)
    status: Mapped[QuestionStatus] = mapped_column(
        SQLEnum(QuestionStatus), nullable=False, default=QuestionStatus.ACTIVE
    )
    explanation: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    options: Mapped[List["QuestionOption"]] = relationship(
        back_populates="question", cascade="all, delete-orphan",
        order_by="QuestionOption.position", lazy="selectin"
    )

class QuestionOption(Base):
    __tablename__ = "question_options"
    __table_args__ = (
        Index("idx_qo_question", "question_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    question_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    question: Mapped["Question"] = relationship(back_populates="options")

class QuestionBank(Base):
    __tablename__ = "question_banks"
    __table_args__ = (
        Index("idx_banks_tenant", "tenant_id"),
        CheckConstraint("question_count >= 0", name="ck_bank_question_count"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Claimed membership. May reference questions that were removed or archived,
    # so it is stored as a plain id list rather than a foreign-keyed association.
    question_ids: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    question_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

# ========== Delivery Models ==========

class Quiz(Base):
    __tablename__ = "quizzes"
    __table_args__ = (
        Index("idx_quizzes_tenant", "tenant_id"),
        CheckConstraint("attempt_size >= 1", name="ck_quiz_attempt_size"),
        CheckConstraint("pool_size_snapshot >= 0", name="ck_quiz_pool_snapshot"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500))
    source_bank_ids: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    attempt_size: Mapped[int] = mapped_column(Integer, nullable=False)
    pool_size_snapshot: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    target_roles: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

class StaffQuizProgress(Base):
    __tablename__ = "staff_quiz_progress"
    __table_args__ = (
        UniqueConstraint("staff_id", "quiz_id", "tenant_id", name="uq_progress_staff_quiz"),
        Index("idx_progress_quiz", "quiz_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    staff_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quiz_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    seen_question_ids: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    pool_size_known: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Every ORM flush checks and bumps ``version``; a concurrent writer
    # surfaces as StaleDataError instead of a lost update.
    __mapper_args__ = {"version_id_col": version}

class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        Index("idx_attempts_quiz_staff", "quiz_id", "staff_id"),
        Index("idx_attempts_tenant_quiz", "tenant_id", "quiz_id", "submitted_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    staff_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quiz_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer)

    items: Mapped[List["AttemptItem"]] = relationship(
        back_populates="attempt", cascade="all, delete-orphan",
        order_by="AttemptItem.position", lazy="selectin"
    )

class AttemptItem(Base):
    __tablename__ = "attempt_items"
    __table_args__ = (
        Index("idx_attempt_items_attempt", "attempt_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attempt_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quiz_attempts.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    question_id: Mapped[str] = mapped_column(String(36), nullable=False)
    answer_given: Mapped[Any] = mapped_column(JSON)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)

    attempt: Mapped["QuizAttempt"] = relationship(back_populates="items")
