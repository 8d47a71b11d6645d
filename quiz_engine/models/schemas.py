from pydantic import BaseModel, Field, constr
from typing import List, Optional, Union
from datetime import datetime

# An option id for single-choice/true-false, a collection of ids for multi-select.
AnswerValue = Union[str, List[str], None]

class PresentedOption(BaseModel):
    option_id: str
    text: str

class PresentedQuestion(BaseModel):
    """A question as shown to staff: options carry no correctness flag."""
    question_id: str
    question_text: str
    question_type: str
    options: List[PresentedOption]

class AnswerIn(BaseModel):
    question_id: constr(min_length=1)
    answer_given: AnswerValue = None

class SubmitAttempt(BaseModel):
    answers: List[AnswerIn]
    duration_seconds: Optional[int] = Field(default=None, ge=0)

class GradedQuestion(BaseModel):
    question_id: str
    answer_given: AnswerValue = None
    is_correct: bool
    correct_answer: Optional[str] = None

class AttemptResult(BaseModel):
    attempt_id: str
    score: int
    total: int
    is_complete: bool
    questions: List[GradedQuestion]

class ProgressSummary(BaseModel):
    staff_id: str
    quiz_id: str
    seen_count: int
    total_unique_questions: int
    is_complete: bool
    last_attempt_at: Optional[datetime] = None

class AttemptSummary(BaseModel):
    attempt_id: str
    quiz_id: str
    score: int
    total_questions: int
    submitted_at: datetime
    duration_seconds: Optional[int] = None

class IncorrectQuestionDetail(BaseModel):
    question_id: str
    question_text: str
    user_answer: str
    correct_answer: str

class AttemptDetails(AttemptSummary):
    staff_id: str
    incorrect_questions: List[IncorrectQuestionDetail]

class QuizCreate(BaseModel):
    title: constr(min_length=1, max_length=150)
    description: Optional[constr(max_length=500)] = None
    source_bank_ids: List[str] = Field(min_length=1)
    attempt_size: int = Field(ge=1)
    is_available: bool = False
    target_roles: List[str] = Field(default_factory=list)

class QuizUpdate(BaseModel):
    title: Optional[constr(min_length=1, max_length=150)] = None
    description: Optional[constr(max_length=500)] = None
    source_bank_ids: Optional[List[str]] = None
    attempt_size: Optional[int] = Field(default=None, ge=1)
    is_available: Optional[bool] = None
    target_roles: Optional[List[str]] = None

class QuizOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    source_bank_ids: List[str]
    attempt_size: int
    pool_size_snapshot: int
    is_available: bool
    target_roles: List[str]

class ResetSummary(BaseModel):
    quiz_id: str
    progress_reset: int
    attempts_deleted: int

class DeleteSummary(BaseModel):
    quiz_id: str
    progress_deleted: int
    attempts_deleted: int

class BankRepair(BaseModel):
    bank_id: str
    pruned_ids: List[str]
    question_count: int
