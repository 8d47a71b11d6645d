from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List, Optional
from quiz_engine.core.auth import require_roles, TokenData
from quiz_engine.api.deps import get_engine
from quiz_engine.models.schemas import (
    AttemptDetails, AttemptResult, AttemptSummary, PresentedQuestion, ProgressSummary, SubmitAttempt
)
from quiz_engine.services.engine import QuizEngine

router = APIRouter()

STAFF_ROLES = ("staff", "manager", "admin")

class AvailableQuiz(BaseModel):
  id: str
  title: str
  description: Optional[str] = None
  attempt_size: int
  total_unique_questions: int
  progress: ProgressSummary

class StartedAttempt(BaseModel):
  quiz_id: str
  questions: List[PresentedQuestion]

@router.get("", response_model=List[AvailableQuiz])
def available_quizzes(user: TokenData = Depends(require_roles(*STAFF_ROLES)), engine: QuizEngine = Depends(get_engine)):
  out = []
  for q in engine.list_available_quizzes(user.tenant_id, user.roles):
    out.append(AvailableQuiz(id=q.id, title=q.title, description=q.description, attempt_size=q.attempt_size,
                             total_unique_questions=q.pool_size_snapshot,
                             progress=engine.get_progress(user.sub, q.id, user.tenant_id)))
  return out

@router.get("/attempts/{attempt_id}", response_model=AttemptDetails)
def attempt_details(attempt_id: str, user: TokenData = Depends(require_roles(*STAFF_ROLES)), engine: QuizEngine = Depends(get_engine)):
  return engine.get_attempt_details(attempt_id, user.sub, user.tenant_id)

@router.post("/{quiz_id}/attempts/start", response_model=StartedAttempt)
def start_attempt(quiz_id: str, user: TokenData = Depends(require_roles(*STAFF_ROLES)), engine: QuizEngine = Depends(get_engine)):
  engine.ensure_entitled(quiz_id, user.tenant_id, user.roles)
  questions = engine.start_attempt(user.sub, quiz_id, user.tenant_id)
  return StartedAttempt(quiz_id=quiz_id, questions=questions)

@router.post("/{quiz_id}/attempts/submit", response_model=AttemptResult)
def submit_attempt(quiz_id: str, payload: SubmitAttempt, user: TokenData = Depends(require_roles(*STAFF_ROLES)), engine: QuizEngine = Depends(get_engine)):
  engine.ensure_entitled(quiz_id, user.tenant_id, user.roles)
  return engine.submit_attempt(user.sub, quiz_id, user.tenant_id, payload.answers, payload.duration_seconds)

@router.get("/{quiz_id}/progress", response_model=ProgressSummary)
def my_progress(quiz_id: str, user: TokenData = Depends(require_roles(*STAFF_ROLES)), engine: QuizEngine = Depends(get_engine)):
  return engine.get_progress(user.sub, quiz_id, user.tenant_id)

@router.get("/{quiz_id}/attempts", response_model=List[AttemptSummary])
def my_attempts(quiz_id: str, user: TokenData = Depends(require_roles(*STAFF_ROLES)), engine: QuizEngine = Depends(get_engine)):
  engine.get_quiz(quiz_id, user.tenant_id)
  return engine.list_attempts(user.sub, quiz_id, user.tenant_id)
