from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import List, Optional
from quiz_engine.core.auth import require_roles, TokenData
from quiz_engine.api.deps import get_engine
from quiz_engine.jobs.queue import enqueue_maintenance
from quiz_engine.jobs.maintenance_job import refresh_snapshots_job, repair_banks_job
from quiz_engine.models.schemas import DeleteSummary, QuizCreate, QuizOut, QuizUpdate, ResetSummary
from quiz_engine.services.engine import QuizEngine

router = APIRouter()

MANAGER_ROLES = ("manager", "admin")

def _out(quiz) -> QuizOut:
    return QuizOut.model_validate(quiz, from_attributes=True)

@router.post("/quizzes", response_model=QuizOut, status_code=201)
def create_quiz(payload: QuizCreate, user: TokenData = Depends(require_roles(*MANAGER_ROLES)), engine: QuizEngine = Depends(get_engine)):
    return _out(engine.create_quiz(user.tenant_id, payload))

@router.patch("/quizzes/{quiz_id}", response_model=QuizOut)
def update_quiz(quiz_id: str, payload: QuizUpdate, user: TokenData = Depends(require_roles(*MANAGER_ROLES)), engine: QuizEngine = Depends(get_engine)):
    return _out(engine.update_quiz(quiz_id, user.tenant_id, payload))

@router.post("/quizzes/{quiz_id}/snapshot")
def recompute_snapshot(quiz_id: str, user: TokenData = Depends(require_roles(*MANAGER_ROLES)), engine: QuizEngine = Depends(get_engine)):
    return {"quiz_id": quiz_id, "pool_size_snapshot": engine.recompute_snapshot(quiz_id, user.tenant_id)}

@router.post("/quizzes/{quiz_id}/reset-progress", response_model=ResetSummary)
def reset_progress(quiz_id: str, user: TokenData = Depends(require_roles(*MANAGER_ROLES)), engine: QuizEngine = Depends(get_engine)):
    return engine.reset_progress(quiz_id, user.tenant_id)

@router.delete("/quizzes/{quiz_id}", response_model=DeleteSummary)
def delete_quiz(quiz_id: str, user: TokenData = Depends(require_roles(*MANAGER_ROLES)), engine: QuizEngine = Depends(get_engine)):
    return engine.delete_quiz(quiz_id, user.tenant_id)

class RepairRequest(BaseModel):
    bank_ids: Optional[List[str]] = None

@router.post("/maintenance/banks/repair", status_code=202)
def enqueue_bank_repair(payload: RepairRequest, user: TokenData = Depends(require_roles("admin"))):
    return {"job_id": enqueue_maintenance(repair_banks_job, user.tenant_id, payload.bank_ids)}

class RefreshRequest(BaseModel):
    bank_ids: List[str] = Field(min_length=1)

@router.post("/maintenance/snapshots/refresh", status_code=202)
def enqueue_snapshot_refresh(payload: RefreshRequest, user: TokenData = Depends(require_roles(*MANAGER_ROLES))):
    return {"job_id": enqueue_maintenance(refresh_snapshots_job, user.tenant_id, payload.bank_ids)}
