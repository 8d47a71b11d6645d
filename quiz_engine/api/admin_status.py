from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from rq.exceptions import NoSuchJobError
from rq.job import Job
from quiz_engine.core.auth import require_roles
from quiz_engine.jobs.queue import redis

router = APIRouter()

class JobStatus(BaseModel):
    job_id: str
    state: str
    banks: int | None = None
    pruned: int | None = None
    updated: int | None = None
    result: dict | None = None

@router.get("/jobs/{job_id}", response_model=JobStatus, dependencies=[Depends(require_roles("admin"))])
def job_status(job_id: str):
    try:
        job = Job.fetch(job_id, connection=redis)
    except NoSuchJobError:
        raise HTTPException(404, "Job not found")
    meta = job.meta or {}
    state = meta.get("state") or job.get_status()
    return JobStatus(
        job_id=job_id,
        state=str(state),
        banks=meta.get("banks"),
        pruned=meta.get("pruned"),
        updated=meta.get("updated"),
        result=job.result if state == "done" else None,
    )
