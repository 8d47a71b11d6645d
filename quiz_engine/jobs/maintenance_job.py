import logging
from rq import get_current_job
from quiz_engine.core.database import SessionLocal, session_scope
from quiz_engine.services.engine import QuizEngine

logger = logging.getLogger(__name__)

def _meta(**values):
    job = get_current_job()
    if job is None:
        return
    job.meta.update(values); job.save_meta()

def repair_banks_job(tenant_id, bank_ids=None, session_factory=SessionLocal):
    _meta(state="running", tenant_id=tenant_id)
    try:
        with session_scope(session_factory) as db:
            reports = QuizEngine(db).repair_banks(tenant_id, bank_ids)
        pruned = sum(len(r.pruned_ids) for r in reports)
        result = {"banks": len(reports), "pruned": pruned, "reports": [r.model_dump() for r in reports]}
        _meta(state="done", banks=len(reports), pruned=pruned)
        logger.info("Bank repair for tenant %s: %d banks, %d ids pruned", tenant_id, len(reports), pruned)
        return result
    except Exception:
        _meta(state="failed")
        logger.exception("Bank repair for tenant %s failed", tenant_id)
        raise

def refresh_snapshots_job(tenant_id, bank_ids, session_factory=SessionLocal):
    _meta(state="running", tenant_id=tenant_id)
    try:
        with session_scope(session_factory) as db:
            updated = QuizEngine(db).refresh_snapshots_for_banks(bank_ids, tenant_id)
        _meta(state="done", updated=updated)
        logger.info("Snapshot refresh for tenant %s: %d quizzes updated", tenant_id, updated)
        return {"updated": updated}
    except Exception:
        _meta(state="failed")
        logger.exception("Snapshot refresh for tenant %s failed", tenant_id)
        raise
