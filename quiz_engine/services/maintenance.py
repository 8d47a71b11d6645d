"""
Offline repair of bank membership lists.

The request path never trusts ``QuestionBank.question_ids`` and filters at
read time. This pass is the optional hard repair: it drops ids that no
longer resolve to a question in the bank's tenant and recomputes the
denormalized ``question_count``. Archived questions stay listed, since
archival is a status change and not a removal.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from quiz_engine.models.schemas import BankRepair
from quiz_engine.services.progress import run_once
from quiz_engine.services.snapshot import SnapshotReconciler
from quiz_engine.services.stores import BankStore, QuestionStore

logger = logging.getLogger(__name__)

def repair_banks(db: Session, banks: BankStore, questions: QuestionStore, reconciler: SnapshotReconciler,
                 tenant_id: str, bank_ids: Optional[Iterable[str]] = None) -> List[BankRepair]:
    def unit() -> List[BankRepair]:
        targets = banks.get_by_ids(bank_ids, tenant_id) if bank_ids is not None else banks.list_for_tenant(tenant_id)
        reports = []
        for bank in targets:
            claimed = list(dict.fromkeys(bank.question_ids or []))
            existing = questions.existing_ids(claimed, tenant_id)
            kept = [qid for qid in claimed if qid in existing]
            pruned = [qid for qid in claimed if qid not in existing]
            count = len(questions.active_ids(kept, tenant_id))
            if kept != list(bank.question_ids or []):
                bank.question_ids = kept
            bank.question_count = count
            if pruned:
                logger.info("Bank %s: pruned %d dangling question ids", bank.id, len(pruned))
            reports.append(BankRepair(bank_id=bank.id, pruned_ids=pruned, question_count=count))
        return reports

    reports = run_once(db, unit)
    if reports:
        reconciler.refresh_for_banks([r.bank_id for r in reports], tenant_id)
    return reports
