import logging
from typing import Iterable, Set

from quiz_engine.services.stores import BankStore, QuestionStore

logger = logging.getLogger(__name__)

class PoolResolver:
    """Computes the set of question ids a quiz can draw from.

    Banks only *claim* their members. The claimed ids are unioned and then
    checked against the question store: anything missing, owned by another
    tenant, or not active is dropped. Nothing is written back, so the pool
    can be recomputed on every attempt start.
    """

    def __init__(self, banks: BankStore, questions: QuestionStore):
        self.banks = banks
        self.questions = questions

    def claimed_ids(self, bank_ids: Iterable[str], tenant_id: str) -> Set[str]:
        """Every id the tenant's banks list, unfiltered."""
        bank_ids = list(dict.fromkeys(bank_ids or []))
        claimed: Set[str] = set()
        for bank in self.banks.get_by_ids(bank_ids, tenant_id):
            claimed.update(bank.question_ids or [])
        return claimed

    def resolve_pool(self, bank_ids: Iterable[str], tenant_id: str) -> Set[str]:
        bank_ids = list(dict.fromkeys(bank_ids or []))
        claimed = self.claimed_ids(bank_ids, tenant_id)
        if not claimed:
            return set()
        pool = self.questions.active_ids(claimed, tenant_id)
        if len(pool) != len(claimed):
            logger.debug("Pool for banks %s dropped %d stale or inactive ids",
                         bank_ids, len(claimed) - len(pool))
        return pool
