import logging
from rq import Queue
from redis import Redis
from quiz_engine.core.config import REDIS_URL, RQ_QUEUE, JOB_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

redis = Redis.from_url(REDIS_URL)
queue = Queue(RQ_QUEUE, connection=redis)

def enqueue_maintenance(func, tenant_id, *args):
    """Queue a tenant-scoped maintenance job and return its id."""
    job = queue.enqueue(func, tenant_id, *args, job_timeout=JOB_TIMEOUT_SECONDS)
    logger.info("Queued %s for tenant %s as job %s", func.__name__, tenant_id, job.get_id())
    return job.get_id()
