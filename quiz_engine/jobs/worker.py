import logging
from rq import Worker
from quiz_engine.jobs.queue import redis
from quiz_engine.core.config import RQ_QUEUE, LOG_LEVEL
if __name__ == "__main__":
    logging.basicConfig(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO))
    w = Worker([RQ_QUEUE], connection=redis)
    w.work(with_scheduler=True)
