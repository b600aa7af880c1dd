import redis
from rq import Queue

from .config import get_settings

QUEUE_NAME = "maintenance"
SWEEP_JOB = "worker.jobs.expire_stale_commands"

def get_queue() -> Queue:
    r = redis.from_url(get_settings().redis_url)
    return Queue(QUEUE_NAME, connection=r, default_timeout=60)
