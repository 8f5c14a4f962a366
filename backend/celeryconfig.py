# backend/celeryconfig.py

import os
from kombu import Queue, Exchange
from backend.app.config import settings

# redis is in another docker container
# if it's not the case for you,
# use : "redis://localhost:6379/0"

BROKER_URL = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", BROKER_URL)

broker_url = BROKER_URL
result_backend = RESULT_BACKEND


task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]
timezone = "UTC"
enable_utc = True

# -------- Worker pool --------
# At most WORKER_CONCURRENCY jobs run at once; each job is one sequential pipeline
worker_concurrency = settings.WORKER_CONCURRENCY
worker_prefetch_multiplier = 1
task_acks_late = True
task_reject_on_worker_lost = True

# Keep only a handful of finished task results around
result_expires = int(os.getenv("CELERY_RESULT_EXPIRES", "3600"))

# -------- Queues & Routing --------
# Exchanges (direct for simple routing)

default_exchange = Exchange("default", type="direct")
llm_exchange = Exchange("llm", type="direct")

# Declare queues
task_queues = (
    Queue("default", exchange=default_exchange, routing_key="default"),
    Queue("llm", exchange=llm_exchange, routing_key="llm"),
)

# Default routing if a task has no explicit route
task_default_queue = "default"
task_default_exchange = "default"
task_default_routing_key = "default"

# Everything that talks to the generation backend goes to the llm queue
task_routes = {
    "run_cover_letter_job": {"queue": "llm", "routing_key": "llm"},
    "warmup_llm": {"queue": "llm", "routing_key": "llm"},
}
