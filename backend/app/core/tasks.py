# backend/app/core/tasks.py

from celery.utils.log import get_task_logger
from backend.worker.worker import celery_app
from backend.app.core.orchestrator import CoverLetterPipeline
from backend.app.core.job_store import JobNotFound, RedisJobStore
from backend.app.models.job_models import JobInput
from backend.app.config import settings
import litellm

logger = get_task_logger(__name__)


def is_final_attempt(retries: int, max_retries: int) -> bool:
    return retries >= max_retries


@celery_app.task(
    name="run_cover_letter_job",
    bind=True,
    autoretry_for=(Exception,),
    dont_autoretry_for=(JobNotFound,),                # job was cleaned up; nothing left to retry
    retry_backoff=settings.JOB_RETRY_BACKOFF,        # 2s, 4s, 8s ...
    retry_backoff_max=settings.JOB_RETRY_BACKOFF_MAX,
    retry_jitter=False,
    max_retries=max(settings.JOB_MAX_ATTEMPTS - 1, 0),
    soft_time_limit=settings.CELERY_SOFT_TIME_LIMIT,  #  600s
    time_limit=settings.CELERY_HARD_TIME_LIMIT,       #  660s
    acks_late=True,                                   # redeliver if the worker dies mid-job
)
def run_cover_letter_job(self, payload: dict):
    job = JobInput.model_validate(payload)
    retries = self.request.retries or 0
    attempt = retries + 1
    final = is_final_attempt(retries, self.max_retries or 0)
    logger.info("Starting cover letter job=%s attempt=%d final=%s", job.job_id, attempt, final)

    pipeline = CoverLetterPipeline(store=RedisJobStore())
    record = pipeline.run(job, attempt=attempt, final_attempt=final)

    logger.info("Finished cover letter job=%s status=%s", job.job_id, record.status.value)
    return {"job_id": record.job_id, "status": record.status.value, "artifact_ref": record.artifact_ref}


@celery_app.task(
    name="warmup_llm",
    bind=False,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_jitter=True,
    retry_kwargs={"max_retries": 0},
    soft_time_limit=180,
    time_limit=240,
)
def warmup_llm():
    """
    Pre-load the model into memory via a tiny LiteLLM call.
    """
    model_id = settings.full_model_id()
    logger.info("Warming up LLM model_id=%s base_url=%s", model_id, settings.LLM_BASE_URL)

    resp = litellm.completion(
        model=model_id,
        api_base=settings.LLM_BASE_URL,
        api_key=settings.LLM_API_KEY,
        timeout=settings.LLM_REQUEST_TIMEOUT,
        messages=[{"role": "user", "content": settings.WARMUP_PROMPT}],
        temperature=0.0,
        max_tokens=16,
    )
    try:
        txt = resp.choices[0].message.content
    except (AttributeError, IndexError):
        txt = str(resp)
    logger.info("Warmup response (truncated): %s", (txt or "")[:120])
    return {"status": "ok", "model": model_id}
