# backend/app/core/async_queue.py

import logging
from typing import List, Optional

from backend.app.core.artifacts import ArtifactStore
from backend.app.core.job_store import RedisJobStore
from backend.app.core.orchestrator import remove_file
from backend.app.models.job_models import JobInput, JobRecord, JobStatus

logger = logging.getLogger(__name__)

LLM_QUEUE = "llm"


class JobNotTerminal(Exception):
    """Cleanup was asked for a job that is still pending or processing."""


class CoverLetterQueue:
    """Intake side of the pipeline: creates job records and hands work to Celery."""

    def __init__(self, store=None, artifacts: Optional[ArtifactStore] = None):
        self._store = store
        self._artifacts = artifacts

    @property
    def store(self):
        if self._store is None:
            self._store = RedisJobStore()
        return self._store

    @property
    def artifacts(self) -> ArtifactStore:
        if self._artifacts is None:
            self._artifacts = ArtifactStore()
        return self._artifacts

    def enqueue(self, job: JobInput, cv_file_name: Optional[str] = None) -> str:
        # Deferred: tasks pulls in the Celery app and the worker modules
        from backend.app.core.tasks import run_cover_letter_job

        self.store.create_job(JobRecord(
            job_id=job.job_id,
            status=JobStatus.PENDING,
            progress=0,
            current_step="Queued",
            job_url=job.job_url,
            job_text=job.job_text,
            custom_question=job.custom_question,
            cv_file_name=cv_file_name,
        ))
        # The job id doubles as the Celery task id
        try:
            run_cover_letter_job.apply_async(
                args=[job.model_dump()],
                task_id=job.job_id,
                queue=LLM_QUEUE,
                routing_key=LLM_QUEUE,
            )
        except Exception:
            self.store.delete_job(job.job_id)
            raise
        logger.info("Enqueued job %s", job.job_id)
        return job.job_id

    def get_status(self, job_id: str) -> Optional[JobRecord]:
        return self.store.get_job(job_id)

    def list_jobs(self) -> List[JobRecord]:
        return self.store.list_jobs()

    def artifact_path(self, job_id: str):
        return self.artifacts.path_for(job_id)

    def cleanup(self, job_id: str) -> bool:
        """
        Remove a finished job's record and its artifact. False when the job is
        unknown; JobNotTerminal while it is still pending or processing.
        """
        record = self.store.get_job(job_id)
        if record is None:
            return False
        if not record.is_terminal:
            raise JobNotTerminal(f"Job {job_id} is still {record.status.value}")
        self.artifacts.delete(job_id)
        if record.artifact_ref:
            remove_file(record.artifact_ref)
        self.store.delete_job(job_id)
        logger.info("Cleaned up job %s", job_id)
        return True


# Singleton
queue = CoverLetterQueue()
