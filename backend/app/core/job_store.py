# backend/app/core/job_store.py

import logging
from typing import Any, Dict, List, Optional

import redis

from backend.app.config import settings
from backend.app.models.job_models import JobRecord, utc_now

logger = logging.getLogger(__name__)


class JobNotFound(KeyError):
    pass


class RedisJobStore:
    """
    Durable job records, one JSON document per job under `<prefix><job_id>`.

    The store is the single source of truth for job status; the worker writes
    after every stage and the API only reads.
    """

    def __init__(self, client: Optional[redis.Redis] = None, prefix: Optional[str] = None):
        self.client = client if client is not None else redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        self.prefix = prefix or settings.JOB_KEY_PREFIX

    def _key(self, job_id: str) -> str:
        return f"{self.prefix}{job_id}"

    def create_job(self, record: JobRecord) -> JobRecord:
        self.client.set(self._key(record.job_id), record.model_dump_json())
        logger.info("Created job record %s", record.job_id)
        return record

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        raw = self.client.get(self._key(job_id))
        if raw is None:
            return None
        return JobRecord.model_validate_json(raw)

    def update_job(self, job_id: str, **fields: Any) -> JobRecord:
        """Merge `fields` into the stored record. Raises JobNotFound for unknown ids."""
        current = self.get_job(job_id)
        if current is None:
            raise JobNotFound(job_id)
        data: Dict[str, Any] = current.model_dump()
        data.update(fields)
        data["updated_at"] = utc_now()
        record = JobRecord.model_validate(data)
        self.client.set(self._key(job_id), record.model_dump_json())
        return record

    def delete_job(self, job_id: str) -> bool:
        return bool(self.client.delete(self._key(job_id)))

    def list_jobs(self) -> List[JobRecord]:
        """All records, newest first."""
        records = []
        for key in self.client.scan_iter(match=f"{self.prefix}*"):
            raw = self.client.get(key)
            if raw is not None:
                records.append(JobRecord.model_validate_json(raw))
        return sorted(records, key=lambda r: r.created_at, reverse=True)
