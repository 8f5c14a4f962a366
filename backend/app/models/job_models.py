
#backend/app/models/job_models.py

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from enum import Enum
import datetime


def utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

TERMINAL_STATUSES = {JobStatus.COMPLETED, JobStatus.FAILED}


# ---------- Pipeline types ----------

class JobInput(BaseModel):
    """What intake hands to the queue. Consumed once by the pipeline."""
    job_id: str
    document_ref: str = Field(..., description="Path of the uploaded CV PDF")
    job_url: Optional[str] = None
    job_text: Optional[str] = None
    custom_question: Optional[str] = None

    model_config = {"frozen": True}

class ExtractedContent(BaseModel):
    cv_text: str
    job_content: str

class GenerationRequest(BaseModel):
    prompt: str
    temperature: float
    top_p: float
    max_tokens: int
    stop_sequences: List[str] = Field(default_factory=list)

class RawGenerationOutput(BaseModel):
    text: str = ""

class ReconstructedResult(BaseModel):
    cover_letter: str
    question: Optional[str] = None
    answer: Optional[str] = None
    # Which recovery stage produced the value; diagnostics only
    stage: str = Field(default="direct", exclude=True)


# ---------- Persisted record ----------

class JobRecord(BaseModel):
    job_id: str
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    current_step: str = "Queued"
    job_url: Optional[str] = None
    job_text: Optional[str] = None
    custom_question: Optional[str] = None
    cv_file_name: Optional[str] = None
    attempts: int = 0
    result_payload: Optional[ReconstructedResult] = None
    artifact_ref: Optional[str] = None
    error_message: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    completed_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# ---------- API payloads ----------

class PDFUploadResponse(BaseModel):
    extracted_text: str

class JobSubmitResponse(BaseModel):
    success: bool = True
    job_id: str
    status: JobStatus = JobStatus.PENDING
    message: str = "CV and job offer submitted for processing"

class JobStatusResponse(BaseModel):
    job_id: str
    status: JobStatus
    progress: int
    current_step: str
    error_message: Optional[str] = None
    created_at: str
    completed_at: Optional[str] = None
    download_url: Optional[str] = None
    result: Optional[Dict[str, Any]] = None

    @classmethod
    def from_record(cls, record: JobRecord) -> "JobStatusResponse":
        completed = record.status == JobStatus.COMPLETED
        return cls(
            job_id=record.job_id,
            status=record.status,
            progress=record.progress,
            current_step=record.current_step,
            error_message=record.error_message,
            created_at=record.created_at,
            completed_at=record.completed_at,
            download_url=f"/download/cover/{record.job_id}" if completed else None,
            result=record.result_payload.model_dump() if record.result_payload else None,
        )

class CleanupResponse(BaseModel):
    success: bool
    message: str
