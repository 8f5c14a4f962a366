# backend/app/core/errors.py

from typing import Optional


class PipelineError(Exception):
    """
    Base error for a failed pipeline stage.

    Attributes:
        message: Human-readable description, persisted as the job's error_message
        job_id: Job the failure belongs to (filled in by the orchestrator)
        stage: Pipeline step that raised
    """

    stage_name = "pipeline"

    def __init__(self, message: str, job_id: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.job_id = job_id
        self.stage = stage or self.stage_name

    def __str__(self) -> str:
        return self.message


class ExtractionError(PipelineError):
    """Unreadable/empty CV document or unfetchable job posting."""

    stage_name = "extraction"


class GenerationBackendError(PipelineError):
    """Generative backend unreachable or returned a non-success response."""

    stage_name = "generation"


class RenderingError(PipelineError):
    """PDF renderer failed, timed out, or the artifact could not be written."""

    stage_name = "rendering"
