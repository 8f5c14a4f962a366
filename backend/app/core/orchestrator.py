
# backend/app/core/orchestrator.py
import logging
from pathlib import Path
from typing import Callable, Optional

import requests

from backend.app.config import settings
from backend.app.core.artifacts import ArtifactStore, PDFRenderer, build_template_data
from backend.app.core.errors import ExtractionError, PipelineError
from backend.app.core.extraction import extract_article_text, extract_document_text
from backend.app.core.job_store import JobNotFound
from backend.app.core.llm_client import GenerationClient
from backend.app.core.prompt_builder import build_prompt
from backend.app.core.reconstructor import reconstruct
from backend.app.models.job_models import (
    ExtractedContent,
    JobInput,
    JobRecord,
    JobStatus,
    ReconstructedResult,
    utc_now,
)

logger = logging.getLogger(__name__)

# (step label, progress) milestones, persisted in this order
STEP_QUEUED = ("Queued", 0)
STEP_EXTRACT_CV = ("Extracting CV text...", 10)
STEP_EXTRACT_JOB = ("Extracting job content...", 20)
STEP_GENERATE = ("Generating cover letter...", 30)
STEP_CALL_AI = ("Calling AI...", 50)
STEP_PARSE = ("Parsing AI response...", 70)
STEP_RENDER = ("Generating PDF...", 85)
STEP_DONE = ("Completed!", 100)

USER_AGENT = "Mozilla/5.0 (compatible; CoverLetterPipeline/1.0)"


def fetch_job_page(url: str) -> str:
    """GET the posting HTML. Any transport problem or non-200 is an ExtractionError."""
    try:
        resp = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=settings.FETCH_TIMEOUT)
    except requests.RequestException as exc:
        raise ExtractionError(f"Could not fetch job URL {url}: {exc}") from exc
    if resp.status_code != 200:
        raise ExtractionError(f"Could not fetch job URL {url} (status={resp.status_code})")
    return resp.text


def remove_file(path_ref: Optional[str]) -> None:
    if not path_ref:
        return
    path = Path(path_ref)
    try:
        if path.exists():
            path.unlink()
    except OSError:
        logger.exception("Error cleaning up file %s", path_ref)


class CoverLetterPipeline:
    """
    Drives one job from queued to completed/failed.

    Stages run strictly in sequence and the job record is written after each
    one, so the store always shows the latest stage. Any stage exception marks
    the record failed and is re-raised for the queue's retry policy.
    """

    def __init__(
        self,
        store,
        generator: Optional[GenerationClient] = None,
        renderer: Optional[PDFRenderer] = None,
        artifacts: Optional[ArtifactStore] = None,
        fetch_page: Callable[[str], str] = fetch_job_page,
    ):
        self.store = store
        self.generator = generator or GenerationClient()
        self.renderer = renderer or PDFRenderer()
        self.artifacts = artifacts or ArtifactStore()
        self.fetch_page = fetch_page
        self._last_progress = 0
        # Highest progress reported by earlier attempts of the same job
        self._progress_floor = 0

    # ---------- status ----------
    def _advance(self, job_id: str, step) -> None:
        label, progress = step
        if progress < self._last_progress:
            raise RuntimeError(f"Progress for job {job_id} would move backwards ({self._last_progress} -> {progress})")
        self._last_progress = progress
        self.store.update_job(
            job_id,
            status=JobStatus.PROCESSING,
            progress=max(progress, self._progress_floor),
            current_step=label,
        )
        logger.info("Job %s: %s (%d%%)", job_id, label, progress)

    def _begin(self, job: JobInput, attempt: int) -> Optional[JobRecord]:
        """
        Load or create the record. Returns it when the job is already done.

        Only the first attempt may create a record; a retry whose record is
        gone belongs to a job that was cleaned up, and raises JobNotFound.
        """
        record = self.store.get_job(job.job_id)
        if record is None:
            if attempt > 1:
                raise JobNotFound(job.job_id)
            record = self.store.create_job(JobRecord(
                job_id=job.job_id,
                job_url=job.job_url,
                job_text=job.job_text,
                custom_question=job.custom_question,
                cv_file_name=Path(job.document_ref).name,
            ))
        if record.status == JobStatus.COMPLETED and self.artifacts.exists(job.job_id):
            logger.info("Job %s already completed; nothing to do", job.job_id)
            return record

        self._last_progress = 0
        self._progress_floor = record.progress if attempt > 1 else 0
        label = STEP_QUEUED[0] if attempt <= 1 else f"Retrying (attempt {attempt})..."
        self.store.update_job(
            job.job_id,
            status=JobStatus.PROCESSING,
            progress=max(STEP_QUEUED[1], self._progress_floor),
            current_step=label,
            attempts=attempt,
            error_message=None,
        )
        return None

    # ---------- stages ----------
    def extract_cv(self, job: JobInput) -> str:
        path = Path(job.document_ref)
        if not path.is_file():
            raise ExtractionError(f"CV document not found: {path.name}")
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise ExtractionError(f"CV document could not be read: {exc}") from exc
        return extract_document_text(data)

    def extract_job(self, job: JobInput) -> str:
        """Provided text wins; otherwise fetch the URL and pull the article text."""
        if job.job_text and job.job_text.strip():
            return job.job_text.strip()
        if job.job_url:
            logger.info("Fetching job content from URL: %s", job.job_url)
            html = self.fetch_page(job.job_url)
            content = extract_article_text(html, job.job_url)
            if content.strip():
                return content
            raise ExtractionError(f"No job description could be extracted from {job.job_url}")
        raise ExtractionError("Either job_url or job_text is required")

    def generate(self, job: JobInput, content: ExtractedContent) -> str:
        prompt = build_prompt(content.cv_text, content.job_content, job.custom_question)
        self._advance(job.job_id, STEP_CALL_AI)
        output = self.generator.complete(self.generator.build_request(prompt))
        return output.text

    def render(self, job_id: str, result: ReconstructedResult, cv_text: str) -> str:
        """Idempotent: an existing artifact for this job is reused, not re-rendered."""
        if self.artifacts.exists(job_id):
            logger.info("Artifact for job %s already exists; reusing it", job_id)
            return str(self.artifacts.path_for(job_id))
        pdf_bytes = self.renderer.render(build_template_data(result, cv_text))
        return str(self.artifacts.write(job_id, pdf_bytes))

    # ---------- driver ----------
    def run(self, job: JobInput, attempt: int = 1, final_attempt: bool = True) -> JobRecord:
        try:
            done = self._begin(job, attempt)
        except JobNotFound:
            logger.warning("Job %s was removed before attempt %d; dropping it", job.job_id, attempt)
            remove_file(job.document_ref)
            raise
        if done is not None:
            remove_file(job.document_ref)
            return done

        job_id = job.job_id
        logger.info("Starting job %s (attempt %d)", job_id, attempt)
        try:
            self._advance(job_id, STEP_EXTRACT_CV)
            cv_text = self.extract_cv(job)

            self._advance(job_id, STEP_EXTRACT_JOB)
            content = ExtractedContent(cv_text=cv_text, job_content=self.extract_job(job))

            self._advance(job_id, STEP_GENERATE)
            raw_text = self.generate(job, content)

            self._advance(job_id, STEP_PARSE)
            result = reconstruct(raw_text, job.custom_question)

            self._advance(job_id, STEP_RENDER)
            artifact_ref = self.render(job_id, result, cv_text)

            label, progress = STEP_DONE
            record = self.store.update_job(
                job_id,
                status=JobStatus.COMPLETED,
                progress=progress,
                current_step=label,
                result_payload=result,
                artifact_ref=artifact_ref,
                completed_at=utc_now(),
            )
        except Exception as exc:
            self._fail(job, exc, final_attempt)
            raise

        remove_file(job.document_ref)
        logger.info("Job %s completed successfully", job_id)
        return record

    def _fail(self, job: JobInput, exc: Exception, final_attempt: bool) -> None:
        """Persist the failure; the input file goes once no retry can need it."""
        job_id = job.job_id
        if isinstance(exc, PipelineError):
            exc.job_id = job_id
        # The record vanished mid-run: the job was cleaned up, nothing will retry it
        removed = isinstance(exc, JobNotFound)
        logger.error("Job %s failed: %s", job_id, exc)
        try:
            if removed:
                self.artifacts.delete(job_id)
            else:
                self.store.update_job(
                    job_id,
                    status=JobStatus.FAILED,
                    error_message=str(exc) or exc.__class__.__name__,
                    current_step="Failed" if final_attempt else "Failed, will retry",
                )
        except Exception:
            # run() re-raises the stage error; this one is only logged
            logger.exception("Could not record failure of job %s", job_id)
        finally:
            if final_attempt or removed:
                remove_file(job.document_ref)
