#backend/app/api/routes.py

from typing import Optional, List
from fastapi import APIRouter, File, UploadFile, Form, HTTPException
from fastapi.responses import FileResponse

from backend.app.config import settings
from backend.app.core.async_queue import JobNotTerminal, queue
from backend.app.core.errors import ExtractionError
from backend.app.core.extraction import extract_document_text
from backend.app.models.job_models import (
    JobInput,
    JobStatus,
    PDFUploadResponse,
    JobSubmitResponse,
    JobStatusResponse,
    CleanupResponse,
)

from pathlib import Path
import secrets
import string
import time
import uuid


api_router = APIRouter()

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}
_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_job_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"job_{int(time.time() * 1000)}_{suffix}"

async def _read_pdf_upload(file: UploadFile) -> bytes:
    if file.content_type not in PDF_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Only PDF files are allowed")
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded CV file is empty")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="CV file exceeds the upload size limit")
    return content

def _save_upload(content: bytes) -> Path:
    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / f"cv-{uuid.uuid4().hex}.pdf"
    path.write_bytes(content)
    return path.resolve()


@api_router.get("/health", tags=["Health"])
def health_check():
    return {"status": "ok"}

@api_router.post("/parse-pdf", response_model=PDFUploadResponse, tags=["Parsing"])
async def parse_pdf_endpoint(file: UploadFile = File(...)):
    """Extract text from uploaded PDF file."""
    content = await _read_pdf_upload(file)
    try:
        text = extract_document_text(content)
    except ExtractionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return PDFUploadResponse(extracted_text=text)

@api_router.post("/process", response_model=JobSubmitResponse, tags=["Jobs"])
async def process(
    cv: UploadFile = File(...),
    job_url: Optional[str] = Form(default=None),
    job_text: Optional[str] = Form(default=None),
    custom_question: Optional[str] = Form(default=None),
):
    """Submit a CV and a job posting; returns the job id to poll."""
    job_url = (job_url or "").strip() or None
    job_text = (job_text or "").strip() or None
    if not job_url and not job_text:
        raise HTTPException(status_code=400, detail="Either job_url or job_text is required")

    content = await _read_pdf_upload(cv)
    path = _save_upload(content)
    job = JobInput(
        job_id=new_job_id(),
        document_ref=str(path),
        job_url=job_url,
        job_text=job_text,
        custom_question=(custom_question or "").strip() or None,
    )
    try:
        queue.enqueue(job, cv_file_name=cv.filename)
    except Exception as exc:
        path.unlink(missing_ok=True)
        raise HTTPException(status_code=500, detail=f"Failed to queue job: {exc}")
    return JobSubmitResponse(job_id=job.job_id)

@api_router.get("/status/{job_id}", response_model=JobStatusResponse, tags=["Jobs"])
async def job_status(job_id: str):
    record = queue.get_status(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse.from_record(record)

@api_router.get("/jobs", response_model=List[JobStatusResponse], tags=["Jobs"])
async def list_jobs():
    return [JobStatusResponse.from_record(r) for r in queue.list_jobs()]

@api_router.get("/download/cover/{job_id}", tags=["Jobs"])
async def download_cover(job_id: str):
    record = queue.get_status(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if record.status != JobStatus.COMPLETED:
        raise HTTPException(status_code=400, detail=f"Job not completed yet (status={record.status.value})")
    path = queue.artifact_path(job_id)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Cover letter not found")
    return FileResponse(str(path), media_type="application/pdf", filename=f"cover-letter-{job_id}.pdf")

@api_router.delete("/cleanup/{job_id}", response_model=CleanupResponse, tags=["Jobs"])
async def cleanup(job_id: str):
    try:
        removed = queue.cleanup(job_id)
    except JobNotTerminal as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    if not removed:
        raise HTTPException(status_code=404, detail="Job not found")
    return CleanupResponse(success=True, message="Job and files cleaned up")

# ------------ Warmup endpoint ------------
@api_router.post("/warmup", tags=["Health"])
def warmup():
    """
    Enqueue a warmup task for the active model.
    """
    from backend.worker.worker import celery_app

    async_res = celery_app.send_task("warmup_llm", queue="llm", routing_key="llm")
    return {"job_id": async_res.id}
