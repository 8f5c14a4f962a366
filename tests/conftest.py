"""Shared fixtures: in-memory job store, stub backends and generated CV PDFs."""

from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from backend.app.core.artifacts import ArtifactStore, PDFRenderer
from backend.app.core.async_queue import CoverLetterQueue
from backend.app.core.errors import GenerationBackendError
from backend.app.core.job_store import JobNotFound
from backend.app.models.job_models import (
    GenerationRequest,
    JobRecord,
    RawGenerationOutput,
    utc_now,
)

FIXTURES = Path(__file__).parent / "fixtures"

JANE_CV_LINES = [
    "Jane Doe",
    "jane@x.com",
    "+1 555-0100",
    "",
    "Experience",
    "Backend Engineer, Acme Corp (2019 - 2024)",
    "Built Python APIs with FastAPI, PostgreSQL and Redis.",
]


class InMemoryJobStore:
    """Dict-backed store with the same surface as RedisJobStore; keeps every write for assertions."""

    def __init__(self):
        self.records: Dict[str, JobRecord] = {}
        self.history: List[JobRecord] = []

    def create_job(self, record: JobRecord) -> JobRecord:
        self.records[record.job_id] = record
        self.history.append(record)
        return record

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        return self.records.get(job_id)

    def update_job(self, job_id: str, **fields) -> JobRecord:
        if job_id not in self.records:
            raise JobNotFound(job_id)
        data = self.records[job_id].model_dump()
        data.update(fields)
        data["updated_at"] = utc_now()
        record = JobRecord.model_validate(data)
        self.records[job_id] = record
        self.history.append(record)
        return record

    def delete_job(self, job_id: str) -> bool:
        return self.records.pop(job_id, None) is not None

    def list_jobs(self) -> List[JobRecord]:
        return sorted(self.records.values(), key=lambda r: r.created_at, reverse=True)


class StubGenerator:
    """Returns canned model output, or raises when `error` is set."""

    def __init__(self, text: str = "", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.prompts: List[str] = []

    def build_request(self, prompt: str) -> GenerationRequest:
        return GenerationRequest(prompt=prompt, temperature=0.7, top_p=0.9, max_tokens=4096)

    def complete(self, request: GenerationRequest) -> RawGenerationOutput:
        self.prompts.append(request.prompt)
        if self.error is not None:
            raise self.error
        return RawGenerationOutput(text=self.text)


class RecordingRenderer(PDFRenderer):
    """Real ReportLab renderer that keeps the template data of every call."""

    def __init__(self):
        super().__init__(timeout=30)
        self.calls: List[dict] = []

    def render(self, template_data: dict) -> bytes:
        self.calls.append(template_data)
        return super().render(template_data)


def make_pdf(lines: List[str]) -> bytes:
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    y = 800
    for line in lines:
        if line:
            pdf.drawString(72, y, line)
        y -= 16
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def load_model_output(name: str) -> str:
    return (FIXTURES / "model_outputs" / name).read_text(encoding="utf-8")


def load_html(name: str) -> str:
    return (FIXTURES / "html" / name).read_text(encoding="utf-8")


@pytest.fixture
def store():
    return InMemoryJobStore()


@pytest.fixture
def artifacts(tmp_path):
    return ArtifactStore(output_dir=str(tmp_path / "out"))


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def cv_pdf_bytes():
    return make_pdf(JANE_CV_LINES)


@pytest.fixture
def cv_path(tmp_path, cv_pdf_bytes):
    path = tmp_path / "uploads" / "cv-jane.pdf"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(cv_pdf_bytes)
    return path


@pytest.fixture
def blank_cv_path(tmp_path):
    path = tmp_path / "uploads" / "cv-blank.pdf"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(make_pdf([]))
    return path


@pytest.fixture
def backend_down():
    return StubGenerator(error=GenerationBackendError("Generation backend call failed: connection refused"))


@pytest.fixture
def model_output():
    return load_model_output


@pytest.fixture
def html_page():
    return load_html


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def stub_generator():
    return StubGenerator


@pytest.fixture
def job_queue(store, artifacts):
    return CoverLetterQueue(store=store, artifacts=artifacts)
