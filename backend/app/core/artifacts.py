# backend/app/core/artifacts.py

from typing import Dict, Any, List, Optional
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from io import BytesIO
from pathlib import Path
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, ListFlowable
from reportlab.lib import colors
import datetime
import logging
import os
import re
import tempfile

from backend.app.config import settings
from backend.app.core.errors import RenderingError
from backend.app.core.sender_info import extract_sender_info
from backend.app.models.job_models import ReconstructedResult

logger = logging.getLogger(__name__)

DEFAULT_RECIPIENT = {"name": "Hiring Manager", "company": ""}
DEFAULT_SALUTATION = "Dear Hiring Manager,"
_SALUTATION_START_RE = re.compile(r"^\s*(?:Dear|Hello|Hi|Greetings|To whom it may concern)\b", re.IGNORECASE)


def build_template_data(result: ReconstructedResult, cv_text: str, today: Optional[datetime.date] = None) -> Dict[str, Any]:
    """Everything the letter layout needs: sender block, date, recipient, body and optional Q&A."""
    today = today or datetime.date.today()
    body = result.cover_letter.strip()
    return {
        "sender": extract_sender_info(cv_text),
        "date": f"{today.strftime('%B')} {today.day}, {today.year}",
        "recipient": dict(DEFAULT_RECIPIENT),
        # Skip our salutation when the letter already opens with one
        "salutation": None if _SALUTATION_START_RE.match(body) else DEFAULT_SALUTATION,
        "body": body,
        "question": result.question,
        "answer": result.answer,
    }


class PDFRenderer:
    """Render a cover letter as an A4 PDF using ReportLab.

    Layout, top to bottom:
    - Sender block (name, address, email, phone)
    - Date line
    - Recipient block
    - Salutation (unless the body has its own)
    - Letter body with markdown-lite rendering:
        * '- ' and '* ' bullets, '1. ' numbered lists
        * **bold** and *italic* inline
        * blank lines -> paragraph spacing
    - Optional question/answer section
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = settings.RENDER_TIMEOUT if timeout is None else timeout
        styles = getSampleStyleSheet()
        self.h2 = styles["Heading2"]
        self.body = styles["BodyText"]

        # Slightly tighter body text for letters
        self.body_letter = ParagraphStyle(
            name="BodyLetter",
            parent=self.body,
            leading=14
        )
        self.sender_name = ParagraphStyle(
            name="SenderName",
            parent=self.body,
            fontName="Helvetica-Bold",
            fontSize=13,
            leading=16,
        )
        self.small = ParagraphStyle(
            name="SenderLine",
            parent=self.body,
            fontSize=9,
            leading=11,
            textColor=colors.grey,
        )

    # ---------- Public API ----------
    def render(self, template_data: Dict[str, Any]) -> bytes:
        """Build the PDF bytes, bounded by the renderer timeout."""
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._build_pdf_bytes, template_data)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout as exc:
            raise RenderingError(f"PDF rendering timed out after {self.timeout:g}s") from exc
        except RenderingError:
            raise
        except Exception as exc:
            raise RenderingError(f"PDF rendering failed: {exc}") from exc
        finally:
            executor.shutdown(wait=False)

    def _build_pdf_bytes(self, data: Dict[str, Any]) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer, pagesize=A4,
            topMargin=2 * cm, bottomMargin=2 * cm,
            leftMargin=2 * cm, rightMargin=2 * cm,
            title="Cover Letter",
        )
        flow: List = []
        flow += self._sender_block(data.get("sender") or {})
        flow.append(Paragraph(self._escape_html(data.get("date") or ""), self.body))
        flow.append(Spacer(1, 0.4 * cm))
        flow += self._recipient_block(data.get("recipient") or {})

        if data.get("salutation"):
            flow.append(Paragraph(self._escape_html(data["salutation"]), self.body_letter))
            flow.append(Spacer(1, 0.2 * cm))

        flow += self._markdown_to_flowables(data.get("body") or "", use_letter_style=True)

        if data.get("question") and data.get("answer"):
            flow.append(Spacer(1, 0.6 * cm))
            flow.append(Paragraph(self._escape_html(data["question"]), self.h2))
            flow += self._markdown_to_flowables(data["answer"], use_letter_style=True)

        doc.build(flow)
        return buffer.getvalue()

    # ---------- Section Builders ----------
    def _sender_block(self, sender: Dict[str, str]) -> List:
        flow: List = []
        if sender.get("name"):
            flow.append(Paragraph(self._escape_html(sender["name"]), self.sender_name))
        for key in ("address", "email", "phone"):
            if sender.get(key):
                flow.append(Paragraph(self._escape_html(sender[key]), self.small))
        if flow:
            flow.append(Spacer(1, 0.5 * cm))
        return flow

    def _recipient_block(self, recipient: Dict[str, str]) -> List:
        lines = [recipient.get("name"), recipient.get("company")]
        flow: List = [Paragraph(self._escape_html(line), self.body) for line in lines if line]
        if flow:
            flow.append(Spacer(1, 0.4 * cm))
        return flow

    def _bullet_list(self, items: List[str], bullet_type: str = "bullet") -> List:
        paras = [Paragraph(self._inline_format(self._escape_html(x)), self.body_letter) for x in items]
        return [ListFlowable(
            paras,
            bulletType=bullet_type,
            leftIndent=10,
            bulletColor=colors.black,
        )]

    # ---------- Markdown-lite Rendering ----------
    def _markdown_to_flowables(self, text: str, use_letter_style: bool) -> List:
        lines = text.splitlines()
        flow: List = []
        buffer_ul: List[str] = []
        buffer_ol: List[str] = []

        def flush_lists():
            nonlocal buffer_ul, buffer_ol, flow
            if buffer_ul:
                flow += self._bullet_list(buffer_ul)
                flow.append(Spacer(1, 0.2 * cm))
                buffer_ul = []
            if buffer_ol:
                flow += self._bullet_list(buffer_ol, bullet_type="1")
                flow.append(Spacer(1, 0.2 * cm))
                buffer_ol = []

        p_style = self.body_letter if use_letter_style else self.body

        for raw in lines:
            line = raw.rstrip()

            # Blank line separates blocks
            if not line.strip():
                flush_lists()
                flow.append(Spacer(1, 0.2 * cm))
                continue

            # Ordered list "1. ", "2. ", etc.
            m_num = re.match(r"^\s*\d+\.\s+(.*)$", line)
            if m_num:
                buffer_ol.append(m_num.group(1))
                continue

            # Unordered bullets "- " or "* "
            stripped = line.lstrip()
            if stripped.startswith("- ") or stripped.startswith("* "):
                buffer_ul.append(stripped[2:])
                continue

            # Normal paragraph
            flush_lists()
            flow.append(Paragraph(self._inline_format(self._escape_html(line)), p_style))

        flush_lists()
        return flow

    # ---------- Inline helpers ----------
    @staticmethod
    def _escape_html(text: str) -> str:
        """Minimal XML/HTML escaping for ReportLab Paragraph."""
        return (
            text.replace("&", "&amp;")
                .replace("<", "&lt;")
                .replace(">", "&gt;")
        )

    @staticmethod
    def _inline_format(text: str) -> str:
        """Convert **bold** and *italic* markdown to HTML for ReportLab."""
        # Bold: **text**
        text = re.sub(r"\*\*(.+?)\*\*", r"<b>\1</b>", text)
        # Italic: *text*
        text = re.sub(r"(?<!\*)\*(?!\s)(.+?)(?<!\s)\*(?!\*)", r"<i>\1</i>", text)
        return text


class ArtifactStore:
    """Rendered PDFs on disk, one file per job: <output_dir>/cover-<job_id>.pdf."""

    def __init__(self, output_dir: Optional[str] = None):
        self.output_dir = Path(output_dir or settings.OUTPUT_DIR).resolve()

    def path_for(self, job_id: str) -> Path:
        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "_", job_id)
        return self.output_dir / f"cover-{safe_id}.pdf"

    def exists(self, job_id: str) -> bool:
        path = self.path_for(job_id)
        return path.is_file() and path.stat().st_size > 0

    def write(self, job_id: str, data: bytes) -> Path:
        """Write through a temp file and rename, so exists() never sees a partial PDF."""
        path = self.path_for(job_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".cover-", suffix=".tmp", dir=str(path.parent))
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except OSError as exc:
            raise RenderingError(f"Could not write artifact for job {job_id}: {exc}") from exc
        logger.info("Wrote artifact %s (%d bytes)", path, len(data))
        return path

    def delete(self, job_id: str) -> bool:
        path = self.path_for(job_id)
        if path.exists():
            path.unlink()
            return True
        return False
