
#backend/app/core/extraction.py
from typing import Union, List
from pathlib import Path
from io import BytesIO
import logging
import re

from PyPDF2 import PdfReader
from bs4 import BeautifulSoup
from readability import Document
from readability.readability import Unparseable

from backend.app.core.errors import ExtractionError

logger = logging.getLogger(__name__)


class PDFParser:
    """Extracts plain text from CV documents."""

    def extract_text(self, file: Union[Path, bytes]) -> str:
        if isinstance(file, Path):
            try:
                data = file.read_bytes()
            except OSError as exc:
                raise ExtractionError(f"CV document could not be read: {exc}") from exc
            return self.extract_text(data)
        elif isinstance(file, bytes):
            try:
                reader = PdfReader(BytesIO(file))
                text = self._extract_all(reader)
            except Exception as exc:  # PdfReadError and friends on corrupt files
                raise ExtractionError("Failed to extract text from PDF") from exc
        else:
            raise ValueError("Unsupported file type for PDFParser.")

        if not text.strip():
            raise ExtractionError("No text could be extracted from the CV PDF")
        return text

    def _extract_all(self, reader: PdfReader) -> str:
        text = ""
        for page in reader.pages:
            page_text = page.extract_text()
            if page_text:
                text += page_text + "\n"
        return text.strip()


class ArticleExtractor:
    """
    Best-effort main-content text from a job posting page. Never touches the network.

    Readability picks the main content block first; when it finds nothing usable
    the page is scanned for common posting containers with BeautifulSoup.
    """

    NOISE_TAGS = ["script", "style", "noscript", "svg", "nav", "footer", "header", "form", "aside", "iframe"]
    # Elements that commonly wrap the posting body
    CONTENT_SELECTORS = [
        "article",
        "main",
        "[role=main]",
        "#job-description",
        ".job-description",
        ".description",
        "#content",
        ".content",
    ]
    MIN_CONTENT_CHARS = 40

    def extract_text(self, html: str, base_url: str = "") -> str:
        """`base_url` lets readability resolve relative links in the summary."""
        if not html or not html.strip():
            return ""
        text = self._readability_text(html, base_url)
        if len(text) >= self.MIN_CONTENT_CHARS:
            return text
        logger.info("Readability found no article content for %s; scanning containers", base_url or "<html>")
        return self._selector_text(html)

    def _readability_text(self, html: str, base_url: str) -> str:
        try:
            summary = Document(html, url=base_url or None).summary(html_partial=True)
        except Unparseable as exc:
            logger.warning("Readability could not parse %s: %s", base_url or "<html>", exc)
            return ""
        soup = BeautifulSoup(summary, "lxml")
        for tag in soup(self.NOISE_TAGS):
            tag.decompose()
        return self._clean(soup.get_text(separator="\n"))

    def _selector_text(self, html: str) -> str:
        soup = BeautifulSoup(html, "lxml")

        for tag in soup(self.NOISE_TAGS):
            tag.decompose()

        candidates = []
        for selector in self.CONTENT_SELECTORS:
            candidates += soup.select(selector)
        if soup.body is not None:
            candidates.append(soup.body)

        best = ""
        for node in candidates:
            text = self._clean(node.get_text(separator="\n"))
            # Prefer the first semantic container with real content
            if len(text) >= self.MIN_CONTENT_CHARS:
                best = text
                break
            if len(text) > len(best):
                best = text

        return best if len(best) >= self.MIN_CONTENT_CHARS else ""

    @staticmethod
    def _clean(text: str) -> str:
        lines: List[str] = []
        for raw in text.split("\n"):
            line = re.sub(r"\s+", " ", raw).strip()
            if line and (not lines or lines[-1] != line):
                lines.append(line)
        return "\n".join(lines)


_pdf = PDFParser()
_article = ArticleExtractor()

def extract_document_text(data: bytes) -> str:
    """CV bytes → text. Raises ExtractionError on unreadable or empty documents."""
    return _pdf.extract_text(data)

def extract_article_text(html: str, base_url: str = "") -> str:
    """Posting HTML → main text, or "" when no article content is found."""
    return _article.extract_text(html, base_url)
