# backend/app/core/reconstructor.py

"""Turn free-text model output into a usable ReconstructedResult.

The cascade never raises:

1. direct      - strict JSON parse starting at the first ``{``
2. recovered   - field-anchored extraction from broken/truncated JSON
3. synthesized - deterministic filler for fields still missing
4. scraped     - no braces at all; salutation-anchored scraping of prose
5. normalization - non-empty cover letter, answer padded to MIN_ANSWER_WORDS
"""

import itertools
import json
import logging
import re
from typing import Dict, Optional, List

from backend.app.models.job_models import ReconstructedResult

logger = logging.getLogger(__name__)

COVER_FIELD = "coverLetter"
ANSWER_FIELD = "answer"
KNOWN_FIELDS = (COVER_FIELD, "question", ANSWER_FIELD)

MIN_ANSWER_WORDS = 100
FALLBACK_BODY_CHARS = 1200
PREVIEW_CHARS = 300

GENERIC_OPENING = (
    "Dear Hiring Manager,\n\n"
    "I am writing to express my interest in the position. Based on my experience and skills, "
    "I believe I would be a great fit for this role."
)
GENERIC_BODY = (
    "My background has given me a solid foundation in the responsibilities described in the job offer, "
    "and I would welcome the opportunity to apply it on your team."
)
GENERIC_CLOSING = "Thank you for your consideration.\n\nBest regards"

ANSWER_FILLER = (
    "My background has prepared me well for this question. Throughout my career I have focused on "
    "understanding the goals of the teams I work with, breaking complex problems into manageable steps, "
    "and delivering reliable results on time. I communicate openly with colleagues and stakeholders, ask "
    "questions early when requirements are unclear, and take ownership of both successes and mistakes. "
    "When I face a new challenge, I research it carefully, draw on lessons from previous projects, and look "
    "for practical solutions that balance quality with deadlines. I also value continuous learning and "
    "regularly build new skills that help me contribute more effectively. I am confident that this approach "
    "would allow me to add value to your team from the start and to grow together with the organisation "
    "over time."
)

ANSWER_PADDING = [
    "In practice, this means I prepare carefully, listen to the people involved and adapt my approach when the situation calls for it.",
    "I have found that clear communication and a steady focus on the outcome help teams move forward even when priorities change.",
    "I take responsibility for the quality of my work and follow through until the result is something the team can rely on.",
    "Each of these experiences has taught me something I can bring directly to this role and to the people I would work with.",
]

_FIELD_OPEN = r'"%s"\s*:\s*"'
_NEXT_FIELD_RE = re.compile(r'"\s*,\s*"(?:%s)"\s*:' % "|".join(KNOWN_FIELDS))
_CLOSE_RE = re.compile(r'"\s*}')
_SENTENCE_END_RE = re.compile(r'[.!?]["\')\]]*(?=\s|$)')
_SALUTATION_RE = re.compile(r"\b(?:Dear|Hello|Hi|Greetings|To whom it may concern)\b", re.IGNORECASE)
_ANSWER_MARKER_RE = re.compile(r"(?:^|\n)[ \t]*(?:\*\*|#+[ \t]*)?answer(?:\*\*)?[ \t]*[:\-]+[ \t]*(?:\*\*)?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\s*`{3,}\s*$")
_JSON_NOISE_RE = re.compile(r'[{}]|"(?:%s)"\s*:\s*"?' % "|".join(KNOWN_FIELDS))
_ESCAPES = {'"': '"', "\\": "\\", "/": "/", "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t"}


# ---------- small pure helpers ----------

def word_count(text: Optional[str]) -> int:
    return len((text or "").split())

def trim_to_sentence(text: str) -> str:
    """Cut back to the last sentence-terminal punctuation; "" if there is none."""
    matches = list(_SENTENCE_END_RE.finditer(text))
    if not matches:
        return ""
    return text[: matches[-1].end()].rstrip()

def decode_json_string(raw: str) -> str:
    """Decode the body of a JSON string literal, tolerating truncation and stray quotes."""
    cleaned = re.sub(r"\\u[0-9a-fA-F]{0,3}$", "", raw)
    if re.search(r"(?<!\\)(?:\\\\)*\\$", cleaned):
        cleaned = cleaned[:-1]
    try:
        return json.loads('"' + cleaned + '"', strict=False)
    except json.JSONDecodeError:
        return re.sub(r'\\(["\\/bfnrt])', lambda m: _ESCAPES[m.group(1)], cleaned)

def _strip_fence(text: str) -> str:
    return _TRAILING_FENCE_RE.sub("", text)

def looks_truncated(candidate: str) -> bool:
    return not _strip_fence(candidate).rstrip().endswith("}")

def required_fields(question: Optional[str]) -> List[str]:
    return [COVER_FIELD, ANSWER_FIELD] if question else [COVER_FIELD]


# ---------- stage 1 ----------

def parse_direct(candidate: str) -> Optional[dict]:
    """Strict parse of text starting at ``{``; retried once cut at the last ``}``."""
    body = _strip_fence(candidate).strip()
    attempts = [body]
    last = body.rfind("}")
    if 0 < last < len(body) - 1:
        attempts.append(body[: last + 1])
    for attempt in attempts:
        try:
            value = json.loads(attempt, strict=False)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None

def _has_required(parsed: dict, fields: List[str]) -> bool:
    for name in fields:
        value = parsed.get(name)
        if not isinstance(value, str) or not value.strip():
            return False
    return True


# ---------- stage 2 ----------

def extract_field(text: str, name: str) -> Optional[str]:
    """
    Field-name anchored extraction of a string value.

    The value runs to the next known-field delimiter, else to the last ``"}``,
    else to the end of the text. In the last case the value is treated as cut
    off and trimmed back to the last full sentence.
    """
    opening = re.search(_FIELD_OPEN % re.escape(name), text)
    if not opening:
        return None
    rest = text[opening.end():]

    complete = True
    nxt = _NEXT_FIELD_RE.search(rest)
    if nxt:
        raw = rest[: nxt.start()]
    else:
        closes = list(_CLOSE_RE.finditer(rest))
        if closes:
            raw = rest[: closes[-1].start()]
        else:
            raw, complete = rest, False

    value = decode_json_string(raw)
    if not complete:
        value = trim_to_sentence(value)
    value = value.strip()
    return value or None

def recover_fields(candidate: str, fields: List[str]) -> Dict[str, str]:
    recovered: Dict[str, str] = {}
    for name in fields:
        value = extract_field(candidate, name)
        if value:
            recovered[name] = value
    return recovered


# ---------- stage 3 / 4 ----------

def scrape_letter(text: str, truncated: bool = False) -> str:
    """
    Salutation-anchored span ("Dear ...") up to any trailing JSON delimiter.

    With `truncated`, a span that runs to the end of the text is cut back to
    its last full sentence, so "" means nothing complete was written.
    """
    match = _SALUTATION_RE.search(text)
    if not match:
        return ""
    span = text[match.start():]
    end = re.search(r'"\s*(?:,\s*"\w+"\s*:|})', span)
    if end:
        span = span[: end.start()]
    if "\\n" in span or '\\"' in span:
        span = decode_json_string(span)
    span = _strip_fence(span).strip()
    if truncated and not end:
        span = trim_to_sentence(span)
    return span

def scrape_prose(text: str, question: Optional[str]) -> Dict[str, str]:
    """Stage 4: build fields from brace-less prose."""
    fields: Dict[str, str] = {}
    letter_part = text
    if question:
        marker = _ANSWER_MARKER_RE.search(text)
        if marker:
            letter_part = text[: marker.start()]
            answer = text[marker.end():].strip()
            if answer:
                fields[ANSWER_FIELD] = answer
    letter = scrape_letter(letter_part)
    if letter:
        fields[COVER_FIELD] = letter
    return fields

def synthesize_missing(fields: Dict[str, str], required: List[str], text: str, truncated: bool = False) -> List[str]:
    """Stage 3: fill required fields still missing. Returns the names that were filled."""
    filled = []
    for name in required:
        if fields.get(name):
            continue
        if name == COVER_FIELD:
            letter = scrape_letter(text, truncated)
            if letter:
                fields[name] = letter
                filled.append(name)
        elif name == ANSWER_FIELD:
            fields[name] = ANSWER_FILLER
            filled.append(name)
    return filled


# ---------- stage 5 ----------

def fallback_body(raw_text: str, truncated: bool = False) -> str:
    """Readable excerpt of the raw output with JSON scaffolding removed."""
    text = _JSON_NOISE_RE.sub(" ", _strip_fence(raw_text or ""))
    text = decode_json_string(text) if "\\n" in text else text
    text = re.sub(r"[ \t]+", " ", text).strip().strip('"').strip()
    if text.lower() in ("null", "true", "false"):
        text = ""
    if truncated:
        text = trim_to_sentence(text)
    if len(text) > FALLBACK_BODY_CHARS:
        text = trim_to_sentence(text[:FALLBACK_BODY_CHARS]) or text[:FALLBACK_BODY_CHARS].rstrip() + "..."
    return text or GENERIC_BODY

def wrap_in_template(body: str) -> str:
    body = (body or "").strip() or GENERIC_BODY
    return f"{GENERIC_OPENING}\n\n{body}\n\n{GENERIC_CLOSING}"

def pad_answer(answer: Optional[str], min_words: int = MIN_ANSWER_WORDS) -> str:
    """Extend a short answer with fixed sentences until it reaches `min_words`."""
    answer = answer or ""
    if word_count(answer) >= min_words:
        return answer
    if not answer.strip():
        answer = ANSWER_FILLER
    parts = [answer.strip()]
    padding = itertools.cycle(ANSWER_PADDING)
    while word_count(" ".join(parts)) < min_words:
        parts.append(next(padding))
    return " ".join(parts)


# ---------- entry point ----------

def reconstruct(raw_text: Optional[str], question: Optional[str] = None) -> ReconstructedResult:
    question = (question or "").strip() or None
    required = required_fields(question)
    text = (raw_text or "").strip()
    start = text.find("{")
    truncated = False

    if start == -1:
        fields = scrape_prose(text, question)
        stage = "scraped"
        synthesize_missing(fields, [n for n in required if n != COVER_FIELD], text)
    else:
        candidate = text[start:]
        truncated = looks_truncated(candidate)
        parsed = parse_direct(candidate)
        if parsed is not None and _has_required(parsed, required):
            fields = {name: parsed[name] for name in required}
            stage = "direct"
        else:
            logger.warning(
                "Model output not directly usable (parsed=%s, truncated=%s); recovering fields. Preview: %r",
                parsed is not None, truncated, text[:PREVIEW_CHARS],
            )
            fields = recover_fields(candidate, required)
            if parsed is not None:
                # Valid JSON that only lacked some fields: keep what it had
                for name in required:
                    value = parsed.get(name)
                    if name not in fields and isinstance(value, str) and value.strip():
                        fields[name] = value
            stage = "recovered"
            filled = synthesize_missing(fields, required, text, truncated)
            if filled:
                logger.warning("Synthesized fields %s", filled)
                stage = "synthesized"

    return normalize(fields, question, text, stage, truncated)

def normalize(
    fields: Dict[str, str],
    question: Optional[str],
    raw_text: str,
    stage: str,
    truncated: bool = False,
) -> ReconstructedResult:
    letter = fields.get(COVER_FIELD) or ""
    if not letter.strip():
        logger.warning("No cover letter recovered; wrapping raw output in the generic template")
        letter = wrap_in_template(fallback_body(raw_text, truncated))
        stage = "fallback"

    result = ReconstructedResult(cover_letter=letter, stage=stage)
    if question:
        result.question = question
        result.answer = pad_answer(fields.get(ANSWER_FIELD))
    if stage != "direct":
        logger.info("Reconstructed model output via stage=%s", stage)
    return result
