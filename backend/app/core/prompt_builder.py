# backend/app/core/prompt_builder.py

from typing import Optional
from backend.app.config import settings

TRUNCATION_MARKER = "\n[...truncated]"

LETTER_ONLY_SHAPE = """{
  "coverLetter": "Complete cover letter text"
}"""

LETTER_AND_ANSWER_SHAPE = """{
  "coverLetter": "Complete cover letter text",
  "answer": "Answer to the question, at least 100 words"
}"""


def truncate_section(text: str, limit: int) -> str:
    """Keep the start of a section, cut at `limit` characters."""
    text = (text or "").strip()
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit].rstrip() + TRUNCATION_MARKER


def build_prompt(
    cv_text: str,
    job_content: str,
    question: Optional[str] = None,
    max_cv_chars: Optional[int] = None,
    max_job_chars: Optional[int] = None,
) -> str:
    """
    Render the instruction prompt for the generation backend.

    The CV and job text are embedded verbatim (up to the per-section character limit).
    Without a question the required output shape only names `coverLetter`;
    with one it also names `answer`.
    """
    cv_limit = settings.PROMPT_MAX_CV_CHARS if max_cv_chars is None else max_cv_chars
    job_limit = settings.PROMPT_MAX_JOB_CHARS if max_job_chars is None else max_job_chars
    cv_block = truncate_section(cv_text, cv_limit)
    job_block = truncate_section(job_content, job_limit)
    question = (question or "").strip()

    question_block = ""
    if question:
        question_block = f"""
QUESTION FROM THE EMPLOYER:
{question}

ANSWER REQUIREMENTS:
- Answer in the first person, as the candidate
- Use only experience that appears in the CV
- Write at least 100 words
"""

    shape = LETTER_AND_ANSWER_SHAPE if question else LETTER_ONLY_SHAPE
    task = "Create a tailored cover letter for this specific job opportunity"
    if question:
        task += " and answer the employer's question"

    return f"""
You are an expert at creating tailored cover letters.

ORIGINAL CV CONTENT:
{cv_block}

JOB OFFER:
{job_block}
{question_block}
TASK:
{task}.

COVER LETTER REQUIREMENTS:
- Address the specific job requirements
- Highlight relevant experience from the CV
- Use a professional but personal tone
- Include specific examples that match the job
- End with a strong call to action
- Keep it around 300-400 words

IMPORTANT: Use ONLY facts stated in the CV content above. Do not invent employers, degrees, skills or numbers.
You must respond with ONLY valid JSON. No additional text, explanations, or formatting.

OUTPUT FORMAT:
{shape}

RULES:
- Focus on relevance to the specific job
- Use keywords from the job description
- Quantify achievements where the CV provides numbers
- Escape line breaks inside strings as \\n
- Return ONLY the JSON object, no other text
"""
