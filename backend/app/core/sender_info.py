# backend/app/core/sender_info.py

"""Heuristic sender details pulled from CV text for the letter header."""

import re
from typing import Dict, Optional

EMAIL_RE = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
# Digits with spaces, dashes, dots or brackets; never spans a line break
PHONE_RE = re.compile(r"(\+?\(?\d[\d ().-]{6,}\d)")
ADDRESS_RE = re.compile(
    r"(\d+\s+[A-Za-z][A-Za-z ]*?\s(?:Street|St|Avenue|Ave|Road|Rd|Drive|Dr|Lane|Ln|Boulevard|Blvd)\b[^,\n]*)",
    re.IGNORECASE,
)
MIN_PHONE_DIGITS = 7
YEAR_RANGE_RE = re.compile(r"^\(?\d{4}\s*[-.]?\s*\d{4}\)?$")


def extract_email(cv_text: str) -> Optional[str]:
    match = EMAIL_RE.search(cv_text or "")
    return match.group(1) if match else None

def extract_phone(cv_text: str) -> Optional[str]:
    for match in PHONE_RE.finditer(cv_text or ""):
        candidate = match.group(1).strip()
        if YEAR_RANGE_RE.match(candidate):
            continue
        if sum(ch.isdigit() for ch in candidate) >= MIN_PHONE_DIGITS:
            return candidate
    return None

def guess_name(cv_text: str) -> Optional[str]:
    """First non-empty line, unless it carries an email or digits."""
    for line in (cv_text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        if "@" in line or re.search(r"\d", line):
            return None
        return line
    return None

def extract_address(cv_text: str) -> Optional[str]:
    match = ADDRESS_RE.search(cv_text or "")
    return match.group(1).strip() if match else None

def extract_sender_info(cv_text: str) -> Dict[str, str]:
    """Only keys that were found are present: name, email, phone, address."""
    found = {
        "name": guess_name(cv_text),
        "email": extract_email(cv_text),
        "phone": extract_phone(cv_text),
        "address": extract_address(cv_text),
    }
    return {key: value for key, value in found.items() if value}
