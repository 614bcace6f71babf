"""
OCR debugging helpers.

Used to diagnose why a ticket scan came back incomplete: a heuristic quality
score for the raw OCR text, a field completeness check, and a per-field
pattern report built from the extractor's own rule table.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from loguru import logger

from ticket_scanner.extractor import FIELD_NAMES, PLACEHOLDER, RESCAN_NEEDED, TicketExtractor

_SPECIAL_CHARS = re.compile(r"[!@#$%^&*()_+=\[\]{};:'\",.<>?/`~\\]")
_KEYWORDS = re.compile(r"DATE|TIME|TERMINAL|LOCATION|TICKET|AMOUNT|TOTAL", re.IGNORECASE)

SPECIAL_CHAR_LIMIT = 10
MIN_TEXT_LENGTH = 50
MIN_WORDS = 5

FIELD_DESCRIPTIONS = {
    "DATE": "Date in format: DD-MMM-YYYY (e.g., 29-DEC-2024)",
    "TIME": "Time in format: HH:MM HRS",
    "TERMINAL ID": "Terminal ID starting with T (e.g., T0001)",
    "LOCATION": "Location name (e.g., Main Entrance)",
    "NO. TICKETS": "Number of tickets",
    "TOTAL AMOUNT": "Total amount (e.g., LKR 1,500.00)",
    "TRACE NO": "Trace number (digits)",
    "REFFERENCE NO": "Reference number (letters and digits)",
}


@dataclass
class DebugInfo:
    raw_ocr_text: str
    cleaned_text: str
    extracted_fields: Dict[str, str]
    confidence_score: float
    width: int = 0
    height: int = 0
    size: str = ""
    processing_time_ms: int = 0
    field_match_details: Dict[str, List[Dict]] = field(default_factory=dict)


def analyze_ocr_quality(raw_text: str, confidence: float) -> Dict:
    """
    Score raw OCR output from 0 to 100 and explain the deductions.

    Returns:
        {"issues": [...], "suggestions": [...], "score": int}
    """
    issues: List[str] = []
    suggestions: List[str] = []
    score = 100
    raw_text = raw_text or ""

    if confidence < 50:
        issues.append("Very low confidence score")
        suggestions += ["Improve lighting conditions", "Ensure text is clearly visible"]
        score -= 40
    elif confidence < 70:
        issues.append("Low confidence score")
        suggestions.append("Try better lighting")
        score -= 20

    if not raw_text:
        issues.append("No text detected in image")
        suggestions += ["Ensure ticket is in focus", "Check that text is visible"]
        score -= 50
    elif len(raw_text) < MIN_TEXT_LENGTH:
        issues.append("Very little text detected")
        suggestions.append("Ensure complete ticket is visible")
        score -= 30

    if len(_SPECIAL_CHARS.findall(raw_text)) > SPECIAL_CHAR_LIMIT:
        issues.append("High number of special characters (likely OCR errors)")
        suggestions += ["Improve image clarity", "Ensure text is not blurry"]
        score -= 15

    words = sum(
        len([w for w in line.split() if len(w) > 2])
        for line in raw_text.split("\n")
    )
    if words < MIN_WORDS:
        issues.append("Text appears garbled or unclear")
        suggestions += ["Retake the photo with better focus", "Ensure adequate lighting"]
        score -= 20

    if not _KEYWORDS.search(raw_text):
        issues.append("Key field labels not detected")
        suggestions.append("Ensure ticket contains expected fields")
        score -= 25

    return {
        "issues": issues or ["Text recognized successfully"],
        "suggestions": suggestions or ["Image quality is good"],
        "score": max(0, score),
    }


def validate_extracted_data(data: Mapping[str, str]) -> Dict[str, List[str]]:
    """
    Sort the eight fields into complete / incomplete / missing.

    Empty or RESCAN NEEDED → missing; the "--" placeholder → incomplete.
    """
    complete, incomplete, missing = [], [], []
    for name in FIELD_NAMES:
        value = (data.get(name) or "").strip()
        if not value or value == RESCAN_NEEDED:
            missing.append(name)
        elif value == PLACEHOLDER:
            incomplete.append(name)
        else:
            complete.append(name)
    return {"complete": complete, "incomplete": incomplete, "missing": missing}


def _status_mark(value: Optional[str]) -> str:
    return "✓" if value and value != RESCAN_NEEDED else "✗"


def format_debug_display(info: DebugInfo) -> str:
    """Plain-text summary for display next to the scan result."""
    lines = [
        "=== OCR Debug Info ===",
        f"Confidence: {info.confidence_score:.2f}%",
        f"Processing: {info.processing_time_ms}ms",
        f"Image: {info.width}x{info.height} ({info.size})",
        "",
        "=== Extracted Fields ===",
    ]
    for name, value in info.extracted_fields.items():
        lines.append(f"{_status_mark(value)} {name}: {value or '(empty)'}")
    lines.append("")
    lines.append("=== Raw Text ===")
    raw = info.raw_ocr_text
    lines.append(raw[:200] + ("..." if len(raw) > 200 else ""))
    return "\n".join(lines)


def log_ocr_debug(info: DebugInfo) -> None:
    """Dump a DebugInfo at DEBUG level."""
    logger.debug(f"[OCRDebug] image {info.width}x{info.height} ({info.size}), "
                 f"{info.processing_time_ms}ms, confidence {info.confidence_score:.2f}%")
    logger.debug(f"[OCRDebug] raw text:\n{info.raw_ocr_text}")
    logger.debug(f"[OCRDebug] cleaned text:\n{info.cleaned_text}")
    for name, value in info.extracted_fields.items():
        logger.debug(f"[OCRDebug] {_status_mark(value)} {name}: {value or '(empty)'}")
    for name, details in info.field_match_details.items():
        for detail in details:
            logger.debug(
                f"[OCRDebug] {'✓' if detail['matched'] else '✗'} {name}: "
                f"{detail['pattern']} → {detail['match'] or '(no match)'}"
            )


def get_field_pattern(field_name: str, extractor: Optional[TicketExtractor] = None) -> Dict:
    """Patterns and description the extractor uses for one field."""
    extractor = extractor or TicketExtractor()
    patterns = [
        pattern.pattern
        for rule in extractor.rules if rule.field == field_name
        for pattern in rule.patterns
    ]
    return {
        "name": field_name,
        "patterns": patterns,
        "description": FIELD_DESCRIPTIONS.get(field_name, "Pattern not defined"),
    }


def match_field_patterns(
    field_name: str,
    text: str,
    extractor: Optional[TicketExtractor] = None,
) -> Dict:
    """
    Try every extractor pattern for one field against text.

    Returns:
        {"patterns": [{"pattern", "matched", "capture"}], "found": bool}
    """
    extractor = extractor or TicketExtractor()
    results = [
        {
            "pattern": detail["pattern"],
            "matched": detail["matched"],
            "capture": (detail["groups"][0] if detail["groups"] else detail["match"]) or "",
        }
        for detail in extractor.match_patterns(field_name, text)
    ]
    return {"patterns": results, "found": any(r["matched"] for r in results)}

