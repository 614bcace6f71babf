"""
Field rules
===========
One FieldRule per ticket field, in extraction order. Each rule lists its
patterns (first match wins), a normalizer turning the match into the field
value, an optional validator, and the result to use when nothing matches.

All patterns are case-insensitive and run over corrected text.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Match, Optional, Pattern, Sequence, Tuple

from ticket_scanner.extractor.fields import (
    DATE, TIME, TERMINAL_ID, LOCATION, NO_TICKETS, TOTAL_AMOUNT, TRACE_NO, REFERENCE_NO,
    FieldResult,
)


@dataclass(frozen=True)
class FieldRule:
    field: str
    patterns: Sequence[Pattern]
    normalize: Callable[[Match], str]
    validate: Optional[Callable[[str], bool]] = None
    default: FieldResult = FieldResult.not_found()


def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# ─── Amounts ──────────────────────────────────────────────────────────────────

_SEPARATORS = re.compile(r'[,.]')
_WHITESPACE = re.compile(r'\s+')


def split_amount(raw: str) -> Optional[Tuple[str, str]]:
    """
    Split a numeral into (whole_digits, decimal_digits).

    Only the last separator can be a decimal point; earlier ones are thousands
    separators whatever the glyph. With a single separator it is a decimal
    point only when exactly two digits follow it.

        "1,500.00" → ("1500", "00")     "1.500,00" → ("1500", "00")
        "1.500"    → ("1500", "")       "12.50"    → ("12", "50")

    Returns None when the text holds anything but digits and separators.
    """
    cleaned = _WHITESPACE.sub('', raw or '')
    if not cleaned or not re.fullmatch(r'[\d,.]*\d[\d,.]*', cleaned):
        return None

    parts = [p for p in _SEPARATORS.split(cleaned) if p]
    if len(parts) == 1:
        return parts[0], ''
    if len(parts) == 2 and len(parts[1]) != 2:
        return ''.join(parts), ''
    return ''.join(parts[:-1]), parts[-1]


def format_amount(raw: str) -> str:
    """
    Canonical display form of a numeral: thousands groups joined with ',',
    decimal part after '.'.

        "1.500,00" → "1,500.00"     "1.500" → "1,500"     "2500" → "2500"
    """
    cleaned = _WHITESPACE.sub('', raw)
    parts = [p for p in _SEPARATORS.split(cleaned) if p]
    if len(parts) <= 1:
        return ''.join(parts)
    if len(parts) == 2 and len(parts[1]) != 2:
        return ','.join(parts)
    return ','.join(parts[:-1]) + '.' + parts[-1]


# ─── Normalizers ──────────────────────────────────────────────────────────────

def _first_group(m: Match) -> str:
    return m.group(1).strip()


def _normalize_time(m: Match) -> str:
    return f"{int(m.group(1)):02d}:{m.group(2)} HRS"


_TERMINAL_ID = re.compile(r'^T\d{3,4}$')


def normalize_terminal_id(token: str) -> str:
    """
    "T00O1" → "T0001", "T12345" → "T2345".

    O/Q/C read as 0, then the last four digits are kept and zero-padded.
    """
    token = re.sub(r'[OQC]', '0', token.upper())
    digits = token[1:]
    return 'T' + digits[-4:].rjust(4, '0')


def is_valid_terminal_id(value: str) -> bool:
    return bool(_TERMINAL_ID.match(value))


def _normalize_terminal(m: Match) -> str:
    return normalize_terminal_id(m.group(1))


def _normalize_tickets(m: Match) -> str:
    count = re.sub(r'[OoQq]', '0', m.group(1)).lstrip('0') or '0'
    return count.rjust(2, '0')


def _normalize_total(m: Match) -> str:
    return 'LKR ' + format_amount(m.group(1))


def _normalize_total_fallback(m: Match) -> str:
    amount = _WHITESPACE.sub('', m.group(1)).rstrip(',.')
    return 'LKR ' + format_amount(amount)


# ─── Rule table ───────────────────────────────────────────────────────────────

FIELD_RULES: List[FieldRule] = [
    FieldRule(
        DATE,
        _compile(r'DATE\s*[:\s\'"`]+\s*(\d{1,2}[-/][A-Z]{3}[-/]\d{4})'),
        _first_group,
    ),
    FieldRule(
        TIME,
        _compile(
            r'T[I1!l]M?N?E\s*[:\s"\'`]*\s*(\d{1,2})[:.\s](\d{2})\s*HRS?',
            r'T[I1!l]M?N?E\s*[:\s"\'`]*\s*(\d{2})(\d{2})\s*HRS?',
        ),
        _normalize_time,
    ),
    FieldRule(
        TERMINAL_ID,
        _compile(
            r'TERMINAL\s*[\[\(\{]?[I1!lD]*[\]\)\}]?\s*[:\s]+[:\s\']*(T[\dOoQqCc]{3,5})',
            r'TERMINAL[^T]{0,15}(T[0OoQqCc\d]{3,5})',
            r':(T[0OoQqCc\d]{3,5})\b',
        ),
        _normalize_terminal,
        validate=is_valid_terminal_id,
        default=FieldResult.invalid(),
    ),
    FieldRule(
        LOCATION,
        _compile(r'LOCATION\s*[:\s]+[:\s]*([A-Za-z\s]+?)(?=\n|NO\.|\Z)'),
        _first_group,
    ),
    FieldRule(
        NO_TICKETS,
        _compile(r'NO\.?\s*TICKETS?\s*[:\s\'"`]*[:\s\'"]*([OoQq\d]+)'),
        _normalize_tickets,
    ),
    FieldRule(
        TOTAL_AMOUNT,
        _compile(r'TOTAL\s*AMOUNT\s*[:\s]+[:\s]*(?:LKR\s*)?(\d[,.\d\s]*\d{2})'),
        _normalize_total,
    ),
    FieldRule(
        TOTAL_AMOUNT,
        _compile(r'TOTAL\s*AMOUNT[^\d]*(\d[,.\d\s]+)'),
        _normalize_total_fallback,
    ),
    FieldRule(
        TRACE_NO,
        _compile(r'TRACE\s*NO\s*[:\s\'"`]+[:\s\']*(\d+)'),
        _first_group,
    ),
    FieldRule(
        REFERENCE_NO,
        _compile(r'REF+E?R+E?NCE?\s*NO\s*[:\s\'"`]+[:\s\'"]*([A-Z0-9]+)'),
        _first_group,
    ),
]
