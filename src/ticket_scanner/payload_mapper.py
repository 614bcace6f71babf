"""
Payload Mapper
Converts an extracted TicketRecord into the ticket store's submission schema.

    DATE          "29-DEC-2024"   → date "2024-12-29"       (malformed → today)
    TIME          "14:30 HRS"     → time "14:30"            (malformed → "00:00")
    TOTAL AMOUNT  "LKR 1,500.00"  → total_amount "1500.00"  (malformed → "0.00", logged)
    NO. TICKETS   "02"            → no_tickets 2            (no digits → 0)
    derived                       → ticket_amount_pp "750.00"

Pure: nothing is mutated, the only implicit input is today's date.
"""

import re
from datetime import date as _date
from typing import Optional

from loguru import logger
from pydantic import BaseModel, Field

from ticket_scanner.extractor import (
    DATE, TIME, TERMINAL_ID, LOCATION, NO_TICKETS, TOTAL_AMOUNT, TRACE_NO, REFERENCE_NO,
    TicketRecord,
    split_amount,
)


MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}

_DATE = re.compile(r'(\d{1,3})[-/]([A-Za-z]{3})[-/](\d{4})')
_TIME = re.compile(r'(\d{1,2})\s*[:.]\s*(\d{2})')
_INT_RUN = re.compile(r'\d+')
_AMOUNT_BODY = re.compile(r'\d[\d,.\s]*')


# ─── Models ───────────────────────────────────────────────────────────────────

class ScannedData(BaseModel):
    extracted_text: str = Field(..., description="Raw OCR text as recognized")
    confidence: float   = Field(..., description="OCR confidence (0-100)")


class TicketPayload(BaseModel):
    """Submission body for the ticket store."""
    date: str             = Field(..., description="YYYY-MM-DD")
    time: str             = Field(..., description="HH:MM (24h)")
    terminal_id: str      = Field("", description="Terminal ID, e.g. T0001")
    location: str         = Field("", description="Entrance location")
    no_tickets: int       = Field(0, description="Number of tickets", ge=0)
    total_amount: str     = Field("0.00", description="Total amount, 2 decimals")
    trace_no: str         = Field("", description="Trace number")
    reference_no: str     = Field("", description="Reference number")
    ticket_amount_pp: str = Field("0.00", description="Amount per person, 2 decimals")
    ticket_img_path: Optional[str] = Field(None, description="Stored image path, set by the store")
    scanned_data: ScannedData

    class Config:
        json_schema_extra = {
            "example": {
                "date": "2024-12-29",
                "time": "14:30",
                "terminal_id": "T0001",
                "location": "Main Entrance",
                "no_tickets": 2,
                "total_amount": "1500.00",
                "trace_no": "123456",
                "reference_no": "",
                "ticket_amount_pp": "750.00",
                "scanned_data": {"extracted_text": "DATE : 29-DEC-2024\n...", "confidence": 87.5},
            }
        }


# ─── Field converters ─────────────────────────────────────────────────────────

def parse_date(value: str, today: Optional[_date] = None) -> str:
    """
    "29-DEC-2024" → "2024-12-29".

    A three-digit day (OCR doubled a digit, "119") keeps its last two digits.
    Anything unparseable becomes today's date.
    """
    today = today or _date.today()
    m = _DATE.search(value or "")
    if m:
        day = int(m.group(1))
        if day > 31:
            day %= 100
        month = MONTHS.get(m.group(2).upper())
        if month:
            try:
                return _date(int(m.group(3)), month, day).isoformat()
            except ValueError:
                pass
    if value:
        logger.warning(f"[PayloadMapper] Unparseable date '{value}', using {today.isoformat()}")
    return today.isoformat()


def parse_time(value: str) -> str:
    """"14:30 HRS" → "14:30"; anything unparseable → "00:00"."""
    m = _TIME.search(value or "")
    if m:
        hours, minutes = int(m.group(1)), int(m.group(2))
        if hours < 24 and minutes < 60:
            return f"{hours:02d}:{minutes:02d}"
    if value:
        logger.warning(f"[PayloadMapper] Unparseable time '{value}', using 00:00")
    return "00:00"


def parse_amount(value: str) -> Optional[float]:
    """
    Parse an amount, currency marker and all.

    Same separator rule as extraction: only the last separator can be a
    decimal point, and a lone separator only when two digits follow.

        "LKR 1,500.00" → 1500.0    "1.500,00" → 1500.0
        "1.500"        → 1500.0    "12.50"    → 12.5

    Returns None when there is no numeral to parse.
    """
    m = _AMOUNT_BODY.search(value or "")
    if not m:
        return None
    parts = split_amount(m.group(0))
    if parts is None:
        return None
    whole, decimals = parts
    return float(f"{whole or '0'}.{decimals or '0'}")


def parse_ticket_count(value: str) -> int:
    """First integer run, else 0."""
    m = _INT_RUN.search(value or "")
    return int(m.group(0)) if m else 0


# ─── Mapper ───────────────────────────────────────────────────────────────────

def map_to_payload(
    record: TicketRecord,
    raw_text: str,
    confidence: float,
    today: Optional[_date] = None,
) -> TicketPayload:
    """
    Build the submission payload for an extracted ticket.

    Args:
        record:     Extracted ticket
        raw_text:   OCR text as recognized (embedded unchanged)
        confidence: OCR confidence 0-100 (embedded unchanged)
        today:      Fallback date for a malformed DATE (defaults to today)

    Returns:
        TicketPayload; INVALID fields are sent as empty strings
    """
    amount_text = record.value(TOTAL_AMOUNT)
    total = parse_amount(amount_text)
    if total is None:
        if amount_text:
            logger.warning(f"[PayloadMapper] Malformed amount '{amount_text}', sending 0.00")
        total = 0.0

    count_text = record.value(NO_TICKETS)
    no_tickets = parse_ticket_count(count_text)

    # Missing count divides by one ticket; an explicit zero yields 0.00.
    divisor = no_tickets if record[NO_TICKETS].is_found else 1
    per_person = f"{total / divisor:.2f}" if divisor > 0 else "0.00"

    payload = TicketPayload(
        date=parse_date(record.value(DATE), today),
        time=parse_time(record.value(TIME)),
        terminal_id=_passthrough(record, TERMINAL_ID),
        location=_passthrough(record, LOCATION),
        no_tickets=no_tickets,
        total_amount=f"{total:.2f}",
        trace_no=_passthrough(record, TRACE_NO),
        reference_no=_passthrough(record, REFERENCE_NO),
        ticket_amount_pp=per_person,
        scanned_data=ScannedData(extracted_text=raw_text, confidence=confidence),
    )
    logger.info(
        f"[PayloadMapper] {payload.date} {payload.time} "
        f"total={payload.total_amount} x{payload.no_tickets} pp={payload.ticket_amount_pp}"
    )
    return payload


def _passthrough(record: TicketRecord, name: str) -> str:
    result = record[name]
    return result.value if result.is_found else ""
