"""
Extractor package — table-driven field extraction for entrance tickets.

Usage
-----
from ticket_scanner.extractor import TicketExtractor
record = TicketExtractor().extract(corrected_text)
record.as_dict()   # {"DATE": "29-DEC-2024", ..., "REFFERENCE NO": ""}
"""

from ticket_scanner.extractor.fields import (
    DATE,
    TIME,
    TERMINAL_ID,
    LOCATION,
    NO_TICKETS,
    TOTAL_AMOUNT,
    TRACE_NO,
    REFERENCE_NO,
    FIELD_NAMES,
    RESCAN_NEEDED,
    PLACEHOLDER,
    FieldStatus,
    FieldResult,
    TicketRecord,
)
from ticket_scanner.extractor.rules import (
    FIELD_RULES,
    FieldRule,
    split_amount,
    format_amount,
    normalize_terminal_id,
)
from ticket_scanner.extractor.ticket_extractor import TicketExtractor

__all__ = [
    "DATE", "TIME", "TERMINAL_ID", "LOCATION", "NO_TICKETS", "TOTAL_AMOUNT",
    "TRACE_NO", "REFERENCE_NO", "FIELD_NAMES", "RESCAN_NEEDED", "PLACEHOLDER",
    "FieldStatus", "FieldResult", "TicketRecord",
    "FIELD_RULES", "FieldRule", "split_amount", "format_amount", "normalize_terminal_id",
    "TicketExtractor",
]
