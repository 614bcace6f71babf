"""
Exception hierarchy for the ticket scanner.

Field-not-found and quality-gate rejection are NOT errors; they are normal
results. Only failures at the boundaries (image decoding, the OCR engine,
the ticket store API) raise.
"""

from typing import Optional


class TicketScannerError(Exception):
    """Base class for all ticket scanner errors."""


class ImageDecodeError(TicketScannerError):
    """Raised when the captured image cannot be decoded into a bitmap."""


class OCRFailedError(TicketScannerError):
    """Raised when the OCR engine fails to produce a result."""


class TicketApiError(TicketScannerError):
    """
    Raised by the ticket store client.

    kind is one of: 'duplicate', 'missing_field', 'http', 'connection',
    'invalid_response'.
    """

    def __init__(self, message: str, kind: str = "http", status: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status = status
