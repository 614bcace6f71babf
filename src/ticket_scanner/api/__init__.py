"""
API Package
Contains FastAPI routes and models
"""

from ticket_scanner.api.routes import router
from ticket_scanner.api.models import (
    ScanResponse,
    ExtractRequest,
    ExtractResponse,
    SubmitResponse,
    DebugResponse,
    HealthResponse,
    ErrorResponse
)

__all__ = [
    'router',
    'ScanResponse',
    'ExtractRequest',
    'ExtractResponse',
    'SubmitResponse',
    'DebugResponse',
    'HealthResponse',
    'ErrorResponse'
]
