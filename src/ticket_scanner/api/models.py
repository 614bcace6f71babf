"""
API Models — Request and Response schemas
Using Pydantic for automatic validation and documentation
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ticket_scanner.payload_mapper import TicketPayload


# ─── Shared ───────────────────────────────────────────────────────────────────

class QualityDecisionModel(BaseModel):
    accepted: bool            = Field(..., description="True when the ticket can be submitted")
    missing_fields: List[str] = Field(default_factory=list, description="Critical fields that are empty or invalid")


# ─── Requests ─────────────────────────────────────────────────────────────────

class ExtractRequest(BaseModel):
    """Recognized text to run through correction and extraction."""
    text: str         = Field(..., description="Raw OCR text")
    confidence: float = Field(0.0, description="OCR confidence (0-100)", ge=0, le=100)

    class Config:
        json_schema_extra = {
            "example": {
                "text": "DATE : 29-DEC-2024\nTIME : 1430 HRS\nTERMINAL [ID] : T0O1\n"
                        "LOCATION : Main Entrance\nNO. TICKETS : 02\n"
                        "TOTAL AMOUNT : LKR 1,500.00\nTRACE NO : 123456",
                "confidence": 87.5,
            }
        }


# ─── Responses ────────────────────────────────────────────────────────────────

class ScanResponse(BaseModel):
    """Full scan of an uploaded capture."""
    status: str           = Field(..., description="'success' | 'rejected' | 'error'")
    filename: str         = Field(..., description="Processed filename")
    raw_text: str         = Field("", description="Text as recognized by OCR")
    corrected_text: str   = Field("", description="Text after OCR corrections")
    confidence: float     = Field(0.0, description="OCR confidence (0-100)")
    record: Optional[Dict[str, str]] = Field(None, description="Extracted ticket fields")
    decision: Optional[QualityDecisionModel] = Field(None, description="Quality gate decision")
    payload: Optional[TicketPayload] = Field(None, description="Submission payload")
    applied: List[str]    = Field(default_factory=list, description="Preprocessing stages applied")
    processing_time_ms: int = Field(0, description="Processing time in milliseconds")
    error: Optional[str]  = Field(None, description="Failure reason when status is 'error'")


class ExtractResponse(BaseModel):
    """Correction + extraction of already-recognized text."""
    status: str           = Field(..., description="'success' | 'rejected'")
    corrected_text: str   = Field(..., description="Text after OCR corrections")
    record: Dict[str, str] = Field(..., description="Extracted ticket fields")
    decision: QualityDecisionModel
    payload: TicketPayload


class SubmitResponse(BaseModel):
    """Ticket accepted by the ticket store."""
    status: str              = Field("success", description="Response status")
    ticket: Dict[str, Any]   = Field(..., description="Ticket as stored")
    image_bytes: int         = Field(..., description="Uploaded (compressed) image size")
    image_quality: float     = Field(..., description="Final JPEG quality (0-1)")


class DebugResponse(BaseModel):
    """Diagnostics for a recognized text."""
    quality: Dict[str, Any]          = Field(..., description="Heuristic OCR quality score")
    completeness: Dict[str, List[str]] = Field(..., description="complete / incomplete / missing fields")
    corrections: List[Dict[str, Any]] = Field(default_factory=list, description="Correction rules that fired")
    patterns: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Per-field pattern matches")
    display: str                     = Field("", description="Plain-text summary")


class HealthResponse(BaseModel):
    status: str  = Field("healthy", description="Service status")
    service: str = Field("ticket-scanner-api", description="Service name")
    version: str = Field(..., description="API version")


class ErrorResponse(BaseModel):
    status: str = Field("error", description="Response status")
    detail: str = Field(..., description="Error detail")
