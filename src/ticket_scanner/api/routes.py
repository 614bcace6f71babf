"""
API Routes - All API endpoints

    POST /tickets/scan     image → corrected text, record, gate decision, payload
    POST /tickets/extract  text  → record, gate decision, payload
    POST /tickets/debug    text  → quality score, completeness, pattern report
    POST /tickets/submit   image + confirmed fields → ticket store
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Dict

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from loguru import logger

from ticket_scanner.api.models import (
    DebugResponse,
    ErrorResponse,
    ExtractRequest,
    ExtractResponse,
    ScanResponse,
    SubmitResponse,
)
from ticket_scanner.config import load_config
from ticket_scanner.exceptions import ImageDecodeError, TicketApiError
from ticket_scanner.extractor import FIELD_NAMES, TicketRecord
from ticket_scanner.image_compressor import ImageCompressor
from ticket_scanner.ocr_debug import (
    DebugInfo,
    analyze_ocr_quality,
    format_debug_display,
    log_ocr_debug,
    match_field_patterns,
    validate_extracted_data,
)
from ticket_scanner.payload_mapper import map_to_payload
from ticket_scanner.ticket_client import TicketApiClient
from ticket_scanner.ticket_processor import TicketProcessor
from ticket_scanner.utils import (
    format_file_size,
    format_processing_time,
    sanitize_filename,
    validate_upload,
)

router = APIRouter()

# Store error kind → HTTP status returned to our caller
API_ERROR_STATUS = {
    "duplicate": 409,
    "missing_field": 400,
    "connection": 503,
    "invalid_response": 502,
    "http": 502,
}


# ==================== DEPENDENCIES ====================

@lru_cache
def get_config() -> Dict:
    return load_config()


@lru_cache
def get_processor() -> TicketProcessor:
    return TicketProcessor(get_config())


def get_client() -> TicketApiClient:
    return TicketApiClient.from_config(get_config())


def get_compressor() -> ImageCompressor:
    return ImageCompressor.from_config(get_config())


# ==================== UTILITY FUNCTIONS ====================

async def read_upload(file: UploadFile) -> bytes:
    """Validate and read an uploaded image"""
    if not file.filename:
        raise HTTPException(400, detail="No filename provided")

    content = await file.read()
    is_valid, message = validate_upload(file.filename, len(content))
    if not is_valid:
        raise HTTPException(400, detail=message)
    return content


# ==================== API ENDPOINTS ====================

@router.post("/tickets/scan", response_model=ScanResponse, tags=["Tickets"])
async def scan_ticket(
    file: UploadFile = File(..., description="Ticket image"),
    advanced: bool = Form(False, description="Use the advanced preprocessing pipeline"),
    processor: TicketProcessor = Depends(get_processor),
):
    """
    **Scan a ticket image**

    Preprocesses the capture, runs OCR, corrects the text, extracts the
    ticket fields and evaluates the quality gate.

    `status` is `rejected` when too many critical fields are missing
    (recapture the ticket) and `error` when the image or OCR failed.

    **Example:**
    ```bash
    curl -X POST http://localhost:8000/api/v1/tickets/scan \\
      -F "file=@ticket.jpg" \\
      -F "advanced=false"
    ```
    """
    content = await read_upload(file)
    filename = sanitize_filename(file.filename)
    logger.info(f"Processing: {filename} ({format_file_size(len(content))}, advanced={advanced})")

    try:
        result = await processor.scan(content, advanced=advanced)
    except Exception as e:
        logger.error(f"Error processing {filename}: {e}")
        raise HTTPException(500, str(e))

    logger.info(f"{filename}: {result.status} in {format_processing_time(result.processing_time_ms)}")
    return ScanResponse(filename=filename, **result.to_dict())


@router.post("/tickets/extract", response_model=ExtractResponse, tags=["Tickets"])
async def extract_ticket(
    request: ExtractRequest,
    processor: TicketProcessor = Depends(get_processor),
):
    """
    **Extract ticket fields from recognized text**

    For clients that run OCR themselves.
    """
    result = processor.process_text(request.text, request.confidence)
    return ExtractResponse(
        status=result.status,
        corrected_text=result.corrected_text,
        record=result.record.as_dict(),
        decision=result.decision.to_dict(),
        payload=result.payload,
    )


@router.post("/tickets/debug", response_model=DebugResponse, tags=["Debug"])
async def debug_ticket(
    request: ExtractRequest,
    processor: TicketProcessor = Depends(get_processor),
):
    """
    **Diagnose a recognized text**

    Quality score with suggestions, field completeness, the correction
    rules that fired and what each extraction pattern captured.
    """
    result = processor.process_text(request.text, request.confidence)
    fields = result.record.as_dict()
    patterns = {
        name: match_field_patterns(name, result.corrected_text, processor.extractor)
        for name in FIELD_NAMES
    }

    info = DebugInfo(
        raw_ocr_text=request.text,
        cleaned_text=result.corrected_text,
        extracted_fields=fields,
        confidence_score=request.confidence,
        processing_time_ms=result.processing_time_ms,
        field_match_details={
            name: processor.extractor.match_patterns(name, result.corrected_text)
            for name in FIELD_NAMES
        },
    )
    log_ocr_debug(info)

    return DebugResponse(
        quality=analyze_ocr_quality(request.text, request.confidence),
        completeness=validate_extracted_data(fields),
        corrections=processor.corrector.correction_report(request.text),
        patterns=patterns,
        display=format_debug_display(info),
    )


@router.post(
    "/tickets/submit",
    response_model=SubmitResponse,
    responses={422: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    tags=["Tickets"],
)
async def submit_ticket(
    file: UploadFile = File(..., description="Ticket image"),
    fields: str = Form(..., description="Ticket fields as a JSON object (display strings)"),
    raw_text: str = Form("", description="Raw OCR text"),
    confidence: float = Form(0.0, description="OCR confidence (0-100)"),
    processor: TicketProcessor = Depends(get_processor),
    client: TicketApiClient = Depends(get_client),
    compressor: ImageCompressor = Depends(get_compressor),
):
    """
    **Submit a confirmed ticket to the ticket store**

    The fields are re-checked by the quality gate (they may have been edited
    by the operator); a rejected ticket is answered with 422 and never
    forwarded. The image is compressed to the store's upload limit first.
    """
    content = await read_upload(file)

    try:
        data = json.loads(fields)
    except json.JSONDecodeError as e:
        raise HTTPException(400, detail=f"fields is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise HTTPException(400, detail="fields must be a JSON object")

    record = TicketRecord.from_dict(data)
    decision = processor.quality_gate.evaluate(record)
    if not decision.accepted:
        raise HTTPException(
            422,
            detail=f"Ticket incomplete, missing: {', '.join(decision.missing_fields)}",
        )

    payload = map_to_payload(record, raw_text, confidence)

    try:
        compressed = compressor.compress(content)
        ticket = client.create_ticket_with_image(
            payload,
            compressed.data,
            filename=Path(sanitize_filename(file.filename)).stem + ".jpg",
        )
    except ImageDecodeError as e:
        raise HTTPException(400, detail=str(e))
    except TicketApiError as e:
        raise HTTPException(API_ERROR_STATUS.get(e.kind, 502), detail=str(e))

    return SubmitResponse(
        ticket=ticket,
        image_bytes=compressed.size_bytes,
        image_quality=compressed.quality,
    )
