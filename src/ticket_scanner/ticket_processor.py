"""
Integrated Ticket Processing Pipeline
Combines preprocessing, OCR, correction, extraction, the quality gate and
payload mapping into one scan call.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from ticket_scanner.config import load_config
from ticket_scanner.exceptions import TicketScannerError
from ticket_scanner.extractor import TicketExtractor, TicketRecord
from ticket_scanner.image_preprocessor import (
    ImageInput,
    ImagePreprocessor,
    ProcessingOptions,
    load_bitmap,
)
from ticket_scanner.ocr_engine import OCREngine, ProgressCallback
from ticket_scanner.payload_mapper import TicketPayload, map_to_payload
from ticket_scanner.quality_gate import QualityDecision, QualityGate
from ticket_scanner.text_corrector import TicketTextCorrector


@dataclass
class ScanResult:
    """
    Outcome of one scan.

    status: 'success'  → gate accepted, payload ready
            'rejected' → gate rejected, recapture the ticket
            'error'    → image or OCR failure, record is None
    """
    status: str
    raw_text: str = ""
    corrected_text: str = ""
    confidence: float = 0.0
    record: Optional[TicketRecord] = None
    decision: Optional[QualityDecision] = None
    payload: Optional[TicketPayload] = None
    applied: List[str] = field(default_factory=list)
    processing_time_ms: int = 0
    error: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> Dict:
        return {
            "status": self.status,
            "raw_text": self.raw_text,
            "corrected_text": self.corrected_text,
            "confidence": self.confidence,
            "record": self.record.as_dict() if self.record is not None else None,
            "decision": self.decision.to_dict() if self.decision is not None else None,
            "payload": self.payload.model_dump() if self.payload is not None else None,
            "applied": list(self.applied),
            "processing_time_ms": self.processing_time_ms,
            "error": self.error,
        }


class TicketProcessor:
    """
    End-to-end ticket processing pipeline

    Workflow:
    1. Load the capture into a bitmap
    2. Preprocess (legacy or advanced)
    3. Recognize text (the only async step)
    4. Correct → extract → quality gate → payload
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        ocr_engine: Optional[OCREngine] = None,
    ):
        """Initialize all processing components"""
        logger.info("Initializing Ticket Processor Pipeline")
        self.config = config if config is not None else load_config()

        self.preprocessor = ImagePreprocessor.from_config(self.config)
        self.ocr_engine = ocr_engine or OCREngine(self.config)
        self.corrector = TicketTextCorrector()
        self.extractor = TicketExtractor()
        self.quality_gate = QualityGate.from_config(self.config)

        logger.success("Ticket Processor ready")

    async def scan(
        self,
        image: ImageInput,
        advanced: Optional[bool] = None,
        options: Optional[ProcessingOptions] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ScanResult:
        """
        Scan one ticket capture.

        Args:
            image:    bitmap, encoded bytes, file path or data URL
            advanced: use the advanced preprocessing pipeline (None → config)
            options:  advanced pipeline options (None → config)
            progress: OCR progress callback

        Returns:
            ScanResult; failures come back as status 'error', never raised
        """
        start_time = time.time()

        try:
            bitmap = load_bitmap(image)
            prepared = self.preprocessor.preprocess(bitmap, advanced=advanced, options=options)
            recognized = await self.ocr_engine.recognize(prepared.bitmap, progress=progress)
        except TicketScannerError as e:
            logger.error(f"[Processor] Scan failed: {e}")
            return ScanResult(
                status="error",
                error=str(e),
                processing_time_ms=int((time.time() - start_time) * 1000),
            )

        result = self.process_text(recognized.text, recognized.confidence)
        result.applied = prepared.applied
        result.processing_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"[Processor] Scan {result.status} in {result.processing_time_ms}ms")
        return result

    def process_text(self, raw_text: str, confidence: float) -> ScanResult:
        """Run correction, extraction, the gate and mapping on recognized text."""
        start_time = time.time()

        corrected = self.corrector.correct(raw_text)
        record = self.extractor.extract(corrected)
        decision = self.quality_gate.evaluate(record)
        payload = map_to_payload(record, raw_text, confidence)

        return ScanResult(
            status="success" if decision.accepted else "rejected",
            raw_text=raw_text,
            corrected_text=corrected,
            confidence=confidence,
            record=record,
            decision=decision,
            payload=payload,
            processing_time_ms=int((time.time() - start_time) * 1000),
        )
