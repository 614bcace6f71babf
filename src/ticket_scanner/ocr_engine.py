"""
OCR Engine adapter
Wraps PaddleOCR as a black box: bitmap in, text plus confidence out.

PaddleOCR is imported and instantiated lazily (one instance per language) so
the rest of the pipeline, and the tests, run without the model installed.
A backend object can be injected instead; it only needs `predict(img)` (the
PaddleOCR 3.x API) or `ocr(img)` (the 2.x API).
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

import cv2
import numpy as np
from loguru import logger

from ticket_scanner.config import default_config
from ticket_scanner.exceptions import OCRFailedError, TicketScannerError
from ticket_scanner.image_preprocessor import ImageInput, load_bitmap


ProgressCallback = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class RecognizedText:
    text: str
    confidence: float   # 0-100

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


class OCREngine:
    """
    Ticket OCR engine powered by PaddleOCR.

    Lines are joined top-to-bottom with newlines; confidence is the mean
    line score scaled to 0-100.
    """

    def __init__(self, config: Optional[Dict] = None, backend: Any = None):
        """
        Args:
            config:  Full scanner config (only the `ocr` section is used)
            backend: Pre-built OCR object used for every language
        """
        self.config = config or default_config()
        self.backend = backend
        self._instances: Dict[str, Any] = {}
        logger.info(f"[OCR] Engine ready (backend={'injected' if backend is not None else 'paddleocr, lazy'})")

    @property
    def language(self) -> str:
        return self.config.get('ocr', {}).get('lang', 'en')

    # ── Backend ───────────────────────────────────────────────────────────────

    def _initialize_ocr(self, language: str) -> Any:
        """Create a PaddleOCR instance for one language."""
        try:
            from paddleocr import PaddleOCR
        except ImportError as e:
            logger.error(f"[OCR] Missing dependency: {e}")
            logger.info("[OCR] Install with: pip install 'ticket-scanner[paddle]'")
            raise OCRFailedError(f"PaddleOCR is not installed: {e}") from e

        ocr_config = self.config.get('ocr', {})
        init_params = {
            'lang': language,
            'use_textline_orientation': ocr_config.get('use_textline_orientation', True),
            'device': ocr_config.get('device', 'cpu'),
        }
        logger.info(f"[OCR] Initializing PaddleOCR: {init_params}")
        try:
            instance = PaddleOCR(**init_params)
        except Exception as e:
            logger.error(f"[OCR] Failed to initialize PaddleOCR: {e}")
            raise OCRFailedError(f"Failed to initialize PaddleOCR: {e}") from e
        logger.success(f"[OCR] PaddleOCR model loaded ({language})")
        return instance

    def _get_backend(self, language: str) -> Any:
        if self.backend is not None:
            return self.backend
        if language not in self._instances:
            self._instances[language] = self._initialize_ocr(language)
        return self._instances[language]

    # ── Recognition ───────────────────────────────────────────────────────────

    def recognize_sync(self, image: ImageInput, language: Optional[str] = None) -> RecognizedText:
        """
        Blocking recognition.

        Args:
            image:    RGBA bitmap, encoded bytes, file path or data URL
            language: OCR language (defaults to the configured one)

        Raises:
            ImageDecodeError: image cannot be loaded
            OCRFailedError:   the engine failed
        """
        language = language or self.language
        bitmap = load_bitmap(image)
        bgr = cv2.cvtColor(bitmap, cv2.COLOR_RGBA2BGR)
        backend = self._get_backend(language)

        try:
            if hasattr(backend, 'predict'):
                result = backend.predict(bgr)
            else:
                result = backend.ocr(bgr)
        except TicketScannerError:
            raise
        except Exception as e:
            logger.error(f"[OCR] Recognition failed: {e}")
            raise OCRFailedError(f"OCR recognition failed: {e}") from e

        lines = self._parse_ocr_result(result)
        if not lines:
            logger.warning("[OCR] No text detected")
            return RecognizedText("", 0.0)

        text = "\n".join(line['text'] for line in lines)
        confidence = round(float(np.mean([line['confidence'] for line in lines])) * 100, 2)
        logger.info(f"[OCR] {len(lines)} lines, confidence={confidence:.2f}%")
        return RecognizedText(text, confidence)

    async def recognize(
        self,
        image: ImageInput,
        language: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> RecognizedText:
        """
        Recognize text without blocking the event loop.

        language defaults to the configured `ocr.lang` ("en").
        progress, when given, receives {"status": str, "progress": 0..1}.
        """
        _report(progress, "initializing", 0.0)
        _report(progress, "recognizing text", 0.1)
        result = await asyncio.to_thread(self.recognize_sync, image, language)
        _report(progress, "done", 1.0)
        return result

    def _parse_ocr_result(self, result: Any) -> List[Dict]:
        """
        Flatten a PaddleOCR result into [{'text', 'confidence' (0-1)}].

        3.x: list of page results holding parallel `rec_texts` / `rec_scores`.
        2.x: list of pages, each a list of [bbox, (text, score)] (page may be None).
        """
        lines: List[Dict] = []
        for page in result or []:
            if not page:
                continue
            if isinstance(page, Mapping) or hasattr(page, 'keys'):
                texts = page.get('rec_texts') or []
                scores = page.get('rec_scores')
                if scores is None:
                    scores = [0.0] * len(texts)
                for text, score in zip(texts, scores):
                    if str(text).strip():
                        lines.append({'text': str(text), 'confidence': float(score)})
            else:
                for line in page:
                    text, score = line[1][0], line[1][1]
                    if str(text).strip():
                        lines.append({'text': str(text), 'confidence': float(score)})
        return lines


def _report(progress: Optional[ProgressCallback], status: str, value: float) -> None:
    if progress is not None:
        progress({"status": status, "progress": value})
