"""
Tests for OCR Engine
"""

import asyncio
import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ticket_scanner.exceptions import ImageDecodeError, OCRFailedError
from ticket_scanner.ocr_engine import OCREngine, RecognizedText


class PredictBackend:
    """Answers like PaddleOCR 3.x predict()"""

    def __init__(self, texts, scores):
        self.texts = texts
        self.scores = scores
        self.calls = []

    def predict(self, img):
        self.calls.append(img)
        return [{"rec_texts": self.texts, "rec_scores": self.scores}]


class LegacyBackend:
    """Answers like PaddleOCR 2.x ocr()"""

    def __init__(self, lines):
        self.lines = lines

    def ocr(self, img):
        box = [[0, 0], [10, 0], [10, 10], [0, 10]]
        return [[[box, (text, score)] for text, score in self.lines]]


class BrokenBackend:
    def predict(self, img):
        raise RuntimeError("inference crashed")


@pytest.fixture
def sample_image():
    """Create a simple RGBA test image with text"""
    img = np.ones((100, 300, 3), dtype=np.uint8) * 255
    cv2.putText(img, "TRACE NO : 123456", (10, 50),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 0), 2)
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)


def test_predict_format(sample_image):
    backend = PredictBackend(["DATE : 29-DEC-2024", "TRACE NO : 123456"], [0.9, 0.8])
    engine = OCREngine(backend=backend)

    result = engine.recognize_sync(sample_image)

    assert result.text == "DATE : 29-DEC-2024\nTRACE NO : 123456"
    assert result.confidence == pytest.approx(85.0)
    # Backend gets a 3-channel image
    assert backend.calls[0].shape == (100, 300, 3)


def test_legacy_format(sample_image):
    engine = OCREngine(backend=LegacyBackend([("TIME : 1430 HRS", 0.5), ("  ", 0.1)]))

    result = engine.recognize_sync(sample_image)

    assert result.text == "TIME : 1430 HRS"
    assert result.confidence == pytest.approx(50.0)


@pytest.mark.parametrize("backend", [
    PredictBackend([], []),
    LegacyBackend([]),
])
def test_no_text_detected(sample_image, backend):
    result = OCREngine(backend=backend).recognize_sync(sample_image)

    assert result == RecognizedText("", 0.0)
    assert result.is_empty


def test_empty_legacy_page(sample_image):
    class NonePage:
        def ocr(self, img):
            return [None]

    assert OCREngine(backend=NonePage()).recognize_sync(sample_image).is_empty


def test_backend_failure_raises_ocr_failed(sample_image):
    with pytest.raises(OCRFailedError):
        OCREngine(backend=BrokenBackend()).recognize_sync(sample_image)


def test_undecodable_image(sample_image):
    engine = OCREngine(backend=PredictBackend(["x"], [1.0]))
    with pytest.raises(ImageDecodeError):
        engine.recognize_sync(b"not an image")


def test_missing_paddleocr(sample_image, monkeypatch):
    monkeypatch.setitem(sys.modules, "paddleocr", None)
    with pytest.raises(OCRFailedError):
        OCREngine().recognize_sync(sample_image)


def test_language_defaults_to_config():
    assert OCREngine().language == "en"
    assert OCREngine({"ocr": {"lang": "si"}}).language == "si"


def test_async_recognize_reports_progress(sample_image):
    engine = OCREngine(backend=PredictBackend(["TRACE NO : 1"], [0.99]))
    events = []

    result = asyncio.run(engine.recognize(sample_image, progress=events.append))

    assert result.text == "TRACE NO : 1"
    assert [e["progress"] for e in events] == [0.0, 0.1, 1.0]
    assert events[-1]["status"] == "done"


def test_async_recognize_propagates_failure(sample_image):
    engine = OCREngine(backend=BrokenBackend())
    with pytest.raises(OCRFailedError):
        asyncio.run(engine.recognize(sample_image))
