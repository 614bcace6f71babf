"""
Tests for the OCR debugging helpers
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ticket_scanner import ocr_debug
from ticket_scanner.ocr_debug import (
    DebugInfo,
    analyze_ocr_quality,
    format_debug_display,
    get_field_pattern,
    log_ocr_debug,
    validate_extracted_data,
)

CLEAN_TEXT = (
    "DATE : 29-DEC-2024\n"
    "TIME : 1430 HRS\n"
    "TERMINAL ID : T0001\n"
    "LOCATION : Main Entrance\n"
    "TRACE NO : 123456"
)


def test_quality_of_clean_text():
    report = analyze_ocr_quality(CLEAN_TEXT, 90.0)

    assert report["score"] == 100
    assert report["issues"] == ["Text recognized successfully"]
    assert report["suggestions"] == ["Image quality is good"]


def test_quality_of_nothing():
    report = analyze_ocr_quality("", 30.0)

    assert report["score"] == 0
    assert "Very low confidence score" in report["issues"]
    assert "No text detected in image" in report["issues"]
    assert "Key field labels not detected" in report["issues"]


def test_quality_low_confidence_only():
    report = analyze_ocr_quality(CLEAN_TEXT, 60.0)

    assert report["score"] == 80
    assert report["issues"] == ["Low confidence score"]


def test_quality_special_characters():
    text = CLEAN_TEXT + "\n%$#@!&*(){}[]<>"
    report = analyze_ocr_quality(text, 90.0)

    assert "High number of special characters (likely OCR errors)" in report["issues"]
    assert report["score"] == 85


def test_validate_extracted_data():
    result = validate_extracted_data({
        "DATE": "29-DEC-2024",
        "TIME": "--",
        "TERMINAL ID": "RESCAN NEEDED",
    })

    assert result["complete"] == ["DATE"]
    assert result["incomplete"] == ["TIME"]
    assert result["missing"] == [
        "TERMINAL ID", "LOCATION", "NO. TICKETS", "TOTAL AMOUNT", "TRACE NO", "REFFERENCE NO",
    ]


def test_get_field_pattern():
    info = get_field_pattern("TOTAL AMOUNT")

    assert info["name"] == "TOTAL AMOUNT"
    assert len(info["patterns"]) == 2
    assert "LKR" in info["description"]
    assert get_field_pattern("BALANCE")["patterns"] == []


def test_pattern_report():
    report = ocr_debug.match_field_patterns("TIME", "TIME : 1430 HRS")

    assert report["found"] is True
    assert [p["matched"] for p in report["patterns"]] == [False, True]
    assert report["patterns"][1]["capture"] == "14"


def test_debug_display_and_log():
    info = DebugInfo(
        raw_ocr_text=CLEAN_TEXT,
        cleaned_text=CLEAN_TEXT,
        extracted_fields={"DATE": "29-DEC-2024", "TIME": "", "TERMINAL ID": "RESCAN NEEDED"},
        confidence_score=87.5,
        width=640,
        height=480,
        size="120.00 KB",
        processing_time_ms=850,
    )

    display = format_debug_display(info)

    assert "Confidence: 87.50%" in display
    assert "Image: 640x480 (120.00 KB)" in display
    assert "✓ DATE: 29-DEC-2024" in display
    assert "✗ TIME: (empty)" in display
    assert "✗ TERMINAL ID: RESCAN NEEDED" in display

    log_ocr_debug(info)
