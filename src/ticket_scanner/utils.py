"""
Utility functions for the ticket scanner
"""

import os
import re
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger

ALLOWED_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.bmp', '.webp']
MAX_UPLOAD_MB = 10

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def validate_upload(
    filename: str,
    size_bytes: int,
    allowed_extensions: Optional[List[str]] = None,
    max_size_mb: float = MAX_UPLOAD_MB,
) -> Tuple[bool, str]:
    """
    Check an uploaded capture before decoding it.

    Content is not sniffed here; load_bitmap() rejects undecodable bytes.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if allowed_extensions is None:
        allowed_extensions = ALLOWED_EXTENSIONS

    ext = Path(filename or "").suffix.lower()
    if ext not in allowed_extensions:
        return False, f"Invalid file extension: {ext or '(none)'}. Allowed: {', '.join(allowed_extensions)}"

    if size_bytes == 0:
        return False, "File is empty"

    if size_bytes > max_size_mb * 1024 * 1024:
        return False, f"File too large: {size_bytes / (1024 * 1024):.1f}MB (max {max_size_mb}MB)"

    return True, "Valid"


def sanitize_filename(filename: str, max_length: int = 100) -> str:
    """Strip directories and anything outside [A-Za-z0-9._-] from an upload name."""
    name = os.path.basename((filename or "").replace("\\", "/"))
    name = _UNSAFE_CHARS.sub("_", name)

    if len(name) > max_length:
        stem, ext = os.path.splitext(name)
        name = stem[:max_length - len(ext)] + ext

    return name or "ticket.jpg"


def ensure_directory(dir_path: str) -> str:
    """Create directory if it doesn't exist; return the path."""
    if dir_path:
        Path(dir_path).mkdir(parents=True, exist_ok=True)
    return dir_path


def format_processing_time(milliseconds: int) -> str:
    """Human-readable duration: "456ms" below a second, "1.23s" above."""
    if milliseconds < 1000:
        return f"{milliseconds}ms"
    return f"{milliseconds / 1000:.2f}s"


def format_file_size(size_bytes: int) -> str:
    """e.g. "512 B", "245.12 KB", "1.20 MB"."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.2f} KB"
    return f"{size_bytes / (1024 * 1024):.2f} MB"


def setup_logging(log_file: str = "logs/ticket_scanner.log", level: str = "INFO"):
    """
    Setup logging configuration

    Args:
        log_file: Path to log file (None or "" → console only)
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    logger.remove()

    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=level
    )

    if log_file:
        ensure_directory(os.path.dirname(log_file))
        logger.add(
            log_file,
            rotation="10 MB",
            retention="30 days",
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"
        )

    logger.info("Logging initialized")
