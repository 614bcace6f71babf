"""
Image Compressor for ticket upload.

Shrinks a capture so the ticket store accepts it:
- fit inside max_width x max_height, aspect ratio kept
- JPEG quality backed off from 0.9 in 0.05 steps while the file is too big
  (stops at quality 0.1 or after 20 attempts, whichever comes first)
"""

import base64
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import cv2
from loguru import logger

from ticket_scanner.exceptions import ImageDecodeError
from ticket_scanner.image_preprocessor import ImageInput, load_bitmap

QUALITY_STEP = 0.05
MIN_QUALITY = 0.1
MAX_ATTEMPTS = 20


@dataclass
class CompressionResult:
    """Result of compressing one image."""

    data: bytes                       # JPEG bytes
    original_size: Tuple[int, int]    # (width, height)
    compressed_size: Tuple[int, int]  # (width, height)
    quality: float
    attempts: int
    within_limit: bool

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def to_data_url(self) -> str:
        return "data:image/jpeg;base64," + base64.b64encode(self.data).decode("ascii")


def fit_dimensions(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """Clamp width first, then height, keeping the aspect ratio."""
    aspect = width / height if height else 1.0
    if width > max_width:
        width = max_width
        height = round(width / aspect)
    if height > max_height:
        height = max_height
        width = round(height * aspect)
    return max(1, int(width)), max(1, int(height))


class ImageCompressor:
    """JPEG compression with a quality back-off loop."""

    def __init__(
        self,
        max_size_bytes: int = 1048576,
        max_width: int = 1920,
        max_height: int = 1080,
        initial_quality: float = 0.9,
    ):
        self.max_size_bytes = max_size_bytes
        self.max_width = max_width
        self.max_height = max_height
        self.initial_quality = initial_quality

    @classmethod
    def from_config(cls, config: Dict) -> "ImageCompressor":
        return cls(**config.get('compression', {}))

    def _encode(self, bgr, quality: float) -> bytes:
        ok, buffer = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, int(round(quality * 100))])
        if not ok:
            raise ImageDecodeError("JPEG encoding failed")
        return buffer.tobytes()

    def compress(self, image: ImageInput, max_size_bytes: Optional[int] = None) -> CompressionResult:
        """
        Args:
            image: anything load_bitmap() accepts
            max_size_bytes: override the configured limit

        Returns:
            CompressionResult; within_limit is False when even the lowest
            quality did not fit
        """
        limit = max_size_bytes or self.max_size_bytes
        bitmap = load_bitmap(image)
        h, w = bitmap.shape[:2]

        new_w, new_h = fit_dimensions(w, h, self.max_width, self.max_height)
        bgr = cv2.cvtColor(bitmap, cv2.COLOR_RGBA2BGR)
        if (new_w, new_h) != (w, h):
            bgr = cv2.resize(bgr, (new_w, new_h), interpolation=cv2.INTER_AREA)
            logger.info(f"[Compressor] resize: {w}x{h} -> {new_w}x{new_h}")

        quality = self.initial_quality
        data = self._encode(bgr, quality)
        attempts = 0
        while len(data) > limit and quality > MIN_QUALITY and attempts < MAX_ATTEMPTS:
            quality = round(quality - QUALITY_STEP, 2)
            data = self._encode(bgr, quality)
            attempts += 1

        within_limit = len(data) <= limit
        if not within_limit:
            logger.warning(
                f"[Compressor] Could not compress to {limit} bytes. "
                f"Final size: {len(data)} bytes ({len(data) / 1024:.2f} KB)"
            )
        logger.info(
            f"[Compressor] {len(data) / 1024:.2f} KB "
            f"(quality {quality * 100:.0f}%, size {new_w}x{new_h})"
        )
        return CompressionResult(
            data=data,
            original_size=(w, h),
            compressed_size=(new_w, new_h),
            quality=quality,
            attempts=attempts,
            within_limit=within_limit,
        )
