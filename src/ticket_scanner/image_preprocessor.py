"""
Ticket Image Preprocessor
Turns a captured camera frame into an OCR-friendly bitmap.

TWO PATHS:
  preprocess_legacy()   → one step: grayscale → contrast stretch → fixed threshold
                          (default, fast, what the scanner has always shipped)
  preprocess_advanced() → staged pipeline, each stage behind its own toggle:
                            1. DPI normalization        (resize_before_processing)
                            2. text-height normalization (resize_before_processing)
                            3. CLAHE illumination fix
                            4. unsharp mask
                            5. deskew
                            6. Otsu binarization
                            7. median denoise
                          Stage order is fixed; toggles only skip stages.

Both paths are pure: a new bitmap comes back, nothing is kept between calls.
"""

import base64
import binascii
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional, Union

import cv2
import numpy as np
from loguru import logger

from ticket_scanner import pixel_filters as pf
from ticket_scanner.exceptions import ImageDecodeError


ImageInput = Union[np.ndarray, bytes, bytearray, str, Path]


# ─── Options / result ─────────────────────────────────────────────────────────

@dataclass
class ProcessingOptions:
    """Knobs for the advanced pipeline."""
    target_dpi: int = 300
    target_text_height: int = 32
    enable_deskew: bool = True
    enable_illumination_fix: bool = True
    enable_binarization: bool = True
    enable_denoising: bool = True
    enable_unsharp_mask: bool = True
    unsharp_mask_radius: float = 6.8
    unsharp_mask_amount: float = 2.69
    unsharp_mask_threshold: float = 0.0
    resize_before_processing: bool = True

    @classmethod
    def from_config(cls, section: Optional[Dict]) -> "ProcessingOptions":
        """Build from the `preprocessing` config section, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (section or {}).items() if k in known})


@dataclass
class PreprocessResult:
    bitmap: np.ndarray
    applied: List[str] = field(default_factory=list)  # stage names, in order

    @property
    def width(self) -> int:
        return int(self.bitmap.shape[1])

    @property
    def height(self) -> int:
        return int(self.bitmap.shape[0])


# ─── Loading ──────────────────────────────────────────────────────────────────

def _to_rgba(img: np.ndarray, bgr: bool) -> np.ndarray:
    """Normalize a 1/3/4-channel image to uint8 RGBA; 16-bit keeps its high byte."""
    if img.dtype == np.uint16:
        img = (img >> 8).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    if img.ndim == 3 and img.shape[2] == 1:
        return cv2.cvtColor(img[..., 0], cv2.COLOR_GRAY2RGBA)
    if img.ndim == 3 and img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA if bgr else cv2.COLOR_RGB2RGBA)
    if img.ndim == 3 and img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA) if bgr else img.copy()

    raise ImageDecodeError(f"Unsupported image shape: {img.shape}")


def _decode_bytes(data: bytes) -> np.ndarray:
    buf = np.frombuffer(data, dtype=np.uint8)
    # IMREAD_COLOR applies EXIF orientation and reduces to 8-bit BGR
    img = cv2.imdecode(buf, cv2.IMREAD_COLOR) if buf.size else None
    if img is None:
        raise ImageDecodeError("Cannot decode image bytes")
    return _to_rgba(img, bgr=True)


def _decode_data_url(url: str) -> np.ndarray:
    _, sep, payload = url.partition(",")
    if not sep:
        raise ImageDecodeError("Malformed data URL")
    try:
        raw = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Invalid base64 in data URL: {e}") from e
    return _decode_bytes(raw)


def load_bitmap(image: ImageInput) -> np.ndarray:
    """
    Load any supported capture into an RGBA bitmap.

    Args:
        image: ndarray (grayscale, RGB or RGBA), encoded image bytes,
               a `data:image/...;base64,` URL, or a file path

    Returns:
        uint8 array of shape (height, width, 4)

    Raises:
        ImageDecodeError: the input cannot be turned into a bitmap
    """
    if isinstance(image, np.ndarray):
        if image.size == 0:
            raise ImageDecodeError("Empty image array")
        return _to_rgba(image, bgr=False)

    if isinstance(image, (bytes, bytearray)):
        return _decode_bytes(bytes(image))

    if isinstance(image, str) and image.startswith("data:"):
        return _decode_data_url(image)

    if isinstance(image, (str, Path)):
        path = Path(image)
        if not path.is_file():
            raise ImageDecodeError(f"Cannot read image: {path}")
        return _decode_bytes(path.read_bytes())

    raise ImageDecodeError(f"Unsupported image input: {type(image).__name__}")


# ─── Main class ───────────────────────────────────────────────────────────────

class ImagePreprocessor:
    """
    Ticket image preprocessor.

    Holds only the default options; every call works on its own bitmap.
    """

    LEGACY_CONTRAST = 1.5
    CLAHE_CLIP_LIMIT = 2.0
    CLAHE_GRID_SIZE = 8
    MEDIAN_KERNEL = 3

    def __init__(self, options: Optional[ProcessingOptions] = None, advanced: bool = False):
        self.options = options or ProcessingOptions()
        self.advanced = advanced
        logger.info(f"[Preprocessor] initialized (mode={'advanced' if advanced else 'legacy'})")

    @classmethod
    def from_config(cls, config: Dict) -> "ImagePreprocessor":
        section = config.get('preprocessing', {})
        return cls(ProcessingOptions.from_config(section), advanced=bool(section.get('advanced', False)))

    # ── Public API ────────────────────────────────────────────────────────────

    def preprocess(
        self,
        bitmap: np.ndarray,
        advanced: Optional[bool] = None,
        options: Optional[ProcessingOptions] = None,
    ) -> PreprocessResult:
        """
        Run the legacy or advanced path.

        Args:
            bitmap:   RGBA input (left untouched)
            advanced: pick the advanced pipeline; None → instance default
            options:  advanced pipeline options; None → instance default
        """
        use_advanced = self.advanced if advanced is None else advanced
        if use_advanced:
            return self.preprocess_advanced(bitmap, options)
        return self.preprocess_legacy(bitmap)

    def preprocess_legacy(self, bitmap: np.ndarray) -> PreprocessResult:
        """Grayscale → contrast stretch (1.5) → threshold at 128."""
        out = pf.contrast_binarize(bitmap, contrast=self.LEGACY_CONTRAST)
        logger.info(f"[Preprocessor] legacy binarize {out.shape[1]}x{out.shape[0]}")
        return PreprocessResult(out, ["legacy_binarize"])

    def preprocess_advanced(
        self,
        bitmap: np.ndarray,
        options: Optional[ProcessingOptions] = None,
    ) -> PreprocessResult:
        opts = options or self.options
        h, w = bitmap.shape[:2]
        img = bitmap
        applied: List[str] = []

        if opts.resize_before_processing:
            img = pf.optimize_dpi(img, opts.target_dpi)
            applied.append(f"dpi({opts.target_dpi})")
            img = pf.optimize_text_size(img, opts.target_text_height)
            applied.append(f"text_size({opts.target_text_height}px)")

        if opts.enable_illumination_fix:
            img = pf.apply_clahe(img, self.CLAHE_CLIP_LIMIT, self.CLAHE_GRID_SIZE)
            applied.append("clahe")

        if opts.enable_unsharp_mask:
            img = pf.apply_unsharp_mask(
                img,
                radius=opts.unsharp_mask_radius,
                amount=opts.unsharp_mask_amount,
                threshold=opts.unsharp_mask_threshold,
            )
            applied.append("unsharp_mask")

        if opts.enable_deskew:
            img = pf.deskew(img)
            applied.append("deskew")

        if opts.enable_binarization:
            img = pf.apply_otsu_binarization(img)
            applied.append("otsu")

        if opts.enable_denoising:
            img = pf.apply_median_filter(img, self.MEDIAN_KERNEL)
            applied.append("median")

        # Every stage returns a new array; make sure the caller's bitmap is
        # never handed back when all stages were skipped.
        if img is bitmap:
            img = bitmap.copy()

        logger.info(
            f"[Preprocessor] {w}x{h} → {img.shape[1]}x{img.shape[0]} "
            f"applied: {', '.join(applied) or 'none'}"
        )
        return PreprocessResult(img, applied)
