"""
Pixel Filters for Ticket OCR
Independent transforms over an RGBA bitmap, numpy-vectorized where the
filter allows it.

A bitmap is a uint8 array of shape (height, width, 4). Every filter takes a
bitmap and returns a new one (possibly with different dimensions); the input
is never modified. Alpha is carried through unchanged except where the canvas
itself changes size (resize, rotate).

FILTERS:
  grayscale()               → luma 0.299R + 0.587G + 0.114B on all RGB channels
  contrast_binarize()       → legacy contrast stretch + fixed 128 threshold
  optimize_dpi()            → upscale from assumed 96 DPI to target DPI
  optimize_text_size()      → rescale so estimated text height ≈ target
  deskew() / rotate()       → coarse skew search, expanded-canvas rotation
  apply_clahe()             → tile-local contrast limited equalization
  apply_otsu_binarization() → automatic global threshold
  apply_median_filter()     → salt-and-pepper removal
  apply_unsharp_mask()      → crude detail enhancement
"""

import math
from typing import List, Tuple

import cv2
import numpy as np
from loguru import logger


SOURCE_DPI = 96                 # assumed DPI of a camera frame / canvas
DPI_SCALE_MIN = 1.1             # upscale only when target/source exceeds this
TEXT_SIZE_MIN_ESTIMATE = 8      # px, floor for the text-size heuristic
TEXT_SCALE_UPPER = 1.2          # rescale when factor > this ...
TEXT_SCALE_LOWER = 0.8          # ... or < this
SKEW_RANGE = 20                 # degrees, candidates are -SKEW_RANGE..+SKEW_RANGE
SKEW_STEP = 5
SKEW_MIN = 1.0                  # degrees, below → no rotation
DARK_LEVEL = 128


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _clamp_u8(values: np.ndarray) -> np.ndarray:
    """Round half-to-even and clamp into [0, 255] as uint8."""
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def luma(bitmap: np.ndarray) -> np.ndarray:
    """Return the float luma plane (height, width) of an RGBA bitmap."""
    rgb = bitmap[..., :3].astype(np.float64)
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


def _with_gray(bitmap: np.ndarray, gray: np.ndarray) -> np.ndarray:
    """Copy of bitmap with the given uint8 plane written to R, G and B."""
    out = bitmap.copy()
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    return out


def _resize(bitmap: np.ndarray, scale: float) -> np.ndarray:
    h, w = bitmap.shape[:2]
    new_w = max(1, int(math.floor(w * scale + 0.5)))
    new_h = max(1, int(math.floor(h * scale + 0.5)))
    interp = cv2.INTER_CUBIC if scale > 1.0 else cv2.INTER_AREA
    return cv2.resize(bitmap, (new_w, new_h), interpolation=interp)


# ─── Grayscale and legacy binarization ────────────────────────────────────────

def grayscale(bitmap: np.ndarray) -> np.ndarray:
    """Replace RGB with luma on every pixel."""
    return _with_gray(bitmap, _clamp_u8(luma(bitmap)))


def contrast_factor(contrast: float) -> float:
    """Contrast-stretch factor 259*(c*100+255) / (255*(259-c*100))."""
    c = contrast * 100
    return (259 * (c + 255)) / (255 * (259 - c))


def contrast_binarize(bitmap: np.ndarray, contrast: float = 1.5) -> np.ndarray:
    """
    Legacy one-step path: luma → linear contrast stretch → fixed threshold.

    enhanced = factor * (gray - 128) + 128, then > 128 → white, else black.
    """
    factor = contrast_factor(contrast)
    enhanced = factor * (luma(bitmap) - 128) + 128
    binary = np.where(enhanced > 128, 255, 0).astype(np.uint8)
    return _with_gray(bitmap, binary)


# ─── Resolution / text size ───────────────────────────────────────────────────

def optimize_dpi(bitmap: np.ndarray, target_dpi: int = 300) -> np.ndarray:
    """
    Upscale the bitmap from the assumed 96 DPI to target_dpi.

    Only upscales, and only when the ratio exceeds 1.1.
    """
    scale = target_dpi / SOURCE_DPI
    if scale <= DPI_SCALE_MIN:
        return bitmap
    logger.debug(f"[Filters] DPI upscale x{scale:.2f}")
    return _resize(bitmap, scale)


def estimate_text_size(width: int, height: int) -> float:
    """Crude text height estimate used by optimize_text_size()."""
    return max(TEXT_SIZE_MIN_ESTIMATE, math.sqrt(width * height) / 20)


def optimize_text_size(bitmap: np.ndarray, target_text_height: int = 32) -> np.ndarray:
    """Rescale the whole bitmap when the estimated text height is off by more than 20%."""
    h, w = bitmap.shape[:2]
    scale = target_text_height / estimate_text_size(w, h)
    if TEXT_SCALE_LOWER <= scale <= TEXT_SCALE_UPPER:
        return bitmap
    logger.debug(f"[Filters] Text-size rescale x{scale:.2f}")
    return _resize(bitmap, scale)


# ─── Rotation / deskew ────────────────────────────────────────────────────────

def _rotation_matrix(width: int, height: int, angle: float,
                     out_w: int, out_h: int) -> np.ndarray:
    # Negative angle: cv2 rotates counter-clockwise, positive degrees here
    # mean clockwise on screen (y axis points down).
    M = cv2.getRotationMatrix2D((width / 2, height / 2), -angle, 1.0)
    M[0, 2] += out_w / 2 - width / 2
    M[1, 2] += out_h / 2 - height / 2
    return M


def rotate(bitmap: np.ndarray, angle: float) -> np.ndarray:
    """
    Rotate clockwise by angle degrees on an expanded canvas.

    The canvas grows to |w cos| + |h sin| by |w sin| + |h cos| so no corner is
    clipped. Uncovered area is filled with opaque white.
    """
    h, w = bitmap.shape[:2]
    rad = math.radians(angle)
    cos, sin = abs(math.cos(rad)), abs(math.sin(rad))
    out_w = max(1, int(w * cos + h * sin))
    out_h = max(1, int(w * sin + h * cos))
    M = _rotation_matrix(w, h, angle, out_w, out_h)
    return cv2.warpAffine(
        bitmap, M, (out_w, out_h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(255, 255, 255, 255),
    )


def _alignment_score(dark: np.ndarray, angle: float) -> float:
    """Sum over sampled rows of |dark count - width/4| after rotating by angle."""
    h, w = dark.shape
    if angle != 0:
        M = _rotation_matrix(w, h, angle, w, h)
        dark = cv2.warpAffine(dark, M, (w, h), flags=cv2.INTER_NEAREST,
                              borderMode=cv2.BORDER_CONSTANT, borderValue=0)
    sampled = dark[::2, ::2]
    row_weights = sampled.sum(axis=1, dtype=np.int64)
    return float(np.abs(row_weights - w / 4).sum())


def skew_candidates() -> List[int]:
    return list(range(-SKEW_RANGE, SKEW_RANGE + 1, SKEW_STEP))


def estimate_skew_angle(bitmap: np.ndarray) -> Tuple[int, List[float]]:
    """
    Score every candidate angle and return (best_angle, scores).

    Lower score wins; ties go to the angle closest to zero.
    """
    dark = (bitmap[..., 0] < DARK_LEVEL).astype(np.uint8)
    candidates = skew_candidates()
    scores = [_alignment_score(dark, a) for a in candidates]
    best = min(zip(scores, (abs(a) for a in candidates), candidates))[2]
    return best, scores


def deskew(bitmap: np.ndarray) -> np.ndarray:
    """Rotate by the estimated skew angle when it exceeds 1 degree."""
    angle, _ = estimate_skew_angle(bitmap)
    if abs(angle) <= SKEW_MIN:
        return bitmap
    logger.debug(f"[Filters] Deskew {angle}°")
    return rotate(bitmap, angle)


# ─── Illumination (CLAHE) ─────────────────────────────────────────────────────

def _clip_histogram(histogram: np.ndarray, clip_threshold: float) -> np.ndarray:
    """
    Clip bins above clip_threshold, spreading each excess over all 256 bins.

    Bins are visited in order, so redistribution can push a later bin over
    the limit before it is visited.
    """
    hist = histogram.astype(np.float64)
    for i in range(256):
        if hist[i] > clip_threshold:
            excess = hist[i] - clip_threshold
            hist[i] = clip_threshold
            hist += excess / 256
    return hist


def apply_clahe(bitmap: np.ndarray, clip_limit: float = 2.0, grid_size: int = 8) -> np.ndarray:
    """
    Contrast Limited Adaptive Histogram Equalization on the luma plane.

    The image is split into grid_size x grid_size tiles; each tile gets its own
    clipped-histogram CDF mapping. Tiles are not blended, so seams between
    tiles are expected.
    """
    gray = _clamp_u8(luma(bitmap))
    h, w = gray.shape
    tile_w = math.ceil(w / grid_size)
    tile_h = math.ceil(h / grid_size)
    out = gray.copy()

    for ty in range(grid_size):
        for tx in range(grid_size):
            x0, y0 = tx * tile_w, ty * tile_h
            x1, y1 = min(x0 + tile_w, w), min(y0 + tile_h, h)
            if x1 <= x0 or y1 <= y0:
                continue

            tile = gray[y0:y1, x0:x1]
            tile_pixels = tile.size
            histogram = np.bincount(tile.ravel(), minlength=256)
            hist = _clip_histogram(histogram, clip_limit * (tile_pixels / 256))

            cdf = np.cumsum(hist)
            mapping = np.clip(np.floor(cdf / tile_pixels * 255 + 0.5), 0, 255).astype(np.uint8)
            out[y0:y1, x0:x1] = mapping[tile]

    return _with_gray(bitmap, out)


# ─── Binarization ─────────────────────────────────────────────────────────────

def otsu_threshold(gray: np.ndarray) -> int:
    """
    Otsu's threshold for a uint8 plane.

    Evaluates every t in [0, 255] for countB * countF * (meanB - meanF)^2 and
    returns the lowest t reaching the maximum (0 when no split exists).
    """
    histogram = np.bincount(gray.ravel(), minlength=256).astype(np.float64)
    total = histogram.sum()
    levels = np.arange(256, dtype=np.float64)

    count_b = np.cumsum(histogram)
    sum_b = np.cumsum(levels * histogram)
    count_f = total - count_b
    valid = (count_b > 0) & (count_f > 0)

    variance = np.zeros(256)
    mean_b = sum_b[valid] / count_b[valid]
    mean_f = (sum_b[-1] - sum_b[valid]) / count_f[valid]
    variance[valid] = count_b[valid] * count_f[valid] * (mean_b - mean_f) ** 2

    if variance.max() <= 0:
        return 0
    return int(np.argmax(variance))


def apply_otsu_binarization(bitmap: np.ndarray) -> np.ndarray:
    """Grayscale, pick Otsu's threshold, map > threshold to 255 and the rest to 0."""
    gray = _clamp_u8(luma(bitmap))
    threshold = otsu_threshold(gray)
    logger.debug(f"[Filters] Otsu threshold={threshold}")
    binary = np.where(gray > threshold, 255, 0).astype(np.uint8)
    return _with_gray(bitmap, binary)


# ─── Denoise / sharpen ────────────────────────────────────────────────────────

def apply_median_filter(bitmap: np.ndarray, kernel_size: int = 3) -> np.ndarray:
    """
    Median filter over the first channel, written back to R, G and B.

    Input is assumed grayscale already. Border pixels reuse the nearest edge
    pixel. For even kernel sizes the upper of the two middle values is used.
    """
    half = kernel_size // 2
    channel = bitmap[..., 0]
    h, w = channel.shape
    padded = np.pad(channel, half, mode='edge')

    window = np.stack([
        padded[dy:dy + h, dx:dx + w]
        for dy in range(2 * half + 1)
        for dx in range(2 * half + 1)
    ])
    window.sort(axis=0)
    median = window[window.shape[0] // 2]
    return _with_gray(bitmap, median)


def _box_blur_flat(values: np.ndarray, passes: int = 3) -> np.ndarray:
    """
    In-place 3-tap sweep along the flat pixel sequence, left to right.

    Each step averages the pixel with its right neighbour and the left
    neighbour already updated in this pass, then rounds. First and last
    pixel are kept. The sweep is sequential, so it cannot be vectorized.
    """
    blurred = [float(v) for v in values]
    n = len(blurred)
    for _ in range(passes):
        for i in range(1, n - 1):
            blurred[i] = float(round((blurred[i] + blurred[i + 1] + blurred[i - 1]) / 3))
    return np.asarray(blurred, dtype=np.float64)


def apply_unsharp_mask(
    bitmap: np.ndarray,
    radius: float = 6.8,
    amount: float = 2.69,
    threshold: float = 0,
) -> np.ndarray:
    """
    Unsharp mask using a crude horizontal blur.

    The blur is three sweeps of 3-tap averaging over the flattened first
    channel, so radius does not change the result. Only pixels where
    |original - blurred| > threshold are written: R, G and B all become
    original + (original - blurred) * amount, clamped to [0, 255]. Every
    other pixel keeps its colour.
    """
    h, w = bitmap.shape[:2]
    original = bitmap[..., 0].astype(np.float64).ravel()
    blurred = _box_blur_flat(original)
    diff = original - blurred

    mask = (np.abs(diff) > threshold).reshape(h, w)
    sharpened = _clamp_u8(original + diff * amount).reshape(h, w)
    out = bitmap.copy()
    out[mask, 0:3] = sharpened[mask][:, None]
    return out
