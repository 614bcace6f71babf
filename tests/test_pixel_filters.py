"""
Tests for the pixel filters
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ticket_scanner import pixel_filters as pf


def make_bitmap(gray, width=40, height=30, alpha=255):
    """Uniform RGBA bitmap."""
    bmp = np.full((height, width, 4), gray, dtype=np.uint8)
    bmp[..., 3] = alpha
    return bmp


def is_gray(bitmap):
    return (np.array_equal(bitmap[..., 0], bitmap[..., 1])
            and np.array_equal(bitmap[..., 1], bitmap[..., 2]))


def otsu_variance(gray, t):
    values = gray.ravel().astype(np.float64)
    back = values[values <= t]
    fore = values[values > t]
    if back.size == 0 or fore.size == 0:
        return 0.0
    return back.size * fore.size * (back.mean() - fore.mean()) ** 2


@pytest.fixture
def noisy_bitmap():
    rng = np.random.default_rng(7)
    bmp = rng.integers(0, 256, size=(24, 32, 4), dtype=np.uint8)
    bmp[..., 3] = 200
    return bmp


# ─── Grayscale / legacy ───────────────────────────────────────────────────────

def test_grayscale_uses_luma_weights():
    bmp = make_bitmap(0, 2, 1)
    bmp[0, 0, :3] = (255, 0, 0)
    bmp[0, 1, :3] = (0, 255, 0)

    out = pf.grayscale(bmp)

    assert list(out[0, 0, :3]) == [76, 76, 76]
    assert list(out[0, 1, :3]) == [150, 150, 150]
    assert (out[..., 3] == 255).all()


def test_contrast_binarize_is_binary(noisy_bitmap):
    out = pf.contrast_binarize(noisy_bitmap)

    assert set(np.unique(out[..., :3])) <= {0, 255}
    assert is_gray(out)
    assert np.array_equal(out[..., 3], noisy_bitmap[..., 3])


def test_contrast_binarize_threshold_at_128():
    assert (pf.contrast_binarize(make_bitmap(200))[..., 0] == 255).all()
    assert (pf.contrast_binarize(make_bitmap(50))[..., 0] == 0).all()
    # 128 maps to exactly 128, which is not above the threshold
    assert (pf.contrast_binarize(make_bitmap(128))[..., 0] == 0).all()


# ─── Resolution ───────────────────────────────────────────────────────────────

def test_optimize_dpi_upscales_from_96():
    out = pf.optimize_dpi(make_bitmap(255, 100, 48), target_dpi=300)
    # 312.5 rounds half up
    assert out.shape == (150, 313, 4)


def test_optimize_dpi_small_ratio_is_noop():
    bmp = make_bitmap(255, 100, 50)
    assert pf.optimize_dpi(bmp, target_dpi=100).shape == bmp.shape


def test_optimize_text_size():
    # sqrt(640*640)/20 = 32 → already on target
    assert pf.optimize_text_size(make_bitmap(255, 640, 640), 32).shape == (640, 640, 4)
    # estimate floors at 8px → scale 4
    assert pf.optimize_text_size(make_bitmap(255, 100, 100), 32).shape == (400, 400, 4)


# ─── Rotation / deskew ────────────────────────────────────────────────────────

def test_rotate_expands_canvas():
    bmp = make_bitmap(0, 100, 50)

    assert pf.rotate(bmp, 0).shape == (50, 100, 4)
    assert pf.rotate(bmp, 90).shape == (100, 50, 4)

    out = pf.rotate(bmp, 45)
    assert out.shape[0] > 50 and out.shape[1] > 100


def test_rotate_fills_with_opaque_white():
    out = pf.rotate(make_bitmap(0, 60, 60), 45)
    assert list(out[0, 0]) == [255, 255, 255, 255]


def test_skew_candidates():
    assert pf.skew_candidates() == [-20, -15, -10, -5, 0, 5, 10, 15, 20]


def test_deskew_blank_page_is_not_rotated():
    bmp = make_bitmap(255, 80, 60)

    angle, scores = pf.estimate_skew_angle(bmp)

    assert angle == 0
    assert len(scores) == 9
    assert pf.deskew(bmp).shape == bmp.shape


def test_deskew_half_dark_page_scores_zero_only_upright():
    bmp = make_bitmap(255, 80, 60)
    bmp[:, :40, :3] = 0

    angle, scores = pf.estimate_skew_angle(bmp)

    assert scores[4] == 0
    assert all(s > 0 for i, s in enumerate(scores) if i != 4)
    assert angle == 0


def test_deskew_picks_and_applies_largest_rotation_for_solid_block():
    # A solid block fills every row, so rotation loss in the corners pulls
    # row counts toward the target; the widest candidate loses the most.
    bmp = make_bitmap(0, 200, 200)

    angle, scores = pf.estimate_skew_angle(bmp)

    assert abs(angle) == 20
    assert min(scores) < scores[4]
    assert pf.deskew(bmp).shape == (256, 256, 4)


@pytest.mark.parametrize("target", [15, -10])
def test_deskew_rotates_by_best_scoring_angle(monkeypatch, target):
    bmp = make_bitmap(255, 100, 50)
    monkeypatch.setattr(pf, "_alignment_score", lambda dark, a: abs(a - target))

    angle, scores = pf.estimate_skew_angle(bmp)
    out = pf.deskew(bmp)

    assert angle == target
    assert scores[pf.skew_candidates().index(target)] == 0
    assert out.shape == pf.rotate(bmp, target).shape
    assert out.shape != bmp.shape


def test_deskew_ignores_angles_within_one_degree(monkeypatch):
    bmp = make_bitmap(255, 100, 50)
    monkeypatch.setattr(pf, "skew_candidates", lambda: [1, 5])
    monkeypatch.setattr(pf, "_alignment_score", lambda dark, a: float(a))

    assert pf.estimate_skew_angle(bmp)[0] == 1
    assert pf.deskew(bmp) is bmp


# ─── CLAHE ────────────────────────────────────────────────────────────────────

def test_clahe_output_is_gray_and_keeps_alpha(noisy_bitmap):
    out = pf.apply_clahe(noisy_bitmap)

    assert out.shape == noisy_bitmap.shape
    assert out.dtype == np.uint8
    assert is_gray(out)
    assert np.array_equal(out[..., 3], noisy_bitmap[..., 3])


def test_clahe_single_tile_without_clipping_is_equalization():
    bmp = make_bitmap(100, 10, 10)
    bmp[5:, :, :3] = 150

    out = pf.apply_clahe(bmp, clip_limit=1e9, grid_size=1)

    assert (out[:5, :, 0] == 128).all()
    assert (out[5:, :, 0] == 255).all()


def test_clahe_handles_grid_larger_than_image():
    out = pf.apply_clahe(make_bitmap(90, 5, 3), grid_size=8)
    assert out.shape == (3, 5, 4)


# ─── Otsu ─────────────────────────────────────────────────────────────────────

def test_otsu_threshold_maximizes_between_class_variance(noisy_bitmap):
    gray = noisy_bitmap[..., 0]
    t = pf.otsu_threshold(gray)

    best = max(otsu_variance(gray, k) for k in range(256))
    assert otsu_variance(gray, t) == pytest.approx(best)


def test_otsu_two_levels_picks_lowest_maximizing_threshold():
    bmp = make_bitmap(50, 10, 10)
    bmp[:, 5:, :3] = 200

    assert pf.otsu_threshold(pf.grayscale(bmp)[..., 0]) == 50

    out = pf.apply_otsu_binarization(bmp)
    assert (out[:, :5, 0] == 0).all()
    assert (out[:, 5:, 0] == 255).all()


def test_otsu_uniform_image():
    assert pf.otsu_threshold(np.full((4, 4), 100, dtype=np.uint8)) == 0
    assert (pf.apply_otsu_binarization(make_bitmap(100))[..., 0] == 255).all()
    assert (pf.apply_otsu_binarization(make_bitmap(0))[..., 0] == 0).all()


def test_otsu_output_is_binary(noisy_bitmap):
    out = pf.apply_otsu_binarization(noisy_bitmap)
    assert set(np.unique(out[..., :3])) <= {0, 255}


# ─── Median / unsharp ─────────────────────────────────────────────────────────

def test_median_uniform_is_unchanged():
    bmp = make_bitmap(77)
    assert np.array_equal(pf.apply_median_filter(bmp), bmp)


def test_median_removes_isolated_speck():
    bmp = make_bitmap(255, 9, 9)
    bmp[4, 4, :3] = 0
    bmp[0, 0, :3] = 0

    out = pf.apply_median_filter(bmp, 3)

    assert (out[..., :3] == 255).all()


def test_median_preserves_dimensions(noisy_bitmap):
    out = pf.apply_median_filter(noisy_bitmap, 5)
    assert out.shape == noisy_bitmap.shape
    assert is_gray(out)


def test_unsharp_uniform_is_unchanged():
    bmp = make_bitmap(120)
    assert np.array_equal(pf.apply_unsharp_mask(bmp), bmp)


def test_unsharp_exaggerates_an_edge():
    bmp = make_bitmap(100, 10, 1)
    bmp[0, 5:, :3] = 140

    out = pf.apply_unsharp_mask(bmp, amount=2.0)

    assert out[0, 4, 0] < 100
    assert out[0, 5, 0] > 140


def test_box_blur_sweeps_in_place_left_to_right():
    blurred = pf._box_blur_flat(np.array([100] * 5 + [140] * 5))
    assert list(blurred) == [100, 100, 101, 107, 117, 127, 133, 137, 139, 140]


def test_unsharp_step_edge_values():
    bmp = make_bitmap(100, 10, 1)
    bmp[0, 5:, :3] = 140

    out = pf.apply_unsharp_mask(bmp, amount=1.0)

    assert list(out[0, :, 0]) == [100, 100, 99, 93, 83, 153, 147, 143, 141, 140]
    assert is_gray(out)


def test_unsharp_leaves_unmasked_color_pixels_alone():
    bmp = make_bitmap(0, 12, 6)
    bmp[..., :3] = (120, 30, 200)

    assert np.array_equal(pf.apply_unsharp_mask(bmp), bmp)


def test_unsharp_threshold_limits_written_pixels():
    bmp = make_bitmap(0, 10, 1)
    bmp[..., :3] = (100, 30, 200)
    bmp[0, 5:, 0] = 140

    out = pf.apply_unsharp_mask(bmp, amount=1.0, threshold=5)

    # |diff| is 7, 17, 13 and 7 at pixels 3 to 6; everything else keeps its colour
    for x in (3, 4, 5, 6):
        assert out[0, x, 0] == out[0, x, 1] == out[0, x, 2]
    for x in (0, 1, 2, 7, 8, 9):
        assert np.array_equal(out[0, x], bmp[0, x])


def test_unsharp_radius_has_no_effect(noisy_bitmap):
    gray = pf.grayscale(noisy_bitmap)
    assert np.array_equal(
        pf.apply_unsharp_mask(gray, radius=1.0),
        pf.apply_unsharp_mask(gray, radius=20.0),
    )


# ─── Purity ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("apply", [
    pf.grayscale,
    pf.contrast_binarize,
    pf.optimize_dpi,
    pf.optimize_text_size,
    pf.deskew,
    pf.apply_clahe,
    pf.apply_otsu_binarization,
    pf.apply_median_filter,
    pf.apply_unsharp_mask,
    lambda bmp: pf.rotate(bmp, 10),
])
def test_filters_leave_input_untouched(apply, noisy_bitmap):
    before = noisy_bitmap.copy()
    apply(noisy_bitmap)
    assert np.array_equal(noisy_bitmap, before)
