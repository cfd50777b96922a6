import numpy as np
import pytest

from chart_judge.utils import (
    apply_correction_matrix,
    bgr_to_lab,
    color_to_lab,
    delta_e,
    delta_e_array,
    delta_e_cie76,
    delta_e_ciede2000,
    fit_correction_matrix,
    lab_to_bgr,
)


def test_cie76_is_euclidean():
    assert delta_e_cie76((50.0, 0.0, 0.0), (53.0, 4.0, 0.0)) == pytest.approx(5.0)


@pytest.mark.parametrize(
    "lab1, lab2, expected",
    [
        # Sharma, Wu & Dalal (2005) test data
        ((50.0, 2.6772, -79.7751), (50.0, 0.0, -82.7485), 2.0425),
        ((50.0, 0.0, 0.0), (50.0, -1.0, 2.0), 2.3669),
        ((50.0, 2.5, 0.0), (73.0, 25.0, -18.0), 27.1492),
    ],
)
def test_ciede2000_reference_pairs(lab1, lab2, expected):
    assert delta_e_ciede2000(lab1, lab2) == pytest.approx(expected, abs=1e-3)


def test_ciede2000_is_symmetric_and_zero_on_identity():
    a, b = (62.66, 36.07, 57.10), (40.02, 10.41, -45.96)
    assert delta_e_ciede2000(a, a) == pytest.approx(0.0)
    assert delta_e_ciede2000(a, b) == pytest.approx(delta_e_ciede2000(b, a))


def test_delta_e_dispatch():
    a, b = (50.0, 0.0, 0.0), (60.0, 0.0, 0.0)
    assert delta_e(a, b) == delta_e_cie76(a, b)
    assert delta_e(a, b, "ciede2000") == delta_e_ciede2000(a, b)
    with pytest.raises(ValueError):
        delta_e(a, b, "cmc")


def test_white_and_black_lab():
    white = color_to_lab((255, 255, 255))
    black = color_to_lab((0, 0, 0))
    assert white[0] == pytest.approx(100.0, abs=0.5)
    assert abs(white[1]) < 0.5 and abs(white[2]) < 0.5
    assert black[0] == pytest.approx(0.0, abs=0.5)


def test_lab_round_trip_through_8_bit_is_close():
    lab = (62.66, 36.07, 57.10)
    bgr = lab_to_bgr(lab)
    assert bgr.dtype == np.uint8 and bgr.shape == (3,)
    assert delta_e_cie76(color_to_lab(tuple(int(v) for v in bgr)), lab) < 1.5


def test_bgr_to_lab_preserves_shape():
    pixels = np.zeros((4, 5, 3), dtype=np.uint8)
    assert bgr_to_lab(pixels).shape == (4, 5, 3)


def test_correction_matrix_is_identity_for_matching_colors():
    labs = [
        (37.99, 13.56, 14.06), (65.71, 18.13, 17.81), (49.93, -4.88, -21.93),
        (43.14, -13.10, 21.91), (62.66, 36.07, 57.10), (40.02, 10.41, -45.96),
        (96.54, -0.43, 1.19), (20.46, -0.08, -0.97),
    ]
    matrix = fit_correction_matrix(labs, labs)
    expected = np.vstack([np.eye(3), np.zeros((1, 3))])
    assert np.allclose(matrix, expected, atol=1e-3)

    pixels = np.random.default_rng(0).integers(0, 256, size=(8, 8, 3), dtype=np.uint8)
    corrected = apply_correction_matrix(pixels, matrix)
    assert np.abs(corrected.astype(int) - pixels.astype(int)).max() <= 2


def test_correction_matrix_undoes_channel_gain():
    references = np.array([[0.2, 0.4, 0.6], [0.8, 0.1, 0.3], [0.5, 0.5, 0.5], [0.9, 0.7, 0.2], [0.1, 0.9, 0.4]])
    pixels = np.round(references * 255).astype(np.uint8).reshape(1, -1, 3)
    dimmed = np.round(pixels * 0.8).astype(np.uint8)

    ref_lab = bgr_to_lab(pixels).reshape(-1, 3)
    sampled_lab = bgr_to_lab(dimmed).reshape(-1, 3)
    matrix = fit_correction_matrix(sampled_lab, ref_lab)
    corrected = apply_correction_matrix(dimmed, matrix)
    assert np.abs(corrected.astype(int) - pixels.astype(int)).max() <= 6


def test_correction_matrix_needs_four_pairs():
    labs = [(50.0, 0.0, 0.0)] * 3
    with pytest.raises(ValueError):
        fit_correction_matrix(labs, labs)


@pytest.mark.parametrize(
    "rgb, reference",
    [
        # published 8-bit sRGB against BabelColor D50 Lab of the same patch
        ((56, 61, 150), (28.78, 14.18, -50.30)),
        ((214, 126, 44), (62.66, 36.07, 57.10)),
        ((243, 243, 242), (96.54, -0.43, 1.19)),
    ],
)
def test_srgb_samples_are_adapted_to_d50(rgb, reference):
    r, g, b = rgb
    assert delta_e_cie76(color_to_lab((b, g, r)), reference) < 3.0


def test_delta_e_array_broadcasts_pairs():
    samples = np.array([[50.0, 0.0, 0.0], [60.0, 0.0, 0.0]])
    references = np.array([[50.0, 0.0, 0.0], [50.0, 3.0, 4.0], [70.0, 0.0, 0.0]])
    distances = delta_e_array(samples[:, None, :], references[None, :, :])
    assert distances.shape == (2, 3)
    assert distances[0] == pytest.approx([0.0, 5.0, 20.0])
    assert distances[1, 2] == pytest.approx(10.0)
