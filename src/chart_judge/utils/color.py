"""
Colour-space conversions and colour-difference metrics.

Lab values are CIE L*a*b* relative to D50 (2 degree observer), the
illuminant chart references are published under. 8-bit pixels are
treated as sRGB and adapted from D65 to D50 with the Bradford transform.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import colour
import numpy as np
from numpy.typing import NDArray

from chart_judge.models import LabColor

SRGB = colour.RGB_COLOURSPACES["sRGB"]
D50 = colour.CCS_ILLUMINANTS["CIE 1931 2 Degree Standard Observer"]["D50"]
CHROMATIC_ADAPTATION = "Bradford"

DELTA_E_METHODS = {"cie76": "CIE 1976", "ciede2000": "CIE 2000"}


def linear_rgb_to_lab(rgb: NDArray[Any]) -> NDArray[np.float64]:
    xyz = colour.RGB_to_XYZ(
        np.asarray(rgb, dtype=np.float64),
        SRGB,
        illuminant=D50,
        chromatic_adaptation_transform=CHROMATIC_ADAPTATION,
    )
    return colour.XYZ_to_Lab(xyz, illuminant=D50)


def lab_to_linear_rgb(lab: NDArray[Any]) -> NDArray[np.float64]:
    xyz = colour.Lab_to_XYZ(np.asarray(lab, dtype=np.float64), illuminant=D50)
    return colour.XYZ_to_RGB(
        xyz,
        SRGB,
        illuminant=D50,
        chromatic_adaptation_transform=CHROMATIC_ADAPTATION,
    )


def bgr_to_lab(pixels: NDArray[Any]) -> NDArray[np.float64]:
    """Convert a uint8 BGR array of shape (..., 3) to Lab of the same shape."""
    rgb = np.asarray(pixels)[..., ::-1].astype(np.float64) / 255.0
    return linear_rgb_to_lab(colour.cctf_decoding(rgb, function="sRGB"))


def lab_to_bgr(lab: Sequence[float] | NDArray[Any]) -> NDArray[np.uint8]:
    """Convert Lab of shape (..., 3) to uint8 BGR, clipping out-of-gamut values."""
    linear = np.clip(lab_to_linear_rgb(lab), 0.0, 1.0)
    rgb = colour.cctf_encoding(linear, function="sRGB")
    return np.ascontiguousarray(np.clip(np.round(rgb * 255.0), 0, 255).astype(np.uint8)[..., ::-1])


def color_to_lab(bgr: tuple[int, int, int]) -> LabColor:
    lab = bgr_to_lab(np.array(bgr, dtype=np.uint8))
    return float(lab[0]), float(lab[1]), float(lab[2])


def delta_e_array(
    lab1: Sequence[float] | NDArray[Any],
    lab2: Sequence[float] | NDArray[Any],
    method: str = "cie76",
) -> NDArray[np.float64]:
    """Broadcasting colour difference over the last axis."""
    if method not in DELTA_E_METHODS:
        raise ValueError(f"Unknown delta E method: {method}")
    a, b = np.broadcast_arrays(np.asarray(lab1, dtype=np.float64), np.asarray(lab2, dtype=np.float64))
    return np.asarray(colour.delta_E(a, b, method=DELTA_E_METHODS[method]), dtype=np.float64)


def delta_e(lab1: Sequence[float], lab2: Sequence[float], method: str = "cie76") -> float:
    return float(delta_e_array(lab1, lab2, method))


def delta_e_cie76(lab1: Sequence[float], lab2: Sequence[float]) -> float:
    return delta_e(lab1, lab2, "cie76")


def delta_e_ciede2000(lab1: Sequence[float], lab2: Sequence[float]) -> float:
    return delta_e(lab1, lab2, "ciede2000")


# =============================================================================
# COLOUR CORRECTION
# =============================================================================


def fit_correction_matrix(
    sampled_lab: Sequence[Sequence[float]],
    reference_lab: Sequence[Sequence[float]],
) -> NDArray[np.float64]:
    """
    Least-squares affine colour correction in linear BGR.

    Returns a (4, 3) matrix M such that ``[b, g, r, 1] @ M`` maps a
    captured linear colour onto its reference.
    """
    src = np.clip(lab_to_linear_rgb(np.asarray(sampled_lab).reshape(-1, 3)), 0.0, 1.0)[:, ::-1]
    dst = np.clip(lab_to_linear_rgb(np.asarray(reference_lab).reshape(-1, 3)), 0.0, 1.0)[:, ::-1]
    if src.shape[0] < 4:
        raise ValueError("at least 4 colour pairs are required")
    design = np.hstack([src, np.ones((src.shape[0], 1))])
    matrix, *_ = np.linalg.lstsq(design, dst, rcond=None)
    return matrix


def apply_correction_matrix(pixels: NDArray[np.uint8], matrix: NDArray[Any]) -> NDArray[np.uint8]:
    shape = pixels.shape
    linear = colour.cctf_decoding(pixels.reshape(-1, 3) / 255.0, function="sRGB")
    corrected = np.hstack([linear, np.ones((linear.shape[0], 1))]) @ matrix
    out = np.round(colour.cctf_encoding(np.clip(corrected, 0.0, 1.0), function="sRGB") * 255.0)
    return np.clip(out, 0, 255).astype(np.uint8).reshape(shape)
