"""Utility modules for chart-judge."""

from chart_judge.utils.color import (
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
from chart_judge.utils.cv_utils import (
    GrayImage,
    Image,
    load_image,
    odd_block_size,
    save_image,
    to_grayscale,
)

__all__ = [
    # Type aliases
    "Image",
    "GrayImage",
    # Image I/O
    "load_image",
    "save_image",
    # Helpers
    "to_grayscale",
    "odd_block_size",
    # Colour
    "bgr_to_lab",
    "lab_to_bgr",
    "color_to_lab",
    "delta_e",
    "delta_e_array",
    "delta_e_cie76",
    "delta_e_ciede2000",
    "fit_correction_matrix",
    "apply_correction_matrix",
]
