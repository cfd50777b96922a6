"""Synthetic colour chart photographs with known ground truth.

Usage:
    from tests.synthetic import synthetic_chart_spec, render_chart_image

    spec = synthetic_chart_spec()
    affine = render_chart_image(tmp_path / "chart.png", spec)
"""

from .renderer import (
    COLORCHECKER_SRGB,
    BACKGROUND_BGR,
    CANVAS_SIZE,
    CARD_BGR,
    CARD_SIZE,
    patch_colors,
    patches_outside,
    placement_affine,
    project_card_point,
    render_card,
    render_chart_image,
    render_no_chart_image,
    render_scene,
    srgb_overrides,
    synthetic_chart_spec,
)

__all__ = [
    "COLORCHECKER_SRGB",
    "BACKGROUND_BGR",
    "CANVAS_SIZE",
    "CARD_BGR",
    "CARD_SIZE",
    "patch_colors",
    "patches_outside",
    "placement_affine",
    "project_card_point",
    "render_card",
    "render_chart_image",
    "render_no_chart_image",
    "render_scene",
    "srgb_overrides",
    "synthetic_chart_spec",
]
