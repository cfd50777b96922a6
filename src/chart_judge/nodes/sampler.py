"""Patch sampler: project each patch through the chart homography and average its pixels."""

from __future__ import annotations

import logging

import cv2
import numpy as np
from numpy.typing import NDArray

from chart_judge.models import (
    ChartInstance,
    ChartSpec,
    LoadedImage,
    PatchSample,
    PatchSpec,
    PipelineConfig,
    PipelineState,
)
from chart_judge.utils import bgr_to_lab

logger = logging.getLogger(__name__)


def _inset_corners(patch: PatchSpec, inset: float) -> NDArray[np.float64]:
    x0, y0, x1, y1 = patch.region
    dx = (x1 - x0) * inset
    dy = (y1 - y0) * inset
    return np.array(
        [[x0 + dx, y0 + dy], [x1 - dx, y0 + dy], [x1 - dx, y1 - dy], [x0 + dx, y1 - dy]],
        dtype=np.float64,
    )


def _inside(points: NDArray[np.float64], width: int, height: int) -> bool:
    xs, ys = points[:, 0], points[:, 1]
    return bool(np.all((xs >= 0) & (xs <= width - 1) & (ys >= 0) & (ys <= height - 1)))


def trimmed_mean_lab(lab_pixels: NDArray[np.float64], trim_fraction: float) -> NDArray[np.float64]:
    """Mean Lab after discarding the darkest and brightest ``trim_fraction`` of pixels by L."""
    n = lab_pixels.shape[0]
    k = int(n * trim_fraction)
    if k > 0 and n - 2 * k >= 1:
        order = np.argsort(lab_pixels[:, 0], kind="stable")
        lab_pixels = lab_pixels[order[k : n - k]]
    return lab_pixels.mean(axis=0, dtype=np.float64)


def sample_patch(
    pixels: NDArray[np.uint8],
    instance: ChartInstance,
    patch: PatchSpec,
    cfg: PipelineConfig,
) -> PatchSample:
    height, width = pixels.shape[:2]

    # Any part of the full patch outside the frame leaves it unsampled
    if not _inside(instance.project(np.array(patch.corners)), width, height):
        return PatchSample(index=patch.index, lab=None, pixel_count=0)

    polygon = instance.project(_inset_corners(patch, cfg.sample_inset))
    x, y, w, h = cv2.boundingRect(np.round(polygon).astype(np.int32))
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(width, x + w), min(height, y + h)
    if x1 <= x0 or y1 <= y0:
        return PatchSample(index=patch.index, lab=None, pixel_count=0)

    mask = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
    local = np.round(polygon - [x0, y0]).astype(np.int32)
    cv2.fillConvexPoly(mask, local, 255)
    selected = pixels[y0:y1, x0:x1][mask > 0]
    if selected.shape[0] == 0:
        return PatchSample(index=patch.index, lab=None, pixel_count=0)

    lab = trimmed_mean_lab(bgr_to_lab(selected).reshape(-1, 3), cfg.trim_fraction)
    return PatchSample(
        index=patch.index,
        lab=(float(lab[0]), float(lab[1]), float(lab[2])),
        pixel_count=int(selected.shape[0]),
    )


def sample(
    image: LoadedImage,
    instance: ChartInstance,
    chart_spec: ChartSpec,
    cfg: PipelineConfig | None = None,
) -> list[PatchSample]:
    """One PatchSample per ChartSpec patch, in patch order."""
    cfg = cfg or PipelineConfig()
    samples = [sample_patch(image.pixels, instance, patch, cfg) for patch in chart_spec.patches]
    logger.debug(
        "sample: %d/%d patches sampled", sum(s.is_sampled for s in samples), len(samples)
    )
    return samples


def sample_node(state: PipelineState) -> PipelineState:
    if state.image is None or state.chart_instance is None:
        return state
    samples = sample(state.image, state.chart_instance, state.chart_spec, state.config)
    return state.model_copy(update={"samples": samples})
