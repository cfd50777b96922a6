"""Output writer: render the judged chart onto a copy of the photograph and save it."""

from __future__ import annotations

import logging
from pathlib import Path

import cv2
import numpy as np
from numpy.typing import NDArray

from chart_judge import config
from chart_judge.models import (
    ChartInstance,
    ChartJudgment,
    ChartSpec,
    ErrorKind,
    LoadedImage,
    PatchJudgment,
    PipelineConfig,
    PipelineState,
    ProcessingError,
    ProcessingStage,
)
from chart_judge.utils import apply_correction_matrix, fit_correction_matrix, save_image

logger = logging.getLogger(__name__)


def _same_file(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b.resolve() or (a.exists() and b.exists() and a.samefile(b))
    except OSError:
        return False


def _status_color(patch: PatchJudgment) -> tuple[int, int, int]:
    if patch.unsampled:
        return config.UNSAMPLED_COLOR
    return config.PASS_COLOR if patch.passed else config.FAIL_COLOR


def correct_colors(
    pixels: NDArray[np.uint8], judgment: ChartJudgment
) -> NDArray[np.uint8] | None:
    """Apply a colour-correction matrix fitted on the sampled patches, or None if too few."""
    sampled = [p for p in judgment.patches if p.sampled_lab is not None]
    if len(sampled) < config.MIN_CORRECTION_PATCHES:
        return None
    matrix = fit_correction_matrix(
        [p.sampled_lab for p in sampled], [p.reference_lab for p in sampled]
    )
    return apply_correction_matrix(pixels, matrix)


def render_output(
    image: LoadedImage,
    instance: ChartInstance,
    judgment: ChartJudgment,
    chart_spec: ChartSpec,
    cfg: PipelineConfig,
) -> NDArray[np.uint8]:
    out = image.pixels.copy()

    if cfg.correct_colors:
        corrected = correct_colors(out, judgment)
        if corrected is None:
            logger.warning("too few sampled patches for colour correction; writing uncorrected image")
        else:
            out = corrected

    if not cfg.annotate:
        return out

    h, w = out.shape[:2]
    thickness = max(1, int(round(min(h, w) * config.ANNOTATION_THICKNESS_FRACTION)))
    font_scale = max(0.3, min(h, w) / 1500.0)

    outline = np.round(instance.outline()).astype(np.int32)
    cv2.polylines(out, [outline], True, config.CHART_OUTLINE_COLOR, thickness, cv2.LINE_AA)

    for patch in judgment.patches:
        spec = chart_spec.patches[patch.index]
        polygon = np.round(instance.project(np.array(spec.corners))).astype(np.int32)
        color = _status_color(patch)
        cv2.polylines(out, [polygon], True, color, thickness, cv2.LINE_AA)
        if patch.deviation is not None:
            cx, cy = (int(v) for v in polygon.mean(axis=0))
            cv2.putText(
                out,
                f"{patch.deviation:.1f}",
                (cx - int(12 * font_scale), cy),
                cv2.FONT_HERSHEY_SIMPLEX,
                font_scale,
                color,
                max(1, thickness // 2),
                cv2.LINE_AA,
            )

    label = f"{judgment.classification.value}  max dE {judgment.aggregate_deviation:.2f}"
    cv2.putText(
        out,
        label,
        (10, int(30 * font_scale) + 10),
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        config.CHART_OUTLINE_COLOR,
        max(1, thickness // 2),
        cv2.LINE_AA,
    )
    return out


def write(
    image: LoadedImage,
    instance: ChartInstance,
    judgment: ChartJudgment,
    destination_path: str | Path,
    chart_spec: ChartSpec,
    cfg: PipelineConfig | None = None,
) -> Path | ProcessingError:
    """
    Write the output image. Failures are recoverable WRITE_ERRORs: the
    judgment stays valid when persistence fails.
    """
    cfg = cfg or PipelineConfig()
    destination = Path(destination_path)

    if not cfg.allow_overwrite and _same_file(destination, Path(image.path)):
        return ProcessingError(
            stage=ProcessingStage.WRITE,
            kind=ErrorKind.WRITE_ERROR,
            error_type="overwrite_refused",
            recoverable=True,
            message=f"Refusing to overwrite source image: {destination}",
            details={"path": str(destination)},
        )

    rendered = render_output(image, instance, judgment, chart_spec, cfg)
    return save_image(rendered, destination)


def write_node(state: PipelineState) -> PipelineState:
    if (
        not state.config.write_output
        or state.destination_path is None
        or state.image is None
        or state.chart_instance is None
        or state.judgment is None
    ):
        return state

    result = write(
        state.image,
        state.chart_instance,
        state.judgment,
        state.destination_path,
        state.chart_spec,
        state.config,
    )
    if isinstance(result, ProcessingError):
        logger.warning("write failed: %s", result.message)
        return state.model_copy(update={"errors": state.errors + [result]})
    return state.model_copy(
        update={
            "written_path": str(result),
            "judgment": state.judgment.model_copy(update={"output_path": str(result)}),
        }
    )
