"""Debug artifact writers for the chart locator."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import cv2
import numpy as np
from numpy.typing import NDArray

from chart_judge import config
from chart_judge.models import ChartInstance, LoadedImage
from chart_judge.utils import cv_utils

if TYPE_CHECKING:
    from .locator import PatchCandidate


def _draw_candidates(
    image: LoadedImage,
    candidates: list[PatchCandidate],
    instance: ChartInstance | None,
) -> NDArray[np.uint8]:
    out = image.pixels.copy()
    for cand in candidates:
        cv2.polylines(out, [cand.quad], True, (255, 0, 255), 2, cv2.LINE_AA)
        cv2.drawMarker(
            out,
            (int(round(cand.center[0])), int(round(cand.center[1]))),
            color=(255, 0, 255),
            markerType=cv2.MARKER_CROSS,
            markerSize=10,
            thickness=1,
            line_type=cv2.LINE_AA,
        )
    if instance is not None:
        outline = np.round(instance.outline()).astype(np.int32)
        cv2.polylines(out, [outline], True, config.CHART_OUTLINE_COLOR, 2, cv2.LINE_AA)
    return out


def write_locator_debug(
    debug_dir: str | Path,
    image: LoadedImage,
    binary: NDArray[np.uint8],
    candidates: list[PatchCandidate],
    instance: ChartInstance | None,
) -> None:
    """Write <stem>_threshold.png and <stem>_candidates.png; failures are ignored."""
    debug_dir = Path(debug_dir)
    stem = Path(image.path).stem
    cv_utils.save_image(binary, debug_dir / f"{stem}_threshold.png")
    cv_utils.save_image(_draw_candidates(image, candidates, instance), debug_dir / f"{stem}_candidates.png")
