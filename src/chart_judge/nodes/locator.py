"""Chart locator: find the patch grid of a ChartSpec in a photograph.

Patches act as fiducials. Candidate quadrilaterals are extracted from an
adaptive-threshold mask, snapped onto a lattice spanned by neighbouring
candidates, identified against the chart layout by colour, and fitted
with a homography from normalized chart space to image pixels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import product

import cv2
import numpy as np
from numpy.typing import NDArray

from chart_judge import config
from chart_judge.models import (
    ChartInstance,
    ChartSpec,
    ErrorKind,
    LabColor,
    LoadedImage,
    PipelineConfig,
    PipelineState,
    ProcessingError,
    ProcessingStage,
)
from chart_judge.utils import bgr_to_lab, delta_e_array, odd_block_size, to_grayscale

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatchCandidate:
    center: tuple[float, float]
    area: float
    quad: NDArray[np.int32]  # (4, 1, 2) as returned by approxPolyDP
    lab: LabColor


@dataclass(frozen=True)
class GridHypothesis:
    members: tuple[int, ...]  # candidate indices
    cells: NDArray[np.int64]  # (n, 2) lattice coordinates, min-shifted to 0
    pitch: float  # px


@dataclass(frozen=True)
class Placement:
    instance: ChartInstance
    matched: tuple[tuple[int, int], ...]  # (candidate index, patch index)


def _not_found(error_type: str, message: str, **details: object) -> ProcessingError:
    return ProcessingError(
        stage=ProcessingStage.LOCATE,
        kind=ErrorKind.CHART_NOT_FOUND,
        error_type=error_type,
        recoverable=False,
        message=message,
        details=dict(details),
    )


# =============================================================================
# CANDIDATES
# =============================================================================


def threshold_mask(pixels: NDArray[np.uint8], cfg: PipelineConfig) -> NDArray[np.uint8]:
    gray = to_grayscale(pixels)
    block = odd_block_size(min(gray.shape[:2]) * cfg.adaptive_block_fraction)
    return cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY, block, cfg.adaptive_offset
    )


def _mean_lab(pixels: NDArray[np.uint8], center: tuple[float, float], radius: float) -> LabColor:
    h, w = pixels.shape[:2]
    r = max(1, int(radius))
    cx, cy = int(round(center[0])), int(round(center[1]))
    crop = pixels[max(0, cy - r) : min(h, cy + r + 1), max(0, cx - r) : min(w, cx + r + 1)]
    lab = bgr_to_lab(crop).reshape(-1, 3).mean(axis=0, dtype=np.float64)
    return float(lab[0]), float(lab[1]), float(lab[2])


def find_patch_candidates(
    pixels: NDArray[np.uint8],
    binary: NDArray[np.uint8],
    cfg: PipelineConfig,
) -> list[PatchCandidate]:
    """Extract convex, rectangular, similarly-sized blobs that do not touch the image border."""
    h, w = binary.shape[:2]
    min_area = cfg.min_patch_area_fraction * h * w
    max_area = cfg.max_patch_area_fraction * h * w
    guard = config.BORDER_GUARD_PX

    contours, _ = cv2.findContours(binary, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
    raw: list[tuple[tuple[float, float], float, NDArray[np.int32]]] = []
    for contour in contours:
        area = float(cv2.contourArea(contour))
        if area < min_area or area > max_area:
            continue
        x, y, bw, bh = cv2.boundingRect(contour)
        if x <= guard or y <= guard or x + bw >= w - 1 - guard or y + bh >= h - 1 - guard:
            continue
        approx = cv2.approxPolyDP(contour, config.POLY_APPROX_EPSILON * cv2.arcLength(contour, True), True)
        if len(approx) != 4 or not cv2.isContourConvex(approx):
            continue
        _, (rw, rh), _ = cv2.minAreaRect(contour)
        if rw * rh <= 0 or area / (rw * rh) < config.MIN_RECTANGULARITY:
            continue
        m = cv2.moments(contour)
        if m["m00"] <= 0:
            continue
        raw.append(((m["m10"] / m["m00"], m["m01"] / m["m00"]), area, approx))

    if not raw:
        return []

    median_area = float(np.median([a for _, a, _ in raw]))
    lo = config.AREA_CLUSTER_LOW * median_area
    hi = config.AREA_CLUSTER_HIGH * median_area
    candidates = []
    for center, area, approx in raw:
        if not lo <= area <= hi:
            continue
        lab = _mean_lab(pixels, center, config.FIDUCIAL_SAMPLE_RADIUS * np.sqrt(area))
        candidates.append(PatchCandidate(center=center, area=area, quad=approx, lab=lab))
    return candidates


# =============================================================================
# LATTICE
# =============================================================================


def _lattice_from_anchor(
    points: NDArray[np.float64], anchor: int, min_members: int
) -> GridHypothesis | None:
    diffs = points - points[anchor]
    lengths = np.linalg.norm(diffs, axis=1)
    lengths[anchor] = np.inf
    if not np.isfinite(lengths).any():
        return None

    k_u = int(np.argmin(lengths))
    u = diffs[k_u]
    cosines = np.abs(diffs @ u) / np.maximum(lengths * lengths[k_u], 1e-12)
    off_axis = np.where(cosines < config.MIN_AXIS_COSINE, lengths, np.inf)
    if not np.isfinite(off_axis).any():
        return None
    v = diffs[int(np.argmin(off_axis))]

    basis = np.column_stack([u, v])
    if abs(np.linalg.det(basis)) < 1e-6 * np.linalg.norm(u) * np.linalg.norm(v):
        return None

    coords = np.linalg.solve(basis, diffs.T).T
    cells = np.rint(coords).astype(np.int64)
    snap_error = np.abs(coords - cells).max(axis=1)

    best: dict[tuple[int, int], int] = {}
    for idx in np.flatnonzero(snap_error <= config.GRID_SNAP_TOLERANCE):
        cell = (int(cells[idx, 0]), int(cells[idx, 1]))
        if cell not in best or snap_error[idx] < snap_error[best[cell]]:
            best[cell] = int(idx)

    members = tuple(sorted(best.values()))
    if len(members) < min_members:
        return None
    member_cells = cells[list(members)]
    if len(np.unique(member_cells[:, 0])) < 2 or len(np.unique(member_cells[:, 1])) < 2:
        return None

    pitch = float((np.linalg.norm(u) + np.linalg.norm(v)) / 2.0)
    return GridHypothesis(members=members, cells=member_cells - member_cells.min(axis=0), pitch=pitch)


def grid_hypotheses(candidates: list[PatchCandidate], min_members: int) -> list[GridHypothesis]:
    """One lattice per distinct member set, anchors ordered from the centre of the candidate cloud."""
    if len(candidates) < min_members:
        return []
    points = np.array([c.center for c in candidates], dtype=np.float64)
    order = np.argsort(np.linalg.norm(points - np.median(points, axis=0), axis=1), kind="stable")

    # Lattices over the same members differ only by orientation, which identification searches anyway
    seen: set[tuple[int, ...]] = set()
    hypotheses = []
    for anchor in order:
        hyp = _lattice_from_anchor(points, int(anchor), min_members)
        if hyp is None or hyp.members in seen:
            continue
        seen.add(hyp.members)
        hypotheses.append(hyp)
    return hypotheses


# =============================================================================
# IDENTIFICATION & FIT
# =============================================================================


def _identify(
    hyp: GridHypothesis,
    color_distances: NDArray[np.float64],
    chart_spec: ChartSpec,
    min_members: int,
) -> tuple[list[tuple[int, int]], list[float]] | None:
    """
    Choose the lattice orientation and signed offset whose patch colours best
    match the references.

    ``color_distances`` is the (candidates, patches) colour difference matrix.
    Members that land outside the declared grid are dropped from a placement,
    so stray blobs on the lattice and neighbouring charts do not hide the chart.
    Placements are scored by summed fiducial match strength, which favours
    covering more patches with good colour agreement.
    """
    lookup = np.full((chart_spec.rows, chart_spec.cols), -1, dtype=np.int64)
    for (row, col), patch_index in chart_spec.grid_index().items():
        lookup[row, col] = patch_index

    members = np.asarray(hyp.members, dtype=np.int64)
    member_distances = color_distances[members]
    i, j = hyp.cells[:, 0], hyp.cells[:, 1]

    best: tuple[float, NDArray[np.int64], NDArray[np.int64], NDArray[np.float64]] | None = None
    for swap, flip_a, flip_b in product((False, True), repeat=3):
        a, b = (j, i) if swap else (i, j)
        a = a.max() - a if flip_a else a
        b = b.max() - b if flip_b else b
        for off_col in range(-int(a.max()), chart_spec.cols):
            col = a + off_col
            col_ok = (col >= 0) & (col < chart_spec.cols)
            if np.count_nonzero(col_ok) < min_members:
                continue
            for off_row in range(-int(b.max()), chart_spec.rows):
                row = b + off_row
                inside = col_ok & (row >= 0) & (row < chart_spec.rows)
                if np.count_nonzero(inside) < min_members:
                    continue
                patches = np.full(len(members), -1, dtype=np.int64)
                patches[inside] = lookup[row[inside], col[inside]]
                keep = np.flatnonzero(patches >= 0)
                if len(keep) < min_members:
                    continue
                distances = member_distances[keep, patches[keep]]
                score = float(np.exp(-distances / config.FIDUCIAL_COLOR_SCALE).sum())
                if best is None or score > best[0]:
                    best = (score, members[keep], patches[keep], distances)

    if best is None:
        return None
    _, kept_members, kept_patches, distances = best
    matched = [(int(m), int(p)) for m, p in zip(kept_members, kept_patches)]
    return matched, [float(d) for d in distances]


def _outline_aspect(outline: NDArray[np.float64]) -> float:
    tl, tr, br, bl = outline
    width = (np.linalg.norm(tr - tl) + np.linalg.norm(br - bl)) / 2.0
    height = (np.linalg.norm(bl - tl) + np.linalg.norm(br - tr)) / 2.0
    return float(width / max(height, 1e-9))


def _fit_placement(
    hyp: GridHypothesis,
    matched: list[tuple[int, int]],
    distances: list[float],
    candidates: list[PatchCandidate],
    chart_spec: ChartSpec,
    cfg: PipelineConfig,
) -> Placement | None:
    src = np.array([chart_spec.patches[p].center for _, p in matched], dtype=np.float64)
    dst = np.array([candidates[m].center for m, _ in matched], dtype=np.float64)
    homography, _ = cv2.findHomography(src.astype(np.float32), dst.astype(np.float32), 0)
    if homography is None:
        return None

    reprojected = cv2.perspectiveTransform(src.reshape(-1, 1, 2), homography).reshape(-1, 2)
    rms = float(np.sqrt(np.mean(np.sum((reprojected - dst) ** 2, axis=1))))
    residual = rms / max(hyp.pitch, 1e-9)

    outline = cv2.perspectiveTransform(
        np.array([[[0.0, 0.0]], [[1.0, 0.0]], [[1.0, 1.0]], [[0.0, 1.0]]]), homography
    ).reshape(-1, 2)
    distortion = _outline_aspect(outline) / chart_spec.aspect_ratio
    if not 1.0 / config.MAX_ASPECT_DISTORTION <= distortion <= config.MAX_ASPECT_DISTORTION:
        logger.debug("locate: placement rejected, aspect distortion %.2f", distortion)
        return None
    area = float(cv2.contourArea(outline.astype(np.float32)))

    match_strength = float(np.mean(np.exp(-np.asarray(distances) / config.FIDUCIAL_COLOR_SCALE)))
    fit_quality = float(np.clip(1.0 - residual / cfg.max_fit_residual, 0.0, 1.0))

    instance = ChartInstance(
        homography=homography,
        confidence=fit_quality * match_strength,
        residual=residual,
        area=area,
        fiducial_count=len(matched),
        match_strength=match_strength,
    )
    return Placement(instance=instance, matched=tuple(matched))


def select_placement(placements: list[Placement], cfg: PipelineConfig) -> Placement | None:
    """
    Among placements clearing the residual and confidence thresholds, the
    lowest residual wins. Residuals within RESIDUAL_TIE_TOLERANCE of the
    best are tied, and ties go to the larger projected area.
    """
    accepted = [
        p
        for p in placements
        if p.instance.residual <= cfg.max_fit_residual
        and p.instance.confidence >= cfg.min_locate_confidence
    ]
    if not accepted:
        return None
    best_residual = min(p.instance.residual for p in accepted)
    tied = [p for p in accepted if p.instance.residual <= best_residual + config.RESIDUAL_TIE_TOLERANCE]
    return max(tied, key=lambda p: p.instance.area)


def locate(
    image: LoadedImage,
    chart_spec: ChartSpec,
    cfg: PipelineConfig | None = None,
) -> ChartInstance | ProcessingError:
    """
    Find the chart in an image.

    A chart that is not confidently found is a CHART_NOT_FOUND error,
    never a low-confidence guess.
    """
    cfg = cfg or PipelineConfig()
    min_members = max(4, cfg.min_fiducial_patches)

    binary = threshold_mask(image.pixels, cfg)
    candidates = find_patch_candidates(image.pixels, binary, cfg)
    logger.debug("locate: %d patch candidates in %s", len(candidates), image.path)

    placements: list[Placement] = []
    hypotheses = grid_hypotheses(candidates, min_members)
    if hypotheses:
        color_distances = delta_e_array(
            np.array([c.lab for c in candidates])[:, None, :],
            np.array([p.reference_lab for p in chart_spec.patches])[None, :, :],
            cfg.delta_e_method,
        )
        for hyp in hypotheses:
            identified = _identify(hyp, color_distances, chart_spec, min_members)
            if identified is None:
                continue
            placement = _fit_placement(hyp, *identified, candidates, chart_spec, cfg)
            if placement is not None:
                placements.append(placement)

    chosen = select_placement(placements, cfg)

    if cfg.debug_dir:
        from chart_judge.nodes.debug import write_locator_debug

        write_locator_debug(cfg.debug_dir, image, binary, candidates, chosen.instance if chosen else None)

    if chosen is None:
        if not placements:
            return _not_found(
                "no_candidates",
                f"No {chart_spec.name} patch grid found in image",
                candidates=len(candidates),
                required=min_members,
            )
        best = max(placements, key=lambda p: p.instance.confidence)
        return _not_found(
            "low_confidence",
            f"Chart detection below confidence threshold ({best.instance.confidence:.3f} "
            f"< {cfg.min_locate_confidence})",
            confidence=best.instance.confidence,
            residual=best.instance.residual,
            placements=len(placements),
        )

    logger.debug(
        "locate: %d fiducials, residual=%.4f, confidence=%.3f",
        chosen.instance.fiducial_count,
        chosen.instance.residual,
        chosen.instance.confidence,
    )
    return chosen.instance


def locate_node(state: PipelineState) -> PipelineState:
    """Updates state with chart_instance, or appends a CHART_NOT_FOUND error."""
    if state.image is None:
        return state
    result = locate(state.image, state.chart_spec, state.config)
    if isinstance(result, ProcessingError):
        return state.model_copy(update={"errors": state.errors + [result]})
    return state.model_copy(update={"chart_instance": result})
