"""
Built-in chart definitions.

ColorChecker Classic 24 reference values are the BabelColor CIE L*a*b*
averages (D50, 2 degree observer). Samples are decoded as sRGB and
Bradford-adapted to D50 before comparison. The chart is laid out as
4 rows of 6 patches:

    Row 1: dark skin .. bluish green
    Row 2: orange .. orange yellow
    Row 3: blue .. cyan
    Row 4: white .. black (neutral ramp)
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import lru_cache
from pathlib import Path

from chart_judge import config
from chart_judge.models import ChartSpec, LabColor, PatchSpec

COLORCHECKER_24: tuple[tuple[str, LabColor], ...] = (
    ("dark skin", (37.99, 13.56, 14.06)),
    ("light skin", (65.71, 18.13, 17.81)),
    ("blue sky", (49.93, -4.88, -21.93)),
    ("foliage", (43.14, -13.10, 21.91)),
    ("blue flower", (55.11, 8.84, -25.40)),
    ("bluish green", (70.72, -33.40, -0.20)),
    ("orange", (62.66, 36.07, 57.10)),
    ("purplish blue", (40.02, 10.41, -45.96)),
    ("moderate red", (51.12, 48.24, 16.25)),
    ("purple", (30.33, 22.98, -21.59)),
    ("yellow green", (72.53, -23.71, 57.26)),
    ("orange yellow", (71.94, 19.36, 67.86)),
    ("blue", (28.78, 14.18, -50.30)),
    ("green", (55.26, -38.34, 31.37)),
    ("red", (42.10, 53.38, 28.19)),
    ("yellow", (81.73, 4.04, 79.82)),
    ("magenta", (51.94, 49.99, -14.57)),
    ("cyan", (51.04, -28.63, -28.64)),
    ("white", (96.54, -0.43, 1.19)),
    ("neutral 8", (81.26, -0.64, -0.34)),
    ("neutral 6.5", (66.77, -0.73, -0.50)),
    ("neutral 5", (50.87, -0.15, -0.27)),
    ("neutral 3.5", (35.66, -0.42, -1.23)),
    ("black", (20.46, -0.08, -0.97)),
)


def grid_chart_spec(
    name: str,
    rows: int,
    cols: int,
    references: Sequence[tuple[str, LabColor]],
    tolerance: float | Sequence[float] = config.DEFAULT_PATCH_TOLERANCE,
    margin: float = 0.05,
    gap_ratio: float = 0.2,
    aspect_ratio: float = 1.5,
) -> ChartSpec:
    """
    Build a row-major grid chart.

    The area inside ``margin`` is split into equal cells; each patch is
    centered in its cell and leaves ``gap_ratio`` of the cell pitch as
    card gap between neighbours.
    """
    if len(references) != rows * cols:
        raise ValueError(f"expected {rows * cols} references, got {len(references)}")
    tolerances = (
        [float(tolerance)] * len(references)
        if isinstance(tolerance, (int, float))
        else [float(t) for t in tolerance]
    )
    if len(tolerances) != len(references):
        raise ValueError("one tolerance per patch is required")

    pitch_x = (1.0 - 2.0 * margin) / cols
    pitch_y = (1.0 - 2.0 * margin) / rows
    half_gap_x = pitch_x * gap_ratio / 2.0
    half_gap_y = pitch_y * gap_ratio / 2.0

    patches = []
    for index, (patch_name, lab) in enumerate(references):
        row, col = divmod(index, cols)
        x0 = margin + col * pitch_x
        y0 = margin + row * pitch_y
        patches.append(
            PatchSpec(
                index=index,
                name=patch_name,
                row=row,
                col=col,
                region=(x0 + half_gap_x, y0 + half_gap_y, x0 + pitch_x - half_gap_x, y0 + pitch_y - half_gap_y),
                reference_lab=tuple(float(v) for v in lab),
                tolerance=tolerances[index],
            )
        )
    return ChartSpec(name=name, rows=rows, cols=cols, patches=tuple(patches), aspect_ratio=aspect_ratio)


@lru_cache(maxsize=1)
def colorchecker_classic() -> ChartSpec:
    return grid_chart_spec("ColorChecker Classic 24", rows=4, cols=6, references=COLORCHECKER_24)


def load_chart_spec(path: str | Path) -> ChartSpec:
    """Read a ChartSpec from JSON. Raises pydantic.ValidationError on malformed layouts."""
    return ChartSpec.model_validate_json(Path(path).read_text(encoding="utf-8"))
