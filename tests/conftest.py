from pathlib import Path

import pytest

from chart_judge.models import ChartSpec
from tests.synthetic import render_chart_image, render_no_chart_image, synthetic_chart_spec

ROTATED_ANGLE = 10.0
# Right edge of the canvas cuts through the last column for rows 2 and 3 only
CROPPED_CENTER = (534.0, 300.0)


@pytest.fixture(scope="session")
def chart_spec() -> ChartSpec:
    return synthetic_chart_spec()


@pytest.fixture
def chart_image(tmp_path: Path, chart_spec: ChartSpec) -> Path:
    path = tmp_path / "chart.png"
    render_chart_image(path, chart_spec)
    return path


@pytest.fixture
def rotated_chart_image(tmp_path: Path, chart_spec: ChartSpec) -> Path:
    path = tmp_path / "rotated.png"
    render_chart_image(path, chart_spec, angle_deg=ROTATED_ANGLE)
    return path


@pytest.fixture
def no_chart_image(tmp_path: Path) -> Path:
    path = tmp_path / "empty.png"
    render_no_chart_image(path)
    return path
