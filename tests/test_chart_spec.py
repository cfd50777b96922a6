import json

import pytest
from pydantic import ValidationError

from chart_judge.charts import COLORCHECKER_24, colorchecker_classic, grid_chart_spec, load_chart_spec
from chart_judge.models import ChartSpec, PatchSpec, reference_for


def _patch(index, row, col, region, tolerance=10.0):
    return PatchSpec(
        index=index, name=f"p{index}", row=row, col=col, region=region,
        reference_lab=(50.0, 0.0, 0.0), tolerance=tolerance,
    )


def test_colorchecker_layout():
    spec = colorchecker_classic()
    assert spec.rows == 4 and spec.cols == 6
    assert len(spec.patches) == 24
    assert spec.patches[0].name == "dark skin"
    assert spec.patches[23].name == "black"
    assert (spec.patches[23].row, spec.patches[23].col) == (3, 5)


def test_reference_for_is_total_and_deterministic():
    spec = colorchecker_classic()
    for index, (_, lab) in enumerate(COLORCHECKER_24):
        first = spec.reference_for(index)
        assert first == spec.reference_for(index)
        assert first == reference_for(spec, index)
        assert first[0] == pytest.approx(lab)
        assert first[1] == 10.0


@pytest.mark.parametrize("index", [-1, 24, 100])
def test_reference_for_rejects_undeclared_index(index):
    with pytest.raises(ValueError):
        colorchecker_classic().reference_for(index)


def test_regions_are_inside_unit_square_and_disjoint():
    spec = colorchecker_classic()
    for patch in spec.patches:
        x0, y0, x1, y1 = patch.region
        assert 0.0 <= x0 < x1 <= 1.0
        assert 0.0 <= y0 < y1 <= 1.0
    first, right = spec.patches[0], spec.patches[1]
    assert first.region[2] < right.region[0]


def test_overlapping_patches_are_rejected():
    with pytest.raises(ValidationError, match="overlap"):
        ChartSpec(
            name="bad",
            rows=1,
            cols=2,
            patches=(
                _patch(0, 0, 0, (0.1, 0.1, 0.6, 0.9)),
                _patch(1, 0, 1, (0.5, 0.1, 0.9, 0.9)),
            ),
        )


def test_region_outside_chart_is_rejected():
    with pytest.raises(ValidationError, match="outside"):
        ChartSpec(name="bad", rows=1, cols=1, patches=(_patch(0, 0, 0, (0.5, 0.5, 1.2, 0.9)),))


def test_duplicate_grid_cell_is_rejected():
    with pytest.raises(ValidationError, match="declared twice"):
        ChartSpec(
            name="bad",
            rows=1,
            cols=2,
            patches=(
                _patch(0, 0, 0, (0.0, 0.0, 0.4, 1.0)),
                _patch(1, 0, 0, (0.5, 0.0, 0.9, 1.0)),
            ),
        )


def test_out_of_order_indices_are_rejected():
    with pytest.raises(ValidationError, match="in order"):
        ChartSpec(name="bad", rows=1, cols=1, patches=(_patch(3, 0, 0, (0.1, 0.1, 0.9, 0.9)),))


def test_non_positive_tolerance_is_rejected():
    with pytest.raises(ValidationError):
        _patch(0, 0, 0, (0.1, 0.1, 0.9, 0.9), tolerance=0.0)


def test_touching_patches_are_allowed():
    spec = ChartSpec(
        name="touching",
        rows=1,
        cols=2,
        patches=(_patch(0, 0, 0, (0.0, 0.0, 0.5, 1.0)), _patch(1, 0, 1, (0.5, 0.0, 1.0, 1.0))),
    )
    assert len(spec.patches) == 2


def test_chart_spec_is_immutable():
    spec = colorchecker_classic()
    with pytest.raises(ValidationError):
        spec.name = "other"


def test_grid_chart_spec_per_patch_tolerance():
    refs = [("a", (10.0, 0.0, 0.0)), ("b", (20.0, 0.0, 0.0))]
    spec = grid_chart_spec("pair", rows=1, cols=2, references=refs, tolerance=[2.0, 5.0])
    assert spec.reference_for(0) == ((10.0, 0.0, 0.0), 2.0)
    assert spec.reference_for(1) == ((20.0, 0.0, 0.0), 5.0)


def test_grid_chart_spec_requires_full_grid():
    with pytest.raises(ValueError):
        grid_chart_spec("short", rows=2, cols=2, references=[("a", (0.0, 0.0, 0.0))])


def test_load_chart_spec_from_json(tmp_path):
    path = tmp_path / "chart.json"
    path.write_text(colorchecker_classic().model_dump_json(), encoding="utf-8")
    assert load_chart_spec(path) == colorchecker_classic()


def test_load_chart_spec_rejects_malformed_layout(tmp_path):
    data = colorchecker_classic().model_dump(mode="json")
    data["patches"][1]["region"] = data["patches"][0]["region"]
    path = tmp_path / "chart.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(ValidationError):
        load_chart_spec(path)
