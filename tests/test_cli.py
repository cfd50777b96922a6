import json
from pathlib import Path

from click.testing import CliRunner

from chart_judge.cli import main
from chart_judge.charts import colorchecker_classic


def _records(output: str) -> list[dict]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


def test_single_image(chart_image, tmp_path):
    dest = tmp_path / "out.png"
    result = CliRunner().invoke(main, [str(chart_image), "-o", str(dest)])
    (record,) = _records(result.output)
    assert record["source"] == str(chart_image)
    assert record["status"] == "ok"
    assert record["destinationPath"] == str(dest)
    assert dest.is_file()


def test_batch_reports_in_input_order(chart_image, no_chart_image, tmp_path):
    out_dir = tmp_path / "judged"
    result = CliRunner().invoke(
        main, [str(no_chart_image), str(chart_image), "--output-dir", str(out_dir), "--max-concurrency", "2"]
    )
    records = _records(result.output)
    assert [r["source"] for r in records] == [str(no_chart_image), str(chart_image)]
    assert records[0] == {
        "source": str(no_chart_image),
        "status": "error",
        "kind": "chart_not_found",
        "message": records[0]["message"],
    }
    assert records[1]["status"] == "ok"
    assert (out_dir / "chart_judged.png").is_file()
    assert result.exit_code == 1


def test_custom_chart_file(chart_image, chart_spec, tmp_path):
    chart_path = tmp_path / "chart.json"
    chart_path.write_text(chart_spec.model_dump_json(), encoding="utf-8")
    result = CliRunner().invoke(main, [str(chart_image), "--chart", str(chart_path), "--no-annotate"])
    (record,) = _records(result.output)
    assert record["classification"] == "PASS"
    assert record["destinationPath"] == ""
    assert result.exit_code == 0


def test_malformed_chart_file(chart_image, tmp_path):
    data = colorchecker_classic().model_dump(mode="json")
    data["rows"] = 0
    chart_path = tmp_path / "chart.json"
    chart_path.write_text(json.dumps(data), encoding="utf-8")
    result = CliRunner().invoke(main, [str(chart_image), "--chart", str(chart_path)])
    (record,) = _records(result.output)
    assert record["status"] == "error"
    assert result.exit_code == 1


def test_output_with_multiple_images_is_rejected(chart_image, no_chart_image, tmp_path):
    result = CliRunner().invoke(main, [str(chart_image), str(no_chart_image), "-o", str(tmp_path / "x.png")])
    assert result.exit_code == 1
    assert _records(result.output) == []


def test_no_images(tmp_path):
    result = CliRunner().invoke(main, [])
    assert result.exit_code == 1


def test_batch_same_stem_inputs_get_distinct_outputs(chart_image, tmp_path):
    first, second = tmp_path / "a" / "x.png", tmp_path / "b" / "x.png"
    for path in (first, second):
        path.parent.mkdir()
        path.write_bytes(chart_image.read_bytes())
    out_dir = tmp_path / "judged"

    result = CliRunner().invoke(main, [str(first), str(second), "--output-dir", str(out_dir)])

    records = _records(result.output)
    assert [r["source"] for r in records] == [str(first), str(second)]
    destinations = [r["destinationPath"] for r in records]
    assert destinations == [str(out_dir / "x_judged.png"), str(out_dir / "x_2_judged.png")]
    assert all(Path(d).is_file() for d in destinations)
    assert result.exit_code == 0


def test_same_image_twice_reports_both(chart_image, tmp_path):
    result = CliRunner().invoke(main, [str(chart_image), str(chart_image), "--output-dir", str(tmp_path / "out")])
    records = _records(result.output)
    assert len(records) == 2
    assert records[0]["destinationPath"] != records[1]["destinationPath"]
