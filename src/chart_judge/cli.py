"""CLI for colour chart judgment with concurrent processing."""

import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator
from pathlib import Path

import click
from pydantic import ValidationError

from chart_judge import config
from chart_judge.bridge import JudgeResult, judge_color_chart
from chart_judge.charts import load_chart_spec
from chart_judge.models import ChartSpec, PipelineConfig

Job = tuple[int, Path, Path | None]  # input position, source, destination


def _destinations(images: tuple[Path, ...], output_dir: Path) -> list[Path]:
    """One <stem>_judged.png per input; repeated stems get a numeric suffix."""
    used: set[str] = set()
    destinations = []
    for img_path in images:
        name = f"{img_path.stem}_judged.png"
        n = 1
        while name.lower() in used:
            n += 1
            name = f"{img_path.stem}_{n}_judged.png"
        used.add(name.lower())
        destinations.append(output_dir / name)
    return destinations


async def process_single_image(
    job: Job,
    chart_spec: ChartSpec | None,
    pipeline_config: PipelineConfig,
    semaphore: asyncio.Semaphore,
    verbose: bool,
) -> tuple[int, Path, JudgeResult]:
    """Judge a single image with semaphore control."""
    position, img_path, destination = job
    async with semaphore:
        if verbose:
            click.echo(f"Processing: {img_path}", err=True)
        # The pipeline is CPU-bound OpenCV work; run it off the event loop
        result = await asyncio.to_thread(
            judge_color_chart,
            str(img_path),
            str(destination) if destination else None,
            chart_spec,
            pipeline_config,
        )
        return position, img_path, result


async def process_images_concurrent(
    jobs: list[Job],
    chart_spec: ChartSpec | None,
    pipeline_config: PipelineConfig,
    max_concurrency: int,
    verbose: bool,
) -> AsyncIterator[tuple[int, Path, JudgeResult]]:
    """Judge images with a bounded in-flight queue and stream completed results."""
    semaphore = asyncio.Semaphore(max_concurrency)
    job_iter = iter(jobs)
    in_flight: set[asyncio.Task[tuple[int, Path, JudgeResult]]] = set()

    def _schedule_next() -> bool:
        try:
            job = next(job_iter)
        except StopIteration:
            return False
        task = asyncio.create_task(
            process_single_image(job, chart_spec, pipeline_config, semaphore, verbose)
        )
        in_flight.add(task)
        return True

    for _ in range(min(max_concurrency, len(jobs))):
        _schedule_next()

    while in_flight:
        done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
        for completed in done:
            in_flight.remove(completed)
            yield completed.result()
            _schedule_next()


@click.command()
@click.argument("images", nargs=-1, type=click.Path(path_type=Path))
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output image (single image)")
@click.option("--output-dir", type=click.Path(path_type=Path), help="Output directory (batch mode)")
@click.option(
    "--chart",
    "chart_path",
    type=click.Path(exists=True, path_type=Path),
    help="ChartSpec JSON (default: ColorChecker Classic 24)",
)
@click.option(
    "--delta-e",
    type=click.Choice(["cie76", "ciede2000"]),
    default=config.DEFAULT_DELTA_E_METHOD,
    help="Colour difference formula",
)
@click.option(
    "--min-confidence",
    type=float,
    default=config.MIN_LOCATE_CONFIDENCE,
    help="Minimum chart detection confidence",
)
@click.option("--no-annotate", is_flag=True, help="Write the image without patch overlays")
@click.option("--correct", is_flag=True, help="Apply a fitted colour correction to the output image")
@click.option("--allow-overwrite", is_flag=True, help="Allow the output to replace the source image")
@click.option("--debug-dir", type=click.Path(path_type=Path), help="Write locator debug images here")
@click.option(
    "--max-concurrency",
    type=int,
    default=config.DEFAULT_MAX_CONCURRENCY,
    help="Max concurrent analyses",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def main(
    images: tuple[Path, ...],
    output: Path | None,
    output_dir: Path | None,
    chart_path: Path | None,
    delta_e: str,
    min_confidence: float,
    no_annotate: bool,
    correct: bool,
    allow_overwrite: bool,
    debug_dir: Path | None,
    max_concurrency: int,
    verbose: bool,
) -> None:
    """Judge colour calibration charts in IMAGES and print one JSON record per image."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not images:
        click.echo("Error: No input images provided", err=True)
        sys.exit(1)

    batch = len(images) > 1 or output_dir is not None
    if batch and output:
        click.echo("Error: Use --output-dir for batch processing", err=True)
        sys.exit(1)
    if max_concurrency < 1:
        click.echo("Error: --max-concurrency must be >= 1", err=True)
        sys.exit(1)

    chart_spec = None
    if chart_path is not None:
        try:
            chart_spec = load_chart_spec(chart_path)
        except (ValidationError, OSError) as e:
            click.echo(json.dumps({"status": "error", "kind": "internal_error", "message": str(e)}))
            sys.exit(1)

    pipeline_config = PipelineConfig(
        delta_e_method=delta_e,
        min_locate_confidence=min_confidence,
        annotate=not no_annotate,
        correct_colors=correct,
        allow_overwrite=allow_overwrite,
        debug_dir=str(debug_dir) if debug_dir else None,
    )

    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)
        jobs: list[Job] = [
            (i, img, dest) for i, (img, dest) in enumerate(zip(images, _destinations(images, output_dir)))
        ]
    elif batch:
        jobs = [(i, img, None) for i, img in enumerate(images)]
    else:
        jobs = [(0, images[0], output)]

    async def _run() -> list[tuple[int, Path, JudgeResult]]:
        results = []
        async for position, img_path, result in process_images_concurrent(
            jobs, chart_spec, pipeline_config, max_concurrency, verbose
        ):
            results.append((position, img_path, result))
            if verbose:
                status = result.judgment.classification.value if result.judgment else result.error.kind.value
                click.echo(f"  {img_path}: {status}", err=True)
            if result.write_error is not None:
                click.echo(f"  Warning: {result.write_error.message}", err=True)
        return results

    results = asyncio.run(_run())
    fail_count = sum(1 for _, _, result in results if not result.ok)

    # Report in input order
    for _, img_path, result in sorted(results, key=lambda r: r[0]):
        record = {"source": str(img_path), **result.to_record()}
        click.echo(json.dumps(record))

    if batch:
        click.echo(
            f"Processed {len(results)} images: {len(results) - fail_count} judged, {fail_count} failed",
            err=True,
        )

    if fail_count > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
