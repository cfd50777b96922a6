"""
Host-facing entry point.

``judge_color_chart`` runs the whole pipeline for one photograph and
returns a ``JudgeResult`` that never raises across the boundary:
either a judgment (possibly with a non-blocking write error) or a
typed failure with an error kind and a human-readable message.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from chart_judge.models import (
    ChartJudgment,
    ChartSpec,
    ErrorKind,
    PipelineConfig,
    PipelineState,
    ProcessingError,
    ProcessingStage,
)

logger = logging.getLogger(__name__)


class BoundaryError(BaseModel):
    kind: ErrorKind
    message: str
    error_type: str | None = None


class JudgeResult(BaseModel):
    judgment: ChartJudgment | None = None
    error: BoundaryError | None = None
    write_error: BoundaryError | None = None
    destination_path: str = ""

    @property
    def ok(self) -> bool:
        return self.judgment is not None

    def to_record(self) -> dict[str, Any]:
        """Flat record for the platform channel."""
        if self.judgment is None:
            err = self.error or BoundaryError(kind=ErrorKind.INTERNAL_ERROR, message="no judgment")
            return {"status": "error", "kind": err.kind.value, "message": err.message}

        record: dict[str, Any] = {
            "status": "ok",
            "classification": self.judgment.classification.value,
            "aggregateDeviation": self.judgment.aggregate_deviation,
            "patches": [
                {
                    "index": p.index,
                    "sampledColor": list(p.sampled_lab) if p.sampled_lab is not None else None,
                    "deviation": p.deviation,
                    "passed": p.passed,
                }
                for p in self.judgment.patches
            ],
            "destinationPath": self.destination_path,
        }
        if self.write_error is not None:
            record["writeError"] = {
                "kind": self.write_error.kind.value,
                "message": self.write_error.message,
            }
        return record


def _boundary_error(err: ProcessingError) -> BoundaryError:
    return BoundaryError(kind=err.kind, message=err.message, error_type=err.error_type)


def result_from_state(state: PipelineState) -> JudgeResult:
    write_errors = [e for e in state.errors if e.stage == ProcessingStage.WRITE]
    fatal = [e for e in state.errors if not e.recoverable]

    if state.judgment is None:
        err = fatal[0] if fatal else ProcessingError(
            stage=ProcessingStage.JUDGE,
            kind=ErrorKind.INTERNAL_ERROR,
            error_type="no_judgment",
            recoverable=False,
            message="Pipeline finished without a judgment",
        )
        return JudgeResult(error=_boundary_error(err))

    return JudgeResult(
        judgment=state.judgment,
        write_error=_boundary_error(write_errors[0]) if write_errors else None,
        destination_path=state.written_path or "",
    )


def judge_color_chart(
    source_image_path: str,
    destination_path: str | None,
    chart_spec: ChartSpec | None = None,
    config: PipelineConfig | None = None,
) -> JudgeResult:
    """Judge the colour chart in ``source_image_path``; optionally write the annotated image."""
    from chart_judge.pipeline import run_pipeline

    try:
        state = run_pipeline(
            str(source_image_path),
            str(destination_path) if destination_path else None,
            chart_spec=chart_spec,
            config=config,
        )
    except ValidationError as e:
        logger.error("invalid pipeline input: %s", e)
        return JudgeResult(
            error=BoundaryError(kind=ErrorKind.INTERNAL_ERROR, message=str(e), error_type="invalid_input")
        )
    except Exception as e:
        logger.exception("unexpected pipeline failure for %s", source_image_path)
        return JudgeResult(
            error=BoundaryError(kind=ErrorKind.INTERNAL_ERROR, message=str(e), error_type="unexpected")
        )

    result = result_from_state(state)
    if result.error is not None:
        logger.info("%s: %s (%s)", source_image_path, result.error.kind.value, result.error.message)
    return result
