"""Judgment engine: compare sampled patch colours with the chart references."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from chart_judge.models import (
    ChartJudgment,
    ChartSpec,
    Classification,
    ErrorKind,
    PatchJudgment,
    PatchSample,
    PipelineState,
    ProcessingError,
    ProcessingStage,
)
from chart_judge.utils import delta_e

logger = logging.getLogger(__name__)


def classify(patches: Sequence[PatchJudgment]) -> Classification:
    """FAIL outranks INCONCLUSIVE: any failed sampled patch decides the outcome."""
    if any(p.passed is False for p in patches):
        return Classification.FAIL
    if any(p.unsampled for p in patches):
        return Classification.INCONCLUSIVE
    return Classification.PASS


def judge(
    samples: Sequence[PatchSample],
    chart_spec: ChartSpec,
    method: str = "cie76",
    locate_confidence: float | None = None,
) -> ChartJudgment | ProcessingError:
    if [s.index for s in samples] != [p.index for p in chart_spec.patches]:
        return ProcessingError(
            stage=ProcessingStage.JUDGE,
            kind=ErrorKind.INTERNAL_ERROR,
            error_type="sample_mismatch",
            recoverable=False,
            message=(
                f"Expected one sample per patch of {chart_spec.name} "
                f"({len(chart_spec.patches)}), got {len(samples)}"
            ),
        )

    patches = []
    for sample in samples:
        reference, tolerance = chart_spec.reference_for(sample.index)
        if sample.lab is None:
            deviation, passed = None, None
        else:
            deviation = delta_e(sample.lab, reference, method)
            passed = deviation <= tolerance
        patches.append(
            PatchJudgment(
                index=sample.index,
                name=chart_spec.patches[sample.index].name,
                sampled_lab=sample.lab,
                reference_lab=reference,
                tolerance=tolerance,
                deviation=deviation,
                passed=passed,
            )
        )

    deviations = [p.deviation for p in patches if p.deviation is not None]
    classification = classify(patches)
    logger.debug(
        "judge: %s, max dE %.3f over %d sampled patches",
        classification.value,
        max(deviations, default=0.0),
        len(deviations),
    )
    return ChartJudgment(
        chart_name=chart_spec.name,
        classification=classification,
        aggregate_deviation=max(deviations, default=0.0),
        mean_deviation=sum(deviations) / len(deviations) if deviations else 0.0,
        patches=tuple(patches),
        sampled_count=len(deviations),
        unsampled_count=len(patches) - len(deviations),
        delta_e_method=method,
        locate_confidence=locate_confidence,
    )


def judge_node(state: PipelineState) -> PipelineState:
    if state.samples is None:
        return state
    confidence = state.chart_instance.confidence if state.chart_instance else None
    result = judge(state.samples, state.chart_spec, state.config.delta_e_method, confidence)
    if isinstance(result, ProcessingError):
        return state.model_copy(update={"errors": state.errors + [result]})
    return state.model_copy(update={"judgment": result})
