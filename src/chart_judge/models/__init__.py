from .judgment import (
    ChartJudgment,
    Classification,
    ErrorKind,
    LabColor,
    PatchJudgment,
    PatchSample,
    ProcessingError,
    ProcessingStage,
)
from .chart_spec import ChartSpec, PatchSpec, reference_for
from .geometry import ChartInstance, LoadedImage
from .state import PipelineConfig, PipelineState

__all__ = [
    "ChartInstance",
    "ChartJudgment",
    "ChartSpec",
    "Classification",
    "ErrorKind",
    "LabColor",
    "LoadedImage",
    "PatchJudgment",
    "PatchSample",
    "PatchSpec",
    "PipelineConfig",
    "PipelineState",
    "ProcessingError",
    "ProcessingStage",
    "reference_for",
]
