from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

LabColor = tuple[float, float, float]


class ProcessingStage(str, Enum):
    LOAD = "load"
    LOCATE = "locate"
    SAMPLE = "sample"
    JUDGE = "judge"
    WRITE = "write"


class ErrorKind(str, Enum):
    DECODE_ERROR = "decode_error"
    CHART_NOT_FOUND = "chart_not_found"
    WRITE_ERROR = "write_error"
    INTERNAL_ERROR = "internal_error"


class ProcessingError(BaseModel):
    stage: ProcessingStage
    kind: ErrorKind
    error_type: str
    recoverable: bool
    message: str
    details: dict[str, Any] = {}


class Classification(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    INCONCLUSIVE = "INCONCLUSIVE"


class PatchSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    lab: LabColor | None
    pixel_count: int = 0

    @property
    def is_sampled(self) -> bool:
        return self.lab is not None


class PatchJudgment(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    name: str
    sampled_lab: LabColor | None
    reference_lab: LabColor
    tolerance: float
    deviation: float | None
    passed: bool | None

    @property
    def unsampled(self) -> bool:
        return self.sampled_lab is None


class ChartJudgment(BaseModel):
    model_config = ConfigDict(frozen=True)

    chart_name: str
    classification: Classification
    aggregate_deviation: float
    mean_deviation: float
    patches: tuple[PatchJudgment, ...]
    sampled_count: int
    unsampled_count: int
    delta_e_method: str
    locate_confidence: float | None = None
    output_path: str | None = None
