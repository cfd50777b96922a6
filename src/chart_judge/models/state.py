from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from chart_judge import config

from .chart_spec import ChartSpec
from .geometry import ChartInstance, LoadedImage
from .judgment import ChartJudgment, PatchSample, ProcessingError

DeltaEMethod = Literal["cie76", "ciede2000"]


def _default_chart_spec() -> ChartSpec:
    from chart_judge.charts import colorchecker_classic

    return colorchecker_classic()


class PipelineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_locate_confidence: float = config.MIN_LOCATE_CONFIDENCE
    max_fit_residual: float = config.MAX_FIT_RESIDUAL
    min_fiducial_patches: int = config.MIN_FIDUCIAL_PATCHES

    adaptive_block_fraction: float = config.ADAPTIVE_BLOCK_FRACTION
    adaptive_offset: float = config.ADAPTIVE_OFFSET
    min_patch_area_fraction: float = config.MIN_PATCH_AREA_FRACTION
    max_patch_area_fraction: float = config.MAX_PATCH_AREA_FRACTION

    sample_inset: float = config.SAMPLE_INSET
    trim_fraction: float = config.TRIM_FRACTION

    delta_e_method: DeltaEMethod = config.DEFAULT_DELTA_E_METHOD

    # Output
    write_output: bool = True
    annotate: bool = True
    correct_colors: bool = False
    allow_overwrite: bool = False

    # Locator debug artifacts
    debug_dir: str | None = None


class PipelineState(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    image_path: str
    destination_path: str | None = None
    chart_spec: ChartSpec = Field(default_factory=_default_chart_spec)
    config: PipelineConfig = PipelineConfig()

    image: LoadedImage | None = None
    chart_instance: ChartInstance | None = None
    samples: list[PatchSample] | None = None
    judgment: ChartJudgment | None = None
    written_path: str | None = None

    errors: list[ProcessingError] = []
