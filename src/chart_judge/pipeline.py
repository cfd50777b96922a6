"""LangGraph pipeline for colour chart judgment."""

import logging

from langgraph.graph import END, StateGraph

from chart_judge.models import ChartSpec, PipelineConfig, PipelineState, ProcessingStage
from chart_judge.nodes import judge, load, locate, sample, write

logger = logging.getLogger(__name__)


def _failed(state: PipelineState, stage: ProcessingStage) -> bool:
    return any(err.stage == stage and not err.recoverable for err in state.errors)


def _route_load(state: PipelineState) -> str:
    if _failed(state, ProcessingStage.LOAD) or state.image is None:
        return END
    return "locate"


def _route_locate(state: PipelineState) -> str:
    # An undetected chart is never sampled or judged
    if _failed(state, ProcessingStage.LOCATE) or state.chart_instance is None:
        return END
    return "sample"


def _route_sample(state: PipelineState) -> str:
    if _failed(state, ProcessingStage.SAMPLE) or state.samples is None:
        return END
    return "judge"


def _route_judge(state: PipelineState) -> str:
    if _failed(state, ProcessingStage.JUDGE) or state.judgment is None:
        return END
    if state.destination_path is None or not state.config.write_output:
        return END
    return "write"


def create_pipeline():
    graph = StateGraph(PipelineState)

    graph.add_node("load", load)
    graph.add_node("locate", locate)
    graph.add_node("sample", sample)
    graph.add_node("judge", judge)
    graph.add_node("write", write)

    graph.set_entry_point("load")

    graph.add_conditional_edges("load", _route_load, {"locate": "locate", END: END})
    graph.add_conditional_edges("locate", _route_locate, {"sample": "sample", END: END})
    graph.add_conditional_edges("sample", _route_sample, {"judge": "judge", END: END})
    graph.add_conditional_edges("judge", _route_judge, {"write": "write", END: END})
    graph.add_edge("write", END)

    return graph.compile()


def run_pipeline(
    image_path: str,
    destination_path: str | None = None,
    chart_spec: ChartSpec | None = None,
    config: PipelineConfig | None = None,
) -> PipelineState:
    initial = PipelineState(
        image_path=image_path,
        destination_path=destination_path,
        config=config or PipelineConfig(),
        **({"chart_spec": chart_spec} if chart_spec is not None else {}),
    )
    logger.debug("pipeline: %s -> %s", image_path, destination_path)
    result = pipeline.invoke(initial)
    return result if isinstance(result, PipelineState) else PipelineState(**result)


pipeline = create_pipeline()
