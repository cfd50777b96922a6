"""Pipeline nodes for chart judgment.

Stage modules are imported lazily, when a node first runs.
"""

from __future__ import annotations

from chart_judge.models import PipelineState


def load(state: PipelineState) -> PipelineState:
    from chart_judge.nodes.loader import load_node

    return load_node(state)


def locate(state: PipelineState) -> PipelineState:
    from chart_judge.nodes.locator import locate_node

    return locate_node(state)


def sample(state: PipelineState) -> PipelineState:
    from chart_judge.nodes.sampler import sample_node

    return sample_node(state)


def judge(state: PipelineState) -> PipelineState:
    from chart_judge.nodes.judgment import judge_node

    return judge_node(state)


def write(state: PipelineState) -> PipelineState:
    from chart_judge.nodes.writer import write_node

    return write_node(state)


__all__ = [
    "judge",
    "load",
    "locate",
    "sample",
    "write",
]
