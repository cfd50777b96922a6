"""Colour chart judgment engine."""

from chart_judge.bridge import BoundaryError, JudgeResult, judge_color_chart
from chart_judge.config import ENGINE_VERSION


def version() -> str:
    """Engine version and the OpenCV build it runs on."""
    import cv2

    return f"chart-judge {ENGINE_VERSION} (OpenCV {cv2.__version__})"


__all__ = [
    "BoundaryError",
    "JudgeResult",
    "judge_color_chart",
    "version",
]
