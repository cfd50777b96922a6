from chart_judge.charts.colorchecker import (
    COLORCHECKER_24,
    colorchecker_classic,
    grid_chart_spec,
    load_chart_spec,
)

__all__ = [
    "COLORCHECKER_24",
    "colorchecker_classic",
    "grid_chart_spec",
    "load_chart_spec",
]
