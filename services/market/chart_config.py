from __future__ import annotations

from typing import Any, Dict

from schemas.market_report import ChartDescription

ANIMATION_DURATION_MS = 1000


def build_chart_config(description: ChartDescription) -> Dict[str, Any]:
    """Chart.js configuration for one AI chart description.

    Bars get the whole color list as per-bar fills; lines get only the first
    color as stroke, and only when one was supplied.
    """
    dataset: Dict[str, Any] = {
        "label": description.label,
        "data": list(description.data),
        "borderWidth": 1,
    }
    if description.type == "bar":
        dataset["backgroundColor"] = list(description.colors)
    elif description.type == "line" and description.colors:
        dataset["borderColor"] = description.colors[0]

    return {
        "type": description.type,
        "data": {
            "labels": list(description.labels),
            "datasets": [dataset],
        },
        "options": {
            "responsive": True,
            "maintainAspectRatio": False,
            "animation": {"duration": ANIMATION_DURATION_MS},
        },
    }
