from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

GOOGLE_SEARCH_TOOL = "google_search"


@dataclass(frozen=True)
class ToolInvocation:
    """Raw result of one tool call made by the model during text generation."""

    tool_name: str
    payload: Any = None


@dataclass(frozen=True)
class TextGeneration:
    text: str
    tool_results: List[ToolInvocation] = field(default_factory=list)
