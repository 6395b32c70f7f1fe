from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SourceRecord(BaseModel):
    title: str
    url: str
    description: str = ""
    date: str

    model_config = ConfigDict(frozen=True)


class ChartDescription(BaseModel):
    type: Literal["bar", "line"] = Field(description='The type of chart to generate. Either "bar" or "line"')
    labels: List[str] = Field(description="A list of chart labels")
    data: List[Union[int, float]] = Field(description="A list of the chart data")
    label: str = Field(description="A label for the chart")
    colors: List[str] = Field(
        description='A list of colors to use for the chart, e.g. "rgba(255, 99, 132, 0.8)"'
    )

    @model_validator(mode="after")
    def _labels_match_data(self) -> "ChartDescription":
        if len(self.labels) != len(self.data):
            raise ValueError(
                f"labels and data must have the same length ({len(self.labels)} != {len(self.data)})"
            )
        return self


class ChartDescriptionSet(BaseModel):
    chartConfigurations: List[ChartDescription] = Field(
        min_length=1,
        max_length=3,
        description="A list of chart configurations",
    )


class MarketReport(BaseModel):
    """One fetch cycle: narrative, Chart.js configs, citations and timestamp.

    Wire keys (marketTrends, chartConfigs, lastUpdated) are what the dashboard reads.
    """

    narrative: str = Field(alias="marketTrends")
    charts: List[Dict[str, Any]] = Field(default_factory=list, alias="chartConfigs")
    sources: List[SourceRecord] = Field(default_factory=list)
    generated_at: str = Field(alias="lastUpdated")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RefreshRequest(BaseModel):
    topic: Optional[str] = None
