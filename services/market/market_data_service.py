from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol, Type, TypeVar

from pydantic import BaseModel

from schemas.market_report import ChartDescriptionSet, MarketReport
from services.market.chart_config import build_chart_config
from services.market.report_store import ReportStore
from services.market.sources import extract_sources
from services.market.types import TextGeneration

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

DEFAULT_TOPIC = "plant-based milk in North America"

RESEARCH_PROMPT = """Search the web for market trends for {topic} for 2024-2025.
I need to know the market size, key players and their market share, and primary consumer drivers.
Please provide comprehensive information with sources.
"""

CHART_PROMPT = """Given the following market trends text, come up with a list of 1-3 meaningful bar or line charts
and generate chart data.

Market Trends:
{market_trends}
"""


class MarketModelClient(Protocol):
    async def generate_text_with_search(self, prompt: str) -> TextGeneration:
        ...

    async def generate_structured(self, prompt: str, schema: Type[SchemaT]) -> SchemaT:
        ...


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def resolve_topic(topic: Optional[str], default: str = DEFAULT_TOPIC) -> str:
    cleaned = (topic or "").strip()
    return cleaned or default


class MarketDataService:
    def __init__(self, client: MarketModelClient, store: ReportStore, *, default_topic: str = DEFAULT_TOPIC):
        self.client = client
        self.store = store
        self.default_topic = default_topic

    async def fetch(self, topic: Optional[str] = None) -> MarketReport:
        """Research a topic, chart it, and replace the cached report.

        Any ExternalServiceError from the model client propagates untouched and
        leaves the cached report as it was.
        """
        resolved = resolve_topic(topic, self.default_topic)
        logger.info("market.fetch.start topic=%s", resolved)
        try:
            research = await self.client.generate_text_with_search(RESEARCH_PROMPT.format(topic=resolved))
            sources = extract_sources(research.tool_results, resolved)
            logger.info(
                "market.fetch.sources tool_results=%s sources=%s",
                len(research.tool_results),
                len(sources),
            )

            chart_set = await self.client.generate_structured(
                CHART_PROMPT.format(market_trends=research.text),
                ChartDescriptionSet,
            )
            charts = [build_chart_config(d) for d in chart_set.chartConfigurations]
        except Exception:
            logger.exception("market.fetch.error topic=%s", resolved)
            raise

        report = MarketReport(
            narrative=research.text,
            charts=charts,
            sources=sources,
            generated_at=_iso_now(),
        )
        self.store.replace(report)
        logger.info("market.fetch.done topic=%s charts=%s version=%s", resolved, len(charts), self.store.version)
        return report
