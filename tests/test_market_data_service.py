import asyncio
import unittest
from typing import List, Optional

from schemas.market_report import ChartDescriptionSet, MarketReport
from services.ai.gemini_client import ExternalServiceError
from services.market.market_data_service import DEFAULT_TOPIC, MarketDataService
from services.market.report_store import ReportStore
from services.market.types import TextGeneration, ToolInvocation

BAR_CHART = {
    "type": "bar",
    "labels": ["Oatly", "Silk", "Other"],
    "data": [31.0, 24.5, 44.5],
    "label": "Market share (%)",
    "colors": ["#1f77b4", "#ff7f0e", "#2ca02c"],
}

LINE_CHART = {
    "type": "line",
    "labels": ["2023", "2024", "2025"],
    "data": [2.8, 3.1, 3.4],
    "label": "Market size (USD bn)",
    "colors": ["#0b6e4f"],
}


class _FakeModelClient:
    def __init__(
        self,
        *,
        text: str = "Plant-based milk grew 8% in 2024.",
        tool_results: Optional[List[ToolInvocation]] = None,
        charts: Optional[List[dict]] = None,
        fail_text: bool = False,
        fail_structured: bool = False,
    ):
        self.text = text
        self.tool_results = tool_results or []
        self.charts = charts if charts is not None else [BAR_CHART]
        self.fail_text = fail_text
        self.fail_structured = fail_structured
        self.text_prompts: List[str] = []
        self.structured_prompts: List[str] = []

    async def generate_text_with_search(self, prompt: str) -> TextGeneration:
        self.text_prompts.append(prompt)
        if self.fail_text:
            raise ExternalServiceError("quota exceeded")
        return TextGeneration(text=self.text, tool_results=self.tool_results)

    async def generate_structured(self, prompt: str, schema):
        self.structured_prompts.append(prompt)
        if self.fail_structured:
            raise ExternalServiceError("malformed response")
        return schema.model_validate({"chartConfigurations": self.charts})


class MarketDataServiceTests(unittest.TestCase):
    def test_fetch_builds_report_and_replaces_cache(self) -> None:
        store = ReportStore()
        client = _FakeModelClient(
            tool_results=[
                ToolInvocation(
                    tool_name="google_search",
                    payload={"results": [{"title": "GFI", "url": "https://gfi.org", "description": "d", "date": "2025-02-01"}]},
                )
            ],
            charts=[BAR_CHART, LINE_CHART],
        )
        service = MarketDataService(client, store)

        report = asyncio.run(service.fetch("oat milk in Canada"))

        self.assertIs(store.get(), report)
        self.assertEqual(store.version, 1)
        self.assertEqual(report.narrative, "Plant-based milk grew 8% in 2024.")
        self.assertEqual([c["type"] for c in report.charts], ["bar", "line"])
        self.assertEqual(report.charts[1]["data"]["datasets"][0]["borderColor"], "#0b6e4f")
        self.assertEqual([s.url for s in report.sources], ["https://gfi.org"])
        self.assertTrue(report.generated_at.endswith("Z"))

    def test_prompts_carry_topic_and_narrative(self) -> None:
        client = _FakeModelClient(text="NARRATIVE-TEXT")
        asyncio.run(MarketDataService(client, ReportStore()).fetch("solar panels"))

        self.assertIn("market trends for solar panels for 2024-2025", client.text_prompts[0])
        self.assertIn("market size, key players and their market share", client.text_prompts[0])
        self.assertIn("1-3 meaningful bar or line charts", client.structured_prompts[0])
        self.assertIn("NARRATIVE-TEXT", client.structured_prompts[0])

    def test_missing_or_blank_topic_uses_default(self) -> None:
        for topic in (None, "", "   "):
            client = _FakeModelClient()
            asyncio.run(MarketDataService(client, ReportStore()).fetch(topic))
            self.assertIn(DEFAULT_TOPIC, client.text_prompts[0])

    def test_no_search_results_uses_fallback_sources(self) -> None:
        report = asyncio.run(MarketDataService(_FakeModelClient(), ReportStore()).fetch("M-Pesa ecosystem"))
        self.assertEqual(len(report.sources), 4)

    def test_failed_fetch_keeps_previous_report(self) -> None:
        store = ReportStore()
        client = _FakeModelClient()
        service = MarketDataService(client, store)

        first = asyncio.run(service.fetch("first"))
        client.fail_structured = True
        with self.assertRaises(ExternalServiceError):
            asyncio.run(service.fetch("second"))

        self.assertIs(store.get(), first)
        self.assertEqual(store.version, 1)

    def test_failed_first_fetch_leaves_cache_empty(self) -> None:
        store = ReportStore()
        service = MarketDataService(_FakeModelClient(fail_text=True), store)
        with self.assertRaises(ExternalServiceError):
            asyncio.run(service.fetch())
        self.assertIsNone(store.get())

    def test_structured_step_not_called_when_text_step_fails(self) -> None:
        client = _FakeModelClient(fail_text=True)
        with self.assertRaises(ExternalServiceError):
            asyncio.run(MarketDataService(client, ReportStore()).fetch("x"))
        self.assertEqual(client.structured_prompts, [])

    def test_second_fetch_replaces_report_wholesale(self) -> None:
        store = ReportStore()
        client = _FakeModelClient(text="first text")
        service = MarketDataService(client, store)
        first = asyncio.run(service.fetch("a"))
        client.text = "second text"
        second = asyncio.run(service.fetch("b"))

        self.assertIsNot(first, second)
        self.assertEqual(first.narrative, "first text")
        self.assertIs(store.get(), second)
        self.assertEqual(store.version, 2)


class MarketReportPayloadTests(unittest.TestCase):
    def test_payload_uses_dashboard_keys(self) -> None:
        report = MarketReport(narrative="n", charts=[], sources=[], generated_at="2025-01-01T00:00:00Z")
        self.assertEqual(
            report.to_payload(),
            {"marketTrends": "n", "chartConfigs": [], "sources": [], "lastUpdated": "2025-01-01T00:00:00Z"},
        )

    def test_chart_set_schema_is_what_the_client_receives(self) -> None:
        seen = {}

        class _Recorder(_FakeModelClient):
            async def generate_structured(self, prompt, schema):
                seen["schema"] = schema
                return await super().generate_structured(prompt, schema)

        asyncio.run(MarketDataService(_Recorder(), ReportStore()).fetch("x"))
        self.assertIs(seen["schema"], ChartDescriptionSet)


if __name__ == "__main__":
    unittest.main()
