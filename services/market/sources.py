from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from schemas.market_report import SourceRecord
from services.market.types import GOOGLE_SEARCH_TOOL, ToolInvocation

logger = logging.getLogger(__name__)


class MalformedToolResult(ValueError):
    """Raised when a search tool payload has none of the known shapes."""


class PayloadShape(str, Enum):
    LIST = "list"
    WRAPPED_RESULTS = "wrapped_results"
    WRAPPED_ITEMS = "wrapped_items"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class DecodedPayload:
    shape: PayloadShape
    entries: Tuple[Any, ...] = ()


# ----------------------------
# Fallback sets (first matching rule wins)
# ----------------------------

_MOBILE_MONEY_SOURCES: Tuple[Tuple[str, str, str], ...] = (
    (
        "Safaricom Annual Report 2024 - M-Pesa Performance",
        "https://www.safaricom.co.ke/annual-report",
        "Official Safaricom financial reports showing M-Pesa transaction volumes, revenue, and market expansion data.",
    ),
    (
        "Central Bank of Kenya - Mobile Money Statistics",
        "https://www.centralbank.go.ke/mobile-money-statistics/",
        "Government data on mobile money adoption, transaction volumes, and market share across different platforms.",
    ),
    (
        "GSMA Mobile Money State of the Industry Report",
        "https://www.gsma.com/mobilefordevelopment/mobile-money/",
        "Industry analysis of mobile money trends in Sub-Saharan Africa with focus on Kenya's leadership.",
    ),
    (
        "Kenya Association of Bankers - Digital Financial Services",
        "https://www.kba.co.ke/digital-banking-report",
        "Banking industry perspective on digital financial services and competition with mobile money platforms.",
    ),
)

_DIGITAL_LENDING_SOURCES: Tuple[Tuple[str, str, str], ...] = (
    (
        "Financial Sector Deepening Kenya - Digital Credit Report",
        "https://fsdkenya.org/digital-credit-report/",
        "Comprehensive analysis of digital lending market in Kenya including key players and market penetration.",
    ),
    (
        "Central Bank of Kenya - Digital Lenders Survey",
        "https://www.centralbank.go.ke/digital-lenders/",
        "Regulatory perspective on digital lending platforms and their impact on financial inclusion.",
    ),
    (
        "Tala and Branch Kenya Market Analysis",
        "https://techcrunch.com/fintech-africa-report/",
        "Technology and fintech industry analysis of major digital lending platforms in Kenya.",
    ),
)

_GENERIC_KENYA_SOURCES: Tuple[Tuple[str, str, str], ...] = (
    (
        "Kenya Economic Survey 2024 - Market Trends",
        "https://www.knbs.or.ke/economic-survey/",
        "Official government statistics and economic data relevant to the research topic.",
    ),
    (
        "African Development Bank - Kenya Country Report",
        "https://www.afdb.org/kenya-economic-outlook",
        "Regional development bank analysis of Kenya's economic sectors and market opportunities.",
    ),
    (
        "World Bank Kenya Economic Update",
        "https://www.worldbank.org/en/country/kenya/publication/kenya-economic-update",
        "International financial institution's assessment of Kenya's market conditions and trends.",
    ),
)

# (name, keywords, entries). Keyword match is a case-insensitive substring test.
FallbackRule = Tuple[str, Tuple[str, ...], Tuple[Tuple[str, str, str], ...]]

FALLBACK_RULES: Tuple[FallbackRule, ...] = (
    ("mobile_money", ("m-pesa", "kenya"), _MOBILE_MONEY_SOURCES),
    ("digital_lending", ("digital lending", "tala", "branch"), _DIGITAL_LENDING_SOURCES),
)
DEFAULT_FALLBACK: FallbackRule = ("generic_kenya", (), _GENERIC_KENYA_SOURCES)


def _today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _select_rule(topic: Optional[str]) -> FallbackRule:
    text = (topic or "").lower()
    for rule in FALLBACK_RULES:
        if any(keyword in text for keyword in rule[1]):
            return rule
    return DEFAULT_FALLBACK


def _rule_records(rule: FallbackRule, day: str) -> List[SourceRecord]:
    _, _, entries = rule
    return [SourceRecord(title=title, url=url, description=desc, date=day) for title, url, desc in entries]


def match_fallback_rule(topic: Optional[str]) -> str:
    return _select_rule(topic)[0]


def fallback_sources(topic: Optional[str], *, today: Optional[str] = None) -> List[SourceRecord]:
    return _rule_records(_select_rule(topic), today or _today_iso())


# ----------------------------
# Tool payload decoding
# ----------------------------

def decode_payload(payload: Any) -> DecodedPayload:
    if isinstance(payload, (list, tuple)):
        return DecodedPayload(PayloadShape.LIST, tuple(payload))
    if isinstance(payload, dict):
        results = payload.get("results")
        if isinstance(results, list):
            return DecodedPayload(PayloadShape.WRAPPED_RESULTS, tuple(results))
        items = payload.get("items")
        if isinstance(items, list):
            return DecodedPayload(PayloadShape.WRAPPED_ITEMS, tuple(items))
    return DecodedPayload(PayloadShape.UNRECOGNIZED)


def payload_entries(decoded: DecodedPayload) -> Tuple[Any, ...]:
    if decoded.shape is PayloadShape.UNRECOGNIZED:
        raise MalformedToolResult("search payload is not a list and has no results/items list")
    return decoded.entries


def _first_text(entry: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def coerce_source(entry: Any, *, today: str) -> Optional[SourceRecord]:
    if isinstance(entry, SourceRecord):
        return entry
    if not isinstance(entry, dict):
        return None
    return SourceRecord(
        title=_first_text(entry, "title", "name"),
        url=_first_text(entry, "url", "uri", "link"),
        description=_first_text(entry, "description", "snippet", "content"),
        date=_first_text(entry, "date", "published_date") or today,
    )


def flatten_search_results(tool_results: Iterable[ToolInvocation], *, today: Optional[str] = None) -> List[SourceRecord]:
    day = today or _today_iso()
    sources: List[SourceRecord] = []
    for index, result in enumerate(tool_results or []):
        if result.tool_name != GOOGLE_SEARCH_TOOL or not result.payload:
            continue
        try:
            entries = payload_entries(decode_payload(result.payload))
        except MalformedToolResult:
            logger.warning("sources.tool_result.malformed index=%s type=%s", index, type(result.payload).__name__)
            continue
        for entry in entries:
            record = coerce_source(entry, today=day)
            if record is None:
                logger.warning("sources.entry.skipped index=%s type=%s", index, type(entry).__name__)
                continue
            sources.append(record)
    return sources


def extract_sources(
    tool_results: Iterable[ToolInvocation],
    topic: Optional[str],
    *,
    today: Optional[str] = None,
) -> List[SourceRecord]:
    """Flatten search tool results into source records; fall back by topic when empty."""
    sources = flatten_search_results(tool_results, today=today)
    if sources:
        return sources
    rule = _select_rule(topic)
    logger.info("sources.fallback rule=%s", rule[0])
    return _rule_records(rule, today or _today_iso())
