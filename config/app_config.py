from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

from services.market.market_data_service import DEFAULT_TOPIC

load_dotenv()

STARTUP_TOPIC = (
    "M-Pesa ecosystem analysis, market expansion, competition from Airtel Money, "
    "T-Kash, and international players in Kenya"
)


def _split_csv(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class AppConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    static_dir: str = "public"
    default_topic: str = DEFAULT_TOPIC
    startup_topic: str = STARTUP_TOPIC
    prefetch_on_startup: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @staticmethod
    def from_env() -> "AppConfig":
        return AppConfig(
            host=os.getenv("HOST") or "0.0.0.0",
            port=int(os.getenv("PORT") or "3000"),
            static_dir=os.getenv("STATIC_DIR") or "public",
            default_topic=os.getenv("DEFAULT_TOPIC") or DEFAULT_TOPIC,
            startup_topic=os.getenv("STARTUP_TOPIC") or STARTUP_TOPIC,
            prefetch_on_startup=os.getenv("PREFETCH_ON_STARTUP", "1").lower() in ("1", "true", "yes"),
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS") or "*"),
        )
