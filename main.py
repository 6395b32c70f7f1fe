import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config.app_config import AppConfig
from config.logging_config import configure_logging
from middleware.request_logging import RequestLoggingMiddleware
from routers.market_routes import router as market_router
from services.ai.gemini_client import GeminiMarketClient
from services.market.market_data_service import MarketDataService, MarketModelClient
from services.market.report_store import ReportStore
from utils.network import get_network_ip

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent


async def _prefetch(service: MarketDataService, topic: str) -> None:
    try:
        await service.fetch(topic)
    except Exception:
        # already logged by the fetch pipeline; the server keeps serving
        logger.warning("startup.prefetch.failed topic=%s", topic)


def create_app(
    config: Optional[AppConfig] = None,
    *,
    client: Optional[MarketModelClient] = None,
    store: Optional[ReportStore] = None,
) -> FastAPI:
    cfg = config or AppConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        task = None
        if cfg.prefetch_on_startup:
            logger.info("startup.prefetch.scheduled topic=%s", cfg.startup_topic)
            task = asyncio.create_task(_prefetch(app.state.market_data_service, cfg.startup_topic))
        yield
        if task is not None and not task.done():
            task.cancel()

    app = FastAPI(title="Market Pulse Kenya", lifespan=lifespan)
    app.state.config = cfg
    app.state.report_store = store or ReportStore()
    app.state.market_data_service = MarketDataService(
        client or GeminiMarketClient(),
        app.state.report_store,
        default_topic=cfg.default_topic,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"status": "ok", "has_data": app.state.report_store.get() is not None}

    app.include_router(market_router, prefix="/api")

    static_dir = Path(cfg.static_dir)
    if not static_dir.is_absolute():
        static_dir = BASE_DIR / static_dir
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")
    else:
        logger.warning("static.missing dir=%s", static_dir)

    return app


app = create_app()


def run() -> None:
    import uvicorn

    configure_logging()
    cfg = app.state.config
    network_url = f"http://{get_network_ip()}:{cfg.port}"
    logger.info("Market Pulse Kenya dashboard running at:")
    logger.info("  Local:    http://localhost:%s", cfg.port)
    logger.info("  Network:  %s", network_url)
    logger.info("Open the network URL from a phone or tablet on the same network.")
    uvicorn.run(app, host=cfg.host, port=cfg.port, log_config=None)


if __name__ == "__main__":
    run()
