from typing import Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from schemas.market_report import RefreshRequest
from services.market.market_data_service import MarketDataService
from services.market.report_store import ReportStore

router = APIRouter()


def get_report_store(request: Request) -> ReportStore:
    return request.app.state.report_store


def get_market_data_service(request: Request) -> MarketDataService:
    return request.app.state.market_data_service


# ---------- Routes (thin controllers delegating to the service) ----------
@router.get("/data")
async def get_market_data(
    store: ReportStore = Depends(get_report_store),
    service: MarketDataService = Depends(get_market_data_service),
):
    try:
        report = store.get()
        if report is None:
            report = await service.fetch()
    except Exception:
        return JSONResponse(status_code=500, content={"error": "Failed to fetch market data"})
    return report.to_payload()


@router.post("/refresh")
async def refresh_market_data(
    req: Optional[RefreshRequest] = Body(default=None),
    service: MarketDataService = Depends(get_market_data_service),
):
    topic = req.topic if req else None
    try:
        report = await service.fetch(topic)
    except Exception:
        return JSONResponse(status_code=500, content={"error": "Failed to refresh market data"})
    return report.to_payload()
