# routers/market_routes.py
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from database import get_db
from middleware.rate_limit import REFRESH_RATE_LIMIT, limiter
from schemas.holding import PriceRefreshOut, RatesOut
from services.holding_service import StorageError
from services.price_sync_service import PriceSynchronizer
from services.rate_service import RateProvider

router = APIRouter()


# ---------- Dependencies (overridable in tests) ----------
def get_price_synchronizer(request: Request) -> PriceSynchronizer:
    return request.app.state.price_synchronizer


def get_rate_provider(request: Request) -> RateProvider:
    return request.app.state.rate_provider


# ---------- Routes ----------
@router.post("/update-prices", response_model=PriceRefreshOut)
@limiter.limit(REFRESH_RATE_LIMIT)
async def update_prices(
    request: Request,
    db: Session = Depends(get_db),
    synchronizer: PriceSynchronizer = Depends(get_price_synchronizer),
):
    """Global sweep: refreshes every owner's rows for every tracked ticker."""
    try:
        report = await synchronizer.refresh_all(db)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return PriceRefreshOut(
        message="Prices updated",
        updated=report.updated_count,
        outcomes=report.outcomes,
    )


@router.get("/rates", response_model=RatesOut)
async def get_rates(provider: RateProvider = Depends(get_rate_provider)):
    return await provider.rates()
