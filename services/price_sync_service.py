# services/price_sync_service.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.holding import Holding
from services.holding_service import StorageError
from services.quote_client import Quote, QuoteClient, QuoteFetchError

logger = logging.getLogger(__name__)

OUTCOME_UPDATED = "updated"
OUTCOME_FAILED = "failed"
OUTCOME_SKIPPED = "skipped"


def is_placeholder_ticker(ticker: str) -> bool:
    """Test/demo rows that must never reach the quote source."""
    return any(ch.isspace() for ch in ticker) or "test" in ticker.lower()


@dataclass
class SyncReport:
    updated_count: int = 0
    outcomes: Dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> List[str]:
        return [t for t, o in self.outcomes.items() if o == OUTCOME_FAILED]


class PriceSynchronizer:
    """
    One sweep = fetch a quote for every distinct tracked ticker and write it to
    all rows holding that ticker, across owners. Tickers are independent: each
    gets its own fetch and its own committed UPDATE, and a failure on one never
    touches another.
    """

    def __init__(self, quote_client: QuoteClient, *, max_concurrency: int = 8):
        self.quote_client = quote_client
        self.max_concurrency = max(1, int(max_concurrency))

    def tracked_tickers(self, db: Session) -> List[str]:
        try:
            rows = db.query(Holding.ticker).distinct().all()
        except SQLAlchemyError as e:
            raise StorageError("Failed to read tracked tickers") from e
        return sorted({t for (t,) in rows if t})

    async def _fetch_all(self, tickers: List[str]) -> List[Quote | BaseException]:
        sem = asyncio.Semaphore(self.max_concurrency)

        async def fetch_one(sym: str) -> Quote:
            async with sem:
                return await self.quote_client.fetch(sym)

        return await asyncio.gather(*(fetch_one(t) for t in tickers), return_exceptions=True)

    def _apply(self, db: Session, ticker: str, quote: Quote) -> int:
        result = db.execute(
            update(Holding)
            .where(Holding.ticker == ticker)
            .values(
                current_price=quote.price,
                previous_close=quote.previous_close,
                currency=quote.currency,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount or 0

    async def refresh_all(self, db: Session) -> SyncReport:
        started = time.perf_counter()
        report = SyncReport()

        to_fetch: List[str] = []
        # Session I/O runs in a worker thread so the loop keeps serving requests.
        for ticker in await asyncio.to_thread(self.tracked_tickers, db):
            if is_placeholder_ticker(ticker):
                report.outcomes[ticker] = OUTCOME_SKIPPED
            else:
                to_fetch.append(ticker)

        results = await self._fetch_all(to_fetch)

        for ticker, res in zip(to_fetch, results):
            if isinstance(res, QuoteFetchError):
                logger.warning("quote_fetch_failed symbol=%s reason=%s", ticker, res)
                report.outcomes[ticker] = OUTCOME_FAILED
                continue
            if isinstance(res, BaseException):
                logger.error(
                    "quote_fetch_crashed symbol=%s", ticker,
                    exc_info=(type(res), res, res.__traceback__),
                )
                report.outcomes[ticker] = OUTCOME_FAILED
                continue

            try:
                rows = await asyncio.to_thread(self._apply, db, ticker, res)
            except SQLAlchemyError:
                await asyncio.to_thread(db.rollback)
                logger.exception("price_write_failed symbol=%s", ticker)
                report.outcomes[ticker] = OUTCOME_FAILED
                continue

            logger.debug("price_updated symbol=%s price=%s rows=%d", ticker, res.price, rows)
            report.outcomes[ticker] = OUTCOME_UPDATED
            report.updated_count += 1

        logger.info(
            "price_sync_finished tickers=%d updated=%d failed=%d skipped=%d duration_ms=%.1f",
            len(report.outcomes),
            report.updated_count,
            len(report.failed),
            sum(1 for o in report.outcomes.values() if o == OUTCOME_SKIPPED),
            (time.perf_counter() - started) * 1000,
        )
        return report
