from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from models.holding import Holding
from services.currency_service import infer_currency
from utils.common_helpers import normalize_ticker

logger = logging.getLogger(__name__)

MAX_TICKER_LEN = 32
MAX_MERGE_ATTEMPTS = 3


class HoldingValidationError(ValueError):
    """Malformed add input; raised before anything is written."""


class HoldingNotFound(LookupError):
    """No such holding for this owner (also used when another owner has it)."""


class StorageError(RuntimeError):
    """The database was unavailable or a write could not be completed."""


def merge_cost_basis(
    existing_qty: float,
    existing_avg: float,
    qty: float,
    price: float,
) -> Tuple[float, float]:
    """
    Quantity-weighted average cost of (existing_qty @ existing_avg) plus
    (qty @ price). A non-positive total floors the average at 0.
    """
    new_qty = existing_qty + qty
    if new_qty <= 0:
        return new_qty, 0.0
    return new_qty, (existing_qty * existing_avg + qty * price) / new_qty


def _validate(ticker: str, quantity: float, price: float) -> str:
    sym = normalize_ticker(ticker)
    if not sym:
        raise HoldingValidationError("ticker is required")
    if len(sym) > MAX_TICKER_LEN:
        raise HoldingValidationError(f"ticker must be at most {MAX_TICKER_LEN} characters")
    for name, value in (("quantity", quantity), ("price", price)):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise HoldingValidationError(f"{name} must be a finite number")
    if price < 0:
        raise HoldingValidationError("price must not be negative")
    return sym


def _owner_filter(query, owner_id: Optional[int]):
    if owner_id is None:
        return query.filter(Holding.user_id.is_(None))
    return query.filter(Holding.user_id == owner_id)


class PositionLedger:
    """Owner-scoped holdings: merge-on-add, list and delete."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, owner_id: Optional[int], ticker: str) -> Holding | None:
        return _owner_filter(self.db.query(Holding), owner_id).filter(Holding.ticker == ticker).first()

    def add_or_merge(
        self,
        owner_id: Optional[int],
        ticker: str,
        asset_type: str,
        quantity: float,
        price: float,
    ) -> Holding:
        sym = _validate(ticker, quantity, price)
        asset_type = (asset_type or "").strip()

        for attempt in range(1, MAX_MERGE_ATTEMPTS + 1):
            try:
                existing = self.get(owner_id, sym)
                if existing is None:
                    return self._create(owner_id, sym, asset_type, quantity, price)
                return self._merge(existing, quantity, price)
            except (StaleDataError, IntegrityError) as e:
                # Someone else created or merged this key between our read and write.
                self.db.rollback()
                logger.info(
                    "holding_merge_conflict ticker=%s attempt=%d error=%s",
                    sym, attempt, e.__class__.__name__,
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("holding_write_failed ticker=%s", sym)
                raise StorageError("Failed to save holding") from e

        raise StorageError(f"Gave up merging {sym} after {MAX_MERGE_ATTEMPTS} conflicting attempts")

    def _create(
        self,
        owner_id: Optional[int],
        ticker: str,
        asset_type: str,
        quantity: float,
        price: float,
    ) -> Holding:
        # quantity never goes below zero; a negative add may only reduce an existing row
        if quantity < 0:
            raise HoldingValidationError("cannot open a position with a negative quantity")

        holding = Holding(
            user_id=owner_id,
            ticker=ticker,
            asset_type=asset_type,
            quantity=float(quantity),
            avg_cost=float(price),
            current_price=float(price),
            previous_close=float(price),
            currency=infer_currency(ticker),
        )
        self.db.add(holding)
        self.db.commit()
        self.db.refresh(holding)
        logger.info("holding_created id=%s ticker=%s", holding.id, ticker)
        return holding

    def _merge(self, existing: Holding, quantity: float, price: float) -> Holding:
        new_qty, new_avg = merge_cost_basis(existing.quantity or 0.0, existing.avg_cost or 0.0, quantity, price)
        if new_qty < 0:
            # reductions stop at exactly zero (avg_cost floored there)
            raise HoldingValidationError(
                f"quantity would drop below zero ({existing.quantity} + {quantity})"
            )

        # Prices, currency and asset_type are left alone.
        existing.quantity = new_qty
        existing.avg_cost = new_avg
        self.db.commit()
        self.db.refresh(existing)
        logger.info("holding_merged id=%s ticker=%s version=%s", existing.id, existing.ticker, existing.version)
        return existing

    def list_holdings(self, owner_id: Optional[int]) -> List[Holding]:
        try:
            return (
                _owner_filter(self.db.query(Holding), owner_id)
                .order_by((Holding.current_price * Holding.quantity).desc(), Holding.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageError("Failed to load holdings") from e

    def remove(self, owner_id: Optional[int], holding_id: int) -> None:
        try:
            holding = _owner_filter(self.db.query(Holding), owner_id).filter(Holding.id == holding_id).first()
            if holding is None:
                raise HoldingNotFound("Holding not found")
            self.db.delete(holding)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to delete holding") from e
        logger.info("holding_deleted id=%s", holding_id)
