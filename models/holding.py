from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class Holding(Base):
    """One owner's position in one ticker."""

    __tablename__ = "holdings"
    __table_args__ = (
        UniqueConstraint("user_id", "ticker", name="uq_holdings_user_ticker"),
        # NULLs are distinct in the constraint above, so ownerless rows need their own key.
        Index(
            "uq_holdings_ticker_no_owner",
            "ticker",
            unique=True,
            sqlite_where=text("user_id IS NULL"),
            postgresql_where=text("user_id IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=True
    )
    ticker: Mapped[str] = mapped_column(String(32), index=True)
    asset_type: Mapped[str] = mapped_column(String(32), default="", server_default="")

    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Last-known market snapshot, written by creation and by price sync only.
    current_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    previous_close: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="USD")

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    owner = relationship("User", back_populates="holdings")

    # Every ORM flush of a merge checks and bumps `version`; a concurrent
    # merge that already bumped it makes the flush raise StaleDataError.
    __mapper_args__ = {"version_id_col": version}

    @property
    def market_value(self) -> float:
        return (self.current_price or 0.0) * (self.quantity or 0.0)
