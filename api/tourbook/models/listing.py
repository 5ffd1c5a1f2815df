"""Listing model.

A listing is a tour offered by a seller. The catalog service owns these rows;
the booking core only reads them and locks them while reserving dates.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from tourbook.models.base import Base, TimestampMixin


class Listing(TimestampMixin, Base):
    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    seller_id: Mapped[int | None] = mapped_column()
    price_per_day: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("ix_listings_seller", "seller_id"),)

    def __repr__(self) -> str:
        return f"<Listing {self.id} seller={self.seller_id}>"
