"""
TripCotation model - Named pricing scenarios for a trip.

A cotation represents a specific pricing scenario with:
- A set of condition selections (e.g., "Budget hotel", "French-speaking guide")
- A tarification: the public prices attached to it
"""

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import BigInteger, String, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.models.base import EntityBase

if TYPE_CHECKING:
    from backoffice.models.trip import Trip


class TripCotation(EntityBase):
    """
    A named pricing scenario for a trip.

    - condition_selections_json: overrides for trip-level conditions
      e.g. {"5": 12, "8": 34} → condition_id 5 selects option 12, condition_id 8 selects option 34
    - tarification_json: {"mode": "range_pax|per_person|per_group|service_list|enumeration",
      "entries": [...]}, one selection entry per price point
    """

    __tablename__ = "trip_cotations"

    trip_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Identity
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    # Condition overrides: {condition_id: selected_option_id}
    # If a condition IS in this map, it overrides the trip-level selection for this cotation.
    condition_selections_json: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)

    # Public pricing attached to this cotation
    tarification_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Status: draft, calculating, calculated, error
    status: Mapped[str] = mapped_column(String(20), default="draft")
    calculated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="cotations")

    def __repr__(self) -> str:
        return f"<TripCotation(id={self.id}, name='{self.name}', status='{self.status}')>"
