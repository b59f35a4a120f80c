"""
Trip models - a priced itinerary proposal and its days.
"""

import uuid
from datetime import date, datetime
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import BigInteger, String, Date, DateTime, Integer, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.models.base import EntityBase
from backoffice.models.enums import TripStatus, SELECTABLE_TRIP_STATUSES, enum_column

if TYPE_CHECKING:
    from backoffice.models.dossier import Dossier
    from backoffice.models.formula import Formula
    from backoffice.models.condition import TripCondition
    from backoffice.models.cotation import TripCotation


class Trip(EntityBase):
    """
    A trip/circuit proposal.
    Client trips belong to a dossier; exactly one of them can end up `selected`.
    """

    __tablename__ = "trips"

    # Identity
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Dossier relationship (for client trips)
    dossier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("dossiers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Trip details
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    destination_country: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    default_currency: Mapped[str] = mapped_column(String(3), default="EUR")

    # Status
    status: Mapped[TripStatus] = mapped_column(
        enum_column(TripStatus, "trip_status_enum"),
        nullable=False,
        default=TripStatus.DRAFT,
    )
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    dossier: Mapped[Optional["Dossier"]] = relationship(
        "Dossier",
        back_populates="trips",
        foreign_keys=[dossier_id],
    )
    days: Mapped[List["TripDay"]] = relationship(
        "TripDay",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="TripDay.day_number",
    )
    transversal_formulas: Mapped[List["Formula"]] = relationship(
        "Formula",
        back_populates="trip",
        foreign_keys="Formula.trip_id",
        cascade="all, delete-orphan",
        order_by="Formula.sort_order",
    )
    trip_conditions: Mapped[List["TripCondition"]] = relationship(
        "TripCondition",
        back_populates="trip",
        cascade="all, delete-orphan",
    )
    cotations: Mapped[List["TripCotation"]] = relationship(
        "TripCotation",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="TripCotation.sort_order",
    )

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, name='{self.name}', status='{self.status}')>"

    @property
    def is_selectable(self) -> bool:
        """Whether the proposal can still be picked for its dossier."""
        return self.status in SELECTABLE_TRIP_STATUSES


class TripDay(EntityBase):
    """
    A single day (or day range) in a trip itinerary.
    """

    __tablename__ = "trip_days"

    trip_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    day_number: Mapped[int] = mapped_column(Integer, nullable=False)
    day_number_end: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # NULL = single day
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="days")
    formulas: Mapped[List["Formula"]] = relationship(
        "Formula",
        back_populates="trip_day",
        cascade="all, delete-orphan",
        order_by="Formula.sort_order",
    )

    def __repr__(self) -> str:
        return f"<TripDay(id={self.id}, day={self.day_number}, title='{self.title}')>"
