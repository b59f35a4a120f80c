"""
Dossier model - a client travel inquiry grouping several trip proposals.
"""

import uuid
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import BigInteger, String, Integer, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.models.base import Base, TimestampMixin
from backoffice.models.enums import DossierStatus, CLOSED_DOSSIER_STATUSES, enum_column

if TYPE_CHECKING:
    from backoffice.models.trip import Trip


class Dossier(Base, TimestampMixin):
    """
    A client case file.

    Holds the single "selected trip" slot: at most one of its trips is in the
    `selected` status, mirrored by `selected_trip_id`.
    """

    __tablename__ = "dossiers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=uuid.uuid4)

    # Identity
    reference: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    status: Mapped[DossierStatus] = mapped_column(
        enum_column(DossierStatus, "dossier_status_enum"),
        nullable=False,
        default=DossierStatus.LEAD,
    )

    # Client
    client_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pax_adults: Mapped[int] = mapped_column(Integer, default=2)
    pax_children: Mapped[int] = mapped_column(Integer, default=0)
    pax_infants: Mapped[int] = mapped_column(Integer, default=0)

    # Trip selection (set when a trip proposal is confirmed)
    selected_trip_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("trips.id", ondelete="SET NULL", use_alter=True, name="fk_dossiers_selected_trip"),
        nullable=True,
        index=True,
    )
    selected_cotation_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    selected_cotation_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    final_pax_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Restored when the selection is undone
    status_before_selection: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    selected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    last_activity_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    trips: Mapped[List["Trip"]] = relationship(
        "Trip",
        back_populates="dossier",
        foreign_keys="[Trip.dossier_id]",
        order_by="Trip.id",
    )
    selected_trip: Mapped[Optional["Trip"]] = relationship(
        "Trip",
        foreign_keys=[selected_trip_id],
        uselist=False,
        post_update=True,
    )

    def __repr__(self) -> str:
        return f"<Dossier(id={self.id}, reference='{self.reference}', status='{self.status}')>"

    @property
    def total_pax(self) -> int:
        """Total number of travelers."""
        return self.pax_adults + self.pax_children + self.pax_infants

    def can_confirm_trip(self) -> bool:
        """Check if a trip can be confirmed for this dossier."""
        return self.status not in CLOSED_DOSSIER_STATUSES
