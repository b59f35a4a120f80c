"""
Formula model.
Formulas group items within a trip day or at trip level (transversal).
"""

from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import BigInteger, String, Integer, Boolean, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.models.base import EntityBase
from backoffice.models.enums import BlockType

if TYPE_CHECKING:
    from backoffice.models.trip import TripDay, Trip
    from backoffice.models.item import Item
    from backoffice.models.condition import Condition


class Formula(EntityBase):
    """
    A priced block of a trip.

    Day-level formulas (is_transversal=False):
        Linked via trip_day_id. Examples: "Visit Elephant Haven", "Hotel Riverside"

    Transversal formulas (is_transversal=True):
        Linked via trip_id. Examples: "Guide francophone J1-J10", "Chauffeur"

    Template formulas (is_template=True) are reusable sources; circuit formulas
    copied from one keep `template_source_id` and the template version they
    were last synced with in `template_source_version`.
    """

    __tablename__ = "formulas"

    # Trip day relationship (for day-level formulas)
    trip_day_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("trip_days.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    # Trip relationship (for transversal formulas: direct link, not through TripDay)
    trip_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    is_transversal: Mapped[bool] = mapped_column(Boolean, default=False)

    # Identity
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description_html: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Service period (relative to trip start), nullable for trip-level forfait items
    service_day_start: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=1)
    service_day_end: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=1)

    # Template tracking
    is_template: Mapped[bool] = mapped_column(Boolean, default=False)
    template_source_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("formulas.id", ondelete="SET NULL"),
        nullable=True,
    )
    # Bumped on every template edit (meaningful when is_template=True)
    template_version: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    # Template version last pulled into this copy
    template_source_version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Ordering
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    # Block system
    block_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BlockType.ACTIVITY.value
    )

    # Conditional inclusion: this formula's items are governed by this condition.
    # Individual items carry condition_option_id.
    condition_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("conditions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Relationships
    trip_day: Mapped[Optional["TripDay"]] = relationship("TripDay", back_populates="formulas")
    trip: Mapped[Optional["Trip"]] = relationship(
        "Trip",
        back_populates="transversal_formulas",
        foreign_keys=[trip_id],
    )
    template_source: Mapped[Optional["Formula"]] = relationship(
        "Formula",
        remote_side="Formula.id",
        foreign_keys=[template_source_id],
        lazy="noload",
    )
    items: Mapped[List["Item"]] = relationship(
        "Item",
        back_populates="formula",
        cascade="all, delete-orphan",
        order_by="Item.sort_order",
    )
    condition: Mapped[Optional["Condition"]] = relationship("Condition")

    def __repr__(self) -> str:
        return f"<Formula(id={self.id}, name='{self.name}')>"

    @property
    def service_days_count(self) -> int:
        """Number of days this formula spans. Returns 1 for trip-level forfait."""
        if self.service_day_start is None or self.service_day_end is None:
            return 1
        return max(1, self.service_day_end - self.service_day_start + 1)
