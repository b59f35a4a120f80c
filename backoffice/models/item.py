"""
Item model - one cost line inside a formula.
"""

from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import BigInteger, String, Integer, DECIMAL, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.models.base import EntityBase

if TYPE_CHECKING:
    from backoffice.models.formula import Formula
    from backoffice.models.condition import ConditionOption


class Item(EntityBase):
    """
    A cost item within a formula.
    Only the fields the selection core reads are mapped here; pricing rules
    (ratios, seasons, tiers) live with the quotation engine.
    """

    __tablename__ = "items"

    # Formula relationship
    formula_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("formulas.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Identity
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Pricing
    currency: Mapped[str] = mapped_column(String(3), default="EUR")
    unit_cost: Mapped[Decimal] = mapped_column(DECIMAL(12, 2), default=Decimal("0.00"))

    # Conditional inclusion: link item to a specific condition option.
    # If the parent formula has condition_id, this option must belong to that condition.
    condition_option_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("condition_options.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Ordering
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    # Relationships
    formula: Mapped["Formula"] = relationship("Formula", back_populates="items")
    condition_option: Mapped[Optional["ConditionOption"]] = relationship("ConditionOption")

    def __repr__(self) -> str:
        return f"<Item(id={self.id}, name='{self.name}', unit_cost={self.unit_cost})>"
