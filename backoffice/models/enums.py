"""
Closed status sets used across the back-office core.

Stored as plain strings in the database (see `enum_column`), exposed to Python
code as `str` enums so comparisons against raw API payloads keep working.
"""

import enum
from typing import Type

from sqlalchemy import Enum as SQLEnum


class TripStatus(str, enum.Enum):
    """Lifecycle of a trip proposal."""
    DRAFT = "draft"
    QUOTED = "quoted"
    SENT = "sent"
    CONFIRMED = "confirmed"
    SELECTED = "selected"
    ARCHIVED = "archived"
    OPERATING = "operating"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Proposals an operator can still pick for a dossier
SELECTABLE_TRIP_STATUSES = frozenset({
    TripStatus.DRAFT,
    TripStatus.SENT,
    TripStatus.QUOTED,
    TripStatus.CONFIRMED,
})


class DossierStatus(str, enum.Enum):
    """Commercial status of a dossier (client case file)."""
    LEAD = "lead"
    QUOTE_IN_PROGRESS = "quote_in_progress"
    QUOTE_SENT = "quote_sent"
    NEGOTIATION = "negotiation"
    CONFIRMED = "confirmed"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"
    IN_TRIP = "in_trip"
    COMPLETED = "completed"
    LOST = "lost"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


# A trip cannot be selected once the dossier reached one of these
CLOSED_DOSSIER_STATUSES = frozenset({
    DossierStatus.LOST,
    DossierStatus.CANCELLED,
    DossierStatus.ARCHIVED,
})


class TarificationMode(str, enum.Enum):
    """How public prices of a cotation are expressed."""
    RANGE_PAX = "range_pax"
    PER_PERSON = "per_person"
    PER_GROUP = "per_group"
    SERVICE_LIST = "service_list"
    ENUMERATION = "enumeration"

    @classmethod
    def parse(cls, value) -> "TarificationMode | None":
        """Parse a stored mode. Accepts the legacy `range_web` spelling."""
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        if value == "range_web":
            return cls.RANGE_PAX
        try:
            return cls(value)
        except ValueError:
            return None


TARIFICATION_MODE_LABELS = {
    TarificationMode.RANGE_PAX: "Prix / tranche",
    TarificationMode.PER_PERSON: "Par personne",
    TarificationMode.PER_GROUP: "Par groupe",
    TarificationMode.SERVICE_LIST: "Multi-groupes",
    TarificationMode.ENUMERATION: "Détail prestations",
}


class BlockType(str, enum.Enum):
    """Kind of block (formula) inside a trip day."""
    TEXT = "text"
    ACTIVITY = "activity"
    ACCOMMODATION = "accommodation"
    TRANSPORT = "transport"
    RESTAURANT = "restaurant"
    GUIDE = "guide"
    SERVICE = "service"
    ROADBOOK = "roadbook"


BLOCK_TYPE_LABELS = {
    BlockType.ACTIVITY: "Activité",
    BlockType.TRANSPORT: "Transport",
    BlockType.ACCOMMODATION: "Hébergement",
    BlockType.TEXT: "Texte",
    BlockType.RESTAURANT: "Restauration",
    BlockType.GUIDE: "Accompagnement",
    BlockType.SERVICE: "Service",
    BlockType.ROADBOOK: "Roadbook",
}


class SyncStatus(str, enum.Enum):
    """Comparison of a formula with the template it was copied from."""
    NO_TEMPLATE = "no_template"
    UP_TO_DATE = "up_to_date"
    TEMPLATE_UPDATED = "template_updated"


class SyncDecision(str, enum.Enum):
    """Operator decision for one out-of-sync block."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def enum_column(enum_cls: Type[enum.Enum], name: str) -> SQLEnum:
    """SQLAlchemy Enum type storing member values (not names)."""
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=30,
    )
