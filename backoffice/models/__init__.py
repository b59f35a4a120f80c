"""
SQLAlchemy models for the Nomadays back-office selection core.
"""

from backoffice.models.base import Base, EntityBase, TimestampMixin
from backoffice.models.enums import (
    TripStatus,
    DossierStatus,
    TarificationMode,
    BlockType,
    SyncStatus,
    SyncDecision,
)
from backoffice.models.dossier import Dossier
from backoffice.models.trip import Trip, TripDay
from backoffice.models.formula import Formula
from backoffice.models.item import Item
from backoffice.models.condition import Condition, ConditionOption, TripCondition
from backoffice.models.cotation import TripCotation

__all__ = [
    "Base",
    "EntityBase",
    "TimestampMixin",
    "TripStatus",
    "DossierStatus",
    "TarificationMode",
    "BlockType",
    "SyncStatus",
    "SyncDecision",
    "Dossier",
    "Trip",
    "TripDay",
    "Formula",
    "Item",
    "Condition",
    "ConditionOption",
    "TripCondition",
    "TripCotation",
]
