"""
Cotation catalog - read side of the trip selection workflow.

Turns a trip's cotations (named pricing scenarios) into the selection options
an operator picks from: one SelectionEntry per price point of the cotation's
tarification, plus the raw base cost of the scenario computed with the
condition resolver (trip-level conditions merged with the cotation's own
condition selections).
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from backoffice.models.condition import Condition, TripCondition
from backoffice.models.enums import SELECTABLE_TRIP_STATUSES, TarificationMode, TripStatus
from backoffice.models.formula import Formula
from backoffice.models.trip import Trip, TripDay
from backoffice.services.condition_resolver import merge_cotation_selections, trip_base_cost

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Raised when selection options cannot be loaded."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TripNotFoundError(CatalogError):
    """Raised when the trip does not exist."""

    def __init__(self, trip_id: int):
        self.trip_id = trip_id
        super().__init__(f"Trip {trip_id} not found")


class CatalogUnavailableError(CatalogError):
    """Raised when the catalog cannot be reached."""
    pass


@dataclass(frozen=True)
class SelectionEntry:
    """One price point of a cotation."""
    pax_count: Optional[int] = None
    pax_label: Optional[str] = None
    selling_price: Optional[Decimal] = None
    # "per_person", "group" or "unit"
    price_basis: str = "per_person"


@dataclass(frozen=True)
class SelectionCotation:
    """A pricing scenario as offered to the operator."""
    id: int
    name: str
    tarification_mode: Optional[TarificationMode]
    entries: tuple = ()
    price_label: Optional[str] = None
    base_cost: Optional[Decimal] = None

    def entry_for_pax(self, pax_count: Optional[int]) -> Optional[SelectionEntry]:
        """First entry matching a participant count."""
        if pax_count is None:
            return None
        for entry in self.entries:
            if entry.pax_count == pax_count:
                return entry
        return None


@dataclass(frozen=True)
class TripOption:
    """A trip proposal that can be selected for a dossier."""
    id: int
    name: str
    status: TripStatus
    duration_days: int = 1
    destination_country: Optional[str] = None


class CotationCatalogService(Protocol):
    """Read boundary used by the selection wizard."""

    async def list_cotations(self, trip_id: int) -> List[SelectionCotation]:
        ...

    async def list_eligible_trips(self, dossier_id: uuid.UUID) -> List[TripOption]:
        ...


# ---------------------------------------------------------------------------
# Tarification → selection entries
# ---------------------------------------------------------------------------

def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return Decimal(str(value))


def resolve_tarification_mode(tarification: Optional[dict]) -> Optional[TarificationMode]:
    """Mode of a tarification. Entries stored without a mode are range pricing."""
    if not tarification:
        return None
    mode = tarification.get("mode")
    if not mode and tarification.get("entries"):
        return TarificationMode.RANGE_PAX
    return TarificationMode.parse(mode)


def build_selection_entries(tarification: Optional[dict]) -> List[SelectionEntry]:
    """
    Convert a cotation's tarification_json into selection entries.

    - range_pax: one entry per participant count covered by each bracket
    - per_person / per_group: one entry per line, keyed on total_pax
    - service_list: one entry per group line (pax = group size)
    - enumeration: one entry per service line, no participant count
    A cotation without tarification still yields one (unpriced) entry.
    """
    if not tarification:
        return [SelectionEntry()]

    mode = resolve_tarification_mode(tarification)
    raw_entries = tarification.get("entries") or []
    entries: List[SelectionEntry] = []

    if mode == TarificationMode.RANGE_PAX:
        for raw in raw_entries:
            pax_min = raw.get("pax_min", 1)
            pax_max = raw.get("pax_max", pax_min)
            range_label = raw.get("pax_label") or (
                f"{pax_min}-{pax_max} pax" if pax_max != pax_min else f"{pax_min} pax"
            )
            price = _decimal(raw.get("selling_price"))
            for pax in range(pax_min, pax_max + 1):
                entries.append(SelectionEntry(
                    pax_count=pax,
                    pax_label=range_label if pax_min == pax_max else f"{pax} pax ({range_label})",
                    selling_price=price,
                ))

    elif mode == TarificationMode.PER_PERSON:
        for raw in raw_entries:
            total_pax = raw.get("total_pax", 2)
            entries.append(SelectionEntry(
                pax_count=total_pax,
                pax_label=f"{total_pax} pers",
                selling_price=_decimal(raw.get("price_per_person")),
            ))

    elif mode == TarificationMode.PER_GROUP:
        for raw in raw_entries:
            total_pax = raw.get("total_pax", 2)
            entries.append(SelectionEntry(
                pax_count=total_pax,
                pax_label=raw.get("label") or f"Groupe de {total_pax}",
                selling_price=_decimal(raw.get("group_price")),
                price_basis="group",
            ))

    elif mode == TarificationMode.SERVICE_LIST:
        for raw in raw_entries:
            entries.append(SelectionEntry(
                pax_count=raw.get("pax", 2),
                pax_label=raw.get("label", "Prestation"),
                selling_price=_decimal(raw.get("price_per_person")),
            ))

    elif mode == TarificationMode.ENUMERATION:
        for raw in raw_entries:
            unit_price = _decimal(raw.get("unit_price")) or Decimal("0")
            quantity = raw.get("quantity", 1)
            entries.append(SelectionEntry(
                pax_label=raw.get("label", "Prestation"),
                selling_price=unit_price * quantity,
                price_basis="unit",
            ))

    return entries or [SelectionEntry()]


def build_price_label(entries: List[SelectionEntry]) -> Optional[str]:
    """Short price hint shown next to a cotation name."""
    per_person = [e.selling_price for e in entries if e.selling_price is not None and e.price_basis == "per_person"]
    if per_person:
        return f"dès {min(per_person):.0f} € / pers"
    group = [e.selling_price for e in entries if e.selling_price is not None and e.price_basis == "group"]
    if group:
        return f"dès {min(group):.0f} € / groupe"
    return None


def iter_trip_formulas(trip: Trip) -> List[Formula]:
    """Day-level formulas in itinerary order, then transversal formulas."""
    formulas: List[Formula] = []
    for day in trip.days or []:
        formulas.extend(day.formulas or [])
    formulas.extend(trip.transversal_formulas or [])
    return formulas


def to_trip_option(trip: Trip) -> TripOption:
    return TripOption(
        id=trip.id,
        name=trip.name,
        status=TripStatus(trip.status),
        duration_days=trip.duration_days,
        destination_country=trip.destination_country,
    )


# ---------------------------------------------------------------------------
# Store queries
# ---------------------------------------------------------------------------

def _trip_structure_options():
    """Eager-load chain needed to resolve conditions over a whole trip."""
    return [
        selectinload(Trip.days).selectinload(TripDay.formulas).selectinload(Formula.items),
        selectinload(Trip.transversal_formulas).selectinload(Formula.items),
        selectinload(Trip.trip_conditions)
        .selectinload(TripCondition.condition)
        .selectinload(Condition.options),
        selectinload(Trip.trip_conditions).selectinload(TripCondition.selected_option),
        selectinload(Trip.cotations),
    ]


async def load_trip_structure(db: AsyncSession, trip_id: int) -> Optional[Trip]:
    result = await db.execute(
        select(Trip).where(Trip.id == trip_id).options(*_trip_structure_options())
    )
    return result.scalar_one_or_none()


async def list_selection_cotations(db: AsyncSession, trip_id: int) -> List[SelectionCotation]:
    """List the cotations of a trip as selection options."""
    trip = await load_trip_structure(db, trip_id)
    if trip is None:
        raise TripNotFoundError(trip_id)

    formulas = iter_trip_formulas(trip)
    cotations: List[SelectionCotation] = []
    for cotation in sorted(trip.cotations or [], key=lambda c: (c.sort_order or 0, c.id)):
        tarification = cotation.tarification_json or {}
        entries = build_selection_entries(tarification)
        conditions = merge_cotation_selections(
            trip.trip_conditions or [],
            cotation.condition_selections_json or {},
        )
        cotations.append(SelectionCotation(
            id=cotation.id,
            name=cotation.name,
            tarification_mode=resolve_tarification_mode(tarification),
            entries=tuple(entries),
            price_label=build_price_label(entries),
            base_cost=trip_base_cost(formulas, conditions),
        ))

    logger.info(f"Loaded {len(cotations)} selection cotations for trip {trip_id}")
    return cotations


async def list_eligible_trips(db: AsyncSession, dossier_id: uuid.UUID) -> List[TripOption]:
    """
    Trips of a dossier that can be picked in the selection wizard.

    Open proposals plus the trip already selected, which can be re-committed
    with another cotation or participant count.
    """
    statuses = list(SELECTABLE_TRIP_STATUSES | {TripStatus.SELECTED})
    result = await db.execute(
        select(Trip)
        .where(
            Trip.dossier_id == dossier_id,
            Trip.status.in_(statuses),
        )
        .order_by(Trip.id)
    )
    return [to_trip_option(trip) for trip in result.scalars().all()]


class SqlCotationCatalog:
    """CotationCatalogService backed by the database."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def list_cotations(self, trip_id: int) -> List[SelectionCotation]:
        async with self.session_factory() as db:
            return await list_selection_cotations(db, trip_id)

    async def list_eligible_trips(self, dossier_id: uuid.UUID) -> List[TripOption]:
        async with self.session_factory() as db:
            return await list_eligible_trips(db, dossier_id)
