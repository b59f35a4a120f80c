"""
Cotation catalog read side against the database.
"""

import uuid
from decimal import Decimal

import pytest

from backoffice.models.enums import TarificationMode
from backoffice.services.selection_catalog import (
    SqlCotationCatalog,
    TripNotFoundError,
    list_eligible_trips,
    list_selection_cotations,
)


async def test_cotations_with_entries_and_base_cost(db_session, seeded):
    cotations = await list_selection_cotations(db_session, 10)

    assert [c.id for c in cotations] == [55, 56]
    standard, superior = cotations

    assert standard.tarification_mode == TarificationMode.PER_PERSON
    assert [e.pax_count for e in standard.entries] == [2]
    assert standard.price_label == "dès 1250 € / pers"
    # (100 + 5) × 2 days + guide 300 + boat 40
    assert standard.base_cost == Decimal("550")

    assert superior.tarification_mode == TarificationMode.RANGE_PAX
    assert [e.pax_count for e in superior.entries] == [2, 4, 6]
    # Cotation forces the superior room: (150 + 5) × 2 + 300 + 40
    assert superior.base_cost == Decimal("650")


async def test_trip_without_tarification_yields_unpriced_entry(db_session, seeded):
    cotations = await list_selection_cotations(db_session, 20)
    assert len(cotations) == 1
    assert cotations[0].tarification_mode is None
    assert cotations[0].entries[0].pax_count is None
    assert cotations[0].base_cost == Decimal("0")


async def test_unknown_trip(db_session, seeded):
    with pytest.raises(TripNotFoundError):
        await list_selection_cotations(db_session, 999)


async def test_eligible_trips_skip_closed_proposals(db_session, seeded):
    trips = await list_eligible_trips(db_session, seeded.dossier_id)
    assert [t.id for t in trips] == [10, 20, 30]
    assert await list_eligible_trips(db_session, uuid.uuid4()) == []


async def test_sql_catalog_uses_its_own_sessions(session_factory, seeded):
    catalog = SqlCotationCatalog(session_factory)
    trips = await catalog.list_eligible_trips(seeded.dossier_id)
    cotations = await catalog.list_cotations(trips[0].id)
    assert [c.name for c in cotations] == ["Standard", "Supérieur"]
