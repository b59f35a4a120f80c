"""Pytest configuration and fixtures."""

import os
import uuid
from decimal import Decimal
from types import SimpleNamespace

# In-memory database for the app engine created at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backoffice.database import get_db
from backoffice.main import app
from backoffice.models import (
    Base,
    Condition,
    ConditionOption,
    Dossier,
    DossierStatus,
    Formula,
    Item,
    Trip,
    TripCondition,
    TripCotation,
    TripDay,
    TripStatus,
)

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(session_factory):
    """
    One dossier with four trips:
    - 10 (quoted): day 1 hotel block F70 governed by condition 7, a transversal
      guide F71, day 2 activity F80; cotations 55 (per_person) and 56 (range_pax)
    - 20 (sent), 30 (draft): open sibling proposals
    - 40 (cancelled): closed proposal, never archived

    F70 is linked to template 900 (v3, synced at v2), F80 to template 901
    (v1, synced at v1).
    """
    dossier_id = uuid.uuid4()
    async with session_factory() as db:
        db.add(Condition(id=7, name="Catégorie hôtel"))
        await db.flush()
        db.add_all([
            ConditionOption(id=101, condition_id=7, label="Standard", sort_order=0),
            ConditionOption(id=102, condition_id=7, label="Supérieur", sort_order=1),
        ])
        db.add(Dossier(
            id=dossier_id,
            reference="DOS-2026-001",
            status=DossierStatus.QUOTE_SENT,
            client_name="Famille Martin",
        ))
        await db.flush()

        db.add_all([
            Trip(id=10, name="Thaïlande essentielle", dossier_id=dossier_id, status=TripStatus.QUOTED, duration_days=8),
            Trip(id=20, name="Thaïlande du Nord", dossier_id=dossier_id, status=TripStatus.SENT, duration_days=10),
            Trip(id=30, name="Îles du Sud", dossier_id=dossier_id, status=TripStatus.DRAFT, duration_days=7),
            Trip(id=40, name="Ancienne version", dossier_id=dossier_id, status=TripStatus.CANCELLED),
        ])
        await db.flush()

        # Templates
        db.add_all([
            Formula(
                id=900, name="Hôtel Bangkok (modèle)", description_html="<p>Centre-ville</p>",
                is_template=True, template_version=3, block_type="accommodation",
            ),
            Formula(id=901, name="Marché flottant (modèle)", is_template=True, template_version=1),
        ])
        await db.flush()
        db.add_all([
            Item(formula_id=900, name="Chambre standard", unit_cost=Decimal("110.00"), condition_option_id=101, sort_order=0),
            Item(formula_id=900, name="Chambre supérieure", unit_cost=Decimal("160.00"), condition_option_id=102, sort_order=1),
        ])

        db.add_all([
            TripDay(id=1, trip_id=10, day_number=1, title="Bangkok"),
            TripDay(id=2, trip_id=10, day_number=2, title="Damnoen Saduak"),
        ])
        await db.flush()

        db.add_all([
            Formula(
                id=70, trip_day_id=1, name="Hôtel Bangkok", block_type="accommodation",
                condition_id=7, service_day_start=1, service_day_end=2,
                template_source_id=900, template_source_version=2,
            ),
            Formula(
                id=71, trip_id=10, is_transversal=True, name="Guide francophone",
                block_type="guide", service_day_start=None, service_day_end=None,
            ),
            Formula(
                id=80, trip_day_id=2, name="Marché flottant", service_day_start=2, service_day_end=2,
                template_source_id=901, template_source_version=1,
            ),
        ])
        await db.flush()
        db.add_all([
            Item(formula_id=70, name="Chambre standard", unit_cost=Decimal("100.00"), condition_option_id=101, sort_order=0),
            Item(formula_id=70, name="Chambre supérieure", unit_cost=Decimal("150.00"), condition_option_id=102, sort_order=1),
            Item(formula_id=70, name="Taxe de séjour", unit_cost=Decimal("5.00"), sort_order=2),
            Item(formula_id=71, name="Guide", unit_cost=Decimal("300.00")),
            Item(formula_id=80, name="Bateau", unit_cost=Decimal("40.00")),
        ])

        db.add(TripCondition(trip_id=10, condition_id=7, selected_option_id=101, is_active=True))

        db.add_all([
            TripCotation(
                id=55, trip_id=10, name="Standard", sort_order=0,
                condition_selections_json={},
                tarification_json={
                    "mode": "per_person",
                    "entries": [{"total_pax": 2, "price_per_person": 1250}],
                },
            ),
            TripCotation(
                id=56, trip_id=10, name="Supérieur", sort_order=1,
                condition_selections_json={"7": 102},
                tarification_json={
                    "mode": "range_pax",
                    "entries": [
                        {"pax_min": 2, "pax_max": 2, "selling_price": 1400},
                        {"pax_min": 4, "pax_max": 4, "selling_price": 1200},
                        {"pax_min": 6, "pax_max": 6, "selling_price": 1100},
                    ],
                },
            ),
            TripCotation(id=57, trip_id=20, name="Unique", tarification_json=None),
        ])
        await db.commit()

    return SimpleNamespace(dossier_id=dossier_id)


@pytest.fixture
async def api_client(session_factory):
    """HTTP client on the ASGI app, database dependency bound to the test engine."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
