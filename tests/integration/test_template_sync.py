"""
Template sync detection and pull against the database.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from backoffice.models import Formula
from backoffice.models.enums import SyncStatus
from backoffice.services.template_sync import (
    SqlTemplatePuller,
    SyncNotFoundError,
    TemplateNotLinkedError,
    list_trip_sync_items,
    pull_formula_from_template,
    unlink_formula_from_template,
)
from backoffice.services.template_sync_reconciler import TemplateSyncReconciler


async def load_formula(session_factory, formula_id):
    async with session_factory() as db:
        result = await db.execute(
            select(Formula).where(Formula.id == formula_id).options(selectinload(Formula.items))
        )
        return result.scalar_one()


async def test_sync_status_of_linked_formulas(db_session, seeded):
    sync = await list_trip_sync_items(db_session, 10)

    assert [(i.formula_id, i.day_number, i.status) for i in sync.items] == [
        (70, 1, SyncStatus.TEMPLATE_UPDATED),
        (80, 2, SyncStatus.UP_TO_DATE),
    ]
    assert sync.total_linked == 2
    assert sync.out_of_sync == 1
    assert (sync.items[0].source_version, sync.items[0].template_version) == (2, 3)


async def test_sync_status_unknown_trip(db_session, seeded):
    with pytest.raises(SyncNotFoundError):
        await list_trip_sync_items(db_session, 999)


async def test_pull_replaces_items_with_template_content(db_session, seeded):
    await pull_formula_from_template(db_session, 70)
    await db_session.commit()

    result = await db_session.execute(
        select(Formula)
        .where(Formula.id == 70)
        .options(selectinload(Formula.items))
        .execution_options(populate_existing=True)
    )
    formula = result.scalar_one()
    assert formula.name == "Hôtel Bangkok (modèle)"
    assert formula.description_html == "<p>Centre-ville</p>"
    assert formula.template_source_version == 3
    assert [(i.name, i.unit_cost, i.condition_option_id) for i in formula.items] == [
        ("Chambre standard", Decimal("110.00"), 101),
        ("Chambre supérieure", Decimal("160.00"), 102),
    ]

    sync = await list_trip_sync_items(db_session, 10)
    assert sync.out_of_sync == 0


async def test_pull_unlinked_formula(db_session, seeded):
    with pytest.raises(TemplateNotLinkedError):
        await pull_formula_from_template(db_session, 71)
    with pytest.raises(SyncNotFoundError):
        await pull_formula_from_template(db_session, 999)


async def test_unlink_keeps_content(db_session, seeded):
    await unlink_formula_from_template(db_session, 70)
    await db_session.commit()

    sync = await list_trip_sync_items(db_session, 10)
    assert [i.formula_id for i in sync.items] == [80]


async def test_reconciler_with_database_puller(session_factory, seeded):
    async with session_factory() as db:
        sync = await list_trip_sync_items(db, 10)

    completed = []
    reconciler = TemplateSyncReconciler(
        sync.items,
        on_complete=lambda: completed.append(True),
        done_delay=0,
    )
    reconciler.accept_all()
    await reconciler.apply(SqlTemplatePuller(session_factory).pull)

    assert completed == [True]
    formula = await load_formula(session_factory, 70)
    assert formula.template_source_version == 3
    assert len(formula.items) == 2
