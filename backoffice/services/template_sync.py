"""
Template sync - detection and pull of template updates into circuit formulas.

A circuit formula copied from a template keeps `template_source_id` and the
template version it was last synced with (`template_source_version`). Each
template edit bumps `template_version`, so a copy is out of sync as soon as
its source version is lower than the template's current one.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from backoffice.models.enums import SyncStatus
from backoffice.models.formula import Formula
from backoffice.models.item import Item
from backoffice.models.trip import Trip, TripDay

logger = logging.getLogger(__name__)


class TemplateSyncError(Exception):
    """Base error for template sync operations."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SyncNotFoundError(TemplateSyncError):
    """Trip or formula does not exist."""
    pass


class TemplateNotLinkedError(TemplateSyncError):
    """Formula has no (longer a) template to sync with."""
    pass


@dataclass(frozen=True)
class TemplateSyncItem:
    """Sync state of one template-linked formula of a trip."""
    formula_id: int
    formula_name: str
    block_type: str
    day_number: Optional[int]
    template_source_id: int
    source_version: Optional[int]
    template_version: int
    status: SyncStatus


@dataclass
class TripTemplateSync:
    trip_id: int
    items: List[TemplateSyncItem] = field(default_factory=list)

    @property
    def total_linked(self) -> int:
        return len(self.items)

    @property
    def out_of_sync(self) -> int:
        return sum(1 for i in self.items if i.status == SyncStatus.TEMPLATE_UPDATED)


def get_block_sync_status(formula: Any, template_version: Optional[int] = None) -> SyncStatus:
    """
    Sync status of a formula, from already-loaded data.

    `template_version` is the current version of the source template;
    None means the template is unknown (deleted or not loaded).
    """
    if isinstance(formula, dict):
        template_source_id = formula.get("template_source_id")
        is_template = formula.get("is_template", False)
        source_version = formula.get("template_source_version")
    else:
        template_source_id = getattr(formula, "template_source_id", None)
        is_template = getattr(formula, "is_template", False)
        source_version = getattr(formula, "template_source_version", None)

    if not template_source_id or is_template or template_version is None:
        return SyncStatus.NO_TEMPLATE
    if (source_version or 0) >= template_version:
        return SyncStatus.UP_TO_DATE
    return SyncStatus.TEMPLATE_UPDATED


async def list_trip_sync_items(db: AsyncSession, trip_id: int) -> TripTemplateSync:
    """
    Every template-linked formula of a trip with its sync status.

    Day formulas come first in itinerary order (day number, sort order),
    then transversal formulas.
    """
    result = await db.execute(select(Trip.id).where(Trip.id == trip_id))
    if result.scalar_one_or_none() is None:
        raise SyncNotFoundError(f"Trip {trip_id} not found")

    # Day-level formulas
    result = await db.execute(
        select(Formula, TripDay.day_number)
        .join(TripDay, Formula.trip_day_id == TripDay.id)
        .where(
            TripDay.trip_id == trip_id,
            Formula.template_source_id.is_not(None),
            Formula.is_template == False,  # noqa: E712
        )
        .order_by(TripDay.day_number, Formula.sort_order, Formula.id)
    )
    rows = list(result.all())

    # Transversal formulas
    result = await db.execute(
        select(Formula)
        .where(
            Formula.trip_id == trip_id,
            Formula.trip_day_id.is_(None),
            Formula.template_source_id.is_not(None),
            Formula.is_template == False,  # noqa: E712
        )
        .order_by(Formula.sort_order, Formula.id)
    )
    rows.extend((formula, None) for formula in result.scalars().all())

    template_ids = {formula.template_source_id for formula, _ in rows}
    versions: Dict[int, int] = {}
    if template_ids:
        result = await db.execute(
            select(Formula.id, Formula.template_version)
            .where(Formula.id.in_(template_ids), Formula.is_template == True)  # noqa: E712
        )
        versions = {tid: version for tid, version in result.all()}

    sync = TripTemplateSync(trip_id=trip_id)
    for formula, day_number in rows:
        template_version = versions.get(formula.template_source_id)
        status = get_block_sync_status(formula, template_version)
        if status == SyncStatus.NO_TEMPLATE:
            continue
        sync.items.append(TemplateSyncItem(
            formula_id=formula.id,
            formula_name=formula.name,
            block_type=formula.block_type,
            day_number=day_number,
            template_source_id=formula.template_source_id,
            source_version=formula.template_source_version,
            template_version=template_version,
            status=status,
        ))

    logger.debug(
        f"Trip {trip_id}: {sync.total_linked} template-linked formula(s), {sync.out_of_sync} out of sync"
    )
    return sync


async def _load_linked_formula(db: AsyncSession, formula_id: int) -> Formula:
    result = await db.execute(
        select(Formula)
        .where(Formula.id == formula_id)
        .options(selectinload(Formula.items))
    )
    formula = result.scalar_one_or_none()
    if formula is None:
        raise SyncNotFoundError(f"Formula {formula_id} not found")
    if formula.is_template or not formula.template_source_id:
        raise TemplateNotLinkedError(f"Formula {formula_id} is not linked to a template")
    return formula


async def pull_formula_from_template(db: AsyncSession, formula_id: int) -> Formula:
    """
    Replace a formula's items with its template's items.

    Name and description are copied as well and the formula is marked as
    synced with the template's current version. Flushes; the caller commits.
    """
    formula = await _load_linked_formula(db, formula_id)

    result = await db.execute(
        select(Formula)
        .where(
            Formula.id == formula.template_source_id,
            Formula.is_template == True,  # noqa: E712
        )
        .options(selectinload(Formula.items))
    )
    template = result.scalar_one_or_none()
    if template is None:
        raise TemplateNotLinkedError(f"Template {formula.template_source_id} not found")

    # Old items are deleted on flush (delete-orphan)
    formula.items = [
        Item(
            name=source_item.name,
            currency=source_item.currency,
            unit_cost=source_item.unit_cost,
            condition_option_id=source_item.condition_option_id,
            sort_order=source_item.sort_order,
        )
        for source_item in (template.items or [])
    ]

    formula.name = template.name
    formula.description_html = template.description_html
    formula.template_source_version = template.template_version

    await db.flush()
    logger.info(
        f"Formula {formula_id} pulled from template {template.id} (v{template.template_version}, "
        f"{len(formula.items)} items)"
    )
    return formula


async def unlink_formula_from_template(db: AsyncSession, formula_id: int) -> Formula:
    """Detach a formula from its template; its content is kept as is."""
    formula = await _load_linked_formula(db, formula_id)
    template_id = formula.template_source_id
    formula.template_source_id = None
    formula.template_source_version = None
    await db.flush()
    logger.info(f"Formula {formula_id} unlinked from template {template_id}")
    return formula


class SqlTemplatePuller:
    """Pulls one formula per transaction."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def pull(self, formula_id: int) -> None:
        async with self.session_factory() as db:
            try:
                await pull_formula_from_template(db, formula_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
