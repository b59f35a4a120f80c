"""
Template sync endpoints.

Sync status of the template-linked blocks of a trip, and pull / unlink of a
single circuit formula.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.api.deps import DbSession
from backoffice.models.enums import SyncStatus
from backoffice.models.formula import Formula
from backoffice.services.template_sync import (
    SyncNotFoundError,
    TemplateSyncError,
    list_trip_sync_items,
    pull_formula_from_template,
    unlink_formula_from_template,
)

router = APIRouter()


# ============ SCHEMAS ============

class TemplateSyncItemResponse(BaseModel):
    formula_id: int
    formula_name: str
    block_type: str
    day_number: Optional[int] = None
    template_source_id: int
    source_version: Optional[int] = None
    template_version: int
    status: SyncStatus

    class Config:
        from_attributes = True


class TripTemplateSyncResponse(BaseModel):
    trip_id: int
    total_linked: int
    out_of_sync: int
    items: List[TemplateSyncItemResponse]


class ItemResponse(BaseModel):
    id: int
    name: str
    currency: str
    unit_cost: float
    condition_option_id: Optional[int] = None
    sort_order: int

    class Config:
        from_attributes = True


class FormulaSyncResponse(BaseModel):
    id: int
    name: str
    description_html: Optional[str] = None
    block_type: str
    template_source_id: Optional[int] = None
    template_source_version: Optional[int] = None
    items: List[ItemResponse] = []

    class Config:
        from_attributes = True


def _sync_http_error(e: TemplateSyncError) -> HTTPException:
    if isinstance(e, SyncNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


async def _reload_formula(db: AsyncSession, formula_id: int) -> Formula:
    result = await db.execute(
        select(Formula)
        .where(Formula.id == formula_id)
        .options(selectinload(Formula.items))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


# ============ ENDPOINTS ============

@router.get("/trips/{trip_id}/template-sync-status", response_model=TripTemplateSyncResponse)
async def get_trip_template_sync_status(
    trip_id: int,
    db: DbSession,
):
    """Every template-linked block of the trip with its sync status."""
    try:
        sync = await list_trip_sync_items(db, trip_id)
    except TemplateSyncError as e:
        raise _sync_http_error(e)

    return TripTemplateSyncResponse(
        trip_id=sync.trip_id,
        total_linked=sync.total_linked,
        out_of_sync=sync.out_of_sync,
        items=[TemplateSyncItemResponse.model_validate(i) for i in sync.items],
    )


@router.post("/trip-structure/formulas/{formula_id}/pull-from-template", response_model=FormulaSyncResponse)
async def pull_from_template(
    formula_id: int,
    db: DbSession,
):
    """
    Replace the formula's items with its template's items.
    The formula is then marked as synced with the template's current version.
    """
    try:
        await pull_formula_from_template(db, formula_id)
    except TemplateSyncError as e:
        await db.rollback()
        raise _sync_http_error(e)
    await db.commit()

    return FormulaSyncResponse.model_validate(await _reload_formula(db, formula_id))


@router.post("/trip-structure/formulas/{formula_id}/unlink-template", response_model=FormulaSyncResponse)
async def unlink_template(
    formula_id: int,
    db: DbSession,
):
    """Detach the formula from its template. Items are kept."""
    try:
        await unlink_formula_from_template(db, formula_id)
    except TemplateSyncError as e:
        await db.rollback()
        raise _sync_http_error(e)
    await db.commit()

    return FormulaSyncResponse.model_validate(await _reload_formula(db, formula_id))
