"""
Trip selection endpoints.

Read side for the selection wizard (eligible trips of a dossier, cotations of
a trip as selection options) and the commit / undo of a selection.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select

from backoffice.api.deps import DbSession
from backoffice.models.dossier import Dossier
from backoffice.models.enums import DossierStatus, TARIFICATION_MODE_LABELS, TarificationMode, TripStatus
from backoffice.services.selection_catalog import (
    SelectionCotation,
    TripNotFoundError,
    list_eligible_trips,
    list_selection_cotations,
)
from backoffice.services.selection_commit import (
    SelectionCommitError,
    SelectionConflictError,
    SelectionNotFoundError,
    commit_trip_selection,
    deselect_trip,
)

router = APIRouter()


# ============ SCHEMAS ============

class TripOptionResponse(BaseModel):
    id: int
    name: str
    status: TripStatus
    duration_days: int
    destination_country: Optional[str] = None

    class Config:
        from_attributes = True


class SelectionEntryResponse(BaseModel):
    pax_count: Optional[int] = None
    pax_label: Optional[str] = None
    selling_price: Optional[float] = None
    price_basis: str = "per_person"

    class Config:
        from_attributes = True


class SelectionCotationResponse(BaseModel):
    id: int
    name: str
    tarification_mode: Optional[TarificationMode] = None
    tarification_mode_label: Optional[str] = None
    entries: List[SelectionEntryResponse] = []
    price_label: Optional[str] = None
    base_cost: Optional[float] = None


class SelectTripRequest(BaseModel):
    cotation_id: int
    final_pax_count: Optional[int] = Field(None, ge=1)


class SelectTripResponse(BaseModel):
    trip_id: int
    cotation_id: int
    final_pax_count: Optional[int] = None
    other_trips_archived_count: int
    already_selected: bool = False

    class Config:
        from_attributes = True


class DossierSelectionResponse(BaseModel):
    id: uuid.UUID
    status: DossierStatus
    selected_trip_id: Optional[int] = None
    selected_cotation_id: Optional[int] = None
    selected_cotation_name: Optional[str] = None
    final_pax_count: Optional[int] = None

    class Config:
        from_attributes = True


def _cotation_response(cotation: SelectionCotation) -> SelectionCotationResponse:
    mode = cotation.tarification_mode
    return SelectionCotationResponse(
        id=cotation.id,
        name=cotation.name,
        tarification_mode=mode,
        tarification_mode_label=TARIFICATION_MODE_LABELS.get(mode) if mode else None,
        entries=[SelectionEntryResponse.model_validate(e) for e in cotation.entries],
        price_label=cotation.price_label,
        base_cost=cotation.base_cost,
    )


def _commit_http_error(e: SelectionCommitError) -> HTTPException:
    if isinstance(e, SelectionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, SelectionConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


# ============ ENDPOINTS ============

@router.get("/dossiers/{dossier_id}/eligible-trips", response_model=List[TripOptionResponse])
async def get_eligible_trips(
    dossier_id: uuid.UUID,
    db: DbSession,
):
    """Open proposals of the dossier (draft, sent, quoted, confirmed) and its selected trip."""
    result = await db.execute(select(Dossier.id).where(Dossier.id == dossier_id))
    if not result.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dossier not found")

    trips = await list_eligible_trips(db, dossier_id)
    return [TripOptionResponse.model_validate(t) for t in trips]


@router.get("/trips/{trip_id}/selection-options", response_model=List[SelectionCotationResponse])
async def get_selection_options(
    trip_id: int,
    db: DbSession,
):
    """Cotations of a trip with their selection entries and base cost."""
    try:
        cotations = await list_selection_cotations(db, trip_id)
    except TripNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return [_cotation_response(c) for c in cotations]


@router.post("/trips/{trip_id}/select", response_model=SelectTripResponse)
async def select_trip(
    trip_id: int,
    data: SelectTripRequest,
    db: DbSession,
):
    """
    Select this trip (with a cotation) for its dossier.

    Other open proposals of the dossier are archived in the same transaction.
    Selecting the trip already selected is a no-op; selecting another trip
    while one is selected returns 409.
    """
    try:
        outcome = await commit_trip_selection(db, trip_id, data.cotation_id, data.final_pax_count)
    except SelectionCommitError as e:
        raise _commit_http_error(e)
    return SelectTripResponse.model_validate(outcome)


@router.post("/dossiers/{dossier_id}/deselect", response_model=DossierSelectionResponse)
async def deselect_dossier_trip(
    dossier_id: uuid.UUID,
    db: DbSession,
):
    """Undo the trip selection of a dossier. Archived proposals stay archived."""
    try:
        dossier = await deselect_trip(db, dossier_id)
    except SelectionCommitError as e:
        raise _commit_http_error(e)
    return DossierSelectionResponse.model_validate(dossier)
