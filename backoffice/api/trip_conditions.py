"""
Trip-level condition activation and option selection.

Manages which conditions are active for a specific trip and which option is selected.
Example: Trip 123 → Condition "Langue guide" → selected_option "Français", is_active=True

The cost summary shows what these choices do to the trip's raw cost: which
items count, which are excluded and why, and which accommodation variant
applies each day.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.api.deps import DbSession
from backoffice.models.condition import Condition, ConditionOption, TripCondition
from backoffice.models.enums import BlockType
from backoffice.models.trip import Trip
from backoffice.services.condition_resolver import (
    effective_day_block,
    explain_item_inclusion,
    formula_base_cost,
    merge_cotation_selections,
    trip_base_cost,
)
from backoffice.services.selection_catalog import iter_trip_formulas, load_trip_structure

router = APIRouter()


# ============ SCHEMAS ============

class ConditionOptionResponse(BaseModel):
    id: int
    condition_id: int
    label: str
    sort_order: int

    class Config:
        from_attributes = True


class TripConditionCreate(BaseModel):
    condition_id: int
    is_active: bool = True
    selected_option_id: Optional[int] = None


class TripConditionUpdate(BaseModel):
    is_active: Optional[bool] = None
    selected_option_id: Optional[int] = None


class TripConditionResponse(BaseModel):
    id: int
    trip_id: int
    condition_id: int
    condition_name: str
    applies_to: str = "all"
    selected_option_id: Optional[int] = None
    selected_option_label: Optional[str] = None
    is_active: bool
    options: List[ConditionOptionResponse] = []

    class Config:
        from_attributes = True


class ExcludedItemResponse(BaseModel):
    item_id: int
    item_name: str
    reason: str


class FormulaCostResponse(BaseModel):
    formula_id: int
    formula_name: str
    block_type: str
    day_number: Optional[int] = None
    condition_id: Optional[int] = None
    base_cost: float
    included_item_count: int
    excluded_items: List[ExcludedItemResponse] = []


class DayAccommodationResponse(BaseModel):
    day_number: int
    formula_id: int
    formula_name: str
    option_label: Optional[str] = None


class TripCostSummaryResponse(BaseModel):
    trip_id: int
    cotation_id: Optional[int] = None
    currency: str
    total_base_cost: float
    formulas: List[FormulaCostResponse] = []
    accommodations: List[DayAccommodationResponse] = []


def _build_response(tc: TripCondition) -> TripConditionResponse:
    """Build a TripConditionResponse from a loaded TripCondition entity."""
    condition = tc.condition
    return TripConditionResponse(
        id=tc.id,
        trip_id=tc.trip_id,
        condition_id=tc.condition_id,
        condition_name=condition.name if condition else "?",
        applies_to=condition.applies_to if condition else "all",
        selected_option_id=tc.selected_option_id,
        selected_option_label=tc.selected_option.label if tc.selected_option else None,
        is_active=tc.is_active,
        options=[
            ConditionOptionResponse.model_validate(opt)
            for opt in (condition.options if condition else [])
        ],
    )


def _trip_condition_query(tc_id: int):
    return (
        select(TripCondition)
        .where(TripCondition.id == tc_id)
        .options(
            selectinload(TripCondition.condition).selectinload(Condition.options),
            selectinload(TripCondition.selected_option),
        )
        .execution_options(populate_existing=True)
    )


async def _ensure_trip(db: AsyncSession, trip_id: int) -> None:
    result = await db.execute(select(Trip.id).where(Trip.id == trip_id))
    if not result.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")


async def _ensure_option(db: AsyncSession, condition_id: int, option_id: int) -> None:
    result = await db.execute(
        select(ConditionOption).where(
            ConditionOption.id == option_id,
            ConditionOption.condition_id == condition_id,
        )
    )
    if not result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Selected option does not belong to this condition",
        )


# ============ ENDPOINTS ============

@router.get("/trips/{trip_id}/conditions", response_model=List[TripConditionResponse])
async def list_trip_conditions(
    trip_id: int,
    db: DbSession,
):
    """List all conditions activated for this trip, with their options."""
    await _ensure_trip(db, trip_id)

    result = await db.execute(
        select(TripCondition)
        .where(TripCondition.trip_id == trip_id)
        .options(
            selectinload(TripCondition.condition).selectinload(Condition.options),
            selectinload(TripCondition.selected_option),
        )
        .order_by(TripCondition.id)
    )
    trip_conditions = result.scalars().all()
    return [_build_response(tc) for tc in trip_conditions]


@router.post("/trips/{trip_id}/conditions", response_model=TripConditionResponse, status_code=status.HTTP_201_CREATED)
async def activate_condition(
    trip_id: int,
    data: TripConditionCreate,
    db: DbSession,
):
    """Activate a condition for this trip."""
    await _ensure_trip(db, trip_id)

    # Verify condition exists
    result = await db.execute(select(Condition).where(Condition.id == data.condition_id))
    if not result.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Condition not found")

    # Check not already activated
    result = await db.execute(
        select(TripCondition).where(
            TripCondition.trip_id == trip_id,
            TripCondition.condition_id == data.condition_id,
        )
    )
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Condition already activated for this trip",
        )

    if data.selected_option_id is not None:
        await _ensure_option(db, data.condition_id, data.selected_option_id)

    tc = TripCondition(
        trip_id=trip_id,
        condition_id=data.condition_id,
        selected_option_id=data.selected_option_id,
        is_active=data.is_active,
    )
    db.add(tc)
    await db.commit()

    # Reload with relations
    result = await db.execute(_trip_condition_query(tc.id))
    return _build_response(result.scalar_one())


@router.patch("/trips/{trip_id}/conditions/{tc_id}", response_model=TripConditionResponse)
async def update_trip_condition(
    trip_id: int,
    tc_id: int,
    data: TripConditionUpdate,
    db: DbSession,
):
    """Update a trip condition: toggle is_active or change selected option."""
    result = await db.execute(
        select(TripCondition).where(
            TripCondition.id == tc_id,
            TripCondition.trip_id == trip_id,
        )
    )
    tc = result.scalar_one_or_none()
    if not tc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip condition not found")

    if data.selected_option_id is not None:
        await _ensure_option(db, tc.condition_id, data.selected_option_id)

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(tc, field, value)

    await db.commit()

    result = await db.execute(_trip_condition_query(tc.id))
    return _build_response(result.scalar_one())


@router.delete("/trips/{trip_id}/conditions/{tc_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_condition(
    trip_id: int,
    tc_id: int,
    db: DbSession,
):
    """Remove a condition from this trip."""
    result = await db.execute(
        select(TripCondition).where(
            TripCondition.id == tc_id,
            TripCondition.trip_id == trip_id,
        )
    )
    tc = result.scalar_one_or_none()
    if not tc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip condition not found")

    await db.delete(tc)
    await db.commit()


@router.get("/trips/{trip_id}/cost-summary", response_model=TripCostSummaryResponse)
async def get_trip_cost_summary(
    trip_id: int,
    db: DbSession,
    cotation_id: Optional[int] = None,
):
    """
    Raw cost of the trip under its current condition choices.

    With `cotation_id`, the cotation's condition selections override the
    trip-level ones. Costs are Σ unit_cost × service days over included items;
    no ratio, season or margin rule is applied.
    """
    trip = await load_trip_structure(db, trip_id)
    if not trip:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")

    conditions = trip.trip_conditions or []
    if cotation_id is not None:
        cotation = next((c for c in trip.cotations or [] if c.id == cotation_id), None)
        if not cotation:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cotation not found")
        conditions = merge_cotation_selections(conditions, cotation.condition_selections_json or {})

    lines: List[FormulaCostResponse] = []
    accommodations: List[DayAccommodationResponse] = []

    def add_line(formula, day_number: Optional[int]):
        excluded = []
        included_count = 0
        for item in formula.items or []:
            include, reason = explain_item_inclusion(item, formula, conditions)
            if include:
                included_count += 1
            else:
                excluded.append(ExcludedItemResponse(item_id=item.id, item_name=item.name, reason=reason))
        lines.append(FormulaCostResponse(
            formula_id=formula.id,
            formula_name=formula.name,
            block_type=formula.block_type,
            day_number=day_number,
            condition_id=formula.condition_id,
            base_cost=formula_base_cost(formula, conditions),
            included_item_count=included_count,
            excluded_items=excluded,
        ))

    for day in trip.days or []:
        for formula in day.formulas or []:
            add_line(formula, day.day_number)
        block, option_label = effective_day_block(
            day.formulas or [], BlockType.ACCOMMODATION.value, conditions
        )
        if block is not None:
            accommodations.append(DayAccommodationResponse(
                day_number=day.day_number,
                formula_id=block.id,
                formula_name=block.name,
                option_label=option_label,
            ))

    for formula in trip.transversal_formulas or []:
        add_line(formula, None)

    return TripCostSummaryResponse(
        trip_id=trip.id,
        cotation_id=cotation_id,
        currency=trip.default_currency,
        total_base_cost=trip_base_cost(iter_trip_formulas(trip), conditions),
        formulas=lines,
        accommodations=accommodations,
    )
