"""
Selection commit - write side of the trip selection workflow.

Marks one trip of a dossier as "selected" and archives every sibling proposal
that was still open, in a single transaction: there is never a window with
zero or two selected trips for a dossier.

Policies:
- Re-committing the selection already in place is a no-op (archived count 0).
- Committing a different trip while another one is selected is rejected
  (SelectionConflictError); the current selection must be undone first.
- Any failure rolls the whole transaction back: no partial archiving.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.models.cotation import TripCotation
from backoffice.models.dossier import Dossier
from backoffice.models.enums import DossierStatus, SELECTABLE_TRIP_STATUSES, TripStatus
from backoffice.models.trip import Trip

logger = logging.getLogger(__name__)


class SelectionCommitError(Exception):
    """Base error for selection commits."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SelectionNotFoundError(SelectionCommitError):
    """Trip, cotation or dossier does not exist."""
    pass


class TripNotEligibleError(SelectionCommitError):
    """The trip (or its dossier) cannot be selected in its current state."""
    pass


class SelectionConflictError(SelectionCommitError):
    """Another trip is already selected for the dossier."""

    def __init__(self, message: str, selected_trip_id: Optional[int] = None):
        self.selected_trip_id = selected_trip_id
        super().__init__(message)


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a selection commit, used for operator feedback."""
    trip_id: int
    cotation_id: int
    final_pax_count: Optional[int]
    other_trips_archived_count: int
    already_selected: bool = False


class SelectionCommitService(Protocol):
    """Write boundary used by the selection wizard."""

    async def commit(
        self,
        trip_id: int,
        cotation_id: int,
        final_pax_count: Optional[int] = None,
    ) -> CommitResult:
        ...


async def _apply_selection(
    db: AsyncSession,
    trip_id: int,
    cotation_id: int,
    final_pax_count: Optional[int],
) -> CommitResult:
    result = await db.execute(select(Trip).where(Trip.id == trip_id).with_for_update())
    trip = result.scalar_one_or_none()
    if trip is None:
        raise SelectionNotFoundError("Trip not found")
    if trip.dossier_id is None:
        raise TripNotEligibleError("Trip is not attached to a dossier")

    # Lock the dossier row: its selected-trip slot is the contended resource
    result = await db.execute(
        select(Dossier).where(Dossier.id == trip.dossier_id).with_for_update()
    )
    dossier = result.scalar_one_or_none()
    if dossier is None:
        raise SelectionNotFoundError("Dossier not found")

    result = await db.execute(
        select(TripCotation).where(
            TripCotation.id == cotation_id,
            TripCotation.trip_id == trip_id,
        )
    )
    cotation = result.scalar_one_or_none()
    if cotation is None:
        raise SelectionNotFoundError("Cotation not found for this trip")

    now = datetime.now(timezone.utc)

    # Same trip already selected: no-op, or a cotation/pax change
    if trip.status == TripStatus.SELECTED and dossier.selected_trip_id == trip.id:
        changed = False
        if dossier.selected_cotation_id != cotation.id:
            dossier.selected_cotation_id = cotation.id
            dossier.selected_cotation_name = cotation.name
            changed = True
        if final_pax_count is not None and dossier.final_pax_count != final_pax_count:
            dossier.final_pax_count = final_pax_count
            changed = True
        if changed:
            dossier.last_activity_at = now
        return CommitResult(
            trip_id=trip.id,
            cotation_id=cotation.id,
            final_pax_count=dossier.final_pax_count,
            other_trips_archived_count=0,
            already_selected=True,
        )

    if dossier.selected_trip_id is not None and dossier.selected_trip_id != trip.id:
        raise SelectionConflictError(
            f"Le circuit {dossier.selected_trip_id} est déjà sélectionné pour ce dossier",
            selected_trip_id=dossier.selected_trip_id,
        )

    if not dossier.can_confirm_trip():
        raise TripNotEligibleError(f"Dossier is {dossier.status.value}, no trip can be selected")
    if trip.status not in SELECTABLE_TRIP_STATUSES:
        raise TripNotEligibleError(f"Trip status '{trip.status.value}' cannot be selected")

    # Archive sibling proposals still open
    result = await db.execute(
        select(Trip)
        .where(
            Trip.dossier_id == dossier.id,
            Trip.id != trip.id,
            Trip.status.in_(list(SELECTABLE_TRIP_STATUSES)),
        )
        .with_for_update()
    )
    siblings = result.scalars().all()
    for sibling in siblings:
        sibling.status = TripStatus.ARCHIVED

    trip.status = TripStatus.SELECTED

    dossier.selected_trip_id = trip.id
    dossier.selected_cotation_id = cotation.id
    dossier.selected_cotation_name = cotation.name
    dossier.final_pax_count = final_pax_count
    dossier.selected_at = now
    dossier.status_before_selection = dossier.status.value
    dossier.status = DossierStatus.CONFIRMED
    dossier.last_activity_at = now

    return CommitResult(
        trip_id=trip.id,
        cotation_id=cotation.id,
        final_pax_count=final_pax_count,
        other_trips_archived_count=len(siblings),
    )


async def commit_trip_selection(
    db: AsyncSession,
    trip_id: int,
    cotation_id: int,
    final_pax_count: Optional[int] = None,
) -> CommitResult:
    """
    Select a trip for its dossier and archive the other open proposals.

    Runs in one transaction on `db`: committed on success, rolled back on any
    error (which is re-raised).
    """
    try:
        outcome = await _apply_selection(db, trip_id, cotation_id, final_pax_count)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if outcome.already_selected:
        logger.info(f"Trip {trip_id} already selected (cotation {cotation_id}), nothing archived")
    else:
        logger.info(
            f"Trip {trip_id} selected with cotation {cotation_id} "
            f"(pax={final_pax_count}), {outcome.other_trips_archived_count} other trip(s) archived"
        )
    return outcome


async def deselect_trip(db: AsyncSession, dossier_id: uuid.UUID) -> Dossier:
    """
    Undo the selection of a dossier.

    The selected trip goes back to `confirmed`, the dossier status saved at
    selection time is restored. Archived siblings stay archived.
    Deselecting a dossier without selection is a no-op.
    """
    try:
        result = await db.execute(
            select(Dossier).where(Dossier.id == dossier_id).with_for_update()
        )
        dossier = result.scalar_one_or_none()
        if dossier is None:
            raise SelectionNotFoundError("Dossier not found")

        if dossier.selected_trip_id is not None:
            result = await db.execute(
                select(Trip).where(Trip.id == dossier.selected_trip_id).with_for_update()
            )
            trip = result.scalar_one_or_none()
            if trip is not None and trip.status == TripStatus.SELECTED:
                trip.status = TripStatus.CONFIRMED

            previous_trip_id = dossier.selected_trip_id
            dossier.selected_trip_id = None
            dossier.selected_cotation_id = None
            dossier.selected_cotation_name = None
            dossier.final_pax_count = None
            dossier.selected_at = None
            if dossier.status_before_selection:
                dossier.status = DossierStatus(dossier.status_before_selection)
            dossier.status_before_selection = None
            dossier.last_activity_at = datetime.now(timezone.utc)
            logger.info(f"Dossier {dossier_id}: selection of trip {previous_trip_id} undone")

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return dossier


class SqlSelectionCommitService:
    """SelectionCommitService backed by the database."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def commit(
        self,
        trip_id: int,
        cotation_id: int,
        final_pax_count: Optional[int] = None,
    ) -> CommitResult:
        async with self.session_factory() as db:
            return await commit_trip_selection(db, trip_id, cotation_id, final_pax_count)
