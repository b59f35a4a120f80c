"""
Selection wizard - picks the (trip, cotation, pax) triple committed for a dossier.

Steps: ChooseTrip → ChooseCotation → ChoosePax → Confirm → Committed,
with Aborted reachable on cancel. Steps with a single possible outcome are
skipped automatically and never shown again on back navigation.

The machine is pure: every function takes a WizardState and returns a
Transition (new state + commands). Commands (FetchCotations,
CommitSelection) are executed by SelectionWizardRunner, which feeds the
results back through cotations_loaded / cotations_failed / commit_succeeded /
commit_failed. Each command carries the generation it was issued under;
results from an older generation are dropped.
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import NamedTuple, Optional, Sequence, Tuple, Union

from backoffice.models.enums import SELECTABLE_TRIP_STATUSES, TARIFICATION_MODE_LABELS, TarificationMode
from backoffice.services.selection_catalog import SelectionCotation, SelectionEntry, TripOption
from backoffice.services.selection_commit import CommitResult

logger = logging.getLogger(__name__)


class WizardTransitionError(Exception):
    """Raised when an action is not allowed in the current step."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChooseTrip:
    trips: Tuple[TripOption, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.trips


@dataclass(frozen=True)
class ChooseCotation:
    trip: TripOption
    # None while the catalog fetch is in flight
    cotations: Optional[Tuple[SelectionCotation, ...]] = None
    fetch_error: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.cotations is None and self.fetch_error is None

    @property
    def is_empty(self) -> bool:
        return self.cotations is not None and len(self.cotations) == 0


@dataclass(frozen=True)
class ChoosePax:
    trip: TripOption
    cotation: SelectionCotation


@dataclass(frozen=True)
class Confirm:
    trip: TripOption
    cotation: SelectionCotation
    entry: Optional[SelectionEntry] = None
    error: Optional[str] = None
    committing: bool = False

    @property
    def final_pax_count(self) -> Optional[int]:
        return self.entry.pax_count if self.entry else None


@dataclass(frozen=True)
class Committed:
    trip: TripOption
    cotation: SelectionCotation
    final_pax_count: Optional[int]
    other_trips_archived_count: int


@dataclass(frozen=True)
class Aborted:
    pass


Step = Union[ChooseTrip, ChooseCotation, ChoosePax, Confirm, Committed, Aborted]
TERMINAL_STEPS = (Committed, Aborted)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FetchCotations:
    trip_id: int
    generation: int


@dataclass(frozen=True)
class CommitSelection:
    trip_id: int
    cotation_id: int
    final_pax_count: Optional[int]
    generation: int


Command = Union[FetchCotations, CommitSelection]


@dataclass(frozen=True)
class WizardState:
    step: Step
    # Steps already shown to the operator, oldest first (back-navigation targets)
    history: Tuple[Step, ...] = ()
    generation: int = 0
    eligible_trips: Tuple[TripOption, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return isinstance(self.step, TERMINAL_STEPS)

    @property
    def can_go_back(self) -> bool:
        if self.is_terminal or not self.history:
            return False
        return not (isinstance(self.step, Confirm) and self.step.committing)


class Transition(NamedTuple):
    state: WizardState
    commands: Tuple[Command, ...] = ()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _require_step(state: WizardState, step_type: type, action: str):
    if not isinstance(state.step, step_type):
        raise WizardTransitionError(
            f"Cannot {action} from {type(state.step).__name__}"
        )
    return state.step


def _is_stale(state: WizardState, generation: int, result: str) -> bool:
    if generation != state.generation:
        logger.debug(
            f"Ignoring stale {result} (generation {generation}, current {state.generation})"
        )
        return True
    return False


def _push(state: WizardState) -> Tuple[Step, ...]:
    return state.history + (state.step,)


def _enter_choose_cotation(state: WizardState, trip: TripOption, history: Tuple[Step, ...]) -> Transition:
    generation = state.generation + 1
    new_state = replace(
        state,
        step=ChooseCotation(trip=trip),
        history=history,
        generation=generation,
    )
    return Transition(new_state, (FetchCotations(trip_id=trip.id, generation=generation),))


def _bind_cotation(
    state: WizardState,
    trip: TripOption,
    cotation: SelectionCotation,
    history: Tuple[Step, ...],
) -> Transition:
    if cotation.tarification_mode == TarificationMode.RANGE_PAX and len(cotation.entries) > 1:
        step: Step = ChoosePax(trip=trip, cotation=cotation)
    else:
        entry = cotation.entries[0] if len(cotation.entries) == 1 else None
        step = Confirm(trip=trip, cotation=cotation, entry=entry)
    return Transition(replace(state, step=step, history=history))


def _issue_commit(state: WizardState, step: Confirm) -> Transition:
    generation = state.generation + 1
    new_state = replace(
        state,
        step=replace(step, committing=True, error=None),
        generation=generation,
    )
    command = CommitSelection(
        trip_id=step.trip.id,
        cotation_id=step.cotation.id,
        final_pax_count=step.final_pax_count,
        generation=generation,
    )
    return Transition(new_state, (command,))


# ---------------------------------------------------------------------------
# Operator actions
# ---------------------------------------------------------------------------

def start(
    trips: Sequence[TripOption],
    preselected: Optional[TripOption] = None,
) -> Transition:
    """
    Open the wizard.

    A pre-bound trip, or the only eligible trip, skips ChooseTrip.
    """
    state = WizardState(step=ChooseTrip(trips=tuple(trips)), eligible_trips=tuple(trips))
    if preselected is not None:
        return _enter_choose_cotation(state, preselected, history=())
    if len(trips) == 1:
        return _enter_choose_cotation(state, trips[0], history=())
    return Transition(state)


def choose_trip(state: WizardState, trip_id: int) -> Transition:
    step = _require_step(state, ChooseTrip, "choose a trip")
    trip = next((t for t in step.trips if t.id == trip_id), None)
    if trip is None:
        raise WizardTransitionError(f"Trip {trip_id} is not eligible")
    return _enter_choose_cotation(state, trip, history=_push(state))


def choose_cotation(state: WizardState, cotation_id: int) -> Transition:
    step = _require_step(state, ChooseCotation, "choose a cotation")
    if step.cotations is None:
        raise WizardTransitionError("Cotations are not loaded")
    cotation = next((c for c in step.cotations if c.id == cotation_id), None)
    if cotation is None:
        raise WizardTransitionError(f"Cotation {cotation_id} does not belong to trip {step.trip.id}")
    return _bind_cotation(state, step.trip, cotation, history=_push(state))


def choose_pax(state: WizardState, pax_count: int) -> Transition:
    step = _require_step(state, ChoosePax, "choose a participant count")
    entry = step.cotation.entry_for_pax(pax_count)
    if entry is None:
        raise WizardTransitionError(f"No price for {pax_count} pax in '{step.cotation.name}'")
    new_step = Confirm(trip=step.trip, cotation=step.cotation, entry=entry)
    return Transition(replace(state, step=new_step, history=_push(state)))


def go_back(state: WizardState) -> Transition:
    """
    Return to the last step shown to the operator.

    The restored step only holds what was known when it was shown, so
    anything captured after it is dropped. Pending results are invalidated.
    """
    if not state.can_go_back:
        raise WizardTransitionError(f"Cannot go back from {type(state.step).__name__}")
    target = state.history[-1]
    return Transition(replace(
        state,
        step=target,
        history=state.history[:-1],
        generation=state.generation + 1,
    ))


def confirm(state: WizardState) -> Transition:
    step = _require_step(state, Confirm, "commit")
    if step.committing:
        raise WizardTransitionError("Commit already in progress")
    return _issue_commit(state, step)


def retry(state: WizardState) -> Transition:
    """Re-issue the failed command of the current step."""
    step = state.step
    if isinstance(step, ChooseCotation) and step.fetch_error is not None:
        return _enter_choose_cotation(state, step.trip, history=state.history)
    if isinstance(step, Confirm) and step.error is not None and not step.committing:
        return _issue_commit(state, step)
    raise WizardTransitionError(f"Nothing to retry in {type(step).__name__}")


def cancel(state: WizardState) -> Transition:
    if state.is_terminal:
        raise WizardTransitionError(f"Wizard already {type(state.step).__name__}")
    return Transition(replace(state, step=Aborted(), generation=state.generation + 1))


# ---------------------------------------------------------------------------
# Command results
# ---------------------------------------------------------------------------

def cotations_loaded(
    state: WizardState,
    generation: int,
    cotations: Sequence[SelectionCotation],
) -> Transition:
    """Catalog fetch result. A single cotation is bound without operator input."""
    if _is_stale(state, generation, "cotation list"):
        return Transition(state)
    step = _require_step(state, ChooseCotation, "load cotations")
    loaded = replace(step, cotations=tuple(cotations), fetch_error=None)
    state = replace(state, step=loaded)
    if len(cotations) == 1:
        return _bind_cotation(state, step.trip, cotations[0], history=state.history)
    return Transition(state)


def cotations_failed(state: WizardState, generation: int, error: str) -> Transition:
    if _is_stale(state, generation, "cotation error"):
        return Transition(state)
    step = _require_step(state, ChooseCotation, "record a catalog error")
    return Transition(replace(state, step=replace(step, fetch_error=error)))


def commit_succeeded(state: WizardState, generation: int, result: CommitResult) -> Transition:
    if _is_stale(state, generation, "commit result"):
        return Transition(state)
    step = _require_step(state, Confirm, "complete a commit")
    committed = Committed(
        trip=step.trip,
        cotation=step.cotation,
        final_pax_count=step.final_pax_count,
        other_trips_archived_count=result.other_trips_archived_count,
    )
    return Transition(replace(state, step=committed))


def commit_failed(state: WizardState, generation: int, error: str) -> Transition:
    """Commit rejected: stay on Confirm with the error, retry allowed."""
    if _is_stale(state, generation, "commit error"):
        return Transition(state)
    step = _require_step(state, Confirm, "record a commit error")
    return Transition(replace(state, step=replace(step, error=error, committing=False)))


# ---------------------------------------------------------------------------
# Confirmation summary
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConfirmationSummary:
    trip_name: str
    cotation_name: str
    tarification_mode_label: Optional[str]
    pax_label: Optional[str]
    final_pax_count: Optional[int]
    selling_price: Optional[Decimal]
    price_basis: Optional[str]
    base_cost: Optional[Decimal]
    other_trips_to_archive: int


def confirmation_summary(state: WizardState) -> ConfirmationSummary:
    """What the operator is about to commit."""
    step = _require_step(state, Confirm, "summarize")
    entry = step.entry
    mode = step.cotation.tarification_mode
    return ConfirmationSummary(
        trip_name=step.trip.name,
        cotation_name=step.cotation.name,
        tarification_mode_label=TARIFICATION_MODE_LABELS.get(mode) if mode else None,
        pax_label=entry.pax_label if entry else None,
        final_pax_count=step.final_pax_count,
        selling_price=entry.selling_price if entry else None,
        price_basis=entry.price_basis if entry else None,
        base_cost=step.cotation.base_cost,
        other_trips_to_archive=sum(
            1 for t in state.eligible_trips
            if t.id != step.trip.id and t.status in SELECTABLE_TRIP_STATUSES
        ),
    )
