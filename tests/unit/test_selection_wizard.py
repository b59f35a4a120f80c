"""
Selection wizard state machine.
"""

from decimal import Decimal

import pytest

from backoffice.models.enums import TarificationMode, TripStatus
from backoffice.services import selection_wizard as wizard
from backoffice.services.selection_catalog import SelectionCotation, SelectionEntry, TripOption
from backoffice.services.selection_commit import CommitResult


TRIP_10 = TripOption(id=10, name="Thaïlande essentielle", status=TripStatus.QUOTED)
TRIP_20 = TripOption(id=20, name="Thaïlande du Nord", status=TripStatus.SENT)
TRIP_30 = TripOption(id=30, name="Îles du Sud", status=TripStatus.DRAFT)

RANGE_COTATION = SelectionCotation(
    id=56,
    name="Supérieur",
    tarification_mode=TarificationMode.RANGE_PAX,
    entries=(
        SelectionEntry(pax_count=2, pax_label="2 pax", selling_price=Decimal("1400")),
        SelectionEntry(pax_count=4, pax_label="4 pax", selling_price=Decimal("1200")),
        SelectionEntry(pax_count=6, pax_label="6 pax", selling_price=Decimal("1100")),
    ),
    base_cost=Decimal("650"),
)

PER_PERSON_COTATION = SelectionCotation(
    id=55,
    name="Standard",
    tarification_mode=TarificationMode.PER_PERSON,
    entries=(SelectionEntry(pax_count=2, pax_label="2 pers", selling_price=Decimal("1250")),),
    base_cost=Decimal("550"),
)

UNPRICED_COTATION = SelectionCotation(id=57, name="Unique", tarification_mode=None, entries=(SelectionEntry(),))


def open_on_trip_10(trips=(TRIP_10, TRIP_20, TRIP_30)):
    """Start, pick trip 10 and load its two cotations."""
    state = wizard.start(list(trips)).state
    transition = wizard.choose_trip(state, 10)
    fetch = transition.commands[0]
    return wizard.cotations_loaded(transition.state, fetch.generation, [PER_PERSON_COTATION, RANGE_COTATION]).state


class TestStart:
    def test_several_trips_start_on_choose_trip(self):
        transition = wizard.start([TRIP_10, TRIP_20])
        assert isinstance(transition.state.step, wizard.ChooseTrip)
        assert transition.commands == ()
        assert not transition.state.can_go_back

    def test_single_trip_is_bound_and_fetches_cotations(self):
        transition = wizard.start([TRIP_10])
        step = transition.state.step
        assert isinstance(step, wizard.ChooseCotation)
        assert step.trip == TRIP_10
        assert step.is_loading
        assert transition.commands == (wizard.FetchCotations(trip_id=10, generation=transition.state.generation),)
        # The skipped trip step is not a back-navigation target
        assert transition.state.history == ()

    def test_preselected_trip_skips_choice(self):
        transition = wizard.start([TRIP_10, TRIP_20], preselected=TRIP_20)
        assert transition.state.step.trip == TRIP_20
        assert transition.commands[0].trip_id == 20

    def test_no_eligible_trip(self):
        state = wizard.start([]).state
        assert state.step.is_empty
        assert not state.can_go_back

    def test_unknown_trip_is_rejected(self):
        state = wizard.start([TRIP_10, TRIP_20]).state
        with pytest.raises(wizard.WizardTransitionError):
            wizard.choose_trip(state, 40)


class TestHappyPaths:
    def test_range_pax_goes_through_pax_choice(self):
        state = open_on_trip_10()
        state = wizard.choose_cotation(state, 56).state
        assert isinstance(state.step, wizard.ChoosePax)

        state = wizard.choose_pax(state, 4).state
        assert isinstance(state.step, wizard.Confirm)
        assert state.step.final_pax_count == 4
        assert state.step.entry.selling_price == Decimal("1200")

        transition = wizard.confirm(state)
        assert transition.state.step.committing
        assert not transition.state.can_go_back
        assert transition.commands == (wizard.CommitSelection(
            trip_id=10, cotation_id=56, final_pax_count=4, generation=transition.state.generation,
        ),)

        result = CommitResult(trip_id=10, cotation_id=56, final_pax_count=4, other_trips_archived_count=2)
        state = wizard.commit_succeeded(transition.state, transition.commands[0].generation, result).state
        assert isinstance(state.step, wizard.Committed)
        assert state.step.final_pax_count == 4
        assert state.step.other_trips_archived_count == 2
        assert state.is_terminal

    def test_single_entry_skips_pax_choice(self):
        state = open_on_trip_10()
        state = wizard.choose_cotation(state, 55).state
        assert isinstance(state.step, wizard.Confirm)
        assert state.step.final_pax_count == 2

        command = wizard.confirm(state).commands[0]
        assert (command.cotation_id, command.final_pax_count) == (55, 2)

    def test_single_cotation_is_bound_automatically(self):
        transition = wizard.start([TRIP_20])
        state = wizard.cotations_loaded(
            transition.state, transition.commands[0].generation, [UNPRICED_COTATION]
        ).state
        assert isinstance(state.step, wizard.Confirm)
        assert state.step.cotation == UNPRICED_COTATION
        assert state.step.final_pax_count is None
        # Nothing was shown before Confirm
        assert not state.can_go_back

    def test_empty_cotation_list(self):
        transition = wizard.start([TRIP_10])
        state = wizard.cotations_loaded(transition.state, transition.commands[0].generation, []).state
        assert state.step.is_empty
        with pytest.raises(wizard.WizardTransitionError):
            wizard.choose_cotation(state, 55)


class TestBackNavigation:
    def test_back_from_confirm_returns_to_pax_choice(self):
        state = open_on_trip_10()
        state = wizard.choose_cotation(state, 56).state
        state = wizard.choose_pax(state, 6).state

        state = wizard.go_back(state).state
        assert isinstance(state.step, wizard.ChoosePax)

        state = wizard.go_back(state).state
        assert isinstance(state.step, wizard.ChooseCotation)
        assert state.step.cotations == (PER_PERSON_COTATION, RANGE_COTATION)

        state = wizard.go_back(state).state
        assert isinstance(state.step, wizard.ChooseTrip)
        assert not state.can_go_back

    def test_back_drops_later_choices(self):
        state = open_on_trip_10()
        state = wizard.choose_cotation(state, 56).state
        state = wizard.choose_pax(state, 6).state
        state = wizard.go_back(state).state
        state = wizard.go_back(state).state

        state = wizard.choose_cotation(state, 55).state
        assert state.step.cotation == PER_PERSON_COTATION
        assert state.step.final_pax_count == 2

    def test_back_skips_auto_bound_steps(self):
        transition = wizard.start([TRIP_10, TRIP_20])
        transition = wizard.choose_trip(transition.state, 20)
        state = wizard.cotations_loaded(
            transition.state, transition.commands[0].generation, [UNPRICED_COTATION]
        ).state
        assert isinstance(state.step, wizard.Confirm)

        state = wizard.go_back(state).state
        assert isinstance(state.step, wizard.ChooseTrip)

    def test_late_cotations_after_back_are_ignored(self):
        state = wizard.start([TRIP_10, TRIP_20]).state
        transition = wizard.choose_trip(state, 10)
        state = wizard.go_back(transition.state).state

        late = wizard.cotations_loaded(state, transition.commands[0].generation, [PER_PERSON_COTATION])
        assert late.state is state
        assert isinstance(late.state.step, wizard.ChooseTrip)

    def test_cannot_go_back_while_committing(self):
        state = open_on_trip_10()
        state = wizard.choose_cotation(state, 55).state
        state = wizard.confirm(state).state
        with pytest.raises(wizard.WizardTransitionError):
            wizard.go_back(state)


class TestFailures:
    def test_catalog_failure_then_retry(self):
        transition = wizard.start([TRIP_10])
        state = wizard.cotations_failed(
            transition.state, transition.commands[0].generation, "Catalogue indisponible"
        ).state
        assert state.step.fetch_error == "Catalogue indisponible"
        assert not state.step.is_loading

        retried = wizard.retry(state)
        assert retried.state.step.is_loading
        assert retried.commands == (wizard.FetchCotations(trip_id=10, generation=retried.state.generation),)

        state = wizard.cotations_loaded(retried.state, retried.state.generation, [PER_PERSON_COTATION]).state
        assert isinstance(state.step, wizard.Confirm)

    def test_commit_failure_keeps_confirm_and_allows_retry(self):
        state = open_on_trip_10()
        state = wizard.choose_cotation(state, 55).state
        transition = wizard.confirm(state)

        state = wizard.commit_failed(
            transition.state, transition.commands[0].generation, "Un autre voyage est déjà sélectionné"
        ).state
        assert isinstance(state.step, wizard.Confirm)
        assert state.step.error == "Un autre voyage est déjà sélectionné"
        assert not state.step.committing
        assert state.can_go_back

        retried = wizard.retry(state)
        assert retried.state.step.committing
        assert retried.state.step.error is None
        assert retried.commands[0].cotation_id == 55

    def test_nothing_to_retry(self):
        state = wizard.start([TRIP_10, TRIP_20]).state
        with pytest.raises(wizard.WizardTransitionError):
            wizard.retry(state)

    def test_double_confirm_is_rejected(self):
        state = open_on_trip_10()
        state = wizard.choose_cotation(state, 55).state
        state = wizard.confirm(state).state
        with pytest.raises(wizard.WizardTransitionError):
            wizard.confirm(state)


class TestCancel:
    def test_cancel_aborts_and_ignores_pending_results(self):
        transition = wizard.start([TRIP_10])
        state = wizard.cancel(transition.state).state
        assert isinstance(state.step, wizard.Aborted)
        assert state.is_terminal

        late = wizard.cotations_loaded(state, transition.commands[0].generation, [PER_PERSON_COTATION])
        assert isinstance(late.state.step, wizard.Aborted)

    def test_cancel_after_commit_is_rejected(self):
        state = open_on_trip_10()
        state = wizard.choose_cotation(state, 55).state
        transition = wizard.confirm(state)
        result = CommitResult(trip_id=10, cotation_id=55, final_pax_count=2, other_trips_archived_count=2)
        state = wizard.commit_succeeded(transition.state, transition.state.generation, result).state
        with pytest.raises(wizard.WizardTransitionError):
            wizard.cancel(state)


def test_confirmation_summary():
    state = open_on_trip_10()
    state = wizard.choose_cotation(state, 56).state
    state = wizard.choose_pax(state, 4).state

    summary = wizard.confirmation_summary(state)
    assert summary.trip_name == "Thaïlande essentielle"
    assert summary.cotation_name == "Supérieur"
    assert summary.tarification_mode_label == "Prix / tranche"
    assert summary.final_pax_count == 4
    assert summary.selling_price == Decimal("1200")
    assert summary.base_cost == Decimal("650")
    assert summary.other_trips_to_archive == 2


def test_confirmation_summary_does_not_count_selected_trip_as_archived():
    selected = TripOption(id=40, name="Laos en famille", status=TripStatus.SELECTED)
    state = open_on_trip_10(trips=(TRIP_10, TRIP_20, selected))
    state = wizard.choose_cotation(state, 55).state

    summary = wizard.confirmation_summary(state)
    assert summary.other_trips_to_archive == 1
