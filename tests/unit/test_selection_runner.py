"""
Selection wizard runner with in-memory catalog and committer.
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from backoffice.models.enums import TarificationMode, TripStatus
from backoffice.services import selection_wizard as wizard
from backoffice.services.selection_catalog import (
    CatalogUnavailableError,
    SelectionCotation,
    SelectionEntry,
    TripOption,
)
from backoffice.services.selection_commit import CommitResult, SelectionConflictError
from backoffice.services.selection_runner import SelectionWizardRunner


DOSSIER_ID = uuid.uuid4()

TRIPS = [
    TripOption(id=10, name="Thaïlande essentielle", status=TripStatus.QUOTED),
    TripOption(id=20, name="Thaïlande du Nord", status=TripStatus.SENT),
]

COTATIONS = {
    10: [
        SelectionCotation(
            id=55, name="Standard", tarification_mode=TarificationMode.PER_PERSON,
            entries=(SelectionEntry(pax_count=2, selling_price=Decimal("1250")),),
        ),
        SelectionCotation(
            id=56, name="Supérieur", tarification_mode=TarificationMode.RANGE_PAX,
            entries=(SelectionEntry(pax_count=2), SelectionEntry(pax_count=4)),
        ),
    ],
    20: [SelectionCotation(id=57, name="Unique", tarification_mode=None, entries=(SelectionEntry(),))],
}


class FakeCatalog:
    def __init__(self, failures=0, error=None):
        self.failures = failures
        self.error = error
        self.calls = []

    async def list_eligible_trips(self, dossier_id):
        return list(TRIPS)

    async def list_cotations(self, trip_id):
        self.calls.append(trip_id)
        if self.failures:
            self.failures -= 1
            raise self.error or CatalogUnavailableError("Catalogue indisponible")
        return COTATIONS[trip_id]


class FakeCommitter:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def commit(self, trip_id, cotation_id, final_pax_count=None):
        self.calls.append((trip_id, cotation_id, final_pax_count))
        if self.error:
            error, self.error = self.error, None
            raise error
        return CommitResult(
            trip_id=trip_id,
            cotation_id=cotation_id,
            final_pax_count=final_pax_count,
            other_trips_archived_count=len(TRIPS) - 1,
        )


async def test_full_range_pax_flow():
    committer = FakeCommitter()
    runner = SelectionWizardRunner(FakeCatalog(), committer)

    state = await runner.open(DOSSIER_ID)
    assert isinstance(state.step, wizard.ChooseTrip)

    state = await runner.choose_trip(10)
    assert isinstance(state.step, wizard.ChooseCotation)
    assert len(state.step.cotations) == 2

    await runner.choose_cotation(56)
    await runner.choose_pax(4)
    state = await runner.confirm()

    assert committer.calls == [(10, 56, 4)]
    assert isinstance(state.step, wizard.Committed)
    assert state.step.other_trips_archived_count == 1


async def test_preselected_trip_with_single_cotation_lands_on_confirm():
    runner = SelectionWizardRunner(FakeCatalog(), FakeCommitter())
    state = await runner.open(DOSSIER_ID, preselected_trip_id=20)
    assert isinstance(state.step, wizard.Confirm)
    assert state.step.cotation.id == 57


async def test_preselected_trip_must_be_eligible():
    runner = SelectionWizardRunner(FakeCatalog(), FakeCommitter())
    with pytest.raises(wizard.WizardTransitionError):
        await runner.open(DOSSIER_ID, preselected_trip_id=40)


async def test_catalog_failure_is_kept_in_state():
    catalog = FakeCatalog(failures=1)
    runner = SelectionWizardRunner(catalog, FakeCommitter())
    await runner.open(DOSSIER_ID)

    state = await runner.choose_trip(10)
    assert state.step.fetch_error == "Catalogue indisponible"

    state = await runner.retry()
    assert catalog.calls == [10, 10]
    assert state.step.fetch_error is None
    assert len(state.step.cotations) == 2


async def test_commit_failure_is_raised_then_retried():
    committer = FakeCommitter(error=SelectionConflictError("Un autre voyage est déjà sélectionné", selected_trip_id=20))
    runner = SelectionWizardRunner(FakeCatalog(), committer)
    await runner.open(DOSSIER_ID)
    await runner.choose_trip(10)
    await runner.choose_cotation(55)

    with pytest.raises(SelectionConflictError):
        await runner.confirm()
    assert isinstance(runner.state.step, wizard.Confirm)
    assert runner.state.step.error == "Un autre voyage est déjà sélectionné"

    state = await runner.retry()
    assert isinstance(state.step, wizard.Committed)
    assert committer.calls == [(10, 55, 2), (10, 55, 2)]


async def test_actions_before_start_are_rejected():
    runner = SelectionWizardRunner(FakeCatalog(), FakeCommitter())
    with pytest.raises(wizard.WizardTransitionError):
        await runner.choose_trip(10)


async def test_cancel():
    runner = SelectionWizardRunner(FakeCatalog(), FakeCommitter())
    await runner.open(DOSSIER_ID)
    state = await runner.cancel()
    assert isinstance(state.step, wizard.Aborted)


def _store_error():
    return OperationalError("SELECT 1", {}, Exception("connection lost"))


async def test_store_error_on_fetch_is_kept_in_state_and_retried():
    catalog = FakeCatalog(failures=1, error=_store_error())
    runner = SelectionWizardRunner(catalog, FakeCommitter())
    await runner.open(DOSSIER_ID)

    state = await runner.choose_trip(10)
    assert not state.step.is_loading
    assert "connection lost" in state.step.fetch_error

    state = await runner.retry()
    assert catalog.calls == [10, 10]
    assert len(state.step.cotations) == 2


async def test_store_error_on_commit_leaves_confirm_retryable():
    committer = FakeCommitter(error=_store_error())
    runner = SelectionWizardRunner(FakeCatalog(), committer)
    await runner.open(DOSSIER_ID)
    await runner.choose_trip(10)
    await runner.choose_cotation(55)

    with pytest.raises(OperationalError):
        await runner.confirm()
    step = runner.state.step
    assert isinstance(step, wizard.Confirm)
    assert not step.committing
    assert "connection lost" in step.error
    assert runner.state.can_go_back

    state = await runner.retry()
    assert isinstance(state.step, wizard.Committed)
    assert committer.calls == [(10, 55, 2), (10, 55, 2)]
