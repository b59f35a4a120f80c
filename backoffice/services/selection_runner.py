"""
Effect runner for the selection wizard.

Holds the current WizardState, executes the commands emitted by each
transition against the catalog and commit services, and feeds the results
back into the machine. One runner per open wizard; calls are awaited one
at a time.
"""

import logging
import uuid
from typing import Optional, Sequence

from backoffice.services import selection_wizard as wizard
from backoffice.services.selection_catalog import CatalogError, CotationCatalogService, TripOption
from backoffice.services.selection_commit import SelectionCommitError, SelectionCommitService

logger = logging.getLogger(__name__)


class SelectionWizardRunner:
    """Drives a selection wizard against real services."""

    def __init__(self, catalog: CotationCatalogService, committer: SelectionCommitService):
        self.catalog = catalog
        self.committer = committer
        self.state: Optional[wizard.WizardState] = None

    def _require_state(self) -> wizard.WizardState:
        if self.state is None:
            raise wizard.WizardTransitionError("Wizard not started")
        return self.state

    async def open(
        self,
        dossier_id: uuid.UUID,
        preselected_trip_id: Optional[int] = None,
    ) -> wizard.WizardState:
        """Load the eligible trips of a dossier and start the wizard."""
        trips = await self.catalog.list_eligible_trips(dossier_id)
        preselected = None
        if preselected_trip_id is not None:
            preselected = next((t for t in trips if t.id == preselected_trip_id), None)
            if preselected is None:
                raise wizard.WizardTransitionError(
                    f"Trip {preselected_trip_id} is not eligible for selection"
                )
        return await self.start(trips, preselected)

    async def start(
        self,
        trips: Sequence[TripOption],
        preselected: Optional[TripOption] = None,
    ) -> wizard.WizardState:
        return await self._run(wizard.start(trips, preselected))

    async def choose_trip(self, trip_id: int) -> wizard.WizardState:
        return await self._run(wizard.choose_trip(self._require_state(), trip_id))

    async def choose_cotation(self, cotation_id: int) -> wizard.WizardState:
        return await self._run(wizard.choose_cotation(self._require_state(), cotation_id))

    async def choose_pax(self, pax_count: int) -> wizard.WizardState:
        return await self._run(wizard.choose_pax(self._require_state(), pax_count))

    async def go_back(self) -> wizard.WizardState:
        return await self._run(wizard.go_back(self._require_state()))

    async def confirm(self) -> wizard.WizardState:
        """Commit the selection. Commit errors are kept in state and re-raised."""
        return await self._run(wizard.confirm(self._require_state()))

    async def retry(self) -> wizard.WizardState:
        return await self._run(wizard.retry(self._require_state()))

    async def cancel(self) -> wizard.WizardState:
        return await self._run(wizard.cancel(self._require_state()))

    async def _run(self, transition: wizard.Transition) -> wizard.WizardState:
        self.state = transition.state
        for command in transition.commands:
            await self._execute(command)
        return self.state

    async def _execute(self, command: wizard.Command) -> None:
        if isinstance(command, wizard.FetchCotations):
            try:
                cotations = await self.catalog.list_cotations(command.trip_id)
            except CatalogError as e:
                logger.warning(f"Cotation fetch failed for trip {command.trip_id}: {e.message}")
                await self._run(wizard.cotations_failed(self.state, command.generation, e.message))
                return
            except Exception as e:
                logger.exception(f"Unexpected error fetching cotations for trip {command.trip_id}")
                await self._run(wizard.cotations_failed(self.state, command.generation, str(e)))
                return
            await self._run(wizard.cotations_loaded(self.state, command.generation, cotations))

        elif isinstance(command, wizard.CommitSelection):
            try:
                result = await self.committer.commit(
                    command.trip_id,
                    command.cotation_id,
                    command.final_pax_count,
                )
            except SelectionCommitError as e:
                logger.error(f"Selection commit failed for trip {command.trip_id}: {e.message}")
                self.state = wizard.commit_failed(self.state, command.generation, e.message).state
                raise
            except Exception as e:
                logger.exception(f"Unexpected error committing trip {command.trip_id}")
                self.state = wizard.commit_failed(self.state, command.generation, str(e)).state
                raise
            await self._run(wizard.commit_succeeded(self.state, command.generation, result))
