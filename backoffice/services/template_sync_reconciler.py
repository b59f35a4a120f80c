"""
Template sync reconciler - review and apply template updates for one trip.

The operator accepts or rejects each out-of-sync block (or all of them at
once), then applies: accepted blocks are pulled from their template one at a
time, in presentation order. The first failure stops the loop; blocks already
pulled stay pulled and a retry resumes with the first unfinished one.

Phases:
    reviewing → applying → done → closed
                   ↓   ↑ (retry)
                 failed
dismiss() closes from any phase.
"""

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol

from backoffice.config import get_settings
from backoffice.models.enums import SyncDecision, SyncStatus
from backoffice.services.template_sync import TemplateSyncItem

logger = logging.getLogger(__name__)


class TemplatePullService(Protocol):
    """Write boundary refreshing one formula from its template."""

    async def pull(self, formula_id: int) -> Any:
        ...


# Usually the bound `pull` method of a TemplatePullService
PullFn = Callable[[int], Awaitable[Any]]


class ReconcilerStateError(Exception):
    """Raised when an action is not allowed in the current phase."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TemplatePullError(Exception):
    """A pull failed; the remaining accepted blocks were not applied."""

    def __init__(self, formula_id: int, formula_name: str, message: str):
        self.formula_id = formula_id
        self.formula_name = formula_name
        self.message = message
        super().__init__(f"Échec de la synchronisation de '{formula_name}' : {message}")


class ReconcilerPhase(str, enum.Enum):
    REVIEWING = "reviewing"
    APPLYING = "applying"
    FAILED = "failed"
    DONE = "done"
    CLOSED = "closed"


class PullTaskStatus(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class PullTask:
    formula_id: int
    formula_name: str
    status: PullTaskStatus = PullTaskStatus.QUEUED
    error: Optional[str] = None


class TemplateSyncReconciler:
    """
    Review session over the out-of-sync blocks of a trip.

    Args:
        items: sync items of the trip in presentation order; up-to-date ones
            are ignored
        on_complete: called (or awaited) once the done state has been shown
        done_delay / empty_done_delay: seconds the done state stays visible
            after pulls / when nothing was accepted (defaults from settings)
    """

    def __init__(
        self,
        items: Iterable[TemplateSyncItem],
        on_complete: Optional[Callable[[], Any]] = None,
        done_delay: Optional[float] = None,
        empty_done_delay: Optional[float] = None,
    ):
        settings = get_settings()
        self.items: List[TemplateSyncItem] = [
            item for item in items if item.status == SyncStatus.TEMPLATE_UPDATED
        ]
        self.decisions: Dict[int, SyncDecision] = {
            item.formula_id: SyncDecision.PENDING for item in self.items
        }
        self.on_complete = on_complete
        self.done_delay = settings.template_sync_done_delay_seconds if done_delay is None else done_delay
        self.empty_done_delay = (
            settings.template_sync_empty_done_delay_seconds if empty_done_delay is None else empty_done_delay
        )

        self.phase = ReconcilerPhase.REVIEWING
        self.tasks: List[PullTask] = []
        self.error: Optional[str] = None
        self.generation = 0

    # ---- Decisions ----

    def _require_reviewing(self, action: str) -> None:
        if self.phase != ReconcilerPhase.REVIEWING:
            raise ReconcilerStateError(f"Cannot {action} while {self.phase.value}")

    def set_decision(self, formula_id: int, decision: SyncDecision) -> None:
        self._require_reviewing("change a decision")
        if formula_id not in self.decisions:
            raise ReconcilerStateError(f"Formula {formula_id} is not out of sync")
        self.decisions[formula_id] = SyncDecision(decision)

    def accept_all(self) -> None:
        self._require_reviewing("accept all")
        for formula_id in self.decisions:
            self.decisions[formula_id] = SyncDecision.ACCEPTED

    def reject_all(self) -> None:
        self._require_reviewing("reject all")
        for formula_id in self.decisions:
            self.decisions[formula_id] = SyncDecision.REJECTED

    @property
    def pending_count(self) -> int:
        return sum(1 for d in self.decisions.values() if d == SyncDecision.PENDING)

    @property
    def accepted_items(self) -> List[TemplateSyncItem]:
        return [i for i in self.items if self.decisions[i.formula_id] == SyncDecision.ACCEPTED]

    @property
    def can_apply(self) -> bool:
        if self.phase == ReconcilerPhase.FAILED:
            return True
        return self.phase == ReconcilerPhase.REVIEWING and self.pending_count == 0

    @property
    def applied_count(self) -> int:
        return sum(1 for t in self.tasks if t.status == PullTaskStatus.SUCCEEDED)

    @property
    def is_open(self) -> bool:
        return self.phase != ReconcilerPhase.CLOSED

    # ---- Apply ----

    async def apply(self, pull: PullFn) -> None:
        """
        Pull every accepted block, one at a time.

        Raises TemplatePullError on the first failing pull; the reconciler
        then stays open in the `failed` phase and apply() can be called again.
        A failure after dismiss() is only logged.
        """
        if not self.can_apply:
            if self.phase == ReconcilerPhase.REVIEWING:
                raise ReconcilerStateError(f"{self.pending_count} block(s) still need a decision")
            raise ReconcilerStateError(f"Cannot apply while {self.phase.value}")

        if self.phase == ReconcilerPhase.REVIEWING:
            self.tasks = [PullTask(i.formula_id, i.formula_name) for i in self.accepted_items]

        generation = self.generation
        if not self.tasks:
            logger.info("No template update accepted, nothing to pull")
            await self._finish(generation, self.empty_done_delay)
            return

        self.phase = ReconcilerPhase.APPLYING
        self.error = None

        for task in self.tasks:
            if task.status == PullTaskStatus.SUCCEEDED:
                continue
            if generation != self.generation:
                logger.info("Reconciler dismissed, remaining pulls skipped")
                return

            task.status = PullTaskStatus.RUNNING
            task.error = None
            try:
                await pull(task.formula_id)
            except Exception as e:
                task.status = PullTaskStatus.FAILED
                task.error = str(e)
                if generation != self.generation:
                    logger.warning(
                        f"Pull from template failed for formula {task.formula_id} "
                        f"after the reconciler was dismissed: {e}"
                    )
                    return
                self.phase = ReconcilerPhase.FAILED
                self.error = str(e)
                logger.error(f"Pull from template failed for formula {task.formula_id}: {e}")
                raise TemplatePullError(task.formula_id, task.formula_name, str(e)) from e
            task.status = PullTaskStatus.SUCCEEDED
            logger.debug(f"Formula {task.formula_id} pulled from template")

        logger.info(f"{self.applied_count} formula(s) pulled from template")
        await self._finish(generation, self.done_delay)

    async def retry(self, pull: PullFn) -> None:
        """Resume after a failed pull."""
        if self.phase != ReconcilerPhase.FAILED:
            raise ReconcilerStateError("Nothing to retry")
        await self.apply(pull)

    async def _finish(self, generation: int, delay: float) -> None:
        if generation != self.generation:
            return
        self.phase = ReconcilerPhase.DONE
        if delay > 0:
            await asyncio.sleep(delay)
        if generation != self.generation:
            return
        if self.on_complete is not None:
            result = self.on_complete()
            if inspect.isawaitable(result):
                await result
        self.phase = ReconcilerPhase.CLOSED

    def dismiss(self) -> None:
        """Close the reconciler; an apply in flight stops before its next pull."""
        self.generation += 1
        self.phase = ReconcilerPhase.CLOSED
