"""
HTTP client for the back-office selection & sync API.

Implements the collaborators of the selection wizard (catalog + commit) and
of the template sync reconciler (pull) over HTTP, so both can run outside the
API process.

Usage:
    async with BackofficeApiClient() as api:
        runner = SelectionWizardRunner(catalog=api, committer=api)
        await runner.open(dossier_id)

        sync = await api.get_trip_sync_status(trip_id)
        reconciler = TemplateSyncReconciler(sync.items)
        reconciler.accept_all()
        await reconciler.apply(api.pull)
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from backoffice.config import get_settings
from backoffice.models.enums import SyncStatus, TarificationMode, TripStatus
from backoffice.services.selection_catalog import (
    CatalogError,
    CatalogUnavailableError,
    SelectionCotation,
    SelectionEntry,
    TripNotFoundError,
    TripOption,
)
from backoffice.services.selection_commit import (
    CommitResult,
    SelectionCommitError,
    SelectionConflictError,
    SelectionNotFoundError,
    TripNotEligibleError,
)
from backoffice.services.template_sync import (
    SyncNotFoundError,
    TemplateNotLinkedError,
    TemplateSyncError,
    TemplateSyncItem,
    TripTemplateSync,
)

logger = logging.getLogger(__name__)


def _detail(response: httpx.Response) -> str:
    """Error message sent by the API, or the raw status line."""
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(data, dict) and data.get("detail"):
        detail = data["detail"]
        return detail if isinstance(detail, str) else str(detail)
    return f"HTTP {response.status_code}"


def _decimal(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


class BackofficeApiClient:
    """
    Async client for the back-office API.

    Args:
        base_url: API root. Defaults to settings.api_base_url.
        timeout: Request timeout in seconds. Defaults to settings.api_timeout_seconds.
        client: Pre-configured httpx.AsyncClient (base_url must already be set).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout if timeout is not None else settings.api_timeout_seconds,
        )

    async def __aenter__(self) -> "BackofficeApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---- Catalog (read side) ----

    async def _get_catalog(self, path: str) -> Any:
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as e:
            logger.error(f"Catalog request {path} failed: {e}")
            raise CatalogUnavailableError(f"Catalogue indisponible : {e}") from e
        if response.status_code >= 500:
            raise CatalogUnavailableError(f"Catalogue indisponible ({_detail(response)})")
        return response

    async def list_eligible_trips(self, dossier_id: uuid.UUID) -> List[TripOption]:
        response = await self._get_catalog(f"/dossiers/{dossier_id}/eligible-trips")
        if response.status_code != 200:
            raise CatalogError(_detail(response))
        return [
            TripOption(
                id=raw["id"],
                name=raw["name"],
                status=TripStatus(raw["status"]),
                duration_days=raw.get("duration_days", 1),
                destination_country=raw.get("destination_country"),
            )
            for raw in response.json()
        ]

    async def list_cotations(self, trip_id: int) -> List[SelectionCotation]:
        response = await self._get_catalog(f"/trips/{trip_id}/selection-options")
        if response.status_code == 404:
            raise TripNotFoundError(trip_id)
        if response.status_code != 200:
            raise CatalogError(_detail(response))

        cotations = []
        for raw in response.json():
            entries = tuple(
                SelectionEntry(
                    pax_count=e.get("pax_count"),
                    pax_label=e.get("pax_label"),
                    selling_price=_decimal(e.get("selling_price")),
                    price_basis=e.get("price_basis", "per_person"),
                )
                for e in raw.get("entries", [])
            )
            cotations.append(SelectionCotation(
                id=raw["id"],
                name=raw["name"],
                tarification_mode=TarificationMode.parse(raw.get("tarification_mode")),
                entries=entries,
                price_label=raw.get("price_label"),
                base_cost=_decimal(raw.get("base_cost")),
            ))
        return cotations

    # ---- Selection commit (write side) ----

    async def commit(
        self,
        trip_id: int,
        cotation_id: int,
        final_pax_count: Optional[int] = None,
    ) -> CommitResult:
        payload: Dict[str, Any] = {"cotation_id": cotation_id}
        if final_pax_count is not None:
            payload["final_pax_count"] = final_pax_count

        try:
            response = await self._client.post(f"/trips/{trip_id}/select", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Selection commit for trip {trip_id} failed: {e}")
            raise SelectionCommitError(f"Service indisponible : {e}") from e

        if response.status_code == 404:
            raise SelectionNotFoundError(_detail(response))
        if response.status_code == 409:
            raise SelectionConflictError(_detail(response))
        if response.status_code in (400, 422):
            raise TripNotEligibleError(_detail(response))
        if response.status_code != 200:
            raise SelectionCommitError(_detail(response))

        data = response.json()
        return CommitResult(
            trip_id=data["trip_id"],
            cotation_id=data["cotation_id"],
            final_pax_count=data.get("final_pax_count"),
            other_trips_archived_count=data["other_trips_archived_count"],
            already_selected=data.get("already_selected", False),
        )

    async def deselect(self, dossier_id: uuid.UUID) -> Dict[str, Any]:
        try:
            response = await self._client.post(f"/dossiers/{dossier_id}/deselect")
        except httpx.HTTPError as e:
            raise SelectionCommitError(f"Service indisponible : {e}") from e
        if response.status_code == 404:
            raise SelectionNotFoundError(_detail(response))
        if response.status_code != 200:
            raise SelectionCommitError(_detail(response))
        return response.json()

    # ---- Template sync ----

    async def get_trip_sync_status(self, trip_id: int) -> TripTemplateSync:
        try:
            response = await self._client.get(f"/trips/{trip_id}/template-sync-status")
        except httpx.HTTPError as e:
            raise TemplateSyncError(f"Service indisponible : {e}") from e
        if response.status_code == 404:
            raise SyncNotFoundError(_detail(response))
        if response.status_code != 200:
            raise TemplateSyncError(_detail(response))

        data = response.json()
        return TripTemplateSync(
            trip_id=data["trip_id"],
            items=[
                TemplateSyncItem(
                    formula_id=raw["formula_id"],
                    formula_name=raw["formula_name"],
                    block_type=raw["block_type"],
                    day_number=raw.get("day_number"),
                    template_source_id=raw["template_source_id"],
                    source_version=raw.get("source_version"),
                    template_version=raw["template_version"],
                    status=SyncStatus(raw["status"]),
                )
                for raw in data.get("items", [])
            ],
        )

    async def pull(self, formula_id: int) -> Dict[str, Any]:
        """Pull one formula from its template; returns the refreshed formula."""
        try:
            response = await self._client.post(
                f"/trip-structure/formulas/{formula_id}/pull-from-template",
                json={},
            )
        except httpx.HTTPError as e:
            raise TemplateSyncError(f"Service indisponible : {e}") from e
        if response.status_code == 404:
            raise SyncNotFoundError(_detail(response))
        if response.status_code == 400:
            raise TemplateNotLinkedError(_detail(response))
        if response.status_code != 200:
            raise TemplateSyncError(_detail(response))
        return response.json()
