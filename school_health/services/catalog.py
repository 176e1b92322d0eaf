"""
Vaccine and checkup-type catalog with a live/fallback strategy.

The catalog is read-only reference data from the backend. If the backend
fails, times out or returns nothing, a fixed versioned default list is served
instead so campaigns can still be created, and a CatalogWarning is recorded
and pushed to listeners so the UI can show that defaults are in use.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import Literal, TypeVar

import structlog
from pydantic import BaseModel, Field

from school_health.domain.errors import ServiceUnavailableError
from school_health.domain.models import CheckupType, Vaccine
from school_health.services.sources import (
    CheckupTypeSource,
    Result,
    VaccineSource,
    fetch_with_timeout,
)

logger = structlog.get_logger(__name__)

CatalogName = Literal["vaccines", "checkup_types"]
ItemT = TypeVar("ItemT", Vaccine, CheckupType)

FALLBACK_CATALOG_VERSION = "2024.1"

DEFAULT_VACCINES: tuple[Vaccine, ...] = (
    Vaccine(vaccine_id=1, name="MMR", disease_targeted="Measles, Mumps, Rubella"),
    Vaccine(vaccine_id=2, name="DTaP", disease_targeted="Diphtheria, Tetanus, Pertussis"),
    Vaccine(vaccine_id=3, name="Polio (IPV)", disease_targeted="Poliomyelitis"),
    Vaccine(vaccine_id=4, name="Hepatitis B", disease_targeted="Hepatitis B"),
    Vaccine(vaccine_id=5, name="Varicella", disease_targeted="Chickenpox"),
    Vaccine(vaccine_id=6, name="Influenza", disease_targeted="Seasonal Flu"),
    Vaccine(vaccine_id=7, name="HPV", disease_targeted="Human Papillomavirus"),
    Vaccine(vaccine_id=8, name="COVID-19", disease_targeted="COVID-19"),
)

DEFAULT_CHECKUP_TYPES: tuple[CheckupType, ...] = (
    CheckupType(
        checkup_type_id=1,
        type_name="General Physical Examination",
        description="Comprehensive physical health checkup",
    ),
    CheckupType(
        checkup_type_id=2, type_name="Vision Test", description="Eye sight and vision assessment"
    ),
    CheckupType(
        checkup_type_id=3, type_name="Hearing Test", description="Hearing ability assessment"
    ),
    CheckupType(
        checkup_type_id=4,
        type_name="Height and Weight Measurement",
        description="Growth and development tracking",
    ),
    CheckupType(
        checkup_type_id=5,
        type_name="Blood Pressure Check",
        description="Cardiovascular health monitoring",
    ),
    CheckupType(
        checkup_type_id=6,
        type_name="Dental Examination",
        description="Oral health and dental checkup",
    ),
    CheckupType(
        checkup_type_id=7,
        type_name="Basic Health Screening",
        description="Basic general health screening",
    ),
    CheckupType(
        checkup_type_id=8,
        type_name="Vaccination Check",
        description="Immunization status verification",
    ),
    CheckupType(
        checkup_type_id=9,
        type_name="Mental Health Assessment",
        description="Psychological wellbeing evaluation",
    ),
    CheckupType(
        checkup_type_id=10,
        type_name="Sports Physical",
        description="Sports participation health clearance",
    ),
)


class CatalogWarning(BaseModel):
    """Raised (as data, not as an exception) whenever fallback data is served."""

    catalog: CatalogName
    message: str
    fallback_version: str = FALLBACK_CATALOG_VERSION
    cause: str | None = None
    raised_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


CatalogListener = Callable[[CatalogWarning], None]


class CatalogProvider:
    def __init__(
        self,
        vaccine_source: VaccineSource,
        checkup_type_source: CheckupTypeSource,
        timeout_seconds: float = 5.0,
        fallback_enabled: bool = True,
    ) -> None:
        self.vaccine_source = vaccine_source
        self.checkup_type_source = checkup_type_source
        self.timeout_seconds = timeout_seconds
        self.fallback_enabled = fallback_enabled

        self.using_fallback: dict[CatalogName, bool] = {"vaccines": False, "checkup_types": False}
        self.warnings: list[CatalogWarning] = []
        self._listeners: list[CatalogListener] = []
        # Only live data is cached, so a later call retries the backend
        self._vaccines: list[Vaccine] | None = None
        self._checkup_types: list[CheckupType] | None = None
        self.logger = logger.bind(component="catalog_provider")

    def add_listener(self, listener: CatalogListener) -> None:
        self._listeners.append(listener)

    @property
    def degraded(self) -> bool:
        return any(self.using_fallback.values())

    async def vaccines(self, refresh: bool = False) -> list[Vaccine]:
        if self._vaccines is None or refresh:
            items, live = await self._load(
                "vaccines", self.vaccine_source.fetch_vaccines(), DEFAULT_VACCINES
            )
            self._vaccines = items if live else None
            return items
        return list(self._vaccines)

    async def checkup_types(self, refresh: bool = False) -> list[CheckupType]:
        if self._checkup_types is None or refresh:
            items, live = await self._load(
                "checkup_types",
                self.checkup_type_source.fetch_checkup_types(),
                DEFAULT_CHECKUP_TYPES,
            )
            self._checkup_types = items if live else None
            return items
        return list(self._checkup_types)

    async def refresh(self) -> None:
        await asyncio.gather(self.vaccines(refresh=True), self.checkup_types(refresh=True))

    async def find_vaccine(self, key: str | int) -> Vaccine | None:
        """Look a vaccine up by id or by name (case-insensitive)."""
        return _find(await self.vaccines(), key, lambda v: (v.vaccine_id, v.name))

    async def find_checkup_type(self, key: str | int) -> CheckupType | None:
        return _find(
            await self.checkup_types(), key, lambda c: (c.checkup_type_id, c.type_name)
        )

    async def _load(
        self,
        catalog: CatalogName,
        fetch: Awaitable[Result[list[ItemT], Exception]],
        defaults: Sequence[ItemT],
    ) -> tuple[list[ItemT], bool]:
        result = await fetch_with_timeout(
            fetch, timeout_seconds=self.timeout_seconds, collaborator=catalog
        )

        if result.is_ok() and result.unwrap():
            items = result.unwrap()
            self.using_fallback[catalog] = False
            self.logger.info("catalog_loaded", catalog=catalog, count=len(items))
            return items, True

        cause = str(result.unwrap_err()) if result.is_err() else "backend returned no entries"

        if not self.fallback_enabled:
            self.logger.error("catalog_unavailable", catalog=catalog, cause=cause)
            raise ServiceUnavailableError(f"{catalog} catalog unavailable: {cause}")

        self.using_fallback[catalog] = True
        warning = CatalogWarning(
            catalog=catalog,
            message=f"Using default {catalog.replace('_', ' ')} list (API connection failed)",
            cause=cause,
        )
        self.warnings.append(warning)
        self.logger.warning(
            "catalog_fallback_used",
            catalog=catalog,
            cause=cause,
            fallback_version=FALLBACK_CATALOG_VERSION,
        )

        for listener in self._listeners:
            try:
                listener(warning)
            except Exception as e:
                self.logger.error("catalog_listener_failed", error=str(e))

        return list(defaults), False


def _find(
    items: list[ItemT],
    key: str | int,
    identity: Callable[[ItemT], tuple[int, str]],
) -> ItemT | None:
    if isinstance(key, int):
        return next((item for item in items if identity(item)[0] == key), None)

    needle = key.strip()
    for item in items:
        item_id, name = identity(item)
        if name.casefold() == needle.casefold() or str(item_id) == needle:
            return item
    return None
