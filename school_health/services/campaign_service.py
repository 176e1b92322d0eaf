"""
Campaign service facade.

Wires the grade registry, catalog, record store and the three workflow
services from ``AppConfig``. Collaborators default to the REST adapters built
from ``config.portal_api``; tests and the demo pass in-memory fakes instead.
"""

import structlog
from pydantic import BaseModel

from school_health.config import AppConfig, get_config
from school_health.services.catalog import CatalogProvider, CatalogWarning
from school_health.services.checkup_results import CheckupResultRecorder
from school_health.services.consent import ConsentOrchestrator
from school_health.services.event_lifecycle import EventLifecycleController
from school_health.services.grade_registry import GradeLevelRegistry, RegistryState
from school_health.services.sources import (
    CheckupTypeSource,
    GradeLevelSource,
    StudentDirectory,
    VaccineSource,
)
from school_health.services.store import HealthRecordStore, InMemoryHealthRecordStore

logger = structlog.get_logger(__name__)


class ServiceStatus(BaseModel):
    """Reference-data health, as shown on the operator dashboard."""

    grade_registry_state: RegistryState
    grade_count: int
    grade_error: str | None = None
    catalog_using_fallback: dict[str, bool]
    catalog_warnings: list[CatalogWarning]

    @property
    def degraded(self) -> bool:
        return self.grade_registry_state != "ready" or any(self.catalog_using_fallback.values())


class HealthCampaignService:
    """
    Entry point for the campaign workflow.

    Typical use::

        service = HealthCampaignService()
        await service.startup()
        event = await service.events.create_event(draft)
        await service.consents.send_consent_requests(event.event_id)
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        grade_source: GradeLevelSource | None = None,
        vaccine_source: VaccineSource | None = None,
        checkup_type_source: CheckupTypeSource | None = None,
        student_directory: StudentDirectory | None = None,
        store: HealthRecordStore | None = None,
    ) -> None:
        self.config = config or get_config()
        self.logger = logger.bind(component="health_campaign_service")

        if None in (grade_source, vaccine_source, checkup_type_source, student_directory):
            rest = self._rest_sources()
            grade_source = grade_source or rest[0]
            vaccine_source = vaccine_source or rest[1]
            checkup_type_source = checkup_type_source or rest[2]
            student_directory = student_directory or rest[3]

        self.store: HealthRecordStore = store or InMemoryHealthRecordStore()

        # Initialize subsystems
        self._init_reference_data(grade_source, vaccine_source, checkup_type_source)
        self._init_workflows(student_directory)

    def _rest_sources(
        self,
    ) -> tuple[GradeLevelSource, VaccineSource, CheckupTypeSource, StudentDirectory]:
        # httpx is only needed when the REST adapters are used
        from school_health.adapters.rest import (
            PortalApiClient,
            RestCheckupTypeSource,
            RestGradeLevelSource,
            RestStudentDirectory,
            RestVaccineSource,
        )

        client = PortalApiClient(self.config.portal_api)
        self.logger.info("portal_api_client_initialized", base_url=self.config.portal_api.base_url)
        return (
            RestGradeLevelSource(client),
            RestVaccineSource(client),
            RestCheckupTypeSource(client),
            RestStudentDirectory(client),
        )

    def _init_reference_data(
        self,
        grade_source: GradeLevelSource,
        vaccine_source: VaccineSource,
        checkup_type_source: CheckupTypeSource,
    ) -> None:
        """Initialize grade levels and the vaccine/checkup catalog."""
        self.grades = GradeLevelRegistry(
            grade_source, timeout_seconds=self.config.grade_levels.timeout_seconds
        )
        self.catalog = CatalogProvider(
            vaccine_source,
            checkup_type_source,
            timeout_seconds=self.config.catalog.timeout_seconds,
            fallback_enabled=self.config.catalog.fallback_enabled,
        )
        self.logger.info(
            "reference_data_initialized",
            catalog_fallback_enabled=self.config.catalog.fallback_enabled,
        )

    def _init_workflows(self, student_directory: StudentDirectory) -> None:
        """Initialize the event, consent and checkup workflows."""
        self.events = EventLifecycleController(self.store, self.grades, self.catalog)
        self.consents = ConsentOrchestrator(
            self.store,
            student_directory,
            directory_timeout_seconds=self.config.student_directory.timeout_seconds,
        )
        self.checkups = CheckupResultRecorder(self.store)
        self.logger.info("workflows_initialized")

    async def startup(self) -> ServiceStatus:
        """
        Load grade levels and the catalog.

        Never raises for an unreachable backend: the registry ends up in its
        error state and the catalog on its fallback, both visible in the
        returned status. A catalog with fallback disabled does raise.
        """
        await self.grades.refresh()
        await self.catalog.refresh()

        status = self.status()
        self.logger.info(
            "campaign_service_started",
            grade_registry_state=status.grade_registry_state,
            grade_count=status.grade_count,
            catalog_degraded=self.catalog.degraded,
        )
        return status

    def status(self) -> ServiceStatus:
        return ServiceStatus(
            grade_registry_state=self.grades.state,
            grade_count=len(self.grades.grades),
            grade_error=self.grades.error,
            catalog_using_fallback=dict(self.catalog.using_fallback),
            catalog_warnings=list(self.catalog.warnings),
        )
