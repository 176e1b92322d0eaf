"""End-to-end campaign flows through the service facade."""

import logging
from collections.abc import Iterator

import pytest
import structlog
from fakes import (
    FakeCatalogSource,
    FakeGradeLevelSource,
    FakeStudentDirectory,
    checkup_draft,
    vaccination_draft,
)

from school_health.adapters.rest import RestGradeLevelSource, RestStudentDirectory
from school_health.config import AppConfig, CatalogConfig, LoggingConfig
from school_health.domain.errors import ServiceUnavailableError
from school_health.domain.models import CheckupVitals, ConsentStatus, EventStatus
from school_health.log import configure_logging
from school_health.services import HealthCampaignService


class TestStartup:
    async def test_healthy_startup(self, service: HealthCampaignService) -> None:
        status = service.status()

        assert status.grade_registry_state == "ready"
        assert status.grade_count == 12
        assert not status.degraded
        assert status.catalog_warnings == []

    async def test_unreachable_backend_degrades_without_raising(self) -> None:
        service = HealthCampaignService(
            AppConfig(),
            grade_source=FakeGradeLevelSource(error=ConnectionError("down")),
            vaccine_source=FakeCatalogSource(error=ConnectionError("down")),
            checkup_type_source=FakeCatalogSource(error=ConnectionError("down")),
            student_directory=FakeStudentDirectory(),
        )

        status = await service.startup()

        assert status.degraded
        assert status.grade_registry_state == "error"
        assert status.catalog_using_fallback == {"vaccines": True, "checkup_types": True}
        assert len(status.catalog_warnings) == 2

        # Without grades no event can be created, even with the default catalog
        with pytest.raises(ServiceUnavailableError):
            await service.events.create_event(vaccination_draft())

    async def test_disabled_fallback_surfaces_on_startup(self) -> None:
        config = AppConfig(catalog=CatalogConfig(fallback_enabled=False))
        service = HealthCampaignService(
            config,
            grade_source=FakeGradeLevelSource(),
            vaccine_source=FakeCatalogSource(error=ConnectionError("down")),
            checkup_type_source=FakeCatalogSource(),
            student_directory=FakeStudentDirectory(),
        )

        with pytest.raises(ServiceUnavailableError):
            await service.startup()

    def test_missing_collaborators_default_to_rest_adapters(self) -> None:
        service = HealthCampaignService(AppConfig())

        assert isinstance(service.grades.source, RestGradeLevelSource)
        assert isinstance(service.consents.student_directory, RestStudentDirectory)


class TestCampaignFlows:
    async def test_vaccination_campaign(self, service: HealthCampaignService) -> None:
        event = await service.events.create_event(vaccination_draft())

        dispatch = await service.consents.send_consent_requests(event.event_id)
        for consent in dispatch.created[:4]:
            await service.consents.submit_consent(consent.consent_id, ConsentStatus.APPROVED)
        await service.events.transition(event.event_id, EventStatus.IN_PROGRESS)
        done = await service.events.transition(event.event_id, EventStatus.COMPLETED)

        summary = await service.consents.aggregate(event.event_id)
        assert done.status is EventStatus.COMPLETED
        assert (summary.total, summary.approved, summary.pending) == (10, 4, 6)

    async def test_checkup_campaign(self, service: HealthCampaignService) -> None:
        event = await service.events.create_event(checkup_draft())
        await service.events.transition(event.event_id, EventStatus.IN_PROGRESS)

        await service.checkups.record_result(event.event_id, 1, CheckupVitals(height=120.0))
        await service.checkups.record_result(event.event_id, 1, CheckupVitals(height=121.0))

        results = await service.checkups.results_for_event(event.event_id)
        assert [r.vitals.height for r in results] == [121.0]


@pytest.fixture
def restore_logging() -> Iterator[None]:
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.mark.usefixtures("restore_logging")
@pytest.mark.parametrize("fmt", ["json", "console"])
def test_configure_logging(fmt: str, capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(LoggingConfig(level="INFO", format=fmt))

    structlog.get_logger("test").info("logging_configured", fmt=fmt)

    assert "logging_configured" in capsys.readouterr().out
