"""Shared fixtures: in-memory collaborators and wired services."""

from collections.abc import Iterator

import pytest
from fakes import (
    FakeCatalogSource,
    FakeGradeLevelSource,
    FakeStudentDirectory,
    make_students,
)

from school_health.config import AppConfig, reset_config_cache
from school_health.domain.models import Student
from school_health.services import (
    CatalogProvider,
    CheckupResultRecorder,
    ConsentOrchestrator,
    EventLifecycleController,
    GradeLevelRegistry,
    HealthCampaignService,
    InMemoryHealthRecordStore,
)


@pytest.fixture(autouse=True)
def clear_config_cache() -> Iterator[None]:
    reset_config_cache()
    yield
    reset_config_cache()


@pytest.fixture
def grade_source() -> FakeGradeLevelSource:
    return FakeGradeLevelSource()


@pytest.fixture
def catalog_source() -> FakeCatalogSource:
    return FakeCatalogSource()


@pytest.fixture
def students() -> list[Student]:
    # Six students in grade 6 and four in grade 7, plus two out of scope
    return make_students({6: 6, 7: 4, 9: 2})


@pytest.fixture
def student_directory(students: list[Student]) -> FakeStudentDirectory:
    return FakeStudentDirectory(students)


@pytest.fixture
async def registry(grade_source: FakeGradeLevelSource) -> GradeLevelRegistry:
    registry = GradeLevelRegistry(grade_source, timeout_seconds=1.0)
    await registry.refresh()
    return registry


@pytest.fixture
def catalog(catalog_source: FakeCatalogSource) -> CatalogProvider:
    return CatalogProvider(catalog_source, catalog_source, timeout_seconds=1.0)


@pytest.fixture
def store() -> InMemoryHealthRecordStore:
    return InMemoryHealthRecordStore()


@pytest.fixture
def controller(
    store: InMemoryHealthRecordStore,
    registry: GradeLevelRegistry,
    catalog: CatalogProvider,
) -> EventLifecycleController:
    return EventLifecycleController(store, registry, catalog)


@pytest.fixture
def orchestrator(
    store: InMemoryHealthRecordStore, student_directory: FakeStudentDirectory
) -> ConsentOrchestrator:
    return ConsentOrchestrator(store, student_directory, directory_timeout_seconds=1.0)


@pytest.fixture
def recorder(store: InMemoryHealthRecordStore) -> CheckupResultRecorder:
    return CheckupResultRecorder(store)


@pytest.fixture
async def service(
    grade_source: FakeGradeLevelSource,
    catalog_source: FakeCatalogSource,
    student_directory: FakeStudentDirectory,
) -> HealthCampaignService:
    service = HealthCampaignService(
        AppConfig(),
        grade_source=grade_source,
        vaccine_source=catalog_source,
        checkup_type_source=catalog_source,
        student_directory=student_directory,
    )
    await service.startup()
    return service
