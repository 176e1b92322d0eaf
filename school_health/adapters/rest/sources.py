"""REST-backed implementations of the collaborator protocols."""

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from school_health.adapters.rest import paths
from school_health.adapters.rest.client import PortalApiClient
from school_health.domain.errors import HealthCampaignError, ServiceUnavailableError
from school_health.domain.models import CheckupType, GradeLevel, Student, Vaccine
from school_health.services.sources import Result

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


async def _fetch_list(
    client: PortalApiClient,
    path: str,
    parse: Callable[[Any], ModelT],
    params: dict[str, Any] | None = None,
) -> Result[list[ModelT], Exception]:
    try:
        body = await client.get(path, params=params)
    except HealthCampaignError as e:
        return Result.err(e)

    if not isinstance(body, list):
        logger.warning("unexpected_response_shape", path=path, body_type=type(body).__name__)
        return Result.err(ServiceUnavailableError(f"Invalid response format from {path}"))

    try:
        return Result.ok([parse(item) for item in body])
    except ValidationError as e:
        logger.warning("invalid_response_items", path=path, errors=e.error_count())
        return Result.err(ServiceUnavailableError(f"Invalid records from {path}: {e}"))


class RestGradeLevelSource:
    def __init__(self, client: PortalApiClient) -> None:
        self.client = client

    async def fetch_grade_levels(self) -> Result[list[GradeLevel], Exception]:
        return await _fetch_list(self.client, paths.GRADE_LEVELS, GradeLevel.model_validate)


class RestVaccineSource:
    def __init__(self, client: PortalApiClient) -> None:
        self.client = client

    async def fetch_vaccines(self) -> Result[list[Vaccine], Exception]:
        return await _fetch_list(self.client, paths.VACCINES, Vaccine.model_validate)


class RestCheckupTypeSource:
    def __init__(self, client: PortalApiClient) -> None:
        self.client = client

    async def fetch_checkup_types(self) -> Result[list[CheckupType], Exception]:
        return await _fetch_list(self.client, paths.CHECKUP_TYPES, CheckupType.model_validate)


class RestStudentDirectory:
    """
    Student lookups against ``/students``.

    The backend may ignore the ``gradeIds`` filter and return every student;
    the consent orchestrator filters by grade again, so that is harmless.
    """

    def __init__(self, client: PortalApiClient) -> None:
        self.client = client

    async def students_in_grades(self, grade_ids: list[int]) -> Result[list[Student], Exception]:
        params = {"gradeIds": ",".join(str(g) for g in grade_ids)}
        return await _fetch_list(self.client, paths.STUDENTS, Student.model_validate, params)
