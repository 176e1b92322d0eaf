"""
Collaborator protocols and the Result type used at those seams.

Grade levels, the catalog and the student directory come from the portal
backend in production and from fakes in tests. Their failures are expected
(the backend may be down) and come back as ``Result`` values rather than
exceptions; every call is bounded by ``fetch_with_timeout``.
"""

import asyncio
from collections.abc import Awaitable
from typing import Generic, Protocol, TypeVar

import structlog

from school_health.domain.errors import ServiceUnavailableError
from school_health.domain.models import CheckupType, GradeLevel, Student, Vaccine

logger = structlog.get_logger(__name__)

ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class Result(Generic[ValueT, ErrorT]):
    """What a collaborator returned: reference data, or the error it failed with."""

    __slots__ = ("_value", "_error")

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if (value is None) == (error is None):
            raise ValueError("a Result holds exactly one of a value or an error")
        self._value = value
        self._error = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        """The value; re-raises the collaborator's error for a failed call."""
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("unwrap_err() called on a successful Result")
        return self._error


class GradeLevelSource(Protocol):
    async def fetch_grade_levels(self) -> Result[list[GradeLevel], Exception]:
        """Active grade levels from the backend."""
        ...


class VaccineSource(Protocol):
    async def fetch_vaccines(self) -> Result[list[Vaccine], Exception]:
        ...


class CheckupTypeSource(Protocol):
    async def fetch_checkup_types(self) -> Result[list[CheckupType], Exception]:
        ...


class StudentDirectory(Protocol):
    async def students_in_grades(self, grade_ids: list[int]) -> Result[list[Student], Exception]:
        """
        Students enrolled in any of the given grades.

        An error result means the directory could not answer; callers must not
        treat it as "no students".
        """
        ...


async def fetch_with_timeout(
    fetch: Awaitable[Result[ValueT, Exception]],
    *,
    timeout_seconds: float,
    collaborator: str,
) -> Result[ValueT, Exception]:
    """Await a collaborator call, turning timeouts and stray exceptions into errors."""
    try:
        return await asyncio.wait_for(fetch, timeout=timeout_seconds)
    except TimeoutError:
        logger.warning(
            "collaborator_timeout", collaborator=collaborator, timeout_seconds=timeout_seconds
        )
        return Result.err(
            ServiceUnavailableError(f"{collaborator} did not answer within {timeout_seconds}s")
        )
    except Exception as e:
        logger.exception("unexpected_collaborator_error", collaborator=collaborator, error=str(e))
        return Result.err(e)
