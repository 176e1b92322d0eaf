"""
Grade level registry.

Holds the active grades loaded from the backend, sorted by grade number, and
answers every name/id/number question the rest of the workflow asks. There is no
default grade list: when the backend cannot be reached the registry is empty
and reports an error state.
"""

from collections.abc import Iterable
from typing import Literal

import structlog
from pydantic import BaseModel

from school_health.domain import grades as grade_rules
from school_health.domain.errors import DomainValidationError, ServiceUnavailableError
from school_health.domain.grades import GradeRef
from school_health.domain.models import GradeLevel
from school_health.services.sources import GradeLevelSource, Result, fetch_with_timeout

logger = structlog.get_logger(__name__)

RegistryState = Literal["idle", "loading", "ready", "empty", "error"]


class GradeOption(BaseModel):
    """One entry of a grade picker."""

    value: int | str
    label: str
    grade_id: int
    grade_number: int


class GradeLevelRegistry:
    def __init__(self, source: GradeLevelSource, timeout_seconds: float = 5.0) -> None:
        self.source = source
        self.timeout_seconds = timeout_seconds
        self.state: RegistryState = "idle"
        self.error: str | None = None
        self._grades: list[GradeLevel] = []
        self.logger = logger.bind(component="grade_level_registry")

    @property
    def grades(self) -> list[GradeLevel]:
        return list(self._grades)

    async def refresh(self) -> Result[list[GradeLevel], Exception]:
        self.state = "loading"
        self.error = None

        result = await fetch_with_timeout(
            self.source.fetch_grade_levels(),
            timeout_seconds=self.timeout_seconds,
            collaborator="grade_levels",
        )

        if result.is_err():
            # No fallback data - only show what's actually in the database
            self._grades = []
            self.state = "error"
            self.error = str(result.unwrap_err()) or "Failed to fetch grade levels"
            self.logger.warning("grade_levels_unavailable", error=self.error)
            return result

        self._grades = self._normalize(result.unwrap())
        self.state = "ready" if self._grades else "empty"
        self.logger.info("grade_levels_loaded", count=len(self._grades))
        return Result.ok(self.grades)

    def _normalize(self, loaded: Iterable[GradeLevel]) -> list[GradeLevel]:
        active = [g for g in loaded if g.is_active]
        # list.sort is stable, so un-numbered grades keep backend order at the end
        active.sort(key=lambda g: grade_rules.sort_key(g.grade_number))

        seen: set[int] = set()
        unique: list[GradeLevel] = []
        for grade in active:
            number = grade.grade_number
            if number is not None and number in seen:
                self.logger.warning(
                    "duplicate_grade_number_dropped",
                    grade_id=grade.grade_id,
                    grade_name=grade.grade_name,
                    grade_number=number,
                )
                continue
            if number is not None:
                seen.add(number)
            unique.append(grade)
        return unique

    def require_grades(self) -> list[GradeLevel]:
        if not self._grades:
            raise ServiceUnavailableError(
                f"no grade levels available (state={self.state}, error={self.error})",
                user_message="Grade levels could not be loaded. Please try again later.",
            )
        return self.grades

    # Lookups

    def by_id(self, grade_id: int) -> GradeLevel | None:
        return next((g for g in self._grades if g.grade_id == grade_id), None)

    def by_number(self, number: int) -> GradeLevel | None:
        return next((g for g in self._grades if g.grade_number == number), None)

    def by_name(self, name: str) -> GradeLevel | None:
        """Exact name match first, then any grade with the same number ("7A" finds "Grade 7")."""
        needle = name.strip()
        exact = next((g for g in self._grades if g.grade_name == needle), None)
        if exact is not None:
            return exact
        number = grade_rules.parse_grade_number(needle)
        return self.by_number(number) if number is not None else None

    def name_for_number(self, number: int) -> str:
        grade = self.by_number(number)
        return grade.grade_name if grade else grade_rules.canonical_grade_name(number)

    def number_for_name(self, name: str) -> int | None:
        grade = self.by_name(name)
        return grade.grade_number if grade else grade_rules.parse_grade_number(name)

    def resolve(
        self,
        grade_ids: Iterable[int] = (),
        grade_names: Iterable[str] = (),
        legacy_levels: str | None = None,
    ) -> list[GradeRef]:
        """
        Resolve any mix of ids, names and a legacy range string into GradeRefs.

        The result is de-duplicated and ordered like the registry. Unknown
        grades raise DomainValidationError naming every offender.
        """
        self.require_grades()

        resolved: dict[int, GradeLevel] = {}
        unknown: list[str] = []

        for grade_id in grade_ids:
            grade = self.by_id(grade_id)
            if grade is None:
                unknown.append(f"id {grade_id}")
            else:
                resolved[grade.grade_id] = grade

        for name in grade_names:
            grade = self.by_name(name)
            if grade is None:
                unknown.append(repr(name))
            else:
                resolved[grade.grade_id] = grade

        for number in grade_rules.parse_grade_levels(legacy_levels):
            grade = self.by_number(number)
            if grade is None:
                unknown.append(f"grade {number}")
            else:
                resolved[grade.grade_id] = grade

        if unknown:
            raise DomainValidationError(
                {"target_grades": f"Unknown grade levels: {', '.join(unknown)}"}
            )

        order = {g.grade_id: index for index, g in enumerate(self._grades)}
        return [g.to_ref() for g in sorted(resolved.values(), key=lambda g: order[g.grade_id])]

    # Display

    def label(self, number: int, vietnamese: bool = False) -> str:
        if vietnamese:
            return grade_rules.vietnamese_grade_label(number)
        return self.name_for_number(number)

    def format_range(self, min_grade: int, max_grade: int, vietnamese: bool = False) -> str:
        return grade_rules.format_grade_range(
            min_grade, max_grade, lambda n: self.label(n, vietnamese=vietnamese)
        )

    def format_numbers(self, numbers: Iterable[int], vietnamese: bool = False) -> str:
        return grade_rules.format_grade_numbers(
            numbers, lambda n: self.label(n, vietnamese=vietnamese)
        )

    def select_options(
        self, vietnamese: bool = False, value: Literal["id", "name"] = "id"
    ) -> list[GradeOption]:
        options = []
        for grade in self._grades:
            number = grade.grade_number
            if number is None:
                continue
            label = grade_rules.vietnamese_grade_label(number) if vietnamese else grade.grade_name
            options.append(
                GradeOption(
                    value=grade.grade_id if value == "id" else grade.grade_name,
                    label=label,
                    grade_id=grade.grade_id,
                    grade_number=number,
                )
            )
        return options
