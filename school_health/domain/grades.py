"""
Grade-level normalization.

Grade levels reach us in three shapes: backend ids, display names ("Grade 7",
or legacy class-style names such as "7A"), and free-text range strings from
older events ("Grade 3-5, Grade 7"). Everything here is pure so the registry
and the event controller can share one set of rules.
"""

import re
from collections.abc import Callable, Iterable

from pydantic import BaseModel, ConfigDict, Field

MIN_GRADE = 1
MAX_GRADE = 12

_CLASS_STYLE_NAME = re.compile(r"^(\d+)[A-Z]$")
_CANONICAL_NAME = re.compile(r"^Grade (\d+)$")
_NON_DIGITS = re.compile(r"\D")


class GradeRef(BaseModel):
    """A resolved grade: one value, two deterministic projections."""

    model_config = ConfigDict(frozen=True)

    grade_id: int
    grade_name: str
    grade_number: int | None = Field(default=None, ge=MIN_GRADE, le=MAX_GRADE)

    def to_id(self) -> int:
        return self.grade_id

    def to_name(self) -> str:
        return self.grade_name


def is_valid_grade_number(number: int) -> bool:
    return MIN_GRADE <= number <= MAX_GRADE


def parse_grade_number(name: str | None) -> int | None:
    """
    Extract the grade number embedded in a grade name.

    "7A" -> 7, "Grade 7" -> 7. Names matching neither shape, or carrying a
    number outside 1..12, have no numeric grade and return None.
    """
    if not name:
        return None

    text = name.strip()
    match = _CLASS_STYLE_NAME.match(text) or _CANONICAL_NAME.match(text)
    if match is None:
        return None

    number = int(match.group(1))
    return number if is_valid_grade_number(number) else None


def canonical_grade_name(number: int) -> str:
    if not is_valid_grade_number(number):
        raise ValueError(f"grade number must be between {MIN_GRADE} and {MAX_GRADE}, got {number}")
    return f"Grade {number}"


def vietnamese_grade_label(number: int) -> str:
    # Mechanically generated, the English name stays the stored form.
    return f"Lớp {number}"


def _digits(text: str) -> int | None:
    digits = _NON_DIGITS.sub("", text)
    return int(digits) if digits else None


def parse_grade_levels(text: str | None) -> list[int]:
    """
    Expand a legacy grade string into explicit grade numbers.

    "Grade 3-5, Grade 7" -> [3, 4, 5, 7]. Values are clipped to 1..12,
    de-duplicated and sorted; unparseable parts are skipped.
    """
    if not text:
        return []

    numbers: set[int] = set()
    for part in (p.strip() for p in text.split(",")):
        if not part:
            continue

        if "-" in part:
            # "Grade 3-5-7" reads as 3..5, anything past the second bound is ignored
            bounds = part.split("-")
            start, end = _digits(bounds[0]), _digits(bounds[1])
            if start is None or end is None:
                continue
            start, end = max(start, MIN_GRADE), min(end, MAX_GRADE)
            numbers.update(range(start, end + 1))
        else:
            number = _digits(part)
            if number is not None and is_valid_grade_number(number):
                numbers.add(number)

    return sorted(numbers)


def format_grade_range(
    min_grade: int,
    max_grade: int,
    name_for: Callable[[int], str] = canonical_grade_name,
) -> str:
    if min_grade == max_grade:
        return name_for(min_grade)
    return f"{name_for(min_grade)} - {name_for(max_grade)}"


def format_grade_numbers(
    numbers: Iterable[int],
    name_for: Callable[[int], str] = canonical_grade_name,
) -> str:
    return ", ".join(name_for(n) for n in sorted(set(numbers)))


def sort_key(number: int | None) -> tuple[int, int]:
    """Order grades by number, un-numbered grades last."""
    return (0, number) if number is not None else (1, 0)
