"""Grade name parsing, legacy range strings and display formatting."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from school_health.domain.grades import (
    GradeRef,
    canonical_grade_name,
    format_grade_numbers,
    format_grade_range,
    parse_grade_levels,
    parse_grade_number,
    sort_key,
    vietnamese_grade_label,
)


class TestParseGradeNumber:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Grade 7", 7),
            ("7A", 7),
            ("12B", 12),
            ("  Grade 1 ", 1),
            ("Grade 13", None),
            ("0A", None),
            ("Kindergarten", None),
            ("Grade seven", None),
            ("", None),
            (None, None),
        ],
    )
    def test_known_shapes(self, name: str | None, expected: int | None) -> None:
        assert parse_grade_number(name) == expected

    @given(st.integers(min_value=1, max_value=12))
    def test_canonical_name_round_trips(self, number: int) -> None:
        assert parse_grade_number(canonical_grade_name(number)) == number

    @given(st.integers().filter(lambda n: n < 1 or n > 12))
    def test_canonical_name_rejects_out_of_range(self, number: int) -> None:
        with pytest.raises(ValueError):
            canonical_grade_name(number)


class TestParseGradeLevels:
    def test_legacy_range_with_single_grade(self) -> None:
        assert parse_grade_levels("Grade 3-5, Grade 7") == [3, 4, 5, 7]

    def test_values_are_clipped_and_deduplicated(self) -> None:
        assert parse_grade_levels("Grade 11-14, Grade 12, 0") == [11, 12]

    def test_huge_upper_bound_is_clamped(self) -> None:
        assert parse_grade_levels("Grade 1-99999999999999") == list(range(1, 13))

    def test_only_first_two_range_bounds_count(self) -> None:
        assert parse_grade_levels("Grade 3-5-7") == [3, 4, 5]

    def test_reversed_range_is_empty(self) -> None:
        assert parse_grade_levels("Grade 5-3, Grade 9") == [9]

    def test_unparseable_parts_are_skipped(self) -> None:
        assert parse_grade_levels("Grade 2, all students, Grade -") == [2]

    @pytest.mark.parametrize("text", [None, "", " , "])
    def test_empty_input(self, text: str | None) -> None:
        assert parse_grade_levels(text) == []

    @given(st.lists(st.integers(min_value=1, max_value=12), min_size=1))
    def test_listed_grades_come_back_sorted_and_unique(self, numbers: list[int]) -> None:
        text = ", ".join(f"Grade {n}" for n in numbers)
        assert parse_grade_levels(text) == sorted(set(numbers))


class TestFormatting:
    def test_single_grade_range(self) -> None:
        assert format_grade_range(4, 4) == "Grade 4"

    def test_grade_range(self) -> None:
        assert format_grade_range(1, 5) == "Grade 1 - Grade 5"

    def test_vietnamese_labels(self) -> None:
        assert vietnamese_grade_label(6) == "Lớp 6"
        assert format_grade_range(6, 9, vietnamese_grade_label) == "Lớp 6 - Lớp 9"

    def test_numbers_are_sorted_and_unique(self) -> None:
        assert format_grade_numbers([7, 3, 7, 5]) == "Grade 3, Grade 5, Grade 7"

    def test_unnumbered_grades_sort_last(self) -> None:
        assert sorted([None, 3, 1], key=sort_key) == [1, 3, None]


class TestGradeRef:
    def test_projections_are_deterministic(self) -> None:
        ref = GradeRef(grade_id=42, grade_name="Grade 7", grade_number=7)
        assert ref.to_id() == 42
        assert ref.to_name() == "Grade 7"

    def test_grade_ref_is_immutable(self) -> None:
        ref = GradeRef(grade_id=1, grade_name="Grade 1", grade_number=1)
        with pytest.raises(ValueError, match="frozen"):
            ref.grade_id = 2  # type: ignore[misc]
