"""
Domain models for school health campaigns.

These models represent the core business concepts and are framework-agnostic.
Python attributes are snake_case; the REST record shape (camelCase) is produced
with ``to_record()`` and accepted on input, since the field names are a
compatibility contract with the portal backend.
"""

from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

from school_health.domain.grades import GradeRef, parse_grade_number


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EventType(str, Enum):
    HEALTH_CHECKUP = "HEALTH_CHECKUP"
    VACCINATION = "VACCINATION"


class EventStatus(str, Enum):
    """Campaign status. See school_health.domain.lifecycle for the allowed moves."""

    PLANNED = "PLANNED"
    CONSENT_COLLECTION = "CONSENT_COLLECTION"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (EventStatus.COMPLETED, EventStatus.CANCELLED)


class ConsentStatus(str, Enum):
    """Guardian decision on a vaccination consent."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class CheckupConsentStatus(str, Enum):
    """Whether guardians allowed the checkup examination itself."""

    PENDING = "PENDING"
    CONSENTED = "CONSENTED"
    REJECTED = "REJECTED"


class WireModel(BaseModel):
    """Base for records exchanged with the portal backend."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Reference data


class GradeLevel(WireModel):
    grade_id: int
    grade_name: str
    is_active: bool = True

    @computed_field  # type: ignore[prop-decorator]
    @property
    def grade_number(self) -> int | None:
        return parse_grade_number(self.grade_name)

    def to_ref(self) -> GradeRef:
        return GradeRef(
            grade_id=self.grade_id,
            grade_name=self.grade_name,
            grade_number=self.grade_number,
        )


class Vaccine(WireModel):
    model_config = ConfigDict(frozen=True)

    vaccine_id: int
    name: str = Field(min_length=1)
    disease_targeted: str | None = None


class CheckupType(WireModel):
    model_config = ConfigDict(frozen=True)

    checkup_type_id: int
    type_name: str = Field(min_length=1)
    description: str | None = None


class Student(WireModel):
    student_id: int
    full_name: str
    grade_id: int | None = None
    grade_name: str | None = None

    @property
    def grade_number(self) -> int | None:
        return parse_grade_number(self.grade_name)


# Events


class EventDraft(WireModel):
    """
    Operator input for creating or updating an event.

    Grades may be given as ids, names, a legacy range string, or any mix of
    the three; the controller resolves them against the grade registry.
    """

    event_name: str = ""
    event_type: EventType
    description: str | None = None
    scheduled_date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    location: str | None = None
    status: EventStatus | None = None
    target_grade_ids: list[int] = Field(default_factory=list)
    target_grade_names: list[str] = Field(default_factory=list)
    target_grade_levels: str | None = None
    types_of_checkups: list[str] = Field(default_factory=list)
    selected_vaccines: list[str] = Field(default_factory=list)


class HealthEvent(WireModel):
    """A persisted campaign. Owned by the EventLifecycleController."""

    model_config = ConfigDict(frozen=True)

    event_id: int
    event_name: str
    event_type: EventType
    description: str | None = None
    scheduled_date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    location: str | None = None
    status: EventStatus = EventStatus.PLANNED
    target_grades: list[GradeRef] = Field(min_length=1, exclude=True)
    types_of_checkups: list[str] | None = None
    selected_vaccines: list[str] | None = None
    version: int = 1
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @computed_field(alias="targetGradeIds")  # type: ignore[prop-decorator]
    @property
    def target_grade_ids(self) -> list[int]:
        return [grade.to_id() for grade in self.target_grades]

    @computed_field(alias="targetGradeNames")  # type: ignore[prop-decorator]
    @property
    def target_grade_names(self) -> list[str]:
        return [grade.to_name() for grade in self.target_grades]

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "HealthEvent":
        """Rebuild an event from its wire record, pairing grade ids with names."""
        ids = record.get("targetGradeIds") or []
        names = record.get("targetGradeNames") or []
        if len(ids) != len(names):
            raise ValueError("targetGradeIds and targetGradeNames differ in length")
        grades = [
            GradeRef(grade_id=grade_id, grade_name=name, grade_number=parse_grade_number(name))
            for grade_id, name in zip(ids, names, strict=True)
        ]
        return cls.model_validate({**record, "target_grades": grades})

    @property
    def target_grade_numbers(self) -> set[int]:
        return {g.grade_number for g in self.target_grades if g.grade_number is not None}

    @model_validator(mode="after")
    def selections_match_type(self) -> "HealthEvent":
        if self.event_type is EventType.HEALTH_CHECKUP:
            if not self.types_of_checkups:
                raise ValueError("health checkup events need at least one checkup type")
            if self.selected_vaccines:
                raise ValueError("health checkup events cannot carry vaccines")
            if self.status is EventStatus.CONSENT_COLLECTION:
                raise ValueError("health checkup events never collect consents")
        else:
            if not self.selected_vaccines:
                raise ValueError("vaccination events need at least one vaccine")
            if self.types_of_checkups:
                raise ValueError("vaccination events cannot carry checkup types")
        return self


# Consents


class VaccinationConsent(WireModel):
    model_config = ConfigDict(frozen=True)

    consent_id: int
    event_id: int
    student_id: int
    vaccine_name: str
    consent_status: ConsentStatus = ConsentStatus.PENDING
    sent_date: datetime = Field(default_factory=_utcnow)
    decision_date: datetime | None = Field(default=None, alias="consentDate")
    parent_notes: str | None = None
    version: int = 1

    @property
    def natural_key(self) -> tuple[int, int, str]:
        return (self.event_id, self.student_id, self.vaccine_name)


class VaccineConsentCounts(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.approved + self.rejected


class ConsentSummary(BaseModel):
    """Dashboard counts for one vaccination event."""

    event_id: int
    total: int = Field(ge=0)
    pending: int = Field(ge=0)
    approved: int = Field(ge=0)
    rejected: int = Field(ge=0)
    by_vaccine: dict[str, VaccineConsentCounts] = Field(default_factory=dict)

    @model_validator(mode="after")
    def counts_reconcile(self) -> "ConsentSummary":
        if self.pending + self.approved + self.rejected != self.total:
            raise ValueError("consent counts do not add up to the total")
        if self.by_vaccine and sum(c.total for c in self.by_vaccine.values()) != self.total:
            raise ValueError("per-vaccine counts do not add up to the total")
        return self


class ConsentDispatch(BaseModel):
    """Outcome of one consent fan-out call."""

    event_id: int
    eligible_students: int
    created: list[VaccinationConsent] = Field(default_factory=list)
    skipped_existing: int = 0


# Checkup results


class CheckupVitals(WireModel):
    height: float | None = Field(default=None, gt=0, description="Height in cm")
    weight: float | None = Field(default=None, gt=0, description="Weight in kg")
    vision: str | None = None
    hearing: str | None = None
    dental_health: str | None = None
    scoliosis_screening: str | None = None
    general_condition: str | None = None
    notes: str | None = None


class StudentHealthCheckup(WireModel):
    model_config = ConfigDict(frozen=True)

    checkup_id: int
    event_id: int
    student_id: int
    vitals: CheckupVitals = Field(default_factory=CheckupVitals)
    consent_status: CheckupConsentStatus = CheckupConsentStatus.PENDING
    recorded_at: datetime = Field(default_factory=_utcnow)
    version: int = 1

    @property
    def natural_key(self) -> tuple[int, int]:
        return (self.event_id, self.student_id)

    def to_record(self) -> dict[str, Any]:
        record = super().to_record()
        # The backend stores vitals as top-level columns.
        record.update(record.pop("vitals", {}))
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "StudentHealthCheckup":
        return cls.model_validate({**record, "vitals": CheckupVitals.model_validate(record)})
