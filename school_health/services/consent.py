"""
Vaccination consent collection.

Fan-out creates one PENDING consent per eligible student and vaccine, keyed
by (event, student, vaccine) so the call can be retried safely after a network
failure. Guardian decisions are write-once.
"""

from collections import Counter
from datetime import UTC, datetime
from typing import Any

import structlog

from school_health.domain import lifecycle
from school_health.domain.errors import (
    AlreadyDecidedError,
    ConflictError,
    DomainValidationError,
    ServiceUnavailableError,
)
from school_health.domain.models import (
    ConsentDispatch,
    ConsentStatus,
    ConsentSummary,
    EventStatus,
    EventType,
    HealthEvent,
    Student,
    VaccinationConsent,
    VaccineConsentCounts,
)
from school_health.services.sources import StudentDirectory, fetch_with_timeout
from school_health.services.store import ConsentRequest, HealthRecordStore

logger = structlog.get_logger(__name__)

DECISIONS = (ConsentStatus.APPROVED, ConsentStatus.REJECTED)


class ConsentOrchestrator:
    def __init__(
        self,
        store: HealthRecordStore,
        student_directory: StudentDirectory,
        directory_timeout_seconds: float = 15.0,
    ) -> None:
        self.store = store
        self.student_directory = student_directory
        self.directory_timeout_seconds = directory_timeout_seconds
        self.logger = logger.bind(component="consent_orchestrator")

    async def send_consent_requests(self, event_id: int) -> ConsentDispatch:
        event = await self.store.get_event(event_id)
        log = self.logger.bind(event_id=event_id)
        self._ensure_accepts_consents(event)

        students = await self._eligible_students(event)
        requests = [
            ConsentRequest(event_id=event_id, student_id=student.student_id, vaccine_name=vaccine)
            for student in students
            for vaccine in event.selected_vaccines or []
        ]

        # The event may have been cancelled or deleted while the directory answered
        created, skipped = await self.store.add_consents_if_absent(
            event_id, requests, check=self._ensure_accepts_consents
        )

        if event.status is EventStatus.PLANNED:
            await self.store.update_event(event_id, self._advance_to_consent_collection)

        log.info(
            "consent_requests_sent",
            eligible_students=len(students),
            created=len(created),
            skipped_existing=skipped,
        )
        return ConsentDispatch(
            event_id=event_id,
            eligible_students=len(students),
            created=created,
            skipped_existing=skipped,
        )

    @staticmethod
    def _ensure_accepts_consents(event: HealthEvent) -> None:
        if event.event_type is not EventType.VACCINATION:
            raise ConflictError(
                f"event {event.event_id} is a {event.event_type.value} event, "
                "consents are only sent for vaccinations"
            )
        if event.status.is_terminal:
            raise ConflictError(
                f"event {event.event_id} is {event.status.value}, consents can no longer be sent",
                user_message="Consents cannot be sent for completed or cancelled events.",
            )

    @staticmethod
    def _advance_to_consent_collection(current: HealthEvent) -> dict[str, Any]:
        # A concurrent call may already have moved the event on
        if current.status is not EventStatus.PLANNED:
            return {}
        status = lifecycle.ensure_transition(
            current.event_type, current.status, EventStatus.CONSENT_COLLECTION
        )
        return {"status": status}

    async def _eligible_students(self, event: HealthEvent) -> list[Student]:
        grade_ids = {grade.grade_id for grade in event.target_grades}
        grade_numbers = event.target_grade_numbers

        result = await fetch_with_timeout(
            self.student_directory.students_in_grades(sorted(grade_ids)),
            timeout_seconds=self.directory_timeout_seconds,
            collaborator="student_directory",
        )
        if result.is_err():
            error = result.unwrap_err()
            self.logger.error(
                "student_directory_unavailable", event_id=event.event_id, error=str(error)
            )
            if isinstance(error, ServiceUnavailableError):
                raise error
            raise ServiceUnavailableError(f"student directory failed: {error}") from error

        eligible: dict[int, Student] = {}
        for student in result.unwrap():
            in_target = student.grade_id in grade_ids or student.grade_number in grade_numbers
            if in_target:
                eligible.setdefault(student.student_id, student)
        return list(eligible.values())

    async def submit_consent(
        self, consent_id: int, decision: ConsentStatus, notes: str | None = None
    ) -> VaccinationConsent:
        # str-valued enum, so raw "APPROVED" from a form compares equal too
        if decision not in DECISIONS:
            raise DomainValidationError(
                {"consent_status": "Decision must be APPROVED or REJECTED."}
            )
        decision = ConsentStatus(decision)

        def mutate(current: VaccinationConsent) -> dict[str, Any]:
            if current.consent_status is not ConsentStatus.PENDING:
                raise AlreadyDecidedError(
                    f"consent {consent_id} is already {current.consent_status.value}"
                )
            return {
                "consent_status": decision,
                "decision_date": datetime.now(UTC),
                "parent_notes": notes or None,
            }

        consent = await self.store.update_consent(consent_id, mutate)
        self.logger.info(
            "consent_decided",
            consent_id=consent_id,
            event_id=consent.event_id,
            decision=decision.value,
        )
        return consent

    async def aggregate(self, event_id: int) -> ConsentSummary:
        await self.store.get_event(event_id)
        consents = await self.store.list_consents(event_id=event_id)

        overall = Counter(c.consent_status for c in consents)
        by_vaccine: dict[str, VaccineConsentCounts] = {}
        for consent in consents:
            counts = by_vaccine.setdefault(consent.vaccine_name, VaccineConsentCounts())
            field = consent.consent_status.value.lower()
            setattr(counts, field, getattr(counts, field) + 1)

        return ConsentSummary(
            event_id=event_id,
            total=len(consents),
            pending=overall[ConsentStatus.PENDING],
            approved=overall[ConsentStatus.APPROVED],
            rejected=overall[ConsentStatus.REJECTED],
            by_vaccine=by_vaccine,
        )

    async def consents_for_event(
        self, event_id: int, status: ConsentStatus | None = None
    ) -> list[VaccinationConsent]:
        await self.store.get_event(event_id)
        return [
            consent
            for consent in await self.store.list_consents(event_id=event_id)
            if status is None or consent.consent_status is status
        ]

    async def pending_for_student(self, student_id: int) -> list[VaccinationConsent]:
        return [
            consent
            for consent in await self.store.list_consents(student_id=student_id)
            if consent.consent_status is ConsentStatus.PENDING
        ]

    async def submitted_for_student(self, student_id: int) -> list[VaccinationConsent]:
        return [
            consent
            for consent in await self.store.list_consents(student_id=student_id)
            if consent.consent_status is not ConsentStatus.PENDING
        ]
