"""Checkup result recording: one record per (event, student), last write wins."""

from typing import Any

import structlog

from school_health.domain.errors import ConflictError
from school_health.domain.models import (
    CheckupConsentStatus,
    CheckupVitals,
    EventStatus,
    EventType,
    HealthEvent,
    StudentHealthCheckup,
)
from school_health.services.store import HealthRecordStore

logger = structlog.get_logger(__name__)


class CheckupResultRecorder:
    def __init__(self, store: HealthRecordStore) -> None:
        self.store = store
        self.logger = logger.bind(component="checkup_result_recorder")

    async def record_result(
        self, event_id: int, student_id: int, vitals: CheckupVitals
    ) -> StudentHealthCheckup:
        """
        Create or replace the result for a student in a checkup event.

        An update replaces the whole vitals payload; fields missing from
        ``vitals`` are cleared rather than merged with the previous values.
        """
        record, created = await self.store.upsert_checkup(
            event_id, student_id, vitals, check=self._ensure_accepts_results
        )
        self.logger.info(
            "checkup_result_recorded" if created else "checkup_result_replaced",
            event_id=event_id,
            student_id=student_id,
            checkup_id=record.checkup_id,
            version=record.version,
        )
        return record

    @staticmethod
    def _ensure_accepts_results(event: HealthEvent) -> None:
        if event.event_type is not EventType.HEALTH_CHECKUP:
            raise ConflictError(
                f"event {event.event_id} is a {event.event_type.value} event, "
                "checkup results need a HEALTH_CHECKUP event"
            )
        if event.status is EventStatus.CANCELLED:
            raise ConflictError(
                f"event {event.event_id} is cancelled",
                user_message="Results cannot be recorded for a cancelled event.",
            )

    async def set_consent_status(
        self, record_id: int, status: CheckupConsentStatus
    ) -> StudentHealthCheckup:
        status = CheckupConsentStatus(status)

        def mutate(current: StudentHealthCheckup) -> dict[str, Any]:
            return {} if current.consent_status is status else {"consent_status": status}

        record = await self.store.update_checkup(record_id, mutate)
        self.logger.info(
            "checkup_consent_updated", checkup_id=record_id, consent_status=status.value
        )
        return record

    async def get_result(self, record_id: int) -> StudentHealthCheckup:
        return await self.store.get_checkup(record_id)

    async def results_for_event(self, event_id: int) -> list[StudentHealthCheckup]:
        await self.store.get_event(event_id)
        return await self.store.list_checkups(event_id=event_id)

    async def results_for_student(self, student_id: int) -> list[StudentHealthCheckup]:
        return await self.store.list_checkups(student_id=student_id)
