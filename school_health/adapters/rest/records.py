"""
Portal endpoints for campaign records.

The in-memory store applies the workflow rules; this adapter publishes the
resulting events, consent decisions and checkup results to the portal backend
and reads them back in the same record shapes. Failures surface as domain
errors from ``PortalApiClient``; a malformed body becomes
ServiceUnavailableError.
"""

from collections.abc import Callable
from typing import Any, TypeVar

import structlog

from school_health.adapters.rest import paths
from school_health.adapters.rest.client import PortalApiClient
from school_health.domain.errors import DomainValidationError, ServiceUnavailableError
from school_health.domain.models import (
    ConsentStatus,
    HealthEvent,
    StudentHealthCheckup,
    VaccinationConsent,
)

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT")

# Assigned by the backend on create
_SERVER_FIELDS = ("eventId", "version", "createdAt", "updatedAt")


def _one(path: str, body: Any, parse: Callable[[Any], RecordT]) -> RecordT:
    if not isinstance(body, dict):
        raise ServiceUnavailableError(f"Invalid response format from {path}")
    try:
        return parse(body)
    except ValueError as e:
        logger.warning("invalid_response_record", path=path, error=str(e))
        raise ServiceUnavailableError(f"Invalid record from {path}: {e}") from e


def _many(path: str, body: Any, parse: Callable[[Any], RecordT]) -> list[RecordT]:
    if body is None:
        return []
    if not isinstance(body, list):
        raise ServiceUnavailableError(f"Invalid response format from {path}")
    return [_one(path, item, parse) for item in body]


class RestCampaignRecords:
    def __init__(self, client: PortalApiClient) -> None:
        self.client = client
        self.logger = logger.bind(component="portal_records")

    # Events

    async def list_events(self) -> list[HealthEvent]:
        body = await self.client.get(paths.HEALTH_EVENTS)
        return _many(paths.HEALTH_EVENTS, body, HealthEvent.from_record)

    async def get_event(self, event_id: int) -> HealthEvent:
        path = paths.health_event(event_id)
        return _one(path, await self.client.get(path), HealthEvent.from_record)

    async def publish_event(self, event: HealthEvent) -> HealthEvent:
        """Create the event on the portal; the returned copy carries the portal's id."""
        record = {k: v for k, v in event.to_record().items() if k not in _SERVER_FIELDS}
        body = await self.client.post(paths.HEALTH_EVENTS, json=record)
        created = _one(paths.HEALTH_EVENTS, body, HealthEvent.from_record)
        self.logger.info("event_published", event_id=created.event_id)
        return created

    async def update_event(self, event: HealthEvent) -> HealthEvent:
        path = paths.health_event(event.event_id)
        body = await self.client.put(path, json=event.to_record())
        return _one(path, body, HealthEvent.from_record)

    async def delete_event(self, event_id: int) -> None:
        await self.client.delete(paths.health_event(event_id))
        self.logger.info("event_unpublished", event_id=event_id)

    # Consents

    async def send_consents(self, event_id: int) -> list[VaccinationConsent]:
        path = paths.send_consents(event_id)
        consents = _many(path, await self.client.post(path), VaccinationConsent.model_validate)
        self.logger.info("consents_requested", event_id=event_id, returned=len(consents))
        return consents

    async def pending_consents(self, student_id: int) -> list[VaccinationConsent]:
        path = paths.pending_consents(student_id)
        return _many(path, await self.client.get(path), VaccinationConsent.model_validate)

    async def submitted_consents(self, student_id: int) -> list[VaccinationConsent]:
        path = paths.submitted_consents(student_id)
        return _many(path, await self.client.get(path), VaccinationConsent.model_validate)

    async def respond_to_consent(
        self, consent_id: int, decision: ConsentStatus, notes: str | None = None
    ) -> VaccinationConsent:
        if decision not in (ConsentStatus.APPROVED, ConsentStatus.REJECTED):
            raise DomainValidationError(
                {"consent_status": "Decision must be APPROVED or REJECTED."}
            )
        path = paths.respond_to_consent(consent_id)
        payload = {"consentStatus": ConsentStatus(decision).value, "parentNotes": notes or None}
        body = await self.client.post(path, json=payload)
        return _one(path, body, VaccinationConsent.model_validate)

    # Checkup results

    async def get_checkup(self, event_id: int, student_id: int) -> StudentHealthCheckup:
        path = paths.checkup_record(event_id, student_id)
        return _one(path, await self.client.get(path), StudentHealthCheckup.from_record)

    async def save_checkup(self, record: StudentHealthCheckup) -> StudentHealthCheckup:
        """Replace the portal's result for (event, student) with ``record``."""
        path = paths.checkup_record(record.event_id, record.student_id)
        body = await self.client.put(path, json=record.to_record())
        return _one(path, body, StudentHealthCheckup.from_record)
