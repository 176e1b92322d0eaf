"""
Record store owning the three campaign collections.

The store is the single writer for events, vaccination consents and checkup
results. It assigns ids, stamps every record with a version that increments on
each write, enforces natural-key uniqueness, and runs every check-then-set
under one asyncio.Lock so retries and double submissions cannot interleave.

Mutations are expressed as callbacks that receive the current record and
return the fields to change; they run under the lock and may raise a domain
error to abort without any change. Writes that hang off an event (consents and
checkup results) take an optional event check that runs under the same lock,
so a delete or cancel racing the write is always seen.
"""

import asyncio
import itertools
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, Protocol, TypeVar

import structlog
from pydantic import BaseModel

from school_health.domain.errors import ConcurrencyConflictError, ConflictError, NotFoundError
from school_health.domain.models import (
    CheckupVitals,
    HealthEvent,
    StudentHealthCheckup,
    VaccinationConsent,
)

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", HealthEvent, VaccinationConsent, StudentHealthCheckup)
Mutation = Callable[[RecordT], dict[str, Any]]
EventCheck = Callable[[HealthEvent], None]


class ConsentRequest(BaseModel):
    """A consent the orchestrator wants to exist."""

    event_id: int
    student_id: int
    vaccine_name: str

    @property
    def natural_key(self) -> tuple[int, int, str]:
        return (self.event_id, self.student_id, self.vaccine_name)


class HealthRecordStore(Protocol):
    """Persistence seam for the campaign services."""

    async def create_event(self, fields: dict[str, Any]) -> HealthEvent: ...

    async def get_event(self, event_id: int) -> HealthEvent: ...

    async def list_events(self) -> list[HealthEvent]: ...

    async def update_event(
        self,
        event_id: int,
        mutate: Mutation[HealthEvent],
        expected_version: int | None = None,
    ) -> HealthEvent: ...

    async def delete_event(self, event_id: int) -> None: ...

    async def count_dependents(self, event_id: int) -> int: ...

    async def add_consents_if_absent(
        self,
        event_id: int,
        requests: Iterable[ConsentRequest],
        check: EventCheck | None = None,
    ) -> tuple[list[VaccinationConsent], int]: ...

    async def get_consent(self, consent_id: int) -> VaccinationConsent: ...

    async def list_consents(
        self, event_id: int | None = None, student_id: int | None = None
    ) -> list[VaccinationConsent]: ...

    async def update_consent(
        self,
        consent_id: int,
        mutate: Mutation[VaccinationConsent],
        expected_version: int | None = None,
    ) -> VaccinationConsent: ...

    async def upsert_checkup(
        self,
        event_id: int,
        student_id: int,
        vitals: CheckupVitals,
        check: EventCheck | None = None,
    ) -> tuple[StudentHealthCheckup, bool]: ...

    async def get_checkup(self, checkup_id: int) -> StudentHealthCheckup: ...

    async def list_checkups(
        self, event_id: int | None = None, student_id: int | None = None
    ) -> list[StudentHealthCheckup]: ...

    async def update_checkup(
        self,
        checkup_id: int,
        mutate: Mutation[StudentHealthCheckup],
        expected_version: int | None = None,
    ) -> StudentHealthCheckup: ...


def _fields(record: BaseModel) -> dict[str, Any]:
    # model_dump() would drop excluded fields such as HealthEvent.target_grades
    return {name: getattr(record, name) for name in type(record).model_fields}


class InMemoryHealthRecordStore:
    """Process-local implementation of HealthRecordStore."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._events: dict[int, HealthEvent] = {}
        self._consents: dict[int, VaccinationConsent] = {}
        self._checkups: dict[int, StudentHealthCheckup] = {}
        self._consent_keys: dict[tuple[int, int, str], int] = {}
        self._checkup_keys: dict[tuple[int, int], int] = {}
        self._event_ids = itertools.count(1)
        self._consent_ids = itertools.count(1)
        self._checkup_ids = itertools.count(1)
        self.logger = logger.bind(component="record_store")

    # Events

    async def create_event(self, fields: dict[str, Any]) -> HealthEvent:
        async with self._lock:
            event = HealthEvent(event_id=next(self._event_ids), version=1, **fields)
            self._events[event.event_id] = event
        self.logger.debug("event_stored", event_id=event.event_id)
        return event

    async def get_event(self, event_id: int) -> HealthEvent:
        return self._require(self._events, "event", event_id)

    async def list_events(self) -> list[HealthEvent]:
        return [self._events[key] for key in sorted(self._events)]

    async def update_event(
        self,
        event_id: int,
        mutate: Mutation[HealthEvent],
        expected_version: int | None = None,
    ) -> HealthEvent:
        async with self._lock:
            current = self._require(self._events, "event", event_id)
            updated = self._apply(HealthEvent, "event", current, event_id, mutate, expected_version)
            if updated.event_type is not current.event_type and self._dependents(event_id):
                raise ConflictError(
                    f"event {event_id} already has consents or results, type cannot change",
                    user_message="The event type cannot change once consents or results exist.",
                )
            if updated is not current:
                updated = updated.model_copy(update={"updated_at": datetime.now(UTC)})
                self._events[event_id] = updated
            return updated

    async def delete_event(self, event_id: int) -> None:
        async with self._lock:
            self._require(self._events, "event", event_id)
            consents = sum(1 for c in self._consents.values() if c.event_id == event_id)
            checkups = sum(1 for c in self._checkups.values() if c.event_id == event_id)
            if consents or checkups:
                raise ConflictError(
                    f"event {event_id} has {consents} consent(s) and {checkups} checkup result(s)",
                    user_message=(
                        "This event already has consents or results and cannot be deleted."
                    ),
                )
            del self._events[event_id]
        self.logger.info("event_deleted", event_id=event_id)

    async def count_dependents(self, event_id: int) -> int:
        return self._dependents(event_id)

    # Consents

    async def add_consents_if_absent(
        self,
        event_id: int,
        requests: Iterable[ConsentRequest],
        check: EventCheck | None = None,
    ) -> tuple[list[VaccinationConsent], int]:
        """
        Create every requested consent whose natural key is new, all or nothing.

        The event must still exist when the batch is committed; ``check`` can
        refuse the write based on its current type or status.
        """
        pending = list(requests)
        if any(request.event_id != event_id for request in pending):
            raise ValueError(f"consent requests must all belong to event {event_id}")

        async with self._lock:
            self._checked_event(event_id, check)
            sent_at = datetime.now(UTC)
            fresh: list[VaccinationConsent] = []
            keys: set[tuple[int, int, str]] = set()
            skipped = 0
            for request in pending:
                key = request.natural_key
                if key in self._consent_keys or key in keys:
                    skipped += 1
                    continue
                keys.add(key)
                fresh.append(
                    VaccinationConsent(
                        consent_id=0,
                        event_id=request.event_id,
                        student_id=request.student_id,
                        vaccine_name=request.vaccine_name,
                        sent_date=sent_at,
                    )
                )

            # Ids are only handed out once every record has validated
            created = []
            for consent in fresh:
                stored = consent.model_copy(update={"consent_id": next(self._consent_ids)})
                self._consents[stored.consent_id] = stored
                self._consent_keys[stored.natural_key] = stored.consent_id
                created.append(stored)

        self.logger.info(
            "consents_stored", event_id=event_id, created=len(created), skipped_existing=skipped
        )
        return created, skipped

    async def get_consent(self, consent_id: int) -> VaccinationConsent:
        return self._require(self._consents, "consent", consent_id)

    async def list_consents(
        self, event_id: int | None = None, student_id: int | None = None
    ) -> list[VaccinationConsent]:
        return [
            consent
            for _, consent in sorted(self._consents.items())
            if (event_id is None or consent.event_id == event_id)
            and (student_id is None or consent.student_id == student_id)
        ]

    async def update_consent(
        self,
        consent_id: int,
        mutate: Mutation[VaccinationConsent],
        expected_version: int | None = None,
    ) -> VaccinationConsent:
        async with self._lock:
            current = self._require(self._consents, "consent", consent_id)
            updated = self._apply(
                VaccinationConsent, "consent", current, consent_id, mutate, expected_version
            )
            self._consents[consent_id] = updated
            return updated

    # Checkup results

    async def upsert_checkup(
        self,
        event_id: int,
        student_id: int,
        vitals: CheckupVitals,
        check: EventCheck | None = None,
    ) -> tuple[StudentHealthCheckup, bool]:
        """Insert or fully replace the vitals for (event, student). Returns (record, created)."""
        async with self._lock:
            self._checked_event(event_id, check)
            now = datetime.now(UTC)
            existing_id = self._checkup_keys.get((event_id, student_id))

            if existing_id is None:
                record = StudentHealthCheckup(
                    checkup_id=next(self._checkup_ids),
                    event_id=event_id,
                    student_id=student_id,
                    vitals=vitals,
                    recorded_at=now,
                )
                self._checkups[record.checkup_id] = record
                self._checkup_keys[record.natural_key] = record.checkup_id
                return record, True

            current = self._checkups[existing_id]
            record = current.model_copy(
                update={
                    "vitals": vitals.model_copy(),
                    "recorded_at": now,
                    "version": current.version + 1,
                }
            )
            self._checkups[existing_id] = record
            return record, False

    async def get_checkup(self, checkup_id: int) -> StudentHealthCheckup:
        return self._require(self._checkups, "checkup result", checkup_id)

    async def list_checkups(
        self, event_id: int | None = None, student_id: int | None = None
    ) -> list[StudentHealthCheckup]:
        return [
            record
            for _, record in sorted(self._checkups.items())
            if (event_id is None or record.event_id == event_id)
            and (student_id is None or record.student_id == student_id)
        ]

    async def update_checkup(
        self,
        checkup_id: int,
        mutate: Mutation[StudentHealthCheckup],
        expected_version: int | None = None,
    ) -> StudentHealthCheckup:
        async with self._lock:
            current = self._require(self._checkups, "checkup result", checkup_id)
            updated = self._apply(
                StudentHealthCheckup,
                "checkup result",
                current,
                checkup_id,
                mutate,
                expected_version,
            )
            self._checkups[checkup_id] = updated
            return updated

    # Helpers

    def _dependents(self, event_id: int) -> int:
        return sum(1 for c in self._consents.values() if c.event_id == event_id) + sum(
            1 for c in self._checkups.values() if c.event_id == event_id
        )

    def _checked_event(self, event_id: int, check: EventCheck | None) -> HealthEvent:
        # Callers hold self._lock
        event = self._require(self._events, "event", event_id)
        if check is not None:
            check(event)
        return event

    @staticmethod
    def _require(collection: dict[int, RecordT], kind: str, record_id: int) -> RecordT:
        try:
            return collection[record_id]
        except KeyError:
            raise NotFoundError(kind, record_id) from None

    @staticmethod
    def _apply(
        model: type[RecordT],
        kind: str,
        current: RecordT,
        record_id: int,
        mutate: Mutation[RecordT],
        expected_version: int | None,
    ) -> RecordT:
        if expected_version is not None and expected_version != current.version:
            raise ConcurrencyConflictError(kind, record_id, expected_version, current.version)

        changes = mutate(current)
        if not changes:
            return current

        # Re-validate the whole record so invariants hold after every write
        return model.model_validate(
            {**_fields(current), **changes, "version": current.version + 1}
        )
