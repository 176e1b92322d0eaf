"""
Health event lifecycle.

Validates operator drafts, resolves grade targeting and catalog selections,
persists events through the record store and enforces the status state
machine. Validation problems are collected per field and raised together so a
form can highlight all of them at once.
"""

from typing import Any

import structlog

from school_health.domain import lifecycle
from school_health.domain.errors import ConflictError, DomainValidationError
from school_health.domain.grades import GradeRef
from school_health.domain.models import EventDraft, EventStatus, EventType, HealthEvent
from school_health.services.catalog import CatalogProvider
from school_health.services.grade_registry import GradeLevelRegistry
from school_health.services.store import HealthRecordStore

logger = structlog.get_logger(__name__)


class EventLifecycleController:
    def __init__(
        self,
        store: HealthRecordStore,
        grade_registry: GradeLevelRegistry,
        catalog: CatalogProvider,
    ) -> None:
        self.store = store
        self.grade_registry = grade_registry
        self.catalog = catalog
        self.logger = logger.bind(component="event_lifecycle")

    async def create_event(self, draft: EventDraft) -> HealthEvent:
        fields = await self._validated_fields(draft)

        if draft.status not in (None, EventStatus.PLANNED):
            raise DomainValidationError({"status": "New events always start as PLANNED."})

        event = await self.store.create_event({**fields, "status": EventStatus.PLANNED})
        self.logger.info(
            "event_created",
            event_id=event.event_id,
            event_type=event.event_type.value,
            target_grades=event.target_grade_names,
        )
        return event

    async def update_event(
        self, event_id: int, draft: EventDraft, expected_version: int | None = None
    ) -> HealthEvent:
        fields = await self._validated_fields(draft)

        # The store refuses a type change once consents or results exist
        def mutate(current: HealthEvent) -> dict[str, Any]:
            if current.status.is_terminal:
                raise ConflictError(
                    f"event {event_id} is {current.status.value} and can no longer be edited",
                    user_message="Completed or cancelled events can no longer be edited.",
                )
            if draft.event_type is not current.event_type and (
                current.status is not EventStatus.PLANNED
            ):
                raise ConflictError(
                    f"event {event_id} is {current.status.value}, type can only change "
                    "while PLANNED",
                    user_message="The event type can only change while the event is planned.",
                )

            changes = dict(fields)
            if draft.status is not None and draft.status is not current.status:
                changes["status"] = lifecycle.ensure_transition(
                    draft.event_type, current.status, draft.status
                )
            return changes

        event = await self.store.update_event(event_id, mutate, expected_version)
        self.logger.info("event_updated", event_id=event_id, version=event.version)
        return event

    async def transition(self, event_id: int, new_status: EventStatus) -> HealthEvent:
        previous: list[EventStatus] = []

        def mutate(current: HealthEvent) -> dict[str, Any]:
            previous.append(current.status)
            status = lifecycle.ensure_transition(current.event_type, current.status, new_status)
            return {} if status is current.status else {"status": status}

        event = await self.store.update_event(event_id, mutate)
        self.logger.info(
            "event_status_changed",
            event_id=event_id,
            from_status=previous[0].value,
            to_status=event.status.value,
        )
        return event

    async def delete_event(self, event_id: int) -> None:
        await self.store.delete_event(event_id)

    async def get_event(self, event_id: int) -> HealthEvent:
        return await self.store.get_event(event_id)

    async def list_events(
        self, event_type: EventType | None = None, status: EventStatus | None = None
    ) -> list[HealthEvent]:
        return [
            event
            for event in await self.store.list_events()
            if (event_type is None or event.event_type is event_type)
            and (status is None or event.status is status)
        ]

    # Validation

    async def _validated_fields(self, draft: EventDraft) -> dict[str, Any]:
        errors: dict[str, str] = {}

        if not draft.event_name.strip():
            errors["event_name"] = "Event name is required."

        if draft.scheduled_date is None and draft.start_date is None:
            errors["scheduled_date"] = "A scheduled date is required."
        if draft.start_date and draft.end_date and draft.end_date < draft.start_date:
            errors["end_date"] = "End date cannot be before the start date."

        target_grades = self._resolve_grades(draft, errors)
        checkups, vaccines = await self._resolve_selections(draft, errors)

        if errors:
            self.logger.info("event_draft_rejected", fields=sorted(errors))
            raise DomainValidationError(errors)

        return {
            "event_name": draft.event_name.strip(),
            "event_type": draft.event_type,
            "description": draft.description,
            "scheduled_date": draft.scheduled_date,
            "start_date": draft.start_date,
            "end_date": draft.end_date,
            "location": draft.location,
            "target_grades": target_grades,
            "types_of_checkups": checkups,
            "selected_vaccines": vaccines,
        }

    def _resolve_grades(self, draft: EventDraft, errors: dict[str, str]) -> list[GradeRef]:
        if not (draft.target_grade_ids or draft.target_grade_names or draft.target_grade_levels):
            errors["target_grades"] = "At least one target grade level must be selected."
            return []

        # An unreachable registry raises ServiceUnavailableError, never a field error
        try:
            resolved = self.grade_registry.resolve(
                draft.target_grade_ids, draft.target_grade_names, draft.target_grade_levels
            )
        except DomainValidationError as e:
            errors.update(e.field_errors)
            return []

        if not resolved:
            errors["target_grades"] = "At least one target grade level must be selected."
        return resolved

    async def _resolve_selections(
        self, draft: EventDraft, errors: dict[str, str]
    ) -> tuple[list[str] | None, list[str] | None]:
        if draft.event_type is EventType.HEALTH_CHECKUP:
            if not draft.types_of_checkups:
                errors["types_of_checkups"] = (
                    "At least one checkup type must be selected for health checkup events."
                )
                return None, None

            names, unknown = [], []
            for key in draft.types_of_checkups:
                found = await self.catalog.find_checkup_type(key)
                if found is None:
                    unknown.append(key)
                elif found.type_name not in names:
                    names.append(found.type_name)
            if unknown:
                errors["types_of_checkups"] = f"Unknown checkup types: {', '.join(unknown)}"
            return names, None

        if not draft.selected_vaccines:
            errors["selected_vaccines"] = (
                "At least one vaccine type must be selected for vaccination events."
            )
            return None, None

        names, unknown = [], []
        for key in draft.selected_vaccines:
            vaccine = await self.catalog.find_vaccine(key)
            if vaccine is None:
                unknown.append(key)
            elif vaccine.name not in names:
                names.append(vaccine.name)
        if unknown:
            errors["selected_vaccines"] = f"Unknown vaccines: {', '.join(unknown)}"
        return None, names
