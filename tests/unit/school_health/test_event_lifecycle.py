"""Event creation, validation, updates, transitions and deletion."""

from datetime import date

import pytest
from fakes import checkup_draft, vaccination_draft

from school_health.domain.errors import (
    ConcurrencyConflictError,
    ConflictError,
    DomainValidationError,
    InvalidTransitionError,
    NotFoundError,
)
from school_health.domain.models import CheckupVitals, EventStatus, EventType
from school_health.services import (
    CheckupResultRecorder,
    EventLifecycleController,
    InMemoryHealthRecordStore,
)


class TestCreateEvent:
    async def test_vaccination_event_starts_planned(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(vaccination_draft())

        assert event.event_id == 1
        assert event.status is EventStatus.PLANNED
        assert event.version == 1
        assert event.target_grade_ids == [6, 7]
        assert event.target_grade_names == ["Grade 6", "Grade 7"]
        assert event.selected_vaccines == ["MMR"]
        assert event.types_of_checkups is None

    async def test_selections_are_stored_as_catalog_names(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(
            checkup_draft(types_of_checkups=["vision test", "202", "Vision Test"])
        )

        assert event.types_of_checkups == ["Vision Test", "Dental Examination"]
        assert event.selected_vaccines is None

    async def test_legacy_grade_string_is_resolved(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(
            checkup_draft(target_grade_names=[], target_grade_levels="Grade 3-5, Grade 7")
        )

        assert sorted(event.target_grade_numbers) == [3, 4, 5, 7]

    async def test_wire_record_uses_camel_case_names(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(vaccination_draft())

        record = event.to_record()

        assert record["eventName"] == "Spring MMR campaign"
        assert record["eventType"] == "VACCINATION"
        assert record["targetGradeIds"] == [6, 7]
        assert record["targetGradeNames"] == ["Grade 6", "Grade 7"]
        assert record["selectedVaccines"] == ["MMR"]
        assert "targetGrades" not in record
        assert "typesOfCheckups" not in record

    async def test_every_invalid_field_is_reported_at_once(
        self, controller: EventLifecycleController, store: InMemoryHealthRecordStore
    ) -> None:
        draft = vaccination_draft(
            event_name="  ",
            scheduled_date=None,
            target_grade_ids=[],
            selected_vaccines=[],
        )

        with pytest.raises(DomainValidationError) as exc_info:
            await controller.create_event(draft)

        errors = exc_info.value.field_errors
        assert set(errors) == {"event_name", "scheduled_date", "target_grades", "selected_vaccines"}
        assert errors["target_grades"] == "At least one target grade level must be selected."
        assert errors["selected_vaccines"] == (
            "At least one vaccine type must be selected for vaccination events."
        )
        assert await store.list_events() == []

    async def test_checkup_event_needs_checkup_types(
        self, controller: EventLifecycleController
    ) -> None:
        with pytest.raises(DomainValidationError) as exc_info:
            await controller.create_event(checkup_draft(types_of_checkups=[]))

        assert exc_info.value.field_errors == {
            "types_of_checkups": (
                "At least one checkup type must be selected for health checkup events."
            )
        }

    async def test_end_date_before_start_date(self, controller: EventLifecycleController) -> None:
        draft = checkup_draft(start_date=date(2025, 5, 2), end_date=date(2025, 5, 1))

        with pytest.raises(DomainValidationError) as exc_info:
            await controller.create_event(draft)

        assert "end_date" in exc_info.value.field_errors

    async def test_unknown_grade_and_vaccine(self, controller: EventLifecycleController) -> None:
        draft = vaccination_draft(target_grade_ids=[6, 40], selected_vaccines=["MMR", "Rabies"])

        with pytest.raises(DomainValidationError) as exc_info:
            await controller.create_event(draft)

        errors = exc_info.value.field_errors
        assert "id 40" in errors["target_grades"]
        assert errors["selected_vaccines"] == "Unknown vaccines: Rabies"

    async def test_new_event_cannot_skip_planned(
        self, controller: EventLifecycleController
    ) -> None:
        with pytest.raises(DomainValidationError, match="status"):
            await controller.create_event(vaccination_draft(status=EventStatus.IN_PROGRESS))


class TestUpdateEvent:
    async def test_update_bumps_version(self, controller: EventLifecycleController) -> None:
        event = await controller.create_event(vaccination_draft())

        updated = await controller.update_event(
            event.event_id, vaccination_draft(location="Gym"), expected_version=1
        )

        assert updated.location == "Gym"
        assert updated.version == 2
        assert updated.created_at == event.created_at
        assert updated.updated_at >= event.updated_at

    async def test_stale_version_is_rejected(self, controller: EventLifecycleController) -> None:
        event = await controller.create_event(vaccination_draft())
        await controller.update_event(event.event_id, vaccination_draft(location="Gym"))

        with pytest.raises(ConcurrencyConflictError):
            await controller.update_event(
                event.event_id, vaccination_draft(location="Hall"), expected_version=1
            )

    async def test_update_can_move_status_forward(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(checkup_draft())

        updated = await controller.update_event(
            event.event_id, checkup_draft(status=EventStatus.IN_PROGRESS)
        )

        assert updated.status is EventStatus.IN_PROGRESS

    async def test_update_rejects_invalid_status(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(checkup_draft())

        with pytest.raises(InvalidTransitionError):
            await controller.update_event(
                event.event_id, checkup_draft(status=EventStatus.CONSENT_COLLECTION)
            )

    async def test_terminal_event_is_read_only(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(checkup_draft())
        await controller.transition(event.event_id, EventStatus.CANCELLED)

        with pytest.raises(ConflictError, match="can no longer be edited"):
            await controller.update_event(event.event_id, checkup_draft(location="Gym"))

    async def test_type_can_change_while_planned(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(vaccination_draft())

        updated = await controller.update_event(event.event_id, checkup_draft())

        assert updated.event_type is EventType.HEALTH_CHECKUP
        assert updated.selected_vaccines is None
        assert updated.types_of_checkups == ["Vision Test"]

    async def test_type_is_locked_once_results_exist(
        self, controller: EventLifecycleController, recorder: CheckupResultRecorder
    ) -> None:
        event = await controller.create_event(checkup_draft())
        await recorder.record_result(event.event_id, 3, CheckupVitals(height=120.0))

        with pytest.raises(ConflictError, match="type cannot change"):
            await controller.update_event(event.event_id, vaccination_draft())

        assert (await controller.get_event(event.event_id)).event_type is EventType.HEALTH_CHECKUP

    async def test_type_is_locked_after_consent_collection_starts(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(vaccination_draft())
        await controller.transition(event.event_id, EventStatus.CONSENT_COLLECTION)

        with pytest.raises(ConflictError, match="only change while PLANNED"):
            await controller.update_event(event.event_id, checkup_draft())

        current = await controller.get_event(event.event_id)
        assert current.event_type is EventType.VACCINATION
        cancelled = await controller.transition(event.event_id, EventStatus.CANCELLED)
        assert cancelled.status is EventStatus.CANCELLED

    @pytest.mark.parametrize(
        ("start", "path"),
        [
            ("vaccination", []),
            ("vaccination", [EventStatus.CONSENT_COLLECTION]),
            ("vaccination", [EventStatus.CONSENT_COLLECTION, EventStatus.IN_PROGRESS]),
            ("checkup", []),
            ("checkup", [EventStatus.IN_PROGRESS]),
        ],
    )
    @pytest.mark.parametrize("edit", ["vaccination", "checkup"])
    async def test_every_open_event_stays_cancellable_after_an_edit(
        self,
        controller: EventLifecycleController,
        start: str,
        path: list[EventStatus],
        edit: str,
    ) -> None:
        drafts = {"vaccination": vaccination_draft, "checkup": checkup_draft}
        event = await controller.create_event(drafts[start]())
        for status in path:
            await controller.transition(event.event_id, status)

        try:
            await controller.update_event(event.event_id, drafts[edit](location="Gym"))
        except ConflictError:
            pass

        cancelled = await controller.transition(event.event_id, EventStatus.CANCELLED)
        assert cancelled.status is EventStatus.CANCELLED

    async def test_updating_missing_event(self, controller: EventLifecycleController) -> None:
        with pytest.raises(NotFoundError):
            await controller.update_event(999, vaccination_draft())


class TestTransition:
    async def test_vaccination_walks_the_full_lifecycle(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(vaccination_draft())

        for status in (
            EventStatus.CONSENT_COLLECTION,
            EventStatus.IN_PROGRESS,
            EventStatus.COMPLETED,
        ):
            event = await controller.transition(event.event_id, status)
            assert event.status is status

        assert event.version == 4

    async def test_same_status_is_idempotent(self, controller: EventLifecycleController) -> None:
        event = await controller.create_event(vaccination_draft())

        again = await controller.transition(event.event_id, EventStatus.PLANNED)

        assert again.version == event.version

    async def test_rejected_transition_leaves_event_unchanged(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(vaccination_draft())

        with pytest.raises(InvalidTransitionError):
            await controller.transition(event.event_id, EventStatus.COMPLETED)

        assert await controller.get_event(event.event_id) == event


class TestDeleteAndQuery:
    async def test_delete_event_without_dependents(
        self, controller: EventLifecycleController
    ) -> None:
        event = await controller.create_event(checkup_draft())

        await controller.delete_event(event.event_id)

        with pytest.raises(NotFoundError, match="may have been deleted|not found"):
            await controller.get_event(event.event_id)

    async def test_delete_is_blocked_by_checkup_results(
        self, controller: EventLifecycleController, recorder: CheckupResultRecorder
    ) -> None:
        event = await controller.create_event(checkup_draft())
        await recorder.record_result(event.event_id, 5, CheckupVitals(height=130.0))

        with pytest.raises(ConflictError) as exc_info:
            await controller.delete_event(event.event_id)

        assert "cannot be deleted" in exc_info.value.user_message
        assert await controller.get_event(event.event_id) == event

    async def test_list_events_filters(self, controller: EventLifecycleController) -> None:
        vax = await controller.create_event(vaccination_draft())
        checkup = await controller.create_event(checkup_draft())
        await controller.transition(checkup.event_id, EventStatus.IN_PROGRESS)

        assert [e.event_id for e in await controller.list_events()] == [
            vax.event_id,
            checkup.event_id,
        ]
        vaccinations = await controller.list_events(event_type=EventType.VACCINATION)
        assert [e.event_id for e in vaccinations] == [vax.event_id]
        in_progress = await controller.list_events(status=EventStatus.IN_PROGRESS)
        assert [e.event_id for e in in_progress] == [checkup.event_id]
