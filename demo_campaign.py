"""
Walkthrough of a complete school health campaign against in-memory data.

This script shows:
1. Configuration loading and validation
2. Loading grade levels and the vaccine/checkup catalog
3. A vaccination campaign: consent fan-out, guardian decisions, summary
4. A checkup campaign: recording and replacing results
5. Degraded mode: catalog fallback when the backend is down

Run with: uv run python demo_campaign.py
"""

import asyncio
from datetime import date
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from school_health.config import get_config, print_config_summary, validate_config
from school_health.domain.errors import HealthCampaignError
from school_health.domain.models import (
    CheckupType,
    CheckupVitals,
    ConsentStatus,
    EventDraft,
    EventStatus,
    EventType,
    GradeLevel,
    Student,
    Vaccine,
)
from school_health.log import configure_logging
from school_health.services import HealthCampaignService, Result

console = Console()


class DemoSchool:
    """In-memory stand-in for the portal backend."""

    def __init__(self, backend_up: bool = True) -> None:
        self.backend_up = backend_up
        self.students = [
            Student(
                student_id=i,
                full_name=name,
                grade_id=100 + grade,
                grade_name=f"Grade {grade}",
            )
            for i, (name, grade) in enumerate(
                [
                    ("Nguyen Van An", 6),
                    ("Tran Thi Binh", 6),
                    ("Le Minh Chau", 6),
                    ("Pham Quoc Dung", 7),
                    ("Hoang Gia Han", 7),
                    ("Vo Thanh Khoa", 8),
                ],
                start=1,
            )
        ]

    def _answer(self, items: list[Any]) -> Result[list[Any], Exception]:
        if not self.backend_up:
            return Result.err(ConnectionError("portal backend unreachable"))
        return Result.ok(items)

    async def fetch_grade_levels(self) -> Result[list[GradeLevel], Exception]:
        await asyncio.sleep(0.05)  # Simulate network latency
        return self._answer(
            [GradeLevel(grade_id=100 + n, grade_name=f"Grade {n}") for n in range(1, 13)]
        )

    async def fetch_vaccines(self) -> Result[list[Vaccine], Exception]:
        return self._answer(
            [
                Vaccine(vaccine_id=1, name="MMR", disease_targeted="Measles, Mumps, Rubella"),
                Vaccine(vaccine_id=2, name="Influenza", disease_targeted="Seasonal Flu"),
            ]
        )

    async def fetch_checkup_types(self) -> Result[list[CheckupType], Exception]:
        return self._answer(
            [
                CheckupType(checkup_type_id=1, type_name="Vision Test"),
                CheckupType(checkup_type_id=2, type_name="Height and Weight Measurement"),
            ]
        )

    async def students_in_grades(self, grade_ids: list[int]) -> Result[list[Student], Exception]:
        return self._answer([s for s in self.students if s.grade_id in grade_ids])


def build_service(school: DemoSchool) -> HealthCampaignService:
    return HealthCampaignService(
        get_config(),
        grade_source=school,
        vaccine_source=school,
        checkup_type_source=school,
        student_directory=school,
    )


async def demo_configuration() -> bool:
    console.print(Panel("🔧 Configuration", style="blue"))

    try:
        validate_config()
        print_config_summary()
        return True
    except Exception as e:
        console.print(f"❌ Configuration failed: {e}", style="red")
        return False


async def demo_reference_data() -> bool:
    console.print(Panel("🏫 Grade Levels and Catalog", style="blue"))

    service = build_service(DemoSchool())
    status = await service.startup()

    table = Table(title="Grade Picker")
    table.add_column("Value", style="cyan")
    table.add_column("English", style="magenta")
    table.add_column("Tiếng Việt", style="green")

    english = service.grades.select_options()
    vietnamese = service.grades.select_options(vietnamese=True)
    for en, vi in zip(english[:6], vietnamese[:6], strict=True):
        table.add_row(str(en.value), en.label, vi.label)
    console.print(table)

    covered = service.grades.format_numbers([3, 4, 5, 7])
    console.print(f"Legacy range 'Grade 3-5, Grade 7' covers {covered}")
    console.print(f"✅ Registry state: {status.grade_registry_state}", style="green")
    return status.grade_registry_state == "ready"


async def demo_vaccination_campaign() -> bool:
    console.print(Panel("💉 Vaccination Campaign", style="blue"))

    service = build_service(DemoSchool())
    await service.startup()

    event = await service.events.create_event(
        EventDraft(
            event_name="MMR booster",
            event_type=EventType.VACCINATION,
            scheduled_date=date(2025, 3, 10),
            location="School clinic",
            target_grade_names=["Grade 6", "7A"],
            selected_vaccines=["mmr"],
        )
    )
    console.print(f"Created event #{event.event_id} for {', '.join(event.target_grade_names)}")

    dispatch = await service.consents.send_consent_requests(event.event_id)
    retry = await service.consents.send_consent_requests(event.event_id)
    console.print(
        f"Sent {len(dispatch.created)} consent requests "
        f"(retry created {len(retry.created)}, skipped {retry.skipped_existing})"
    )

    decisions = [ConsentStatus.APPROVED, ConsentStatus.APPROVED, ConsentStatus.REJECTED]
    for consent, decision in zip(dispatch.created, decisions, strict=False):
        await service.consents.submit_consent(consent.consent_id, decision)

    try:
        first = dispatch.created[0].consent_id
        await service.consents.submit_consent(first, ConsentStatus.REJECTED)
    except HealthCampaignError as e:
        console.print(f"⚠️  Second decision refused: {e.user_message}", style="yellow")

    await service.events.transition(event.event_id, EventStatus.IN_PROGRESS)
    await service.events.transition(event.event_id, EventStatus.COMPLETED)

    summary = await service.consents.aggregate(event.event_id)
    table = Table(title="Consent Summary")
    table.add_column("Vaccine", style="cyan")
    table.add_column("Approved", style="green")
    table.add_column("Rejected", style="red")
    table.add_column("Pending", style="yellow")
    for vaccine, counts in summary.by_vaccine.items():
        table.add_row(vaccine, str(counts.approved), str(counts.rejected), str(counts.pending))
    console.print(table)

    final = await service.events.get_event(event.event_id)
    console.print(f"✅ Event status: {final.status.value}", style="green")
    return summary.total == len(dispatch.created)


async def demo_checkup_campaign() -> bool:
    console.print(Panel("🩺 Checkup Campaign", style="blue"))

    service = build_service(DemoSchool())
    await service.startup()

    event = await service.events.create_event(
        EventDraft(
            event_name="Autumn screening",
            event_type=EventType.HEALTH_CHECKUP,
            scheduled_date=date(2025, 9, 15),
            target_grade_levels="Grade 6-8",
            types_of_checkups=["Vision Test", "Height and Weight Measurement"],
        )
    )
    await service.events.transition(event.event_id, EventStatus.IN_PROGRESS)

    await service.checkups.record_result(
        event.event_id, 1, CheckupVitals(height=142.0, weight=35.5, vision="20/25")
    )
    corrected = await service.checkups.record_result(
        event.event_id, 1, CheckupVitals(height=142.5, weight=35.5, vision="20/20")
    )

    table = Table(title="Recorded Result")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for field, value in corrected.to_record().items():
        table.add_row(field, str(value))
    console.print(table)

    console.print(f"✅ Result replaced in place (version {corrected.version})", style="green")
    return corrected.version == 2


async def demo_degraded_backend() -> bool:
    console.print(Panel("🛡️ Backend Outage", style="blue"))

    service = build_service(DemoSchool(backend_up=False))
    status = await service.startup()

    for warning in status.catalog_warnings:
        console.print(f"⚠️  {warning.message} [v{warning.fallback_version}]", style="yellow")
    console.print(f"Grade registry: {status.grade_registry_state} ({status.grade_error})")

    vaccines = await service.catalog.vaccines()
    console.print(f"Default catalog offers {len(vaccines)} vaccines")

    try:
        await service.events.create_event(
            EventDraft(
                event_name="Flu shots",
                event_type=EventType.VACCINATION,
                scheduled_date=date(2025, 10, 1),
                target_grade_ids=[106],
                selected_vaccines=["Influenza"],
            )
        )
    except HealthCampaignError as e:
        console.print(f"✅ Event creation blocked: {e.user_message}", style="green")
        return status.degraded

    console.print("❌ Event was created without grade levels", style="red")
    return False


async def run_demo() -> None:
    configure_logging(get_config().logging)
    console.print(Panel("🏥 School Health Campaigns - Walkthrough", style="bold blue"))

    steps = [
        ("Configuration", demo_configuration),
        ("Reference Data", demo_reference_data),
        ("Vaccination Campaign", demo_vaccination_campaign),
        ("Checkup Campaign", demo_checkup_campaign),
        ("Backend Outage", demo_degraded_backend),
    ]

    results = []
    for name, step in steps:
        console.print(f"\n{'=' * 60}")
        try:
            results.append((name, await step()))
        except HealthCampaignError as e:
            console.print(f"❌ {name} failed: {e}", style="red")
            results.append((name, False))

    console.print(f"\n{'=' * 60}")
    summary_table = Table(title="Walkthrough Summary")
    summary_table.add_column("Step", style="cyan")
    summary_table.add_column("Result", style="white")
    for name, ok in results:
        summary_table.add_row(name, "✅ OK" if ok else "❌ FAILED")
    console.print(summary_table)


if __name__ == "__main__":
    try:
        asyncio.run(run_demo())
    except KeyboardInterrupt:
        console.print("\n👋 Demo stopped by user", style="yellow")
