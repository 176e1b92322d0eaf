"""
Campaign services.

This package contains the service objects of the campaign workflow: reference
data (grade levels, catalog), the record store, event lifecycle, consent
collection, checkup results, and the facade that wires them together.
"""

from .campaign_service import HealthCampaignService, ServiceStatus
from .catalog import CatalogProvider, CatalogWarning
from .checkup_results import CheckupResultRecorder
from .consent import ConsentOrchestrator
from .event_lifecycle import EventLifecycleController
from .grade_registry import GradeLevelRegistry, GradeOption
from .sources import (
    CheckupTypeSource,
    GradeLevelSource,
    Result,
    StudentDirectory,
    VaccineSource,
)
from .store import ConsentRequest, HealthRecordStore, InMemoryHealthRecordStore

__all__ = [
    "HealthCampaignService",
    "ServiceStatus",
    "CatalogProvider",
    "CatalogWarning",
    "CheckupResultRecorder",
    "ConsentOrchestrator",
    "EventLifecycleController",
    "GradeLevelRegistry",
    "GradeOption",
    "CheckupTypeSource",
    "GradeLevelSource",
    "Result",
    "StudentDirectory",
    "VaccineSource",
    "ConsentRequest",
    "HealthRecordStore",
    "InMemoryHealthRecordStore",
]
