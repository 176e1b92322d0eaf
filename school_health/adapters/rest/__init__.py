from .client import PortalApiClient
from .records import RestCampaignRecords
from .sources import (
    RestCheckupTypeSource,
    RestGradeLevelSource,
    RestStudentDirectory,
    RestVaccineSource,
)

__all__ = [
    "PortalApiClient",
    "RestCampaignRecords",
    "RestCheckupTypeSource",
    "RestGradeLevelSource",
    "RestStudentDirectory",
    "RestVaccineSource",
]
