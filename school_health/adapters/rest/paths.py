"""Portal backend resource paths, relative to ``PortalApiConfig.base_url``."""

HEALTH_EVENTS = "/health-checkup-events"
GRADE_LEVELS = "/grade-levels"
VACCINES = "/vaccines"
CHECKUP_TYPES = "/checkup-types"
STUDENTS = "/students"
HEALTH_CHECKUP_RECORDS = "/health-checkup-records"


def health_event(event_id: int) -> str:
    return f"{HEALTH_EVENTS}/{event_id}"


def send_consents(event_id: int) -> str:
    return f"/vaccination-events/{event_id}/send-consents"


def pending_consents(student_id: int) -> str:
    return f"/parent/vaccination-consent/student/{student_id}/pending"


def submitted_consents(student_id: int) -> str:
    return f"/parent/vaccination-consent/student/{student_id}/submitted"


def respond_to_consent(consent_id: int) -> str:
    return f"/parent/vaccination-consent/{consent_id}/respond"


def checkup_record(event_id: int, student_id: int) -> str:
    return f"{HEALTH_CHECKUP_RECORDS}/event/{event_id}/student/{student_id}"
