"""
Status state machine for health events.

PLANNED -> CONSENT_COLLECTION -> IN_PROGRESS -> COMPLETED, with CANCELLED
reachable from any non-terminal status. Only vaccination campaigns collect
consents; checkups go straight from PLANNED to IN_PROGRESS.
"""

from school_health.domain.errors import InvalidTransitionError
from school_health.domain.models import EventStatus, EventType

# Progress order used to check that observed statuses never regress.
STATUS_RANK: dict[EventStatus, int] = {
    EventStatus.PLANNED: 0,
    EventStatus.CONSENT_COLLECTION: 1,
    EventStatus.IN_PROGRESS: 2,
    EventStatus.COMPLETED: 3,
}

_TRANSITIONS: dict[EventType, dict[EventStatus, frozenset[EventStatus]]] = {
    EventType.VACCINATION: {
        EventStatus.PLANNED: frozenset({EventStatus.CONSENT_COLLECTION, EventStatus.CANCELLED}),
        EventStatus.CONSENT_COLLECTION: frozenset({EventStatus.IN_PROGRESS, EventStatus.CANCELLED}),
        EventStatus.IN_PROGRESS: frozenset({EventStatus.COMPLETED, EventStatus.CANCELLED}),
    },
    EventType.HEALTH_CHECKUP: {
        EventStatus.PLANNED: frozenset({EventStatus.IN_PROGRESS, EventStatus.CANCELLED}),
        EventStatus.IN_PROGRESS: frozenset({EventStatus.COMPLETED, EventStatus.CANCELLED}),
    },
}


def allowed_transitions(event_type: EventType, current: EventStatus) -> frozenset[EventStatus]:
    return _TRANSITIONS[event_type].get(current, frozenset())


def can_transition(event_type: EventType, current: EventStatus, requested: EventStatus) -> bool:
    if requested == current:
        return True
    return requested in allowed_transitions(event_type, current)


def ensure_transition(
    event_type: EventType, current: EventStatus, requested: EventStatus
) -> EventStatus:
    """Return the status to store, or raise InvalidTransitionError."""
    if can_transition(event_type, current, requested):
        return requested

    if current.is_terminal:
        reason = f"{current.value} is terminal"
    elif requested is EventStatus.CONSENT_COLLECTION and event_type is EventType.HEALTH_CHECKUP:
        reason = "only vaccination events collect consents"
    elif requested is not EventStatus.CANCELLED and STATUS_RANK[requested] <= STATUS_RANK[current]:
        reason = "status cannot move backwards"
    else:
        reason = "status cannot skip a step"
    raise InvalidTransitionError(current.value, requested.value, reason=reason)


def is_non_regressing(statuses: list[EventStatus]) -> bool:
    """True if a sequence of observed statuses only ever moved forward or cancelled."""
    cancelled = False
    highest = -1
    for status in statuses:
        if cancelled:
            if status is not EventStatus.CANCELLED:
                return False
            continue
        if status is EventStatus.CANCELLED:
            cancelled = True
            continue
        if STATUS_RANK[status] < highest:
            return False
        highest = STATUS_RANK[status]
    return True
