"""State machines for care transitions and continuity summaries."""

from enum import Enum


class TransitionStatus(Enum):
    """States of a care handoff."""
    INITIATED = "initiated"
    CONSENT_PENDING = "consent-pending"
    SUMMARY_PENDING = "summary-pending"
    REVIEW_PENDING = "review-pending"
    RELEASED = "released"
    DECLINED = "declined"
    EXPIRED = "expired"


class SummaryStatus(Enum):
    """States of a generated continuity summary."""
    DRAFT = "draft"
    PENDING_REVIEW = "pending-review"
    APPROVED = "approved"
    RELEASED = "released"
    REVOKED = "revoked"


class TransitionType(Enum):
    GP_REFERRAL = "gp-referral"
    PATIENT_BOOKING = "patient-booking"
    PHYSIO_HANDOFF = "physio-handoff"


# Allowed next states for each transition state
TRANSITION_FLOWS: dict[TransitionStatus, frozenset[TransitionStatus]] = {
    TransitionStatus.INITIATED: frozenset({
        TransitionStatus.CONSENT_PENDING,
        TransitionStatus.DECLINED,
    }),
    TransitionStatus.CONSENT_PENDING: frozenset({
        TransitionStatus.SUMMARY_PENDING,
        TransitionStatus.DECLINED,
        TransitionStatus.EXPIRED,
    }),
    TransitionStatus.SUMMARY_PENDING: frozenset({TransitionStatus.REVIEW_PENDING}),
    TransitionStatus.REVIEW_PENDING: frozenset({
        TransitionStatus.RELEASED,
        TransitionStatus.DECLINED,
    }),
    TransitionStatus.RELEASED: frozenset(),
    TransitionStatus.DECLINED: frozenset(),
    TransitionStatus.EXPIRED: frozenset(),
}

# Allowed next states for each summary state
SUMMARY_FLOWS: dict[SummaryStatus, frozenset[SummaryStatus]] = {
    SummaryStatus.DRAFT: frozenset({SummaryStatus.PENDING_REVIEW}),
    SummaryStatus.PENDING_REVIEW: frozenset({
        SummaryStatus.APPROVED,
        SummaryStatus.REVOKED,
    }),
    SummaryStatus.APPROVED: frozenset({
        SummaryStatus.RELEASED,
        SummaryStatus.REVOKED,
    }),
    SummaryStatus.RELEASED: frozenset({SummaryStatus.REVOKED}),
    SummaryStatus.REVOKED: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised when a status change is not an edge of its state machine."""

    def __init__(self, entity: str, current: Enum, requested: Enum):
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move {entity} from '{current.value}' to '{requested.value}'"
        )


def is_valid_transition(current: TransitionStatus, next_status: TransitionStatus) -> bool:
    """Check whether a transition event may move from current to next_status."""
    return next_status in TRANSITION_FLOWS.get(current, frozenset())


def is_valid_summary_transition(current: SummaryStatus, next_status: SummaryStatus) -> bool:
    """Check whether a continuity summary may move from current to next_status."""
    return next_status in SUMMARY_FLOWS.get(current, frozenset())


def require_transition(current: TransitionStatus, next_status: TransitionStatus) -> None:
    if not is_valid_transition(current, next_status):
        raise InvalidTransitionError("transition", current, next_status)


def require_summary_transition(current: SummaryStatus, next_status: SummaryStatus) -> None:
    if not is_valid_summary_transition(current, next_status):
        raise InvalidTransitionError("summary", current, next_status)


def is_terminal(status: TransitionStatus) -> bool:
    return not TRANSITION_FLOWS[status]
