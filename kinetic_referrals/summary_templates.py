"""Extraction rules for the six sections of a continuity summary.

Every sentence comes from a fixed template. The only visit text that reaches
the output is a sanitized note excerpt.
"""

import math

from kinetic_referrals.care_records.database.episode_repository import Episode, Visit
from kinetic_referrals.signal_policy import days_between

MAX_NOTE_LENGTH = 200
FOLLOW_UP_WINDOW = 3
RECENT_VISITS = 3
PLATEAU_WINDOW = 4
PLATEAU_MIN_SCORES = 3
PLATEAU_MAX_RANGE = 1

DEFAULT_PAIN = 0
DEFAULT_FUNCTION = 50

STATUS_LABELS = {
    "active": "Currently active",
    "discharged": "Discharged",
    "transferred": "Transferred",
    "self-discharged": "Self-discharged",
}

NO_INTERVENTIONS = "No treatment adjustments recorded during this episode."
NO_RESPONSE_DATA = "Insufficient adjustment data to characterize response patterns."
TRANSFER_NOTICE = "Episode ended via transfer: continuity of care is the primary consideration."
ESCALATION_NOTICE = "Recent escalation noted: follow-up assessment recommended."
PLATEAU_NOTICE = "Pain scores plateaued in recent visits: consider reassessing treatment approach."
NON_RESPONSIVE_NOTICE = (
    "Most recent treatment adjustment did not yield pain improvement: "
    "alternative approaches may be warranted."
)
NO_CONCERNS = "No specific clinical concerns identified at time of transition."


def sanitize_note(note: str) -> str:
    """Trim and truncate a visit note excerpt."""
    return note.strip()[:MAX_NOTE_LENGTH]


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def format_condition_framing(episode: Episode, visits: list[Visit]) -> str:
    duration_days = 0
    if visits:
        duration_days = _round_half_up(days_between(visits[0].visit_date, visits[-1].visit_date))
    duration_weeks = max(1, _round_half_up(duration_days / 7))
    referral_source = "GP-referred" if episode.is_gp_referred else "self-referred"

    return (
        f"Patient presented with {episode.condition} ({referral_source}). "
        f"Treatment spanned {len(visits)} visits over approximately {duration_weeks} weeks."
    )


def pain_trend(initial: int, current: int) -> str:
    if current < initial - 2:
        return "improving pain trajectory"
    if current > initial + 1:
        return "worsening pain trajectory"
    return "stable pain levels"


def function_trend(initial: int, current: int) -> str:
    if current > initial + 10:
        return "improving functional capacity"
    if current < initial - 5:
        return "declining functional capacity"
    return "stable functional capacity"


def format_diagnosis_hypothesis(episode: Episode, visits: list[Visit]) -> str:
    if not visits:
        return (
            f"Working hypothesis: {episode.condition}. "
            "Insufficient visit data to characterize trajectory."
        )

    first, last = visits[0], visits[-1]
    initial_pain = first.pain_score if first.pain_score is not None else DEFAULT_PAIN
    current_pain = last.pain_score if last.pain_score is not None else initial_pain
    initial_function = first.function_score if first.function_score is not None else DEFAULT_FUNCTION
    current_function = last.function_score if last.function_score is not None else initial_function

    return (
        f"Working hypothesis: {episode.condition} with {pain_trend(initial_pain, current_pain)} "
        f"and {function_trend(initial_function, current_function)}. "
        f"Initial pain {initial_pain}/10, function {initial_function}/100."
    )


def extract_interventions(visits: list[Visit]) -> list[str]:
    interventions = [
        f"Visit {v.visit_number}: Treatment adjustment: {sanitize_note(v.notes_summary)}"
        for v in visits
        if v.treatment_adjusted and v.notes_summary
    ]
    return interventions or [NO_INTERVENTIONS]


def analyze_responses(visits: list[Visit]) -> tuple[list[str], list[str]]:
    """Split treatment adjustments into those the patient responded to and not.

    Each adjustment is compared with the last of up to three following visits.
    """
    responded = []
    did_not_respond = []

    for i, adjustment in enumerate(visits):
        if not adjustment.treatment_adjusted:
            continue
        follow_ups = visits[i + 1:i + 1 + FOLLOW_UP_WINDOW]
        if not follow_ups:
            continue

        pain_before = adjustment.pain_score if adjustment.pain_score is not None else DEFAULT_PAIN
        function_before = (
            adjustment.function_score if adjustment.function_score is not None else DEFAULT_FUNCTION
        )
        latest = follow_ups[-1]
        pain_after = latest.pain_score if latest.pain_score is not None else pain_before
        function_after = latest.function_score if latest.function_score is not None else function_before

        description = sanitize_note(
            adjustment.notes_summary or f"Adjustment at visit {adjustment.visit_number}"
        )
        if pain_after < pain_before - 1 or function_after > function_before + 5:
            responded.append(description)
        elif pain_after >= pain_before or function_after <= function_before:
            did_not_respond.append(description)

    if not responded and not did_not_respond:
        responded.append(NO_RESPONSE_DATA)
    return responded, did_not_respond


def format_current_status(episode: Episode, visits: list[Visit]) -> str:
    label = STATUS_LABELS.get(episode.status, "Self-discharged")
    if not visits:
        return f"{label}. No visit data recorded."

    last = visits[-1]
    parts = []
    if last.pain_score is not None:
        parts.append(f"pain {last.pain_score}/10")
    if last.function_score is not None:
        parts.append(f"function {last.function_score}/100")
    scores = ", ".join(parts) or "scores not recorded"
    return f"{label}. Most recent assessment: {scores}."


def identify_open_considerations(episode: Episode, visits: list[Visit]) -> list[str]:
    considerations = []

    if episode.status == "transferred":
        considerations.append(TRANSFER_NOTICE)

    if any(v.escalated for v in visits[-RECENT_VISITS:]):
        considerations.append(ESCALATION_NOTICE)

    if len(visits) >= PLATEAU_WINDOW:
        recent_pain = [v.pain_score for v in visits[-PLATEAU_WINDOW:] if v.pain_score is not None]
        if len(recent_pain) >= PLATEAU_MIN_SCORES and max(recent_pain) - min(recent_pain) <= PLATEAU_MAX_RANGE:
            considerations.append(PLATEAU_NOTICE)

    last_adjustment = next(
        (i for i in range(len(visits) - 1, -1, -1) if visits[i].treatment_adjusted), None
    )
    if last_adjustment is not None:
        after = visits[last_adjustment + 1:]
        if len(after) >= 2:
            adjusted = visits[last_adjustment]
            pain_before = adjusted.pain_score if adjusted.pain_score is not None else DEFAULT_PAIN
            pain_after = after[-1].pain_score if after[-1].pain_score is not None else pain_before
            if pain_after >= pain_before:
                considerations.append(NON_RESPONSIVE_NOTICE)

    return considerations or [NO_CONCERNS]
