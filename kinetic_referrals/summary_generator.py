"""
Continuity summary generation.

Turns an episode's ordered visit history into a structured handoff document.

Design principles:
- Pure function (deterministic given same input)
- Fixed templates only, no generated narrative
- No raw note passthrough beyond a sanitized excerpt
"""

from pydantic import BaseModel, Field

from kinetic_referrals.care_records.database.episode_repository import Episode, Visit
from kinetic_referrals.summary_templates import (
    analyze_responses,
    extract_interventions,
    format_condition_framing,
    format_current_status,
    format_diagnosis_hypothesis,
    identify_open_considerations,
)


class ResponseProfile(BaseModel):
    """How the patient responded to treatment adjustments."""

    responded: list[str] = Field(default_factory=list, description="Adjustments followed by improvement")
    did_not_respond: list[str] = Field(
        default_factory=list, description="Adjustments with no improvement"
    )


class SummaryContent(BaseModel):
    """The six generated sections of a continuity summary."""

    condition_framing: str = Field(..., description="Condition, referral source, visits and duration")
    diagnosis_hypothesis: str = Field(..., description="Working hypothesis with pain/function trends")
    interventions_attempted: list[str] = Field(..., description="One line per treatment adjustment")
    response_profile: ResponseProfile
    current_status: str = Field(..., description="Episode status and most recent scores")
    open_considerations: list[str] = Field(..., description="Points the receiving physio should know")


def generate_summary(episode: Episode, visits: list[Visit], patient_name: str) -> SummaryContent:
    """Build the continuity summary for one episode.

    patient_name identifies the document to callers. It is never written into
    the generated sections.
    """
    ordered = sorted(visits, key=lambda v: v.visit_number)
    responded, did_not_respond = analyze_responses(ordered)

    return SummaryContent(
        condition_framing=format_condition_framing(episode, ordered),
        diagnosis_hypothesis=format_diagnosis_hypothesis(episode, ordered),
        interventions_attempted=extract_interventions(ordered),
        response_profile=ResponseProfile(responded=responded, did_not_respond=did_not_respond),
        current_status=format_current_status(episode, ordered),
        open_considerations=identify_open_considerations(episode, ordered),
    )
