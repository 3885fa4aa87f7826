"""
Competitor Analysis — positioning template for named competitors.

Reference data is a fixed template; results depend only on the input.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from bizplan.skills.registry import Skill

_BASE_STRENGTHS = [
    "Established brand recognition",
    "Large customer base",
    "Significant funding and resources",
]
_BASE_WEAKNESSES = [
    "Legacy technology stack",
    "Slow to innovate",
    "Generic offering for broad segments",
]
_DETAILED_STRENGTHS = ["Strong partnerships", "Proven track record"]
_DETAILED_WEAKNESSES = ["High pricing", "Complex onboarding"]

_ADVANTAGES = [
    "Modern, user-friendly experience",
    "Focus on a specific niche or vertical",
    "Flexible pricing model",
    "Superior customer support",
    "Faster implementation time",
    "Better integration capabilities",
]
_THREATS = [
    "Established competitors with strong brand loyalty",
    "Price competition from low-cost providers",
    "Potential market consolidation",
    "New entrants with innovative technology",
    "Changing customer preferences",
]


class CompetitorAnalysisInput(BaseModel):
    industry: str
    competitors: list[str] = Field(min_length=1, max_length=10)
    analysis_depth: Literal["basic", "detailed"] = "basic"


class CompetitorProfile(BaseModel):
    name: str
    strengths: list[str]
    weaknesses: list[str]
    positioning: str


class CompetitorAnalysisOutput(BaseModel):
    industry: str
    competitors: list[CompetitorProfile]
    competitive_advantages: list[str]
    threats: list[str]


def analyse_competitors(params: CompetitorAnalysisInput) -> CompetitorAnalysisOutput:
    detailed = params.analysis_depth == "detailed"
    profiles = [
        CompetitorProfile(
            name=name,
            strengths=_BASE_STRENGTHS + (_DETAILED_STRENGTHS if detailed else []),
            weaknesses=_BASE_WEAKNESSES + (_DETAILED_WEAKNESSES if detailed else []),
            positioning=f"Incumbent in {params.industry} with a traditional approach",
        )
        for name in params.competitors
    ]
    # More incumbents → more differentiation angles worth listing
    advantage_count = min(len(_ADVANTAGES), 3 + len(params.competitors) // 2)
    return CompetitorAnalysisOutput(
        industry=params.industry,
        competitors=profiles,
        competitive_advantages=_ADVANTAGES[:advantage_count],
        threats=list(_THREATS),
    )


COMPETITOR_ANALYSIS = Skill(
    name="competitor_analysis",
    description=(
        "Profile named competitors (strengths, weaknesses, positioning) and "
        "list competitive advantages and threats."
    ),
    input_model=CompetitorAnalysisInput,
    func=analyse_competitors,
)
