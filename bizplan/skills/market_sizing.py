"""
Market Sizing Calculator — TAM / SAM / SOM.

Top-down sizing from a static industry table and geography share:

    TAM = global industry size × geography share
    SAM = TAM × segment share
    SOM = SAM × obtainable share (8% bottom-up, 10% otherwise)
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from bizplan.skills.registry import Skill

# Global market size (USD) and annual growth %, simplified reference data
MARKET_DATA: dict[str, tuple[float, float]] = {
    "saas": (195_000_000_000, 18),
    "ecommerce": (5_700_000_000_000, 14),
    "fintech": (310_000_000_000, 23),
    "healthtech": (280_000_000_000, 21),
    "edtech": (254_000_000_000, 17),
    "food_delivery": (150_000_000_000, 11),
}
_DEFAULT_MARKET = (100_000_000_000, 10)

GEOGRAPHY_SHARE: dict[str, float] = {
    "global": 1.0,
    "north_america": 0.35,
    "europe": 0.25,
    "asia": 0.30,
    "india": 0.08,
    "usa": 0.30,
}
_DEFAULT_GEOGRAPHY_SHARE = 0.05

SEGMENT_SHARE: dict[str, float] = {
    "enterprise": 0.15,
    "smb": 0.25,
    "consumer": 0.30,
    "b2b": 0.20,
    "b2c": 0.25,
}
_DEFAULT_SEGMENT_SHARE = 0.20


class MarketSizingInput(BaseModel):
    industry: str = Field(description="Industry, e.g. SaaS, ecommerce, fintech")
    geography: str = Field(description="Geographic market, e.g. global, USA, India, Europe")
    target_segment: str = Field(description="Customer segment, e.g. enterprise, SMB, consumer, B2B")
    approach: Literal["top_down", "bottom_up", "both"] = "top_down"


class MarketSizingOutput(BaseModel):
    tam: float
    sam: float
    som: float
    market_growth_pct: float
    methodology: str
    assumptions: list[str]
    confidence_level: Literal["high", "medium", "low"]


def _key(value: str) -> str:
    return "_".join(value.lower().split())


def size_market(params: MarketSizingInput) -> MarketSizingOutput:
    industry, geography, segment = (
        _key(params.industry), _key(params.geography), _key(params.target_segment),
    )
    global_size, growth = MARKET_DATA.get(industry, _DEFAULT_MARKET)
    geo_share = GEOGRAPHY_SHARE.get(geography, _DEFAULT_GEOGRAPHY_SHARE)
    segment_share = SEGMENT_SHARE.get(segment, _DEFAULT_SEGMENT_SHARE)
    obtainable_share = 0.08 if params.approach == "bottom_up" else 0.10

    tam = global_size * geo_share
    sam = tam * segment_share
    som = sam * obtainable_share

    known = (industry in MARKET_DATA) + (geography in GEOGRAPHY_SHARE)
    confidence = {2: "high", 1: "medium", 0: "low"}[known]

    methodology = {
        "top_down": "Top-down analysis using industry reports and market data",
        "bottom_up": "Bottom-up analysis based on customer segments and pricing",
        "both": "Hybrid approach combining top-down and bottom-up methodologies",
    }[params.approach]

    return MarketSizingOutput(
        tam=tam,
        sam=sam,
        som=som,
        market_growth_pct=growth,
        methodology=methodology,
        assumptions=[
            f"Industry: {params.industry}",
            f"Geography: {params.geography} ({geo_share:.0%} of global market)",
            f"Target segment: {params.target_segment} ({segment_share:.0%} of TAM)",
            f"SOM at {obtainable_share:.0%} of SAM, achievable within 5 years",
        ],
        confidence_level=confidence,
    )


MARKET_SIZING = Skill(
    name="market_sizing_calculator",
    description=(
        "Calculate Total Addressable Market (TAM), Serviceable Addressable "
        "Market (SAM) and Serviceable Obtainable Market (SOM)."
    ),
    input_model=MarketSizingInput,
    func=size_market,
)
