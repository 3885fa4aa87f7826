"""
Unit Economics — CAC, LTV, LTV:CAC and payback.

    CAC     = acquisition spend / new customers   (or given directly)
    LTV     = ARPU × gross margin / monthly churn
    payback = CAC / (ARPU × gross margin)          in months
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from bizplan.skills.registry import Skill


class UnitEconomicsInput(BaseModel):
    arpu_monthly: float = Field(gt=0, description="Average revenue per customer per month")
    gross_margin_pct: float = Field(gt=0, le=100)
    monthly_churn_pct: float = Field(gt=0, le=100)
    cac: float | None = Field(default=None, ge=0, description="Customer acquisition cost, if known")
    acquisition_spend: float | None = Field(default=None, ge=0)
    new_customers: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _cac_derivable(self) -> UnitEconomicsInput:
        if self.cac is None and (self.acquisition_spend is None or self.new_customers is None):
            raise ValueError("Provide cac, or both acquisition_spend and new_customers")
        return self


class UnitEconomicsOutput(BaseModel):
    cac: float
    ltv: float
    ltv_cac_ratio: float | None
    payback_months: float
    customer_lifetime_months: float
    health: Literal["healthy", "marginal", "unhealthy"]
    notes: list[str]


def compute_unit_economics(params: UnitEconomicsInput) -> UnitEconomicsOutput:
    cac = params.cac if params.cac is not None else params.acquisition_spend / params.new_customers
    margin = params.gross_margin_pct / 100
    churn = params.monthly_churn_pct / 100

    monthly_contribution = params.arpu_monthly * margin
    lifetime_months = 1 / churn
    ltv = monthly_contribution * lifetime_months
    ratio = ltv / cac if cac > 0 else None
    payback = cac / monthly_contribution

    notes: list[str] = []
    if ratio is None:
        health = "healthy"
        notes.append("CAC is zero; LTV:CAC is undefined.")
    elif ratio >= 3:
        health = "healthy"
    elif ratio >= 1:
        health = "marginal"
        notes.append(f"LTV:CAC of {ratio:.1f} is below the 3:1 benchmark.")
    else:
        health = "unhealthy"
        notes.append("Each customer costs more to acquire than it returns.")
    if payback > 12:
        notes.append(f"CAC payback of {payback:.1f} months exceeds the 12-month benchmark.")

    return UnitEconomicsOutput(
        cac=round(cac, 2),
        ltv=round(ltv, 2),
        ltv_cac_ratio=round(ratio, 2) if ratio is not None else None,
        payback_months=round(payback, 2),
        customer_lifetime_months=round(lifetime_months, 2),
        health=health,
        notes=notes,
    )


UNIT_ECONOMICS = Skill(
    name="unit_economics",
    description="Compute CAC, LTV, LTV:CAC ratio and CAC payback period.",
    input_model=UnitEconomicsInput,
    func=compute_unit_economics,
)
