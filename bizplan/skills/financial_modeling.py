# =============================================================================
# Financial Modeling Skill — Multi-Year Revenue / EBITDA Projection
# =============================================================================
#
# Projects year 1 month by month (per-product volume growth and churn),
# then years 2..N annually from year-over-year growth rates. COGS and
# operating expenses are modelled as percentages of revenue.
#
#   products ──▶ monthly revenue (y1) ──▶ annual revenue (y2..yN)
#            ──▶ gross profit ──▶ EBITDA ──▶ break-even, capital, metrics
#
# Pure and deterministic: identical input always yields identical output.
# =============================================================================

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field

from bizplan.skills.registry import Skill

_DEFAULT_YEARLY_GROWTH = [100.0, 80.0, 60.0, 40.0, 30.0, 20.0]
_DEFAULT_OPEX = {"sales_marketing": 35.0, "research_development": 30.0, "general_administrative": 15.0}

# A shrink of more than 100% would make volumes and revenue negative
GrowthRate = Annotated[float, Field(ge=-100)]


class ProductInput(BaseModel):
    name: str
    initial_quantity_m1: float = Field(ge=0, description="Units sold in month 1")
    avg_price: float = Field(ge=0, description="Average price per unit")
    growth_rates_m: list[GrowthRate] = Field(
        default_factory=list,
        description="Month-over-month volume growth % for months 2-12",
    )
    growth_rates_y: list[GrowthRate] = Field(
        default_factory=list,
        description="Year-over-year revenue growth % for years 2..N",
    )
    cogs_percentage: float = Field(default=20.0, ge=0, le=100)
    churn_rate: float = Field(default=0.0, ge=0, le=100, description="Monthly churn %")


class OpexPercentages(BaseModel):
    """Operating expenses as % of revenue, keyed by year ("y1", "y2", ...)."""

    sales_marketing: dict[str, float] = Field(default_factory=dict)
    research_development: dict[str, float] = Field(default_factory=dict)
    general_administrative: dict[str, float] = Field(default_factory=dict)

    def total_for_year(self, year: int) -> float:
        key = f"y{year}"
        return (
            self.sales_marketing.get(key, _DEFAULT_OPEX["sales_marketing"])
            + self.research_development.get(key, _DEFAULT_OPEX["research_development"])
            + self.general_administrative.get(key, _DEFAULT_OPEX["general_administrative"])
        )


class FinancialModelInput(BaseModel):
    products: list[ProductInput] = Field(min_length=1)
    opex_percentages: OpexPercentages = Field(default_factory=OpexPercentages)
    projection_years: int = Field(default=5, ge=2, le=7)
    starting_cash: float = Field(default=0.0, ge=0)


class ValidationSummary(BaseModel):
    passed: bool
    warnings: list[str]
    errors: list[str]


class FinancialModelOutput(BaseModel):
    year_1_monthly_revenue: list[float]
    annual_revenue: list[float]          # Index 0 = year 1 total
    gross_margin_pct: float
    annual_ebitda: list[float]
    ebitda_margin_pct: list[float]
    break_even_month: int | None         # 1-based; None if never reached
    total_capital_required: float
    peak_monthly_burn: float
    cagr_pct: float
    rule_of_40: float
    validation: ValidationSummary


def _monthly_revenue(products: list[ProductInput]) -> list[float]:
    monthly = [0.0] * 12
    for product in products:
        quantity = product.initial_quantity_m1
        for month in range(12):
            monthly[month] += quantity * product.avg_price
            if month < 11:
                growth = product.growth_rates_m[month] if month < len(product.growth_rates_m) else 0.0
                quantity *= 1 + growth / 100
                quantity *= 1 - product.churn_rate / 100
    return monthly


def _blended_cogs_pct(products: list[ProductInput]) -> float:
    weights = [p.initial_quantity_m1 * p.avg_price for p in products]
    total = sum(weights)
    if total == 0:
        return products[0].cogs_percentage
    return sum(w * p.cogs_percentage for w, p in zip(weights, products, strict=True)) / total


def project_financials(params: FinancialModelInput) -> FinancialModelOutput:
    """Run the projection. See module header for the model."""
    monthly = _monthly_revenue(params.products)
    year_1 = sum(monthly)

    growth = params.products[0].growth_rates_y or _DEFAULT_YEARLY_GROWTH
    annual = [year_1]
    for year in range(2, params.projection_years + 1):
        rate = growth[year - 2] if year - 2 < len(growth) else growth[-1]
        annual.append(annual[-1] * (1 + rate / 100))

    cogs_pct = _blended_cogs_pct(params.products)
    gross_margin_pct = 100.0 - cogs_pct

    # Year 1 by month, later years by year
    opex_y1 = params.opex_percentages.total_for_year(1)
    monthly_ebitda = [r * (gross_margin_pct - opex_y1) / 100 for r in monthly]
    annual_ebitda = [sum(monthly_ebitda)] + [
        revenue * (gross_margin_pct - params.opex_percentages.total_for_year(year)) / 100
        for year, revenue in enumerate(annual[1:], start=2)
    ]
    ebitda_margin = [
        (e / r * 100) if r > 0 else 0.0 for e, r in zip(annual_ebitda, annual, strict=True)
    ]

    break_even_month: int | None = None
    for month, value in enumerate(monthly_ebitda, start=1):
        if value > 0:
            break_even_month = month
            break
    if break_even_month is None:
        for year, value in enumerate(annual_ebitda[1:], start=2):
            if value > 0:
                break_even_month = (year - 1) * 12 + 1
                break

    losses = sum(-e for e in monthly_ebitda if e < 0) + sum(
        -e for e in annual_ebitda[1:] if e < 0
    )
    peak_burn = max((-e for e in monthly_ebitda if e < 0), default=0.0)

    years = len(annual) - 1
    cagr = ((annual[-1] / year_1) ** (1 / years) - 1) * 100 if year_1 > 0 else 0.0
    final_growth = (annual[-1] / annual[-2] - 1) * 100 if annual[-2] > 0 else 0.0
    rule_of_40 = final_growth + ebitda_margin[-1]

    return FinancialModelOutput(
        year_1_monthly_revenue=[round(v, 2) for v in monthly],
        annual_revenue=[round(v, 2) for v in annual],
        gross_margin_pct=round(gross_margin_pct, 2),
        annual_ebitda=[round(v, 2) for v in annual_ebitda],
        ebitda_margin_pct=[round(v, 2) for v in ebitda_margin],
        break_even_month=break_even_month,
        total_capital_required=round(losses + params.starting_cash, 2),
        peak_monthly_burn=round(peak_burn, 2),
        cagr_pct=round(cagr, 2),
        rule_of_40=round(rule_of_40, 2),
        validation=_validate(gross_margin_pct, break_even_month, rule_of_40),
    )


def _validate(
    gross_margin_pct: float, break_even_month: int | None, rule_of_40: float,
) -> ValidationSummary:
    warnings: list[str] = []
    errors: list[str] = []
    if gross_margin_pct < 60:
        warnings.append(f"Low gross margin ({gross_margin_pct:.1f}%). Target: >70% for SaaS.")
    if break_even_month is None:
        errors.append("Business does not reach break-even in the projection period.")
    elif break_even_month > 48:
        warnings.append(f"Late break-even (month {break_even_month}). Investors prefer <36 months.")
    if rule_of_40 < 40:
        warnings.append(f"Rule of 40 is {rule_of_40:.1f}. Target: >40.")
    return ValidationSummary(passed=not errors, warnings=warnings, errors=errors)


FINANCIAL_MODELING = Skill(
    name="financial_modeling",
    description=(
        "Calculate multi-year financial projections: monthly year-1 revenue, "
        "annual revenue, EBITDA, break-even month, capital required, CAGR "
        "and Rule of 40."
    ),
    input_model=FinancialModelInput,
    func=project_financials,
)
