"""
Compliance Checker — licences, permits and regulatory risks by location
and industry, from a static reference table.
"""

from __future__ import annotations

from pydantic import BaseModel

from bizplan.skills.registry import Skill

_Requirements = dict[str, list[str]]

COMPLIANCE_DATA: dict[str, dict[str, _Requirements]] = {
    "india": {
        "saas": {
            "licenses": ["GST Registration", "Shop and Establishment License", "Professional Tax Registration"],
            "permits": ["Digital Signature Certificate", "Import Export Code (if applicable)"],
            "risks": ["Data localization requirements", "GST compliance", "Payment gateway regulations"],
        },
        "ecommerce": {
            "licenses": ["GST Registration", "FSSAI License (for food)", "Shop and Establishment License"],
            "permits": ["Import Export Code", "BIS Certification (for electronics)"],
            "risks": ["Consumer protection laws", "Return/refund policies", "Product liability"],
        },
        "fintech": {
            "licenses": ["RBI License/NBFC Registration", "GST Registration", "PCI DSS Compliance"],
            "permits": ["Digital Lending License", "Payment Aggregator License"],
            "risks": ["RBI regulations", "KYC/AML compliance", "Data security requirements"],
        },
        "default": {
            "licenses": ["GST Registration", "Shop and Establishment License", "Professional Tax Registration"],
            "permits": ["Trade License", "Fire Safety Certificate"],
            "risks": ["Tax compliance", "Labor laws", "Environmental regulations"],
        },
    },
    "usa": {
        "saas": {
            "licenses": ["Business License", "EIN (Employer Identification Number)", "State Registration"],
            "permits": ["Sales Tax Permit (if applicable)"],
            "risks": ["GDPR/CCPA compliance", "SOC 2 certification", "Data privacy laws"],
        },
        "default": {
            "licenses": ["Business License", "EIN", "State Business Registration"],
            "permits": ["Zoning Permit", "Health Permit (if applicable)"],
            "risks": ["Tax compliance", "Employment laws", "Industry-specific regulations"],
        },
    },
    "default": {
        "default": {
            "licenses": ["Business Registration", "Tax Registration", "Operating License"],
            "permits": ["Local Business Permit"],
            "risks": ["Tax compliance", "Employment regulations", "Industry standards"],
        },
    },
}

_BASE_RECOMMENDATIONS = [
    "Consult a local attorney to confirm full compliance",
    "Register the business entity before starting operations",
    "Obtain all required licences before launch",
    "Set up accounting and tax systems from day one",
    "Consider business insurance to mitigate risks",
]


class ComplianceCheckInput(BaseModel):
    location: str
    industry: str
    business_type: str = ""


class ComplianceCheckOutput(BaseModel):
    location: str
    industry: str
    licenses: list[str]
    permits: list[str]
    risks: list[str]
    recommendations: list[str]


def check_compliance(params: ComplianceCheckInput) -> ComplianceCheckOutput:
    location_data = COMPLIANCE_DATA.get(params.location.strip().lower(), COMPLIANCE_DATA["default"])
    industry_key = "_".join(params.industry.lower().split())
    requirements = location_data.get(industry_key, location_data["default"])

    recommendations = list(_BASE_RECOMMENDATIONS)
    if len(requirements["licenses"]) > 3:
        recommendations.append("Work with a compliance consultant on the licensing process")
    business_type = params.business_type.lower()
    if "online" in business_type or "digital" in business_type:
        recommendations.append("Implement data privacy and security measures (TLS, encryption)")
        recommendations.append("Publish clear Terms of Service and a Privacy Policy")

    return ComplianceCheckOutput(
        location=params.location,
        industry=params.industry,
        licenses=list(requirements["licenses"]),
        permits=list(requirements["permits"]),
        risks=list(requirements["risks"]),
        recommendations=recommendations,
    )


COMPLIANCE_CHECKER = Skill(
    name="compliance_checker",
    description="List licences, permits, regulatory risks and recommendations for a location and industry.",
    input_model=ComplianceCheckInput,
    func=check_compliance,
)
