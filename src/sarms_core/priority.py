"""Priority classification for software requests.

Maps an impact analysis to a priority tier using fixed boolean rules:
- High: regulatory, impact >= $100k, both customer groups, operationally urgent
- Medium: regulatory, $50k <= impact < $100k, both customer groups, urgent
- Low: everything else, including partial matches

The tier is always derived from the impact analysis and never stored on its own.
"""
import logging

from .models import CustomerImpact, PriorityTier
from .schemas import ImpactAnalysis, PriorityClassification

logger = logging.getLogger("sarms-core.priority")


HIGH_PRIORITY_MIN_IMPACT_USD = 100000
MEDIUM_PRIORITY_MIN_IMPACT_USD = 50000

HIGH_PRIORITY_EXPLANATION = (
    "High priority: Meets all criteria (Regulatory requirement, "
    "Financial impact ≥$100k, Both customer impact, Operational urgency)"
)
MEDIUM_PRIORITY_EXPLANATION = (
    "Medium priority: Regulatory requirement with financial impact $50k-$100k, "
    "both customer impact, and operational urgency"
)


def _meets_shared_criteria(impact: ImpactAnalysis) -> bool:
    """Criteria common to the high and medium rules (everything except money)."""
    return (
        impact.is_regulatory_requirement
        and impact.customer_impact == CustomerImpact.BOTH
        and impact.operational_urgency
    )


def classify_priority(impact: ImpactAnalysis) -> PriorityTier:
    """
    Compute the priority tier for an impact analysis.

    Args:
        impact: Impact analysis submitted with the request

    Returns:
        PriorityTier.HIGH, PriorityTier.MEDIUM or PriorityTier.LOW
    """
    amount = impact.financial_impact_usd

    if _meets_shared_criteria(impact) and amount >= HIGH_PRIORITY_MIN_IMPACT_USD:
        return PriorityTier.HIGH

    if (
        _meets_shared_criteria(impact)
        and MEDIUM_PRIORITY_MIN_IMPACT_USD <= amount < HIGH_PRIORITY_MIN_IMPACT_USD
    ):
        return PriorityTier.MEDIUM

    return PriorityTier.LOW


def get_missing_criteria(impact: ImpactAnalysis) -> list[str]:
    """
    List the criteria an impact analysis fails to reach medium priority.

    Order is stable: regulatory requirement, financial impact, customer
    impact, operational urgency.
    """
    missing = []
    if not impact.is_regulatory_requirement:
        missing.append("regulatory requirement")
    if impact.financial_impact_usd < MEDIUM_PRIORITY_MIN_IMPACT_USD:
        missing.append("minimum financial impact ($50k)")
    if impact.customer_impact != CustomerImpact.BOTH:
        missing.append("both internal and external customer impact")
    if not impact.operational_urgency:
        missing.append("operational urgency")
    return missing


def explain_priority(impact: ImpactAnalysis) -> str:
    """
    Human-readable justification of the computed tier.

    Low results name the criteria that are not met.
    """
    priority = classify_priority(impact)

    if priority == PriorityTier.HIGH:
        return HIGH_PRIORITY_EXPLANATION
    if priority == PriorityTier.MEDIUM:
        return MEDIUM_PRIORITY_EXPLANATION

    missing = get_missing_criteria(impact)
    return f"Low priority: Does not meet high/medium criteria. Missing: {', '.join(missing)}"


def build_classification(impact: ImpactAnalysis) -> PriorityClassification:
    """Tier, explanation and missing criteria in one response object."""
    priority = classify_priority(impact)
    missing = get_missing_criteria(impact) if priority == PriorityTier.LOW else []
    logger.debug(f"Classified impact analysis as {priority.value} (missing: {missing})")
    return PriorityClassification(
        priority=priority,
        explanation=explain_priority(impact),
        missing_criteria=missing,
    )
