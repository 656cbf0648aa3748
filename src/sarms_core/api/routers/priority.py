"""API endpoint for priority classification."""
from fastapi import APIRouter

from ... import schemas
from ...priority import build_classification

router = APIRouter(tags=["priority"])


@router.post("/classify", response_model=schemas.PriorityClassification)
async def classify(impact: schemas.ImpactAnalysis):
    """
    Compute the priority tier for an impact analysis.

    Used by the request form to show the calculated priority next to the
    priority the requester picked. Low results list the missing criteria.
    """
    return build_classification(impact)
