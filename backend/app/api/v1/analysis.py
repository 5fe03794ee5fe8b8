"""
Stateless AI insight endpoints: chance analysis and essay guide for one award.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from award_matcher import Award
from llm_advisor import LLMAwardAdvisor
from app.core.config import settings
from app.core.middleware import get_rate_limiter
from app.services.award_catalog_service import AwardCatalog, get_award_catalog
from app.api.v1.schemas import AwardInsightRequest, ChanceAnalysisResponse, EssayGuideResponse, ErrorResponse

router = APIRouter()
limiter = get_rate_limiter()

ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def get_llm_advisor() -> LLMAwardAdvisor:
    """FastAPI dependency: advisor configured from settings."""
    return LLMAwardAdvisor(
        api_key=settings.ANTHROPIC_API_KEY,
        model=settings.LLM_MODEL,
        max_tokens=settings.LLM_MAX_TOKENS,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )


def lookup_award(catalog: AwardCatalog, award_id: str) -> Award:
    award = catalog.find(award_id)
    if award is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Award not found: {award_id}",
        )
    return award


@router.post("/analyze-chance", response_model=ChanceAnalysisResponse, responses=ERROR_RESPONSES)
@limiter.limit(settings.ANALYSIS_RATE_LIMIT)
def analyze_chance(
    request: Request,
    insight_request: AwardInsightRequest,
    catalog: AwardCatalog = Depends(get_award_catalog),
    advisor: LLMAwardAdvisor = Depends(get_llm_advisor),
):
    """
    Estimate the student's chance of winning one award.

    Not cached: every call goes to the AI service. Use the session endpoints
    for cached analyses.
    """
    award = lookup_award(catalog, insight_request.award_id)
    analysis = advisor.request_chance_analysis(insight_request.student_data.to_profile(), award)
    return analysis.to_json()


@router.post("/essay-guide", response_model=EssayGuideResponse, responses=ERROR_RESPONSES)
@limiter.limit(settings.ANALYSIS_RATE_LIMIT)
def essay_guide(
    request: Request,
    insight_request: AwardInsightRequest,
    catalog: AwardCatalog = Depends(get_award_catalog),
    advisor: LLMAwardAdvisor = Depends(get_llm_advisor),
):
    """Generate a structured essay guide for one award."""
    award = lookup_award(catalog, insight_request.award_id)
    guide = advisor.request_essay_guide(insight_request.student_data.to_profile(), award)
    return guide.to_json()
