"""
Matching session endpoints.

A session is created from a submitted profile and holds its matches and
analysis cache until it is reset.
"""

from typing import Optional
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from llm_advisor import LLMAwardAdvisor
from app.core.config import settings
from app.core.middleware import get_rate_limiter
from app.services.award_catalog_service import AwardCatalog, get_award_catalog
from app.services.session_service import MatchingSession, SessionStore
from app.api.v1.analysis import ERROR_RESPONSES, get_llm_advisor
from app.api.v1.schemas import AnalysesResponse, ChanceAnalysisResponse, SessionCreateRequest, SessionResponse

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = get_rate_limiter()


def get_session_store(request: Request) -> SessionStore:
    """FastAPI dependency: the application's session store."""
    return request.app.state.sessions


def _get_session(store: SessionStore, session_id: str) -> MatchingSession:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}",
        )
    return session


def _session_view(session: MatchingSession) -> dict:
    return {
        "sessionId": session.session_id,
        "totalMatches": len(session.matches),
        "categorized": session.categorized.to_json(),
    }


def _analyses_view(session: MatchingSession) -> dict:
    return {
        "analyses": {award_id: a.to_json() for award_id, a in session.cache.snapshot().items()},
        "loading": session.cache.loading_ids(),
    }


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.SESSION_RATE_LIMIT)
def create_session(
    request: Request,
    session_request: SessionCreateRequest,
    store: SessionStore = Depends(get_session_store),
    catalog: AwardCatalog = Depends(get_award_catalog),
    advisor: LLMAwardAdvisor = Depends(get_llm_advisor),
):
    """Score the catalog for a profile and open a new matching session."""
    session = store.create(
        profile=session_request.student_data.to_profile(),
        awards=catalog.all(),
        analyzer=advisor.request_chance_analysis,
    )
    return _session_view(session)


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    return _session_view(_get_session(store, session_id))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def reset_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Start over: discard the session, its matches and its cached analyses."""
    if not store.reset(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{session_id}/analyses", response_model=AnalysesResponse)
def list_analyses(session_id: str, store: SessionStore = Depends(get_session_store)):
    return _analyses_view(_get_session(store, session_id))


# Declared before the per-award route so "batch" is not read as an award id
@router.post("/{session_id}/analyses/batch", response_model=AnalysesResponse)
@limiter.limit(settings.ANALYSIS_RATE_LIMIT)
def analyze_top_matches(
    request: Request,
    session_id: str,
    n: Optional[int] = Query(None, ge=0, le=50),
    store: SessionStore = Depends(get_session_store),
):
    """
    Analyze the top N matches that do not have an analysis yet.

    Runs one award at a time. Awards that fail are left without an entry;
    the response lists whatever is cached afterwards.
    """
    session = _get_session(store, session_id)
    count = settings.BATCH_TOP_N if n is None else n
    session.cache.batch_top(session.matches, count, session.profile)
    return _analyses_view(session)


@router.post("/{session_id}/analyses/{award_id}", response_model=ChanceAnalysisResponse, responses=ERROR_RESPONSES)
@limiter.limit(settings.ANALYSIS_RATE_LIMIT)
def analyze_award(
    request: Request,
    session_id: str,
    award_id: str,
    store: SessionStore = Depends(get_session_store),
):
    """Return the cached analysis for an award, requesting it on first use."""
    session = _get_session(store, session_id)
    try:
        analysis = session.cache.get_or_fetch(award_id, session.profile, session.award_lookup)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Award {award_id} is not part of this session",
        )
    return analysis.to_json()
