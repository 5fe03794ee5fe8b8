"""
Matching session service.

A matching session holds one submitted profile, its scored and categorized
matches, and the analysis cache for those matches. Sessions live in memory
for the lifetime of the process, up to a fixed cap; starting a new search
discards the old one.
"""

import uuid
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, List, Optional

from award_matcher import Award, CategorizedMatches, EligibilityScorer, MatchResult, StudentProfile, categorize
from app.services.analysis_cache_service import AnalysisCache, Analyzer

logger = logging.getLogger(__name__)


@dataclass
class MatchingSession:
    session_id: str
    profile: StudentProfile
    matches: List[MatchResult]
    categorized: CategorizedMatches
    cache: AnalysisCache

    def award_lookup(self, award_id: str) -> Award:
        """Awards addressable within this session are the ones it matched."""
        for match in self.matches:
            if match.award.id == award_id:
                return match.award
        raise KeyError(f"Award {award_id} is not part of session {self.session_id}")


class SessionStore:
    """
    Process-lifetime registry of matching sessions.

    Holds at most max_sessions sessions; creating one past the cap evicts
    the least recently used session.
    """

    def __init__(self, scorer: Optional[EligibilityScorer] = None, max_sessions: int = 1000):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.scorer = scorer or EligibilityScorer()
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, MatchingSession]" = OrderedDict()

    def create(self, profile: StudentProfile, awards: Iterable[Award], analyzer: Analyzer) -> MatchingSession:
        matches = self.scorer.match_awards(profile, awards)
        session = MatchingSession(
            session_id=uuid.uuid4().hex,
            profile=profile,
            matches=matches,
            categorized=categorize(matches),
            cache=AnalysisCache(analyzer),
        )
        self._sessions[session.session_id] = session
        while len(self._sessions) > self.max_sessions:
            evicted_id, evicted = self._sessions.popitem(last=False)
            evicted.cache.clear()
            logger.info(f"Evicted least recently used matching session {evicted_id}")
        logger.info(
            f"Created matching session {session.session_id}: "
            f"{len(session.categorized.perfect)} perfect, "
            f"{len(session.categorized.good)} good, "
            f"{len(session.categorized.partial)} partial"
        )
        return session

    def get(self, session_id: str) -> Optional[MatchingSession]:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
        return session

    def reset(self, session_id: str) -> bool:
        """Discard a session and its cache. Returns False if it did not exist."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.cache.clear()
        logger.info(f"Reset matching session {session_id}")
        return True

    def __len__(self) -> int:
        return len(self._sessions)
