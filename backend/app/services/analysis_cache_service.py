"""
Analysis Cache Service

Per-session memory of chance analyses keyed by award id, with on-demand
single-award analysis and a sequential best-effort batch over the top
matches.

Key Principles:
- A cached analysis is returned verbatim; the AI service is never asked twice
  for an award that already has an entry
- Batch calls run one at a time to stay under the AI service's rate limit
- A failed analysis leaves no entry behind, so it can be retried
"""

from typing import Callable, Dict, List, Mapping, Sequence, Union
import logging

from award_matcher import Award, MatchResult, StudentProfile
from llm_advisor import ChanceAnalysis, InsightError

logger = logging.getLogger(__name__)

Analyzer = Callable[[StudentProfile, Award], ChanceAnalysis]
AwardLookup = Union[Callable[[str], Award], Mapping[str, Award]]


def _resolve_award(award_lookup: AwardLookup, award_id: str) -> Award:
    if callable(award_lookup):
        return award_lookup(award_id)
    return award_lookup[award_id]


class AnalysisCache:
    """
    Session-scoped award id -> ChanceAnalysis map.

    The in-flight marker only drives loading indicators. It does not stop a
    second caller from requesting the same award while the first request is
    still running; both calls go upstream and the first stored value wins.
    """

    def __init__(self, analyzer: Analyzer):
        self._analyzer = analyzer
        self._analyses: Dict[str, ChanceAnalysis] = {}
        self._in_flight: Dict[str, int] = {}

    def get(self, award_id: str):
        return self._analyses.get(award_id)

    def is_loading(self, award_id: str) -> bool:
        return self._in_flight.get(award_id, 0) > 0

    def loading_ids(self) -> List[str]:
        return [award_id for award_id, count in self._in_flight.items() if count > 0]

    def snapshot(self) -> Dict[str, ChanceAnalysis]:
        return dict(self._analyses)

    def clear(self) -> None:
        self._analyses = {}
        self._in_flight = {}

    def __contains__(self, award_id: object) -> bool:
        return award_id in self._analyses

    def __len__(self) -> int:
        return len(self._analyses)

    def get_or_fetch(
        self, award_id: str, profile: StudentProfile, award_lookup: AwardLookup
    ) -> ChanceAnalysis:
        """
        Return the cached analysis for award_id, requesting it on a miss.

        Errors from the lookup or the analyzer propagate to the caller; nothing
        is cached for the award in that case.
        """
        cached = self._analyses.get(award_id)
        if cached is not None:
            logger.debug(f"Analysis cache hit for award {award_id}")
            return cached

        award = _resolve_award(award_lookup, award_id)

        self._in_flight[award_id] = self._in_flight.get(award_id, 0) + 1
        try:
            analysis = self._analyzer(profile, award)
        finally:
            remaining = self._in_flight.get(award_id, 1) - 1
            if remaining > 0:
                self._in_flight[award_id] = remaining
            else:
                self._in_flight.pop(award_id, None)

        # A concurrent request may have stored a value first; keep that one
        return self._analyses.setdefault(award_id, analysis)

    def batch_top(self, matches: Sequence[MatchResult], n: int, profile: StudentProfile) -> None:
        """
        Analyze the first n matches that are not cached yet, one at a time.

        Per-award failures are logged and skipped; this method does not raise
        for them.
        """
        top = list(matches[:max(n, 0)])
        lookup = {match.award.id: match.award for match in top}
        succeeded = 0
        failed = 0

        for match in top:
            award_id = match.award.id
            if award_id in self._analyses:
                continue
            try:
                self.get_or_fetch(award_id, profile, lookup)
                succeeded += 1
            except InsightError as e:
                failed += 1
                logger.warning(
                    f"Batch analysis skipped award {award_id}: {type(e).__name__}: {e}"
                )

        logger.info(
            f"Batch analysis over top {len(top)} matches finished: "
            f"{succeeded} analyzed, {failed} failed, {len(self._analyses)} cached"
        )
