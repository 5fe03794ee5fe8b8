from __future__ import annotations

import pytest

from app.services.analysis_cache_service import AnalysisCache
from app.services.session_service import SessionStore
from llm_advisor import ChanceAnalysis, ChanceLevel, LLMAwardAdvisor, ParseError, UpstreamError
from conftest import StubTransport, chance_reply, make_award, make_match, make_profile


def _analysis(award_id: str, summary: str = "ok") -> ChanceAnalysis:
    return ChanceAnalysis(
        award_id=award_id,
        award_name=f"Award {award_id}",
        summary=summary,
        chance_level=ChanceLevel.MEDIUM,
        chance_percentage=50,
        key_factors=["+ fit"],
        advice="apply",
    )


class RecordingAnalyzer:
    def __init__(self, fail_for: tuple = ()) -> None:
        self.calls: list[str] = []
        self.fail_for = fail_for

    def __call__(self, profile, award) -> ChanceAnalysis:
        self.calls.append(award.id)
        if award.id in self.fail_for:
            raise UpstreamError(f"quota exceeded for {award.id}")
        return _analysis(award.id, summary=f"call {len(self.calls)}")


def test_get_or_fetch_returns_first_value_on_repeat_request() -> None:
    analyzer = RecordingAnalyzer()
    cache = AnalysisCache(analyzer)
    awards = {"a1": make_award("a1")}

    first = cache.get_or_fetch("a1", make_profile(), awards)
    second = cache.get_or_fetch("a1", make_profile(), awards)

    assert first.summary == "call 1"
    assert second is first
    assert analyzer.calls == ["a1"]


def test_get_or_fetch_accepts_callable_lookup() -> None:
    cache = AnalysisCache(RecordingAnalyzer())

    analysis = cache.get_or_fetch("a2", make_profile(), make_award)

    assert analysis.award_id == "a2"
    assert "a2" in cache


def test_failed_fetch_propagates_and_leaves_no_entry() -> None:
    def failing(profile, award):
        assert cache.is_loading(award.id)
        raise ParseError("no JSON")

    cache = AnalysisCache(failing)

    with pytest.raises(ParseError):
        cache.get_or_fetch("a1", make_profile(), {"a1": make_award("a1")})

    assert "a1" not in cache
    assert cache.get("a1") is None
    assert not cache.is_loading("a1")
    assert cache.loading_ids() == []


def test_unknown_award_raises_key_error_without_calling_analyzer() -> None:
    analyzer = RecordingAnalyzer()
    cache = AnalysisCache(analyzer)

    with pytest.raises(KeyError):
        cache.get_or_fetch("missing", make_profile(), {})

    assert analyzer.calls == []


def test_batch_top_skips_failed_award_and_continues() -> None:
    matches = [make_match(f"m{i}", 100 - i) for i in range(1, 8)]
    analyzer = RecordingAnalyzer(fail_for=("m3",))
    cache = AnalysisCache(analyzer)

    cache.batch_top(matches, 5, make_profile())

    assert sorted(cache.snapshot()) == ["m1", "m2", "m4", "m5"]
    assert analyzer.calls == ["m1", "m2", "m3", "m4", "m5"]


def test_batch_top_survives_non_finite_percentage_reply() -> None:
    nan_reply = chance_reply("Award m1").replace('"chancePercentage": 70', '"chancePercentage": NaN')
    transport = StubTransport(nan_reply, chance_reply("Award m2"))
    advisor = LLMAwardAdvisor(api_key="test-key", client=transport)
    cache = AnalysisCache(advisor.request_chance_analysis)

    cache.batch_top([make_match("m1", 95), make_match("m2", 90)], 2, make_profile())

    assert list(cache.snapshot()) == ["m2"]
    assert len(transport.calls) == 2
    assert cache.loading_ids() == []


def test_batch_top_skips_already_cached_awards() -> None:
    matches = [make_match(f"m{i}", 90) for i in range(1, 4)]
    analyzer = RecordingAnalyzer()
    cache = AnalysisCache(analyzer)
    cache.get_or_fetch("m2", make_profile(), {"m2": matches[1].award})

    cache.batch_top(matches, 5, make_profile())

    assert analyzer.calls == ["m2", "m1", "m3"]
    assert len(cache) == 3


def test_batch_top_runs_sequentially() -> None:
    active: list[str] = []
    overlaps: list[str] = []

    def analyzer(profile, award):
        if active:
            overlaps.append(award.id)
        active.append(award.id)
        try:
            return _analysis(award.id)
        finally:
            active.remove(award.id)

    cache = AnalysisCache(analyzer)
    cache.batch_top([make_match(f"m{i}", 90) for i in range(4)], 4, make_profile())

    assert overlaps == []
    assert len(cache) == 4


def test_clear_discards_cached_analyses() -> None:
    cache = AnalysisCache(RecordingAnalyzer())
    cache.batch_top([make_match("m1", 90)], 1, make_profile())

    cache.clear()

    assert len(cache) == 0


def test_session_store_creates_categorized_session_and_resets_it() -> None:
    store = SessionStore()
    awards = [
        make_award("open", eligibility={}),
        make_award("far", eligibility={"minGpa": 4.3, "campus": ["Okanagan"]}),
        make_award("half", eligibility={"minGpa": 4.3, "campus": ["Vancouver"]}),
    ]

    session = store.create(make_profile(), awards, RecordingAnalyzer())

    assert [m.award.id for m in session.matches] == ["open", "half", "far"]
    assert [m.award.id for m in session.categorized.perfect] == ["open"]
    assert [m.award.id for m in session.categorized.partial] == ["half", "far"]
    assert session.award_lookup("half").id == "half"
    with pytest.raises(KeyError):
        session.award_lookup("nope")

    assert store.reset(session.session_id) is True
    assert store.get(session.session_id) is None
    assert store.reset(session.session_id) is False


def test_session_store_evicts_least_recently_used_session() -> None:
    store = SessionStore(max_sessions=2)
    awards = [make_award("open", eligibility={})]
    first = store.create(make_profile(), awards, RecordingAnalyzer())
    second = store.create(make_profile(), awards, RecordingAnalyzer())
    first.cache.get_or_fetch("open", first.profile, first.award_lookup)

    assert store.get(first.session_id) is first
    third = store.create(make_profile(), awards, RecordingAnalyzer())

    assert len(store) == 2
    assert store.get(second.session_id) is None
    assert store.get(first.session_id) is first
    assert store.get(third.session_id) is third


def test_session_store_rejects_non_positive_cap() -> None:
    with pytest.raises(ValueError):
        SessionStore(max_sessions=0)
