from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import pytest

from award_matcher import Award, Campus, CitizenshipStatus, MatchResult, StudentProfile


class StubTransport:
    """Stands in for the Anthropic client: ``messages.create`` returns queued replies."""

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.calls: list[dict] = []
        self.messages = SimpleNamespace(create=self._create)

    def _create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=reply)])


def chance_reply(award_name: str = "Test Award", percentage: int = 70, level: str = "HIGH") -> str:
    return json.dumps(
        {
            "awardName": award_name,
            "summary": "Strong academic fit.",
            "chanceLevel": level,
            "chancePercentage": percentage,
            "keyFactors": ["+ GPA above minimum", "- Competitive applicant pool"],
            "advice": "Highlight your research experience.",
        }
    )


def essay_reply() -> str:
    return json.dumps(
        {
            "hook": "When I first walked onto campus...",
            "talkingPoints": ["Academic excellence", "Community leadership"],
            "structure": [
                {"section": "Introduction", "guidance": "Open with your story."},
                {"section": "Body Paragraph 1", "guidance": "Academics."},
                {"section": "Body Paragraph 2", "guidance": "Community."},
                {"section": "Conclusion", "guidance": "Tie back to the award."},
            ],
        }
    )


def make_profile(**overrides: Any) -> StudentProfile:
    values: dict[str, Any] = {
        "faculty": "Faculty of Science",
        "year": 3,
        "program": "Computer Science",
        "gpa": 3.8,
        "campus": Campus.VANCOUVER,
        "citizenship_status": CitizenshipStatus.CANADIAN_CITIZEN,
        "gender": "Female",
        "affiliations": {"sikhCommunity": True},
    }
    values.update(overrides)
    return StudentProfile(**values)


def make_award(award_id: str = "a1", **overrides: Any) -> Award:
    values: dict[str, Any] = {
        "id": award_id,
        "name": f"Award {award_id}",
        "description": "An award.",
        "type": "Scholarship",
        "amount": 1000,
        "eligibility": {"minGpa": 3.0},
    }
    values.update(overrides)
    return Award(**values)


def make_match(award_id: str, score: int) -> MatchResult:
    return MatchResult(award=make_award(award_id), match_score=score)


@pytest.fixture
def profile() -> StudentProfile:
    return make_profile()


@pytest.fixture
def award() -> Award:
    return make_award("ubc-test", name="Test Award", eligibility={"minGpa": 3.5, "campus": ["Vancouver"]})
