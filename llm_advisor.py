"""
LLM-based award advisor using the Claude API.

This module builds prompts from a student profile and an award, sends them to
Claude, and parses the free-form reply into one of two fixed shapes: a chance
analysis or an essay guide. Model output is treated as untrusted input; any
reply that does not contain a valid JSON object is reported as a ParseError.
"""

import json
import math
import os
import logging
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from enum import Enum
from anthropic import Anthropic, APIError
from award_matcher import Award, StudentProfile

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-haiku-20240307"
DEFAULT_MAX_TOKENS = 2000


class InsightError(Exception):
    """Base class for AI insight failures."""


class ConfigurationError(InsightError):
    """The model service credential is missing."""


class UpstreamError(InsightError):
    """The model service call failed (network, quota, bad response)."""


class ParseError(InsightError):
    """The model reply did not contain a valid JSON object of the expected shape."""


class ChanceLevel(Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class ChanceAnalysis:
    """AI estimate of a student's odds of winning one award."""
    award_id: str
    award_name: str
    summary: str
    chance_level: ChanceLevel
    chance_percentage: int  # 0-100
    key_factors: List[str]
    advice: str

    @property
    def positive_factors(self) -> List[str]:
        return [f for f in self.key_factors if f.lstrip().startswith("+")]

    @property
    def negative_factors(self) -> List[str]:
        return [f for f in self.key_factors if f.lstrip().startswith("-")]

    def to_json(self) -> Dict[str, Any]:
        return {
            "awardId": self.award_id,
            "awardName": self.award_name,
            "summary": self.summary,
            "chanceLevel": self.chance_level.value,
            "chancePercentage": self.chance_percentage,
            "keyFactors": list(self.key_factors),
            "advice": self.advice,
        }


@dataclass(frozen=True)
class EssaySection:
    section: str
    guidance: str


@dataclass
class EssayGuide:
    """Structured outline for an award essay."""
    hook: str
    talking_points: List[str] = field(default_factory=list)
    structure: List[EssaySection] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "hook": self.hook,
            "talkingPoints": list(self.talking_points),
            "structure": [{"section": s.section, "guidance": s.guidance} for s in self.structure],
        }

    def as_text(self, award_name: str) -> str:
        """Plain-text rendering suitable for copying into a document."""
        points = "\n".join(f"- {p}" for p in self.talking_points)
        sections = "\n\n".join(f"[{s.section}]\n{s.guidance}" for s in self.structure)
        return (
            f"ESSAY GUIDE: {award_name}\n\n"
            f"HOOK:\n{self.hook}\n\n"
            f"KEY TALKING POINTS:\n{points}\n\n"
            f"STRUCTURE:\n{sections}\n"
        )


def _yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def format_student_profile(profile: StudentProfile) -> str:
    """Format the student profile for the LLM prompt. Field order is fixed."""
    affiliations = ", ".join(profile.active_affiliations()) or "None provided"
    parts = [
        f"- Faculty: {profile.faculty or 'Not specified'}",
        f"- Year: {'5+' if profile.year >= 5 else profile.year}",
        f"- Program: {profile.program or 'Not specified'}",
        f"- GPA: {profile.gpa:.2f}",
        f"- Campus: {profile.campus.value}",
        f"- Citizenship: {profile.citizenship_status.value}",
        f"- Indigenous Status: {_yes_no(profile.indigenous_status)}",
        f"- Has Disability: {_yes_no(profile.has_disability)}",
        f"- Gender: {profile.gender or 'Not specified'}",
        f"- Financial Need: {_yes_no(profile.has_financial_need)}",
        f"- Student Loan: {_yes_no(profile.has_student_loan)}",
        f"- Former Youth in Care: {_yes_no(profile.former_youth_in_care)}",
        f"- Part-Time Student: {_yes_no(profile.part_time_student)}",
        f"- Affiliations: {affiliations}",
    ]
    return "\n".join(parts)


def format_award(award: Award) -> str:
    """Format award details, including the full criteria payload, for the LLM prompt."""
    parts = [
        f"- Name: {award.name}",
        f"- Type: {award.type}",
        f"- Amount: {award.formatted_amount()}",
        f"- Description: {award.description or 'Not provided'}",
        f"- Criteria: {json.dumps(dict(award.eligibility), sort_keys=True)}",
    ]
    if award.application_deadline:
        parts.append(f"- Deadline: {award.application_deadline}")
    return "\n".join(parts)


def build_chance_prompt(profile: StudentProfile, award: Award) -> str:
    return f"""You are an experienced university financial-aid advisor. Estimate how likely this student is to win the award below, based only on the information given.

STUDENT PROFILE:
{format_student_profile(profile)}

AWARD DETAILS:
{format_award(award)}

TASK:
Assess the student's chance of winning THIS award. Consider how closely the profile meets each criterion and how competitive the award is likely to be.
Prefix each key factor with "+" if it helps the student or "-" if it hurts them.
Return ONLY valid JSON in the following format:

{{
  "awardName": "{award.name}",
  "summary": "One sentence overview of the student's standing.",
  "chanceLevel": "HIGH" | "MEDIUM" | "LOW",
  "chancePercentage": 0-100,
  "keyFactors": [
    "+ A strength relevant to the criteria",
    "- A weakness or unmet criterion"
  ],
  "advice": "Concrete advice to improve the application."
}}
"""


def build_essay_prompt(profile: StudentProfile, award: Award) -> str:
    return f"""You are an expert scholarship essay coach. A student is applying for the award below. Help them structure their essay.

STUDENT PROFILE:
{format_student_profile(profile)}

AWARD DETAILS:
{format_award(award)}

TASK:
Produce a structured guide to help the student write a winning essay for THIS specific award.
Return ONLY valid JSON in the following format, with exactly four structure entries:

{{
  "hook": "A compelling opening sentence tailored to this award and student.",
  "talkingPoints": [
    "Specific point linking the student's profile to the award criteria",
    "Another specific point",
    "A third specific point"
  ],
  "structure": [
    {{"section": "Introduction", "guidance": "What to cover in the introduction"}},
    {{"section": "Body Paragraph 1", "guidance": "What to focus on"}},
    {{"section": "Body Paragraph 2", "guidance": "What to discuss"}},
    {{"section": "Conclusion", "guidance": "How to wrap up"}}
  ]
}}
"""


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Extract the first JSON object embedded in free-form text.

    The object starts at the first "{" and ends at its matching "}" (braces
    inside JSON strings are ignored). If that span does not parse, the span
    up to the last "}" is tried instead. Raises ParseError when neither
    yields a JSON object.
    """
    start = text.find("{")
    if start == -1:
        raise ParseError(f"No JSON object found in AI response: {text[:200]!r}")

    candidates = []
    end = _matching_brace(text, start)
    if end != -1:
        candidates.append(text[start:end + 1])
    last = text.rfind("}")
    if last > start and last != end:
        candidates.append(text[start:last + 1])
    if not candidates:
        raise ParseError(f"Unterminated JSON object in AI response: {text[start:start + 200]!r}")

    last_error: Optional[Exception] = None
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(parsed, dict):
            return parsed
    raise ParseError(f"Failed to parse AI response as JSON: {last_error}")


def _matching_brace(text: str, start: int) -> int:
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ParseError(f"Missing or invalid field in AI response: {key}")
    return value.strip()


def _require_str_list(data: Dict[str, Any], key: str) -> List[str]:
    value = data.get(key)
    if not isinstance(value, list):
        raise ParseError(f"Missing or invalid field in AI response: {key}")
    items = []
    for item in value:
        if not isinstance(item, str):
            raise ParseError(f"Invalid {key} entry in AI response: {item!r}")
        if item.strip():
            items.append(item.strip())
    if not items:
        raise ParseError(f"AI response contained no {key}")
    return items


def _parse_percentage(value: Any) -> int:
    if isinstance(value, bool):
        raise ParseError(f"Invalid chancePercentage: {value!r}")
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ParseError(f"Invalid chancePercentage: {value!r}")
    # json.loads accepts NaN, Infinity and overflowing literals
    if not math.isfinite(number):
        raise ParseError(f"Invalid chancePercentage: {value!r}")
    return max(0, min(100, int(round(number))))


def parse_chance_analysis(data: Dict[str, Any], award: Award) -> ChanceAnalysis:
    """Validate a parsed reply and convert it to a ChanceAnalysis."""
    if "chancePercentage" not in data:
        raise ParseError("Missing required field in AI response: chancePercentage")

    level = data.get("chanceLevel")
    try:
        chance_level = ChanceLevel(str(level).strip().upper())
    except ValueError:
        raise ParseError(f"Invalid chanceLevel in AI response: {level!r}")

    award_name = data.get("awardName")
    if not isinstance(award_name, str) or not award_name.strip():
        award_name = award.name

    return ChanceAnalysis(
        award_id=award.id,
        award_name=award_name.strip(),
        summary=_require_str(data, "summary"),
        chance_level=chance_level,
        chance_percentage=_parse_percentage(data["chancePercentage"]),
        key_factors=_require_str_list(data, "keyFactors"),
        advice=_require_str(data, "advice"),
    )


def parse_essay_guide(data: Dict[str, Any]) -> EssayGuide:
    """Validate a parsed reply and convert it to an EssayGuide."""
    hook = _require_str(data, "hook")
    talking_points = _require_str_list(data, "talkingPoints")

    raw_structure = data.get("structure")
    if not isinstance(raw_structure, list) or not raw_structure:
        raise ParseError("Missing or invalid field in AI response: structure")
    structure = []
    for entry in raw_structure:
        if not isinstance(entry, dict):
            raise ParseError(f"Invalid structure entry in AI response: {entry!r}")
        structure.append(EssaySection(
            section=_require_str(entry, "section"),
            guidance=_require_str(entry, "guidance"),
        ))

    return EssayGuide(hook=hook, talking_points=talking_points, structure=structure)


class LLMAwardAdvisor:
    """
    Claude-backed advisor producing chance analyses and essay guides.

    The credential is checked on every request, before the transport is
    touched, so a missing key is reported as ConfigurationError rather than
    as a failed call.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: Optional[float] = None,
        client: Optional[Any] = None,
    ):
        """
        Args:
            api_key: Anthropic API key. If not provided, reads ANTHROPIC_API_KEY.
            model: Claude model to use.
            max_tokens: Response token limit.
            timeout: Request timeout in seconds; SDK default when None.
            client: Pre-built transport exposing ``messages.create``.
        """
        self.api_key = api_key if api_key is not None else os.getenv("ANTHROPIC_API_KEY", "")
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = client

    @property
    def client(self):
        if self._client is None:
            kwargs: Dict[str, Any] = {"api_key": self.api_key}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            self._client = Anthropic(**kwargs)
        return self._client

    def generate(self, prompt: str) -> str:
        """Send one prompt and return the reply text."""
        if not self.api_key:
            raise ConfigurationError(
                "Anthropic API key required. Set ANTHROPIC_API_KEY environment variable."
            )

        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIError as e:
            logger.error(f"Claude API call failed: {e}")
            raise UpstreamError(f"AI service call failed: {e}") from e

        try:
            text = message.content[0].text
        except (AttributeError, IndexError, TypeError) as e:
            raise UpstreamError("AI service returned a response without text content") from e
        if not isinstance(text, str):
            raise UpstreamError("AI service returned a response without text content")
        return text

    def request_chance_analysis(self, profile: StudentProfile, award: Award) -> ChanceAnalysis:
        logger.info(f"Requesting chance analysis for award {award.id}")
        text = self.generate(build_chance_prompt(profile, award))
        try:
            return parse_chance_analysis(extract_json_object(text), award)
        except ParseError as e:
            logger.warning(f"Malformed chance analysis for award {award.id}: {e}")
            raise

    def request_essay_guide(self, profile: StudentProfile, award: Award) -> EssayGuide:
        logger.info(f"Requesting essay guide for award {award.id}")
        text = self.generate(build_essay_prompt(profile, award))
        try:
            return parse_essay_guide(extract_json_object(text))
        except ParseError as e:
            logger.warning(f"Malformed essay guide for award {award.id}: {e}")
            raise


def request_chance_analysis(
    profile: StudentProfile, award: Award, advisor: Optional[LLMAwardAdvisor] = None
) -> ChanceAnalysis:
    return (advisor or LLMAwardAdvisor()).request_chance_analysis(profile, award)


def request_essay_guide(
    profile: StudentProfile, award: Award, advisor: Optional[LLMAwardAdvisor] = None
) -> EssayGuide:
    return (advisor or LLMAwardAdvisor()).request_essay_guide(profile, award)
