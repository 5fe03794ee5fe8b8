"""
AwardMatch - Award Eligibility Matching

This module provides the domain records for student profiles and awards,
the rule-based eligibility scorer, and the categorizer that buckets scored
awards into Perfect / Good / Partial matches.
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from dataclasses import dataclass, field
from enum import Enum
import logging

logger = logging.getLogger(__name__)


PERFECT_MATCH_THRESHOLD = 90
GOOD_MATCH_THRESHOLD = 60

AFFILIATION_KEYS = (
    "alphaGammaDelta",
    "canadianArmedForces",
    "chineseAncestry",
    "iranianHeritage",
    "swedishHeritage",
    "ilwu",
    "ufcw",
    "beemCreditUnion",
    "sikhCommunity",
    "pipingIndustry",
    "royalCanadianLegion",
    "knightsPythias",
)


class Campus(Enum):
    VANCOUVER = "Vancouver"
    OKANAGAN = "Okanagan"


class CitizenshipStatus(Enum):
    CANADIAN_CITIZEN = "Canadian Citizen"
    PERMANENT_RESIDENT = "Permanent Resident"
    REFUGEE = "Refugee"
    INTERNATIONAL = "International"


@dataclass(frozen=True)
class StudentProfile:
    """Submitted student profile. Immutable for the lifetime of a session."""
    year: int  # 1-5, where 5 means "5+"
    gpa: float  # 0.00-4.33
    campus: Campus
    citizenship_status: CitizenshipStatus
    faculty: Optional[str] = None
    program: Optional[str] = None
    gender: Optional[str] = None
    indigenous_status: bool = False
    has_disability: bool = False
    has_student_loan: bool = False
    has_financial_need: bool = False
    former_youth_in_care: bool = False
    part_time_student: bool = False
    affiliations: Mapping[str, bool] = field(default_factory=dict)

    def has_affiliation(self, key: str) -> bool:
        return bool(self.affiliations.get(key, False))

    def active_affiliations(self) -> List[str]:
        """Affiliation keys set to true, in a stable (sorted) order."""
        return sorted(key for key, value in self.affiliations.items() if value)


@dataclass(frozen=True)
class Award:
    """Award record from the catalog."""
    id: str
    name: str
    description: str = ""
    type: str = "Award"
    amount: Union[int, float, str] = "Varies"
    eligibility: Mapping[str, Any] = field(default_factory=dict)
    application_deadline: Optional[str] = None
    source_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Award":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            description=data.get("description", ""),
            type=data.get("type", "Award"),
            amount=data.get("amount", "Varies"),
            eligibility=data.get("eligibility") or {},
            application_deadline=data.get("applicationDeadline"),
            source_url=data.get("sourceUrl"),
        )

    def to_json(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "amount": self.amount,
            "eligibility": dict(self.eligibility),
        }
        if self.application_deadline:
            result["applicationDeadline"] = self.application_deadline
        if self.source_url:
            result["sourceUrl"] = self.source_url
        return result

    def formatted_amount(self) -> str:
        if isinstance(self.amount, str):
            return self.amount
        return f"${self.amount:,}"


@dataclass
class MatchResult:
    """Scored award for one profile."""
    award: Award
    match_score: int  # 0-100
    match_reasons: List[str] = field(default_factory=list)
    missing_requirements: List[str] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "award": self.award.to_json(),
            "matchScore": self.match_score,
            "matchLabel": match_label(self.match_score),
            "matchReasons": list(self.match_reasons),
            "missingRequirements": list(self.missing_requirements),
        }


@dataclass
class CategorizedMatches:
    """Matches partitioned by score band."""
    perfect: List[MatchResult] = field(default_factory=list)
    good: List[MatchResult] = field(default_factory=list)
    partial: List[MatchResult] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.perfect) + len(self.good) + len(self.partial)

    def to_json(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "perfect": [m.to_json() for m in self.perfect],
            "good": [m.to_json() for m in self.good],
            "partial": [m.to_json() for m in self.partial],
        }


def match_label(score: int) -> str:
    """Human label for a match score."""
    if score >= PERFECT_MATCH_THRESHOLD:
        return "Perfect Match"
    if score >= GOOD_MATCH_THRESHOLD:
        return "Good Match"
    return "Partial Match"


def categorize(results: Sequence[MatchResult]) -> CategorizedMatches:
    """
    Partition match results into perfect (>= 90), good (60-89) and partial (< 60).

    Relative order within each bucket follows the input order.
    """
    categorized = CategorizedMatches()
    for result in results:
        if result.match_score >= PERFECT_MATCH_THRESHOLD:
            categorized.perfect.append(result)
        elif result.match_score >= GOOD_MATCH_THRESHOLD:
            categorized.good.append(result)
        else:
            categorized.partial.append(result)
    return categorized


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


# A rule returns (satisfied, description) for one criterion value.
Rule = Callable[[StudentProfile, Any], Tuple[bool, str]]


def _rule_campus(profile: StudentProfile, criterion: Any) -> Tuple[bool, str]:
    allowed = [_norm(c) for c in _as_list(criterion)]
    campuses = ", ".join(str(c) for c in _as_list(criterion))
    if _norm(profile.campus.value) in allowed:
        return True, f"Studying at the {profile.campus.value} campus"
    return False, f"Must be enrolled at: {campuses}"


def _rule_min_gpa(profile: StudentProfile, criterion: Any) -> Tuple[bool, str]:
    min_gpa = float(criterion)
    if profile.gpa >= min_gpa:
        return True, f"GPA of {profile.gpa:.2f} meets the {min_gpa:.2f} minimum"
    return False, f"Minimum GPA of {min_gpa:.2f} required"


def _rule_years(profile: StudentProfile, criterion: Any) -> Tuple[bool, str]:
    years = [int(y) for y in _as_list(criterion)]
    # 5 stands for "5+"
    year = min(profile.year, 5)
    if year in years:
        return True, f"Year {'5+' if year == 5 else year} students are eligible"
    listed = ", ".join(str(y) for y in years)
    return False, f"Open to students in year(s): {listed}"


def _rule_faculties(profile: StudentProfile, criterion: Any) -> Tuple[bool, str]:
    faculties = _as_list(criterion)
    if _norm(profile.faculty) in [_norm(f) for f in faculties]:
        return True, f"Enrolled in {profile.faculty}"
    return False, f"Must be enrolled in: {', '.join(str(f) for f in faculties)}"


def _rule_programs(profile: StudentProfile, criterion: Any) -> Tuple[bool, str]:
    programs = _as_list(criterion)
    program = _norm(profile.program)
    if program and any(_norm(p) in program or program in _norm(p) for p in programs):
        return True, f"Program matches ({profile.program})"
    return False, f"Must be in program: {', '.join(str(p) for p in programs)}"


def _rule_citizenship(profile: StudentProfile, criterion: Any) -> Tuple[bool, str]:
    allowed = _as_list(criterion)
    if _norm(profile.citizenship_status.value) in [_norm(c) for c in allowed]:
        return True, f"{profile.citizenship_status.value} status is eligible"
    return False, f"Citizenship requirement: {', '.join(str(a) for a in allowed)}"


def _rule_gender(profile: StudentProfile, criterion: Any) -> Tuple[bool, str]:
    allowed = _as_list(criterion)
    if _norm(profile.gender) in [_norm(g) for g in allowed]:
        return True, f"Open to {profile.gender} students"
    return False, f"Open to: {', '.join(str(a) for a in allowed)} students"


def _flag_rule(attr: str, met: str, unmet: str) -> Rule:
    def rule(profile: StudentProfile, criterion: Any) -> Tuple[bool, str]:
        if getattr(profile, attr):
            return True, met
        return False, unmet
    return rule


def _rule_affiliations(profile: StudentProfile, criterion: Any) -> Tuple[bool, str]:
    keys = _as_list(criterion)
    held = [key for key in keys if profile.has_affiliation(key)]
    if held:
        return True, f"Affiliation: {', '.join(held)}"
    return False, f"Requires affiliation with: {', '.join(str(k) for k in keys)}"


RULES: Dict[str, Rule] = {
    "campus": _rule_campus,
    "minGpa": _rule_min_gpa,
    "years": _rule_years,
    "faculties": _rule_faculties,
    "programs": _rule_programs,
    "citizenship": _rule_citizenship,
    "gender": _rule_gender,
    "indigenous": _flag_rule("indigenous_status", "Indigenous student", "Must self-identify as Indigenous"),
    "disability": _flag_rule("has_disability", "Student with a disability", "For students with a documented disability"),
    "financialNeed": _flag_rule("has_financial_need", "Demonstrated financial need", "Must demonstrate financial need"),
    "studentLoan": _flag_rule("has_student_loan", "Receiving government student loans", "Must be receiving government student loans"),
    "formerYouthInCare": _flag_rule("former_youth_in_care", "Former youth in care", "For former youth in care"),
    "partTime": _flag_rule("part_time_student", "Part-time student", "For part-time students"),
    "affiliations": _rule_affiliations,
}


class EligibilityScorer:
    """
    Rule-based scorer for award eligibility criteria.

    Each criterion key present in an award's eligibility mapping is checked
    against the profile. The score is the share of evaluated criteria the
    profile satisfies; an award with no recognised criteria is open to all.

    The score is monotone in (satisfied - missing) only among awards with the
    same number of evaluated criteria. Across awards it is a ratio: one met
    criterion of one scores 100, two met of three scores 67.
    """

    def __init__(self, rules: Optional[Dict[str, Rule]] = None):
        self.rules = rules if rules is not None else RULES

    def score(self, profile: StudentProfile, award: Award) -> MatchResult:
        reasons: List[str] = []
        missing: List[str] = []

        for key, criterion in award.eligibility.items():
            rule = self.rules.get(key)
            if rule is None:
                logger.debug(f"Ignoring unknown eligibility criterion '{key}' on award {award.id}")
                continue
            # false / empty means "not required"
            if criterion is None or criterion is False or criterion in ("", [], ()):
                continue
            satisfied, description = rule(profile, criterion)
            if satisfied:
                reasons.append(description)
            else:
                missing.append(description)

        evaluated = len(reasons) + len(missing)
        if evaluated == 0:
            return MatchResult(award=award, match_score=100, match_reasons=["Open to all students"])

        score = round(100 * len(reasons) / evaluated)
        return MatchResult(
            award=award,
            match_score=score,
            match_reasons=reasons,
            missing_requirements=missing,
        )

    def match_awards(self, profile: StudentProfile, awards: Iterable[Award]) -> List[MatchResult]:
        """Score every award; results sorted by score, highest first (stable)."""
        results = [self.score(profile, award) for award in awards]
        results.sort(key=lambda r: r.match_score, reverse=True)
        return results
