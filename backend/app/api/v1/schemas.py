"""
Request and response models shared by the v1 routers.

Wire names are camelCase to match the browser client.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from award_matcher import AFFILIATION_KEYS, Campus, CitizenshipStatus, StudentProfile


class StudentData(BaseModel):
    """Student profile as submitted by the profile form."""
    faculty: Optional[str] = None
    year: int = Field(1, ge=1)  # 5 means "5+"
    program: Optional[str] = None
    gpa: float = Field(0.0, ge=0.0, le=4.33)
    campus: Campus = Campus.VANCOUVER
    citizenship_status: CitizenshipStatus = Field(CitizenshipStatus.CANADIAN_CITIZEN, alias="citizenshipStatus")
    indigenous_status: bool = Field(False, alias="indigenousStatus")
    has_disability: bool = Field(False, alias="hasDisability")
    has_student_loan: bool = Field(False, alias="hasStudentLoan")
    has_financial_need: bool = Field(False, alias="hasFinancialNeed")
    former_youth_in_care: bool = Field(False, alias="formerYouthInCare")
    part_time_student: bool = Field(False, alias="partTimeStudent")
    gender: Optional[str] = None
    affiliations: Dict[str, bool] = Field(default_factory=dict)

    @field_validator("faculty", "program", "gender", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        """The form sends "" for unanswered optional fields."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("affiliations")
    @classmethod
    def validate_affiliations(cls, value: Dict[str, bool]) -> Dict[str, bool]:
        unknown = sorted(set(value) - set(AFFILIATION_KEYS))
        if unknown:
            raise ValueError(f"Unknown affiliation keys: {', '.join(unknown)}")
        return value

    def to_profile(self) -> StudentProfile:
        return StudentProfile(
            faculty=self.faculty,
            year=self.year,
            program=self.program,
            gpa=self.gpa,
            campus=self.campus,
            citizenship_status=self.citizenship_status,
            indigenous_status=self.indigenous_status,
            has_disability=self.has_disability,
            has_student_loan=self.has_student_loan,
            has_financial_need=self.has_financial_need,
            former_youth_in_care=self.former_youth_in_care,
            part_time_student=self.part_time_student,
            gender=self.gender,
            affiliations=dict(self.affiliations),
        )

    class Config:
        populate_by_name = True


class AwardInsightRequest(BaseModel):
    """Request for an AI insight on one award."""
    student_data: StudentData = Field(alias="studentData")
    award_id: str = Field(alias="awardId", min_length=1)

    class Config:
        populate_by_name = True


class SessionCreateRequest(BaseModel):
    student_data: StudentData = Field(alias="studentData")

    class Config:
        populate_by_name = True


class ChanceAnalysisResponse(BaseModel):
    awardId: str
    awardName: str
    summary: str
    chanceLevel: str
    chancePercentage: int
    keyFactors: List[str]
    advice: str


class EssaySectionResponse(BaseModel):
    section: str
    guidance: str


class EssayGuideResponse(BaseModel):
    hook: str
    talkingPoints: List[str]
    structure: List[EssaySectionResponse]


class MatchResponse(BaseModel):
    award: Dict[str, Any]
    matchScore: int
    matchLabel: str
    matchReasons: List[str]
    missingRequirements: List[str]


class CategorizedResponse(BaseModel):
    perfect: List[MatchResponse]
    good: List[MatchResponse]
    partial: List[MatchResponse]


class SessionResponse(BaseModel):
    sessionId: str
    totalMatches: int
    categorized: CategorizedResponse


class AnalysesResponse(BaseModel):
    analyses: Dict[str, ChanceAnalysisResponse]
    loading: List[str]


class ErrorResponse(BaseModel):
    error: str
    message: str
