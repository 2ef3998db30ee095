"""
Pydantic Schemas - Request/Response Validation

All API request schemas in one file for simplicity. Request bodies use the
camelCase field names of the stored documents; every body is turned into one
of these command objects before it reaches business logic.
"""

import json
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, ClassVar, Dict, FrozenSet, List, Optional, Type

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from app.core.errors import ValidationError, field_error, validation_errors


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    applicant = "applicant"
    recruiter = "recruiter"
    admin = "admin"


class RegisterRole(str, Enum):
    applicant = "applicant"
    recruiter = "recruiter"


class JobType(str, Enum):
    full_time = "full-time"
    part_time = "part-time"
    contract = "contract"
    internship = "internship"
    remote = "remote"


class JobCategory(str, Enum):
    technology = "technology"
    marketing = "marketing"
    sales = "sales"
    design = "design"
    finance = "finance"
    hr = "hr"
    operations = "operations"
    customer_service = "customer-service"
    other = "other"


class JobStatus(str, Enum):
    draft = "draft"
    active = "active"
    paused = "paused"
    closed = "closed"
    filled = "filled"


class JobPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    INR = "INR"
    CAD = "CAD"
    AUD = "AUD"


class SalaryPeriod(str, Enum):
    hourly = "hourly"
    monthly = "monthly"
    yearly = "yearly"


class JobSort(str, Enum):
    newest = "newest"
    oldest = "oldest"
    salary_high = "salary_high"
    salary_low = "salary_low"
    featured = "featured"


class ApplicationStatus(str, Enum):
    submitted = "submitted"
    under_review = "under_review"
    shortlisted = "shortlisted"
    interview_scheduled = "interview_scheduled"
    interviewed = "interviewed"
    second_interview = "second_interview"
    final_interview = "final_interview"
    offer_extended = "offer_extended"
    offer_accepted = "offer_accepted"
    offer_declined = "offer_declined"
    hired = "hired"
    rejected = "rejected"
    withdrawn = "withdrawn"


class NoticePeriod(str, Enum):
    immediate = "immediate"
    one_week = "1-week"
    two_weeks = "2-weeks"
    one_month = "1-month"
    two_months = "2-months"
    three_months = "3-months"
    other = "other"


class InterviewType(str, Enum):
    phone = "phone"
    video = "video"
    in_person = "in-person"
    technical = "technical"
    hr = "hr"
    final = "final"


class InterviewStatus(str, Enum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"
    rescheduled = "rescheduled"
    no_show = "no_show"


class Recommendation(str, Enum):
    strongly_recommend = "strongly-recommend"
    recommend = "recommend"
    neutral = "neutral"
    not_recommend = "not-recommend"
    strongly_not_recommend = "strongly-not-recommend"


# ============================================================
# SHARED FIELD TYPES
# ============================================================

def as_naive_utc(value: datetime) -> datetime:
    """Store every datetime as naive UTC, the way pymongo hands them back."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def check_object_id(value: str) -> str:
    if not OBJECT_ID_PATTERN.match(value):
        raise ValueError("Invalid ID")
    return value


UTCDateTime = Annotated[datetime, AfterValidator(as_naive_utc)]
ObjectIdStr = Annotated[str, AfterValidator(check_object_id)]

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"


def check_password_strength(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must contain at least one lowercase letter, one uppercase letter, and one number"
        )
    return value


def must_be_future(value: Optional[datetime], message: str) -> Optional[datetime]:
    if value is not None and value <= datetime.utcnow():
        raise ValueError(message)
    return value


class CamelModel(BaseModel):
    """Base for command objects: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    def to_document(self, exclude_unset: bool = False) -> dict:
        """Dump with the stored (camelCase) field names."""
        return self.model_dump(by_alias=True, exclude_unset=exclude_unset)


class UpdateCommand(CamelModel):
    """
    Base for partial updates (PUT bodies).

    Only the fields sent are written. An explicit null is accepted only for
    fields listed in `nullable_fields`; everything else is required on the
    stored document and may not be cleared. Sub-documents named in
    `nested_models` are merged into the stored value and validated whole.
    """

    model_config = ConfigDict(validate_default=False)

    nullable_fields: ClassVar[FrozenSet[str]] = frozenset()
    nested_models: ClassVar[Dict[str, Type[CamelModel]]] = {}

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, v, info: ValidationInfo):
        if v is None and info.field_name not in cls.nullable_fields:
            raise ValueError(f"{to_camel(info.field_name)} cannot be null")
        return v

    def changes_for(self, current: Optional[dict] = None) -> dict:
        """The stored-name fields to `$set` on `current`."""
        fields = self.to_document(exclude_unset=True)
        current = current or {}
        for key, model in self.nested_models.items():
            if key not in fields:
                continue
            merged = {**(current.get(key) or {}), **fields[key]}
            try:
                fields[key] = model.model_validate(merged).to_document()
            except PydanticValidationError as e:
                errors = [
                    field_error(f"{key}.{err['field']}" if err["field"] else key, err["message"], err["rejectedValue"])
                    for err in validation_errors(e.errors())
                ]
                raise ValidationError("Validation failed", errors=errors)
        return fields


# ============================================================
# AUTH / USER SCHEMAS
# ============================================================

class RegisterRequest(CamelModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: Annotated[str, Field(min_length=6), AfterValidator(check_password_strength)]
    role: RegisterRole = RegisterRole.applicant
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    company: Optional[str] = Field(None, max_length=100)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class ProfileUpdate(UpdateCommand):
    nullable_fields = frozenset({"phone", "company"})

    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    company: Optional[str] = Field(None, max_length=100)


class PasswordChange(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: Annotated[str, Field(min_length=6), AfterValidator(check_password_strength)]


class UserAdminUpdate(ProfileUpdate):
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class TokenResponse(BaseModel):
    success: bool = True
    token: str
    token_type: str = "bearer"
    user: dict


# ============================================================
# JOB SCHEMAS
# ============================================================

class ExperienceRange(CamelModel):
    min: int = Field(0, ge=0)
    max: int = Field(10, ge=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.max < self.min:
            raise ValueError("Maximum experience must be greater than or equal to minimum experience")
        return self


class SalaryRange(CamelModel):
    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)
    currency: Currency = Currency.USD
    period: SalaryPeriod = SalaryPeriod.yearly

    @model_validator(mode="after")
    def check_range(self):
        if self.min is not None and self.max is not None and self.max < self.min:
            raise ValueError("Maximum salary must be greater than or equal to minimum salary")
        return self


class ExperienceRangeUpdate(UpdateCommand):
    min: Optional[int] = Field(None, ge=0)
    max: Optional[int] = Field(None, ge=0)


class SalaryRangeUpdate(UpdateCommand):
    nullable_fields = frozenset({"min", "max"})

    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)
    currency: Optional[Currency] = None
    period: Optional[SalaryPeriod] = None


DEADLINE_MESSAGE = "Application deadline must be in the future"


class JobCreate(CamelModel):
    title: str = Field(..., min_length=3, max_length=100)
    company: str = Field(..., min_length=2, max_length=100)
    description: str = Field(..., min_length=50, max_length=5000)
    requirements: List[str] = []
    responsibilities: List[str] = []
    skills: List[str] = []
    benefits: List[str] = []
    tags: List[str] = []
    location: str = Field(..., min_length=2, max_length=100)
    type: JobType
    category: JobCategory
    experience: ExperienceRange = Field(default_factory=ExperienceRange)
    salary: SalaryRange = Field(default_factory=SalaryRange)
    application_deadline: UTCDateTime
    status: JobStatus = JobStatus.active
    priority: JobPriority = JobPriority.medium
    featured: bool = False
    remote: bool = False

    @field_validator("application_deadline")
    @classmethod
    def deadline_in_future(cls, v: datetime) -> datetime:
        return must_be_future(v, DEADLINE_MESSAGE)


class JobUpdate(UpdateCommand):
    nested_models = {"experience": ExperienceRange, "salary": SalaryRange}

    title: Optional[str] = Field(None, min_length=3, max_length=100)
    company: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, min_length=50, max_length=5000)
    requirements: Optional[List[str]] = None
    responsibilities: Optional[List[str]] = None
    skills: Optional[List[str]] = None
    benefits: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    location: Optional[str] = Field(None, min_length=2, max_length=100)
    type: Optional[JobType] = None
    category: Optional[JobCategory] = None
    experience: Optional[ExperienceRangeUpdate] = None
    salary: Optional[SalaryRangeUpdate] = None
    application_deadline: Optional[UTCDateTime] = None
    status: Optional[JobStatus] = None
    priority: Optional[JobPriority] = None
    featured: Optional[bool] = None
    remote: Optional[bool] = None

    @field_validator("application_deadline")
    @classmethod
    def deadline_in_future(cls, v: Optional[datetime]) -> Optional[datetime]:
        return must_be_future(v, DEADLINE_MESSAGE)


class JobStatusUpdate(CamelModel):
    status: JobStatus


# ============================================================
# APPLICATION SCHEMAS
# ============================================================

class CustomAnswer(CamelModel):
    question: str
    answer: str = ""
    required: bool = False


class CreateApplicationCommand(CamelModel):
    job_id: ObjectIdStr
    cover_letter: str = Field("", max_length=2000)
    custom_answers: List[CustomAnswer] = []

    @field_validator("custom_answers", mode="before")
    @classmethod
    def decode_answers(cls, v):
        # Multipart forms carry the answers as a JSON string
        if v is None or v == "":
            return []
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                raise ValueError("Custom answers must be a JSON array")
        return v


class ExpectedSalary(CamelModel):
    amount: Optional[float] = Field(None, ge=0)
    currency: Currency = Currency.USD


class ExpectedSalaryUpdate(UpdateCommand):
    nullable_fields = frozenset({"amount"})

    amount: Optional[float] = Field(None, ge=0)
    currency: Optional[Currency] = None


class ApplicationUpdate(UpdateCommand):
    nullable_fields = frozenset({"available_from", "notice_period", "rejection_reason", "withdrawal_reason"})
    nested_models = {"expectedSalary": ExpectedSalary}

    cover_letter: Optional[str] = Field(None, max_length=2000)
    expected_salary: Optional[ExpectedSalaryUpdate] = None
    available_from: Optional[UTCDateTime] = None
    notice_period: Optional[NoticePeriod] = None
    willing_to_relocate: Optional[bool] = None
    custom_answers: Optional[List[CustomAnswer]] = None
    status: Optional[ApplicationStatus] = None
    rejection_reason: Optional[str] = None
    withdrawal_reason: Optional[str] = None


class ApplicationStatusUpdate(CamelModel):
    status: ApplicationStatus
    reason: Optional[str] = Field(None, max_length=500)


class BulkStatusUpdate(CamelModel):
    application_ids: List[ObjectIdStr] = Field(..., min_length=1, max_length=100)
    status: ApplicationStatus
    reason: Optional[str] = Field(None, max_length=500)


class NoteCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=1000)
    is_private: Optional[bool] = None


class ApplicationRating(CamelModel):
    technical: Optional[int] = Field(None, ge=1, le=5)
    communication: Optional[int] = Field(None, ge=1, le=5)
    cultural: Optional[int] = Field(None, ge=1, le=5)
    overall: Optional[int] = Field(None, ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=2000)


class ScreeningAnalysis(CamelModel):
    strengths: List[str] = []
    weaknesses: List[str] = []
    recommendations: List[str] = []


class ScreeningScore(CamelModel):
    """Result produced by an external screening service, stored as-is."""

    overall: float = Field(..., ge=0, le=100)
    skills_match: Optional[float] = Field(None, ge=0, le=100)
    experience_match: Optional[float] = Field(None, ge=0, le=100)
    education_match: Optional[float] = Field(None, ge=0, le=100)
    analysis: ScreeningAnalysis = Field(default_factory=ScreeningAnalysis)


# ============================================================
# INTERVIEW SCHEMAS
# ============================================================

INTERVIEW_DATE_MESSAGE = "Interview date must be in the future"


class InterviewCreate(CamelModel):
    application_id: ObjectIdStr
    interviewer_id: Optional[ObjectIdStr] = None
    type: InterviewType
    round: int = Field(1, ge=1)
    scheduled_date: UTCDateTime
    duration: int = Field(60, ge=15, le=480)
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("scheduled_date")
    @classmethod
    def date_in_future(cls, v: datetime) -> datetime:
        return must_be_future(v, INTERVIEW_DATE_MESSAGE)


class InterviewUpdate(UpdateCommand):
    nullable_fields = frozenset({"location", "meeting_link", "notes"})

    type: Optional[InterviewType] = None
    round: Optional[int] = Field(None, ge=1)
    scheduled_date: Optional[UTCDateTime] = None
    duration: Optional[int] = Field(None, ge=15, le=480)
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("scheduled_date")
    @classmethod
    def date_in_future(cls, v: Optional[datetime]) -> Optional[datetime]:
        return must_be_future(v, INTERVIEW_DATE_MESSAGE)


class InterviewStatusUpdate(CamelModel):
    status: InterviewStatus
    cancellation_reason: Optional[str] = Field(None, max_length=500)


class InterviewReschedule(CamelModel):
    scheduled_date: UTCDateTime
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("scheduled_date")
    @classmethod
    def date_in_future(cls, v: datetime) -> datetime:
        return must_be_future(v, INTERVIEW_DATE_MESSAGE)


class FeedbackEntry(CamelModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comments: Optional[str] = Field(None, max_length=2000)


class OverallFeedback(FeedbackEntry):
    recommendation: Optional[Recommendation] = None


class InterviewFeedback(CamelModel):
    technical: Optional[FeedbackEntry] = None
    communication: Optional[FeedbackEntry] = None
    problem_solving: Optional[FeedbackEntry] = None
    cultural: Optional[FeedbackEntry] = None
    overall: Optional[OverallFeedback] = None


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True
