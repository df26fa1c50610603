from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# --- Identity ---
class GoogleIdentity(BaseModel):
    """Profile returned by the Google userinfo endpoint."""

    id: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None
    verified_email: bool = False

    @field_validator("id", "email")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    hashkey: str
    username: str
    email: str
    google_id: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    verified_email: Optional[bool] = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Shape of the user block handed to the browser (mirrors the token claims)
class SessionUser(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    verified_email: Optional[bool] = None
    userId: Optional[int] = None
    hashkey: Optional[str] = None


class SessionUserResponse(BaseModel):
    user: SessionUser


class RefreshTokenResponse(BaseModel):
    success: bool = True
    message: str = "Token refreshed successfully"
    user: SessionUser


class MessageResponse(BaseModel):
    message: str


# --- Extracted survey (untrusted model output) ---
class ExtractedOption(BaseModel):
    option_letter: str
    option_text: str

    @field_validator("option_letter")
    @classmethod
    def single_letter(cls, v: str) -> str:
        letter = v.strip().upper()
        if len(letter) != 1 or not ("A" <= letter <= "Z"):
            raise ValueError("option_letter must be a single letter A-Z")
        return letter


class ExtractedQuestion(BaseModel):
    question_text: str
    options: List[ExtractedOption]

    @field_validator("question_text")
    @classmethod
    def text_present(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("question_text must not be empty")
        return v.strip()

    @model_validator(mode="after")
    def unique_letters(self):
        letters = [o.option_letter for o in self.options]
        if len(letters) != len(set(letters)):
            raise ValueError("option letters must be unique within a question")
        return self


class ExtractedSurvey(BaseModel):
    title: str
    description: str = ""
    questions: List[ExtractedQuestion]

    @field_validator("title")
    @classmethod
    def title_present(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be empty")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def description_default(cls, v):
        return v if v is not None else ""


# --- Survey output ---
class AnswerOptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    question_id: int
    option_letter: str
    option_text: str
    option_value: int
    created_at: Optional[datetime] = None


class QuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    survey_id: int
    question_number: int
    question_text: str
    question_type: str
    is_required: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    options: List[AnswerOptionOut] = Field(default_factory=list)


class SurveyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    hashkey: str
    title: str
    description: str
    creator_id: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SurveyDetailOut(SurveyOut):
    questions: List[QuestionOut] = Field(default_factory=list)


class SurveyUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("title must not be empty")
        return v.strip() if v is not None else v


class CreateSurveyResponse(BaseModel):
    success: bool = True
    userHashkey: str
    surveyId: int
    surveyHashkey: str


class UserSurveysResponse(BaseModel):
    success: bool = True
    surveys: List[SurveyOut]
    count: int


class DashboardResponse(UserSurveysResponse):
    hashkey: str


class DeactivateSurveyResponse(BaseModel):
    success: bool = True
    surveyId: int
