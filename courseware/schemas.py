from datetime import datetime
from typing import Any, List, Optional, Union

from fastapi_users import schemas
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import UserType


# =========================
# USER SCHEMAS
# =========================
class UserRead(schemas.BaseUser[int]):
    username: Optional[str] = None
    user_type: UserType = UserType.Student
    taken_courses: Optional[List[int]] = None


class UserCreate(schemas.BaseUserCreate):
    username: Optional[str] = None


class UserUpdate(schemas.BaseUserUpdate):
    username: Optional[str] = None


class UserSummary(BaseModel):
    id: int
    username: Optional[str] = None
    email: str
    user_type: UserType
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserTypeUpdate(BaseModel):
    user_type: UserType


# =========================
# DATA API
# =========================
class DataWritePayload(BaseModel):
    data: Union[dict[str, Any], List[Any]]

    @field_validator("data")
    @classmethod
    def _not_empty(cls, value):
        if not value:
            raise ValueError("data must not be empty")
        return value


# =========================
# PROGRESS
# =========================
class CompletionPayload(BaseModel):
    slug: str = Field(min_length=1)
    chapter_id: str = Field(min_length=1)
    topics: List[str] = Field(default_factory=list)


class QuizResultPayload(BaseModel):
    slug: str = Field(min_length=1)
    total_answers: int = Field(ge=0)
    correct_answers: int = Field(ge=0)


# =========================
# COURSE MIRROR
# =========================
class CourseRead(BaseModel):
    id: int
    slug: str
    title: str
    description: Optional[str] = None
    chapters_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class ChapterRead(BaseModel):
    id: int
    course_id: int
    course_title: Optional[str] = None
    slug: str
    title: str
    position: int
    topics_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class TopicRead(BaseModel):
    id: int
    chapter_id: int
    course_title: Optional[str] = None
    slug: str
    title: str
    position: int

    model_config = ConfigDict(from_attributes=True)
