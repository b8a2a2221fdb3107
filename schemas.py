"""
Request schemas.

Every JSON body accepted by the API is described here. Unknown fields are
rejected rather than silently dropped; query-string schemas ignore extras
(browsers and proxies append their own parameters).
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError
from models import CATEGORIES, MAX_BUDGET, MIN_BUDGET, ProjectStatus

Category = Literal[CATEGORIES]
CategoryFilter = Literal[CATEGORIES + ('all',)]

URL_PATTERN = r'^(https?://\S+)?$'


class Payload(BaseModel):
    model_config = ConfigDict(extra='forbid', str_strip_whitespace=True)


class Query(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)


# Auth

class RegisterPayload(Payload):
    email: str = Field(max_length=120)
    password: str = Field(min_length=6, max_length=30)
    full_name: str = Field(min_length=2, max_length=50)
    role: Literal['freelancer', 'client'] = 'freelancer'


class LoginPayload(Payload):
    email: str = Field(max_length=120)
    password: str = Field(min_length=1, max_length=100)


class OAuthLoginPayload(Payload):
    code: str = Field(min_length=1, max_length=500)


# Users

class ProfileUpdatePayload(Payload):
    full_name: Optional[str] = Field(None, min_length=2, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    skills: Optional[List[str]] = Field(None, max_length=20)
    location: Optional[str] = Field(None, max_length=100)
    category: Optional[Category] = None
    title: Optional[str] = Field(None, max_length=100)
    hourly_rate: Optional[float] = Field(None, ge=0, le=10000)
    experience: Optional[str] = Field(None, max_length=100)
    website: Optional[str] = Field(None, max_length=255, pattern=URL_PATTERN)
    telegram: Optional[str] = Field(None, max_length=50)
    github: Optional[str] = Field(None, max_length=50)
    avatar: Optional[str] = Field(None, max_length=500, pattern=URL_PATTERN)

    @field_validator('skills')
    @classmethod
    def _skill_length(cls, skills):
        return _check_skills(skills)


class FreelancerQuery(Query):
    category: Optional[CategoryFilter] = None
    search: str = Field('', max_length=100)
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


# Projects

class ProjectCreatePayload(Payload):
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=10, max_length=2000)
    category: Category
    budget: int = Field(ge=MIN_BUDGET, le=MAX_BUDGET)
    deadline: Optional[str] = Field('', max_length=100)
    skills: List[str] = Field(default_factory=list, max_length=10)

    @field_validator('skills')
    @classmethod
    def _skill_length(cls, skills):
        return _check_skills(skills)


class ProjectQuery(Query):
    category: Optional[CategoryFilter] = None
    search: str = Field('', max_length=100)
    status: ProjectStatus = ProjectStatus.OPEN
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


class ResponsePayload(Payload):
    proposal: Optional[str] = Field(None, max_length=1000)
    price: Optional[float] = Field(None, ge=0, le=MAX_BUDGET)
    timeline: Optional[str] = Field(None, max_length=100)


class ResponseStatusPayload(Payload):
    status: Literal['accepted', 'rejected']


# Chat

class ChatCreatePayload(Payload):
    project_id: int = Field(ge=1)
    freelancer_id: int = Field(ge=1)


class MessagePayload(Payload):
    text: str = Field(min_length=1, max_length=2000)
    type: Literal['text', 'file'] = 'text'
    file: Optional[Dict[str, Any]] = None


class MessagesQuery(Query):
    after_id: int = Field(0, ge=0)


def _check_skills(skills):
    if skills is None:
        return skills
    cleaned = []
    for skill in skills:
        skill = skill.strip()
        if not skill:
            continue
        if len(skill) > 50:
            raise ValueError('each skill must be at most 50 characters')
        cleaned.append(skill)
    return cleaned


def parse(schema, data):
    """Validate ``data`` against ``schema`` and return the model instance.

    Raises errors.ValidationError with one ``{field, message}`` entry per problem.
    """
    if data is None or not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        details = [
            {
                'field': '.'.join(str(part) for part in err['loc']) or None,
                'message': err['msg'],
            }
            for err in exc.errors()
        ]
        raise ValidationError('Validation failed', details=details) from None
