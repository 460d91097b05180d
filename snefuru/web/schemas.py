"""
Request schemas for the JSON API.

Field names follow what the dashboard sends (camelCase for the
generation job, snake_case for auth).
"""

import re
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, Field, ValidationInfo, field_validator

from ..infrastructure.llm import ImageModel
from ..infrastructure.storage import StorageService

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


def _check_email(value: str) -> str:
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Please enter a valid email address")
    return value


Email = Annotated[str, AfterValidator(_check_email)]


def _check_username(value: str) -> str:
    if len(value) < 3:
        raise ValueError("Username must be at least 3 characters")
    return value


def _check_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters")
    return value


Username = Annotated[str, AfterValidator(_check_username)]
Password = Annotated[str, AfterValidator(_check_password)]


class LoginRequest(BaseModel):
    email: Email
    password: Password
    remember_me: bool = False


class RegisterRequest(BaseModel):
    email: Email
    username: Username
    password: Password
    confirm_password: Password
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    terms_accepted: bool

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        if "password" in info.data and value != info.data["password"]:
            raise ValueError("Passwords do not match")
        return value

    @field_validator("terms_accepted")
    @classmethod
    def terms_must_be_accepted(cls, value: bool) -> bool:
        if not value:
            raise ValueError("You must accept the terms and conditions")
        return value


class ProfileUpdateRequest(BaseModel):
    """Every field optional; the password trio is checked by the route."""

    email: Optional[Email] = None
    username: Optional[Username] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[Password] = None
    confirm_new_password: Optional[str] = None


class WpCredentialsPayload(BaseModel):
    url: str = ""
    username: str = ""
    password: str = ""
    application_password: str = ""
    post_id: str = ""
    mapping_key: str = ""

    @field_validator("url")
    @classmethod
    def url_or_blank(cls, value: str) -> str:
        if value and not URL_PATTERN.match(value):
            raise ValueError("Invalid url")
        return value


class GenerateRequest(BaseModel):
    spreadsheetData: List[Dict[str, str]]
    aiModel: ImageModel
    storageService: StorageService
    wpCredentials: WpCredentialsPayload = Field(default_factory=WpCredentialsPayload)


class SpreadsheetParseRequest(BaseModel):
    data: str = ""


class BulkAddDomainsRequest(BaseModel):
    domains: List[str]

    @field_validator("domains")
    @classmethod
    def no_empty_domains(cls, value: List[str]) -> List[str]:
        if any(not domain.strip() for domain in value):
            raise ValueError("Domain cannot be empty")
        return value


class BulkDeleteDomainsRequest(BaseModel):
    domainIds: List[int] = Field(default_factory=list)


class IdListRequest(BaseModel):
    ids: List[int] = Field(default_factory=list)


class ChatRequest(BaseModel):
    message: Optional[str] = None
    model: str = "gpt-4o"
    conversationHistory: List[Dict[str, Any]] = Field(default_factory=list)
