"""
Data Schemas for CineReview

Each Pydantic model below is one collection of the persisted snapshot
(movies, users) or a value exchanged over the API. Attribute names are
snake_case; the wire format is camelCase, and both spellings are accepted
on input.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

Status = Literal["draft", "published"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MovieRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: int = Field(..., ge=1)
    title: str
    slug: str = ""
    genre: str = ""
    rating: float = Field(0.0, ge=0, le=10)
    year: Optional[int] = None
    director: str = ""
    duration: str = ""
    poster: Optional[str] = None
    description: str = ""
    review: str = ""
    reviewer: str = ""
    reviewer_title: str = Field("", alias="reviewerTitle")
    reviewer_email: Optional[str] = Field(None, alias="reviewerEmail")
    published_at: datetime = Field(default_factory=utcnow, alias="publishedAt")
    status: Status = "draft"
    tags: List[str] = Field(default_factory=list)
    featured: bool = False
    views: int = Field(0, ge=0)
    likes: int = Field(0, ge=0)
    meta_description: str = Field("", alias="metaDescription")
    meta_keywords: List[str] = Field(default_factory=list, alias="metaKeywords")

    @field_validator("year", mode="before")
    @classmethod
    def blank_year(cls, value):
        # html forms send "" for an untouched number input
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("tags", "meta_keywords", mode="before")
    @classmethod
    def list_from_json_text(cls, value):
        # older data files hold form values as stored, e.g. tags='["a"]'
        if isinstance(value, str):
            if not value.strip():
                return []
            try:
                return json.loads(value)
            except ValueError:
                return value
        return value

    @field_validator("published_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def field_name(cls, key: str) -> Optional[str]:
        """Resolve a wire (camelCase) or attribute name to the attribute name."""
        for name, info in cls.model_fields.items():
            if key == name or key == info.alias:
                return name
        return None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class UserRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    email: EmailStr = Field(..., description="Unique login identity")
    password: str = Field(..., description="Bcrypt hash")
    role: str = Field("viewer", description="Role: admin | viewer")
    name: str = ""
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    def public(self) -> Dict[str, Any]:
        return {"id": self.id, "email": self.email, "name": self.name, "role": self.role}


class Identity(BaseModel):
    """Decoded token claims bound to an authenticated request."""
    id: int
    email: str
    role: str


class LoginPayload(BaseModel):
    # any string; an unknown or malformed address is just a failed login
    email: str
    password: str


class PageInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(..., alias="currentPage")
    total_pages: int = Field(..., alias="totalPages")
    total_movies: int = Field(..., alias="totalMovies")
    has_next_page: bool = Field(..., alias="hasNextPage")
    has_prev_page: bool = Field(..., alias="hasPrevPage")
    limit: int

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Snapshot(BaseModel):
    """Whole persisted dataset, written wholesale after every mutation."""
    movies: List[MovieRecord] = Field(default_factory=list)
    users: List[UserRecord] = Field(default_factory=list)
    reviews: List[Dict[str, Any]] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
