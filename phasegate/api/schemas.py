"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Request and response models for the edit webhook, issue log and admin registry.
"""

from pydantic import BaseModel, field_validator
from typing import Any, List, Optional
from datetime import datetime


class EditEventRequest(BaseModel):
    collection: str
    row_id: int
    field: str
    prior_value: Optional[Any] = None
    actor: Optional[str] = None

    @field_validator('collection')
    @classmethod
    def collection_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('collection cannot be empty')
        return v.strip()

    @field_validator('field')
    @classmethod
    def field_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('field cannot be empty')
        return v.strip()

    @field_validator('row_id')
    @classmethod
    def row_id_must_be_positive(cls, v):
        if v < 1:
            raise ValueError('row_id must be >= 1')
        return v


class EditOutcomeResponse(BaseModel):
    collection: str
    row_id: int
    field: str
    action: str
    handled: bool
    writes: int
    detail: Optional[str] = None


class IssueResponse(BaseModel):
    id: int
    label: str
    subject_key: str
    category: str
    details: str
    resolved: bool
    created_at: datetime


class IssueListResponse(BaseModel):
    issues: List[IssueResponse]


class ResolveResponse(BaseModel):
    success: bool
    id: int


class AdminListResponse(BaseModel):
    admins: List[str]


class AdminUpdateRequest(BaseModel):
    actor: str
    admins: List[str]

    @field_validator('admins')
    @classmethod
    def admins_must_not_be_empty(cls, v):
        if not [a for a in v if a.strip()]:
            raise ValueError('admins cannot be empty')
        return v


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    open_issues: int
    config_issues: List[str]
