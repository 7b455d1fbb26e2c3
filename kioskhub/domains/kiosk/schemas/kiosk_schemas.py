"""Kiosk DTOs and schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from kioskhub.domains.kiosk.constants import CODE_SCOPE_ROLE


class KioskCodeCreate(BaseModel):
    role_id: str = Field(min_length=1, max_length=64)
    scope: str = Field(default=CODE_SCOPE_ROLE, max_length=16)
    owner_name: Optional[str] = Field(default=None, max_length=255)
    group_id: Optional[str] = Field(default=None, max_length=64)
    person_id: Optional[str] = Field(default=None, max_length=64)
    expires_in_minutes: Optional[int] = Field(default=None, ge=1, le=1440)
    session_duration_days: Optional[int] = Field(default=None, ge=1, le=365)
    word_count: Optional[int] = Field(default=None, ge=2, le=3)


class KioskCodeValidate(BaseModel):
    code: str = Field(min_length=1, max_length=128)


class KioskSessionCreate(BaseModel):
    code: str = Field(min_length=1, max_length=128)
    device_id: str = Field(min_length=1, max_length=128)


class KioskSessionTerminate(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=255)


class KioskCodeResponse(BaseModel):
    id: int
    code: str
    owner_role_id: str
    scope: str
    group_id: Optional[str]
    person_id: Optional[str]
    status: str
    created_at: datetime
    expires_at: datetime
    session_duration_days: int
    used_at: Optional[datetime] = None
    active_sessions: int = 0


class KioskSessionResponse(BaseModel):
    id: str
    code_id: int
    device_id: str
    started_at: datetime
    last_active_at: datetime
    expires_at: datetime
    ended_at: Optional[datetime] = None
    termination_reason: Optional[str] = None


class CompletionCreate(BaseModel):
    task_id: int
    person_id: str = Field(min_length=1, max_length=64)
    reset_date: datetime
    # Strings and numbers are both accepted; the recorder validates the amount.
    value: Optional[str] = Field(default=None, max_length=32)
    notes: Optional[str] = Field(default=None, max_length=2048)

    @model_validator(mode="before")
    @classmethod
    def _stringify_value(cls, data):
        if isinstance(data, dict) and isinstance(data.get("value"), (int, float)) and not isinstance(
            data.get("value"), bool
        ):
            data = dict(data)
            data["value"] = str(data["value"])
        return data


class CompletionResponse(BaseModel):
    id: int
    task_id: int
    person_id: str
    completed_at: datetime
    value: Optional[str]
    entry_number: int
    notes: Optional[str]


class TaskStatusResponse(BaseModel):
    task_id: int
    type: str
    is_complete: bool
    completion_count: int
    progress: Optional[int] = None
    total_value: Optional[float] = None
    completion_id: Optional[int] = None
    can_undo: bool = False
    remaining_seconds: int = 0


class KioskSettingsResponse(BaseModel):
    inactivity_timeout_ms: int
    undo_window_minutes: int
    code_expires_minutes: int
    session_duration_days: int

