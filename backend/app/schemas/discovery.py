# backend/app/schemas/discovery.py
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from ..models.discovery_job import DiscoveryStatus

MAX_PROJECT_NAME_LEN = 200
MAX_DESCRIPTION_LEN = 4000
MAX_ENTRY_POINT_LEN = 20000  # pasted transcripts can be long
MAX_DIAL_TARGET_LEN = 512
MAX_RESUME_INPUT_LEN = 64

InputType = Literal["phone", "sip", "text", "simulated"]
TestCaseStatus = Literal["draft", "approved", "disabled"]


class ProjectCreate(BaseModel):
    name: str
    description: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        if len(v) > MAX_PROJECT_NAME_LEN:
            raise ValueError(f"name must be at most {MAX_PROJECT_NAME_LEN} characters")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str):
            stripped = v.strip()
            return stripped or None
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_DESCRIPTION_LEN:
            raise ValueError(f"description must be at most {MAX_DESCRIPTION_LEN} characters")
        return v


class ProjectOut(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    platform: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DiscoveryRequest(BaseModel):
    entry_point: str
    input_type: InputType | None = None

    @field_validator("input_type", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str):
            stripped = v.strip().lower()
            return stripped or None
        return v

    @field_validator("entry_point")
    @classmethod
    def validate_entry_point(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("entry_point must not be empty")
        if len(v) > MAX_ENTRY_POINT_LEN:
            raise ValueError(
                f"entry_point is too long; maximum length is {MAX_ENTRY_POINT_LEN} characters"
            )
        return v

    @model_validator(mode="after")
    def validate_dial_target(self):
        # Only pasted transcripts may be long; anything dialed must look like an address
        if self.input_type != "text" and len(self.entry_point) > MAX_DIAL_TARGET_LEN:
            raise ValueError(
                f"entry_point must be at most {MAX_DIAL_TARGET_LEN} characters unless input_type is 'text'"
            )
        return self


class ResumeRequest(BaseModel):
    input: str

    @field_validator("input")
    @classmethod
    def validate_input(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("input must not be empty")
        if len(v) > MAX_RESUME_INPUT_LEN:
            raise ValueError(f"input must be at most {MAX_RESUME_INPUT_LEN} characters")
        return v


class DiscoveryJobOut(BaseModel):
    id: UUID
    project_id: UUID
    entry_point: str
    input_type: str | None = None
    status: DiscoveryStatus
    platform: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    waiting_for: str | None = None
    artifacts: dict | None = None

    model_config = ConfigDict(from_attributes=True)


class DiscoveryLogOut(BaseModel):
    id: int
    created_at: datetime
    message: str
    level: str

    model_config = ConfigDict(from_attributes=True)


class IvrNodeOut(BaseModel):
    id: int
    parent_id: int | None = None
    type: str
    label: str
    content: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="meta")
    fingerprint: str | None = None
    is_loop: bool = False
    linked_node_id: int | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TestCaseOut(BaseModel):
    __test__ = False

    id: int
    target_node_id: int | None = None
    title: str
    description: str | None = None
    steps: list[dict[str, Any]]
    status: str
    tags: list[str]

    model_config = ConfigDict(from_attributes=True)


class TestCaseStatusUpdate(BaseModel):
    __test__ = False

    status: TestCaseStatus

    @field_validator("status", mode="before")
    @classmethod
    def _normalize(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v
