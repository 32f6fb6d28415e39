from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

# Field names mirror the stored document keys (camelCase) so that a plan
# round-trips through the store and the browser without renaming.


class DisplayType(str, Enum):
    video = "video"
    image = "image"
    padlet = "padlet"
    website = "website"
    genially = "genially"


class SpaceUsage(str, Enum):
    whole = "whole"
    groups = "groups"
    individual = "individual"
    mixed = "mixed"


class Phase(str, Enum):
    opening = "opening"
    main = "main"
    summary = "summary"


SCALAR_FIELDS = (
    "topic",
    "duration",
    "gradeLevel",
    "priorKnowledge",
    "position",
    "contentGoals",
    "skillGoals",
)

IDENTITY_FIELDS = ("id", "userId", "created_at", "updated_at")

SCREEN_SLOTS = ("screen1", "screen2", "screen3")


def _enum_or_empty(value: Any, enum_cls) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        value = value.value
    value = str(value).strip()
    if value and value not in {e.value for e in enum_cls}:
        raise ValueError(f"'{value}' is not one of {[e.value for e in enum_cls]}")
    return value


class ScreenConfig(BaseModel):
    screen1: str = ""
    screen2: str = ""
    screen3: str = ""

    @field_validator("screen1", "screen2", "screen3", mode="before")
    @classmethod
    def validate_display_type(cls, v):
        return _enum_or_empty(v, DisplayType)


class LessonSection(BaseModel):
    content: str = ""
    screens: ScreenConfig = Field(default_factory=ScreenConfig)
    spaceUsage: str = ""

    @field_validator("spaceUsage", mode="before")
    @classmethod
    def validate_space_usage(cls, v):
        return _enum_or_empty(v, SpaceUsage)


class LessonSections(BaseModel):
    opening: List[LessonSection] = Field(default_factory=list)
    main: List[LessonSection] = Field(default_factory=list)
    summary: List[LessonSection] = Field(default_factory=list)

    class Config:
        extra = "forbid"  # only the three phases are valid keys

    def phase(self, phase) -> List[LessonSection]:
        return getattr(self, Phase(phase).value)


class LessonPlan(BaseModel):
    id: str
    userId: str
    topic: str = ""
    duration: str = ""
    gradeLevel: str = ""
    priorKnowledge: str = ""
    position: str = ""
    contentGoals: str = ""
    skillGoals: str = ""
    sections: LessonSections = Field(default_factory=LessonSections)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(*SCALAR_FIELDS, mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    def editable_payload(self) -> Dict[str, Any]:
        """Every field except identity and timestamps, JSON-ready."""
        return self.model_dump(mode="json", exclude=set(IDENTITY_FIELDS))


def empty_plan_fields(user_id: str) -> Dict[str, Any]:
    """Document body for a brand-new plan (no id / timestamps yet)."""
    fields = {name: "" for name in SCALAR_FIELDS}
    fields["userId"] = user_id
    fields["sections"] = LessonSections().model_dump(mode="json")
    return fields
