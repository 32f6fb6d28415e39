from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


class SuggestionType(str, Enum):
    topic = "topic"
    content = "content"
    goals = "goals"
    duration = "duration"
    activity = "activity"


class ChatMessage(BaseModel):
    text: str
    sender: Literal["user", "ai"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# -------------------------
# Tool arguments
# -------------------------
class GenerateSuggestionArgs(BaseModel):
    context: str
    currentValue: str
    type: SuggestionType
    message: Optional[str] = None


class UpdateLessonFieldArgs(BaseModel):
    message: str
    fieldLabels: Dict[str, str]
    currentValues: Dict[str, str] = Field(default_factory=dict)


class FieldUpdateProposal(BaseModel):
    """One item of the update_lesson_field response; all keys are required."""
    fieldToUpdate: str
    userResponse: str
    newValue: str

    @field_validator("userResponse", "newValue", mode="before")
    @classmethod
    def stringify_scalars(cls, v):
        # models sometimes answer "45" as 45
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


# -------------------------
# Tool results
# -------------------------
class ToolContent(BaseModel):
    type: str = "text"
    text: str


class ToolResult(BaseModel):
    content: List[ToolContent]
