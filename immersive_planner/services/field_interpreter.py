# services/field_interpreter.py
"""
Field-update chat.

Turns a free-text request ("change the unit topic to 'renewable energy'") into
validated field updates through the update_lesson_field tool, applies them to
the plan in one batch and saves once. A response that is malformed, or names a
field the plan does not have, is rejected as a whole; the plan is only touched
when every proposed update is valid.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from immersive_planner.core import messages
from immersive_planner.models.assistant import ChatMessage, FieldUpdateProposal
from immersive_planner.models.lesson_plan_model import SCALAR_FIELDS
from immersive_planner.services.ai_tools import (
    SERVER_NAME,
    UPDATE_LESSON_FIELD,
    ToolCallError,
    localize_tool_error,
    tool_result_text,
)
from immersive_planner.services.plan_state import (
    InvalidFieldUpdateError,
    PlanStateManager,
    UnknownFieldError,
)
from immersive_planner.utils.ai_client import extract_json_from_text
from immersive_planner.utils.field_paths import (
    FieldPathError,
    FieldUpdate,
    parse_field_update,
    section_field_labels,
    section_field_values,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

FIELD_LABELS: Dict[str, str] = {
    "topic": "נושא היחידה",
    "duration": "זמן כולל",
    "gradeLevel": "שכבת גיל",
    "priorKnowledge": "ידע קודם נדרש",
    "position": "מיקום בתוכן",
    "contentGoals": "מטרות ברמת התוכן",
    "skillGoals": "מטרות ברמת המיומנויות",
}


class InterpreterBusyError(RuntimeError):
    pass


@dataclass
class InterpreterResult:
    applied: List[FieldUpdate] = field(default_factory=list)
    replies: List[str] = field(default_factory=list)
    error: Optional[str] = None


class FieldUpdateInterpreter:
    def __init__(self, manager: PlanStateManager, tools, server_name: str = SERVER_NAME):
        self.manager = manager
        self.tools = tools
        self.server_name = server_name
        self.transcript: List[ChatMessage] = []
        self.pending = False
        self.error: Optional[str] = None

    def field_labels(self) -> Dict[str, str]:
        labels = dict(FIELD_LABELS)
        labels.update(section_field_labels(self.manager.require_plan().sections))
        return labels

    def current_values(self) -> Dict[str, str]:
        plan = self.manager.require_plan()
        values = {name: getattr(plan, name) for name in SCALAR_FIELDS}
        values.update(section_field_values(plan.sections))
        return values

    async def send(self, message: str) -> InterpreterResult:
        if not message or not message.strip():
            return InterpreterResult()
        if self.pending:
            raise InterpreterBusyError("A request is already in progress")

        self.transcript.append(ChatMessage(text=message, sender="user"))
        self.pending = True
        self.error = None
        try:
            return await self._handle(message)
        except ToolCallError as e:
            logger.warning(f"Field update rejected: {e}")
            self.error = e.user_message
            self.transcript.append(ChatMessage(text=e.user_message, sender="ai"))
            return InterpreterResult(error=e.user_message)
        finally:
            self.pending = False

    async def _handle(self, message: str) -> InterpreterResult:
        labels = self.field_labels()
        result = await self.tools.invoke_tool(
            self.server_name,
            UPDATE_LESSON_FIELD,
            {"message": message, "fieldLabels": labels, "currentValues": self.current_values()},
        )
        if "error" in result:
            raise ToolCallError(localize_tool_error(result["error"]), result["error"])

        text = tool_result_text(result)
        if not text:
            raise ToolCallError(messages.NO_RESPONSE)

        proposals = self._parse_proposals(text, labels)
        try:
            updates = [parse_field_update(p.fieldToUpdate, p.newValue) for p in proposals]
            self.manager.apply_updates(updates)
        except (FieldPathError, UnknownFieldError, InvalidFieldUpdateError) as e:
            raise ToolCallError(messages.INVALID_RESPONSE, str(e))

        replies = [p.userResponse or messages.field_updated(labels[p.fieldToUpdate]) for p in proposals]
        for reply in replies:
            self.transcript.append(ChatMessage(text=reply, sender="ai"))
        logger.info(f"Applied {len(updates)} field update(s): {[p.fieldToUpdate for p in proposals]}")

        if not await self.manager.save() and self.manager.error:
            self.transcript.append(ChatMessage(text=self.manager.error, sender="ai"))
        return InterpreterResult(applied=updates, replies=replies)

    @staticmethod
    def _parse_proposals(text: str, labels: Dict[str, str]) -> List[FieldUpdateProposal]:
        try:
            data: Any = extract_json_from_text(text)
        except ValueError:
            raise ToolCallError(messages.NO_JSON_FOUND, text[:200])

        items = data if isinstance(data, list) else [data]
        if not items or not all(isinstance(item, dict) for item in items):
            raise ToolCallError(messages.INVALID_RESPONSE, text[:200])

        try:
            proposals = [FieldUpdateProposal.model_validate(item) for item in items]
        except ValidationError as e:
            raise ToolCallError(messages.INVALID_RESPONSE, str(e))

        unknown = [p.fieldToUpdate for p in proposals if p.fieldToUpdate not in labels]
        if unknown:
            raise ToolCallError(messages.UNKNOWN_FIELD, f"Unknown fields: {unknown}")
        return proposals
