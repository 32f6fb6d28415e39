# services/ai_tools.py
"""
The assistant's tool endpoint.

invoke_tool(server_name, tool_name, arguments) returns either
    {"content": [{"type": "text", "text": ...}]}
or
    {"error": "..."}
and never raises, so callers can treat every failure as a message.
"""

import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from immersive_planner.core import messages
from immersive_planner.models.assistant import (
    GenerateSuggestionArgs,
    SuggestionType,
    ToolContent,
    ToolResult,
    UpdateLessonFieldArgs,
)
from immersive_planner.services.ai_providers import AIProvider
from immersive_planner.utils.ai_client import AIClientError, AIConnectionError, AIQuotaError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SERVER_NAME = "ai-server"
GENERATE_SUGGESTION = "generate_suggestion"
UPDATE_LESSON_FIELD = "update_lesson_field"

QUOTA_ERROR_PREFIX = "quota_exceeded"
NETWORK_ERROR_PREFIX = "network_error"


# -------------------------
# Prompt builders
# -------------------------
_SUGGESTION_INSTRUCTIONS = {
    SuggestionType.topic: "הצע נושא יחידה מתאים שיתאים להוראה בחדר אימרסיבי.",
    SuggestionType.content: "הצע תיאור מפורט לפעילות לימודית שתתאים לחדר אימרסיבי.",
    SuggestionType.goals: "הצע מטרות למידה ספציפיות ומדידות.",
    SuggestionType.duration: "הצע משך זמן מתאים לפעילות זו, תוך התחשבות באופי הפעילות וקהל היעד.",
    SuggestionType.activity: "הצע פעילות לימודית שתנצל את היכולות הייחודיות של החדר האימרסיבי.",
}


def build_suggestion_prompt(args: GenerateSuggestionArgs) -> str:
    prompt = f"""בהתבסס על ההקשר הבא: "{args.context}"
והתוכן הנוכחי: "{args.currentValue or 'ריק'}"

"""
    prompt += _SUGGESTION_INSTRUCTIONS.get(args.type, "הצע שיפור או חלופה לתוכן הנוכחי.")
    if args.message:
        prompt += f'\n\nבקשת המשתמש: "{args.message}"\nעדכן את ההצעה בהתאם לבקשה והחזר רק את הטקסט המעודכן.'
    return prompt


def build_field_update_prompt(args: UpdateLessonFieldArgs) -> str:
    fields = "\n".join(
        f'- "{field_id}" ({label}): ערך נוכחי "{args.currentValues.get(field_id, "")}"'
        for field_id, label in args.fieldLabels.items()
    )
    return f"""You update fields of a lesson plan for an immersive classroom.

Available fields (identifier, label, current value):
{fields}

Screen fields accept only: video, image, padlet, website, genially.
Space usage fields ("spaceUsage") accept only: whole, groups, individual, mixed.

User request: "{args.message}"

Return ONLY JSON, no extra text. Return a JSON object, or a JSON array of objects
when several fields must change, each with exactly these keys:
{{
  "fieldToUpdate": "one of the field identifiers above",
  "userResponse": "a short confirmation for the user, in Hebrew",
  "newValue": "the new value for the field"
}}
"""


def _text_result(text: str) -> Dict[str, Any]:
    return ToolResult(content=[ToolContent(type="text", text=text)]).model_dump()


class AIToolServer:
    def __init__(self, provider: AIProvider, name: str = SERVER_NAME):
        self.provider = provider
        self.name = name

    def list_tools(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": GENERATE_SUGGESTION,
                "description": "Generate an AI suggestion for lesson plan content",
                "inputSchema": GenerateSuggestionArgs.model_json_schema(),
            },
            {
                "name": UPDATE_LESSON_FIELD,
                "description": "Turn a chat request into lesson plan field updates",
                "inputSchema": UpdateLessonFieldArgs.model_json_schema(),
            },
        ]

    async def invoke_tool(self, server_name: str, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        if server_name != self.name:
            return {"error": f"Unknown server: {server_name}"}

        try:
            if tool_name == GENERATE_SUGGESTION:
                prompt = build_suggestion_prompt(GenerateSuggestionArgs.model_validate(arguments or {}))
            elif tool_name == UPDATE_LESSON_FIELD:
                prompt = build_field_update_prompt(UpdateLessonFieldArgs.model_validate(arguments or {}))
            else:
                return {"error": f"Unknown tool: {tool_name}"}
        except ValidationError as e:
            logger.warning("Invalid arguments for %s: %s", tool_name, e)
            return {"error": f"Invalid arguments for {tool_name}"}

        try:
            text = await self.provider.generate_completion(prompt)
        except AIQuotaError as e:
            logger.error("AI provider quota error in %s: %s", tool_name, e)
            return {"error": f"{QUOTA_ERROR_PREFIX}: {e}"}
        except AIConnectionError as e:
            logger.error("AI provider unreachable in %s: %s", tool_name, e)
            return {"error": f"{NETWORK_ERROR_PREFIX}: {e}"}
        except AIClientError as e:
            logger.error("AI provider error in %s: %s", tool_name, e)
            return {"error": str(e)}

        logger.info("%s returned %d characters", tool_name, len(text))
        return _text_result(text)


def tool_result_text(result: Dict[str, Any]) -> str:
    """First text item of a successful tool result ("" when there is none)."""
    content = result.get("content") or []
    if not content:
        return ""
    return (content[0] or {}).get("text") or ""


# -------------------------
# Caller-side helpers
# -------------------------
class ToolCallError(Exception):
    """A tool call that failed; user_message is what the chat shows."""

    def __init__(self, user_message: str, detail: str = ""):
        super().__init__(detail or user_message)
        self.user_message = user_message


def localize_tool_error(raw: str, default: str = messages.SEND_FAILED) -> str:
    lowered = (raw or "").lower()
    if lowered.startswith(QUOTA_ERROR_PREFIX) or "quota" in lowered or "rate limit" in lowered:
        return messages.QUOTA_EXCEEDED
    if lowered.startswith(NETWORK_ERROR_PREFIX):
        return messages.NETWORK_ERROR
    return default
