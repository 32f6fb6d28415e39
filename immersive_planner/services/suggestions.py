# services/suggestions.py
import logging
from typing import Optional

from immersive_planner.core import messages
from immersive_planner.models.assistant import SuggestionType
from immersive_planner.services.ai_tools import (
    GENERATE_SUGGESTION,
    SERVER_NAME,
    localize_tool_error,
    tool_result_text,
)
from immersive_planner.services.plan_state import InvalidFieldUpdateError, PlanStateManager
from immersive_planner.utils.field_paths import ScalarFieldUpdate, parse_field_update, section_field_values

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class SuggestionGenerator:
    """
    Suggestion box for one field.

    generate() asks the assistant for a replacement text (optionally refined by
    a follow-up chat message); accept() writes it into the field and saves,
    discard() drops it. Nothing is kept between boxes except the visible text.
    """

    def __init__(
        self,
        manager: PlanStateManager,
        tools,
        field: str,
        suggestion_type: SuggestionType = SuggestionType.content,
        context: Optional[str] = None,
        server_name: str = SERVER_NAME,
    ):
        parse_field_update(field, "")  # raises FieldPathError for unknown fields
        self.manager = manager
        self.tools = tools
        self.field = field
        self.suggestion_type = SuggestionType(suggestion_type)
        self.context = context
        self.server_name = server_name
        self.suggestion = ""
        self.error: Optional[str] = None
        self.loading = False

    def current_value(self) -> str:
        plan = self.manager.require_plan()
        update = parse_field_update(self.field, "")
        if isinstance(update, ScalarFieldUpdate):
            return getattr(plan, update.name)
        return section_field_values(plan.sections).get(self.field, "")

    async def generate(self, message: Optional[str] = None) -> Optional[str]:
        self.loading = True
        self.error = None
        current = self.suggestion or self.current_value()
        arguments = {
            "context": self.context if self.context is not None else current,
            "currentValue": current,
            "type": self.suggestion_type.value,
        }
        if message:
            arguments["message"] = message
        try:
            result = await self.tools.invoke_tool(self.server_name, GENERATE_SUGGESTION, arguments)
        finally:
            self.loading = False

        if "error" in result:
            logger.warning(f"Suggestion for {self.field} failed: {result['error']}")
            self.error = localize_tool_error(result["error"], messages.SUGGESTION_FAILED)
            return None

        text = tool_result_text(result)
        if not text:
            self.error = messages.NO_SUGGESTION
            return None
        self.suggestion = text
        return text

    async def accept(self, text: Optional[str] = None) -> bool:
        """Write the (possibly user-edited) suggestion into the field, then save."""
        value = self.suggestion if text is None else text
        update = parse_field_update(self.field, value)
        try:
            if isinstance(update, ScalarFieldUpdate):
                self.manager.set_field(update.name, update.value)
            else:
                self.manager.apply_updates([update])
        except InvalidFieldUpdateError as e:
            logger.warning(f"Could not apply suggestion to {self.field}: {e}")
            self.error = messages.APPLY_FAILED
            return False

        # a save already in flight leaves the edit applied and dirty, not failed
        if not await self.manager.save() and not self.manager.saving:
            self.error = self.manager.error or messages.APPLY_FAILED
            return False
        self.discard()
        return True

    def discard(self) -> None:
        self.suggestion = ""
        self.error = None
