from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from immersive_planner.api.deps import get_plan_session, get_tool_server
from immersive_planner.api.lesson_plan import PlanStateResponse
from immersive_planner.core.security import get_current_user
from immersive_planner.models.assistant import ChatMessage, SuggestionType
from immersive_planner.services.ai_tools import AIToolServer
from immersive_planner.services.field_interpreter import InterpreterBusyError
from immersive_planner.services.plan_sessions import PlanSession
from immersive_planner.services.suggestions import SuggestionGenerator
from immersive_planner.utils.field_paths import FieldPathError

router = APIRouter()

logger = logging.getLogger("assistant_api")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


# --- Request / Response Models ---
class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


class ChatResponse(BaseModel):
    transcript: List[ChatMessage]
    pending: bool
    error: Optional[str] = None
    state: Optional[PlanStateResponse] = None


class SuggestionRequest(BaseModel):
    field: str
    type: SuggestionType = SuggestionType.content
    context: Optional[str] = None
    currentSuggestion: str = ""
    message: Optional[str] = None


class SuggestionResponse(BaseModel):
    field: str
    suggestion: str


class AcceptSuggestionRequest(BaseModel):
    field: str
    value: str


# --- Field-update chat ---
@router.get("/assistant/field-chat", response_model=ChatResponse)
async def get_field_chat(session: PlanSession = Depends(get_plan_session)):
    interpreter = session.interpreter
    return ChatResponse(transcript=interpreter.transcript, pending=interpreter.pending, error=interpreter.error)


@router.post("/assistant/field-chat", response_model=ChatResponse, summary="Update plan fields from a chat message")
async def send_field_chat(req: ChatRequest, session: PlanSession = Depends(get_plan_session)):
    interpreter = session.interpreter
    try:
        result = await interpreter.send(req.message)
    except InterpreterBusyError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A request is already in progress")
    return ChatResponse(
        transcript=interpreter.transcript,
        pending=interpreter.pending,
        error=result.error,
        state=PlanStateResponse.from_manager(session.manager),
    )


# --- Suggestions ---
def _generator(session: PlanSession, tools: AIToolServer, field: str, **kwargs) -> SuggestionGenerator:
    try:
        return SuggestionGenerator(session.manager, tools, field, **kwargs)
    except FieldPathError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.post("/assistant/suggestions", response_model=SuggestionResponse)
async def generate_suggestion(
    req: SuggestionRequest,
    session: PlanSession = Depends(get_plan_session),
    tools: AIToolServer = Depends(get_tool_server),
):
    generator = _generator(session, tools, req.field, suggestion_type=req.type, context=req.context)
    generator.suggestion = req.currentSuggestion
    text = await generator.generate(req.message)
    if text is None:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=generator.error)
    return SuggestionResponse(field=req.field, suggestion=text)


@router.post("/assistant/suggestions/accept", response_model=PlanStateResponse)
async def accept_suggestion(
    req: AcceptSuggestionRequest,
    session: PlanSession = Depends(get_plan_session),
    tools: AIToolServer = Depends(get_tool_server),
):
    generator = _generator(session, tools, req.field)
    if not await generator.accept(req.value):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=generator.error)
    return PlanStateResponse.from_manager(session.manager)


# --- Raw tool access ---
@router.get("/tools")
async def list_tools(user_id: str = Depends(get_current_user), tools: AIToolServer = Depends(get_tool_server)):
    return {"server": tools.name, "tools": tools.list_tools()}


@router.post("/tools/{server_name}/{tool_name}")
async def invoke_tool(
    server_name: str,
    tool_name: str,
    arguments: Dict[str, Any],
    user_id: str = Depends(get_current_user),
    tools: AIToolServer = Depends(get_tool_server),
):
    logger.info(f"Tool {server_name}/{tool_name} invoked by {user_id}")
    return await tools.invoke_tool(server_name, tool_name, arguments)
