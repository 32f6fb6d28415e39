from fastapi import Depends, Header, HTTPException, Request, status

from immersive_planner.core import messages
from immersive_planner.core.security import get_current_user
from immersive_planner.services.ai_tools import AIToolServer
from immersive_planner.services.plan_sessions import PlanSession, PlanSessionRegistry
from immersive_planner.services.plan_state import PlanLoadError


def get_tool_server(request: Request) -> AIToolServer:
    return request.app.state.tool_server


def get_registry(request: Request) -> PlanSessionRegistry:
    return request.app.state.registry


def get_client_id(x_client_id: str = Header(default="default")) -> str:
    return x_client_id.strip() or "default"


async def get_plan_session(
    user_id: str = Depends(get_current_user),
    client_id: str = Depends(get_client_id),
    registry: PlanSessionRegistry = Depends(get_registry),
) -> PlanSession:
    try:
        return await registry.get(user_id, client_id)
    except PlanLoadError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=messages.LOAD_FAILED)
