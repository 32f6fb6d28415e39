"""Shared fixtures: in-memory stores, a scripted tool server and an API client."""

from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest
from httpx import ASGITransport, AsyncClient

from immersive_planner.api.deps import get_registry, get_tool_server
from immersive_planner.core.security import create_access_token
from immersive_planner.main import app
from immersive_planner.services.lesson_store import InMemoryLessonPlanStore
from immersive_planner.services.plan_sessions import PlanSessionRegistry, session_store_factory
from immersive_planner.services.plan_state import PlanStateManager
from immersive_planner.services.session_store import InMemorySessionStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


class ScriptedToolServer:
    """Stands in for AIToolServer; returns queued results in order."""

    name = "ai-server"

    def __init__(self):
        self.results: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []

    def reply_text(self, text: str) -> None:
        self.results.append({"content": [{"type": "text", "text": text}]})

    def reply_json(self, data: Any) -> None:
        self.reply_text(json.dumps(data, ensure_ascii=False))

    def reply_error(self, error: str) -> None:
        self.results.append({"error": error})

    def list_tools(self):
        return []

    async def invoke_tool(self, server_name: str, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((server_name, tool_name, arguments))
        return self.results.pop(0)


@pytest.fixture
def lesson_store():
    return InMemoryLessonPlanStore()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def tools():
    return ScriptedToolServer()


@pytest.fixture
def load_manager():
    async def _load(lesson_store, session_store, user_id: str = "u1") -> PlanStateManager:
        manager = PlanStateManager(lesson_store, session_store)
        await manager.load(user_id)
        return manager

    return _load


@pytest.fixture
def registry(lesson_store, tools):
    return PlanSessionRegistry(lesson_store, tools, session_store_factory(""))


@pytest.fixture
def auth_headers():
    token = create_access_token({"sub": "u1"})
    return {"Authorization": f"Bearer {token}", "X-Client-Id": "browser-1"}


@pytest.fixture
async def async_client(registry, tools):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_tool_server] = lambda: tools
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
