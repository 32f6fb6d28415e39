from unittest.mock import AsyncMock

import pytest

from immersive_planner.core import messages
from immersive_planner.models.assistant import GenerateSuggestionArgs, UpdateLessonFieldArgs
from immersive_planner.services.ai_tools import (
    GENERATE_SUGGESTION,
    UPDATE_LESSON_FIELD,
    AIToolServer,
    build_field_update_prompt,
    build_suggestion_prompt,
    localize_tool_error,
    tool_result_text,
)
from immersive_planner.utils.ai_client import AIClientError, AIConnectionError, AIQuotaError


@pytest.fixture
def provider():
    mock = AsyncMock()
    mock.generate_completion.return_value = "תשובה"
    return mock


def test_suggestion_prompt_includes_context_and_follow_up():
    prompt = build_suggestion_prompt(
        GenerateSuggestionArgs(context="שיעור על התא", currentValue="", type="activity", message="יותר קצר")
    )

    assert '"שיעור על התא"' in prompt
    assert '"ריק"' in prompt
    assert "החדר האימרסיבי" in prompt
    assert 'בקשת המשתמש: "יותר קצר"' in prompt


def test_field_update_prompt_lists_fields():
    prompt = build_field_update_prompt(
        UpdateLessonFieldArgs(
            message="change topic",
            fieldLabels={"topic": "נושא היחידה"},
            currentValues={"topic": "Cells"},
        )
    )

    assert '- "topic" (נושא היחידה): ערך נוכחי "Cells"' in prompt
    assert 'User request: "change topic"' in prompt
    assert '"fieldToUpdate"' in prompt


def test_list_tools():
    server = AIToolServer(AsyncMock())

    assert [t["name"] for t in server.list_tools()] == [GENERATE_SUGGESTION, UPDATE_LESSON_FIELD]


@pytest.mark.anyio
async def test_invoke_generate_suggestion(provider):
    server = AIToolServer(provider)

    result = await server.invoke_tool(
        "ai-server", GENERATE_SUGGESTION, {"context": "c", "currentValue": "v", "type": "content"}
    )

    assert result == {"content": [{"type": "text", "text": "תשובה"}]}
    assert tool_result_text(result) == "תשובה"
    prompt = provider.generate_completion.await_args.args[0]
    assert '"c"' in prompt and '"v"' in prompt


@pytest.mark.anyio
async def test_invoke_unknown_server_or_tool(provider):
    server = AIToolServer(provider)

    assert "error" in await server.invoke_tool("other", GENERATE_SUGGESTION, {})
    assert "error" in await server.invoke_tool("ai-server", "delete_everything", {})
    provider.generate_completion.assert_not_awaited()


@pytest.mark.anyio
async def test_invoke_with_invalid_arguments(provider):
    server = AIToolServer(provider)

    result = await server.invoke_tool("ai-server", UPDATE_LESSON_FIELD, {"message": "x"})

    assert result == {"error": f"Invalid arguments for {UPDATE_LESSON_FIELD}"}


@pytest.mark.anyio
@pytest.mark.parametrize(
    "exc, expected",
    [
        (AIQuotaError("OpenAI API error: quota"), messages.QUOTA_EXCEEDED),
        (AIConnectionError("Ollama is unreachable"), messages.NETWORK_ERROR),
        (AIClientError("Anthropic API error (500)"), messages.SEND_FAILED),
    ],
)
async def test_provider_errors_become_error_results(provider, exc, expected):
    provider.generate_completion.side_effect = exc
    server = AIToolServer(provider)

    result = await server.invoke_tool(
        "ai-server", UPDATE_LESSON_FIELD, {"message": "m", "fieldLabels": {"topic": "נושא"}}
    )

    assert set(result) == {"error"}
    assert localize_tool_error(result["error"]) == expected


def test_localize_uses_default_for_unknown_errors():
    assert localize_tool_error("boom", messages.SUGGESTION_FAILED) == messages.SUGGESTION_FAILED
    assert localize_tool_error("Rate limit reached") == messages.QUOTA_EXCEEDED


def test_tool_result_text_without_content():
    assert tool_result_text({"content": []}) == ""
