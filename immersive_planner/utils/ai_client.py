# utils/ai_client.py
import asyncio
import json
import logging
import re
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class AIClientError(Exception):
    pass


class AIQuotaError(AIClientError):
    """Provider refused the request for rate/quota reasons (HTTP 429)."""
    pass


class AIConnectionError(AIClientError):
    """Provider could not be reached."""
    pass


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message") or json.dumps(error)
    return str(error or data)


async def post_json(
    url: str,
    payload: Dict[str, Any],
    *,
    provider: str,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 180.0,
    max_retries: int = 0,
    backoff_base: float = 1.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    POST a JSON body to a provider endpoint and return the decoded JSON reply.

    Transport errors and 5xx replies are retried with exponential backoff;
    4xx replies are not. 429 is raised as AIQuotaError.
    """
    last_exc = None
    for attempt in range(1, max_retries + 2):
        try:
            logger.info("%s call attempt %d", provider, attempt)
            async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
                resp = await client.post(url, headers=headers, json=payload)

            if resp.status_code == 429:
                raise AIQuotaError(f"{provider} API error: {_error_message(resp)}")
            if 400 <= resp.status_code < 500:
                raise AIClientError(f"{provider} API error ({resp.status_code}): {_error_message(resp)}")
            if resp.status_code != 200:
                last_exc = AIClientError(f"{provider} API error ({resp.status_code}): {_error_message(resp)}")
            else:
                try:
                    return resp.json()
                except ValueError as e:
                    raise AIClientError(f"{provider} returned a non-JSON response") from e

        except httpx.RequestError as e:
            logger.warning("%s request failed on attempt %d: %s", provider, attempt, e)
            last_exc = e

        if attempt <= max_retries:
            await asyncio.sleep(backoff_base * (2 ** (attempt - 1)))

    if isinstance(last_exc, httpx.RequestError):
        raise AIConnectionError(f"{provider} is unreachable: {last_exc}") from last_exc
    raise AIClientError(f"{provider} call failed after retries. Last error: {last_exc}") from last_exc


def extract_json_from_text(text: str) -> Any:
    """
    Extract a JSON object or array from a model reply.

    Handles bare JSON, markdown code fences, and JSON embedded in prose.
    Raises ValueError when nothing parseable is found.
    """
    text = text.strip()
    # Handle markdown code blocks
    fence = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    if fence:
        text = fence.group(1).strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Locate the first balanced {...} or [...] block
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if starts:
        start = min(starts)
        depth = 0
        in_string = False
        escaped = False
        for i, char in enumerate(text[start:], start):
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char in "{[":
                depth += 1
            elif char in "}]":
                depth -= 1
                if depth == 0:
                    try:
                        return json.loads(text[start:i + 1])
                    except json.JSONDecodeError:
                        break

    logger.warning("Failed to extract any valid JSON from the AI response.")
    raise ValueError("Could not extract valid JSON from AI response")
