from __future__ import annotations

import asyncio
import logging
from typing import Literal, TypedDict

import httpx

log = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"
RETRY_DELAYS_S = (0.2, 0.5)


class ChatMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMCallError(RuntimeError):
    pass


class RateLimitedError(LLMCallError):
    pass


def _normalize_messages(messages: list[dict]) -> list[ChatMessage]:
    out: list[ChatMessage] = []
    for item in messages:
        if not isinstance(item, dict):
            continue
        role = str(item.get("role") or "").strip().lower()
        if role not in {"system", "user", "assistant"}:
            continue
        out.append({"role": role, "content": str(item.get("content") or "")})
    return out


def endpoint_url(base_url: str, path: str = CHAT_COMPLETIONS_PATH) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def extract_message_content(data: dict, *, allow_empty: bool = False) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        if allow_empty:
            return ""
        raise LLMCallError("missing choices[0].message.content") from exc
    if not isinstance(content, str) or not content.strip():
        if allow_empty:
            return ""
        raise LLMCallError("empty model content")
    return content


async def _post(
    *,
    api_key: str,
    url: str,
    payload: dict,
    timeout_s: float,
) -> dict:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout_s)) as client:
        response = await client.post(url, headers=headers, json=payload)
    if response.status_code == 429:
        raise RateLimitedError("chat/completions rate limited")
    if response.status_code != 200:
        raise httpx.HTTPStatusError(
            f"chat/completions non-200: {response.status_code}",
            request=response.request,
            response=response,
        )
    return response.json()


async def call_chat_completions(
    *,
    api_key: str,
    base_url: str,
    model: str,
    messages: list[dict],
    timeout_s: float,
    temperature: float = 0.0,
    max_tokens: int | None = None,
    max_attempts: int = 3,
    path: str = CHAT_COMPLETIONS_PATH,
    allow_empty: bool = False,
) -> str:
    """POST one chat completion and return the assistant content.

    Transport errors and empty replies are retried with a short back-off;
    a 429 fails immediately with ``RateLimitedError``. With ``allow_empty``
    a reply without content returns ``""`` instead of being retried.
    """
    normalized = _normalize_messages(messages) or [{"role": "user", "content": ""}]
    url = endpoint_url(base_url, path)
    payload: dict = {"model": model, "messages": normalized, "temperature": temperature}
    if max_tokens is not None:
        payload["max_tokens"] = int(max_tokens)

    attempts = max(1, int(max_attempts))
    last_error: Exception | None = None
    for attempt in range(attempts):
        try:
            data = await _post(api_key=api_key, url=url, payload=payload, timeout_s=timeout_s)
            return extract_message_content(data, allow_empty=allow_empty)
        except RateLimitedError:
            raise
        except (httpx.HTTPError, ValueError, LLMCallError) as exc:
            last_error = exc
            log.warning("chat completion attempt %d/%d failed: %s", attempt + 1, attempts, exc)
            if attempt >= attempts - 1:
                break
            await asyncio.sleep(RETRY_DELAYS_S[min(attempt, len(RETRY_DELAYS_S) - 1)])
    raise LLMCallError(f"chat completions failed after retries: {last_error}")
