import logging
from typing import Any

import httpx

from chat_relay.config import Settings
from chat_relay.errors import UpstreamError
from chat_relay.schemas import ChatMessage

logger = logging.getLogger("chat_relay.llm")


async def create_chat_completion(settings: Settings, messages: list[ChatMessage]) -> str:
    """Send the message list to the provider and return the first choice's text."""
    body = {
        "model": settings.chat_model,
        "messages": [message.model_dump() for message in messages],
    }
    data = await _post_json(settings, "/chat/completions", body)
    reply = _parse_chat_completions_output(data)
    if reply is None:
        raise UpstreamError("chat completion response had no usable choice")
    return reply


async def generate_image(settings: Settings, prompt: str) -> str:
    """Request exactly one image and return its URL."""
    body = {"prompt": prompt, "n": 1, "size": settings.image_size}
    data = await _post_json(settings, "/images/generations", body)
    url = _parse_image_generation_output(data)
    if url is None:
        raise UpstreamError("image generation response had no image url")
    return url


def _build_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.upstream_timeout_s)


def _auth_headers(settings: Settings) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.openai_api_key}",
        "Content-Type": "application/json",
    }


async def _post_json(settings: Settings, path: str, body: dict) -> dict:
    url = f"{settings.upstream_base_url.rstrip('/')}{path}"
    logger.debug("upstream_request", extra={"path": path})
    try:
        async with _build_client(settings) as client:
            response = await client.post(url, headers=_auth_headers(settings), json=body)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"{type(exc).__name__}: {exc}") from exc

    if not response.is_success:
        raise UpstreamError(f"status={response.status_code} body={response.text[:500]}")

    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamError(f"invalid json from upstream: {exc}") from exc
    if not isinstance(data, dict):
        raise UpstreamError("upstream returned a non-object json body")
    return data


def _parse_chat_completions_output(data: dict) -> str | None:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    text: Any = message.get("content")
    if isinstance(text, str):
        return text
    return None


def _parse_image_generation_output(data: dict) -> str | None:
    items = data.get("data")
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        return None
    url = items[0].get("url")
    if isinstance(url, str) and url:
        return url
    return None
