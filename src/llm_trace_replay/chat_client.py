from __future__ import annotations

import asyncio
from typing import Any, Callable, Protocol

import httpx
import openai
from loguru import logger

from llm_trace_replay.errors import ProviderCallError, ValidationError
from llm_trace_replay.provider_registry import ResolvedProvider

# Fields of a stored request that are forwarded to the chat-completions endpoint.
CHAT_FIELDS = (
    "model",
    "messages",
    "temperature",
    "max_tokens",
    "top_p",
    "frequency_penalty",
    "presence_penalty",
    "stop",
    "n",
    "user",
)


class ChatCompletionsClient(Protocol):
    """The slice of ``openai.AsyncOpenAI`` used for replays."""

    chat: Any

    async def close(self) -> None: ...


ClientFactory = Callable[[str, str, float], ChatCompletionsClient]


def create_openai_client(api_key: str, base_url: str, timeout_seconds: float) -> openai.AsyncOpenAI:
    return openai.AsyncOpenAI(
        api_key=api_key,
        base_url=base_url or None,
        timeout=httpx.Timeout(timeout_seconds),
        max_retries=0,
    )


def build_chat_request(request: Any, model: str = "") -> dict[str, Any]:
    """Turn a stored request into chat-completion kwargs, overriding the model when given."""
    if not isinstance(request, dict) or not isinstance(request.get("messages"), list):
        raise ValidationError("unsupported request type: expected a chat request with a 'messages' list")
    payload = {key: request[key] for key in CHAT_FIELDS if request.get(key) is not None}
    if model:
        payload["model"] = model
    if not payload.get("model"):
        raise ValidationError("model is required: set it on the request or pass one explicitly")
    return payload


def _response_to_dict(response: Any) -> dict[str, Any]:
    if isinstance(response, dict):
        return response
    return response.model_dump(mode="json")


class ChatClient:
    def __init__(self, client_factory: ClientFactory = create_openai_client):
        self._client_factory = client_factory

    async def create_chat_completion(
        self,
        provider_name: str,
        provider: ResolvedProvider,
        payload: dict[str, Any],
        timeout_seconds: float,
    ) -> dict[str, Any]:
        """Issue exactly one chat-completion call and return the response as a dict.

        Any SDK failure or timeout is raised as ``ProviderCallError``.
        """
        model = str(payload.get("model", ""))
        client = self._client_factory(provider.api_key, provider.base_url, timeout_seconds)
        logger.debug(
            f"Replay request: provider={provider_name}, model={model}, "
            f"messages={len(payload.get('messages', []))}, timeout={timeout_seconds}s"
        )
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(**payload),
                timeout=timeout_seconds,
            )
        except TimeoutError as ex:
            raise ProviderCallError(provider_name, model, f"request timed out after {timeout_seconds}s") from ex
        except openai.OpenAIError as ex:
            raise ProviderCallError(provider_name, model, str(ex)) from ex
        finally:
            await client.close()

        result = _response_to_dict(response)
        logger.debug(f"Replay response: provider={provider_name}, model={model}, id={result.get('id', '')}")
        return result
