"""
Text completion clients.

Every backend exposes the same coroutine, ``complete(conversation) -> str``,
where ``conversation`` is an ordered list of ``{"role", "content"}`` dicts
with roles ``user`` / ``assistant``. Failures of any kind surface as
CompletionError; a client never hands back an empty or partial message.
"""
import asyncio
from typing import Any, Dict, List, Optional

import requests
from openai import APIStatusError, AsyncOpenAI, OpenAIError

from talent_match.models.settings import CompletionSettings, Provider
from talent_match.utils.exceptions import CompletionError, ConfigurationError
from talent_match.utils.logging_config import get_logger

logger = get_logger(__name__)

Conversation = List[Dict[str, str]]


def _as_messages(conversation: Conversation) -> List[Dict[str, str]]:
    messages = []
    for message in conversation:
        role = message.get("role", "user")
        if role not in ("user", "assistant"):
            raise CompletionError(f"Unsupported conversation role: {role}")
        messages.append({"role": role, "content": message.get("content") or ""})
    if not messages:
        raise CompletionError("Conversation must contain at least one message")
    return messages


def _message_content(choices: Any, provider: Provider) -> str:
    try:
        content = choices[0]["message"]["content"] if isinstance(choices[0], dict) else choices[0].message.content
    except (IndexError, KeyError, TypeError, AttributeError) as e:
        raise CompletionError("Malformed completion response: no message in choices", provider=provider.value, cause=e) from e
    if not isinstance(content, str) or not content.strip():
        raise CompletionError("Malformed completion response: empty message content", provider=provider.value)
    return content


class CompletionClient:
    """Base class for text completion backends"""

    provider: Provider

    async def complete(self, conversation: Conversation) -> str:
        raise NotImplementedError


class OpenAICompletionClient(CompletionClient):
    """OpenAI chat completions through the official SDK"""

    provider = Provider.OPENAI

    def __init__(self, settings: CompletionSettings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self.model = settings.model_name
        if client is None:
            try:
                client = AsyncOpenAI(
                    api_key=settings.api_key,
                    base_url=settings.base_url,
                    timeout=settings.timeout,
                )
            except OpenAIError as e:
                raise ConfigurationError(f"OpenAI client could not be created: {e}", config_key="OPENAI_API_KEY", cause=e) from e
        self._client = client

    async def complete(self, conversation: Conversation) -> str:
        messages = _as_messages(conversation)
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.settings.temperature,
            )
        except APIStatusError as e:
            raise CompletionError(
                f"OpenAI request failed: {e.message}",
                provider=self.provider.value,
                status_code=e.status_code,
                cause=e,
            ) from e
        except OpenAIError as e:
            raise CompletionError(f"OpenAI request failed: {e}", provider=self.provider.value, cause=e) from e

        choices = getattr(response, "choices", None)
        if not choices:
            raise CompletionError("Malformed completion response: no choices", provider=self.provider.value)
        return _message_content(choices, self.provider)


class SambaNovaCompletionClient(CompletionClient):
    """OpenAI-compatible /chat/completions endpoint over plain HTTP"""

    provider = Provider.SAMBANOVA

    def __init__(self, settings: CompletionSettings, session: Optional[requests.Session] = None):
        if not settings.base_url:
            raise ConfigurationError("SambaNova provider requires a base URL", config_key="SAMBANOVA_BASE_URL")
        if not settings.api_key:
            raise ConfigurationError("SambaNova provider requires an API key", config_key="SAMBANOVA_API_KEY")
        self.settings = settings
        self.model = settings.model_name
        self.url = f"{settings.base_url}/chat/completions"
        self._session = session or requests.Session()

    def _post(self, messages: List[Dict[str, str]]) -> requests.Response:
        return self._session.post(
            self.url,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.settings.api_key}",
            },
            json={
                "model": self.model,
                "messages": messages,
                "temperature": self.settings.temperature,
            },
            timeout=self.settings.timeout,
        )

    async def complete(self, conversation: Conversation) -> str:
        messages = _as_messages(conversation)
        try:
            resp = await asyncio.to_thread(self._post, messages)
            resp.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            reason = e.response.reason if e.response is not None else str(e)
            raise CompletionError(
                f"API request failed: {reason}",
                provider=self.provider.value,
                status_code=status,
                cause=e,
            ) from e
        except requests.RequestException as e:
            raise CompletionError(f"API request failed: {e}", provider=self.provider.value, cause=e) from e

        try:
            data = resp.json()
            choices = data["choices"]
        except (ValueError, KeyError, TypeError) as e:
            raise CompletionError("Malformed completion response envelope", provider=self.provider.value, cause=e) from e
        return _message_content(choices, self.provider)


class BoundedCompletionClient(CompletionClient):
    """Caps the number of simultaneously in-flight requests of a wrapped client"""

    def __init__(self, client: CompletionClient, max_concurrent: int = 5):
        self.client = client
        self.provider = getattr(client, "provider", None)
        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def complete(self, conversation: Conversation) -> str:
        async with self._semaphore:
            return await self.client.complete(conversation)


def create_completion_client(
    settings: Optional[CompletionSettings] = None,
    max_concurrent: Optional[int] = None,
) -> CompletionClient:
    """Build the configured backend, optionally bounded to ``max_concurrent`` in-flight calls"""
    settings = settings or CompletionSettings.from_env()
    if settings.provider is Provider.OPENAI:
        client: CompletionClient = OpenAICompletionClient(settings)
    else:
        client = SambaNovaCompletionClient(settings)
    logger.info(f"Using {settings.provider.value} completion provider with model {settings.model_name}")

    if max_concurrent:
        return BoundedCompletionClient(client, max_concurrent)
    return client
