"""
LLM-based translation backends.

This module provides:
- OpenAI GPT translator (also used for OpenAI-compatible proxies)
- Anthropic Claude translator
- Google Gemini translator
- ClientPool, which owns one API client per provider for the whole run

Single strings are sent with a tone hint derived from their key path. Batches
are sent as a numbered list and parsed back by number; an answer with the
wrong number of items raises BatchMismatchError so the caller can retry or
fall back to translating the strings one by one.
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

import anthropic
from google import genai
from google.genai import types as genai_types
from openai import OpenAI

from jsontrans_llms.config import (
    BATCH_TIMEOUT,
    DEFAULT_MODEL,
    ENV_PROVIDER_URL,
    INDIVIDUAL_TIMEOUT,
    MAX_TOKENS_PER_BATCH,
    MAX_TOKENS_PER_TEXT,
    PROVIDER_CONFIG,
    ConfigurationError,
    get_custom_system_message,
    get_model_info,
)
from jsontrans_llms.keys import resolve_provider_key
from jsontrans_llms.translate.base import (
    BatchMismatchError,
    TranslationError,
    TranslationResult,
    Translator,
)
from jsontrans_llms.translate.cache import TokenUsage
from jsontrans_llms.translate.prompts import (
    clean_response,
    create_batch_prompt,
    create_system_prompt,
    create_user_prompt,
    parse_batch_response,
    validate_language_code,
)

logger = logging.getLogger(__name__)

HEALTH_CHECK_PROMPT = "Hello"


@dataclass
class LLMConfig:
    """Configuration for LLM translators."""
    model: str = DEFAULT_MODEL
    temperature: float = 0.3
    max_tokens: int = MAX_TOKENS_PER_TEXT
    batch_max_tokens: int = MAX_TOKENS_PER_BATCH
    timeout: float = INDIVIDUAL_TIMEOUT
    batch_timeout: float = BATCH_TIMEOUT
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    custom_system_message: Optional[str] = None


def _openai_client(api_key: str, base_url: Optional[str]) -> Any:
    kwargs = {
        "api_key": api_key,
        "default_headers": {"HTTP-Referer": "jsontrans", "X-Title": "jsontrans"},
    }
    if base_url:
        kwargs["base_url"] = base_url
    return OpenAI(**kwargs)


def _anthropic_client(api_key: str, base_url: Optional[str]) -> Any:
    kwargs = {"api_key": api_key}
    if base_url:
        kwargs["base_url"] = base_url
    return anthropic.Anthropic(**kwargs)


def _google_client(api_key: str, base_url: Optional[str]) -> Any:
    # The Gemini endpoint is not proxied; base_url is ignored
    return genai.Client(api_key=api_key)


ClientFactory = Callable[[str, Optional[str]], Any]

DEFAULT_CLIENT_FACTORIES: dict[str, ClientFactory] = {
    "openai": _openai_client,
    "anthropic": _anthropic_client,
    "google": _google_client,
}


class ClientPool:
    """One lazily created API client per provider.

    Shared by every translator of a run (and so by every worker thread);
    creation is serialized by a lock so a provider never gets two clients.

    Usage:
        pool = ClientPool()
        client = pool.get("openai", api_key, base_url)
    """

    def __init__(self, factories: Optional[dict[str, ClientFactory]] = None):
        self._factories = dict(DEFAULT_CLIENT_FACTORIES)
        if factories:
            self._factories.update(factories)
        self._clients: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, provider: str, api_key: str, base_url: Optional[str] = None) -> Any:
        with self._lock:
            if provider in self._clients:
                return self._clients[provider]
            factory = self._factories.get(provider)
            if factory is None:
                raise ConfigurationError(f"Unknown provider: {provider}")
            if not api_key:
                raise ConfigurationError(f"API key required for provider '{provider}'")
            client = factory(api_key, base_url)
            self._clients[provider] = client
            logger.debug("Initialized %s client", provider)
            return client

    def __contains__(self, provider: str) -> bool:
        with self._lock:
            return provider in self._clients

    def clear(self) -> None:
        with self._lock:
            self._clients.clear()


class BaseLLMTranslator(Translator, ABC):
    """Base class for LLM-based translators.

    Subclasses only implement ``_complete()``, one chat request returning
    the raw answer text and its token usage. Prompt construction, response
    cleaning, batch parsing and error wrapping live here.
    """

    provider: str = ""

    def __init__(self, config: Optional[LLMConfig] = None, pool: Optional[ClientPool] = None):
        self.config = config or LLMConfig()
        self.pool = pool or ClientPool()

    @property
    def name(self) -> str:
        return f"{self.provider}-{self.config.model}"

    @property
    def client(self) -> Any:
        return self.pool.get(self.provider, self.config.api_key, self.config.base_url)

    @abstractmethod
    def _complete(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        max_tokens: int,
        timeout: float,
    ) -> tuple[str, Optional[TokenUsage]]:
        pass

    def _request(self, system_prompt, user_prompt, max_tokens, timeout):
        try:
            content, usage = self._complete(system_prompt, user_prompt, max_tokens, timeout)
        except TranslationError:
            raise
        except Exception as e:
            raise TranslationError(f"{self.name} request failed: {e}") from e
        if not content:
            raise TranslationError(f"Empty response from {self.name}")
        return content, usage

    def translate(
        self,
        text: str,
        target_lang: str,
        key_path: Optional[str] = None,
    ) -> TranslationResult:
        """Translate one string."""
        validate_language_code(target_lang)
        system_prompt = create_system_prompt(
            target_lang, batch=False, custom_message=self.config.custom_system_message
        )
        user_prompt = create_user_prompt(text, target_lang, key_path)

        content, usage = self._request(
            system_prompt, user_prompt, self.config.max_tokens, self.config.timeout
        )
        return TranslationResult(
            text=clean_response(content),
            source_text=text,
            metadata={"translator": self.name, "model": self.config.model, "key": key_path},
            usage=usage,
        )

    def translate_batch(
        self,
        texts: Sequence[str],
        target_lang: str,
        key_paths: Optional[Sequence[str]] = None,
    ) -> list[TranslationResult]:
        """Translate several strings in one request.

        Raises:
            BatchMismatchError: If the answer does not hold one item per text
            TranslationError: If the request fails
        """
        texts = list(texts)
        if not texts:
            return []

        validate_language_code(target_lang)
        system_prompt = create_system_prompt(
            target_lang, batch=True, custom_message=self.config.custom_system_message
        )
        user_prompt = create_batch_prompt(texts, target_lang)

        content, usage = self._request(
            system_prompt, user_prompt, self.config.batch_max_tokens, self.config.batch_timeout
        )
        translations = parse_batch_response(content)
        if len(translations) != len(texts):
            raise BatchMismatchError(len(texts), len(translations))

        paths = list(key_paths) if key_paths is not None else [None] * len(texts)
        return [
            TranslationResult(
                text=translated,
                source_text=source,
                metadata={"translator": self.name, "model": self.config.model, "key": path},
                usage=usage if i == 0 else None,
            )
            for i, (source, translated, path) in enumerate(zip(texts, translations, paths))
        ]

    def check_health(self) -> bool:
        """Send a tiny request; raises TranslationError if the API is unusable."""
        logger.info("Checking %s API health...", self.name)
        self._request(None, HEALTH_CHECK_PROMPT, 5, self.config.timeout)
        logger.info("%s API is working correctly", self.name)
        return True


class OpenAITranslator(BaseLLMTranslator):
    """OpenAI GPT-based translator.

    Works with any OpenAI-compatible endpoint through ``base_url``
    (e.g. an OpenRouter proxy).
    """

    provider = "openai"

    def _complete(self, system_prompt, user_prompt, max_tokens, timeout):
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        response = self.client.chat.completions.create(
            model=self.config.model,
            messages=messages,
            temperature=self.config.temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
        if not response.choices:
            raise TranslationError("Invalid response structure from OpenAI API")
        content = (response.choices[0].message.content or "").strip()

        usage = None
        if response.usage is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )
        return content, usage


class AnthropicTranslator(BaseLLMTranslator):
    """Anthropic Claude translator."""

    provider = "anthropic"

    def _complete(self, system_prompt, user_prompt, max_tokens, timeout):
        kwargs = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "temperature": self.config.temperature,
            "messages": [{"role": "user", "content": user_prompt}],
            "timeout": timeout,
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        response = self.client.messages.create(**kwargs)
        content = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        ).strip()

        usage = None
        if response.usage is not None:
            prompt_tokens = response.usage.input_tokens or 0
            completion_tokens = response.usage.output_tokens or 0
            usage = TokenUsage(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens)
        return content, usage


class GoogleTranslator(BaseLLMTranslator):
    """Google Gemini translator (google-genai SDK)."""

    provider = "google"

    def _complete(self, system_prompt, user_prompt, max_tokens, timeout):
        response = self.client.models.generate_content(
            model=self.config.model,
            contents=user_prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self.config.temperature,
                max_output_tokens=max_tokens,
                http_options=genai_types.HttpOptions(timeout=int(timeout * 1000)),
            ),
        )
        content = (getattr(response, "text", None) or "").strip()

        usage = None
        metadata = getattr(response, "usage_metadata", None)
        if metadata is not None:
            usage = TokenUsage(
                prompt_tokens=metadata.prompt_token_count or 0,
                completion_tokens=metadata.candidates_token_count or 0,
                total_tokens=metadata.total_token_count or 0,
            )
        return content, usage


TRANSLATOR_CLASSES = {
    "openai": OpenAITranslator,
    "anthropic": AnthropicTranslator,
    "google": GoogleTranslator,
}


def create_llm_translator(
    model: str = DEFAULT_MODEL,
    config: Optional[LLMConfig] = None,
    pool: Optional[ClientPool] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
) -> BaseLLMTranslator:
    """Create the translator for a supported model.

    Args:
        model: Model id from config.SUPPORTED_MODELS
        config: Optional LLM configuration; ``model`` overrides its model
        pool: Client pool to share between translators
        api_key: Overrides config, PROVIDER_KEY and the key store
        base_url: Overrides config, PROVIDER_PROXY_URL and the provider default

    Raises:
        ConfigurationError: Unknown model or no API key
    """
    info = get_model_info(model)
    config = config or LLMConfig()
    config.model = model
    config.api_key = api_key or config.api_key or resolve_provider_key(info.provider)
    config.base_url = (
        base_url
        or config.base_url
        or os.getenv(ENV_PROVIDER_URL)
        or PROVIDER_CONFIG[info.provider]["default_url"]
    )
    if config.custom_system_message is None:
        config.custom_system_message = get_custom_system_message()

    return TRANSLATOR_CLASSES[info.provider](config, pool)


def check_health(translator: Translator) -> bool:
    """Probe a translator's API, logging instead of raising on failure."""
    try:
        return translator.check_health()
    except TranslationError as e:
        logger.error("%s API health check failed: %s", translator.name, e)
        return False
