"""
Project-wide configuration.

This module defines the models and providers JSONTrans-LLMs can talk to and
the defaults shared by the CLI and the sync pipeline.

Module Contents:
    APP_NAME: Application name for display purposes
    DEFAULT_MODEL: Model used when none is given on the command line
    SUPPORTED_MODELS: Registry of known models, keyed by model id
    PROVIDER_CONFIG: Default API base URL per provider
    DEFAULT_CACHE_FILE: Translation cache file name
    DEFAULT_FAILURE_REPORT: Failure report file name
    CACHE_SAVE_INTERVAL: Number of cache stores between two saves

Environment (read after ``load_environment()``):
    PROVIDER_KEY: API key used for every provider
    PROVIDER_PROXY_URL: Optional base URL replacing the provider default
    CUSTOM_SYSTEM_MESSAGE: Extra instructions appended to the system prompt

Example:
    >>> from jsontrans_llms.config import get_model_info
    >>> get_model_info("gpt-4o-mini").provider
    'openai'
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

# Application name for display and identification
APP_NAME = "JSONTrans-LLMs"

DEFAULT_MODEL = "gpt-4o-mini"

DEFAULT_CACHE_FILE = "translation-cache.json"
DEFAULT_FAILURE_REPORT = "translation-failures-report.json"
CACHE_SAVE_INTERVAL = 10

# API call limits
MAX_TOKENS_PER_BATCH = 3000
MAX_TOKENS_PER_TEXT = 1000
BATCH_TIMEOUT = 45.0
INDIVIDUAL_TIMEOUT = 25.0
MAX_RETRIES = 3

ENV_PROVIDER_KEY = "PROVIDER_KEY"
ENV_PROVIDER_URL = "PROVIDER_PROXY_URL"
ENV_SYSTEM_MESSAGE = "CUSTOM_SYSTEM_MESSAGE"


class ConfigurationError(ValueError):
    """Raised for unknown models or presets and missing credentials."""


@dataclass(frozen=True)
class ModelInfo:
    provider: str
    name: str
    description: str
    cost: str
    recommended: bool = False


SUPPORTED_MODELS: dict[str, ModelInfo] = {
    # OpenAI
    "gpt-4.1": ModelInfo("openai", "GPT-4.1", "Latest GPT-4 model with improved performance", "medium", True),
    "gpt-4o": ModelInfo("openai", "GPT-4o", "Fast and efficient GPT-4 model", "medium"),
    "gpt-4o-mini": ModelInfo("openai", "GPT-4o Mini", "Cost-effective GPT-4 model", "low", True),
    "gpt-3.5-turbo": ModelInfo("openai", "GPT-3.5 Turbo", "Fast and cost-effective model", "low"),
    # Anthropic
    "claude-3-5-sonnet-20241022": ModelInfo(
        "anthropic", "Claude 3.5 Sonnet", "Latest Claude model with excellent performance", "medium", True
    ),
    "claude-3-haiku-20240307": ModelInfo(
        "anthropic", "Claude 3 Haiku", "Fast and cost-effective Claude model", "low", True
    ),
    "claude-3-opus-20240229": ModelInfo("anthropic", "Claude 3 Opus", "Most capable Claude model", "high"),
    # Google
    "gemini-2.5-flash": ModelInfo("google", "Gemini 2.5 Flash", "Fast and efficient Gemini model", "low", True),
    "gemini-2.0-flash-exp": ModelInfo("google", "Gemini 2.0 Flash", "Fast and efficient Gemini model", "low"),
    "gemini-1.5-flash": ModelInfo("google", "Gemini 1.5 Flash", "Balanced Gemini model", "low"),
    "gemini-1.5-pro": ModelInfo("google", "Gemini 1.5 Pro", "Capable Gemini model", "medium"),
}

PROVIDER_CONFIG = {
    "openai": {"default_url": "https://api.openai.com/v1", "client_class": "OpenAI"},
    "anthropic": {"default_url": "https://api.anthropic.com", "client_class": "Anthropic"},
    "google": {"default_url": "https://generativelanguage.googleapis.com", "client_class": "genai.Client"},
}


def get_model_info(model: str) -> ModelInfo:
    """Registry entry for ``model``.

    Raises:
        ConfigurationError: If the model is not supported
    """
    try:
        return SUPPORTED_MODELS[model]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported model: {model}. Run 'jsontrans models' to see supported models."
        ) from None


def load_environment() -> Optional[str]:
    """Load a ``.env`` file from the working directory or its parents.

    Variables already set in the environment win. Returns the path that was
    loaded, or None when no file was found.
    """
    dotenv_path = find_dotenv(usecwd=True)
    if not dotenv_path:
        return None
    load_dotenv(dotenv_path, override=False)
    logger.debug("Loaded environment variables from: %s", dotenv_path)
    return dotenv_path


def get_custom_system_message() -> Optional[str]:
    message = os.getenv(ENV_SYSTEM_MESSAGE, "").strip()
    return message or None
