"""
Base translator interface and implementations.

This module defines:
- Abstract Translator interface that all backends implement
- DummyTranslator for tests and dry runs (echo or simple transformations)
- create_translator() factory covering the dummy and LLM backends

Design:
- Translators are stateless apart from their client: every call receives
  the target language and, optionally, the key path being translated
- All translators return TranslationResult with metadata and token usage
- A batch call returns exactly one result per input text, in order
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence

from jsontrans_llms.translate.cache import TokenUsage


class TranslationError(RuntimeError):
    """Raised when a backend cannot produce a translation."""


class BatchMismatchError(TranslationError):
    """Raised when a batch answer does not contain one item per input."""

    def __init__(self, expected: int, received: int):
        super().__init__(f"Expected {expected} translations, got {received}")
        self.expected = expected
        self.received = received


@dataclass
class TranslationResult:
    """Result of a translation operation.

    Attributes:
        text: The translated text
        source_text: Original source text
        metadata: Additional info (translator, model, ...)
        usage: Token usage of the request that produced it, if known.
            For batch calls only the first result carries the usage so
            totals are not counted once per item.
    """
    text: str
    source_text: str
    metadata: dict = field(default_factory=dict)
    usage: Optional[TokenUsage] = None


class Translator(ABC):
    """Abstract base class for all translation backends.

    All translators must implement:
    - translate(): Translate a single string
    - translate_batch(): Translate several strings (defaults to a loop)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the translator name (e.g., 'openai-gpt-4o-mini', 'dummy-prefix')."""
        pass

    @abstractmethod
    def translate(
        self,
        text: str,
        target_lang: str,
        key_path: Optional[str] = None,
    ) -> TranslationResult:
        """Translate a single string.

        Args:
            text: Source text
            target_lang: Target language code (e.g. "es", "pt-BR")
            key_path: Path of the key being translated, used as a tone hint

        Raises:
            TranslationError: If the backend fails
        """
        pass

    def translate_batch(
        self,
        texts: Sequence[str],
        target_lang: str,
        key_paths: Optional[Sequence[str]] = None,
    ) -> list[TranslationResult]:
        """Translate several strings.

        Default implementation calls translate() in a loop.
        Override for backends that support batching.
        """
        paths = list(key_paths) if key_paths is not None else [None] * len(texts)
        return [
            self.translate(text, target_lang, path)
            for text, path in zip(texts, paths)
        ]

    def check_health(self) -> bool:
        """Cheap request proving the backend is reachable."""
        return True


class DummyTranslator(Translator):
    """A dummy translator for testing.

    Modes:
    - 'echo': Return the input unchanged
    - 'upper': Return uppercase version
    - 'prefix': Add [<lang>] prefix
    - 'reverse': Reverse the text (for debugging)
    """

    def __init__(self, mode: str = "prefix"):
        self.mode = mode
        self.calls = 0

    @property
    def name(self) -> str:
        return f"dummy-{self.mode}"

    def translate(
        self,
        text: str,
        target_lang: str,
        key_path: Optional[str] = None,
    ) -> TranslationResult:
        self.calls += 1
        if self.mode == "echo":
            translated = text
        elif self.mode == "upper":
            translated = text.upper()
        elif self.mode == "reverse":
            translated = text[::-1]
        else:  # prefix
            translated = f"[{target_lang}] {text}"

        return TranslationResult(
            text=translated,
            source_text=text,
            metadata={"translator": self.name, "mode": self.mode},
        )


def create_translator(backend: str, **kwargs) -> Translator:
    """Factory function to create a translator by name.

    Args:
        backend: 'dummy' (aliases 'echo', 'test') or any model listed in
            config.SUPPORTED_MODELS
        **kwargs: Passed to DummyTranslator or create_llm_translator

    Returns:
        Configured Translator instance
    """
    backend_lower = backend.lower()

    if backend_lower in ("dummy", "test"):
        return DummyTranslator(kwargs.get("mode", "prefix"))
    if backend_lower == "echo":
        return DummyTranslator("echo")

    from jsontrans_llms.translate.llm import create_llm_translator
    return create_llm_translator(backend, **kwargs)
