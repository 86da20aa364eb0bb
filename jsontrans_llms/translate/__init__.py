"""Translation backends, prompts, retry policy and the translation cache."""

from jsontrans_llms.translate.base import (
    BatchMismatchError,
    DummyTranslator,
    TranslationError,
    TranslationResult,
    Translator,
    create_translator,
)

__all__ = [
    "BatchMismatchError",
    "DummyTranslator",
    "TranslationError",
    "TranslationResult",
    "Translator",
    "create_translator",
]
