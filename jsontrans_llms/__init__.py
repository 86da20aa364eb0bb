"""
JSONTrans-LLMs: keep JSON locale files in sync with a template language

Finds keys that are missing from each target locale file (or flagged as
updated in the template), translates them with an LLM provider in cached,
retried batches, and writes them back preserving nested objects and arrays.

Building blocks:
1. Key paths: flattened addresses such as ``menu.items[0].label``
2. Tree access: read and write values at a key path
3. Diffing: missing, extra and updated keys between template and target
4. Translation cache: persistent, case-insensitive lookup of past results
"""

__version__ = "0.1.0"

from jsontrans_llms.paths import Dialect, KeyPath, Segment, format_path, parse_path
from jsontrans_llms.tree import NOT_FOUND, CyclicStructureError, enumerate_keys, get_value, set_value
from jsontrans_llms.diff import keys_to_translate, missing_keys, extra_keys
from jsontrans_llms.translate.cache import TranslationCache
from jsontrans_llms.pipeline import SyncConfig, SyncPipeline

__all__ = [
    "Dialect",
    "KeyPath",
    "Segment",
    "format_path",
    "parse_path",
    "NOT_FOUND",
    "CyclicStructureError",
    "enumerate_keys",
    "get_value",
    "set_value",
    "keys_to_translate",
    "missing_keys",
    "extra_keys",
    "TranslationCache",
    "SyncConfig",
    "SyncPipeline",
]
