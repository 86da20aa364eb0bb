"""
Locale synchronization pipeline.

This module orchestrates one sync run:
1. Locate the template and the target languages (flat or multi-file layout)
2. For each target file, apply translations already in the cache
3. Diff template and target: missing keys plus keys flagged as updated
4. Translate the template values of those keys in batches
   (cache-aware, retried, falling back to one request per key and finally
   to the source text, which is recorded as a failure)
5. Write the results back with set_value() and save the file

Concurrency:
- Languages run on a thread pool bounded by ``max_concurrent_languages``
- The batches of one file run on a second pool bounded by
  ``max_concurrent_batches``; a random delay separates batch submissions
- Batch workers only call the translator. The language worker alone writes
  into its target tree, so trees are never shared between threads

Usage:
    config = SyncConfig.from_preset("balanced")
    pipeline = SyncPipeline(translator, cache, config, cache_path=cache_file)
    result = pipeline.run("locales", languages=["es", "de"])
"""

from __future__ import annotations

import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

from jsontrans_llms.config import CACHE_SAVE_INTERVAL, MAX_RETRIES, ConfigurationError
from jsontrans_llms.diff import DEFAULT_EXCLUDED_KEYS, extra_keys, keys_to_translate
from jsontrans_llms.failures import FailureReporter
from jsontrans_llms.locales import (
    DEFAULT_TEMPLATE_LANGUAGE,
    FilePair,
    LanguageStructure,
    LocaleLoadError,
    discover_language_structures,
    discover_languages,
    get_template_structure,
    is_multi_file_layout,
    language_file_pairs,
    load_target,
    load_template,
    save_tree,
    validate_language_structures,
)
from jsontrans_llms.paths import Dialect, KeyPath
from jsontrans_llms.translate.base import BatchMismatchError, TranslationError, Translator
from jsontrans_llms.translate.cache import TranslationCache, save_cache
from jsontrans_llms.translate.retry import retry_with_backoff
from jsontrans_llms.tree import NOT_FOUND, CyclicStructureError, get_value, iter_keys, set_value

logger = logging.getLogger(__name__)


# Callback receives (task label, fraction done in [0, 1])
ProgressCallback = Callable[[str, float], None]

MAX_BATCH_SIZE = 20

PRESETS: dict[str, dict[str, Any]] = {
    "conservative": {
        "batch_size": 8,
        "max_concurrent_languages": 2,
        "max_concurrent_batches": 1,
        "min_batch_delay": 0.8,
        "max_batch_delay": 2.5,
    },
    "balanced": {
        "batch_size": 15,
        "max_concurrent_languages": 5,
        "max_concurrent_batches": 4,
        "min_batch_delay": 0.2,
        "max_batch_delay": 1.0,
    },
    "fast": {
        "batch_size": 20,
        "max_concurrent_languages": 8,
        "max_concurrent_batches": 5,
        "min_batch_delay": 0.15,
        "max_batch_delay": 0.8,
    },
}


@dataclass
class SyncConfig:
    """Configuration for a sync run.

    Defaults match the ``balanced`` preset.
    """
    # Batching and concurrency
    batch_size: int = 15
    max_concurrent_languages: int = 5
    max_concurrent_batches: int = 4

    # Rate limiting (seconds between batch submissions)
    min_batch_delay: float = 0.2
    max_batch_delay: float = 1.0

    # Retries
    max_retries: int = MAX_RETRIES
    retry_base_delay: float = 1.0

    # Fallback to one request per key when a batch fails
    individual_fallback: bool = True

    # Layout and key paths
    template_language: str = DEFAULT_TEMPLATE_LANGUAGE
    dialect: Dialect = Dialect.BRACKETED

    # Cache persistence
    cache_save_interval: int = CACHE_SAVE_INTERVAL

    @classmethod
    def from_preset(cls, name: str, **overrides) -> "SyncConfig":
        """Build a config from a preset name, then apply ``overrides``.

        Raises:
            ConfigurationError: Unknown preset
        """
        preset = PRESETS.get(name.lower())
        if preset is None:
            raise ConfigurationError(
                f"Unknown preset: {name}. Available presets: {', '.join(PRESETS)}"
            )
        values = dict(preset)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def errors(self) -> list[str]:
        errors = []
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            errors.append(f"batch_size should be between 1 and {MAX_BATCH_SIZE}")
        if self.max_concurrent_languages < 1:
            errors.append("max_concurrent_languages should be at least 1")
        if self.max_concurrent_batches < 1:
            errors.append("max_concurrent_batches should be at least 1")
        if self.min_batch_delay < 0 or self.max_batch_delay < 0:
            errors.append("batch delays cannot be negative")
        if self.min_batch_delay > self.max_batch_delay:
            errors.append("min_batch_delay cannot be greater than max_batch_delay")
        if self.max_retries < 0:
            errors.append("max_retries cannot be negative")
        return errors

    def validate(self) -> "SyncConfig":
        """Raise ConfigurationError listing every invalid setting."""
        errors = self.errors()
        if errors:
            raise ConfigurationError("Invalid sync configuration: " + "; ".join(errors))
        return self

    def to_dict(self) -> dict:
        """Serialize config for logging/debugging."""
        data = asdict(self)
        data["dialect"] = self.dialect.value
        return data


@dataclass
class FileResult:
    """Outcome of syncing one target file."""
    language: str
    label: str
    target_path: Path
    applied_from_cache: int = 0
    missing: int = 0
    updated: int = 0
    translated: int = 0
    failed: int = 0
    extra_keys: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class LanguageResult:
    language: str
    files: list[FileResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(f.success for f in self.files)

    @property
    def translated(self) -> int:
        return sum(f.translated for f in self.files)

    @property
    def failed(self) -> int:
        return sum(f.failed for f in self.files)

    @property
    def extra_keys(self) -> list[str]:
        return [key for f in self.files for key in f.extra_keys]

    @property
    def errors(self) -> list[str]:
        return [f"{f.label}: {f.error}" for f in self.files if f.error]


@dataclass
class SyncResult:
    """Result of a whole run."""
    locales_dir: Path
    template: LanguageStructure
    multi_file: bool
    languages: list[LanguageResult] = field(default_factory=list)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return all(lang.success for lang in self.languages)

    @property
    def total_translated(self) -> int:
        return sum(lang.translated for lang in self.languages)

    @property
    def total_failed(self) -> int:
        return sum(lang.failed for lang in self.languages)


def create_batches(items: Sequence, batch_size: int) -> list[list]:
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


def is_translatable(value: Any) -> bool:
    """Only non-blank strings are sent to a translator."""
    return isinstance(value, str) and value.strip() != ""


def resolve_languages(
    locales_dir: Union[str, Path],
    template_structure: LanguageStructure,
    template_language: str = DEFAULT_TEMPLATE_LANGUAGE,
    languages: Optional[Sequence[str]] = None,
) -> tuple[list[str], bool]:
    """Target languages of a run and whether the layout is multi-file.

    Raises:
        ConfigurationError: If a multi-file layout has files the template lacks
    """
    locales_dir = Path(locales_dir)
    structures = discover_language_structures(locales_dir, template_language, languages)
    multi_file = (
        template_structure.directory != locales_dir
        or is_multi_file_layout(structures, locales_dir)
    )
    if multi_file:
        validation = validate_language_structures(structures, template_structure)
        for warning in validation.warnings:
            logger.info(warning)
        if not validation.valid:
            raise ConfigurationError(
                "Language structure validation failed:\n  " + "\n  ".join(validation.errors)
            )

    if languages is None:
        languages = sorted(structures) if multi_file else discover_languages(locales_dir, template_language)
    return list(languages), multi_file


class SyncPipeline:
    """Synchronize target locale files with their template.

    The translator, cache and failure reporter are shared by every worker
    thread of the run.
    """

    def __init__(
        self,
        translator: Translator,
        cache: Optional[TranslationCache] = None,
        config: Optional[SyncConfig] = None,
        reporter: Optional[FailureReporter] = None,
        cache_path: Optional[Union[str, Path]] = None,
        progress_callback: Optional[ProgressCallback] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.translator = translator
        self.cache = cache if cache is not None else TranslationCache()
        self.config = (config or SyncConfig()).validate()
        self.reporter = reporter or FailureReporter()
        self.cache_path = Path(cache_path) if cache_path else None
        self.progress_callback = progress_callback
        self._sleep = sleep
        self._save_lock = threading.Lock()

    def _report_progress(self, label: str, fraction: float) -> None:
        if self.progress_callback:
            self.progress_callback(label, min(max(fraction, 0.0), 1.0))

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def apply_cached_translations(self, template: Any, target: Any, language: str) -> tuple[Any, int]:
        """Write every cached translation of a template string into ``target``.

        Returns the (possibly new) target root and the number of values that
        changed.
        """
        applied = 0
        for path in iter_keys(template, self.config.dialect, DEFAULT_EXCLUDED_KEYS):
            source = get_value(template, path)
            if not is_translatable(source):
                continue
            cached = self.cache.lookup(source, language)
            if cached is None or get_value(target, path) == cached:
                continue
            target = set_value(target, path, cached)
            applied += 1
        if applied:
            logger.info("Applied %s cached translations for %s", applied, language)
        return target, applied

    def save_cache(self, force: bool = False) -> None:
        """Persist the cache when enough stores are pending (or always with ``force``)."""
        if self.cache_path is None:
            return
        with self._save_lock:
            if force or self.cache.pending_writes >= self.config.cache_save_interval:
                save_cache(self.cache, self.cache_path)
                logger.debug("Saved translation cache to %s", self.cache_path)

    def _remember(self, source: str, language: str, translation: str) -> None:
        self.cache.store(source, language, translation)
        self.save_cache()

    # ------------------------------------------------------------------
    # Translation with retry and fallback (runs on batch worker threads)
    # ------------------------------------------------------------------

    def _retry(self, fn, label: str):
        return retry_with_backoff(
            fn,
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay,
            label=label,
            sleep=self._sleep,
        )

    def _translate_one(self, text: str, language: str, key: str, target_label: str) -> str:
        try:
            result = self._retry(
                lambda: self.translator.translate(text, language, key),
                label=f"translation of {key} ({language})",
            )
        except TranslationError as e:
            logger.warning("Failed to translate %s for %s: %s; keeping source text", key, language, e)
            self.reporter.record_failure(target_label, key, text)
            return text

        self.cache.record_usage(result.usage)
        self._remember(text, language, result.text)
        return result.text

    def _translate_batch_call(self, texts: list[str], language: str, keys: list[str]):
        results = self.translator.translate_batch(texts, language, keys)
        if len(results) != len(texts):
            raise BatchMismatchError(len(texts), len(results))
        return results

    def translate_texts(
        self,
        texts: list[str],
        language: str,
        keys: list[str],
        target_label: str,
    ) -> list[str]:
        """Translate one batch; always returns one string per input.

        Cached texts are not sent. A failed batch falls back to per-key
        requests (when enabled) and per-key failures to the source text.
        """
        translations: list[Optional[str]] = [self.cache.lookup(t, language) for t in texts]
        pending = [i for i, t in enumerate(translations) if t is None]
        if not pending:
            logger.debug("Batch cache hit for %s texts (%s)", len(texts), language)
            return translations

        pending_texts = [texts[i] for i in pending]
        pending_keys = [keys[i] for i in pending]
        try:
            results = self._retry(
                lambda: self._translate_batch_call(pending_texts, language, pending_keys),
                label=f"batch of {len(pending)} ({language})",
            )
        except TranslationError as e:
            if self.config.individual_fallback:
                logger.warning(
                    "Batch translation failed for %s (%s), falling back to individual translations",
                    language,
                    e,
                )
                for i in pending:
                    translations[i] = self._translate_one(texts[i], language, keys[i], target_label)
            else:
                logger.warning("Batch translation failed for %s (%s), keeping source texts", language, e)
                for i in pending:
                    self.reporter.record_failure(target_label, keys[i], texts[i])
                    translations[i] = texts[i]
            return translations

        for result in results:
            self.cache.record_usage(result.usage)
        for i, result in zip(pending, results):
            translations[i] = result.text
            self._remember(texts[i], language, result.text)
        logger.debug("Batch translated %s texts (%s)", len(pending), language)
        return translations

    # ------------------------------------------------------------------
    # Trees and files (run on the language worker thread)
    # ------------------------------------------------------------------

    def process_tree(
        self,
        template: Any,
        target: Any,
        language: str,
        label: Optional[str] = None,
    ) -> tuple[Any, FileResult]:
        """Bring one target document up to date with its template.

        Returns the updated target root and the file statistics. The
        template is only read.
        """
        label = label or f"{language}.json"
        dialect = self.config.dialect
        result = FileResult(language=language, label=label, target_path=Path(label))

        target, result.applied_from_cache = self.apply_cached_translations(template, target, language)
        plan = keys_to_translate(template, target, dialect=dialect)
        result.missing = len(plan.missing)
        result.updated = len(plan.updated)
        result.extra_keys = [str(p) for p in extra_keys(template, target, dialect)]
        logger.info(
            "%s: %s missing, %s updated, %s to translate, %s extra",
            label,
            result.missing,
            result.updated,
            plan.total,
            len(result.extra_keys),
        )

        # Non-string values are copied, strings are translated
        to_translate: list[tuple[KeyPath, str]] = []
        for path in plan.keys:
            value = get_value(template, path)
            if value is NOT_FOUND:
                logger.warning("%s: updated key %s does not exist in the template", label, path)
                continue
            if is_translatable(value):
                to_translate.append((path, value))
            else:
                target = set_value(target, path, value)
                result.translated += 1

        failures_before = self.reporter.failure_count(label)
        target = self._translate_into(target, to_translate, language, label)
        result.translated += len(to_translate)
        result.failed = self.reporter.failure_count(label) - failures_before
        return target, result

    def _translate_into(
        self,
        target: Any,
        items: list[tuple[KeyPath, str]],
        language: str,
        label: str,
    ) -> Any:
        if not items:
            self._report_progress(label, 1.0)
            return target

        batches = create_batches(items, self.config.batch_size)
        logger.info(
            "%s: processing %s batches of up to %s keys",
            label,
            len(batches),
            self.config.batch_size,
        )

        futures = []
        with ThreadPoolExecutor(
            max_workers=min(self.config.max_concurrent_batches, len(batches)),
            thread_name_prefix=f"batch-{language}",
        ) as executor:
            for index, batch in enumerate(batches):
                if index:
                    self._sleep(random.uniform(self.config.min_batch_delay, self.config.max_batch_delay))
                futures.append(executor.submit(
                    self.translate_texts,
                    [text for _, text in batch],
                    language,
                    [str(path) for path, _ in batch],
                    label,
                ))

            # Results are written in batch order regardless of completion order
            for done, (batch, future) in enumerate(zip(batches, futures), start=1):
                for (path, _), translated in zip(batch, future.result()):
                    target = set_value(target, path, translated)
                self._report_progress(label, done / len(batches))
        return target

    def process_file(self, pair: FilePair, template: Optional[Any] = None) -> FileResult:
        """Sync one target file on disk; the file is only written if it changed."""
        if template is None:
            template = load_template(pair.template_file.full_path)
        target = load_target(pair.target_path)
        exists = pair.target_path.exists()

        target, result = self.process_tree(template, target, pair.language, pair.label)
        result.target_path = pair.target_path

        if result.applied_from_cache or result.translated or not exists:
            save_tree(pair.target_path, target)
            logger.info("Saved %s", pair.target_path)
        else:
            logger.info("%s is complete", pair.label)
        return result

    def process_language(
        self,
        language: str,
        locales_dir: Union[str, Path],
        template_structure: LanguageStructure,
        templates: Optional[dict[Path, Any]] = None,
    ) -> LanguageResult:
        """Sync every file of one language; errors end up in the result."""
        result = LanguageResult(language)
        for pair in language_file_pairs(locales_dir, language, template_structure):
            template = (templates or {}).get(pair.template_file.full_path)
            try:
                result.files.append(self.process_file(pair, template))
            except (LocaleLoadError, CyclicStructureError, OSError) as e:
                logger.error("%s: %s", pair.label, e)
                result.files.append(FileResult(
                    language=language, label=pair.label, target_path=pair.target_path, error=str(e)
                ))
        return result

    # ------------------------------------------------------------------
    # Whole run
    # ------------------------------------------------------------------

    def run(
        self,
        locales_dir: Union[str, Path],
        languages: Optional[Sequence[str]] = None,
    ) -> SyncResult:
        """Sync all target languages under ``locales_dir``.

        Raises:
            TemplateLoadError: If the template is missing or invalid
            ConfigurationError: If a multi-file layout does not match the template
        """
        start = time.monotonic()
        locales_dir = Path(locales_dir)
        template_structure = get_template_structure(locales_dir, self.config.template_language)
        languages, multi_file = resolve_languages(
            locales_dir, template_structure, self.config.template_language, languages
        )
        templates = {f.full_path: load_template(f.full_path) for f in template_structure.files}

        result = SyncResult(locales_dir, template_structure, multi_file)
        logger.info(
            "%s structure detected; processing %s",
            "Multi-file" if multi_file else "Single-file",
            ", ".join(languages) or "no languages",
        )

        if languages:
            with ThreadPoolExecutor(
                max_workers=min(self.config.max_concurrent_languages, len(languages)),
                thread_name_prefix="language",
            ) as executor:
                futures = [
                    executor.submit(self.process_language, lang, locales_dir, template_structure, templates)
                    for lang in languages
                ]
                result.languages = [future.result() for future in futures]

        self.save_cache(force=True)
        result.duration = time.monotonic() - start
        return result


def with_overrides(config: SyncConfig, **overrides) -> SyncConfig:
    """Copy of ``config`` with the non-None ``overrides`` applied and validated."""
    return replace(config, **{k: v for k, v in overrides.items() if v is not None}).validate()
