"""
Locale files on disk.

Two layouts are supported under one locales directory:

Single-file (flat)::

    locales/
      en.json        <- template
      es.json
      de.json

Multi-file (one folder per language, mirrored relative paths)::

    locales/
      en/common.json   <- template files
      en/pages/home.json
      es/common.json
      es/pages/home.json

A directory ``en-US`` or file ``en-GB.json`` counts as a variant of the
``en`` template language; the exact code is preferred when both exist.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from jsontrans_llms.tree import HOLE

logger = logging.getLogger(__name__)

JSON_SUFFIX = ".json"
DEFAULT_TEMPLATE_LANGUAGE = "en"

PathArg = Union[str, Path]


class LoadFailure(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_JSON = "invalid_json"


class LocaleLoadError(Exception):
    """A locale file could not be loaded."""

    kind = "locale"

    def __init__(self, path: PathArg, reason: LoadFailure, detail: str = ""):
        message = f"Could not load {self.kind} file {path}: {reason.value.replace('_', ' ')}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.path = Path(path)
        self.reason = reason
        self.detail = detail


class TemplateLoadError(LocaleLoadError):
    kind = "template"


class TargetLoadError(LocaleLoadError):
    kind = "target"


def _read_json(path: Path, error_type: type[LocaleLoadError]) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise error_type(path, LoadFailure.NOT_FOUND) from None
    except UnicodeDecodeError as e:
        raise error_type(path, LoadFailure.INVALID_JSON, str(e)) from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise error_type(path, LoadFailure.INVALID_JSON, str(e)) from e


def load_template(path: PathArg) -> Any:
    """Load the template document.

    Raises:
        TemplateLoadError: If the file is missing or not valid JSON
    """
    return _read_json(Path(path), TemplateLoadError)


def load_target(path: PathArg, missing_ok: bool = True) -> Any:
    """Load a target document; an absent file is ``{}`` when ``missing_ok``.

    Raises:
        TargetLoadError: If the file is not valid JSON, or is missing and
            ``missing_ok`` is False
    """
    path = Path(path)
    if missing_ok and not path.exists():
        logger.debug("Target file %s does not exist, starting empty", path)
        return {}
    return _read_json(path, TargetLoadError)


def _encode_hole(value: Any) -> Any:
    if value is HOLE:
        return None
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def save_tree(path: PathArg, tree: Any) -> Path:
    """Write a document as 2-space indented UTF-8 JSON; holes become null."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(tree, indent=2, ensure_ascii=False, default=_encode_hole) + "\n",
        encoding="utf-8",
    )
    return path


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

@dataclass
class LocaleFile:
    """One JSON file of a language.

    Attributes:
        full_path: Absolute or locales-relative path on disk
        relative_path: Path below the language directory, POSIX style
            (for flat layouts, the file name itself)
    """
    full_path: Path
    relative_path: str

    @property
    def file_name(self) -> str:
        return self.full_path.name

    @property
    def base_name(self) -> str:
        return self.full_path.stem


@dataclass
class LanguageStructure:
    language_code: str
    directory: Path
    files: list[LocaleFile] = field(default_factory=list)


@dataclass
class StructureValidation:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def load_language_list(language_file: PathArg) -> list[str]:
    """Language codes from a text file: one per line, ``#`` starts a comment.

    Only the first word of a line is used, so ``es  Spanish`` yields ``es``.
    """
    path = Path(language_file)
    languages = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        languages.append(line.split()[0])
    logger.info("Loaded %s target languages from %s", len(languages), path)
    return languages


def _is_variant(code: str, template_language: str) -> bool:
    return code == template_language or code.startswith(template_language + "-")


def discover_languages(
    locales_dir: PathArg,
    template_language: str = DEFAULT_TEMPLATE_LANGUAGE,
) -> list[str]:
    """Target language codes of a flat layout (every ``xx.json`` but the template's)."""
    locales_dir = Path(locales_dir)
    languages = sorted(
        p.stem
        for p in locales_dir.iterdir()
        if p.is_file() and p.suffix == JSON_SUFFIX and not _is_variant(p.stem, template_language)
    )
    logger.info("Found %s language files in %s", len(languages), locales_dir)
    return languages


def scan_json_files(directory: PathArg) -> list[LocaleFile]:
    """Every ``*.json`` below ``directory``, sorted by relative path."""
    directory = Path(directory)
    return [
        LocaleFile(full_path=p, relative_path=p.relative_to(directory).as_posix())
        for p in sorted(directory.rglob(f"*{JSON_SUFFIX}"))
        if p.is_file()
    ]


def find_template_variants(
    locales_dir: PathArg,
    template_language: str = DEFAULT_TEMPLATE_LANGUAGE,
) -> list[str]:
    """Template language codes present, the exact code first, then sorted."""
    variants = set()
    for entry in Path(locales_dir).iterdir():
        if entry.is_dir():
            code = entry.name
        elif entry.is_file() and entry.suffix == JSON_SUFFIX:
            code = entry.stem
        else:
            continue
        if _is_variant(code, template_language):
            variants.add(code)
    return sorted(variants, key=lambda code: (code != template_language, code))


def get_template_structure(
    locales_dir: PathArg,
    template_language: str = DEFAULT_TEMPLATE_LANGUAGE,
) -> LanguageStructure:
    """Locate the template: a language directory or a single ``<lang>.json``.

    Raises:
        TemplateLoadError: If no template variant exists
    """
    locales_dir = Path(locales_dir)
    variants = find_template_variants(locales_dir, template_language)
    if not variants:
        raise TemplateLoadError(
            locales_dir / f"{template_language}{JSON_SUFFIX}",
            LoadFailure.NOT_FOUND,
            f"no {template_language} template language found in {locales_dir}",
        )

    code = variants[0]
    template_dir = locales_dir / code
    if template_dir.is_dir():
        files = scan_json_files(template_dir)
        if not files:
            raise TemplateLoadError(template_dir, LoadFailure.NOT_FOUND, "template directory has no JSON files")
        return LanguageStructure(code, template_dir, files)

    template_file = locales_dir / f"{code}{JSON_SUFFIX}"
    return LanguageStructure(
        code, locales_dir, [LocaleFile(template_file, template_file.name)]
    )


def discover_language_structures(
    locales_dir: PathArg,
    template_language: str = DEFAULT_TEMPLATE_LANGUAGE,
    languages: Optional[Iterable[str]] = None,
) -> dict[str, LanguageStructure]:
    """Map each target language to its directory and files.

    Language directories are scanned recursively; flat ``xx.json`` files
    form single-file structures. Template variants are never targets.
    When ``languages`` is given, only those codes are returned.
    """
    locales_dir = Path(locales_dir)
    wanted = set(languages) if languages is not None else None
    structures: dict[str, LanguageStructure] = {}

    for entry in sorted(locales_dir.iterdir()):
        if entry.is_dir():
            code = entry.name
            if _is_variant(code, template_language):
                continue
            files = scan_json_files(entry)
            if files:
                structures[code] = LanguageStructure(code, entry, files)
        elif entry.is_file() and entry.suffix == JSON_SUFFIX:
            code = entry.stem
            if _is_variant(code, template_language) or code in structures:
                continue
            structures[code] = LanguageStructure(
                code, locales_dir, [LocaleFile(entry, entry.name)]
            )

    if wanted is not None:
        structures = {code: s for code, s in structures.items() if code in wanted}
    return structures


def is_multi_file_layout(
    structures: dict[str, LanguageStructure],
    locales_dir: PathArg,
) -> bool:
    locales_dir = Path(locales_dir)
    return any(
        len(s.files) > 1 or s.directory != locales_dir
        for s in structures.values()
    )


def find_corresponding_template_file(
    target_file: LocaleFile,
    template_structure: LanguageStructure,
) -> Optional[LocaleFile]:
    """Template file with the same relative path; a lone template matches anything."""
    if len(template_structure.files) == 1:
        return template_structure.files[0]
    for template_file in template_structure.files:
        if template_file.relative_path == target_file.relative_path:
            return template_file
    return None


def target_file_path(locales_dir: PathArg, language: str, relative_path: str) -> Path:
    """Where a language's copy of a template file lives in a multi-file layout."""
    return Path(locales_dir) / language / relative_path


def validate_language_structures(
    structures: dict[str, LanguageStructure],
    template_structure: LanguageStructure,
) -> StructureValidation:
    validation = StructureValidation()
    template_paths = {f.relative_path for f in template_structure.files}

    for code, structure in structures.items():
        present = set()
        for target_file in structure.files:
            present.add(target_file.relative_path)
            if find_corresponding_template_file(target_file, template_structure) is None:
                validation.errors.append(
                    f"No template file found for {code}/{target_file.relative_path}"
                )
        if len(template_structure.files) > 1:
            for missing in sorted(template_paths - present):
                validation.warnings.append(f"{code}/{missing} does not exist yet and will be created")
    return validation


def clear_translation_files(
    locales_dir: PathArg,
    template_language: str = DEFAULT_TEMPLATE_LANGUAGE,
    languages: Optional[Iterable[str]] = None,
) -> list[Path]:
    """Replace every target file with ``{}``. The template is never touched."""
    structures = discover_language_structures(locales_dir, template_language, languages)
    cleared = []
    for structure in structures.values():
        for locale_file in structure.files:
            save_tree(locale_file.full_path, {})
            cleared.append(locale_file.full_path)
            logger.info("Cleared %s", locale_file.full_path)
    return cleared


@dataclass
class FilePair:
    """A template file and the path of one language's copy of it."""
    language: str
    template_file: LocaleFile
    target_path: Path
    label: str


def language_file_pairs(
    locales_dir: PathArg,
    language: str,
    template_structure: LanguageStructure,
) -> list[FilePair]:
    """Template/target pairs to sync for ``language``.

    A flat template maps to ``<locales>/<language>.json``; a template
    directory maps each of its files to the same relative path under
    ``<locales>/<language>/``.
    """
    locales_dir = Path(locales_dir)
    if template_structure.directory == locales_dir:
        target = locales_dir / f"{language}{JSON_SUFFIX}"
        return [FilePair(language, template_structure.files[0], target, target.name)]
    return [
        FilePair(
            language,
            template_file,
            target_file_path(locales_dir, language, template_file.relative_path),
            f"{language}/{template_file.relative_path}",
        )
        for template_file in template_structure.files
    ]
