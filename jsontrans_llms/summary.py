"""
End-of-run reporting: final key counts, missing-key analysis and the
processing report. Everything is re-read from disk so the numbers reflect
what was actually saved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jsontrans_llms.diff import DEFAULT_EXCLUDED_KEYS, missing_keys
from jsontrans_llms.locales import (
    LanguageStructure,
    LocaleLoadError,
    language_file_pairs,
    load_target,
    load_template,
)
from jsontrans_llms.paths import Dialect
from jsontrans_llms.pipeline import SyncResult
from jsontrans_llms.translate.cache import CacheStats
from jsontrans_llms.tree import enumerate_keys

logger = logging.getLogger(__name__)


@dataclass
class FileCoverage:
    label: str
    template_keys: int
    present_keys: int
    missing: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.error is None and not self.missing


def collect_coverage(
    locales_dir: Union[str, Path],
    languages: Iterable[str],
    template_structure: LanguageStructure,
    dialect: Dialect = Dialect.BRACKETED,
) -> list[FileCoverage]:
    """Template key coverage of every target file, read from disk."""
    templates = {}
    coverage = []
    for language in languages:
        for pair in language_file_pairs(locales_dir, language, template_structure):
            template_path = pair.template_file.full_path
            try:
                if template_path not in templates:
                    templates[template_path] = load_template(template_path)
                template = templates[template_path]
                target = load_target(pair.target_path)
            except LocaleLoadError as e:
                coverage.append(FileCoverage(pair.label, 0, 0, error=str(e)))
                continue

            total = len(enumerate_keys(template, dialect, DEFAULT_EXCLUDED_KEYS))
            missing = [str(p) for p in missing_keys(template, target, dialect)]
            coverage.append(FileCoverage(pair.label, total, total - len(missing), missing))
    return coverage


def print_final_summary(coverage: list[FileCoverage], console: Console) -> None:
    table = Table(title="Final Summary")
    table.add_column("File", style="cyan")
    table.add_column("Keys", justify="right")
    table.add_column("Status")

    for item in coverage:
        if item.error:
            table.add_row(item.label, "-", f"[red]✗ {escape(item.error)}[/]")
        elif item.complete:
            table.add_row(item.label, f"{item.present_keys}/{item.template_keys}", "[green]✓ complete[/]")
        else:
            table.add_row(
                item.label,
                f"{item.present_keys}/{item.template_keys}",
                f"[yellow]⚠ {len(item.missing)} missing[/]",
            )
    console.print(table)


def print_missing_key_analysis(coverage: list[FileCoverage], console: Console, limit: int = 50) -> None:
    """List missing keys per file, at most ``limit`` per file."""
    incomplete = [item for item in coverage if item.missing]
    if not incomplete:
        console.print("[green]✓ No missing keys[/]")
        return

    console.print("\n[bold]Missing Key Analysis[/]")
    for item in incomplete:
        console.print(f"[yellow]{item.label}[/] ({len(item.missing)} missing)")
        for key in item.missing[:limit]:
            console.print(f"  - {escape(key)}")
        if len(item.missing) > limit:
            console.print(f"  [dim]... and {len(item.missing) - limit} more[/]")


def print_processing_report(
    result: SyncResult,
    console: Console,
    cache_stats: Optional[CacheStats] = None,
) -> None:
    table = Table(title="Processing Report")
    table.add_column("Language", style="cyan")
    table.add_column("Translated", justify="right", style="green")
    table.add_column("From cache", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Extra keys", justify="right")
    table.add_column("Status")

    errors = 0
    for lang in result.languages:
        if not lang.success:
            errors += 1
        status = "[green]✓[/]" if lang.success else "[red]✗ " + escape("; ".join(lang.errors)) + "[/]"
        table.add_row(
            lang.language,
            str(lang.translated),
            str(sum(f.applied_from_cache for f in lang.files)),
            f"[red]{lang.failed}[/]" if lang.failed else "0",
            str(len(lang.extra_keys)),
            status,
        )
    console.print(table)

    console.print(
        f"\n[bold]Summary:[/] {result.total_translated} keys translated, "
        f"{result.total_failed} fell back to source text, {errors} errors "
        f"in {result.duration:.1f}s"
    )
    if cache_stats is not None:
        console.print(
            f"[dim]Cache: {cache_stats.entries} entries, "
            f"{cache_stats.total_tokens_used} tokens over {cache_stats.total_requests} requests[/]"
        )


def print_extra_keys(result: SyncResult, console: Console) -> None:
    for lang in result.languages:
        for file_result in lang.files:
            if file_result.extra_keys:
                console.print(
                    f"[yellow]⚠ Extra keys in {file_result.label} (not in template):[/] "
                    + escape(", ".join(file_result.extra_keys))
                )
