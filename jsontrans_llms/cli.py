"""
Command-line interface for JSONTrans-LLMs.

Provides commands for:
- Synchronizing locale files with their template (translating what is missing)
- Checking locale files without translating
- Listing supported models
- Inspecting the translation cache
- Clearing translation files
- Managing API keys

Usage:
    jsontrans sync --folder locales --model gpt-4o-mini
    jsontrans sync -f locales -l languages.txt --preset fast
    jsontrans check --folder locales --strict
    jsontrans keys set provider
"""

from __future__ import annotations

import logging
from getpass import getpass
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from jsontrans_llms import __version__
from jsontrans_llms.config import (
    APP_NAME,
    DEFAULT_CACHE_FILE,
    DEFAULT_FAILURE_REPORT,
    DEFAULT_MODEL,
    SUPPORTED_MODELS,
    ConfigurationError,
    load_environment,
)
from jsontrans_llms.diff import validate_updated_keys
from jsontrans_llms.failures import FailureReporter
from jsontrans_llms.keys import SERVICES, KeyManager, env_var_for
from jsontrans_llms.locales import (
    DEFAULT_TEMPLATE_LANGUAGE,
    LocaleLoadError,
    clear_translation_files,
    get_template_structure,
    load_language_list,
    load_template,
)
from jsontrans_llms.paths import Dialect
from jsontrans_llms.pipeline import PRESETS, SyncConfig, SyncPipeline, resolve_languages
from jsontrans_llms.summary import (
    collect_coverage,
    print_extra_keys,
    print_final_summary,
    print_missing_key_analysis,
    print_processing_report,
)
from jsontrans_llms.translate.base import TranslationError, create_translator
from jsontrans_llms.translate.cache import load_cache, save_cache
from jsontrans_llms.translate.llm import ClientPool, LLMConfig, check_health
from jsontrans_llms.tree import CyclicStructureError

app = typer.Typer(
    name="jsontrans",
    help="JSONTrans-LLMs: keep JSON locale files in sync with their template using LLM translation",
    add_completion=False,
)
console = Console()

logger = logging.getLogger(__name__)

# Errors that end a command with exit code 1
USER_ERRORS = (ConfigurationError, LocaleLoadError, TranslationError, CyclicStructureError)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=verbose)],
        force=True,
    )


def fail(message: str) -> None:
    console.print(f"[red]Error:[/] {escape(message)}")
    raise typer.Exit(1)


def parse_languages(value: Optional[str]) -> Optional[list[str]]:
    """``-l`` accepts a language file or a comma separated list of codes."""
    if not value:
        return None
    path = Path(value)
    if path.is_file():
        return load_language_list(path)
    return [code.strip() for code in value.split(",") if code.strip()]


def version_callback(value: bool):
    if value:
        console.print(f"{APP_NAME} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """JSONTrans-LLMs: JSON locale synchronization."""
    pass


@app.command()
def sync(
    folder: Path = typer.Option(
        Path("locales"), "--folder", "-f",
        help="Locales directory",
    ),
    languages: Optional[str] = typer.Option(
        None, "--languages", "-l",
        help="Language file (one code per line) or comma separated codes; default: discover",
    ),
    cache_file: Path = typer.Option(
        Path(DEFAULT_CACHE_FILE), "--cache", "-c",
        help="Translation cache file",
    ),
    preset: str = typer.Option(
        "balanced", "--preset", "-p",
        help=f"Performance preset ({', '.join(PRESETS)})",
    ),
    model: str = typer.Option(
        DEFAULT_MODEL, "--model", "-m",
        help="Model to use (see 'jsontrans models'); 'dummy' translates offline for testing",
    ),
    provider_key: Optional[str] = typer.Option(
        None, "--key", "-k",
        help="Provider API key (overrides PROVIDER_KEY)",
    ),
    provider_url: Optional[str] = typer.Option(
        None, "--url", "-u",
        help="Provider base URL (overrides PROVIDER_PROXY_URL)",
    ),
    system_message: Optional[str] = typer.Option(
        None, "--system", "-s",
        help="Extra instructions for the system prompt (overrides CUSTOM_SYSTEM_MESSAGE)",
    ),
    template_language: str = typer.Option(
        DEFAULT_TEMPLATE_LANGUAGE, "--template", "-t",
        help="Template language code",
    ),
    dialect: Dialect = typer.Option(
        Dialect.BRACKETED, "--dialect",
        help="Key path style used in logs and reports",
    ),
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size",
        help="Keys per translation request (1-20), overrides the preset",
    ),
    report_file: Path = typer.Option(
        Path(DEFAULT_FAILURE_REPORT), "--report",
        help="Where to write the failure report",
    ),
    skip_health_check: bool = typer.Option(
        False, "--skip-health-check",
        help="Do not probe the API before starting",
    ),
    verbose: bool = typer.Option(
        False, "--verbose",
        help="Show debug logging",
    ),
):
    """Translate missing and updated keys of every target language."""
    setup_logging(verbose)
    load_environment()

    try:
        config = SyncConfig.from_preset(
            preset,
            batch_size=batch_size,
            template_language=template_language,
            dialect=dialect,
        ).validate()
        target_languages = parse_languages(languages)

        if model in SUPPORTED_MODELS:
            console.print(f"[bold]Using:[/] {SUPPORTED_MODELS[model].name}")
        if system_message:
            console.print(f"[dim]Custom system message:[/] {system_message}")

        translator = create_translator(
            model,
            config=LLMConfig(custom_system_message=system_message),
            pool=ClientPool(),
            api_key=provider_key,
            base_url=provider_url,
        )

        if not skip_health_check and not check_health(translator):
            fail(f"{translator.name} API health check failed")

        cache = load_cache(cache_file)
        reporter = FailureReporter()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            console=console,
        ) as progress:
            tasks = {}

            def update_progress(label: str, fraction: float):
                if label not in tasks:
                    tasks[label] = progress.add_task(label, total=100)
                progress.update(tasks[label], completed=int(fraction * 100))

            pipeline = SyncPipeline(
                translator,
                cache,
                config,
                reporter=reporter,
                cache_path=cache_file,
                progress_callback=update_progress,
            )
            result = pipeline.run(folder, target_languages)

    except USER_ERRORS as e:
        fail(str(e))
    except OSError as e:
        fail(f"{e.strerror or e}: {e.filename}" if getattr(e, "filename", None) else str(e))

    language_codes = [lang.language for lang in result.languages]
    coverage = collect_coverage(folder, language_codes, result.template, dialect)

    console.print()
    print_final_summary(coverage, console)
    print_missing_key_analysis(coverage, console)
    print_extra_keys(result, console)
    print_processing_report(result, console, cache.stats())

    report_path = reporter.generate_report(report_file)
    if report_path:
        console.print(
            f"[yellow]⚠ {reporter.total_failures} keys kept their source text.[/] "
            f"Failures report: {report_path}"
        )

    if not result.success:
        raise typer.Exit(1)
    console.print("\n[bold green]Translation completed![/]")


@app.command()
def check(
    folder: Path = typer.Option(
        Path("locales"), "--folder", "-f",
        help="Locales directory",
    ),
    languages: Optional[str] = typer.Option(
        None, "--languages", "-l",
        help="Language file or comma separated codes; default: discover",
    ),
    template_language: str = typer.Option(
        DEFAULT_TEMPLATE_LANGUAGE, "--template", "-t",
        help="Template language code",
    ),
    dialect: Dialect = typer.Option(
        Dialect.BRACKETED, "--dialect",
        help="Key path style in the output",
    ),
    strict: bool = typer.Option(
        False, "--strict",
        help="Exit with code 1 when keys are missing or markers are invalid",
    ),
):
    """Report missing keys and invalid __updated_keys__ markers without translating."""
    setup_logging()
    try:
        template_structure = get_template_structure(folder, template_language)
        codes, _ = resolve_languages(folder, template_structure, template_language, parse_languages(languages))

        marker_errors = []
        for template_file in template_structure.files:
            for error in validate_updated_keys(load_template(template_file.full_path)):
                marker_errors.append(f"{template_file.relative_path}: {error}")

        coverage = collect_coverage(folder, codes, template_structure, dialect)
    except USER_ERRORS as e:
        fail(str(e))

    print_final_summary(coverage, console)
    print_missing_key_analysis(coverage, console)
    for error in marker_errors:
        console.print(f"[red]✗[/] {escape(error)}")

    problems = marker_errors or [item for item in coverage if not item.complete]
    if strict and problems:
        raise typer.Exit(1)


@app.command()
def models():
    """List supported models."""
    table = Table(title="Supported Models")
    table.add_column("Model", style="cyan")
    table.add_column("Provider")
    table.add_column("Name")
    table.add_column("Cost")
    table.add_column("Description")

    for model_id, info in SUPPORTED_MODELS.items():
        label = f"{model_id} ⭐" if info.recommended else model_id
        if model_id == DEFAULT_MODEL:
            label += " [dim](default)[/]"
        table.add_row(label, info.provider, info.name, info.cost, info.description)

    console.print(table)
    console.print("\n[dim]⭐ recommended. All providers use PROVIDER_KEY and the optional PROVIDER_PROXY_URL.[/]")


@app.command()
def cache(
    cache_file: Path = typer.Option(
        Path(DEFAULT_CACHE_FILE), "--cache", "-c",
        help="Translation cache file",
    ),
    clear: bool = typer.Option(
        False, "--clear",
        help="Empty the cache",
    ),
):
    """Show translation cache statistics."""
    if not cache_file.exists():
        console.print(f"[yellow]No cache file at {cache_file}[/]")
        return

    translation_cache = load_cache(cache_file)
    if clear:
        translation_cache.clear()
        save_cache(translation_cache, cache_file)
        console.print(f"[green]✓[/] Cleared {cache_file}")
        return

    stats = translation_cache.stats()
    table = Table(title=f"Translation Cache: {cache_file}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Entries", str(stats.entries))
    table.add_row("Total tokens used", str(stats.total_tokens_used))
    table.add_row("Total requests", str(stats.total_requests))
    console.print(table)


@app.command()
def clear(
    folder: Path = typer.Option(
        Path("locales"), "--folder", "-f",
        help="Locales directory",
    ),
    template_language: str = typer.Option(
        DEFAULT_TEMPLATE_LANGUAGE, "--template", "-t",
        help="Template language code (never cleared)",
    ),
    languages: Optional[str] = typer.Option(
        None, "--languages", "-l",
        help="Language file or comma separated codes; default: all",
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y",
        help="Do not ask for confirmation",
    ),
):
    """Replace every translation file with an empty object."""
    if not yes and not typer.confirm(f"Clear all translation files in {folder}?"):
        raise typer.Exit()

    try:
        cleared = clear_translation_files(folder, template_language, parse_languages(languages))
    except OSError as e:
        fail(str(e))

    for path in cleared:
        console.print(f"[green]✓[/] Cleared {path}")
    console.print(f"\n{len(cleared)} files cleared")


@app.command()
def keys(
    action: str = typer.Argument(..., help="Action: list, set, get, delete, status"),
    service: Optional[str] = typer.Argument(None, help=f"Service name ({', '.join(SERVICES)})"),
):
    """Manage API keys.

    Examples:
        jsontrans keys list              # List all keys
        jsontrans keys set provider      # Set the key used for every model
        jsontrans keys status openai     # Check OpenAI key status
        jsontrans keys delete openai     # Delete OpenAI key
    """
    if action not in ("list", "set", "get", "status", "delete"):
        console.print(f"[red]Error:[/] Unknown action '{action}'")
        console.print("Available actions: list, set, get, delete, status")
        raise typer.Exit(1)

    km = KeyManager()

    if action == "list":
        table = Table(title="API Keys Status")
        table.add_column("Service", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Source", style="yellow")
        table.add_column("Value", style="dim")

        for key_info in km.list_keys():
            status = "[green]✓ Set[/]" if key_info.is_set else "[red]✗ Not set[/]"
            table.add_row(
                key_info.service,
                status,
                key_info.source,
                key_info.masked_value if key_info.is_set else "-",
            )

        console.print(table)
        console.print("\n[dim]Priority: env > keychain > config file[/]")
        return

    if not service:
        console.print("[red]Error:[/] Service name required")
        console.print(f"Available services: {', '.join(SERVICES)}")
        raise typer.Exit(1)

    if action == "set":
        key = getpass(f"Enter API key for {service}: ")
        if not key:
            fail("Key cannot be empty")

        storage = km.set_key(service, key)
        console.print(f"[green]✓[/] API key for {service} saved to {storage}")
        if storage == "config":
            console.print(f"[yellow]Note:[/] Key stored in local file ({km.config_file})")

    elif action == "get":
        key = km.get_key(service)
        if key:
            console.print(f"[green]✓[/] Key found: {km._mask_key(key)}")
        else:
            console.print(f"[red]✗[/] No key found for {service}")
            console.print(f"Set with: [cyan]jsontrans keys set {service}[/]")

    elif action == "status":
        key_info = km.get_key_info(service)
        if key_info.is_set:
            console.print(f"[green]✓[/] API key for {service} is set")
            console.print(f"    Source: {key_info.source}")
            console.print(f"    Value: {key_info.masked_value}")
        else:
            console.print(f"[red]✗[/] No API key found for {service}")
            console.print("\nTo set the key:")
            console.print(f"  Option 1: [cyan]jsontrans keys set {service}[/]")
            console.print(f"  Option 2: [cyan]export {env_var_for(service)}='your-key-here'[/]")

    else:
        if km.delete_key(service):
            console.print(f"[green]✓[/] API key for {service} deleted")
        else:
            console.print(f"[yellow]⚠[/] No key found to delete for {service}")


if __name__ == "__main__":
    app()
