"""
Command-line interface for i18n-app-translator.

Provides commands for:
- Translating missing catalog entries
- Reviewing outdated (or all) translations
- Importing glossaries and translations
- Building and searching the similarity index
- Managing the glossary and API keys

Usage:
    i18n-app-translator translate --source en.json --target ja.json --lang ja
    i18n-app-translator review --source en.json --target ja.json --lang ja --all
    i18n-app-translator import --source terms.csv --type glossary --format csv --target-language ja
    i18n-app-translator build-vector --source en.json --target ja.json --lang ja
    i18n-app-translator search --query "Save changes" --lang ja
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from i18n_app_translator import __version__
from i18n_app_translator.config import AppConfig, load_config
from i18n_app_translator.errors import TranslatorError
from i18n_app_translator.models import BatchProgress
from i18n_app_translator.pipeline import (
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_VECTOR_BATCH_SIZE,
    RunReport,
    build_vector_index,
    import_glossary,
    import_translations,
    review_catalog,
    search_similar,
    translate_catalog,
)
from i18n_app_translator.utils import configure_logging

app = typer.Typer(
    name="i18n-app-translator",
    help="i18n-app-translator: glossary-aware, retrieval-augmented catalog translation",
    add_completion=False,
)
console = Console()


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn typed errors into a message and a non-zero exit."""
    try:
        yield
    except TranslatorError as e:
        console.print(f"[red]Error:[/] {escape(e.message)}")
        if e.details:
            console.print(f"[dim]{escape(e.details)}[/]")
        raise typer.Exit(e.exit_code)


def version_callback(value: bool):
    if value:
        console.print(f"i18n-app-translator v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None, "--config",
        help="Config file (defaults to ./.i18n-app-translatorrc)",
    ),
    verbose: bool = typer.Option(
        False, "--verbose",
        help="Enable debug logging",
    ),
    version: bool = typer.Option(
        False, "--version", "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """i18n-app-translator: keep translation catalogs in sync with their source."""
    load_dotenv(find_dotenv(usecwd=True))
    with handle_errors():
        config = load_config(config_file)
    if verbose:
        config.logging.level = "DEBUG"
    configure_logging(config.logging)
    ctx.obj = config


def _apply_run_overrides(
    config: AppConfig,
    concurrency: Optional[int],
    no_vector_db: bool,
    no_glossary: bool,
    no_progress: bool,
    debug: bool,
) -> AppConfig:
    if concurrency is not None:
        config.translation.concurrency = concurrency
    if no_vector_db:
        config.vector_db.enabled = False
    if no_glossary:
        config.glossary.enabled = False
    if no_progress:
        config.translation.show_progress = False
    if debug:
        config.translation.debug = True
    with handle_errors():
        config.validate()
    return config


def _run_with_progress(config: AppConfig, description: str, run) -> RunReport:
    """Run a driver coroutine factory, drawing a progress bar when enabled."""
    if not config.translation.show_progress:
        return asyncio.run(run(None))

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(description, total=None)

        def update(state: BatchProgress):
            progress.update(task, total=state.total, completed=state.completed)

        return asyncio.run(run(update))


def _print_report(report: RunReport, title: str) -> None:
    table = Table(title=title)
    table.add_column("Requested", justify="right")
    table.add_column("Succeeded", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Changed", justify="right", style="cyan")
    table.add_row(
        str(report.requested), str(report.succeeded), str(report.failed), str(report.changed)
    )
    console.print(table)

    if report.failed_keys:
        console.print(f"[yellow]{report.failed} entries failed:[/]")
        for key in report.failed_keys:
            console.print(f"  - {escape(key)}")


@app.command()
def translate(
    ctx: typer.Context,
    source: Path = typer.Option(..., "--source", "-s", help="Source catalog (e.g. en.json)"),
    target: Path = typer.Option(..., "--target", "-t", help="Target catalog (created if missing)"),
    lang: str = typer.Option(..., "--lang", "-l", help="Target language code"),
    context: Optional[str] = typer.Option(
        None, "--context", "-c",
        help="Usage context applied to every entry",
    ),
    source_dir: Optional[Path] = typer.Option(
        None, "--source-dir",
        help="Application source tree to mine for usage context",
    ),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", help="Entries in flight"),
    no_vector_db: bool = typer.Option(False, "--no-vector-db", help="Disable the similarity index"),
    no_glossary: bool = typer.Option(False, "--no-glossary", help="Disable the glossary"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Hide the progress bar"),
    debug: bool = typer.Option(False, "--debug", help="Log generated prompts"),
):
    """Translate source keys that are missing from the target catalog."""
    config = _apply_run_overrides(ctx.obj, concurrency, no_vector_db, no_glossary, no_progress, debug)

    with handle_errors():
        report = _run_with_progress(
            config,
            f"Translating to {lang}...",
            lambda progress: translate_catalog(
                source, target, lang, config,
                context=context,
                source_dir=source_dir,
                progress=progress,
            ),
        )

    if report.requested == 0:
        console.print(f"[green]No missing translations.[/] {target} is up to date.")
        return
    _print_report(report, f"Translation to {lang}")
    console.print(f"[green]Saved to:[/] {target}")


@app.command()
def review(
    ctx: typer.Context,
    source: Path = typer.Option(..., "--source", "-s", help="Source catalog"),
    target: Path = typer.Option(..., "--target", "-t", help="Target catalog to review"),
    lang: str = typer.Option(..., "--lang", "-l", help="Target language code"),
    review_all: bool = typer.Option(
        False, "--all",
        help="Review every translation, not only outdated ones",
    ),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Usage context"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", help="Entries in flight"),
    no_vector_db: bool = typer.Option(False, "--no-vector-db", help="Disable the similarity index"),
    no_glossary: bool = typer.Option(False, "--no-glossary", help="Disable the glossary"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Hide the progress bar"),
    debug: bool = typer.Option(False, "--debug", help="Log generated prompts"),
):
    """Review and improve existing translations."""
    config = _apply_run_overrides(ctx.obj, concurrency, no_vector_db, no_glossary, no_progress, debug)

    with handle_errors():
        report = _run_with_progress(
            config,
            f"Reviewing {lang}...",
            lambda progress: review_catalog(
                source, target, lang, config,
                review_all=review_all,
                context=context,
                progress=progress,
            ),
        )

    if report.requested == 0:
        console.print("[green]No translations to review.[/]")
        return
    _print_report(report, f"Review of {lang}")
    console.print(f"[green]Saved to:[/] {target}")


@app.command(name="import")
def import_command(
    ctx: typer.Context,
    source: Path = typer.Option(..., "--source", "-s", help="File to import"),
    import_type: str = typer.Option(
        ..., "--type",
        help="What to import: glossary or translations",
    ),
    dest: Optional[Path] = typer.Option(
        None, "--dest", "-d",
        help="Destination catalog (translations only)",
    ),
    source_language: str = typer.Option("en", "--source-language", help="Source language code"),
    target_language: Optional[str] = typer.Option(
        None, "--target-language",
        help="Target language code",
    ),
    glossary_path: Optional[Path] = typer.Option(
        None, "--glossary-path",
        help="Glossary file (defaults to the configured one)",
    ),
    fmt: str = typer.Option("json", "--format", "-f", help="json or csv"),
):
    """Import a glossary or existing translations."""
    config: AppConfig = ctx.obj

    if fmt not in ("json", "csv"):
        console.print(f"[red]Error:[/] Unsupported format: {fmt}")
        raise typer.Exit(1)

    with handle_errors():
        if import_type == "glossary":
            path = glossary_path or Path(config.glossary.path)
            count = import_glossary(source, path, source_language, target_language, fmt)
            console.print(f"[green]Imported {count} glossary entries[/] into {path}")
        elif import_type == "translations":
            if dest is None:
                console.print("[red]Error:[/] Destination file (--dest) is required for translations import")
                raise typer.Exit(1)
            if not target_language:
                console.print("[red]Error:[/] Target language (--target-language) is required for translations import")
                raise typer.Exit(1)
            added, updated = import_translations(source, dest, target_language, fmt)
            console.print(f"[green]Imported translations[/] into {dest}: {added} added, {updated} updated")
        else:
            console.print(f"[red]Error:[/] Unknown import type: {import_type}")
            raise typer.Exit(1)


@app.command(name="build-vector")
def build_vector(
    ctx: typer.Context,
    source: Path = typer.Option(..., "--source", "-s", help="Source catalog"),
    target: Path = typer.Option(..., "--target", "-t", help="Translated catalog"),
    lang: str = typer.Option(..., "--lang", "-l", help="Target language code"),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Context stored with each pair"),
    batch_size: int = typer.Option(
        DEFAULT_VECTOR_BATCH_SIZE, "--batch-size",
        help="Pairs stored concurrently",
    ),
):
    """Seed the similarity index from an existing translation."""
    config: AppConfig = ctx.obj
    if batch_size < 1:
        console.print("[red]Error:[/] --batch-size must be >= 1")
        raise typer.Exit(1)

    with handle_errors():
        report = asyncio.run(build_vector_index(
            source, target, lang, config, context=context, batch_size=batch_size,
        ))

    if report.matched == 0:
        console.print("[yellow]No matched entries found.[/]")
        return
    console.print(
        f"[green]Similarity index updated:[/] {report.added} added, {report.errors} errors"
    )


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Option(..., "--query", "-q", help="Text to look up"),
    lang: str = typer.Option(..., "--lang", "-l", help="Target language code"),
    limit: int = typer.Option(DEFAULT_SEARCH_LIMIT, "--limit", "-n", help="Maximum results"),
):
    """Search the similarity index for prior translations."""
    config: AppConfig = ctx.obj

    with handle_errors():
        results = asyncio.run(search_similar(query, lang, config, limit=limit))

    if not results:
        console.print("[yellow]No similar translations found.[/]")
        return

    table = Table(title=f"Similar translations ({lang})")
    table.add_column("#", justify="right")
    table.add_column("Similarity", justify="right", style="cyan")
    table.add_column("Source", style="green")
    table.add_column("Translation")
    for i, result in enumerate(results, start=1):
        table.add_row(
            str(i),
            f"{round(result.similarity * 100)}%",
            escape(result.source),
            escape(result.translation),
        )
    console.print(table)


@app.command()
def glossary(
    ctx: typer.Context,
    list_terms: bool = typer.Option(False, "--list", help="List glossary terms"),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Restrict to one language"),
    search_text: Optional[str] = typer.Option(None, "--search", help="Search terms and translations"),
    add: Optional[str] = typer.Option(None, "--add", help="Term to add or update"),
    translation: Optional[str] = typer.Option(None, "--translation", help="Translation for --add"),
    context: Optional[str] = typer.Option(None, "--context", help="Context for --add"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Notes for --add"),
    remove: Optional[str] = typer.Option(None, "--remove", help="Term to remove"),
    path: Optional[Path] = typer.Option(None, "--path", help="Glossary file"),
):
    """Manage the glossary."""
    from i18n_app_translator.translate.glossary import GlossaryEntry, GlossaryStore

    config: AppConfig = ctx.obj
    store = GlossaryStore(path or config.glossary.path)

    with handle_errors():
        store.load()

        if add:
            if not lang or not translation:
                console.print("[red]Error:[/] --add requires --lang and --translation")
                raise typer.Exit(1)
            store.upsert(GlossaryEntry(
                term=add, translations={lang: translation}, context=context, notes=notes,
            ))
            store.save()
            console.print(f"[green]✓[/] {escape(add)} → {escape(translation)} ({lang})")
            return

        if remove:
            if store.remove(remove):
                store.save()
                console.print(f"[green]✓[/] Removed {remove}")
            else:
                console.print(f"[yellow]Term not found:[/] {remove}")
            return

    entries = store.search(search_text) if search_text else store.all_entries()
    if lang:
        entries = [entry for entry in entries if lang in entry.translations]

    if not entries:
        console.print("[yellow]No glossary entries found.[/]")
        return

    languages = [lang] if lang else store.languages()
    table = Table(title=f"Glossary ({len(entries)} terms)")
    table.add_column("Term", style="green")
    for language in languages:
        table.add_column(language, style="cyan")
    table.add_column("Context", style="dim")
    for entry in entries:
        table.add_row(
            escape(entry.term),
            *(escape(entry.translations.get(language, "-")) for language in languages),
            escape(entry.context or ""),
        )
    console.print(table)


@app.command()
def keys(
    action: str = typer.Argument(..., help="Action: list, set, status, delete"),
    service: Optional[str] = typer.Argument(None, help="Service name (openai, deepseek, anthropic)"),
):
    """Manage API keys.

    Examples:
        i18n-app-translator keys list
        i18n-app-translator keys set openai
        i18n-app-translator keys status openai
        i18n-app-translator keys delete openai
    """
    from i18n_app_translator.keys import SERVICES, KeyManager

    km = KeyManager()

    if action == "list":
        table = Table(title="API Keys Status")
        table.add_column("Service", style="cyan")
        table.add_column("Status")
        table.add_column("Source", style="yellow")
        table.add_column("Value", style="dim")
        for info in km.list_keys():
            status = "[green]✓ Set[/]" if info.is_set else "[red]✗ Not set[/]"
            table.add_row(info.service, status, info.source, info.masked_value or "-")
        console.print(table)
        console.print("\n[dim]Priority: env > keychain > key file[/]")
        return

    if action not in ("set", "status", "delete"):
        console.print(f"[red]Error:[/] Unknown action: {action}")
        raise typer.Exit(1)

    if not service:
        console.print("[red]Error:[/] Service name required")
        console.print(f"Available services: {', '.join(SERVICES)}")
        raise typer.Exit(1)

    if action == "set":
        from getpass import getpass
        key = getpass(f"Enter API key for {service}: ")
        if not key:
            console.print("[red]Error:[/] Key cannot be empty")
            raise typer.Exit(1)
        storage = km.set_key(service, key)
        console.print(f"[green]✓[/] API key for {service} saved to {storage}")

    elif action == "status":
        info = km.get_key_info(service)
        if info.is_set:
            console.print(f"[green]✓[/] API key for {service} is set")
            console.print(f"    Source: {info.source}")
            console.print(f"    Value: {info.masked_value}")
        else:
            console.print(f"[red]✗[/] No API key found for {service}")
            console.print(f"  Option 1: [cyan]i18n-app-translator keys set {service}[/]")
            console.print(f"  Option 2: [cyan]export {km.env_var(service)}='your-key-here'[/]")

    elif action == "delete":
        if km.delete_key(service):
            console.print(f"[green]✓[/] API key for {service} deleted")
        else:
            console.print(f"[yellow]⚠[/] No key found to delete for {service}")


if __name__ == "__main__":
    app()
