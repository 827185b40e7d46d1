# feedbackledger/cli/main.py
"""
CLI for submitting, browsing and checking encrypted peer-feedback records.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from feedbackledger.chain.session import WalletSession
from feedbackledger.config import Settings
from feedbackledger.core.errors import (
    EncryptionError,
    IndexAppendError,
    LedgerUnavailableError,
    NoSignerError,
    SigningRejectedError,
    ValidationError,
)
from feedbackledger.core.types import Category
from feedbackledger.crypto.keys import SignerKey
from feedbackledger.storage import SQLiteStorage
from feedbackledger.storage.transport import AuthenticatedLedger, ReadOnlyLedger
from feedbackledger.store.query import ALL_CATEGORIES, category_counts, filter_records, sort_recent
from feedbackledger.store.records import RecordStore
from feedbackledger.verify.orphans import OrphanScanner, repair

app = typer.Typer(
    name="feedback-ledger",
    help="Submit and browse confidential peer feedback stored on a key-value ledger",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

EXIT_INPUT = 1
EXIT_LEDGER = 2
EXIT_WALLET = 3
EXIT_ORPHANED = 4


def get_settings(db_flag: Optional[Path] = None, key_flag: Optional[Path] = None) -> Settings:
    """Resolve settings in this order:
    1. --db / --key flags
    2. FEEDBACK_LEDGER_* environment variables
    3. Defaults under ~/.feedbackledger/
    """
    try:
        settings = Settings.from_env()
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/]")
        raise typer.Exit(EXIT_INPUT)
    return settings.with_overrides(
        db_path=db_flag.resolve() if db_flag else None,
        key_file=key_flag.resolve() if key_flag else None,
    )


def open_storage(settings: Settings, must_exist: bool = True) -> SQLiteStorage:
    if must_exist and not settings.db_path.exists():
        console.print(f"[red]Database file not found: {settings.db_path}[/]")
        console.print("[yellow]To get started:[/]")
        console.print("  • Submit feedback first: feedback-ledger submit ...")
        console.print("  • Set env var: export FEEDBACK_LEDGER_DB_PATH=/path/to/ledger.db")
        console.print("  • Or use --db: feedback-ledger records --db /custom/path.db")
        raise typer.Exit(1)
    try:
        return SQLiteStorage(settings.db_path)
    except Exception as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        console.print("[yellow]The file may be corrupted or not a valid SQLite DB.[/]")
        raise typer.Exit(1)


def load_session(settings: Settings) -> WalletSession:
    if not settings.key_file.exists():
        return WalletSession()
    try:
        return WalletSession(signer=SignerKey.load(settings.key_file))
    except (OSError, ValueError) as e:
        console.print(f"[yellow]Warning: could not load signer key {settings.key_file}: {e}[/]")
        return WalletSession()


def build_store(storage: SQLiteStorage, settings: Settings,
                session: Optional[WalletSession] = None) -> RecordStore:
    reader = ReadOnlyLedger(storage, timeout=settings.timeout)
    writer = AuthenticatedLedger(storage, session, timeout=settings.timeout) if session else None
    return RecordStore(
        reader,
        settings.encryptor(),
        writer=writer,
        index_key=settings.index_key,
        max_retries=settings.index_retries,
    )


def _fmt_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def _short(account: str) -> str:
    if len(account) <= 14:
        return account
    return f"{account[:6]}...{account[-4:]}"


def _print_reindexed(record_ids) -> None:
    for record_id in record_ids:
        console.print(f"[green]Re-indexed {record_id}[/]")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show ledger activity logs"),
):
    """Manage encrypted peer-feedback records."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def keygen(
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Key file (default: FEEDBACK_LEDGER_KEY_FILE or ~/.feedbackledger/signer.key)"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing key file"),
):
    """Create a new signer key (wallet account) for submitting feedback."""
    settings = get_settings(key_flag=out)
    if settings.key_file.exists() and not force:
        console.print(f"[red]Key file already exists: {settings.key_file}[/]")
        console.print("  Use --force to replace it.")
        raise typer.Exit(1)

    signer = SignerKey.generate()
    path = signer.save(settings.key_file)
    console.print(f"[green]Created signer key {path}[/]")
    console.print(f"  Account: {signer.account}")


@app.command()
def submit(
    reviewee: str = typer.Argument(..., help="Account or name of the person being reviewed"),
    category: str = typer.Option(Category.COLLABORATION.value, "--category", "-c",
                                 help=f"One of: {', '.join(Category.values())}"),
    project: str = typer.Option("", "--project", "-p", help="Project id the feedback belongs to"),
    comment: str = typer.Option(..., "--comment", "-m", help="Feedback text (encrypted before storage)"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    key: Optional[Path] = typer.Option(None, "--key", help="Signer key file"),
):
    """Encrypt and submit a feedback record."""
    settings = get_settings(db, key)
    storage = open_storage(settings, must_exist=False)
    session = load_session(settings)
    if not session.can_sign:
        storage.close()
        console.print(f"[red]Wallet error: no signer key at {settings.key_file}[/]")
        console.print("  Create or point to a signer key: feedback-ledger keygen / --key PATH")
        raise typer.Exit(EXIT_WALLET)
    store = build_store(storage, settings, session)

    try:
        record = asyncio.run(store.create(
            reviewer=session.account,
            reviewee=reviewee,
            category=category,
            project_id=project,
            comment=comment,
        ))
    except (ValidationError, EncryptionError) as e:
        console.print(f"[red]Rejected before submission: {e}[/]")
        raise typer.Exit(EXIT_INPUT)
    except (NoSignerError, SigningRejectedError) as e:
        console.print(f"[red]Wallet error: {e}[/]")
        console.print("  Create or point to a signer key: feedback-ledger keygen / --key PATH")
        raise typer.Exit(EXIT_WALLET)
    except IndexAppendError as e:
        console.print(f"[yellow]Record {e.record_id} was stored but is not listed: {e.reason}[/]")
        console.print("  Run `feedback-ledger scan --repair` to re-index it.")
        raise typer.Exit(EXIT_ORPHANED)
    except LedgerUnavailableError as e:
        console.print(f"[red]Ledger error: {e}[/]")
        console.print("  Nothing was indexed; retry the submission.")
        raise typer.Exit(EXIT_LEDGER)
    finally:
        storage.close()

    console.print(f"[green]Encrypted feedback submitted: {record.id}[/]")
    console.print(f"  Reviewer: {record.reviewer}  Category: {record.category.value}")


@app.command()
def records(
    search: str = typer.Option("", "--search", "-s", help="Match reviewee or project (case-insensitive)"),
    category: str = typer.Option(ALL_CATEGORIES, "--category", "-c", help="Category filter or 'all'"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """List feedback records, most recent first."""
    settings = get_settings(db)
    storage = open_storage(settings)
    store = build_store(storage, settings)

    try:
        loaded = asyncio.run(store.list_all())
    except LedgerUnavailableError as e:
        console.print(f"[red]Ledger error: {e}[/]")
        raise typer.Exit(EXIT_LEDGER)
    finally:
        storage.close()

    shown = sort_recent(filter_records(loaded, search, category))
    if not shown:
        console.print("[yellow]No feedback records found.[/]")
        return

    table = Table(title="Feedback Records")
    table.add_column("Created")
    table.add_column("Record ID")
    table.add_column("Reviewer")
    table.add_column("Reviewee")
    table.add_column("Category")
    table.add_column("Project")

    for r in shown:
        table.add_row(_fmt_ts(r.created_at), r.id, _short(r.reviewer), _short(r.reviewee), r.category.value, r.project_id or "—")

    console.print(table)


@app.command()
def stats(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Show record counts per category."""
    settings = get_settings(db)
    storage = open_storage(settings)
    store = build_store(storage, settings)
    try:
        counts = category_counts(asyncio.run(store.list_all()))
    except LedgerUnavailableError as e:
        console.print(f"[red]Ledger error: {e}[/]")
        raise typer.Exit(EXIT_LEDGER)
    finally:
        storage.close()

    table = Table(title="Feedback Statistics")
    table.add_column("Category")
    table.add_column("Records")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)


@app.command()
def scan(
    fix: bool = typer.Option(False, "--repair", help="Re-append orphaned records to the index"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    key: Optional[Path] = typer.Option(None, "--key", help="Signer key file (needed for --repair)"),
):
    """Check that every stored record is indexed and every indexed id resolves."""
    settings = get_settings(db, key)
    storage = open_storage(settings)
    reader = ReadOnlyLedger(storage, timeout=settings.timeout)
    scanner = OrphanScanner(reader, index_key=settings.index_key)

    async def run():
        result = await scanner.scan()
        repaired = []
        if fix and result.orphans:
            store = build_store(storage, settings, load_session(settings))
            repaired = await repair(result, store.index)
            result = await scanner.scan()
        return result, repaired

    try:
        result, repaired = asyncio.run(run())
    except (NoSignerError, SigningRejectedError, IndexAppendError) as e:
        _print_reindexed(getattr(e, "repaired", []))
        console.print(f"[red]Repair failed: {e}[/]")
        raise typer.Exit(EXIT_WALLET if not isinstance(e, IndexAppendError) else EXIT_ORPHANED)
    except LedgerUnavailableError as e:
        _print_reindexed(getattr(e, "repaired", []))
        console.print(f"[red]Ledger error: {e}[/]")
        raise typer.Exit(EXIT_LEDGER)
    finally:
        storage.close()

    _print_reindexed(repaired)

    if result.is_clean:
        console.print(f"[green]✓ {result}[/]")
        return

    console.print(f"[red]✗ {len(result.findings)} issue(s) found[/]")
    for finding in result.findings:
        console.print(f"  • [{finding.record_id}] {finding.category}: {finding.message}")
    if result.orphans and not fix:
        console.print("[yellow]Run with --repair to re-index orphaned records.[/]")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
