"""
mentortrust CLI - operator commands for the verification service

Serve the API, seed profiles, run verification and inspect status
against a SQLite store.
"""
import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from mentortrust.config import get_config
from mentortrust.errors import VerificationError
from mentortrust.models import DocumentPayload, IdentityAssertion, VerificationRequest
from mentortrust.service import build_service
from mentortrust.store import SQLiteStore
from mentortrust.utils import get_logger, setup_logging
from mentortrust.verifiers.documents import normalize_document_type

console = Console()
logger = get_logger(__name__)

db_option = click.option(
    '--db', 'db_path', type=click.Path(dir_okay=False), default=None,
    help='SQLite database path (defaults to MENTORTRUST_SQLITE_PATH)',
)


def _open_store(db_path):
    return SQLiteStore(db_path or get_config().sqlite_path)


def _flag(value):
    return "[green]yes[/green]" if value else "[red]no[/red]"


def _document_types(ctx, param, value):
    try:
        return [(normalize_document_type(doc_type), path) for doc_type, path in value]
    except ValueError as exc:
        raise click.BadParameter(str(exc), ctx=ctx, param=param) from exc


# ═══════════════════════════════════════════════════════════════════
# MAIN CLI GROUP
# ═══════════════════════════════════════════════════════════════════

@click.group()
@click.version_option(version='0.1.0')
def main():
    """
    mentortrust - Mentor verification and trust scoring

    Combines GitHub, credential document and identity checks into a
    single trust score and verification status.
    """
    cfg = get_config()
    setup_logging(cfg.log_level, cfg.log_file)


# ═══════════════════════════════════════════════════════════════════
# SERVER
# ═══════════════════════════════════════════════════════════════════

@main.command()
@click.option('--host', default=None, help='Bind address')
@click.option('--port', type=int, default=None, help='Bind port')
@click.option('--reload', is_flag=True, help='Auto-reload on code changes')
def serve(host, port, reload):
    """Run the HTTP API with uvicorn"""
    import uvicorn

    cfg = get_config()
    uvicorn.run(
        "mentortrust.api.main:app",
        host=host or cfg.api_host,
        port=port or cfg.api_port,
        reload=reload,
    )


# ═══════════════════════════════════════════════════════════════════
# PROFILES
# ═══════════════════════════════════════════════════════════════════

@main.command()
@click.argument('user_id')
@click.option('--type', 'profile_type', default='mentor', show_default=True, help='Profile type')
@db_option
def profile(user_id, profile_type, db_path):
    """Create or update a profile"""
    store = _open_store(db_path)
    try:
        saved = store.put_profile(user_id, profile_type)
    finally:
        store.close()
    console.print(f"\n[green]✓ Profile {saved.user_id} saved as '{saved.type}'[/green]")


# ═══════════════════════════════════════════════════════════════════
# VERIFICATION
# ═══════════════════════════════════════════════════════════════════

@main.command()
@click.argument('user_id')
@click.option('--handle', default=None, help='GitHub handle')
@click.option('--code', default=None,
              help='Ownership code the user placed in their GitHub bio, verification-repo or a gist')
@click.option('--document', 'documents', multiple=True, type=(str, click.Path(exists=True, dir_okay=False)),
              callback=_document_types,
              help='Document type and file, e.g. --document "professional license" license.pdf')
@click.option('--identity', default=None, help='Identity method that was verified upstream (e.g. email)')
@db_option
def verify(user_id, handle, code, documents, identity, db_path):
    """Start or advance verification for a user"""
    if code and not handle:
        raise click.UsageError("--code requires --handle")
    payloads = [
        DocumentPayload(
            id=f"doc-{index}",
            doc_type=doc_type,
            content=Path(path).read_bytes(),
            name=Path(path).name,
            media_type="application/pdf" if path.lower().endswith(".pdf") else "text/plain",
        )
        for index, (doc_type, path) in enumerate(documents, start=1)
    ]
    request = VerificationRequest(
        source_handle=handle,
        documents=payloads,
        identity_assertion=IdentityAssertion(method=identity, verified=True) if identity else None,
    )

    store = _open_store(db_path)
    service = build_service(get_config(), store=store)
    if code:
        service.challenges.issue(user_id, handle, code=code)

    async def _run():
        try:
            return await service.verify(user_id, request)
        finally:
            await service.aclose()

    try:
        with console.status("[bold green]Verifying..."):
            record = asyncio.run(_run())
    except VerificationError as err:
        logger.warning("Verification for %s rejected: %s", user_id, err.kind.value)
        console.print(f"\n[red]✗ {err.kind.value}: {err.reason}[/red]")
        raise SystemExit(1)
    finally:
        store.close()

    table = Table(title=f"Verification - {user_id}")
    table.add_column("Channel", style="cyan")
    table.add_column("Verified")
    table.add_column("Detail", style="magenta")
    table.add_row("source", _flag(record.source_verified), f"score {record.source_score:g}")
    table.add_row(
        "documents", _flag(record.documents_verified),
        ", ".join(f"{r.id}: {'ok' if r.passed else r.reason}" for r in record.document_results),
    )
    table.add_row("identity", _flag(record.identity_verified), ", ".join(record.identity_methods))
    console.print(table)
    for channel, error in record.channel_errors.items():
        console.print(f"[yellow]! {channel}: {error.get('reason')}[/yellow]")
    console.print(f"\nStatus: [bold]{record.status.value}[/bold]")


@main.command()
@click.argument('user_id')
@db_option
def status(user_id, db_path):
    """Show trust score and status for a user"""
    store = _open_store(db_path)
    try:
        view = build_service(get_config(), store=store).status(user_id)
    finally:
        store.close()

    table = Table(title=f"Verification Status - {user_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Source", _flag(view.source_verified))
    table.add_row("Documents", _flag(view.documents_verified))
    table.add_row("Identity", _flag(view.identity_verified))
    table.add_row("Score", f"{view.score:.2f}")
    table.add_row("Status", view.status.value)
    console.print(table)


@main.command()
@click.argument('user_id')
@db_option
def eligibility(user_id, db_path):
    """Check whether a user may enter verification"""
    store = _open_store(db_path)
    try:
        decision = build_service(get_config(), store=store).eligibility(user_id)
    finally:
        store.close()

    if decision.eligible:
        console.print(f"\n[green]✓ {user_id} is eligible[/green]")
    else:
        console.print(f"\n[red]✗ {user_id} is not eligible: {decision.reason}[/red]")


if __name__ == '__main__':
    main()
