# ruff: noqa: I001
"""CLI for the ``sms_categorizer`` package.

Command handlers (``cmd_*``) return process exit codes and print errors to
stderr; the Typer commands below are thin wrappers that turn those codes into
the process exit status. ``.env`` in the working directory is loaded with
``python-dotenv`` (without overriding the environment) and logging is
configured in the root callback before any command runs.
"""

from __future__ import annotations

import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo, OptionInfo

from .config import get_settings
from .logging_setup import configure_logging, get_logger

logger = get_logger("sms_categorizer.cli")


# ---- Small helpers -----------------------------------------------------------


def _settings(database_url: str | None):
    s = get_settings()
    return replace(s, database_url=database_url) if database_url else s


def _collaborators(database_url: str | None):
    """Build the service, ledger writer and pending store for one database."""

    from db.client import get_sessionmaker

    from .ledger import DbLedgerWriter
    from .service import CategorizationService
    from .store import PatternStore
    from .workflows.intake_flow import PendingDecisionStore

    settings = _settings(database_url)
    sessions = get_sessionmaker(database_url=settings.database_url)
    service = CategorizationService(PatternStore(sessions), workers=settings.signal_workers)
    return service, DbLedgerWriter(), PendingDecisionStore(sessions)


def _read_text(text: str) -> str:
    return sys.stdin.read() if text == "-" else text


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, sort_keys=True))


# ---- Command handlers --------------------------------------------------------


def cmd_init_db(*, database_url: str | None = None) -> int:
    """Create any missing tables from the ORM metadata.

    Intended for local/dev databases; managed deployments run the Alembic
    migrations under ``libs/db`` instead.
    """

    from db import metadata
    from db.client import get_engine

    try:
        engine = get_engine(database_url=_settings(database_url).database_url)
        metadata.create_all(bind=engine)
    except Exception as e:
        print(f"Error: failed to initialize database: {e}", file=sys.stderr)
        return 1
    typer.echo("Database initialized.")
    return 0


def cmd_seed_categories(*, user_id: int, database_url: str | None = None) -> int:
    from db.client import session_scope

    from .categories import ensure_default_categories

    try:
        with session_scope(database_url=_settings(database_url).database_url) as session:
            created = ensure_default_categories(session, user_id=user_id)
    except Exception as e:
        print(f"Error: failed to seed categories: {e}", file=sys.stderr)
        return 1
    if created:
        typer.echo(f"Created: {', '.join(created)}")
    else:
        typer.echo("Default categories already present.")
    return 0


def cmd_parse(text: str, *, timestamp: str | None = None) -> int:
    """Print the parsed transaction as JSON, or ``null`` when not a transaction."""

    from .models import ParsedTransactionSnapshot
    from .parser import InvalidTimestamp, parse_message

    try:
        tx = parse_message(_read_text(text), timestamp)
    except InvalidTimestamp as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    if tx is None:
        typer.echo("null")
        return 0
    doc = ParsedTransactionSnapshot.from_transaction(tx).model_dump(mode="json")
    doc.pop("schema_version", None)
    _echo_json(doc)
    return 0


def cmd_ingest(
    text: str,
    *,
    user_id: int,
    timestamp: str | None = None,
    interactive: bool = False,
    database_url: str | None = None,
) -> int:
    """Run one message through intake; optionally answer the prompt right away."""

    from .decision import TransactionState
    from .parser import InvalidTimestamp
    from .workflows.intake_flow import process_message

    try:
        service, ledger, pending = _collaborators(database_url)
        outcome = process_message(
            user_id,
            _read_text(text),
            timestamp,
            service=service,
            ledger=ledger,
            pending=pending,
        )
    except InvalidTimestamp as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"Error: intake failed: {e}", file=sys.stderr)
        return 1

    if outcome.state is TransactionState.REJECTED:
        typer.echo("Not a transaction message; skipped.")
        return 0

    tx = outcome.transaction
    result = outcome.result
    if tx is None or result is None:
        print("Error: intake returned no transaction", file=sys.stderr)
        return 1
    typer.echo(
        f"{tx.source} {tx.type} {tx.amount:.3f} {tx.merchant or '(unknown merchant)'}"
        f" [hint: {tx.category}]"
    )

    if outcome.state is TransactionState.AUTO_CATEGORIZED:
        typer.echo(
            f"Auto-categorized as {result.category_name!r} "
            f"(confidence {result.confidence:.2f}; ledger entry {outcome.ledger_entry_id})."
        )
        return 0

    from .term_ui import format_suggestions

    typer.echo(f"Pending decision {outcome.pending_id}: {result.reason}")
    for line in format_suggestions(result.suggestions):
        typer.echo(f"  - {line}")

    if not interactive or outcome.pending_id is None:
        return 0
    return _answer_interactively(
        user_id,
        outcome.pending_id,
        prefill=outcome.decision.category_id if outcome.decision else None,
        tx_type=tx.type,
        service=service,
        ledger=ledger,
        pending=pending,
    )


def _answer_interactively(
    user_id: int,
    pending_id: int,
    *,
    prefill: int | None,
    tx_type: str,
    service,
    ledger,
    pending,
) -> int:
    from .categories import create_category, list_categories
    from .term_ui import CreateCategoryRequest, prompt_new_category_name, select_category_or_create
    from .workflows.intake_flow import complete_decision

    with pending.transaction() as session:
        categories = list_categories(session, user_id=user_id)
    by_id = {c["id"]: c for c in categories}
    default = by_id[prefill]["name"] if prefill in by_id else ""

    choice = select_category_or_create([c["name"] for c in categories], default=default)
    if isinstance(choice, CreateCategoryRequest):
        name = prompt_new_category_name(initial=choice.name)
        if name is None:
            typer.echo("Canceled; the decision stays pending.")
            return 0
        category_type = "INCOME" if tx_type == "income" else "EXPENSE"
        with pending.transaction() as session:
            res = create_category(
                session, user_id=user_id, name=name, category_type=category_type
            )
        category_id = res["category"]["id"]
    else:
        category_id = next(c["id"] for c in categories if c["name"] == choice)

    try:
        outcome = complete_decision(
            user_id, pending_id, category_id, service=service, ledger=ledger, pending=pending
        )
    except (LookupError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    typer.echo(f"Recorded ledger entry {outcome.ledger_entry_id}.")
    return 0


def cmd_decide(
    pending_id: int,
    category_id: int,
    *,
    user_id: int,
    database_url: str | None = None,
) -> int:
    from .workflows.intake_flow import complete_decision

    try:
        service, ledger, pending = _collaborators(database_url)
        outcome = complete_decision(
            user_id, pending_id, category_id, service=service, ledger=ledger, pending=pending
        )
    except (LookupError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: decision failed: {e}", file=sys.stderr)
        return 1
    typer.echo(f"Recorded ledger entry {outcome.ledger_entry_id}.")
    return 0


def cmd_cliq_patterns(
    *,
    user_id: int,
    transaction_type: str | None = None,
    database_url: str | None = None,
) -> int:
    try:
        service, _ledger, _pending = _collaborators(database_url)
        patterns = service.cliq_patterns(user_id, transaction_type)
    except Exception as e:
        print(f"Error: failed to list CliQ patterns: {e}", file=sys.stderr)
        return 1
    if not patterns:
        typer.echo("No CliQ patterns learned yet.")
        return 0
    for p in patterns:
        typer.echo(_pattern_line(p))
    return 0


def _pattern_line(p) -> str:
    flags = ",".join(
        f for f, on in (("recurring", p.is_recurring), ("business", p.is_business_like)) if on
    )
    return (
        f"{p.sender}\t{p.transaction_type}\t{p.category_name}\t"
        f"avg={p.average_amount:.3f}\tuses={p.use_count}\t"
        f"confidence={p.confidence:.2f}\t{flags or '-'}"
    )


def cmd_cliq_pattern_update(
    sender: str,
    transaction_type: str,
    *,
    user_id: int,
    is_recurring: bool | None = None,
    category_id: int | None = None,
    database_url: str | None = None,
) -> int:
    """Override the recurring flag and/or category of a learned sender."""

    if is_recurring is None and category_id is None:
        print("Error: pass --recurring/--not-recurring and/or --category-id", file=sys.stderr)
        return 2
    try:
        service, _ledger, _pending = _collaborators(database_url)
        pattern = service.update_cliq_pattern(
            user_id,
            sender,
            transaction_type,
            is_recurring=is_recurring,
            category_id=category_id,
        )
    except LookupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: failed to update CliQ pattern: {e}", file=sys.stderr)
        return 1
    typer.echo(_pattern_line(pattern))
    return 0


def cmd_pending(*, user_id: int, database_url: str | None = None) -> int:
    """List open pending decisions, oldest first."""

    try:
        _service, _ledger, pending = _collaborators(database_url)
        records = pending.list_open(user_id)
    except Exception as e:
        print(f"Error: failed to list pending decisions: {e}", file=sys.stderr)
        return 1
    if not records:
        typer.echo("No pending decisions.")
        return 0
    for r in records:
        tx = r.transaction
        suggested = next(
            (s.category_name for s in r.suggestions if s.category_id == r.suggested_category_id),
            "-",
        )
        typer.echo(
            f"{r.id}\t{tx.timestamp.isoformat()}\t{tx.source} {tx.type} {tx.amount:.3f}\t"
            f"{tx.merchant or '(unknown merchant)'}\tsuggested={suggested}"
        )
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Parse bank/CliQ SMS messages and categorize them with patterns learned "
        "from your decisions. Loads DATABASE_URL from a local .env."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect these when used in the annotations below.
USER_ID_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--user-id",
    help="Owner of the categories, patterns and ledger entries.",
)
TEXT_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,  # required
    help="Message text, or '-' to read it from stdin.",
)


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


@app.command("init-db")
def init_db_cmd(
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Create the schema in the configured database."""

    _exit(cmd_init_db(database_url=database_url))


@app.command("seed-categories")
def seed_categories_cmd(
    user_id: Annotated[int, USER_ID_OPTION],
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Create the starter categories for a user (idempotent)."""

    _exit(cmd_seed_categories(user_id=user_id, database_url=database_url))


@app.command("parse")
def parse_cmd(
    text: Annotated[str, TEXT_ARGUMENT],
    *,
    timestamp: str | None = typer.Option(
        None, help="ISO-8601 receive time (default: now in SMS_CATEGORIZER_TZ)."
    ),
) -> None:
    """Parse one message and print it as JSON (``null`` if not a transaction)."""

    _exit(cmd_parse(text, timestamp=timestamp))


@app.command("ingest")
def ingest_cmd(
    text: Annotated[str, TEXT_ARGUMENT],
    user_id: Annotated[int, USER_ID_OPTION],
    *,
    timestamp: str | None = typer.Option(
        None, help="ISO-8601 receive time (default: now in SMS_CATEGORIZER_TZ)."
    ),
    interactive: bool = typer.Option(
        False, "--interactive/--no-interactive", help="Answer the category prompt now."
    ),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Parse, categorize and book (or queue) one message."""

    _exit(
        cmd_ingest(
            text,
            user_id=user_id,
            timestamp=timestamp,
            interactive=interactive,
            database_url=database_url,
        )
    )


@app.command("decide")
def decide_cmd(
    pending_id: int = typer.Argument(..., help="Pending decision id."),
    category_id: int = typer.Argument(..., help="Chosen category id."),
    *,
    user_id: Annotated[int, USER_ID_OPTION],
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Answer a pending decision with a category."""

    _exit(cmd_decide(pending_id, category_id, user_id=user_id, database_url=database_url))


@app.command("cliq-patterns")
def cliq_patterns_cmd(
    user_id: Annotated[int, USER_ID_OPTION],
    *,
    transaction_type: str | None = typer.Option(
        None, "--type", help="Filter by direction: income, expense or unknown."
    ),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """List learned CliQ sender patterns (recurring first)."""

    _exit(
        cmd_cliq_patterns(
            user_id=user_id, transaction_type=transaction_type, database_url=database_url
        )
    )


@app.command("cliq-pattern-update")
def cliq_pattern_update_cmd(
    sender: str = typer.Argument(..., help="Sender name as shown in the message."),
    transaction_type: str = typer.Argument(..., help="Direction: income, expense or unknown."),
    *,
    user_id: Annotated[int, USER_ID_OPTION],
    recurring: bool | None = typer.Option(
        None, "--recurring/--not-recurring", help="Mark the sender as recurring or not."
    ),
    category_id: int | None = typer.Option(None, help="Category to file this sender under."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Correct what was learned about a CliQ sender."""

    _exit(
        cmd_cliq_pattern_update(
            sender,
            transaction_type,
            user_id=user_id,
            is_recurring=recurring,
            category_id=category_id,
            database_url=database_url,
        )
    )


@app.command("pending")
def pending_cmd(
    user_id: Annotated[int, USER_ID_OPTION],
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """List messages still waiting for a category decision."""

    _exit(cmd_pending(user_id=user_id, database_url=database_url))


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
