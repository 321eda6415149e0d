"""Command Line Interface for Cohort-Ledger.

This module provides a CLI using Typer for invoking the ledger operations:
record intake, proposal aggregation and re-keyed result derivation.

Security Impact:
    - Ciphertexts are printed only by the ``get`` commands that ask for them
    - Re-keying tokens can be passed through environment variables instead of
      the command line
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.table import Table

from cohort_ledger import __version__
from cohort_ledger.domain.models import LedgerEntity
from cohort_ledger.domain.ports import CohortLedgerError
from cohort_ledger.domain.services import CohortContract, RecordRegistry, derive_result_id
from cohort_ledger.infrastructure.logging_config import setup_logging
from cohort_ledger.infrastructure.settings import settings
from cohort_ledger.main import create_ledger_adapter, create_oracle_adapter

app = typer.Typer(
    name="cohortledger",
    help="Cohort-Ledger: encrypted cohort statistics over a key-value ledger",
    add_completion=False
)
record_app = typer.Typer(help="Create, read, update and list encrypted subject records")
proposal_app = typer.Typer(help="Aggregate subject records into encrypted proposals")
result_app = typer.Typer(help="Re-key proposals into results for another key owner")
app.add_typer(record_app, name="record")
app.add_typer(proposal_app, name="proposal")
app.add_typer(result_app, name="result")

console = Console()
logger = logging.getLogger(__name__)


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn domain and configuration errors into a red message and exit code 1."""
    try:
        yield
    except CohortLedgerError as e:
        console.print(f"[red]✗[/red] {type(e).__name__}: {str(e)}")
        raise typer.Exit(code=1)
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]✗[/red] Configuration error: {str(e)}")
        raise typer.Exit(code=1)


@contextmanager
def _open_registry() -> Iterator[RecordRegistry]:
    ledger = create_ledger_adapter()
    try:
        yield RecordRegistry(ledger, strict_decode=settings.strict_decode)
    finally:
        ledger.close()


@contextmanager
def _open_contract() -> Iterator[CohortContract]:
    ledger = create_ledger_adapter()
    try:
        oracle = create_oracle_adapter()
        try:
            yield CohortContract(ledger, oracle, strict_decode=settings.strict_decode)
        finally:
            oracle.close()
    finally:
        ledger.close()


def _print_entity(entity: LedgerEntity) -> None:
    payload = {"id": entity.ledger_key, **entity.model_dump(mode="json", by_alias=True)}
    console.print_json(data=payload)


# ============================================================================
# Records
# ============================================================================

@record_app.command("create")
def record_create(
    id: str = typer.Argument(..., help="Record id (ledger key)"),
    name: str = typer.Option(..., "--name", "-n", help="Subject display name"),
    condition: str = typer.Option(..., "--condition", "-c", help="Pre-existing conditions ciphertext"),
    diagnosis_id: str = typer.Option(..., "--diagnosis", "-d", help="Diagnosis id"),
    status_id: str = typer.Option(..., "--status", "-s", help="Status id"),
    key_id: str = typer.Option(..., "--key", "-k", help="Id of the key the ciphertext is under"),
) -> None:
    """Create a record (overwrites any value already stored at ID)."""
    with _handle_errors(), _open_registry() as registry:
        registry.create_record(id, name, condition, diagnosis_id, status_id, key_id)
    console.print(f"[green]✓[/green] Record {id} stored")


@record_app.command("get")
def record_get(id: str = typer.Argument(..., help="Record id")) -> None:
    """Print the record stored at ID."""
    with _handle_errors(), _open_registry() as registry:
        _print_entity(registry.find_record(id))


@record_app.command("update")
def record_update(
    id: str = typer.Argument(..., help="Record id (must exist)"),
    name: str = typer.Option(..., "--name", "-n", help="Subject display name"),
    condition: str = typer.Option(..., "--condition", "-c", help="Pre-existing conditions ciphertext"),
    diagnosis_id: str = typer.Option(..., "--diagnosis", "-d", help="Diagnosis id"),
    status_id: str = typer.Option(..., "--status", "-s", help="Status id"),
    key_id: str = typer.Option(..., "--key", "-k", help="Id of the key the ciphertext is under"),
) -> None:
    """Replace every field of an existing record."""
    with _handle_errors(), _open_registry() as registry:
        registry.update_record(id, name, condition, diagnosis_id, status_id, key_id)
    console.print(f"[green]✓[/green] Record {id} updated")


@record_app.command("list")
def record_list(
    first_id: str = typer.Argument(..., help="First key of the range (inclusive)"),
    last_id: str = typer.Argument("", help="End key of the range (exclusive, empty for no bound)"),
) -> None:
    """List records with keys in [FIRST_ID, LAST_ID)."""
    table = Table(title=f"Records [{first_id}, {last_id or '∞'})")
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Diagnosis")
    table.add_column("Status")
    table.add_column("Key ID", style="magenta")

    count = 0
    with _handle_errors(), _open_registry() as registry:
        for key, record in registry.all_records(first_id, last_id):
            table.add_row(key, record.display_name, record.diagnosis_id, record.status_id, record.key_id)
            count += 1

    console.print(table)
    console.print(f"[dim]{count} record(s)[/dim]")


# ============================================================================
# Proposals
# ============================================================================

@proposal_app.command("create")
def proposal_create(
    id: str = typer.Argument(..., help="Proposal id"),
    requester_id: str = typer.Option(..., "--requester", help="Requesting party id"),
    requested_id: str = typer.Option(..., "--requested", help="Requested party id"),
    subjects: str = typer.Option(..., "--subjects", help="Comma-separated subject record ids"),
    key_id: str = typer.Option(..., "--key", "-k", help="Key the aggregate is expressed under"),
    modulus: str = typer.Option(..., "--modulus", "-m", help="Modulus passed to the oracle"),
) -> None:
    """Compute the encrypted mean over SUBJECTS and store it as a proposal."""
    with _handle_errors(), _open_contract() as contract:
        contract.create_proposal(id, requester_id, requested_id, subjects, key_id, modulus)
    console.print(f"[green]✓[/green] Proposal {id} stored")


@proposal_app.command("get")
def proposal_get(id: str = typer.Argument(..., help="Proposal id")) -> None:
    """Print the proposal stored at ID."""
    with _handle_errors(), _open_contract() as contract:
        _print_entity(contract.find_proposal(id))


# ============================================================================
# Results
# ============================================================================

@result_app.command("create")
def result_create(
    proposal_id: str = typer.Argument(..., help="Proposal to re-key"),
    first_token: str = typer.Option(..., "--first-token", envvar="CL_FIRST_TOKEN", help="First re-keying token"),
    second_token: str = typer.Option(..., "--second-token", envvar="CL_SECOND_TOKEN", help="Second re-keying token"),
    key_id: str = typer.Option(..., "--key", "-k", help="Destination key id"),
    modulus: str = typer.Option(..., "--modulus", "-m", help="Modulus passed to the oracle"),
) -> None:
    """Re-key a proposal's aggregate and store it under the derived result id."""
    with _handle_errors(), _open_contract() as contract:
        contract.create_result(proposal_id, first_token, second_token, key_id, modulus)
    console.print(f"[green]✓[/green] Result {derive_result_id(proposal_id)} stored")


@result_app.command("get")
def result_get(id: str = typer.Argument(..., help="Result id (e.g. RESULT7)")) -> None:
    """Print the result stored at ID."""
    with _handle_errors(), _open_contract() as contract:
        _print_entity(contract.find_result(id))


# ============================================================================
# Misc
# ============================================================================

@app.command()
def info() -> None:
    """Show the active configuration (secrets are never shown)."""
    table = Table(title=f"{settings.app_name} {__version__}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    with _handle_errors():
        ledger_config = settings.ledger_config
        scan_batch_size = settings.scan_batch_size
    table.add_row("Ledger type", ledger_config.ledger_type)
    if ledger_config.ledger_type == "duckdb":
        table.add_row("Ledger path", ledger_config.db_path or ":memory:")
    else:
        table.add_row("Ledger host", str(ledger_config.host))
        table.add_row("Ledger database", str(ledger_config.database))

    oracle_url = settings.config_manager.get("oracle.base_url") or "[yellow]not configured[/yellow]"
    table.add_row("Oracle URL", oracle_url)
    table.add_row("Strict decode", str(settings.strict_decode))
    table.add_row("Scan batch size", str(scan_batch_size))
    table.add_row("Log level", settings.log_level)
    console.print(table)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version information"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Cohort-Ledger command line."""
    if version:
        console.print(f"{settings.app_name} {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit()
    setup_logging(use_json=settings.log_json, log_level="DEBUG" if verbose else settings.log_level)


def main(argv: Optional[list[str]] = None) -> None:
    app(args=argv)


if __name__ == "__main__":
    main()
