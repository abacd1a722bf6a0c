"""Command Line Interface for the EMR-Share transaction shell.

Each command runs one record transaction as the caller named by
``--caller-id`` and ``--role``, standing in for the credential a ledger
peer would verify before invoking the engine.

Examples:
    emr register --caller-id x509::doctor1 --role doctor --common-name doctor1
    emr create emr1 --patient patient1 --hospital hospital1 --diagnosis flu --caller-id x509::doctor1 --role doctor
    emr share emr1 doctor2 doctor --caller-id x509::doctor1 --role doctor
    emr list patient1 --caller-id x509::patient1 --role patient --json
"""

import json
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from emr_share.adapters.identity import StaticIdentity
from emr_share.domain.codec import record_to_dict
from emr_share.domain.models import MedicalRecord
from emr_share.domain.ports import EMRError
from emr_share.infrastructure.settings import APP_VERSION, get_settings
from emr_share.main import Application, build_service

app = typer.Typer(
    name="emr",
    help="EMR-Share: access-controlled medical record sharing",
    add_completion=False
)
console = Console()

CALLER_ID_HELP = "Stable id of the calling principal"
ROLE_HELP = "Role attribute of the caller (patient, doctor, hospital)"

# Each command is one transaction, so the shell needs a store that outlives it
SHELL_DB_PATH = "emr.duckdb"

_state = {"verbose": False}


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    version: bool = typer.Option(False, "--version", help="Show the application name and version"),
) -> None:
    _state["verbose"] = verbose
    if version:
        console.print(f"{get_settings().app_name} {APP_VERSION}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit()


def _open() -> Application:
    """Open the configured store, defaulting to a DuckDB file in the working directory."""
    settings = get_settings(default_store_type="duckdb", default_db_path=SHELL_DB_PATH)
    if _state["verbose"]:
        settings.log_level = "DEBUG"
    try:
        if settings.store_config.store_type == "memory":
            console.print(
                "[red]✗[/red] The in-memory store keeps nothing between commands; "
                "unset EMR_STORE_TYPE or set it to duckdb"
            )
            raise typer.Exit(code=1)
        return build_service(settings)
    except (ValueError, EMRError) as e:
        console.print(f"[red]✗[/red] Failed to initialize storage: {escape(str(e))}")
        raise typer.Exit(code=1)


def _fail(error: EMRError) -> None:
    console.print(f"[red]✗[/red] {type(error).__name__}: {escape(str(error))}")
    raise typer.Exit(code=1)


def _record_table(records: list[MedicalRecord]) -> Table:
    table = Table(show_header=True)
    table.add_column("Record")
    table.add_column("Patient")
    table.add_column("Doctor")
    table.add_column("Hospital")
    table.add_column("Created")
    table.add_column("Shared (doctors)")
    table.add_column("Shared (hospitals)")
    for record in records:
        table.add_row(
            record.emr_id,
            record.patient_id,
            record.doctor_id or "-",
            record.hospital_id or "-",
            record.created_on,
            ", ".join(record.shared_with_doctors) or "-",
            ", ".join(record.shared_with_hospitals) or "-",
        )
    return table


@app.command()
def register(
    caller_id: str = typer.Option(..., "--caller-id", help=CALLER_ID_HELP),
    role: Optional[str] = typer.Option(None, "--role", help=ROLE_HELP),
    common_name: Optional[str] = typer.Option(None, "--common-name", help="Directory name"),
    first_name: Optional[str] = typer.Option(None, "--first-name", help="Given name (when no common name)"),
    last_name: Optional[str] = typer.Option(None, "--last-name", help="Family name (when no common name)"),
) -> None:
    """Register the calling principal in the directory."""
    application = _open()
    caller = StaticIdentity.for_role(
        caller_id, role, commonName=common_name, firstName=first_name, lastName=last_name
    )
    try:
        principal = application.service.register_user(caller)
    except EMRError as e:
        _fail(e)
    finally:
        application.close()

    console.print(f"[green]✓[/green] Registered {principal.role.value} {escape(principal.display_name)}")


@app.command()
def create(
    emr_id: str = typer.Argument(..., help="New record id"),
    patient: str = typer.Option(..., "--patient", help="Patient display name"),
    doctor: Optional[str] = typer.Option(None, "--doctor", help="Doctor display name"),
    hospital: Optional[str] = typer.Option(None, "--hospital", help="Hospital display name"),
    diagnosis: str = typer.Option(..., "--diagnosis", help="Diagnosis text"),
    caller_id: str = typer.Option(..., "--caller-id", help=CALLER_ID_HELP),
    role: Optional[str] = typer.Option(None, "--role", help=ROLE_HELP),
) -> None:
    """Create a record (doctors and hospitals only)."""
    application = _open()
    try:
        record = application.service.create_record(
            StaticIdentity.for_role(caller_id, role), emr_id, patient, doctor, hospital, diagnosis
        )
    except EMRError as e:
        _fail(e)
    finally:
        application.close()

    console.print(f"[green]✓[/green] Created record {escape(record.emr_id)}")


@app.command()
def read(
    emr_id: str = typer.Argument(..., help="Record id"),
    caller_id: str = typer.Option(..., "--caller-id", help=CALLER_ID_HELP),
    role: Optional[str] = typer.Option(None, "--role", help=ROLE_HELP),
    as_json: bool = typer.Option(False, "--json", help="Print the persisted encoding"),
) -> None:
    """Read a record the caller is authorized to see."""
    application = _open()
    try:
        record = application.service.read_record(StaticIdentity.for_role(caller_id, role), emr_id)
    except EMRError as e:
        _fail(e)
    finally:
        application.close()

    if as_json:
        typer.echo(json.dumps(record_to_dict(record)))
    else:
        console.print(_record_table([record]))
        console.print(f"[bold]Diagnosis:[/bold] {escape(record.diagnosis)}")


@app.command()
def share(
    emr_id: str = typer.Argument(..., help="Record id"),
    target_name: str = typer.Argument(..., help="Display name of the principal to share with"),
    target_role: str = typer.Argument(..., help="Role to grant (doctor or hospital)"),
    caller_id: str = typer.Option(..., "--caller-id", help=CALLER_ID_HELP),
    role: Optional[str] = typer.Option(None, "--role", help=ROLE_HELP),
) -> None:
    """Share a record with a doctor or hospital."""
    application = _open()
    try:
        application.service.share_record(
            StaticIdentity.for_role(caller_id, role), emr_id, target_name, target_role
        )
    except EMRError as e:
        _fail(e)
    finally:
        application.close()

    console.print(f"[green]✓[/green] Shared record {escape(emr_id)} with {target_role} {escape(target_name)}")


@app.command(name="list")
def list_records(
    patient_name: str = typer.Argument(..., help="Patient display name"),
    caller_id: str = typer.Option(..., "--caller-id", help=CALLER_ID_HELP),
    role: Optional[str] = typer.Option(None, "--role", help=ROLE_HELP),
    as_json: bool = typer.Option(False, "--json", help="Print the persisted encodings as a JSON array"),
) -> None:
    """List a patient's records that the caller may read."""
    application = _open()
    try:
        records = list(application.service.list_records_for_patient(
            StaticIdentity.for_role(caller_id, role), patient_name
        ))
    except EMRError as e:
        _fail(e)
    finally:
        application.close()

    if as_json:
        typer.echo(json.dumps([record_to_dict(r) for r in records]))
        return

    if not records:
        console.print("[yellow]⚠[/yellow] No readable records")
        return
    console.print(_record_table(records))


if __name__ == "__main__":
    app()
