from __future__ import annotations

import json
from typing import List, Optional, Tuple

import typer

from .config import Settings
from .csv_export import digest_to_csv, movements_to_csv
from .errors import (
    DuplicateKey,
    LocationConflict,
    MissingRequiredField,
    NoChange,
    NoPriorLocation,
    NothingSelected,
    RecordNotFound,
    StorePathError,
    StructuralParseError,
)
from .extractor import extract_schedule
from .locations import LocationMachine, approximate_birth_date
from .logs import configure_logging
from .reconciler import reconcile
from .review import ImportSession
from .search import find_records, record_history
from .sheets import load_grid
from .store import JsonStore, delete_digest, resolve_in_root

app = typer.Typer(add_completion=False, no_args_is_help=True)

RootOption = typer.Option(None, "--root", help="Store directory (defaults to PRONTRACK_DATA_DIR)")
UserOption = typer.Option(None, "--user", help="Responsible user (defaults to PRONTRACK_USER)")


def _open(root: Optional[str]) -> Tuple[Settings, JsonStore]:
    settings = Settings.from_env()
    store = JsonStore(root or settings.data_dir)
    configure_logging(store.log_dir, settings.log_level)
    return settings, store


def _dump(obj) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)


def _fail(message: str, code: int = 1) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(code=code)


@app.command("init")
def cli_init(root: Optional[str] = RootOption):
    """Create the store directory and seed destinations and configuration."""
    _, store = _open(root)
    typer.echo(str(store.root))


@app.command("import-schedule")
def cli_import_schedule(
    file: str = typer.Option(..., "--file", help="Schedule export (.xlsx or .csv)"),
    root: Optional[str] = RootOption,
    apply: bool = typer.Option(False, "--apply", help="Create and move records for the selected entries"),
    force: bool = typer.Option(False, "--force", help="Apply even if some records are not in the source pool"),
    user: Optional[str] = UserOption,
    skip: List[str] = typer.Option([], "--skip", help="Record number to leave unselected (repeatable)"),
    schedule_date: Optional[str] = typer.Option(None, "--date", help="Schedule date YYYY-MM-DD"),
    doctor: Optional[str] = typer.Option(None, "--doctor"),
    specialty: Optional[str] = typer.Option(None, "--specialty"),
):
    """Extract appointments from a schedule and optionally apply them."""
    settings, store = _open(root)
    try:
        grid = load_grid(file)
    except StructuralParseError as e:
        raise _fail(str(e))

    result = extract_schedule(grid)
    if not result.ok:
        typer.echo(f"Read {result.rows_read} rows but found no patients.", err=True)
        raise _fail(result.guidance or "")

    session = ImportSession.from_result(result)
    overrides = {"doctor": doctor, "specialty": specialty, "schedule_date": schedule_date}
    overrides = {k: v for k, v in overrides.items() if v}
    if overrides:
        try:
            session.set_metadata(**overrides)
        except ValueError as e:
            raise _fail(f"invalid schedule metadata: {e}")
    session.apply_metadata()
    if skip:
        session.select_numbers(skip, False)

    if not apply:
        typer.echo(_dump({
            "metadata": session.metadata.model_dump(mode="json"),
            "entries": [e.model_dump(mode="json") for e in session.entries],
        }))
        return

    try:
        outcome = reconcile(store, session, user or settings.default_user, settings, force=force)
    except NothingSelected as e:
        raise _fail(str(e))
    except LocationConflict as e:
        typer.echo(_dump({
            "conflicts": [
                {"record_number": c.entry.record_number, "patient_name": c.entry.patient_name,
                 "current_location": c.current_location}
                for c in e.conflicts
            ]
        }))
        raise _fail(f"{e}; re-run with --force to move them anyway", code=2)

    typer.echo(_dump({
        "digest_id": outcome.digest.id,
        "created": outcome.created,
        "moved": outcome.moved,
        "failed": outcome.failed,
    }))


@app.command("create-record")
def cli_create_record(
    number: str = typer.Option(..., "--number"),
    name: str = typer.Option(..., "--name"),
    root: Optional[str] = RootOption,
    location: Optional[str] = typer.Option(None, "--location", help="Initial location (defaults to the source pool)"),
    age: Optional[int] = typer.Option(None, "--age", min=0),
    sex: Optional[str] = typer.Option(None, "--sex", help="M, F or O"),
    birth_date: Optional[str] = typer.Option(None, "--birth-date", help="YYYY-MM-DD"),
    status: str = typer.Option("Active", "--status"),
):
    settings, store = _open(root)
    if age is not None and not birth_date:
        birth_date = approximate_birth_date(age)
    machine = LocationMachine(store)
    try:
        record = machine.create_record(
            number, name, location or settings.source_pool,
            age=age, sex=sex, birth_date=birth_date, status=status,
        )
    except (DuplicateKey, MissingRequiredField, ValueError) as e:
        raise _fail(str(e))
    typer.echo(_dump(record.model_dump(mode="json")))


@app.command("move")
def cli_move(
    number: str = typer.Option(..., "--number"),
    to: str = typer.Option(..., "--to", help="Destination location"),
    root: Optional[str] = RootOption,
    user: Optional[str] = UserOption,
    note: Optional[str] = typer.Option(None, "--note"),
):
    settings, store = _open(root)
    if to not in store.get_destinations():
        raise _fail(f"unknown destination: {to}")
    machine = LocationMachine(store)
    try:
        if machine.get(number).current_location == to:
            raise _fail(f"record {number} is already at {to}")
        entry = machine.move(number, to, user or settings.default_user, note=note)
    except RecordNotFound as e:
        raise _fail(str(e))
    typer.echo(_dump(entry.model_dump(mode="json")))


@app.command("correct")
def cli_correct(
    number: str = typer.Option(..., "--number"),
    to: Optional[str] = typer.Option(None, "--to", help="Corrected location"),
    status: Optional[str] = typer.Option(None, "--status", help="Active, Deactivated or Lost"),
    root: Optional[str] = RootOption,
    user: Optional[str] = UserOption,
):
    settings, store = _open(root)
    if to and to not in store.get_destinations():
        raise _fail(f"unknown destination: {to}")
    machine = LocationMachine(store)
    try:
        location = to or machine.get(number).current_location
        entry = machine.correct(number, location, user or settings.default_user, status=status)
    except (RecordNotFound, NoChange, ValueError) as e:
        raise _fail(str(e))
    typer.echo(_dump(entry.model_dump(mode="json")))


@app.command("revert")
def cli_revert(
    number: str = typer.Option(..., "--number"),
    root: Optional[str] = RootOption,
    user: Optional[str] = UserOption,
):
    settings, store = _open(root)
    try:
        entry = LocationMachine(store).revert(number, user or settings.default_user)
    except (RecordNotFound, NoPriorLocation) as e:
        raise _fail(str(e))
    typer.echo(_dump(entry.model_dump(mode="json")))


@app.command("show")
def cli_show(number: str = typer.Option(..., "--number"), root: Optional[str] = RootOption):
    _, store = _open(root)
    record = store.get_record(number)
    if record is None:
        raise _fail(f"record not found: {number}")
    typer.echo(_dump(record.model_dump(mode="json")))


@app.command("records")
def cli_records(
    root: Optional[str] = RootOption,
    query: str = typer.Option("", "--query", help="Match on number or patient name"),
    location: Optional[str] = typer.Option(None, "--location"),
    sort: str = typer.Option("movement", "--sort", help="name, number, age or movement"),
    ascending: bool = typer.Option(False, "--asc"),
):
    _, store = _open(root)
    try:
        found = find_records(store.list_records(), query, location, sort, descending=not ascending)
    except ValueError as e:
        raise _fail(str(e))
    typer.echo(_dump([r.model_dump(mode="json") for r in found]))


@app.command("history")
def cli_history(
    root: Optional[str] = RootOption,
    number: Optional[str] = typer.Option(None, "--number", help="Only this record, newest first"),
):
    _, store = _open(root)
    movements = store.list_movements()
    if number:
        movements = record_history(movements, number)
    typer.echo(_dump([m.model_dump(mode="json") for m in movements]))


@app.command("export-csv")
def cli_export_csv(
    out: str = typer.Option(..., "--out", help="CSV path inside the store root"),
    root: Optional[str] = RootOption,
    digest: Optional[str] = typer.Option(None, "--digest", help="Export one batch digest instead of the movement log"),
):
    _, store = _open(root)
    try:
        target = resolve_in_root(store.root, out)
    except StorePathError as e:
        raise _fail(str(e))
    if digest:
        match = next((d for d in store.list_digests() if d.id == digest), None)
        if match is None:
            raise _fail(f"digest not found: {digest}")
        path = digest_to_csv(match, target)
    else:
        path = movements_to_csv(store.list_movements(), target)
    typer.echo(str(path))


@app.command("digests")
def cli_digests(root: Optional[str] = RootOption):
    _, store = _open(root)
    digests = sorted(store.list_digests(), key=lambda d: d.imported_at, reverse=True)
    typer.echo(_dump([
        {
            "id": d.id,
            "imported_at": d.imported_at.isoformat(),
            "user": d.user,
            "doctor": d.doctor,
            "specialty": d.specialty,
            "total": d.total,
        }
        for d in digests
    ]))


@app.command("delete-digest")
def cli_delete_digest(digest_id: str = typer.Option(..., "--id"), root: Optional[str] = RootOption):
    _, store = _open(root)
    if not delete_digest(store, digest_id):
        raise _fail(f"digest not found: {digest_id}")
    typer.echo(digest_id)


@app.command("destinations")
def cli_destinations(
    root: Optional[str] = RootOption,
    add: Optional[str] = typer.Option(None, "--add"),
    remove: Optional[str] = typer.Option(None, "--remove"),
):
    _, store = _open(root)
    dests = store.get_destinations()
    if add:
        if add.strip() in dests:
            raise _fail(f"destination already exists: {add}")
        dests.append(add.strip())
    if remove:
        if remove not in dests:
            raise _fail(f"unknown destination: {remove}")
        dests.remove(remove)
    if add or remove:
        store.set_destinations(dests)
    typer.echo(_dump(dests))


@app.command("version")
def cli_version():
    from importlib.metadata import PackageNotFoundError, version as _pkg_version

    try:
        typer.echo(_pkg_version("prontrack"))
    except PackageNotFoundError:
        from . import __version__
        typer.echo(__version__)


if __name__ == "__main__":
    app()
