import asyncio
import uuid
from pathlib import Path
from typing import Optional

import typer

from labjournal.catalog.metrics import all_definitions, lookup_by_key
from labjournal.commons.errors import LabJournalError
from labjournal.commons.logger import setup_logging
from labjournal.commons.reconciler import ImportPolicy, ImportReconciler
from labjournal.commons.types import Settings, load_cfg
from labjournal.helpers.file_store import JsonFileStore
from labjournal.parsers.models import format_value
from labjournal.services.import_service import ImportService
from labjournal.services.store_service import StoreManager

app = typer.Typer(add_completion=False, help="Blood-test journal")


def _bootstrap(config: str):
    cfg: Settings = load_cfg(config)
    logger = setup_logging(cfg.paths.logs_root, cfg.log_level, cfg.log_retention)
    store = StoreManager(JsonFileStore(cfg.paths.data_file))
    reconciler = ImportReconciler(
        strict_dates=cfg.parser.strict_dates, ignored_keys=cfg.parser.ignored_keys
    )
    svc = ImportService(store, reconciler, cfg.paths.model_dump())
    return cfg, logger, store, svc


@app.command("import-file")
def import_file(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with lab sheets"),
    policy: Optional[ImportPolicy] = typer.Option(None, help="replace | skip for same-day duplicates"),
    dry_run: bool = typer.Option(False, help="show the plan without saving"),
    config: str = typer.Option("configs/settings.yaml"),
):
    cfg, logger, store, svc = _bootstrap(config)
    text = path.read_text(encoding="utf-8")

    async def _amain():
        result = await svc.plan(text)
        for f in result.failures:
            typer.echo(f"{f.reason}: {'; '.join(f.details)}")
        for new, old in zip(result.duplicate_records, result.existing_records):
            typer.echo(f"Duplicate day {new.date.isoformat()}: '{new.event}' vs stored '{old.event}'")
        if dry_run:
            typer.echo(
                f"{len(result.new_records)} new, {len(result.duplicate_records)} duplicate, "
                f"{result.failed_count} failed"
            )
            return
        summary = await svc.apply(result, policy or cfg.imports.default_policy)
        typer.echo(summary.message())

    try:
        asyncio.run(_amain())
    except LabJournalError as ex:
        logger.error(f"Import failed: {ex}")
        raise typer.Exit(code=1)


@app.command("list")
def list_records(
    days: Optional[int] = typer.Option(None, help="only the last N days"),
    scheme: Optional[str] = typer.Option(None, help="filter by treatment scheme"),
    config: str = typer.Option("configs/settings.yaml"),
):
    _, _, store, _ = _bootstrap(config)
    asyncio.run(store.load_all())
    records = store.records_by_scheme(scheme, days) if scheme else store.records_within(days)
    for r in records:
        typer.echo(f"{r.date.isoformat()}  {r.id}  {r.tags.display_text() or '-'}")
        typer.echo(f"    {r.key_metrics_summary()}")


@app.command()
def stats(
    metric: str = typer.Argument(..., help="metric key, e.g. wbc"),
    days: Optional[int] = typer.Option(None),
    config: str = typer.Option("configs/settings.yaml"),
):
    definition = lookup_by_key(metric)
    if definition is None:
        known = ", ".join(d.key for d in all_definitions())
        typer.echo(f"Unknown metric '{metric}'. Known: {known}")
        raise typer.Exit(code=2)
    _, _, store, _ = _bootstrap(config)
    asyncio.run(store.load_all())
    history = store.history(metric, days)
    typer.echo(f"{definition.display_name} ({definition.unit or '-'})  ref {definition.normal_range_text}")
    for d, v in history:
        typer.echo(f"  {d.isoformat()}  {format_value(v)}")
    if history:
        typer.echo(
            f"avg {format_value(store.average(metric, days))}  "
            f"min {format_value(store.minimum(metric, days))}  "
            f"max {format_value(store.maximum(metric, days))}"
        )


@app.command()
def schemes(config: str = typer.Option("configs/settings.yaml")):
    _, _, store, _ = _bootstrap(config)
    asyncio.run(store.load_all())
    for s in store.all_schemes():
        typer.echo(f"{s}  ({len(store.records_by_scheme(s))})")


@app.command()
def delete(record_id: str, config: str = typer.Option("configs/settings.yaml")):
    _, logger, store, _ = _bootstrap(config)
    try:
        asyncio.run(store.delete(uuid.UUID(record_id)))
    except (ValueError, LabJournalError) as ex:
        logger.error(f"Delete failed: {ex}")
        raise typer.Exit(code=1)


@app.command()
def watch(
    policy: Optional[ImportPolicy] = typer.Option(None),
    config: str = typer.Option("configs/settings.yaml"),
):
    """Import every lab-sheet JSON dropped into the inbox folder."""
    cfg, logger, _, svc = _bootstrap(config)
    logger.info(f"Watching inbox {cfg.paths.inbox}")
    asyncio.run(svc.run_file_mode(cfg.imports.filename_glob, policy or cfg.imports.default_policy))


if __name__ == "__main__":
    app()
