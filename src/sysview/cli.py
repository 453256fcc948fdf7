"""CLI for sysview.

Provides a rich command-line interface using Typer for:
- Listing queryable field paths
- Building models from recorded samples
- Taking snapshots of the live cgroup tree
- Showing and dumping stored snapshots
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from sysview.collector.cgroupfs import CgroupReader, Collector
from sysview.core.config import load_config, save_config
from sysview.core.schemas import Sample, SysviewConfig
from sysview.export.dump import OUTPUT_FORMATS, dump_rows
from sysview.export.storage import ModelStorage
from sysview.model.cgroup import CgroupModelFieldId
from sysview.model.field import FieldIdError
from sysview.model.model import Model
from sysview.model.network import NetworkModelFieldId
from sysview.model.process import SingleProcessModelFieldId
from sysview.model.queriable import FieldId, Queriable, field_paths
from sysview.model.system import SystemModelFieldId
from sysview.utils.logging import setup_logging
from sysview.view.rows import cgroup_rows, format_field, process_rows, row_values
from sysview.view.state import ViewState

app = typer.Typer(
    name="sysview",
    help="cgroup, process and host resource models",
    add_completion=False,
)

console = Console()

FIELD_ID_TYPES: dict[str, type[FieldId]] = {
    "cgroup": CgroupModelFieldId,
    "process": SingleProcessModelFieldId,
    "system": SystemModelFieldId,
    "network": NetworkModelFieldId,
}

DEFAULT_PROCESS_FIELDS = [
    "pid",
    "comm",
    "state",
    "cpu.usage_pct",
    "mem.rss_bytes",
    "io.rwbytes_per_sec",
]


def _load_settings(config: Path | None) -> SysviewConfig:
    if config is None:
        return SysviewConfig()
    try:
        return load_config(config)
    except Exception as e:
        console.print(f"[bold red]Error loading config: {e}[/]")
        raise typer.Exit(1) from e


def _field_id_type(kind: str, allowed: tuple[str, ...]) -> type[FieldId]:
    if kind not in allowed:
        console.print(f"[bold red]Unknown table `{kind}`, choose from: {', '.join(allowed)}[/]")
        raise typer.Exit(1)
    return FIELD_ID_TYPES[kind]


def _parse_fields(field_id_type: type[FieldId], paths: list[str]) -> list[FieldId]:
    try:
        return [field_id_type.from_path(path) for path in paths]
    except FieldIdError as e:
        console.print(f"[bold red]{e}[/]")
        raise typer.Exit(1) from e


def _build_rows(
    model: Model,
    kind: str,
    settings: SysviewConfig,
    sort: str | None,
    ascending: bool,
    filter_expr: str | None,
) -> list[Queriable]:
    """Rows of a stored model with the sort and filter applied."""
    field_id_type = FIELD_ID_TYPES[kind]
    state = ViewState(field_id_type, reverse=settings.reverse and not ascending)
    sort = sort or (settings.cgroup_sort if kind == "cgroup" else settings.process_sort)
    if sort is not None and not state.set_sort_string(sort):
        console.print(f"[bold red]Invalid sort field: {sort}[/]")
        raise typer.Exit(1)
    if filter_expr is not None:
        path, sep, pattern = filter_expr.partition("=")
        if not sep or not state.set_filter_string(path, pattern):
            console.print(f"[bold red]Invalid filter `{filter_expr}`, expected FIELD=TEXT[/]")
            raise typer.Exit(1)
    if kind == "cgroup":
        return cgroup_rows(model.cgroup, state)
    return process_rows(model.process, state)


def _load_snapshot(snapshot_dir: Path, name: str | None) -> Model:
    try:
        return ModelStorage(snapshot_dir).load(name)
    except FileNotFoundError as e:
        console.print(f"[bold red]{e}[/]")
        raise typer.Exit(1) from e


@app.command()
def fields(
    kind: str = typer.Argument("cgroup", help="Model: cgroup, process, system, network"),
) -> None:
    """List the field paths that can be used to sort, filter and dump."""
    field_id_type = _field_id_type(kind, tuple(FIELD_ID_TYPES))
    for path in field_paths(field_id_type.all_variants()):
        console.print(path, highlight=False)


@app.command()
def build(
    sample: Path = typer.Option(..., "--sample", "-s", help="Current Sample (JSON)"),
    last: Path | None = typer.Option(None, "--last", help="Previous Sample (JSON)"),
    elapsed_ms: int = typer.Option(1000, "--elapsed-ms", help="Time between the two samples"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write model JSON here"),
    log_level: str = typer.Option("WARNING", "--log-level", "-l", help="Logging level"),
) -> None:
    """Derive a Model from recorded Sample files."""
    setup_logging(level=log_level)
    try:
        current = Sample.model_validate_json(sample.read_text())
        previous = None
        if last is not None:
            previous = (
                Sample.model_validate_json(last.read_text()),
                timedelta(milliseconds=elapsed_ms),
            )
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Error reading samples: {e}[/]")
        raise typer.Exit(1) from e

    model = Model.build(datetime.now(UTC), current, previous)
    text = model.model_dump_json(indent=2)
    if output is None:
        print(text)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text)
        console.print(f"[bold green]Model written to {output}[/]")


@app.command()
def snapshot(
    config: Path | None = typer.Option(None, "--config", "-c", help="Configuration file"),
    root: Path | None = typer.Option(None, "--root", help="cgroup2 mount (overrides config)"),
    snapshot_dir: Path | None = typer.Option(
        None, "--snapshot-dir", "-d", help="Snapshot directory (overrides config)"
    ),
    name: str | None = typer.Option(None, "--name", "-n", help="Label for the snapshot"),
    log_level: str | None = typer.Option(None, "--log-level", "-l", help="Logging level"),
) -> None:
    """Read the live cgroup tree twice and store the resulting Model."""
    settings = _load_settings(config)
    setup_logging(level=log_level or settings.log_level)

    collector = Collector(CgroupReader(root or settings.cgroup_root))
    try:
        collector.collect()
        time.sleep(settings.interval_ms / 1000)
        model = collector.collect()
    except FileNotFoundError as e:
        console.print(f"[bold red]{e}[/]")
        raise typer.Exit(1) from e

    path = ModelStorage(snapshot_dir or settings.snapshot_dir).save(model, name)
    console.print(f"[bold green]Captured {model.cgroup.count} cgroups to {path}[/]")


@app.command()
def show(
    kind: str = typer.Argument("cgroup", help="Table: cgroup or process"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Configuration file"),
    snapshot_dir: Path | None = typer.Option(None, "--snapshot-dir", "-d"),
    name: str | None = typer.Option(None, "--name", "-n", help="Snapshot name (default: latest)"),
    columns: list[str] | None = typer.Option(None, "--field", "-f", help="Column field path"),
    sort: str | None = typer.Option(None, "--sort", help="Sort field path"),
    ascending: bool = typer.Option(False, "--ascending", help="Sort ascending"),
    filter_expr: str | None = typer.Option(None, "--filter", help="FIELD=TEXT substring filter"),
) -> None:
    """Show a stored snapshot as a table."""
    settings = _load_settings(config)
    field_id_type = _field_id_type(kind, ("cgroup", "process"))
    default_fields = settings.dump_fields if kind == "cgroup" else DEFAULT_PROCESS_FIELDS
    field_ids = _parse_fields(field_id_type, columns or default_fields)

    model = _load_snapshot(snapshot_dir or settings.snapshot_dir, name)
    rows = _build_rows(model, kind, settings, sort, ascending, filter_expr)

    table = Table(title=f"{kind} @ {model.timestamp.isoformat()}")
    for field_id in field_ids:
        table.add_column(field_id.to_path(), style="cyan" if field_id is field_ids[0] else "white")
    for row, values in zip(rows, row_values(rows, field_ids)):
        cells = [format_field(value) for value in values]
        if kind == "cgroup":
            # indent the first column by tree depth
            cells[0] = "  " * row.get_depth() + cells[0]  # type: ignore[attr-defined]
        table.add_row(*cells)
    console.print(table)


@app.command()
def dump(
    kind: str = typer.Argument("cgroup", help="Table: cgroup or process"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Configuration file"),
    snapshot_dir: Path | None = typer.Option(None, "--snapshot-dir", "-d"),
    name: str | None = typer.Option(None, "--name", "-n", help="Snapshot name (default: latest)"),
    columns: list[str] | None = typer.Option(None, "--field", "-f", help="Column field path"),
    sort: str | None = typer.Option(None, "--sort", help="Sort field path"),
    ascending: bool = typer.Option(False, "--ascending", help="Sort ascending"),
    filter_expr: str | None = typer.Option(None, "--filter", help="FIELD=TEXT substring filter"),
    output_format: str = typer.Option("csv", "--format", help="Output format: csv, json"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to file"),
) -> None:
    """Dump a stored snapshot as csv or json."""
    settings = _load_settings(config)
    if output_format not in OUTPUT_FORMATS:
        console.print(f"[bold red]Unsupported output format: {output_format}[/]")
        raise typer.Exit(1)
    field_id_type = _field_id_type(kind, ("cgroup", "process"))
    default_fields = settings.dump_fields if kind == "cgroup" else DEFAULT_PROCESS_FIELDS
    field_ids = _parse_fields(field_id_type, columns or default_fields)

    model = _load_snapshot(snapshot_dir or settings.snapshot_dir, name)
    rows = _build_rows(model, kind, settings, sort, ascending, filter_expr)
    text = dump_rows(rows, field_ids, output_format, output)
    if output is None:
        print(text)
    else:
        console.print(f"[bold green]Wrote {len(rows)} rows to {output}[/]")


@app.command()
def init_config(
    output: Path = typer.Option(
        Path("sysview.yaml"), "--output", "-o", help="Output configuration file"
    ),
) -> None:
    """Generate a sample configuration file."""
    save_config(SysviewConfig(cgroup_sort="cpu.usage_pct", process_sort="cpu.usage_pct"), output)
    console.print(f"[bold green]Sample configuration written to {output}[/]")


if __name__ == "__main__":
    app()
