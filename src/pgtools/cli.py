"""pgtools CLI: read, index and query GFA pangenome graphs.

Commands:
    pgtools init                          write pgtools.toml
    pgtools stats -i GFA                  graph statistics (text or JSON)
    pgtools index -i GFA [-t TYPE]        build GFA.pgi
    pgtools query -i GFA segment -n S1    random access through the index
    pgtools index-info -x IDX             summary of an index file
    pgtools validate -i GFA               dangling reference checks
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

import click

from pgtools.builder import UNDEFINED_POLICIES, build_index, passes_for
from pgtools.config import PgToolsConfig, init_config, load_config
from pgtools.errors import PgToolsError, PgToolsIOError
from pgtools.graph import GfaGraph
from pgtools.models import IndexType, Walk
from pgtools.query import IndexedReader
from pgtools.serialize import check_fingerprint, load_index, save_index
from pgtools.stats import GfaStats
from pgtools.validate import validate_graph

_LOG_FORMAT = "%(asctime)s %(name)s %(message)s"
_MAX_LISTED = 5

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _cfg(ctx: click.Context) -> PgToolsConfig:
    return ctx.find_root().obj


def _fail(exc: Exception) -> click.ClickException:
    return click.ClickException(str(exc))


def _load_graph(path: Path) -> GfaGraph:
    try:
        return GfaGraph.from_file(path)
    except PgToolsError as exc:
        raise _fail(exc) from exc


def _index_type(value: str) -> IndexType:
    try:
        return IndexType.parse(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="'-t' / '--type'") from exc


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="pgtools")
@click.option("-v", "--verbose", is_flag=True, help="Log progress (INFO level)")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding pgtools.toml (default: search upward from cwd)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_dir: Path | None) -> None:
    """pgtools: PanGenome Tools for reading and indexing GFA files."""
    try:
        cfg = load_config(config_dir)
    except (ValueError, OSError) as exc:
        raise _fail(exc) from exc
    ctx.obj = cfg
    level = logging.INFO if verbose else cfg.logging.level_no
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    logging.getLogger("pgtools").setLevel(level)


# ---------------------------------------------------------------------------
# pgtools init
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(root: str) -> None:
    """Write a default pgtools.toml."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path)
    except FileExistsError:
        click.echo("pgtools.toml already exists, skipping init")
        return
    click.echo(f"Created {config_path}")


# ---------------------------------------------------------------------------
# pgtools stats
# ---------------------------------------------------------------------------


@cli.command()
@click.option("-i", "--input", "input_path", required=True, type=click.Path(dir_okay=False, path_type=Path))
@click.option("-f", "--format", "fmt", type=click.Choice(["text", "json"]), default="text", show_default=True)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None)
def stats(input_path: Path, fmt: str, output: Path | None) -> None:
    """Display statistics about a GFA file."""
    start = time.monotonic()
    graph = _load_graph(input_path)
    result = GfaStats.from_graph(graph)
    click.echo(f"Done in {time.monotonic() - start:.2f}s", err=True)

    text = result.to_json() if fmt == "json" else result.format_summary()
    if output is not None:
        try:
            output.write_text(text)
        except OSError as exc:
            raise _fail(PgToolsIOError(str(output), exc.strerror or str(exc))) from exc
        click.echo(f"Statistics written to: {output}")
    else:
        click.echo(text)


# ---------------------------------------------------------------------------
# pgtools index / index-info
# ---------------------------------------------------------------------------


@cli.command()
@click.option("-i", "--input", "input_path", required=True, type=click.Path(dir_okay=False, path_type=Path))
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Index file (default: <input><suffix>)")
@click.option("-t", "--type", "type_name", default=None, help="segment, path, position or full")
@click.option("--undefined", type=click.Choice(UNDEFINED_POLICIES), default=None,
              help="What to do with path steps naming an undefined segment")
@click.option("--skip-invalid", is_flag=True, help="Skip unparsable lines instead of aborting")
@click.pass_context
def index(
    ctx: click.Context,
    input_path: Path,
    output: Path | None,
    type_name: str | None,
    undefined: str | None,
    skip_invalid: bool,
) -> None:
    """Build an index for a GFA file."""
    cfg = _cfg(ctx)
    idx_type = _index_type(type_name) if type_name else cfg.index.default_type
    dest = output or cfg.index.index_path_for(input_path)
    try:
        total = input_path.stat().st_size * passes_for(idx_type)
    except OSError as exc:
        raise click.ClickException(f"Cannot read {input_path}: {exc.strerror}") from exc

    start = time.monotonic()
    try:
        with click.progressbar(length=total, label=f"Building {idx_type.label()} index",
                               file=sys.stderr) as bar:
            built = build_index(
                input_path,
                idx_type,
                undefined_segments=undefined or cfg.index.undefined_segments,  # type: ignore[arg-type]
                skip_invalid=skip_invalid or cfg.index.skip_invalid,
                progress=bar.update,
            )
        save_index(built, dest)
    except (PgToolsError, ValueError) as exc:
        raise _fail(exc) from exc

    click.echo(f"Index built and saved in {time.monotonic() - start:.2f}s", err=True)
    for warning in built.warnings[:_MAX_LISTED]:
        click.echo(f"  ⚠ {warning}", err=True)
    if len(built.warnings) > _MAX_LISTED:
        click.echo(f"  ... and {len(built.warnings) - _MAX_LISTED} more warnings", err=True)
    click.echo()
    click.echo(built.summary())
    click.echo(f"Index saved to: {dest}")


@cli.command("index-info")
@click.option("-x", "--index", "index_path", required=True, type=click.Path(dir_okay=False, path_type=Path))
@click.option("-i", "--input", "input_path", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Also check whether this GFA file changed since indexing")
def index_info(index_path: Path, input_path: Path | None) -> None:
    """Show information about an index file."""
    try:
        idx = load_index(index_path)
        click.echo(idx.summary())
        if input_path is not None:
            fresh = check_fingerprint(idx, input_path)
            click.echo("Source: up to date" if fresh else "Source: CHANGED since indexing (StaleIndex)")
    except PgToolsError as exc:
        raise _fail(exc) from exc


# ---------------------------------------------------------------------------
# pgtools query
# ---------------------------------------------------------------------------


@cli.group()
@click.option("-i", "--input", "input_path", required=True, type=click.Path(dir_okay=False, path_type=Path))
@click.option("-x", "--index", "index_path", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Index file (default: <input><suffix>)")
@click.pass_context
def query(ctx: click.Context, input_path: Path, index_path: Path | None) -> None:
    """Query an indexed GFA file."""
    cfg = _cfg(ctx)
    try:
        reader = IndexedReader.open(input_path, index_path or cfg.index.index_path_for(input_path))
    except PgToolsError as exc:
        raise _fail(exc) from exc
    if reader.stale:
        click.echo("Warning: GFA file changed since the index was built; results may be wrong", err=True)
    ctx.obj = ctx.with_resource(reader)


def _reader(ctx: click.Context) -> IndexedReader:
    return ctx.obj


@query.command("segment")
@click.option("-n", "--name", required=True)
@click.option("--sequence", "show_sequence", is_flag=True, help="Print the segment sequence")
@click.pass_context
def query_segment(ctx: click.Context, name: str, show_sequence: bool) -> None:
    """Get segment information."""
    try:
        seg = _reader(ctx).get_segment(name)
    except PgToolsError as exc:
        raise _fail(exc) from exc
    if seg is None:
        click.echo(f"Segment '{name}' not found in index")
        return
    click.echo(f"Segment: {seg.name}")
    click.echo(f"  Sequence length: {seg.sequence_length} bp")
    click.echo(f"  File offset: {seg.byte_offset}")
    click.echo(f"  Record length: {seg.byte_length} bytes")
    for tag, (tag_type, value) in seg.tags.items():
        click.echo(f"  {tag}:{tag_type}:{value}")
    if show_sequence:
        click.echo(seg.sequence if seg.sequence is not None else "*")


@query.command("path")
@click.option("-n", "--name", required=True)
@click.pass_context
def query_path(ctx: click.Context, name: str) -> None:
    """Get path information."""
    reader = _reader(ctx)
    try:
        info = reader.path_info(name)
        record = reader.get_path(name)
    except PgToolsError as exc:
        raise _fail(exc) from exc
    if info is None or record is None:
        click.echo(f"Path '{name}' not found in index")
        return
    click.echo(f"{'Walk' if isinstance(record, Walk) else 'Path'}: {info.name}")
    click.echo(f"  Steps: {info.step_count}")
    click.echo(f"  Total length: {info.total_length} bp")
    click.echo(f"  File offset: {info.byte_offset}")
    preview = ",".join(str(s) for s in record.steps[:10])
    if len(record.steps) > 10:
        preview += ",..."
    click.echo(f"  Steps: {preview}")


@query.command("position")
@click.option("-p", "--path", "path_name", required=True)
@click.option("--pos", required=True, type=int)
@click.pass_context
def query_position(ctx: click.Context, path_name: str, pos: int) -> None:
    """Query by position."""
    try:
        entry = _reader(ctx).query_position(path_name, pos)
    except PgToolsError as exc:
        raise _fail(exc) from exc
    if entry is None:
        click.echo(f"Position {pos} not found in path '{path_name}'")
        return
    click.echo(f"Position {pos} in path '{path_name}':")
    click.echo(f"  Segment: {entry.segment_name}{entry.orientation}")
    click.echo(f"  Segment range: {entry.start} - {entry.end}")
    click.echo(f"  Offset in segment: {pos - entry.start}")
    click.echo(f"  Step index: {entry.step_index}")


@query.command("range")
@click.option("-p", "--path", "path_name", required=True)
@click.option("--start", required=True, type=int)
@click.option("--end", required=True, type=int)
@click.pass_context
def query_range(ctx: click.Context, path_name: str, start: int, end: int) -> None:
    """List segments overlapping [START, END) on a path."""
    try:
        entries = _reader(ctx).query_range(path_name, start, end)
    except PgToolsError as exc:
        raise _fail(exc) from exc
    if not entries:
        click.echo(f"No segments in {path_name}:{start}-{end}")
        return
    click.echo(f"Segments in {path_name}:{start}-{end} ({len(entries)}):")
    for e in entries:
        click.echo(f"  {e.step_index:>6}  {e.segment_name}{e.orientation}  {e.start}-{e.end}")


@query.command("list-segments")
@click.pass_context
def list_segments(ctx: click.Context) -> None:
    """List all segments."""
    try:
        names = list(_reader(ctx).list_segments())
    except PgToolsError as exc:
        raise _fail(exc) from exc
    click.echo(f"Indexed segments ({len(names)}):")
    for name in names:
        click.echo(f"  {name}")


@query.command("list-paths")
@click.pass_context
def list_paths(ctx: click.Context) -> None:
    """List all paths."""
    try:
        names = list(_reader(ctx).list_paths())
    except PgToolsError as exc:
        raise _fail(exc) from exc
    click.echo(f"Indexed paths ({len(names)}):")
    for name in names:
        click.echo(f"  {name}")


# ---------------------------------------------------------------------------
# pgtools validate
# ---------------------------------------------------------------------------


def _print_issues(title: str, symbol: str, items: list[str], verbose: bool) -> None:
    click.echo(f"{title} ({len(items)}):")
    shown = items if verbose else items[:_MAX_LISTED]
    for item in shown:
        click.echo(f"  {symbol} {item}")
    if len(items) > len(shown):
        click.echo(f"  ... and {len(items) - len(shown)} more {title.lower()}")


@cli.command()
@click.option("-i", "--input", "input_path", required=True, type=click.Path(dir_okay=False, path_type=Path))
@click.option("-v", "--verbose", is_flag=True, help="Show every message")
def validate(input_path: Path, verbose: bool) -> None:
    """Validate a GFA file."""
    graph = _load_graph(input_path)
    report = validate_graph(graph)

    click.echo("=== Validation Results ===\n")
    click.echo(f"Segments: {graph.segment_count()}")
    click.echo(f"Links: {graph.link_count()}")
    click.echo(f"Paths: {graph.path_count()}")
    click.echo()

    if report.errors:
        _print_issues("Errors", "✗", report.errors, verbose)
        click.echo()
    if report.warnings:
        _print_issues("Warnings", "⚠", report.warnings, verbose)
        click.echo()

    if report.ok:
        click.echo("✓ Validation passed")
        return
    click.echo(f"✗ Validation failed with {len(report.errors)} errors")
    raise SystemExit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
