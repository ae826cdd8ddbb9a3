"""Command-line interface for docvault."""

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from docvault.config import ConfigError, find_config_file, load_config
from docvault.diffing import ChangeKind, Granularity
from docvault.errors import VaultError
from docvault.formatting import format_file_size, format_relative_time
from docvault.notify import LoggingNotifier
from docvault.observability import configure_logging
from docvault.stores.backends import FileSystemBackend
from docvault.vault import DocumentVault

app = typer.Typer(
    name="docvault",
    help="Version history for plain-text documents",
    add_completion=False,
)


class _State:
    root: Path = Path(".")
    config_file: Optional[Path] = None


_state = _State()


@app.callback()
def main(
    root: Annotated[
        Path,
        typer.Option("--root", "-r", help="Directory holding the documents"),
    ] = Path("."),
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Configuration file (YAML/JSON/TOML)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show log output"),
    ] = False,
) -> None:
    """Keep, browse and restore versions of the documents under ROOT."""
    configure_logging(logging.INFO if verbose else logging.WARNING)
    _state.root = root
    _state.config_file = config_file


# =============================================================================
# Helpers
# =============================================================================


def _open_vault() -> DocumentVault:
    config_file = _state.config_file or find_config_file(_state.root)
    if _state.config_file and not _state.config_file.exists():
        typer.echo(f"Error: Config file not found: {_state.config_file}", err=True)
        raise typer.Exit(1)
    try:
        config = load_config(config_file)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    return DocumentVault(
        FileSystemBackend(_state.root),
        config,
        LoggingNotifier(logging.INFO, "docvault.cli"),
    )


def _document_file(document: str) -> Path:
    return _state.root / document


def _read_document(document: str) -> str:
    path = _document_file(document)
    if not path.is_file():
        typer.echo(f"Error: File not found: {path}", err=True)
        raise typer.Exit(1)
    # Decoding bytes keeps "\r\n" line endings intact.
    return path.read_bytes().decode("utf-8")


def _split_csv(values: Optional[list[str]]) -> list[str]:
    if not values:
        return []
    return [v.strip() for v in ",".join(values).split(",") if v.strip()]


# =============================================================================
# Recording
# =============================================================================


@app.command(name="save")
def save_cmd(
    document: Annotated[str, typer.Argument(help="Document path relative to the root")],
    message: Annotated[
        Optional[str],
        typer.Option("--message", "-m", help="Version message"),
    ] = None,
    tags: Annotated[
        Optional[list[str]],
        typer.Option("--tag", "-t", help="Tags for the version (comma-separated)"),
    ] = None,
) -> None:
    """Record the current text of a document."""
    text = _read_document(document)
    with _open_vault() as vault:
        if vault.is_excluded(document):
            typer.echo(f"Skipped: {document} is in an excluded folder")
            return
        try:
            outcome = vault.save(document, text, message, _split_csv(tags))
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    if outcome.created:
        typer.echo(f"Saved version {outcome.record.id}")
        if outcome.removed:
            typer.echo(f"  Removed {outcome.removed} old versions")
    else:
        typer.echo(f"No changes since version {outcome.record.id}")


@app.command(name="snapshot-all")
def snapshot_all_cmd(
    pattern: Annotated[
        str,
        typer.Option("--pattern", "-p", help="Glob for the documents to snapshot"),
    ] = "*.md",
) -> None:
    """Record a version of every matching document under the root."""
    documents = {}
    for path in sorted(_state.root.rglob(pattern)):
        if path.is_file():
            document = path.relative_to(_state.root).as_posix()
            documents[document] = path.read_bytes().decode("utf-8")

    with _open_vault() as vault:
        report = vault.snapshot_all(documents)

    typer.echo(f"Snapshot complete: {report.created} created, {report.skipped} unchanged")
    if report.excluded:
        typer.echo(f"  Excluded: {report.excluded}")
    if report.failed:
        typer.echo(f"  Failed: {', '.join(report.failed)}", err=True)
        raise typer.Exit(1)


# =============================================================================
# Browsing
# =============================================================================


@app.command(name="log")
def log_cmd(
    document: Annotated[str, typer.Argument(help="Document path relative to the root")],
    page: Annotated[
        int,
        typer.Option("--page", help="Page number, starting at 1"),
    ] = 1,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (console, json)"),
    ] = "console",
) -> None:
    """List the versions of a document, newest first."""
    with _open_vault() as vault:
        try:
            result = vault.history(document, max(page - 1, 0))
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    if format == "json":
        typer.echo(
            json.dumps(
                {
                    "page": result.page + 1,
                    "totalPages": result.total_pages,
                    "total": result.total,
                    "versions": [r.to_dict() for r in result.records],
                },
                indent=2,
            )
        )
        return

    if not result.records:
        typer.echo(f"No versions of {document}")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Version")
    table.add_column("When")
    table.add_column("Message")
    table.add_column("Size", justify="right")
    table.add_column("Kind")
    table.add_column("Tags")
    for record in result.records:
        star = "★ " if record.starred else ""
        # Messages such as "[Auto Save]" must not be read as markup.
        message = Text(record.message)
        if record.note:
            message.append(f"\n{record.note}", style="dim")
        table.add_row(
            Text(f"{star}{record.id}"),
            format_relative_time(record.timestamp),
            message,
            format_file_size(record.size),
            "full" if record.is_full else "diff",
            Text(", ".join(record.tags)),
        )
    console = Console()
    console.print(table)
    console.print(
        f"Page {result.page + 1} of {result.total_pages} ({result.total} versions)"
    )


@app.command(name="show")
def show_cmd(
    document: Annotated[str, typer.Argument(help="Document path relative to the root")],
    version: Annotated[str, typer.Argument(help="Version id")],
) -> None:
    """Print the text of a version."""
    with _open_vault() as vault:
        try:
            result = vault.reconstruct(document, version)
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    if not result.is_exact:
        typer.echo(
            "Warning: this version could not be rebuilt exactly, showing its base text",
            err=True,
        )
    typer.echo(result.text, nl=False)


@app.command(name="diff")
def diff_cmd(
    document: Annotated[str, typer.Argument(help="Document path relative to the root")],
    version: Annotated[str, typer.Argument(help="Version to compare from")],
    other: Annotated[
        Optional[str],
        typer.Argument(help="Version to compare to (defaults to the current file)"),
    ] = None,
    granularity: Annotated[
        Granularity,
        typer.Option("--granularity", "-g", help="Diff by chars, words or lines"),
    ] = Granularity.LINES,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (console, json)"),
    ] = "console",
) -> None:
    """Show the changes between two versions, or a version and the file."""
    current = None if other else _read_document(document)
    with _open_vault() as vault:
        try:
            comparison = vault.compare(document, version, other, current, granularity)
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    summary = comparison.summary
    if format == "json":
        typer.echo(
            json.dumps(
                {
                    "from": comparison.left_label,
                    "to": comparison.right_label,
                    "summary": summary.to_dict(),
                    "spans": [s.to_dict() for s in comparison.spans],
                },
                indent=2,
            )
        )
        return

    text = Text()
    for span in comparison.spans:
        if span.kind == ChangeKind.ADDED:
            text.append(span.text, style="green")
        elif span.kind == ChangeKind.REMOVED:
            text.append(span.text, style="red strike")
        else:
            text.append(span.text)
    console = Console()
    console.print(
        Text(f"{comparison.left_label} → {comparison.right_label}", style="bold")
    )
    console.print(text)
    if summary.has_changes:
        console.print(
            f"+{summary.added_chars} chars in {summary.added_spans} spans, "
            f"-{summary.removed_chars} chars in {summary.removed_spans} spans"
        )
    else:
        console.print("[green]✓ No differences[/green]")


# =============================================================================
# Editing
# =============================================================================


@app.command(name="restore")
def restore_cmd(
    document: Annotated[str, typer.Argument(help="Document path relative to the root")],
    version: Annotated[str, typer.Argument(help="Version to restore")],
) -> None:
    """Overwrite the file with an old version, saving the current text first."""
    current = _read_document(document)
    with _open_vault() as vault:
        try:
            text = vault.restore(document, version, current)
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    _document_file(document).write_bytes(text.encode("utf-8"))
    typer.echo(f"Restored {document} to version {version}")


@app.command(name="rm")
def rm_cmd(
    document: Annotated[str, typer.Argument(help="Document path relative to the root")],
    versions: Annotated[list[str], typer.Argument(help="Version ids to delete")],
) -> None:
    """Delete versions of a document."""
    with _open_vault() as vault:
        try:
            if len(versions) == 1:
                vault.delete(document, versions[0])
                count = 1
            else:
                count = vault.delete_many(document, versions)
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"Deleted {count} version{'s' if count != 1 else ''}")


@app.command(name="star")
def star_cmd(
    document: Annotated[str, typer.Argument(help="Document path relative to the root")],
    version: Annotated[
        Optional[str],
        typer.Argument(help="Version to toggle (defaults to starring the newest)"),
    ] = None,
) -> None:
    """Star or unstar a version. Starred versions are never cleaned up."""
    with _open_vault() as vault:
        try:
            if version is None:
                record = vault.star_latest(document)
            else:
                record = vault.toggle_star(document, version)
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    if record is None:
        typer.echo(f"No versions of {document}", err=True)
        raise typer.Exit(1)
    state = "Starred" if record.starred else "Unstarred"
    typer.echo(f"{state} version {record.id}")


@app.command(name="tag")
def tag_cmd(
    document: Annotated[str, typer.Argument(help="Document path relative to the root")],
    version: Annotated[str, typer.Argument(help="Version id")],
    tags: Annotated[
        Optional[list[str]],
        typer.Argument(help="New tags; none clears them"),
    ] = None,
) -> None:
    """Replace the tags of a version."""
    with _open_vault() as vault:
        try:
            record = vault.update_tags(document, version, _split_csv(tags))
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"Tags of {record.id}: {', '.join(record.tags) or '(none)'}")


@app.command(name="note")
def note_cmd(
    document: Annotated[str, typer.Argument(help="Document path relative to the root")],
    version: Annotated[str, typer.Argument(help="Version id")],
    note: Annotated[
        Optional[str],
        typer.Argument(help="Note text; omit to clear"),
    ] = None,
) -> None:
    """Set or clear the note of a version."""
    with _open_vault() as vault:
        try:
            record = vault.update_note(document, version, note)
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"Note of {record.id}: {record.note or '(none)'}")


# =============================================================================
# Maintenance
# =============================================================================


@app.command(name="cleanup")
def cleanup_cmd(
    document: Annotated[
        Optional[str],
        typer.Argument(help="Document to clean up (defaults to all)"),
    ] = None,
) -> None:
    """Apply the retention rules now."""
    with _open_vault() as vault:
        try:
            if document is None:
                removed = vault.cleanup_all()
            else:
                removed = vault.cleanup(document).removed_count
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"Removed {removed} version{'s' if removed != 1 else ''}")


@app.command(name="stats")
def stats_cmd(
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (console, json)"),
    ] = "console",
) -> None:
    """Show storage usage."""
    with _open_vault() as vault:
        try:
            stats = vault.storage_stats()
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    if format == "json":
        typer.echo(json.dumps(stats.to_dict(), indent=2))
        return

    table = Table(show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Files", str(stats.file_count))
    table.add_row("Versions", str(stats.version_count))
    table.add_row("Size on disk", format_file_size(stats.total_size))
    table.add_row("Space savings", f"{stats.space_savings:.1f}%")
    table.add_row("Starred", str(stats.starred_count))
    table.add_row("Tagged", str(stats.tagged_count))
    Console().print(table)


@app.command(name="optimize")
def optimize_cmd() -> None:
    """Rewrite every series file with the current compression settings."""
    with _open_vault() as vault:
        try:
            report = vault.optimize_all()
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(
        f"Optimized {report.files} files, saved {format_file_size(max(report.bytes_saved, 0))}"
    )
    if report.failed:
        typer.echo(f"  Failed: {', '.join(report.failed)}", err=True)
        raise typer.Exit(1)


@app.command(name="export")
def export_cmd(
    document: Annotated[str, typer.Argument(help="Document path relative to the root")],
    version: Annotated[
        Optional[str],
        typer.Option("--version", help="Export this version's text instead of the history"),
    ] = None,
) -> None:
    """Export a document's history, or one version's text."""
    with _open_vault() as vault:
        try:
            if version is None:
                path = vault.export_series(document)
            else:
                path = vault.export_version(document, version)
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"Exported to {path}")


@app.command(name="clear")
def clear_cmd(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation"),
    ] = False,
) -> None:
    """Delete every stored version."""
    if not yes:
        typer.confirm("Delete all stored versions?", abort=True)
    with _open_vault() as vault:
        try:
            count = vault.clear_all()
        except VaultError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"Deleted {count} series files")


@app.command(name="info")
def info_cmd() -> None:
    """Show the effective configuration."""
    with _open_vault() as vault:
        typer.echo(json.dumps(vault.config.to_dict(), indent=2))
        typer.echo(f"Storage: {json.dumps(vault.persistence.describe())}")


if __name__ == "__main__":
    app()
