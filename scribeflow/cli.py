"""
scribeflow.cli - Typer CLI entry point.

Provides the subcommands for the upload, extract, transcribe, edit and
export workflow.
"""

from __future__ import annotations

import asyncio
import dataclasses
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from scribeflow import __version__
from scribeflow.config import (
    DEFAULT_SETTINGS,
    SUPPORTED_LANGUAGES,
    Settings,
    default_settings_path,
    load_settings,
    save_settings,
    update_setting,
)
from scribeflow.exceptions import DependencyError, ScribeflowError
from scribeflow.export.formatter import EXPORT_FORMATS, EXPORT_TYPES, export_all
from scribeflow.export.subtitles import SUBTITLE_FORMATS, format_subtitles
from scribeflow.io import write_bytes, write_text
from scribeflow.logging import configure_logging
from scribeflow.media.orchestrator import MediaOrchestrator, get_recommended_compression_settings
from scribeflow.media.probe import capabilities, probe_video
from scribeflow.models import MediaAsset, ProgressCallback, QualityTier
from scribeflow.persistence.factory import open_repository
from scribeflow.session import Session
from scribeflow.transcribe.backends import create_backend
from scribeflow.transcribe.driver import ChunkedTranscriptionDriver
from scribeflow.transcript.store import TranscriptStore, highlight
from scribeflow.utils import format_duration, format_size
from scribeflow.validation import check_ffmpeg, validate_upload

app = typer.Typer(
    name="scribeflow",
    help="Video transcription workflow.\n\n"
    "Extracts speech audio from video files, transcribes it, and exports "
    "editable transcripts, summaries and subtitles.",
    add_completion=False,
)
history_app = typer.Typer(help="Saved transcriptions.")
settings_app = typer.Typer(help="View and change persisted settings.")
app.add_typer(history_app, name="history")
app.add_typer(settings_app, name="settings")

console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"scribeflow {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Scribeflow - video transcription workflow."""
    configure_logging(verbose)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Print Scribeflow errors in red and exit with status 1."""
    try:
        yield
    except DependencyError as e:
        console.print(f"[red]Error: {e}[/red]")
        if e.install_hint:
            console.print(f"[dim]{e.install_hint}[/dim]")
        raise typer.Exit(1)
    except ScribeflowError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@contextmanager
def progress_bar(description: str) -> Iterator[ProgressCallback]:
    """Rich progress bar fed by (percent, stage) events."""
    with Progress(
        TextColumn("[cyan]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(description, total=100)

        def update(percent: float, stage: str) -> None:
            progress.update(task, completed=percent, description=stage)

        yield update


def _settings() -> Settings:
    with handle_errors():
        return load_settings()


def _output_dir(settings: Settings, override: str | None) -> Path:
    if override:
        return Path(override)
    if settings.output_dir:
        return Path(settings.output_dir)
    return Path.cwd()


# Stage 1: Media


@app.command("probe")
def probe_file(
    file: Path = typer.Argument(..., help="Video file to inspect"),
) -> None:
    """Show media details, runtime capabilities and recommended compression."""
    settings = _settings()
    with handle_errors():
        upload = validate_upload(file, settings)

    table = Table(title=file.name)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Type", upload["mime_type"])
    table.add_row("Size", format_size(upload["size"]))

    try:
        metadata = probe_video(file)
        table.add_row("Duration", format_duration(metadata["duration_seconds"]))
        if metadata.get("width"):
            table.add_row("Resolution", f"{metadata['width']}x{metadata['height']}")
        table.add_row("Video codec", metadata.get("video_codec") or "-")
        table.add_row("Audio codec", metadata.get("audio_codec") or "none")
    except ScribeflowError as e:
        table.add_row("Media details", f"[yellow]unavailable ({e})[/yellow]")

    recommended = get_recommended_compression_settings(upload["size"])
    table.add_row(
        "Recommended compression",
        f"{recommended.quality.value}, {recommended.max_width}x{recommended.max_height} "
        f"@ {recommended.frame_rate}fps, audio {recommended.audio_bitrate}",
    )
    console.print(table)

    caps = Table(title="Runtime Capabilities")
    caps.add_column("Component", style="cyan")
    caps.add_column("Status")
    for name, available in capabilities().items():
        caps.add_row(name, "[green]✓ available[/green]" if available else "[red]✗ missing[/red]")
    try:
        versions = check_ffmpeg()
        caps.add_row("ffmpeg", f"[green]✓ {versions.get('ffmpeg_version', 'unknown')}[/green]")
    except DependencyError as e:
        caps.add_row("ffmpeg", f"[red]✗ missing[/red] {e.install_hint or ''}")
    console.print(caps)

    for warning in upload["warnings"]:
        console.print(f"[yellow]Warning: {warning}[/yellow]")


@app.command("extract")
def extract_audio(
    file: Path = typer.Argument(..., help="Video file"),
    output: str = typer.Option(None, "--output", "-o", help="Output audio path"),
) -> None:
    """Extract speech-optimized audio from a video."""
    settings = _settings()
    with handle_errors():
        upload = validate_upload(file, settings)
        asset = MediaAsset.from_path(file, upload["mime_type"])
        with progress_bar("Extracting audio...") as on_progress:
            result = asyncio.run(MediaOrchestrator().extract_audio_only(asset, on_progress))

        output_path = Path(output) if output else file.with_name(f"{file.stem}_audio{result.output.extension}")
        write_bytes(output_path, result.output.data)

    console.print(
        f"[green]✓[/green] Extracted {format_size(result.output_size)} audio "
        f"via {result.strategy} in {result.processing_time_seconds:.1f}s"
    )
    console.print(f"[dim]  {output_path}[/dim]")


@app.command("compress")
def compress_video(
    file: Path = typer.Argument(..., help="Video file"),
    quality: QualityTier = typer.Option(None, "--quality", "-q", help="Override the recommended quality tier"),
    output: str = typer.Option(None, "--output", "-o", help="Output video path"),
) -> None:
    """Re-encode a video at reduced resolution, frame rate and bitrate."""
    settings = _settings()
    with handle_errors():
        upload = validate_upload(file, settings)
        asset = MediaAsset.from_path(file, upload["mime_type"])
        compression = get_recommended_compression_settings(asset.size)
        if quality is not None:
            compression = dataclasses.replace(compression, quality=quality)
        with progress_bar("Compressing video...") as on_progress:
            outcome = asyncio.run(MediaOrchestrator().compress_video(asset, compression, on_progress))

        output_path = Path(output) if output else file.with_name(f"{file.stem}_compressed{outcome.output.extension}")
        write_bytes(output_path, outcome.output.data)

    console.print(
        f"[green]✓[/green] {format_size(outcome.original_size)} → {format_size(outcome.output_size)} "
        f"({outcome.compression_ratio:.2f}x, codec {outcome.codec})"
    )
    console.print(f"[dim]  {output_path}[/dim]")


# Stage 2: Transcription


@app.command("transcribe")
def transcribe_video(
    file: Path = typer.Argument(..., help="Video file"),
    language: str = typer.Option(None, "--language", "-l", help="Language tag, e.g. en-US"),
    backend: str = typer.Option(None, "--backend", "-b", help="simulated, whisper or http"),
    save: bool = typer.Option(None, "--save/--no-save", help="Save to history (default: auto_save setting)"),
    export_format: str = typer.Option(None, "--export", "-e", help="Also export: txt, html, docx, srt or vtt"),
    output_dir: str = typer.Option(None, "--output-dir", "-d", help="Directory for exports"),
) -> None:
    """Extract audio from a video and transcribe it."""
    settings = _settings()
    with handle_errors():
        if language:
            settings = update_setting(settings, "language", language)
        if backend:
            settings = update_setting(settings, "backend", backend)

        session = Session(settings)
        upload = session.load(file)
        for warning in upload["warnings"]:
            console.print(f"[yellow]Warning: {warning}[/yellow]")

        driver = ChunkedTranscriptionDriver(create_backend(settings))
        with progress_bar("Transcribing...") as on_progress:
            transcript = asyncio.run(session.run_transcription(MediaOrchestrator(), driver, on_progress))

    console.print(
        f"[green]✓[/green] Transcribed {len(transcript)} segments "
        f"({format_duration(transcript.duration)}) from {file.name}"
    )
    _print_segments(session.store)

    should_save = settings.auto_save if save is None else save
    if should_save:
        with handle_errors():
            transcription_id = open_repository(settings).save_transcription(
                session.metadata(), session.store.segments
            )
        console.print(f"[green]✓[/green] Saved as {transcription_id}")

    if export_format:
        _export(session.store, export_format, file.stem, _output_dir(settings, output_dir), ["full"])


def _print_segments(store: TranscriptStore, term: str = "") -> None:
    table = Table(show_header=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Start", style="cyan")
    table.add_column("End", style="cyan")
    table.add_column("Text")
    for segment in store.search(term):
        table.add_row(
            str(segment.id),
            format_duration(segment.start_time),
            format_duration(segment.end_time),
            highlight(segment.text, term),
        )
    console.print(table)


def _export(
    store: TranscriptStore, fmt: str, base_name: str, output_dir: Path, types: list[str]
) -> None:
    fmt = fmt.lower()
    if fmt in SUBTITLE_FORMATS:
        with handle_errors():
            output_path = output_dir / f"{base_name}.{fmt}"
            write_text(output_path, format_subtitles(store.segments, fmt))
        console.print(f"[green]✓[/green] {output_path}")
        return

    if fmt not in EXPORT_FORMATS:
        console.print(
            f"[red]Error: Unknown format '{fmt}' "
            f"(expected one of {', '.join(EXPORT_FORMATS + SUBTITLE_FORMATS)})[/red]"
        )
        raise typer.Exit(1)

    failed = False
    for result in export_all(store.segments, types, fmt, base_name, output_dir):
        if result.success:
            console.print(f"[green]✓[/green] {output_dir / result.filename}")
        else:
            console.print(f"[red]✗ {result.type} export failed: {result.error}[/red]")
            failed = True
    if failed:
        raise typer.Exit(1)


# Saved transcriptions


@history_app.command("list")
def history_list() -> None:
    """List saved transcriptions, newest first."""
    settings = _settings()
    with handle_errors():
        rows = open_repository(settings).list_for_user()

    if not rows:
        console.print("[dim]No saved transcriptions[/dim]")
        return

    table = Table(title="Transcriptions")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Duration", style="green")
    table.add_column("Language")
    table.add_column("Created", style="dim")
    for row in rows:
        table.add_row(
            str(row["id"]),
            row.get("title") or row.get("file_name", ""),
            format_duration(row.get("duration") or 0),
            row.get("language", ""),
            row.get("created_at") or "",
        )
    console.print(table)


@history_app.command("show")
def history_show(
    transcription_id: str = typer.Argument(..., help="Transcription ID"),
    search: str = typer.Option("", "--search", "-s", help="Only show segments containing this text"),
) -> None:
    """Show a saved transcript."""
    settings = _settings()
    with handle_errors():
        record = open_repository(settings).get_with_segments(transcription_id)

    console.print(f"[bold]{record.metadata.title or record.metadata.file_name}[/bold]")
    console.print(
        f"[dim]{record.metadata.language} · {format_duration(record.metadata.duration)} · "
        f"{len(record.segments)} segments[/dim]"
    )
    _print_segments(TranscriptStore(record.segments), search)


@history_app.command("edit")
def history_edit(
    transcription_id: str = typer.Argument(..., help="Transcription ID"),
    segment_id: int = typer.Argument(..., help="Segment number"),
    text: str = typer.Argument(..., help="Replacement text"),
) -> None:
    """Replace the text of one saved segment."""
    settings = _settings()
    with handle_errors():
        segment = open_repository(settings).update_segment(transcription_id, segment_id, text)
    console.print(f"[green]✓[/green] Updated segment {segment.id}")


@history_app.command("delete")
def history_delete(
    transcription_id: str = typer.Argument(..., help="Transcription ID"),
) -> None:
    """Delete a saved transcription."""
    settings = _settings()
    with handle_errors():
        open_repository(settings).delete(transcription_id)
    console.print(f"[green]✓[/green] Deleted {transcription_id}")


@app.command("export")
def export_saved(
    transcription_id: str = typer.Argument(..., help="Transcription ID"),
    export_types: list[str] = typer.Option(
        None, "--type", "-t", help=f"Content type ({', '.join(EXPORT_TYPES)}); repeatable"
    ),
    fmt: str = typer.Option("txt", "--format", "-f", help="txt, html, docx, srt or vtt"),
    output_dir: str = typer.Option(None, "--output-dir", "-d", help="Directory for exports"),
) -> None:
    """Export a saved transcription."""
    settings = _settings()
    with handle_errors():
        record = open_repository(settings).get_with_segments(transcription_id)

    base_name = Path(record.metadata.title or record.metadata.file_name).stem
    _export(
        TranscriptStore(record.segments),
        fmt,
        base_name,
        _output_dir(settings, output_dir),
        export_types or ["full"],
    )


# Settings


@settings_app.command("show")
def settings_show() -> None:
    """Show the current settings."""
    settings = _settings()
    table = Table(title=str(default_settings_path()))
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in settings.model_dump().items():
        if key == "api_key" and value:
            value = "********"
        elif key == "language":
            value = f"{value} ({SUPPORTED_LANGUAGES[value]})"
        table.add_row(key, str(value))
    console.print(table)


@settings_app.command("set")
def settings_set(
    key: str = typer.Argument(..., help="Setting name"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Change one setting."""
    settings = _settings()
    with handle_errors():
        settings = update_setting(settings, key, value)
        path = save_settings(settings)
    console.print(f"[green]✓[/green] {key} = {getattr(settings, key)}")
    console.print(f"[dim]  {path}[/dim]")


@settings_app.command("reset")
def settings_reset() -> None:
    """Restore the default settings."""
    with handle_errors():
        path = save_settings(Settings(**DEFAULT_SETTINGS))
    console.print("[green]✓[/green] Settings reset to defaults")
    console.print(f"[dim]  {path}[/dim]")


if __name__ == "__main__":
    app()
