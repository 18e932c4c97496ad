"""
wavesplit.cli - Typer CLI entry point.

Provides the extract and plan subcommands.
"""

from __future__ import annotations

import shutil
import signal
import threading
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from wavesplit import __version__
from wavesplit.channels import ChannelPlan, build_channel_plan
from wavesplit.config import (
    ExtractorConfig,
    find_label_file,
    load_channel_labels,
    load_config,
    merge_config,
)
from wavesplit.exceptions import ConfigError, WavesplitError
from wavesplit.logging import configure_logging
from wavesplit.progress import ExtractionProgress
from wavesplit.utils import format_bytes, format_duration, format_eta, format_size
from wavesplit.validation import (
    check_disk_space,
    estimate_output_bytes,
    probe_wav,
    validate_input_file,
)

app = typer.Typer(
    name="wavesplit",
    help="Split multichannel WAV recordings into labelled mono and stereo files.\n\n"
    "Channels are named by a label file (one label per line); labels ending "
    "in L/R are paired into stereo files and '(unused)' channels are skipped.",
    add_completion=False,
)
console = Console()

EXIT_CANCELLED = 130


def version_callback(value: bool) -> None:
    if value:
        console.print(f"wavesplit {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Wavesplit - multichannel WAV demultiplexer."""
    pass


def resolve_labels(
    input_file: Path,
    labels_path: Path | None,
    config: ExtractorConfig,
) -> list[str]:
    """Pick the label list: --labels, then config channels, then channel-config.txt."""
    if labels_path is not None:
        return load_channel_labels(labels_path)
    if config.channels:
        return list(config.channels)
    found = find_label_file(input_file, Path.cwd())
    if found is None:
        raise ConfigError(
            "No channel labels found. Pass --labels or create channel-config.txt "
            "next to the input file."
        )
    return load_channel_labels(found)


def inspect_input(input_file: Path) -> dict:
    """Validate the input file and return its WAV properties, exiting on failure."""
    try:
        validate_input_file(input_file)
        return probe_wav(input_file)
    except WavesplitError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def print_plan(plan: ChannelPlan, output_dir: Path) -> None:
    table = Table(title="Channel Plan")
    table.add_column("Output File", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Source Channels", style="yellow")

    for entry, path in zip(plan.entries, plan.output_files(output_dir)):
        kind = "stereo" if entry.channels == 2 else "mono"
        table.add_row(path.name, kind, ", ".join(str(i + 1) for i in entry.indices))

    console.print(table)
    for index in plan.overwritten:
        console.print(
            f"[yellow]Warning: channel {index + 1} was replaced by a later channel "
            f"with the same stereo name and will not be written[/yellow]"
        )


@app.command("plan")
def show_plan(
    input_file: Path = typer.Argument(..., help="Multichannel WAV file"),
    labels: Path | None = typer.Option(None, "--labels", "-l", help="Channel label file"),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="wavesplit.yaml"),
) -> None:
    """Show which files would be written, without extracting."""
    info = inspect_input(input_file)

    try:
        config = load_config(config_file) if config_file else ExtractorConfig()
        channel_labels = resolve_labels(input_file, labels, config)
        plan = build_channel_plan(channel_labels, info["channels"])
    except (WavesplitError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[dim]{input_file.name}: {info['channels']} ch, {info['sample_rate']} Hz, "
        f"{info['bits_per_sample']} bit {info['encoding']}, "
        f"{format_duration(info['duration_seconds'])}[/dim]"
    )
    print_plan(plan, input_file.parent / f"{input_file.stem}_extracted")


@app.command("extract")
def extract_cmd(
    input_file: Path = typer.Argument(..., help="Multichannel WAV file"),
    output_dir: Path | None = typer.Argument(
        None, help="Destination directory (default: <input>_extracted next to the input)"
    ),
    labels: Path | None = typer.Option(None, "--labels", "-l", help="Channel label file"),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="wavesplit.yaml"),
    chunk_frames: int | None = typer.Option(
        None, "--chunk-frames", help="Frames processed per chunk"
    ),
    workers: int | None = typer.Option(
        None, "--workers", "-w", help="Copy worker threads (1 = no thread pool)"
    ),
    overwrite: bool = typer.Option(
        False, "--overwrite", help="Delete an existing output directory first"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
) -> None:
    """Extract labelled channels into separate WAV files."""
    configure_logging(verbose, quiet)

    from wavesplit.extract import ExtractionStatus, extract_channels

    info = inspect_input(input_file)

    try:
        config = load_config(config_file) if config_file else ExtractorConfig()
        config = merge_config(
            config,
            {
                "chunk_frames": chunk_frames,
                "max_workers": workers,
                "overwrite": overwrite or None,
            },
        )
        channel_labels = resolve_labels(input_file, labels, config)
        plan = build_channel_plan(channel_labels, info["channels"])
    except (WavesplitError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if output_dir is None:
        output_dir = input_file.parent / f"{input_file.stem}_extracted"

    if output_dir.exists():
        if not config.overwrite:
            console.print(
                f"[red]Error: Output directory '{output_dir}' already exists[/red]"
            )
            console.print("[dim]Use --overwrite to replace it[/dim]")
            raise typer.Exit(1)
        shutil.rmtree(output_dir)
        console.print(f"[dim]Deleted existing output directory: {output_dir}[/dim]")

    required = estimate_output_bytes(plan, info["bytes_per_sample"], info["total_frames"])
    disk = check_disk_space(output_dir, required // (1024 * 1024) + 1)
    if not disk["sufficient"]:
        console.print(
            f"[red]Error: Insufficient disk space. "
            f"Need ~{format_bytes(required)}, have {disk['available_mb']}MB[/red]"
        )
        raise typer.Exit(1)

    print_plan(plan, output_dir)

    cancel_event = threading.Event()

    def on_interrupt(signum, frame) -> None:
        console.print("\n[yellow]Cancellation requested...[/yellow]")
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, on_interrupt)
    try:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[dim]{task.fields[frames]}[/dim]"),
            TextColumn("elapsed {task.fields[elapsed]}"),
            TextColumn("ETA {task.fields[eta]}"),
            console=console,
        ) as progress_bar:
            task = progress_bar.add_task(
                "Extracting", total=100, frames="", elapsed="0:00", eta="--:--"
            )

            def on_progress(progress: ExtractionProgress) -> None:
                progress_bar.update(
                    task,
                    completed=progress.percent,
                    frames=f"{progress.frames_processed}/{progress.total_frames}",
                    elapsed=format_duration(progress.elapsed.total_seconds()),
                    eta=format_eta(progress.estimated_remaining),
                )

            result = extract_channels(
                input_file,
                output_dir,
                channel_labels,
                chunk_frames=config.chunk_frames,
                max_workers=config.max_workers,
                cancel_event=cancel_event,
                progress_callback=on_progress,
            )
    except WavesplitError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if result.status == ExtractionStatus.CANCELLED:
        console.print(
            f"\n[yellow]Extraction cancelled after {result.frames_processed} of "
            f"{result.total_frames} frames. Partial files left in {output_dir}[/yellow]"
        )
        raise typer.Exit(EXIT_CANCELLED)

    table = Table(title="Extracted Files")
    table.add_column("File", style="cyan")
    table.add_column("Size", style="green")
    for path in result.output_files:
        table.add_row(str(path), format_size(path))
    console.print(table)

    console.print(
        f"\n[green]✓[/green] Extraction complete: {len(result.output_files)} file(s), "
        f"{result.frames_processed} frames"
    )
