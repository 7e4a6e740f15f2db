"""Tempo CLI - upload a file or directory tree through the job processor.

Commands:
    upload  Copy a tree into a destination directory using the processor
    config  Show the effective processor configuration
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Literal

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from tempo import __version__
from tempo.core.logging import configure_logging, get_logger
from tempo.processor import (
    FileOrDirectoryJob,
    JobProcessor,
    LocalTransfer,
    ProcessorConfig,
    RunSummary,
    jobs_from_tree,
)

logger = get_logger("cli")

console = Console()

app = typer.Typer(
    name="tempo",
    help="Bounded-concurrency uploads of file and directory trees",
    add_completion=False,
)


# =============================================================================
# Logging state
# =============================================================================


@dataclass
class CliLoggingConfig:
    """Logging options collected by the global callback."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    file: Path | None = None
    format: Literal["json", "console"] = "console"
    configured: bool = False


_log_config = CliLoggingConfig()


def configure_global_logging() -> None:
    """Apply the collected logging options once per session."""
    if _log_config.configured:
        return
    try:
        configure_logging(
            level=_log_config.level,
            format=_log_config.format,
            file_path=_log_config.file,
        )
    except ValueError as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(2) from None
    _log_config.configured = True


def reset_logging_state() -> None:
    """Forget collected logging options (used by tests)."""
    global _log_config
    _log_config = CliLoggingConfig()


# =============================================================================
# Global options
# =============================================================================


def version_callback(value: bool) -> None:
    if value:
        console.print(f"Tempo v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            "-L",
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="TEMPO_LOG_LEVEL",
        ),
    ] = "WARNING",
    log_format: Annotated[
        str,
        typer.Option("--log-format", help="Log format (console, json)"),
    ] = "console",
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", help="Also write logs to this file"),
    ] = None,
) -> None:
    """Tempo - bounded-concurrency uploads of file and directory trees."""
    _log_config.level = log_level.upper()  # type: ignore[assignment]
    _log_config.format = log_format.lower()  # type: ignore[assignment]
    _log_config.file = log_file


# =============================================================================
# Helpers
# =============================================================================


def _load_config(config_file: Path | None, overrides: dict[str, Any]) -> ProcessorConfig:
    """Load config from YAML (or defaults) and apply CLI overrides."""
    try:
        config = ProcessorConfig.from_yaml(config_file) if config_file else ProcessorConfig()
        updates = {k: v for k, v in overrides.items() if v is not None}
        if updates:
            config = ProcessorConfig.model_validate({**config.model_dump(), **updates})
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red]\n{e}")
        raise typer.Exit(2) from None
    return config


def _make_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


async def _watch_run(
    run: asyncio.Task[RunSummary],
    processor: JobProcessor[FileOrDirectoryJob],
    progress: Progress | None,
    task_id: TaskID | None,
) -> RunSummary:
    """Refresh the progress bar until ``run`` finishes."""
    while not run.done():
        if progress is not None and task_id is not None:
            progress.update(task_id, completed=processor.stats().completed)
        await asyncio.wait({run}, timeout=0.1)
    summary = run.result()
    if progress is not None and task_id is not None:
        progress.update(task_id, completed=len(summary.completed))
    return summary


async def _run_upload(
    jobs: list[FileOrDirectoryJob],
    transfer: LocalTransfer,
    config: ProcessorConfig,
    retries: int,
    progress: Progress | None,
) -> list[RunSummary]:
    processor: JobProcessor[FileOrDirectoryJob] = JobProcessor(
        transfer.create_directory,
        transfer.upload_file,
        config=config,
    )
    task_id = progress.add_task("Uploading", total=len(jobs)) if progress else None

    summaries = [
        await _watch_run(
            asyncio.create_task(processor.start(jobs)), processor, progress, task_id,
        )
    ]
    for _ in range(retries):
        if not summaries[-1].failed:
            break
        logger.info("cli.retrying", failed=len(summaries[-1].failed))
        summaries.append(
            await _watch_run(
                asyncio.create_task(processor.retry_upload()), processor, progress, task_id,
            )
        )
    return summaries


def _print_summary(summary: RunSummary, total: int) -> None:
    status = "[green]complete[/green]" if summary.succeeded else "[red]incomplete[/red]"
    console.print(
        f"Upload {status}: {len(summary.completed)}/{total} transferred, "
        f"{len(summary.failed)} failed, {len(summary.pending)} not started "
        f"(attempt {summary.attempt}, {summary.reason.value})"
    )
    if not summary.failed:
        return

    table = Table(title="Failed jobs", show_lines=False)
    table.add_column("Entry", style="cyan")
    table.add_column("Kind")
    table.add_column("Attempts", justify="right")
    table.add_column("Error", style="red")
    for job in summary.failed:
        table.add_row(
            job.name,
            job.kind.value,
            str(job.attempts),
            job.error.message if job.error else "",
        )
    console.print(table)


# =============================================================================
# Commands
# =============================================================================


@app.command()
def upload(
    source: Path = typer.Argument(..., exists=True, help="File or directory to upload"),
    destination: Path = typer.Argument(..., help="Directory receiving the tree"),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False,
        help="YAML processor configuration",
    ),
    max_parallel: int | None = typer.Option(
        None, "--max-parallel", "-p", help="Override max_parallel_jobs",
    ),
    max_failed: int | None = typer.Option(
        None, "--max-failed", help="Override max_failed_jobs",
    ),
    interval: float | None = typer.Option(
        None, "--interval", help="Override pickup_interval_seconds",
    ),
    retries: int = typer.Option(
        0, "--retries", "-r", min=0, help="Retry rounds for failed jobs",
    ),
    include_hidden: bool = typer.Option(
        False, "--include-hidden", help="Include dot-files and dot-directories",
    ),
    no_overwrite: bool = typer.Option(
        False, "--no-overwrite", help="Fail jobs whose target file already exists",
    ),
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Print the final run summary as JSON",
    ),
) -> None:
    """Upload SOURCE into DESTINATION through the job processor."""
    configure_global_logging()
    config = _load_config(
        config_file,
        {
            "max_parallel_jobs": max_parallel,
            "max_failed_jobs": max_failed,
            "pickup_interval_seconds": interval,
        },
    )

    jobs = jobs_from_tree(source, include_hidden=include_hidden)
    transfer = LocalTransfer(destination, overwrite=not no_overwrite)

    if json_output:
        summaries = asyncio.run(_run_upload(jobs, transfer, config, retries, None))
    else:
        with _make_progress() as progress:
            summaries = asyncio.run(_run_upload(jobs, transfer, config, retries, progress))

    final = summaries[-1]
    if json_output:
        payload = final.to_dict()
        payload["total"] = len(jobs)
        payload["rounds"] = len(summaries)
        typer.echo(json.dumps(payload, indent=2))
    else:
        _print_summary(final, len(jobs))

    if not final.succeeded:
        raise typer.Exit(1)


@app.command("config")
def show_config(
    config_file: Path | None = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False,
        help="YAML processor configuration",
    ),
) -> None:
    """Print the effective processor configuration as YAML."""
    config = _load_config(config_file, {})
    typer.echo(config.to_yaml(), nl=False)


if __name__ == "__main__":
    app()
