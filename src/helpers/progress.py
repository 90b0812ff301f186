"""Shared progress bar utilities for Rich console displays."""

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


def create_standard_progress(
    console: Console | None = None, *, expand: bool = False, disable: bool = False
) -> Progress:
    """Create a standard progress bar with time remaining estimation.

    Args:
        console: Rich console instance (optional)
        expand: Whether to expand the progress bar to full width
        disable: Build the bar without rendering anything

    Returns:
        Configured Progress instance with spinner, description, bar,
        M of N counter, time elapsed and time remaining

    Example:
        ```python
        from rich.console import Console
        from src.helpers.progress import create_standard_progress

        console = Console()
        progress = create_standard_progress(console)

        with progress:
            task_id = progress.add_task("Processing slots", total=100)
            progress.update(task_id, advance=10)
        ```
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("•"),
        TimeElapsedColumn(),
        TextColumn("•"),
        TimeRemainingColumn(),
        console=console,
        expand=expand,
        disable=disable,
    )


def track_batches(
    progress: Progress,
    task_id: TaskID,
    batch_num: int,
    total_batches: int,
    items_processed: int,
    base_description: str,
) -> None:
    """Advance a task by one batch and show the batch counter.

    Args:
        progress: Progress instance
        task_id: Task ID to update
        batch_num: Current batch number (1-indexed)
        total_batches: Total number of batches
        items_processed: Number of items processed in this batch
        base_description: Base description for the task
    """
    description = f"{base_description} [batch {batch_num}/{total_batches}]"
    progress.update(task_id, advance=items_processed, description=description)


__all__ = [
    "TaskID",
    "create_standard_progress",
    "track_batches",
]
