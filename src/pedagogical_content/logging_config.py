"""Rich console setup and pipeline progress helpers."""

from __future__ import annotations

import logging
from typing import Protocol

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .models import BalanceDiagnostics

console = Console()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logger with Rich handler."""
    level = logging.DEBUG if verbose else (logging.ERROR if quiet else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Pipeline callbacks protocol
# ---------------------------------------------------------------------------


class PipelineCallbacks(Protocol):
    """Protocol for pipeline progress reporting."""

    def on_phase_start(self, phase: str, description: str) -> None: ...
    def on_phase_end(self, phase: str, success: bool) -> None: ...
    def on_block_repaired(self, index: int, kind: str) -> None: ...
    def on_diagram_attempt(self, unique_id: str, strategy: str, attempt: int, total: int) -> None: ...
    def on_warning(self, message: str) -> None: ...
    def on_error(self, message: str) -> None: ...


class RichCallbacks:
    """Rich-based implementation of PipelineCallbacks."""

    def __init__(self, *, verbose: bool = False) -> None:
        self.verbose = verbose

    def on_phase_start(self, phase: str, description: str) -> None:
        console.rule(f"[bold blue]{phase}[/] - {description}")

    def on_phase_end(self, phase: str, success: bool) -> None:
        status = "[green]OK[/]" if success else "[red]FAILED[/]"
        console.print(f"  Phase {phase}: {status}")

    def on_block_repaired(self, index: int, kind: str) -> None:
        if self.verbose:
            console.print(f"  [dim]Block {index}:[/] {kind}")

    def on_diagram_attempt(self, unique_id: str, strategy: str, attempt: int, total: int) -> None:
        if self.verbose:
            console.print(f"  [yellow]{unique_id}: strategy {attempt}/{total} ({strategy})[/]")

    def on_warning(self, message: str) -> None:
        console.print(f"  [yellow]WARNING:[/] {message}")

    def on_error(self, message: str) -> None:
        console.print(f"  [red]ERROR:[/] {message}")


class NullCallbacks:
    """Silent callbacks for library use and tests."""

    def on_phase_start(self, phase: str, description: str) -> None:
        pass

    def on_phase_end(self, phase: str, success: bool) -> None:
        pass

    def on_block_repaired(self, index: int, kind: str) -> None:
        pass

    def on_diagram_attempt(self, unique_id: str, strategy: str, attempt: int, total: int) -> None:
        pass

    def on_warning(self, message: str) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


def print_diagnostics(diagnostics: BalanceDiagnostics) -> None:
    """Print a structural-balance summary table."""
    table = Table(title="Structural balance", show_header=True)
    table.add_column("Check")
    table.add_column("Value", justify="right")
    table.add_row("Paragraphs", str(diagnostics.paragraph_count))
    table.add_row("Visual blocks", str(diagnostics.visual_count))
    ratio = "n/a" if diagnostics.ratio is None else f"{diagnostics.ratio:.2f}"
    table.add_row("Paragraphs / visuals", ratio)
    table.add_row("Objectives box", "yes" if diagnostics.has_objectives_box else "[red]no[/]")
    table.add_row("Readings box", "yes" if diagnostics.has_readings_box else "[red]no[/]")
    console.print(table)
    for warning in diagnostics.warnings:
        console.print(f"  [yellow]WARNING:[/] {warning}")
