"""CLI entry point using Hydra.

Usage examples:
  pcp mode=repair input=lesson.json output=lesson.repaired.json
  pcp mode=render input=lesson.repaired.json output=lesson.html
  pcp mode=check input=lesson.json
  pcp mode=run input=lesson.json output=lesson.html assist_enabled=false
  pcp --config-dir . --config-name config mode=run input=lesson.json
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import hydra
from omegaconf import DictConfig, OmegaConf

from ._hydra_conf import CLI_ONLY_KEYS, register_configs
from .config import apply_azure_fallbacks
from .logging_config import RichCallbacks, console, print_diagnostics, setup_logging
from .models import Document, ProjectConfig
from .wire import document_from_wire, document_to_wire

register_configs()

# ---------------------------------------------------------------------------
# Hydra DictConfig → Pydantic ProjectConfig bridge
# ---------------------------------------------------------------------------


def _to_project_config(cfg: DictConfig) -> ProjectConfig:
    """Convert a Hydra *DictConfig* to a Pydantic ``ProjectConfig``.

    CLI-only keys (``mode``, ``input``, etc.) are stripped before validation.
    Azure credential env-var fallbacks are applied afterwards.
    """
    container: dict[str, Any] = OmegaConf.to_container(cfg, resolve=True)  # type: ignore[assignment]
    for key in CLI_ONLY_KEYS:
        container.pop(key, None)
    config = ProjectConfig.model_validate(container)
    return apply_azure_fallbacks(config)


def _load_document(cfg: DictConfig) -> Document:
    """Read the ``input=`` JSON document; exit 1 if it cannot be read."""
    path = cfg.get("input")
    if not path:
        console.print("[red]input=<document.json> is required[/]")
        sys.exit(1)
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return document_from_wire(raw)
    except (OSError, json.JSONDecodeError, TypeError) as e:
        console.print(f"[red]Cannot read document {path}: {e}[/]")
        sys.exit(1)


def _write_output(cfg: DictConfig, text: str) -> None:
    output = cfg.get("output")
    if output:
        Path(output).write_text(text, encoding="utf-8")
        console.print(f"[green]Written to {output}[/]")
    else:
        sys.stdout.write(text)


def _repair(config: ProjectConfig, document: Document, callbacks: RichCallbacks):
    from .pipeline import RepairPipeline

    result = asyncio.run(RepairPipeline(config, callbacks=callbacks).repair(document))
    console.print(f"  Repair mode: [bold]{result.mode.value}[/]")
    print_diagnostics(result.diagnostics)
    return result


def _render_html(config: ProjectConfig, document: Document, callbacks: RichCallbacks) -> str:
    from .render.document import DocumentRenderer
    from .render.html import to_html_page

    renderer = DocumentRenderer(config, callbacks=callbacks)
    if not renderer.diagrams.engine.available():
        callbacks.on_warning(f"{config.mermaid_cli} not found; diagrams will render as placeholders")
    tree = asyncio.run(renderer.render(document))
    return to_html_page(tree, title=document.general_title)


# ---------------------------------------------------------------------------
# Mode handlers
# ---------------------------------------------------------------------------


def _repair_mode(cfg: DictConfig) -> None:
    config = _to_project_config(cfg)
    document = _load_document(cfg)
    callbacks = RichCallbacks(verbose=cfg.get("verbose", False))

    result = _repair(config, document, callbacks)
    payload = json.dumps(document_to_wire(result.document), ensure_ascii=False, indent=2)
    _write_output(cfg, payload + "\n")


def _render_mode(cfg: DictConfig) -> None:
    config = _to_project_config(cfg)
    document = _load_document(cfg)
    callbacks = RichCallbacks(verbose=cfg.get("verbose", False))

    _write_output(cfg, _render_html(config, document, callbacks))


def _check_mode(cfg: DictConfig) -> None:
    from .pipeline import compute_diagnostics

    document = _load_document(cfg)
    print_diagnostics(compute_diagnostics(document))


def _run_mode(cfg: DictConfig) -> None:
    config = _to_project_config(cfg)
    document = _load_document(cfg)
    callbacks = RichCallbacks(verbose=cfg.get("verbose", False))

    result = _repair(config, document, callbacks)
    _write_output(cfg, _render_html(config, result.document, callbacks))


_MODE_DISPATCH: dict[str, Any] = {
    "repair": _repair_mode,
    "render": _render_mode,
    "check": _check_mode,
    "run": _run_mode,
}


# ---------------------------------------------------------------------------
# Hydra entry point
# ---------------------------------------------------------------------------


@hydra.main(config_path="conf", config_name="config", version_base=None)
def hydra_entry(cfg: DictConfig) -> None:
    """Hydra-managed CLI entry point."""
    setup_logging(verbose=cfg.get("verbose", False), quiet=cfg.get("quiet", False))

    mode = cfg.get("mode", "run")
    handler = _MODE_DISPATCH.get(mode)
    if handler is None:
        console.print(f"[red]Unknown mode: {mode!r}. Choose from: {', '.join(_MODE_DISPATCH)}[/]")
        sys.exit(1)

    handler(cfg)


def main() -> None:
    """Package entry point (``[project.scripts]`` target)."""
    hydra_entry()  # pylint: disable=no-value-for-parameter
