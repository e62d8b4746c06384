"""Hydra structured config dataclasses.

These mirror the Pydantic ``ProjectConfig`` for Hydra schema validation.
At runtime the Hydra DictConfig is converted to ``ProjectConfig`` via
``cli._to_project_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hydra.core.config_store import ConfigStore


@dataclass
class AzureConf:
    api_key: str = "${oc.env:AZURE_OPENAI_API_KEY,''}"
    api_version: str = "${oc.env:AZURE_OPENAI_API_VERSION,''}"
    endpoint: str = "${oc.env:AZURE_OPENAI_ENDPOINT,''}"


@dataclass
class ModelConf:
    default: str = "gpt-4.1-mini"
    repairer: str | None = None
    overrides: dict[str, Any] = field(default_factory=dict)


@dataclass
class PcpConf:
    # --- Dispatch + CLI-only fields ---
    mode: str = "run"
    input: str | None = None
    output: str | None = None
    verbose: bool = False
    quiet: bool = False

    # --- ProjectConfig fields (1:1 mapping) ---
    project_name: str = "pedagogical-content"

    azure: AzureConf = field(default_factory=AzureConf)
    models: ModelConf = field(default_factory=ModelConf)

    assist_enabled: bool = True
    timeout: int = 120
    seed: int = 42
    temperature: float = 0.1

    diagram_render_timeout: float = 10.0
    mermaid_cli: str = "mmdc"
    placeholder_excerpt_chars: int = 500


# Keys present in PcpConf that are NOT part of ProjectConfig.
CLI_ONLY_KEYS = frozenset({"mode", "input", "output", "verbose", "quiet"})


def register_configs() -> None:
    """Register the structured config schema with Hydra's ConfigStore."""
    cs = ConfigStore.instance()
    cs.store(name="pcp_schema", node=PcpConf)
