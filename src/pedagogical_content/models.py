"""Pydantic models for the structured lesson content pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class StickyCategory(str, Enum):
    WARNING = "warning"
    TIP = "tip"
    REFLECTION = "reflection"
    APPLICATION = "application"
    INFO = "info"


class DiagramKind(str, Enum):
    FLOW = "flow"
    MINDMAP = "mindmap"
    SCHEMATIC = "schematic"


class ChartKind(str, Enum):
    BAR = "bar"
    PIE = "pie"
    LINE = "line"


class RepairMode(str, Enum):
    """Which path produced a repaired document."""
    ASSISTED = "assisted"
    DETERMINISTIC = "deterministic"


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------

class _BlockBase(BaseModel):
    """Fields shared by every block variant."""
    model_config = ConfigDict(frozen=True)

    title: str | None = Field(default=None, description="Optional block title")
    description: str | None = Field(default=None, description="Optional block description")


class HeadingBlock(_BlockBase):
    kind: Literal["heading"] = "heading"
    level: int = Field(default=2, ge=2, le=4, description="Heading level (2, 3 or 4)")
    text: str = Field(default="")


class ParagraphBlock(_BlockBase):
    kind: Literal["paragraph"] = "paragraph"
    text: str = Field(default="", description="Inline markup restricted to the allow-list")


class HighlightBoxBlock(_BlockBase):
    kind: Literal["highlight_box"] = "highlight_box"
    text: str = Field(default="")


class StickyBlock(_BlockBase):
    """Short annotation. Its category is derived from the text at render time."""
    kind: Literal["sticky"] = "sticky"
    text: str = Field(default="")


class DiagramBlock(_BlockBase):
    kind: Literal["diagram"] = "diagram"
    diagram_kind: DiagramKind = Field(default=DiagramKind.FLOW)
    source: str = Field(default="", description="Graph-grammar (mermaid) source text")


class ChartPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    value: float


class ChartBlock(_BlockBase):
    kind: Literal["chart"] = "chart"
    chart_kind: ChartKind = Field(default=ChartKind.BAR)
    series: list[ChartPoint] = Field(default_factory=list)


class CompositeBlock(_BlockBase):
    """Escape hatch for nested interactive components."""
    kind: Literal["composite"] = "composite"
    component: str = Field(default="", description="Component name, e.g. 'Accordion'")
    props: dict[str, Any] = Field(default_factory=dict)


class GuidelineListBlock(_BlockBase):
    kind: Literal["guideline_list"] = "guideline_list"
    items: list[str] = Field(default_factory=list)


class ReferenceListBlock(_BlockBase):
    """Bibliography block.

    The canonical shape is ``items``; ``text`` is the free-text shape some
    generators emit and is removed by reference normalization.
    """
    kind: Literal["reference_list"] = "reference_list"
    items: list[str] | None = Field(default=None)
    text: str | None = Field(default=None)


class UnknownBlock(_BlockBase):
    kind: Literal["unknown"] = "unknown"
    original_kind: str = Field(default="", description="Unrecognized kind name as received")
    payload: dict[str, Any] = Field(default_factory=dict, description="Raw block as received")


Block = Annotated[
    Union[
        HeadingBlock,
        ParagraphBlock,
        HighlightBoxBlock,
        StickyBlock,
        DiagramBlock,
        ChartBlock,
        CompositeBlock,
        GuidelineListBlock,
        ReferenceListBlock,
        UnknownBlock,
    ],
    Field(discriminator="kind"),
]

VISUAL_KINDS = frozenset({"sticky", "diagram", "chart", "guideline_list", "composite"})


class LearningObjectives(BaseModel):
    """Bloom-tiered objectives carried at document level."""
    model_config = ConfigDict(frozen=True)

    remember_understand: list[str] = Field(default_factory=list)
    apply_analyze: list[str] = Field(default_factory=list)
    evaluate_create: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.remember_understand or self.apply_analyze or self.evaluate_create)


class Document(BaseModel):
    """One generated lesson document. Block order is rendering order."""
    model_config = ConfigDict(frozen=True)

    general_title: str = Field(default="")
    blocks: list[Block] = Field(default_factory=list)
    objectives: LearningObjectives | None = Field(default=None)


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------

class BalanceDiagnostics(BaseModel):
    """Advisory text-vs-visual balance report. Never blocks output."""
    paragraph_count: int = 0
    visual_count: int = 0
    has_objectives_box: bool = False
    has_readings_box: bool = False
    ratio: float | None = Field(default=None, description="paragraphs / visuals; None when there are no visuals")
    warnings: list[str] = Field(default_factory=list)


class RepairResult(BaseModel):
    """Output of the repair pipeline."""
    document: Document
    diagnostics: BalanceDiagnostics
    mode: RepairMode = RepairMode.DETERMINISTIC
    warnings: list[str] = Field(default_factory=list, description="Non-fatal issues met while repairing")


# ---------------------------------------------------------------------------
# Presentation tree
# ---------------------------------------------------------------------------

class PresentationNode(BaseModel):
    """One node of the rendered presentation tree.

    ``text`` is plain text (escaped on output); ``markup`` is sanitized
    inline markup embedded verbatim.
    """
    kind: str
    attrs: dict[str, Any] = Field(default_factory=dict)
    text: str | None = None
    markup: str | None = None
    children: list[PresentationNode] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Project configuration (loaded from YAML or Hydra)
# ---------------------------------------------------------------------------

class ModelEndpointOverride(BaseModel):
    """Per-model endpoint settings that take precedence over ``azure``."""
    endpoint: str = Field(default="")
    api_key: str = Field(default="")
    api_version: str = Field(default="")
    api_type: str | None = Field(default=None, description="Explicit AG2 api_type, e.g. 'anthropic'")


class ModelConfig(BaseModel):
    """LLM model configuration per role."""
    default: str = Field(default="gpt-4.1-mini", description="Default model")
    repairer: str | None = Field(default=None)
    overrides: dict[str, ModelEndpointOverride] = Field(default_factory=dict)


class AzureConfig(BaseModel):
    """Azure OpenAI connection settings."""
    api_key: str = Field(default="", description="Azure OpenAI API key (or ${ENV_VAR})")
    api_version: str = Field(default="", description="API version")
    endpoint: str = Field(default="", description="Azure endpoint URL")


class ProjectConfig(BaseModel):
    """Full configuration loaded from config.yaml."""
    project_name: str = Field(default="pedagogical-content")

    # Azure OpenAI
    azure: AzureConfig = Field(default_factory=AzureConfig)

    # Models
    models: ModelConfig = Field(default_factory=ModelConfig)

    # LLM-assisted repair
    assist_enabled: bool = Field(default=True, description="Run the LLM rewrite pass before deterministic repair")
    timeout: int = Field(default=120, description="LLM call timeout in seconds")
    seed: int = Field(default=42, description="LLM seed for reproducibility")
    temperature: float = Field(default=0.1, description="Sampling temperature for the rewrite pass")

    # Diagram rendering
    diagram_render_timeout: float = Field(default=10.0, description="Seconds allowed per diagram render attempt")
    mermaid_cli: str = Field(default="mmdc", description="Mermaid CLI executable")
    placeholder_excerpt_chars: int = Field(default=500, description="Source excerpt length on failed diagrams")
