"""Diagram render retry engine.

Each diagram source is tried against the diagram engine under an ordered
list of progressively simplified rewrites. The retry loop is an explicit
state machine: ``Pending(i)`` attempts strategy *i* and moves to
``Rendered(i)`` on success, to ``Pending(i + 1)`` on failure, or to
``Failed`` when no strategy is left. Attempts within one diagram run
strictly one after another; each is bounded by a timeout, and a timeout
counts as a failure.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol, Union

from ..logging_config import NullCallbacks, PipelineCallbacks
from ..models import PresentationNode
from ..tools.diagram_normalizer import truncate_long_labels
from .isolation import RenderFault

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "Diagram under construction: it could not be rendered automatically."


class DiagramRenderError(RenderFault):
    """The diagram engine rejected a source or did not answer in time."""


class DiagramEngine(Protocol):
    """Diagram-engine collaborator. Raises on any failure."""

    async def attempt_render(self, unique_id: str, source: str) -> str: ...


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

_GLUED_DIRECTION_RE = re.compile(r"^(\s*)(graph|flowchart)([A-Z]{2})\b")
_QUOTED_SQUARE_RE = re.compile(r'\["([^"\n]+)"\]')
_QUOTED_CURLY_RE = re.compile(r'\{"([^"\n]+)"\}')


def add_space_after_keyword(source: str) -> str:
    """``graphTD`` -> ``graph TD``."""
    return _GLUED_DIRECTION_RE.sub(r"\1\2 \3", source, count=1)


def strip_label_quotes(source: str) -> str:
    """``A["label"]`` -> ``A[label]``."""
    source = _QUOTED_SQUARE_RE.sub(r"[\1]", source)
    return _QUOTED_CURLY_RE.sub(r"{\1}", source)


STRATEGIES: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("original", lambda source: source),
    ("add-space-after-keyword", add_space_after_keyword),
    ("strip-quotes-from-labels", strip_label_quotes),
    ("truncate-long-labels", truncate_long_labels),
)


def strategy_sources(source: str) -> list[str]:
    """Candidate source per strategy; each builds on the previous one."""
    candidates: list[str] = []
    current = source
    for _name, rewrite in STRATEGIES:
        current = rewrite(current)
        candidates.append(current)
    return candidates


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pending:
    index: int


@dataclass(frozen=True)
class Rendered:
    index: int
    output: str

    @property
    def strategy(self) -> str:
        return STRATEGIES[self.index][0]


@dataclass(frozen=True)
class Failed:
    reason: str = ""


DiagramState = Union[Pending, Rendered, Failed]


def advance(state: DiagramState, outcome: str | Exception) -> DiagramState:
    """Transition after one attempt.

    *outcome* is the engine output on success or the exception it raised.
    Empty output counts as a failure. Terminal states are returned unchanged.
    """
    if not isinstance(state, Pending):
        return state
    if isinstance(outcome, str) and outcome.strip():
        return Rendered(state.index, outcome)
    if state.index + 1 < len(STRATEGIES):
        return Pending(state.index + 1)
    reason = str(outcome) if isinstance(outcome, Exception) else "empty output"
    return Failed(reason)


# ---------------------------------------------------------------------------
# Engine driver
# ---------------------------------------------------------------------------


class DiagramRenderer:
    """Runs the strategy state machine for one diagram at a time."""

    def __init__(
        self,
        engine: DiagramEngine,
        *,
        timeout: float = 10.0,
        excerpt_chars: int = 500,
        callbacks: PipelineCallbacks | None = None,
    ) -> None:
        self.engine = engine
        self.timeout = timeout
        self.excerpt_chars = excerpt_chars
        self.callbacks = callbacks or NullCallbacks()

    async def _attempt(self, unique_id: str, index: int, source: str) -> str | Exception:
        name = STRATEGIES[index][0]
        self.callbacks.on_diagram_attempt(unique_id, name, index + 1, len(STRATEGIES))
        try:
            return await asyncio.wait_for(
                self.engine.attempt_render(f"{unique_id}-{index}", source),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.info("%s: strategy %s timed out after %.1fs", unique_id, name, self.timeout)
            return DiagramRenderError(f"timed out after {self.timeout}s")
        except Exception as e:
            logger.info("%s: strategy %s failed: %s", unique_id, name, e)
            return e

    async def run(self, source: str, unique_id: str = "diagram") -> DiagramState:
        """Drive the state machine to a terminal state.

        A strategy whose rewrite leaves the source identical to an already
        attempted one is counted as failed without calling the engine again.
        Cancellation propagates out of the pending attempt.
        """
        candidates = strategy_sources(source)
        attempted: set[str] = set()
        state: DiagramState = Pending(0)
        while isinstance(state, Pending):
            candidate = candidates[state.index]
            if candidate in attempted:
                outcome: str | Exception = DiagramRenderError("no change from previous strategy")
            else:
                attempted.add(candidate)
                outcome = await self._attempt(unique_id, state.index, candidate)
            state = advance(state, outcome)
        if isinstance(state, Failed):
            logger.warning("%s: all %d strategies failed (%s)", unique_id, len(STRATEGIES), state.reason)
        return state

    def node_for(self, state: DiagramState, source: str) -> PresentationNode:
        if isinstance(state, Rendered):
            return PresentationNode(kind="diagram_graphic", attrs={"strategy": state.strategy}, markup=state.output)
        reason = state.reason if isinstance(state, Failed) else ""
        return PresentationNode(
            kind="diagram_placeholder",
            attrs={"reason": reason},
            text=PLACEHOLDER_TEXT,
            children=[PresentationNode(kind="source_excerpt", text=self._excerpt(source))],
        )

    def _excerpt(self, source: str) -> str:
        if len(source) <= self.excerpt_chars:
            return source
        return source[: self.excerpt_chars] + "..."

    async def render(self, source: str, unique_id: str = "diagram") -> PresentationNode:
        """Rendered graphic, or a placeholder carrying a source excerpt."""
        state = await self.run(source, unique_id)
        return self.node_for(state, source)


# ---------------------------------------------------------------------------
# Mermaid CLI engine
# ---------------------------------------------------------------------------


class MermaidCliEngine:
    """Renders mermaid sources to SVG with the ``mmdc`` command-line tool."""

    def __init__(self, executable: str = "mmdc") -> None:
        self.executable = executable

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    async def attempt_render(self, unique_id: str, source: str) -> str:
        exe = shutil.which(self.executable)
        if exe is None:
            raise DiagramRenderError(f"{self.executable} not found on PATH")

        with tempfile.TemporaryDirectory(prefix="pcp-diagram-") as tmp:
            in_path = Path(tmp) / f"{unique_id}.mmd"
            out_path = Path(tmp) / f"{unique_id}.svg"
            in_path.write_text(source, encoding="utf-8")

            proc = await asyncio.create_subprocess_exec(
                exe, "-i", str(in_path), "-o", str(out_path), "-q",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await proc.communicate()
            except asyncio.CancelledError:
                proc.kill()
                await proc.wait()
                raise

            if proc.returncode != 0 or not out_path.exists():
                detail = stderr.decode("utf-8", errors="replace").strip()
                raise DiagramRenderError(detail[:500] or f"{self.executable} exited with {proc.returncode}")
            return out_path.read_text(encoding="utf-8")
