"""ContentRepairer agent: LLM-assisted rewrite of a generated lesson document.

The agent gets the whole document once and returns a corrected copy. Its
output is untrusted: it is parsed with a staged validator here and then
re-normalized deterministically by the repair pipeline.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import autogen

from ..config import build_role_llm_config
from ..models import Document, ProjectConfig
from ..tools.sanitizer import ALLOWED_TAGS
from ..wire import document_from_wire, document_to_wire

logger = logging.getLogger(__name__)

_ALLOWED_TAG_LIST = ", ".join(f"<{t}>" for t in sorted(ALLOWED_TAGS))

SYSTEM_PROMPT = f"""\
You are an automatic CORRECTION agent for structured lesson material.

You receive one lesson document as JSON (keys "titulo_geral" and "conteudo",
an ordered list of blocks keyed by "tipo"). Do not just validate it: FIX it.

## 1. Mermaid diagrams ("definicao_mermaid")
- Replace arrow glyphs: → with -->, ← with <--, ↔ with <-->, ⇒ with ==>,
  ⇐ with <==, ⇔ with <==>.
- Remove parentheses inside node labels: A[Pressure (P/y)] becomes A[Pressure].
  If a label would become empty, use a short descriptive label.
- Keep node labels at 40 characters or fewer; shorten longer ones.
- The source must start with a diagram keyword (graph, flowchart, mindmap,
  gantt, ...) followed by a space where a direction follows (graph TD).
- When a formula or complex syntax would break rendering, simplify it to
  descriptive text while keeping the teaching intent.

## 2. References ("tipo": "referencias")
- Always use an "itens" array of strings, one complete reference per item.
- If the references arrive in a single "texto" field, split them at each
  [1], [2], ... marker and remove "texto".
- Every item ends with exactly one <br><br>.

## 3. Text fields ("texto", "itens" of guideline lists)
- Only these inline tags are allowed: {_ALLOWED_TAG_LIST}. Remove every other
  tag but keep its text.
- Close every unterminated allowed tag.
- Convert markdown emphasis (**bold**, *italic*) to <strong>/<em>.

## 4. Charts ("tipo": "grafico")
- "dados" is an array of {{"categoria": <string>, "valor": <number>}} rows.

## Rules
- NEVER remove, merge or reorder blocks. Return exactly as many blocks as
  you received, in the same order.
- Keep unrecognized block types unchanged.
- If something cannot be fixed perfectly, simplify it rather than drop it.

Return ONLY the corrected JSON object, without comments or markdown fences.
"""


def make_content_repairer(config: ProjectConfig) -> autogen.AssistantAgent:
    """Create the ContentRepairer agent."""
    return autogen.AssistantAgent(
        name="ContentRepairer",
        system_message=SYSTEM_PROMPT,
        llm_config=build_role_llm_config("repairer", config),
    )


def build_repair_message(document: Document) -> str:
    """User message carrying the document in the generator dialect."""
    payload = json.dumps(document_to_wire(document), ensure_ascii=False, indent=2)
    return f"Correct this lesson document:\n\n{payload}"


# ---------------------------------------------------------------------------
# Structured output validation
# ---------------------------------------------------------------------------


def _response_text(response: Any) -> str:
    """Extract the reply text from an AG2 chat result."""
    if hasattr(response, "summary") and response.summary:
        return str(response.summary)
    if hasattr(response, "chat_history") and response.chat_history:
        last = response.chat_history[-1]
        return last.get("content", "") if isinstance(last, dict) else str(last)
    return str(response)


_FENCE_OPEN_RE = re.compile(r"^\s*```(?:json)?[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?[ \t]*```\s*$")


def _strip_fences(raw: str) -> str:
    """Remove one markdown fence wrapping the whole reply.

    Fences inside string values (fenced mermaid sources) are left alone.
    """
    txt = raw.strip()
    if _FENCE_OPEN_RE.match(txt):
        txt = _FENCE_CLOSE_RE.sub("", _FENCE_OPEN_RE.sub("", txt, count=1), count=1)
    return txt.strip()


def _outer_object(raw: str) -> str:
    if "{" in raw and "}" in raw:
        return raw[raw.find("{"):raw.rfind("}") + 1]
    return raw


def _attempt_repair(raw: str) -> str | None:
    """Lightweight repair for common LLM JSON mistakes."""
    txt = _outer_object(raw.strip())
    if not txt:
        return None
    # Curly/smart quotes
    txt = txt.replace("“", '"').replace("”", '"')
    txt = txt.replace("‘", "'").replace("’", "'")
    # Trailing commas before } or ]
    txt = re.sub(r",\s*([}\]])", r"\1", txt)
    # Unescaped backslashes
    txt = re.sub(r'\\(?!["\\/bfnrtu])', r"\\\\", txt)
    return txt


def validate_repaired_document(raw: str) -> Document | None:
    """Staged parser for ContentRepairer output -> Document.

    Stage 1: direct JSON parse of the outermost object.
    Stage 2: repair (smart quotes, trailing commas, backslashes) then parse.

    Returns None when neither stage yields a JSON object.
    """
    stripped = _strip_fences(raw)

    data: Any = None
    try:
        data = json.loads(_outer_object(stripped))
    except json.JSONDecodeError:
        repaired = _attempt_repair(stripped)
        if repaired:
            try:
                data = json.loads(repaired)
            except json.JSONDecodeError as e:
                logger.debug("Repair response still not JSON after cleanup: %s", e)

    if not isinstance(data, dict):
        return None
    # Some models wrap the document, e.g. {"validatedContent": {...}}
    if "conteudo" not in data and "blocks" not in data:
        nested = [v for v in data.values() if isinstance(v, dict) and ("conteudo" in v or "blocks" in v)]
        if len(nested) != 1:
            return None
        data = nested[0]
    return document_from_wire(data)


# ---------------------------------------------------------------------------
# Rewriter
# ---------------------------------------------------------------------------


class RepairTransportError(RuntimeError):
    """The assist call failed or produced nothing usable."""


class AgentRewriter:
    """Runs one ContentRepairer round-trip per document."""

    def __init__(self, config: ProjectConfig) -> None:
        self.config = config

    async def rewrite(self, document: Document) -> Document:
        repairer = make_content_repairer(self.config)
        orchestrator = autogen.UserProxyAgent(
            name="Orchestrator",
            human_input_mode="NEVER",
            code_execution_config=False,
        )
        response = await orchestrator.a_initiate_chat(
            repairer,
            message=build_repair_message(document),
            max_turns=1,
        )
        candidate = validate_repaired_document(_response_text(response))
        if candidate is None:
            raise RepairTransportError("ContentRepairer returned no parseable document")
        return candidate
