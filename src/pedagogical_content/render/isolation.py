"""Containment boundary for rendering faults.

A fault raised while rendering a subtree replaces that subtree with one
static "visualization unavailable" node; siblings are unaffected. Faults are
logged, never re-raised. ``BaseException`` (cancellation, interpreter exit)
passes through.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from ..models import PresentationNode

logger = logging.getLogger(__name__)

UNAVAILABLE_TEXT = "Visualization unavailable"


class RenderFault(Exception):
    """Base class for failures raised while rendering."""


FaultHook = Callable[[str, Exception], None]


def unavailable_node(label: str) -> PresentationNode:
    """Static placeholder standing in for a faulted subtree."""
    return PresentationNode(kind="unavailable", attrs={"origin": label}, text=UNAVAILABLE_TEXT)


def _report(label: str, exc: Exception, on_fault: FaultHook | None) -> PresentationNode:
    logger.error("Render fault in %s: %s", label, exc, exc_info=exc)
    if on_fault is not None:
        on_fault(label, exc)
    return unavailable_node(label)


def isolate(
    render: Callable[..., PresentationNode],
    *args: Any,
    label: str,
    on_fault: FaultHook | None = None,
) -> PresentationNode:
    """Call ``render(*args)``; on any ``Exception`` return a placeholder node."""
    try:
        return render(*args)
    except Exception as e:
        return _report(label, e, on_fault)


async def isolate_async(
    pending: Awaitable[PresentationNode],
    *,
    label: str,
    on_fault: FaultHook | None = None,
) -> PresentationNode:
    """Await *pending*; on any ``Exception`` return a placeholder node."""
    try:
        return await pending
    except Exception as e:
        return _report(label, e, on_fault)
