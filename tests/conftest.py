"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from pedagogical_content.models import Document, ProjectConfig
from pedagogical_content.wire import document_from_wire

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SAMPLE_LESSON = FIXTURES_DIR / "sample_lesson.json"
MALFORMED_LESSON = FIXTURES_DIR / "malformed_lesson.json"
SAMPLE_CONFIG = FIXTURES_DIR / "sample_config.yaml"


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def sample_config_path() -> Path:
    return SAMPLE_CONFIG


@pytest.fixture
def sample_lesson_path() -> Path:
    return SAMPLE_LESSON


@pytest.fixture
def malformed_lesson_path() -> Path:
    return MALFORMED_LESSON


@pytest.fixture
def sample_lesson_raw() -> dict[str, Any]:
    return json.loads(SAMPLE_LESSON.read_text(encoding="utf-8"))


@pytest.fixture
def malformed_lesson_raw() -> dict[str, Any]:
    return json.loads(MALFORMED_LESSON.read_text(encoding="utf-8"))


@pytest.fixture
def sample_lesson(sample_lesson_raw) -> Document:
    return document_from_wire(sample_lesson_raw)


@pytest.fixture
def malformed_lesson(malformed_lesson_raw) -> Document:
    return document_from_wire(malformed_lesson_raw)


@pytest.fixture
def offline_config() -> ProjectConfig:
    """Config with the LLM assist pass disabled and a short diagram timeout."""
    return ProjectConfig(assist_enabled=False, diagram_render_timeout=0.5)


# ---------------------------------------------------------------------------
# Fake diagram engines
# ---------------------------------------------------------------------------


class RecordingEngine:
    """Diagram engine that fails a fixed number of attempts, then succeeds."""

    def __init__(self, failures: int = 0, output: str = "<svg>ok</svg>") -> None:
        self.failures = failures
        self.output = output
        self.calls: list[tuple[str, str]] = []

    async def attempt_render(self, unique_id: str, source: str) -> str:
        self.calls.append((unique_id, source))
        if len(self.calls) <= self.failures:
            raise ValueError(f"Parse error on attempt {len(self.calls)}")
        return self.output


class AlwaysFailingEngine(RecordingEngine):
    def __init__(self) -> None:
        super().__init__(failures=10**6)


class HangingEngine:
    """Never answers; every attempt runs into the timeout."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.cancelled = 0

    async def attempt_render(self, unique_id: str, source: str) -> str:
        self.calls.append(source)
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return "<svg>late</svg>"


@pytest.fixture
def recording_engine() -> RecordingEngine:
    return RecordingEngine()


@pytest.fixture
def failing_engine() -> AlwaysFailingEngine:
    return AlwaysFailingEngine()


@pytest.fixture
def hanging_engine() -> HangingEngine:
    return HangingEngine()


@pytest.fixture
def flaky_engine() -> RecordingEngine:
    """Fails the first two attempts."""
    return RecordingEngine(failures=2)
