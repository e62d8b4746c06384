"""Tests for the Hydra-based CLI (cli.py)."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from hydra import compose, initialize_config_dir

import pedagogical_content
from pedagogical_content._hydra_conf import CLI_ONLY_KEYS, PcpConf, register_configs
from pedagogical_content.cli import _MODE_DISPATCH, _load_document, _to_project_config
from pedagogical_content.models import ProjectConfig

CONF_DIR = str(Path(pedagogical_content.__file__).resolve().parent / "conf")


def _compose(*overrides: str):
    register_configs()
    with initialize_config_dir(config_dir=CONF_DIR, version_base=None):
        return compose(config_name="config", overrides=list(overrides))


class TestDefaultConfig:
    """Verify the package's conf/config.yaml loads correctly."""

    def test_default_config_loads(self):
        cfg = _compose()
        assert cfg.mode == "run"
        assert cfg.input is None
        assert cfg.assist_enabled is True
        assert cfg.mermaid_cli == "mmdc"

    def test_default_config_converts_to_project_config(self, monkeypatch):
        monkeypatch.setenv("AZURE_OPENAI_API_KEY", "test")
        monkeypatch.setenv("AZURE_OPENAI_API_VERSION", "2024-01-01")
        monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://test.openai.azure.com")

        pc = _to_project_config(_compose())
        assert isinstance(pc, ProjectConfig)
        assert pc.project_name == "pedagogical-content"
        assert pc.azure.api_key == "test"

    def test_overrides_apply(self):
        pc = _to_project_config(_compose("assist_enabled=false", "diagram_render_timeout=2.5"))
        assert pc.assist_enabled is False
        assert pc.diagram_render_timeout == 2.5


class TestModeDispatch:
    def test_all_modes_present(self):
        assert set(_MODE_DISPATCH.keys()) == {"repair", "render", "check", "run"}

    def test_all_modes_are_callable(self):
        for name, handler in _MODE_DISPATCH.items():
            assert callable(handler), f"Handler for mode {name!r} is not callable"


class TestCliOnlyKeys:
    """CLI_ONLY_KEYS should match the extra fields in PcpConf."""

    def test_cli_keys_not_in_project_config(self):
        pc_fields = set(ProjectConfig.model_fields.keys())
        for key in CLI_ONLY_KEYS:
            assert key not in pc_fields, f"CLI-only key {key!r} found in ProjectConfig"

    def test_cli_keys_in_pcp_conf(self):
        conf_fields = set(PcpConf.__dataclass_fields__)
        for key in CLI_ONLY_KEYS:
            assert key in conf_fields, f"CLI-only key {key!r} not found in PcpConf"

    def test_remaining_keys_match_project_config(self):
        conf_fields = set(PcpConf.__dataclass_fields__) - CLI_ONLY_KEYS
        assert conf_fields == set(ProjectConfig.model_fields.keys())


class TestModes:
    """Mode handlers run end to end with the assist pass disabled."""

    def test_missing_input_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            _load_document(_compose())
        assert exc_info.value.code == 1

    def test_unreadable_input_exits(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        with pytest.raises(SystemExit):
            _load_document(_compose(f"input='{bad}'"))

    def test_check_mode(self, sample_lesson_path):
        with patch("pedagogical_content.cli.print_diagnostics") as show:
            _MODE_DISPATCH["check"](_compose("mode=check", f"input='{sample_lesson_path}'"))
        diagnostics = show.call_args.args[0]
        assert diagnostics.paragraph_count == 3
        assert diagnostics.has_objectives_box

    def test_repair_mode_writes_generator_dialect(self, malformed_lesson_path, tmp_path):
        out = tmp_path / "repaired.json"
        cfg = _compose("mode=repair", f"input='{malformed_lesson_path}'", f"output='{out}'", "assist_enabled=false")
        _MODE_DISPATCH["repair"](cfg)

        repaired = json.loads(out.read_text(encoding="utf-8"))
        paragraph, diagram, refs = repaired["conteudo"]
        assert paragraph == {"tipo": "paragrafo", "texto": "bad"}
        assert "→" not in diagram["definicao_mermaid"]
        assert refs["itens"] == ["[1] Foo<br><br>"]

    def test_render_mode_without_mermaid_cli(self, sample_lesson_path, tmp_path):
        out = tmp_path / "lesson.html"
        cfg = _compose("mode=render", f"input='{sample_lesson_path}'", f"output='{out}'")
        with patch("pedagogical_content.render.diagram.shutil.which", return_value=None):
            _MODE_DISPATCH["render"](cfg)

        page = out.read_text(encoding="utf-8")
        assert page.startswith("<!DOCTYPE html>")
        assert 'class="diagram-placeholder"' in page

    def test_run_mode(self, malformed_lesson_path, tmp_path):
        out = tmp_path / "lesson.html"
        cfg = _compose("mode=run", f"input='{malformed_lesson_path}'", f"output='{out}'", "assist_enabled=false")
        with patch("pedagogical_content.render.diagram.shutil.which", return_value=None):
            _MODE_DISPATCH["run"](cfg)

        page = out.read_text(encoding="utf-8")
        assert "<div>bad</div>" not in page
        assert '<p class="paragraph">bad</p>' in page
