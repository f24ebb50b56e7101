"""
tests/test_config.py — YAML configuration loader
=================================================
"""

from __future__ import annotations

import pytest

from cadence.config import load_config

BASE = """
community_name: "Test Guild"
guild_id: 111
admin_role_id: 222
"""


def _write(tmp_path, body: str):
    path = tmp_path / "config.yaml"
    path.write_text(BASE + body, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, ""))
        assert cfg.community_name == "Test Guild"
        assert (cfg.guild_id, cfg.admin_role_id) == (111, 222)
        assert cfg.bot_prefix == "!"
        assert cfg.storage_backend == "sql"
        assert cfg.timezone == "UTC"
        assert cfg.api_port == 8000
        assert cfg.announce_channel_id is None

    def test_document_backend(self, tmp_path):
        cfg = load_config(_write(tmp_path, """
timezone: "Europe/Berlin"
announce_channel_id: 555
storage:
  backend: document
  document_path: data/cadence.json
"""))
        assert cfg.storage_backend == "document"
        assert cfg.document_path == "data/cadence.json"
        assert cfg.timezone == "Europe/Berlin"
        assert cfg.announce_channel_id == 555

    def test_document_backend_needs_path(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(_write(tmp_path, "storage:\n  backend: document\n"))

    def test_unknown_backend(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(_write(tmp_path, "storage:\n  backend: redis\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_required_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("community_name: x\n", encoding="utf-8")
        with pytest.raises(KeyError):
            load_config(path)
