"""Tests for configuration loading, env overrides and persistence."""

import json
import os
import pytest
from unittest.mock import patch


class TestDefaults:
    def test_budget_defaults(self):
        from hrassist.common.config import BudgetConfig
        cfg = BudgetConfig()
        assert cfg.max_context_tokens == 100000
        assert cfg.effective_limit == 90000
        assert cfg.history_budget == 81000

    def test_cache_category_ttls(self):
        from hrassist.common.config import CacheConfig
        cfg = CacheConfig()
        assert cfg.category_ttls["employees"] == 900
        assert cfg.category_ttls["relationships"] == 1800
        assert cfg.category_ttls["query"] == 300

    def test_analyzer_thresholds(self):
        from hrassist.common.config import AnalyzerConfig
        cfg = AnalyzerConfig()
        assert cfg.assistant_switch_threshold == 0.6
        assert cfg.domain_margin == 0.3


class TestLoadConfig:
    def test_missing_file_uses_defaults(self, tmp_path):
        from hrassist.common.config import load_config
        with patch("hrassist.common.config.CONFIG_PATH", tmp_path / "missing.json"), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()
        assert cfg.llm.provider == "anthropic"
        assert cfg.coalescer.window_ms == 50.0
        assert cfg.preload is True

    def test_file_sections_are_parsed(self, tmp_path):
        from hrassist.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "cache": {"category_ttls": {"jobs": 120}},
            "coalescer": {"window_ms": 20},
            "budget": {"max_context_tokens": 50000, "unknown_key": 1},
            "retrieval": {"contextual_limit": 5},
            "store": {"data_dir": "/srv/hr"},
            "preload": False,
        }))

        with patch("hrassist.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.cache.category_ttls["jobs"] == 120
        assert cfg.cache.category_ttls["employees"] == 900
        assert cfg.coalescer.window_ms == 20
        assert cfg.budget.max_context_tokens == 50000
        assert cfg.budget.history_budget == 31000
        assert cfg.retrieval.contextual_limit == 5
        assert cfg.store.data_dir == "/srv/hr"
        assert cfg.preload is False

    def test_invalid_json_logs_warning(self, tmp_path, caplog):
        import logging
        from hrassist.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with patch("hrassist.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True), \
             caplog.at_level(logging.WARNING, logger="hrassist.common.config"):
            cfg = load_config()

        assert "Failed to load config file" in caplog.text
        assert cfg.budget.max_context_tokens == 100000

    def test_env_var_overrides(self, tmp_path):
        from hrassist.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"llm": {"provider": "anthropic"}}))

        env = {
            "OPENAI_API_KEY": "sk-env",
            "HRASSIST_LLM_PROVIDER": "openai",
            "HRASSIST_DATA_DIR": "/data/hr",
            "HRASSIST_BATCH_WINDOW_MS": "10",
            "HRASSIST_MAX_CONTEXT_TOKENS": "200000",
        }
        with patch("hrassist.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.llm.provider == "openai"
        assert cfg.llm.openai_api_key == "sk-env"
        assert cfg.store.data_dir == "/data/hr"
        assert cfg.coalescer.window_ms == 10.0
        assert cfg.budget.max_context_tokens == 200000
        assert "openai_api_key" in cfg._env_sourced_keys

    def test_gemini_key_alias(self, tmp_path):
        from hrassist.common.config import load_config
        with patch("hrassist.common.config.CONFIG_PATH", tmp_path / "none.json"), \
             patch.dict(os.environ, {"GEMINI_API_KEY": "g-key"}, clear=True):
            cfg = load_config()
        assert cfg.llm.google_api_key == "g-key"


class TestSaveConfig:
    def test_save_config_omits_env_keys(self, tmp_path):
        from hrassist.common.config import load_config, save_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"llm": {"openai_api_key": "sk-file"}}))

        with patch("hrassist.common.config.CONFIG_PATH", config_file), \
             patch("hrassist.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, {"ANTHROPIC_API_KEY": "sk-ant-env"}, clear=True):
            cfg = load_config()
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["anthropic_api_key"] == ""
        assert saved["llm"]["openai_api_key"] == "sk-file"
        assert saved["budget"]["max_context_tokens"] == 100000

    def test_round_trip(self, tmp_path):
        from hrassist.common.config import AssistConfig, load_config, save_config
        config_file = tmp_path / "config.json"
        cfg = AssistConfig()
        cfg.retrieval.contextual_limit = 7
        cfg.cache.category_ttls["query"] = 60

        with patch("hrassist.common.config.CONFIG_PATH", config_file), \
             patch("hrassist.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, {}, clear=True):
            save_config(cfg)
            loaded = load_config()

        assert loaded.retrieval.contextual_limit == 7
        assert loaded.cache.category_ttls["query"] == 60
        assert oct(config_file.stat().st_mode & 0o777) == "0o600"

    def test_save_creates_only_the_config_file(self, tmp_path):
        from hrassist.common.config import AssistConfig, save_config
        config_dir = tmp_path / ".hrassist"

        with patch("hrassist.common.config.CONFIG_PATH", config_dir / "config.json"), \
             patch("hrassist.common.config.CONFIG_DIR", config_dir):
            save_config(AssistConfig())

        assert [p.name for p in config_dir.iterdir()] == ["config.json"]


@pytest.mark.parametrize("key", ["ANTHROPIC_MODEL", "OPENAI_MODEL", "GOOGLE_MODEL"])
def test_model_env_overrides(tmp_path, key):
    from hrassist.common.config import load_config
    with patch("hrassist.common.config.CONFIG_PATH", tmp_path / "none.json"), \
         patch.dict(os.environ, {key: "custom-model"}, clear=True):
        cfg = load_config()
    attr = key.lower()
    assert getattr(cfg.llm, attr) == "custom-model"
