"""Tests for the hrassist command line."""

import json
import os
import sys
from unittest.mock import patch

import pytest


@pytest.fixture
def data_dir(tmp_path, collections):
    directory = tmp_path / "data"
    directory.mkdir()
    for name, rows in collections.items():
        (directory / f"{name}.json").write_text(json.dumps({name: rows}))
    return directory


def run_cli(tmp_path, *argv):
    from hrassist.cli import main
    with patch("hrassist.common.config.CONFIG_PATH", tmp_path / "none.json"), \
         patch.dict(os.environ, {}, clear=True), \
         patch.object(sys, "argv", ["hrassist", *argv]):
        main()


def test_analyze_prints_json(tmp_path, data_dir, capsys):
    run_cli(tmp_path, "--data-dir", str(data_dir), "analyze", "Show me Jordan Williams's shifts this week")

    output = json.loads(capsys.readouterr().out)
    assert output["primary_intent"] == "schedule_management"
    assert output["assistant_type"] == "employee"
    assert output["degraded"] is False
    assert {"type": "employee", "value": "Jordan Williams", "original_text": "jordan",
            "confidence": 0.9, "record_id": "E002"} in output["entities"]


def test_retrieve_prints_formatted_data(tmp_path, data_dir, capsys):
    run_cli(tmp_path, "--data-dir", str(data_dir), "retrieve", "What's the status of the Software Developer position?")

    out = capsys.readouterr().out
    assert "[HRAssist] Intent: job_management (talent)" in out
    assert "**Senior Software Developer** (J001)" in out


def test_metrics_reports_cache_use(tmp_path, data_dir, capsys):
    run_cli(tmp_path, "--data-dir", str(data_dir), "metrics", "What tasks are pending?", "What tasks are pending?")

    output = json.loads(capsys.readouterr().out)
    assert output["retrieval"]["queries_processed"] == 2
    assert output["retrieval"]["cache_hits"] == 1
    assert output["service"]["total_requests"] > 0


def test_chat_without_provider_exits(tmp_path, data_dir, capsys):
    with pytest.raises(SystemExit):
        run_cli(tmp_path, "--data-dir", str(data_dir), "chat")
    assert "No LLM provider configured" in capsys.readouterr().out


def test_missing_data_dir_degrades(tmp_path, capsys):
    run_cli(tmp_path, "--data-dir", str(tmp_path / "nowhere"), "analyze", "show e002 shifts")

    output = json.loads(capsys.readouterr().out)
    assert output["degraded"] is True
