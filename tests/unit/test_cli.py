from __future__ import annotations

import json
from pathlib import Path

import pytest

from core.cli import main


def test_query_without_credentials_prints_configuration_error(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    monkeypatch.delenv("AZURE_DEVOPS_COLLECTION_URL", raising=False)
    monkeypatch.delenv("AZURE_DEVOPS_PAT", raising=False)
    monkeypatch.chdir(tmp_path)

    code = main(["query", "--project", "P", "--definition", "D", "--test-case", "LoginTests"])

    assert code == 1
    out = json.loads(capsys.readouterr().out)
    assert out["success"] is False
    assert out["error_kind"] == "configuration_error"
    assert out["results"] == []


def test_explicit_missing_config_is_reported(capsys: pytest.CaptureFixture[str], tmp_path: Path) -> None:
    code = main(["--config", str(tmp_path / "missing.yaml"), "serve"])

    assert code == 2
    assert "config error" in capsys.readouterr().err


def test_fake_chat_session_uses_tools(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    lines = iter(['/tool reverse_echo {"message": "abc"}', "exit"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(lines))
    monkeypatch.chdir(tmp_path)

    code = main(["chat", "--fake"])

    out = capsys.readouterr().out
    assert code == 0
    assert "- get_test_case_results" in out
    assert "AI: (fake) reverse_echo returned:" in out
    assert "cba" in out
