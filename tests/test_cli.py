from __future__ import annotations

from click.testing import CliRunner

from ghas_dismisser.dismissal.orchestrator import Classification
from ghas_dismisser.main import cli
from ghas_dismisser.resolution.models import Alert


def test_no_repositories_fails() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, [])
    assert result.exit_code != 0
    assert "No repositories specified" in result.output


def test_missing_token_fails(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    runner = CliRunner()
    result = runner.invoke(cli, ["octo/demo"])
    assert result.exit_code != 0
    assert "GITHUB_TOKEN is required" in result.output


def test_prints_summary(monkeypatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "t")
    monkeypatch.setattr("ghas_dismisser.main.resolve_repositories", lambda orchestrator, arguments: [])

    def _fake_run(orchestrator, repos) -> list[Classification]:
        assert orchestrator.dry_run
        return [
            Classification(
                repository="octo/demo",
                source="api",
                keep=[Alert(number=1, rule_id="r", path="a.py", ref="main")],
                dismiss=[Alert(number=2, rule_id="r", path="b.py", ref="main")],
            )
        ]

    monkeypatch.setattr("ghas_dismisser.main.run", _fake_run)
    runner = CliRunner()
    result = runner.invoke(cli, ["--dry-run", "octo/demo"])
    assert result.exit_code == 0
    assert "octo/demo: kept 1, stale 1, dismissed 0 (dry run)" in result.output
