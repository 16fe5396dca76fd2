"""Tests for memindex search."""

from __future__ import annotations

from typer.testing import CliRunner

from memindex.cli.main import app

runner = CliRunner()


def test_keyword_search(cli_workspace, fake_backend) -> None:
    result = runner.invoke(app, ["search", "parser", "--keyword", "-w", str(cli_workspace)])

    assert result.exit_code == 0, result.output
    assert "memory/2026-01-02.md:1-2" in result.output
    assert "MEMORY.md" not in result.output


def test_keyword_search_no_match(cli_workspace, fake_backend) -> None:
    result = runner.invoke(app, ["search", "zebra", "--keyword", "-w", str(cli_workspace)])
    assert result.exit_code == 0
    assert "No matching memories." in result.output


def test_vector_search_disabled_exits_1(cli_workspace, fake_backend) -> None:
    result = runner.invoke(app, ["search", "tea", "-w", str(cli_workspace)])
    assert result.exit_code == 1
    assert "Vector search is not available" in result.output
    assert "--keyword" in result.output


def test_vector_search(cli_workspace, fake_backend, write_config, require_vec) -> None:
    write_config(cli_workspace, vector=True, search={"min_score": 0.0})

    result = runner.invoke(
        app, ["search", "# Root Prefers tea over coffee.", "-k", "1", "-w", str(cli_workspace)]
    )

    assert result.exit_code == 0, result.output
    assert "MEMORY.md:1-2" in result.output
    assert "1.00" in result.output
    assert "2026-01-02" not in result.output


def test_top_k_must_be_positive(cli_workspace, fake_backend) -> None:
    result = runner.invoke(app, ["search", "tea", "-k", "0", "-w", str(cli_workspace)])
    assert result.exit_code != 0
