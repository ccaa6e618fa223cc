"""Tests for main.py -- the token administration CLI.

Each test points --db-url at a file database under tmp_path so separate
main() invocations (each opening and disposing its own store) see the same
data.
"""

from __future__ import annotations

import pytest

from main import main


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'cli.db'}"


def test_issue_then_consume(db_url, capsys) -> None:
    assert main(["--db-url", db_url, "issue", "42"]) == 0
    token = capsys.readouterr().out.strip()
    assert token.endswith("|42")

    assert main(["--db-url", db_url, "consume", token]) == 0
    assert capsys.readouterr().out.strip() == "42"


def test_consume_twice_fails(db_url, capsys) -> None:
    main(["--db-url", db_url, "issue", "42"])
    token = capsys.readouterr().out.strip()
    main(["--db-url", db_url, "consume", token])
    capsys.readouterr()

    assert main(["--db-url", db_url, "consume", token]) == 1
    assert "902" in capsys.readouterr().err


def test_consume_bad_format(db_url, capsys) -> None:
    assert main(["--db-url", db_url, "consume", "no-separator"]) == 1
    assert "proper format" in capsys.readouterr().err


def test_issue_rejects_separator(db_url, capsys) -> None:
    assert main(["--db-url", db_url, "issue", "a|b"]) == 2
    assert "must not contain" in capsys.readouterr().err


def test_revoke(db_url, capsys) -> None:
    main(["--db-url", db_url, "issue", "42"])
    assert main(["--db-url", db_url, "revoke", "42"]) == 0
    assert main(["--db-url", db_url, "revoke", "42"]) == 1


def test_purge_reports_count(db_url, capsys) -> None:
    assert main(["--db-url", db_url, "purge"]) == 0
    assert "0 expired token(s) removed" in capsys.readouterr().out


def test_no_command_prints_help(capsys) -> None:
    assert main([]) == 2
    assert "usage" in capsys.readouterr().out.lower()


@pytest.mark.parametrize("ttl", ["0", "-5", "soon"])
def test_issue_rejects_non_positive_ttl(db_url, ttl, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--db-url", db_url, "issue", "42", "--ttl", ttl])
    assert excinfo.value.code == 2
    assert "--ttl" in capsys.readouterr().err


def test_issue_with_explicit_ttl(db_url, capsys) -> None:
    assert main(["--db-url", db_url, "issue", "42", "--ttl", "60"]) == 0
    token = capsys.readouterr().out.strip()
    assert main(["--db-url", db_url, "consume", token]) == 0
