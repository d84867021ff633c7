"""Tests for the command-line scoring entry point."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from inbox_priority.cli import build_parser, execute, load_messages, main
from inbox_priority.core.config import AppSettings

QUESTION = """\
From: Alice <alice@example.com>
To: me@example.com
Subject: Quarterly numbers
Message-ID: <question@example.com>
Date: Mon, 10 Mar 2025 10:15:00 +0000

Can you review the attached numbers?
"""

NEWSLETTER = """\
From: news@updates.example.com
To: me@example.com
Subject: Weekly newsletter
List-Unsubscribe: <mailto:leave@example.com>
Date: Mon, 10 Mar 2025 08:00:00 +0000

Here is what happened this week.
"""


def _mailbox(tmp_path: Path) -> Path:
    folder = tmp_path / "mail"
    folder.mkdir()
    (folder / "question.eml").write_text(QUESTION)
    (folder / "digest.eml").write_text(NEWSLETTER)
    (folder / "notes.txt").write_text("not an email")
    return folder


def test_build_parser_defaults() -> None:
    args = build_parser().parse_args(["score", "inbox"])

    assert args.command == "score"
    assert args.paths == [Path("inbox")]
    assert args.vip == []
    assert args.parallelism is None
    assert not args.as_json


def test_load_messages_scans_directories(tmp_path: Path) -> None:
    messages = load_messages([_mailbox(tmp_path)])

    assert [message.message_id for message in messages] == ["digest", "<question@example.com>"]


def test_execute_prints_explanations(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    args = build_parser().parse_args(["score", str(_mailbox(tmp_path)), "--user-address", "me@example.com"])

    exit_code = execute(args, AppSettings())

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "== <question@example.com>" in output
    assert "== digest" in output
    assert "Priority:" in output
    assert "Newsletter detected (RFC 2369/2919)" in output


def test_execute_json_with_vip_override(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    args = build_parser().parse_args(
        ["score", str(_mailbox(tmp_path)), "--json", "--vip", "alice@example.com", "--parallelism", "1"]
    )

    exit_code = execute(args, AppSettings())

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["errors"] == []
    results = {item["message_id"]: item for item in payload["results"]}
    assert set(results) == {"digest", "<question@example.com>"}
    question = results["<question@example.com>"]
    assert "VIP sender (manually flagged)" in question["reasoning"]
    assert question["score"] > results["digest"]["score"]
    assert results["digest"]["category"] in {"low", "spam"}


def test_execute_without_messages(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()
    args = build_parser().parse_args(["score", str(empty)])

    assert execute(args, AppSettings()) == 1
    assert "No messages found." in capsys.readouterr().out


def test_main_reads_env_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "INBOX_PRIORITY_LOGGING__LEVEL=WARNING\nINBOX_PRIORITY_USER__VIP_SENDERS=[alice@example.com]\n"
    )

    exit_code = main(["--env-file", str(env_file), "score", str(_mailbox(tmp_path))])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "VIP sender (manually flagged)" in output
