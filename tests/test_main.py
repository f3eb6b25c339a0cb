"""Tests for the command-line entry point."""

import pytest

from tessera.main import create_parser, main


def test_parse_chat_user() -> None:
    args = create_parser().parse_args(["chat", "-u", "alice"])
    assert args.command == "chat"
    assert args.user == "alice"


def test_parse_serve() -> None:
    args = create_parser().parse_args(["serve", "--host", "0.0.0.0", "--port", "9000"])
    assert args.command == "serve"
    assert args.host == "0.0.0.0"
    assert args.port == 9000


def test_no_command_defaults_to_chat() -> None:
    assert create_parser().parse_args([]).command is None


def test_malformed_env_exits(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TESSERA_HOME", str(tmp_path))
    monkeypatch.setenv("MEMORY_TIMEOUT", "soon")

    with pytest.raises(SystemExit) as exc_info:
        main(["chat"])

    assert exc_info.value.code == 1
    assert "Error:" in capsys.readouterr().err
