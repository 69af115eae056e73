"""Unit tests for bbl.cli."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from bbl import cli
from bbl.storage import STATE_FILE_NAME


@pytest.fixture(autouse=True)
def no_signal_handlers(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    install = MagicMock()
    monkeypatch.setattr(cli.signal, "signal", install)
    return install


def _commands(up: Any) -> Any:
    return lambda aws, **kwargs: {"up": up}


def test_interrupt_before_progress_exits_nonzero_without_state(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    up = MagicMock()
    up.execute.side_effect = KeyboardInterrupt
    monkeypatch.setattr(cli, "build_commands", _commands(up))

    assert cli.main(["--state-dir", str(tmp_path), "up"]) == 1
    assert "interrupted" in capsys.readouterr().err
    assert not (tmp_path / STATE_FILE_NAME).exists()


def test_sigterm_is_mapped_to_keyboard_interrupt(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, no_signal_handlers: MagicMock
) -> None:
    up = MagicMock()
    up.execute.side_effect = lambda args, state: state
    monkeypatch.setattr(cli, "build_commands", _commands(up))

    cli.main(["--state-dir", str(tmp_path), "up"])

    no_signal_handlers.assert_called_once_with(cli.signal.SIGTERM, cli._interrupt)
    with pytest.raises(KeyboardInterrupt):
        cli._interrupt(cli.signal.SIGTERM, None)


def test_invalid_settings_exit_nonzero(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("BBL_STACK_TIMEOUT_SECONDS", "soon")

    assert cli.main(["version"]) == 1
    assert "BBL_STACK_TIMEOUT_SECONDS" in capsys.readouterr().err
