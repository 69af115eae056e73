"""Unit tests for the version, help and state query commands."""

from __future__ import annotations

import io

import pytest

from bbl import __version__
from bbl.commands.help import USAGE, Help
from bbl.commands.info import state_queries
from bbl.commands.version import Version
from bbl.errors import BBLError, FlagError
from bbl.storage import BOSH, KeyPair, State
from bbl.ui import Logger

STATE = State(
    version=3,
    key_pair=KeyPair(name="keypair-1", public_key="pub", private_key="PRIVATE KEY\n"),
    bosh=BOSH(
        director_address="https://52.0.0.1:25555",
        director_username="user-1",
        director_password="director-pw",
        director_ssl_ca="CA PEM\n",
    ),
)


def test_version(ui: Logger, stdout: io.StringIO) -> None:
    result = Version(ui).execute([], STATE)

    assert stdout.getvalue() == f"bbl {__version__}\n"
    assert stdout.getvalue() == "bbl 0.0.1\n"
    assert result is STATE


def test_help(ui: Logger, stdout: io.StringIO) -> None:
    result = Help(ui).execute([], State())

    assert stdout.getvalue() == USAGE + "\n"
    assert result == State()
    for command in ("up", "destroy", "create-lbs", "update-lbs", "delete-lbs", "lbs"):
        assert f"\n  {command} " in USAGE


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("director-address", "https://52.0.0.1:25555\n"),
        ("director-username", "user-1\n"),
        ("director-password", "director-pw\n"),
        ("director-ca-cert", "CA PEM\n"),
        ("ssh-key", "PRIVATE KEY\n"),
    ],
)
def test_state_queries(ui: Logger, stdout: io.StringIO, name: str, expected: str) -> None:
    result = state_queries(ui)[name].execute([], STATE)

    assert stdout.getvalue() == expected
    assert result is STATE


@pytest.mark.parametrize(
    ("name", "label"),
    [
        ("director-address", "director address"),
        ("director-username", "director username"),
        ("director-password", "director password"),
        ("director-ca-cert", "director ca cert"),
        ("ssh-key", "ssh key"),
    ],
)
def test_state_query_on_empty_state(ui: Logger, stdout: io.StringIO, name: str, label: str) -> None:
    with pytest.raises(BBLError) as excinfo:
        state_queries(ui)[name].execute([], State())

    assert str(excinfo.value) == (
        f"Could not retrieve {label}, please make sure you are targeting the proper state dir."
    )
    assert stdout.getvalue() == ""


def test_state_query_rejects_flags(ui: Logger) -> None:
    with pytest.raises(FlagError):
        state_queries(ui)["ssh-key"].execute(["--raw"], STATE)
