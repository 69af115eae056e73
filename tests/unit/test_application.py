"""Unit tests for bbl.application (the dispatcher)."""

from __future__ import annotations

import io
import json
from dataclasses import replace
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from bbl.application import App, apply_credential_overrides, parse_global_args
from bbl.commands.help import USAGE, Help
from bbl.commands.version import Version
from bbl.errors import BBLError, CommandInterruptedError, PartialStateError
from bbl.storage import AWS, KeyPair, Stack, State, Store
from bbl.ui import Logger

STORED = State(
    version=3,
    aws=AWS(access_key_id="stored-id", secret_access_key="stored-secret", region="us-west-2"),
    stack=Stack(name="bbl-aws-1"),
)


class RecordingCommand:
    """Stands in for a command: records what it was given and returns a fixed result."""

    def __init__(self, result: State | None = None, error: BaseException | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[list[str], State]] = []

    def execute(self, args: list[str], state: State) -> State:
        self.calls.append((args, state))
        if self.error is not None:
            raise self.error
        return state if self.result is None else self.result


class Harness:
    def __init__(self, tmp_path: Path, environ: dict[str, str] | None = None) -> None:
        self.state_dir = tmp_path
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()
        self.commands: dict[str, Any] = {}
        self.factory_calls: list[AWS] = []
        ui = Logger(stdout=self.stdout, stdin=io.StringIO())
        self.commands["version"] = Version(ui)
        self.commands["help"] = Help(ui)
        self.app = App(self._factory, stderr=self.stderr, environ=environ or {})

    def _factory(self, aws: AWS) -> dict[str, Any]:
        self.factory_calls.append(aws)
        return self.commands

    @property
    def store(self) -> Store:
        return Store(self.state_dir)

    def run(self, *argv: str) -> int:
        return self.app.run(["--state-dir", str(self.state_dir), *argv])


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path)


def test_parse_global_args_stops_at_command() -> None:
    options = parse_global_args(["--aws-region", "eu-west-1", "create-lbs", "--type", "cf"])

    assert options.aws_region == "eu-west-1"
    assert options.command == "create-lbs"
    assert options.command_args == ["--type", "cf"]


def test_no_command_prints_usage(harness: Harness) -> None:
    assert harness.run() == 0
    assert harness.stdout.getvalue() == USAGE + "\n"
    assert not harness.store.path.exists()


@pytest.mark.parametrize("flag", ["--help", "-h"])
def test_help_flag(harness: Harness, flag: str) -> None:
    harness.commands["up"] = RecordingCommand()

    assert harness.run(flag, "up") == 0
    assert harness.stdout.getvalue() == USAGE + "\n"
    assert harness.commands["up"].calls == []


@pytest.mark.parametrize("flag", ["--version", "-v"])
def test_version_flag_leaves_state_untouched(harness: Harness, flag: str) -> None:
    harness.store.save(STORED)
    before = harness.store.path.read_bytes()

    assert harness.run(flag) == 0
    assert harness.stdout.getvalue() == "bbl 0.0.1\n"
    assert harness.store.path.read_bytes() == before


def test_unknown_command(harness: Harness) -> None:
    assert harness.run("frobnicate") == 1
    assert harness.stderr.getvalue() == f"unrecognized command 'frobnicate'\n\n{USAGE}\n"


def test_unknown_global_flag(harness: Harness) -> None:
    assert harness.run("--bogus", "up") == 1
    assert "unrecognized arguments" in harness.stderr.getvalue()


def test_command_receives_its_arguments(harness: Harness) -> None:
    harness.store.save(STORED)
    command = harness.commands["create-lbs"] = RecordingCommand()

    assert harness.run("create-lbs", "--type", "concourse") == 0
    args, state = command.calls[0]
    assert args == ["--type", "concourse"]
    assert state == STORED


def test_result_is_persisted(harness: Harness) -> None:
    harness.store.save(STORED)
    result = replace(STORED, key_pair=KeyPair(name="keypair-1", public_key="p", private_key="k"))
    harness.commands["up"] = RecordingCommand(result=result)

    assert harness.run("up") == 0
    assert harness.store.load() == result


def test_unchanged_result_is_not_rewritten(harness: Harness) -> None:
    harness.store.save(STORED)
    inode = harness.store.path.stat().st_ino
    harness.commands["lbs"] = RecordingCommand()

    assert harness.run("lbs") == 0
    assert harness.store.path.stat().st_ino == inode


def test_empty_result_removes_state_file(harness: Harness) -> None:
    harness.store.save(STORED)
    harness.commands["destroy"] = RecordingCommand(result=State())

    assert harness.run("destroy", "--no-confirm") == 0
    assert not harness.store.path.exists()


def test_failure_prints_message_and_exits_nonzero(harness: Harness) -> None:
    harness.store.save(STORED)
    harness.commands["lbs"] = RecordingCommand(error=BBLError("no lbs found"))

    assert harness.run("lbs") == 1
    assert harness.stderr.getvalue() == "no lbs found\n"
    assert harness.store.load() == STORED


def test_partial_state_is_persisted(harness: Harness) -> None:
    harness.store.save(STORED)
    partial = replace(STORED, key_pair=KeyPair(name="keypair-1", public_key="p", private_key="k"))
    harness.commands["up"] = RecordingCommand(
        error=PartialStateError(RuntimeError("stack rolled back"), partial)
    )

    assert harness.run("up") == 1
    assert harness.stderr.getvalue() == "stack rolled back\n"
    assert harness.store.load() == partial


def test_credential_flags_override_state(harness: Harness) -> None:
    harness.store.save(STORED)
    command = harness.commands["up"] = RecordingCommand()

    exit_code = harness.run(
        "--aws-access-key-id", "flag-id", "--aws-region", "eu-central-1", "up"
    )

    assert exit_code == 0
    _, state = command.calls[0]
    assert state.aws == AWS(
        access_key_id="flag-id", secret_access_key="stored-secret", region="eu-central-1"
    )
    assert harness.factory_calls == [state.aws]
    assert json.loads(harness.store.path.read_text())["aws"]["accessKeyId"] == "flag-id"


def test_overrides_persist_when_command_fails(tmp_path: Path) -> None:
    harness = Harness(tmp_path, environ={"BBL_AWS_REGION": "ap-south-1"})
    harness.commands["up"] = RecordingCommand(error=BBLError("boom"))

    assert harness.run("up") == 1
    assert harness.store.load().aws.region == "ap-south-1"


def test_flags_win_over_environment() -> None:
    options = parse_global_args(["--aws-secret-access-key", "flag-secret", "up"])
    environ = {
        "BBL_AWS_ACCESS_KEY_ID": "env-id",
        "BBL_AWS_SECRET_ACCESS_KEY": "env-secret",  # pragma: allowlist secret
    }

    state = apply_credential_overrides(STORED, options, environ)

    assert state.aws == AWS(
        access_key_id="env-id", secret_access_key="flag-secret", region="us-west-2"
    )


def test_no_overrides_keeps_state() -> None:
    options = parse_global_args(["up"])

    assert apply_credential_overrides(STORED, options, {}) is STORED


def test_unreadable_state_file(harness: Harness) -> None:
    harness.store.path.write_text("{not json", encoding="utf-8")
    harness.commands["up"] = MagicMock()

    assert harness.run("up") == 1
    assert "failed to parse state file" in harness.stderr.getvalue()
    harness.commands["up"].execute.assert_not_called()


def test_interrupt_after_progress_is_persisted(harness: Harness) -> None:
    progress = State(
        aws=AWS(access_key_id="a", secret_access_key="s", region="us-east-1"),
        key_pair=KeyPair(name="keypair-1", public_key="p", private_key="k"),
        stack=Stack(name="bbl-aws-x"),
    )
    harness.commands["up"] = RecordingCommand(
        error=CommandInterruptedError(KeyboardInterrupt(), progress)
    )

    assert harness.run("up") == 1
    assert harness.stderr.getvalue() == "interrupted\n"
    saved = harness.store.load()
    assert saved.stack.name == "bbl-aws-x"
    assert saved.key_pair.name == "keypair-1"


def test_interrupt_before_progress_saves_nothing(harness: Harness) -> None:
    harness.commands["up"] = RecordingCommand(error=KeyboardInterrupt())

    with pytest.raises(KeyboardInterrupt):
        harness.run("up")

    assert not harness.store.path.exists()
