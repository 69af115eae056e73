"""
bbl.application — The dispatcher.

Parses the global flags, loads the state, applies credential overrides,
runs the selected command and persists whatever state it hands back.

Global parsing stops at the first positional argument (the command name);
everything after it belongs to the command.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any, TextIO

from bbl.commands.base import CommandParser
from bbl.commands.help import USAGE
from bbl.config import ENV_ACCESS_KEY_ID, ENV_REGION, ENV_SECRET_ACCESS_KEY
from bbl.errors import FlagError, PartialStateError, StateError
from bbl.storage import AWS, State, Store

logger = logging.getLogger(__name__)

CommandFactory = Callable[[AWS], Mapping[str, Any]]


def parse_global_args(argv: list[str]) -> argparse.Namespace:
    parser = CommandParser("bbl")
    parser.add_argument("--help", "-h", action="store_true")
    parser.add_argument("--version", "-v", action="store_true")
    parser.add_argument("--state-dir", default="")
    parser.add_argument("--aws-access-key-id", default="")
    parser.add_argument("--aws-secret-access-key", default="")
    parser.add_argument("--aws-region", default="")
    parser.add_argument("command", nargs="?", default="")
    parser.add_argument("command_args", nargs=argparse.REMAINDER)
    return parser.parse_args(argv)


def apply_credential_overrides(
    state: State, options: argparse.Namespace, environ: Mapping[str, str]
) -> State:
    """Flags win over environment variables; either wins over stored credentials."""
    overrides = {
        "access_key_id": options.aws_access_key_id or environ.get(ENV_ACCESS_KEY_ID, ""),
        "secret_access_key": options.aws_secret_access_key
        or environ.get(ENV_SECRET_ACCESS_KEY, ""),
        "region": options.aws_region or environ.get(ENV_REGION, ""),
    }
    supplied = {field: value for field, value in overrides.items() if value}
    if not supplied:
        return state
    return replace(state, aws=replace(state.aws, **supplied))


class App:
    def __init__(
        self,
        command_factory: CommandFactory,
        *,
        stderr: TextIO | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._command_factory = command_factory
        self._stderr = stderr or sys.stderr
        self._environ = os.environ if environ is None else environ

    def _fail(self, message: str) -> int:
        print(message, file=self._stderr)
        return 1

    def run(self, argv: list[str]) -> int:
        try:
            options = parse_global_args(argv)
        except FlagError as exc:
            return self._fail(str(exc))

        if options.version:
            name = "version"
        elif options.help or not options.command:
            name = "help"
        else:
            name = options.command

        store = Store(options.state_dir or os.getcwd())
        try:
            loaded = store.load()
        except StateError as exc:
            return self._fail(str(exc))
        state = apply_credential_overrides(loaded, options, self._environ)

        commands = self._command_factory(state.aws)
        command = commands.get(name)
        if command is None:
            return self._fail(f"unrecognized command '{name}'\n\n{USAGE}")

        logger.debug("Running command %s with state dir %s", name, store.path.parent)
        try:
            result = command.execute(list(options.command_args), state)
        except PartialStateError as exc:
            logger.debug("Command %s failed after partial progress", name, exc_info=True)
            self._persist(store, loaded, exc.state)
            return self._fail(str(exc))
        except Exception as exc:
            logger.debug("Command %s failed", name, exc_info=True)
            self._persist(store, loaded, state)
            return self._fail(str(exc))

        self._persist(store, loaded, result)
        return 0

    def _persist(self, store: Store, loaded: State, state: State) -> None:
        if state != loaded:
            store.save(state)
