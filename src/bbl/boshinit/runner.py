"""
bbl.boshinit.runner — Drive the bosh-init binary.

Each run gets a scratch directory holding the manifest (bosh.yml), the
director's SSH key (bosh.pem) and bosh-init's own state (bosh-state.json).
Output is streamed to the operator line by line and buffered so a failure
can be reported with everything bosh-init said.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Any

from bbl.errors import BoshInitError
from bbl.ui import Logger

logger = logging.getLogger(__name__)

MANIFEST_FILE = "bosh.yml"
PRIVATE_KEY_FILE = "bosh.pem"
STATE_FILE = "bosh-state.json"


class BoshInitRunner:
    def __init__(self, ui: Logger, *, executable: str = "bosh-init") -> None:
        self._ui = ui
        self._executable = executable

    def deploy(self, manifest: str, state: dict[str, Any], private_key: str) -> dict[str, Any]:
        """Converge the director VM and return bosh-init's resulting state."""
        self._ui.step("deploying bosh director")
        with tempfile.TemporaryDirectory(prefix="bbl-bosh-init-") as workdir:
            work = Path(workdir)
            self._write_inputs(work, manifest, state, private_key)
            self._run("deploy", work)
            return _read_state(work / STATE_FILE)

    def delete(self, manifest: str, state: dict[str, Any], private_key: str) -> None:
        self._ui.step("destroying bosh director")
        with tempfile.TemporaryDirectory(prefix="bbl-bosh-init-") as workdir:
            work = Path(workdir)
            self._write_inputs(work, manifest, state, private_key)
            self._run("delete", work)

    def _write_inputs(
        self, work: Path, manifest: str, state: dict[str, Any], private_key: str
    ) -> None:
        (work / MANIFEST_FILE).write_text(manifest, encoding="utf-8")
        key_path = work / PRIVATE_KEY_FILE
        key_path.write_text(private_key, encoding="utf-8")
        os.chmod(key_path, 0o600)
        if state:
            (work / STATE_FILE).write_text(json.dumps(state), encoding="utf-8")

    def _run(self, action: str, work: Path) -> None:
        cmd = [self._executable, action, MANIFEST_FILE]
        logger.info("Running %s in %s", " ".join(cmd), work)
        try:
            process = subprocess.Popen(
                cmd,
                cwd=work,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as exc:
            raise BoshInitError(f"failed to run {self._executable}: {exc}") from exc

        if process.stdout is None:
            process.kill()
            raise BoshInitError(f"failed to read output of {self._executable}")

        output: list[str] = []
        try:
            for line in process.stdout:
                line = line.rstrip("\n")
                output.append(line)
                self._ui.println(line)
            returncode = process.wait()
        except KeyboardInterrupt:
            process.terminate()
            process.wait()
            raise

        if returncode != 0:
            raise BoshInitError(
                f"bosh-init {action} failed with exit status {returncode}",
                output="\n".join(output),
            )


def _read_state(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    try:
        state = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise BoshInitError(f"bosh-init wrote an unreadable state file: {exc}") from exc
    if not isinstance(state, dict):
        raise BoshInitError("bosh-init wrote an unreadable state file: expected an object")
    return state
