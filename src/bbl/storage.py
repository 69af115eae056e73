"""
bbl.storage — The versioned bbl state document and its on-disk store.

The state file (bbl-state.json) is the only durable record of what bbl has
built. Every command receives a State value and returns a new one; the
dispatcher hands the result to Store.save.

File format:
    JSON object, camelCase keys, indent=2, sorted keys, trailing newline.
    Unknown keys (top level and inside each section) survive a round-trip.
    An empty State is never written: saving it removes the file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field, replace
from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar

from bbl.errors import StateError

logger = logging.getLogger(__name__)

STATE_VERSION = 3
STATE_FILE_NAME = "bbl-state.json"


class LBType(StrEnum):
    UNSET = ""
    NONE = "none"
    CF = "cf"
    CONCOURSE = "concourse"


ATTACHABLE_LB_TYPES: tuple[LBType, ...] = (LBType.CF, LBType.CONCOURSE)


def lb_attached(lb_type: str) -> bool:
    """True when the stack carries a cf or concourse load balancer."""
    return lb_type in ATTACHABLE_LB_TYPES


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == {} or value == []


@dataclass(frozen=True)
class _Section:
    """Common JSON mapping for the state sections.

    Subclasses list their fields in _KEYS as attribute -> JSON key. Keys not
    listed there are kept in ``extra`` and written back unchanged.
    """

    _KEYS: ClassVar[dict[str, str]] = {}

    @classmethod
    def from_dict(cls, raw: Any) -> Any:
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise StateError(f"invalid state section for {cls.__name__}: expected an object")
        by_json_key = {json_key: attr for attr, json_key in cls._KEYS.items()}
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in raw.items():
            attr = by_json_key.get(key)
            if attr is None:
                extra[key] = value
            elif value is not None:
                values[attr] = value
        return cls(**values, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(getattr(self, "extra", {}))
        for attr, json_key in self._KEYS.items():
            value = getattr(self, attr)
            if not _is_blank(value):
                payload[json_key] = value
        return payload

    def is_empty(self) -> bool:
        return self == type(self)()


@dataclass(frozen=True)
class AWS(_Section):
    access_key_id: str = ""
    secret_access_key: str = ""
    region: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS: ClassVar[dict[str, str]] = {
        "access_key_id": "accessKeyId",
        "secret_access_key": "secretAccessKey",
        "region": "region",
    }


@dataclass(frozen=True)
class KeyPair(_Section):
    name: str = ""
    public_key: str = ""
    private_key: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS: ClassVar[dict[str, str]] = {
        "name": "name",
        "public_key": "publicKey",
        "private_key": "privateKey",
    }

    @property
    def has_material(self) -> bool:
        return bool(self.public_key and self.private_key)


@dataclass(frozen=True)
class Stack(_Section):
    name: str = ""
    lb_type: str = LBType.UNSET
    certificate_name: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS: ClassVar[dict[str, str]] = {
        "name": "name",
        "lb_type": "lbType",
        "certificate_name": "certificateName",
    }


@dataclass(frozen=True)
class BOSH(_Section):
    director_address: str = ""
    director_username: str = ""
    director_password: str = ""
    director_ssl_ca: str = ""
    director_ssl_certificate: str = ""
    director_ssl_private_key: str = ""
    credentials: dict[str, str] = field(default_factory=dict)
    manifest: str = ""
    state: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS: ClassVar[dict[str, str]] = {
        "director_address": "directorAddress",
        "director_username": "directorUsername",
        "director_password": "directorPassword",
        "director_ssl_ca": "directorSSLCA",
        "director_ssl_certificate": "directorSSLCertificate",
        "director_ssl_private_key": "directorSSLPrivateKey",
        "credentials": "credentials",
        "manifest": "manifest",
        "state": "state",
    }


_SECTIONS: dict[str, tuple[str, type[_Section]]] = {
    "aws": ("aws", AWS),
    "key_pair": ("keyPair", KeyPair),
    "stack": ("stack", Stack),
    "bosh": ("bosh", BOSH),
}


@dataclass(frozen=True)
class State:
    version: int = 0
    aws: AWS = field(default_factory=AWS)
    key_pair: KeyPair = field(default_factory=KeyPair)
    stack: Stack = field(default_factory=Stack)
    bosh: BOSH = field(default_factory=BOSH)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> State:
        known = {json_key for json_key, _ in _SECTIONS.values()} | {"version"}
        version = raw.get("version", 0)
        if not isinstance(version, int):
            raise StateError(f"invalid state version: {version!r}")
        sections = {
            attr: section_type.from_dict(raw.get(json_key))
            for attr, (json_key, section_type) in _SECTIONS.items()
        }
        extra = {key: value for key, value in raw.items() if key not in known}
        return cls(version=version, extra=extra, **sections)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extra)
        payload["version"] = self.version
        for attr, (json_key, _) in _SECTIONS.items():
            section = getattr(self, attr).to_dict()
            if section:
                payload[json_key] = section
        return payload

    def is_empty(self) -> bool:
        return replace(self, version=0) == State()


class Store:
    """Reads and atomically rewrites bbl-state.json inside a state directory."""

    def __init__(self, state_dir: str | Path) -> None:
        self._state_dir = Path(state_dir)

    @property
    def path(self) -> Path:
        return self._state_dir / STATE_FILE_NAME

    def load(self) -> State:
        """Return the stored state, or an empty State when no file exists."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return State()
        except OSError as exc:
            raise StateError(f"failed to read state file {self.path}: {exc}") from exc

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StateError(f"failed to parse state file {self.path}: {exc}") from exc
        if not isinstance(parsed, dict):
            raise StateError(f"invalid state file format: {self.path}")

        state = State.from_dict(parsed)
        if state.version > STATE_VERSION:
            raise StateError(
                f"state file {self.path} has unsupported version {state.version}, "
                f"this bbl understands versions up to {STATE_VERSION}"
            )
        return state

    def save(self, state: State) -> None:
        """Write state via a sibling temp file and rename; an empty state removes the file."""
        if state.is_empty():
            self.erase()
            return

        payload = state_file_contents(replace(state, version=STATE_VERSION))
        self._state_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._state_dir, prefix=f".{STATE_FILE_NAME}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote state file %s", self.path)

    def erase(self) -> None:
        """Remove the state file if it exists."""
        if self.path.exists():
            self.path.unlink()
            logger.debug("Removed state file %s", self.path)


def state_file_contents(state: State) -> str:
    return json.dumps(state.to_dict(), indent=2, sort_keys=True) + "\n"
