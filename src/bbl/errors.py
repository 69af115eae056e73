"""
bbl.errors — Exception hierarchy shared by every bbl component.

Commands raise; the dispatcher turns any BBLError into a single-line
diagnostic and a nonzero exit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bbl.storage import State

BBL_NOT_FOUND = (
    "bbl environment was not found, please create the environment first by running: bbl up"
)
LB_NOT_FOUND = "no load balancer has been found for this bbl environment"


class BBLError(RuntimeError):
    """Base class for bbl failures."""


class ValidationError(BBLError):
    """Raised when operator input or credentials fail validation."""


class FlagError(ValidationError):
    """Raised when a command line flag cannot be parsed."""


class BBLNotFoundError(BBLError):
    """Raised when the stack or the BOSH director required by a command is missing."""

    def __init__(self, message: str = BBL_NOT_FOUND) -> None:
        super().__init__(message)


class LBNotFoundError(BBLError):
    """Raised when a load balancer command runs against an environment without one."""

    def __init__(self, message: str = LB_NOT_FOUND) -> None:
        super().__init__(message)


class StateError(BBLError):
    """Raised when the state file is unreadable or has an unsupported version."""


class CloudFormationError(BBLError):
    """Raised when a stack operation ends in a failure status."""


class BoshInitError(BBLError):
    """Raised when the bosh-init process exits nonzero."""

    def __init__(self, message: str, *, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class BoshClientError(BBLError):
    """Raised when the BOSH director API answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PartialStateError(BBLError):
    """
    Raised when a command fails after it already changed the environment.

    Carries the best-effort state so the dispatcher can persist progress
    (an uploaded certificate, a synced key pair) before exiting.
    """

    def __init__(self, cause: BaseException, state: State, message: str | None = None) -> None:
        super().__init__(str(cause) if message is None else message)
        self.cause = cause
        self.state = state


class CommandInterruptedError(PartialStateError):
    """Raised when Ctrl-C or SIGTERM stops a command after it changed the environment."""

    def __init__(self, cause: BaseException, state: State) -> None:
        super().__init__(cause, state, message="interrupted")
