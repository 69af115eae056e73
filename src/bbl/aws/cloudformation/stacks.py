"""
bbl.aws.cloudformation.stacks — Stack lifecycle against the CloudFormation API.

Stack operations are asynchronous on the AWS side; wait_for_completion polls
describe_stacks until the stack reaches a terminal status, so callers
observe each change before taking the next step.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from botocore.exceptions import ClientError

from bbl.aws.clients import ClientProvider, error_code, error_message
from bbl.errors import BBLError, CloudFormationError
from bbl.ui import Logger

logger = logging.getLogger(__name__)

_NO_UPDATES = "No updates are to be performed"
_CAPABILITIES = ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"]


class StackNotFoundError(BBLError):
    """Raised when the named stack does not exist."""


@dataclass(frozen=True)
class Stack:
    name: str
    status: str = ""
    outputs: dict[str, str] = field(default_factory=dict)


def _is_not_found(exc: ClientError) -> bool:
    return error_code(exc) == "ValidationError" and "does not exist" in error_message(exc)


def is_failure_status(status: str) -> bool:
    return status.endswith("_FAILED") or status.endswith("ROLLBACK_COMPLETE")


def is_terminal_status(status: str) -> bool:
    return not status.endswith("_IN_PROGRESS")


class StackManager:
    def __init__(
        self,
        client_provider: ClientProvider,
        ui: Logger,
        *,
        poll_interval_seconds: float,
        timeout_seconds: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clients = client_provider
        self._ui = ui
        self._poll_interval = poll_interval_seconds
        self._timeout = timeout_seconds
        self._sleep = sleep
        self._clock = clock

    def _cfn(self) -> Any:
        return self._clients.cloudformation()

    def describe(self, name: str) -> Stack:
        try:
            response = self._cfn().describe_stacks(StackName=name)
        except ClientError as exc:
            if _is_not_found(exc):
                raise StackNotFoundError(f"stack not found: {name}") from exc
            raise
        stacks = response.get("Stacks", [])
        if not stacks:
            raise StackNotFoundError(f"stack not found: {name}")
        raw = stacks[0]
        outputs = {
            str(output["OutputKey"]): str(output.get("OutputValue", ""))
            for output in raw.get("Outputs", [])
        }
        return Stack(name=name, status=str(raw.get("StackStatus", "")), outputs=outputs)

    def create_or_update(self, name: str, template: dict[str, Any]) -> None:
        try:
            self.describe(name)
        except StackNotFoundError:
            self._ui.step("creating cloudformation stack")
            self._cfn().create_stack(
                StackName=name,
                TemplateBody=json.dumps(template),
                Capabilities=_CAPABILITIES,
            )
            return
        self.update(name, template)

    def update(self, name: str, template: dict[str, Any]) -> None:
        """Submit a template change; an unchanged template is a no-op."""
        self._ui.step("updating cloudformation stack")
        try:
            self._cfn().update_stack(
                StackName=name,
                TemplateBody=json.dumps(template),
                Capabilities=_CAPABILITIES,
            )
        except ClientError as exc:
            if error_code(exc) == "ValidationError" and _NO_UPDATES in error_message(exc):
                logger.info("Stack %s is already up to date", name)
                return
            if _is_not_found(exc):
                raise StackNotFoundError(f"stack not found: {name}") from exc
            raise

    def wait_for_completion(self, name: str) -> Stack | None:
        """Block until the stack settles; None means it no longer exists."""
        deadline = self._clock() + self._timeout
        self._ui.step("checking status of cloudformation stack...")
        while True:
            try:
                stack = self.describe(name)
            except StackNotFoundError:
                return None
            if is_terminal_status(stack.status):
                break
            if self._clock() >= deadline:
                raise CloudFormationError(
                    f"timed out waiting for stack {name} (status={stack.status})"
                )
            self._ui.dot()
            self._sleep(self._poll_interval)

        if is_failure_status(stack.status):
            reason = self._failure_reason(name)
            message = f"CloudFormation failure: stack {name} reached {stack.status}"
            raise CloudFormationError(f"{message}: {reason}" if reason else message)
        if stack.status == "DELETE_COMPLETE":
            return None
        return stack

    def _failure_reason(self, name: str) -> str:
        try:
            events = self._cfn().describe_stack_events(StackName=name).get("StackEvents", [])
        except ClientError:
            logger.warning("Could not read stack events for %s", name, exc_info=True)
            return ""
        for event in events:
            if str(event.get("ResourceStatus", "")).endswith("_FAILED"):
                return str(event.get("ResourceStatusReason", ""))
        return ""

    def delete(self, name: str) -> None:
        """Delete the stack and wait; a missing stack counts as deleted."""
        try:
            self.describe(name)
        except StackNotFoundError:
            logger.info("Stack %s already deleted", name)
            return
        self._ui.step("deleting cloudformation stack")
        self._cfn().delete_stack(StackName=name)
        self.wait_for_completion(name)
