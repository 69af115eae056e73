"""
bbl.aws.cloudformation.infrastructure — The stack operations commands rely on.
"""

from __future__ import annotations

from bbl.aws.cloudformation.stacks import Stack, StackManager, StackNotFoundError
from bbl.aws.cloudformation.templates import TemplateBuilder
from bbl.errors import CloudFormationError
from bbl.storage import LBType


class InfrastructureManager:
    """Builds the template and drives the stack to a settled state."""

    def __init__(self, template_builder: TemplateBuilder, stack_manager: StackManager) -> None:
        self._templates = template_builder
        self._stacks = stack_manager

    def exists(self, stack_name: str) -> bool:
        if not stack_name:
            return False
        try:
            self._stacks.describe(stack_name)
        except StackNotFoundError:
            return False
        return True

    def describe(self, stack_name: str) -> Stack:
        return self._stacks.describe(stack_name)

    def create(
        self,
        *,
        key_pair_name: str,
        az_count: int,
        stack_name: str,
        lb_type: str = LBType.UNSET,
        lb_certificate_arn: str = "",
    ) -> Stack:
        """Create the stack, or converge an existing one to the current template."""
        template = self._templates.build(
            key_pair_name=key_pair_name,
            az_count=az_count,
            lb_type=lb_type,
            lb_certificate_arn=lb_certificate_arn,
        )
        self._stacks.create_or_update(stack_name, template)
        return self._settle(stack_name)

    def update(
        self,
        *,
        key_pair_name: str,
        az_count: int,
        lb_type: str,
        lb_certificate_arn: str,
        stack_name: str,
    ) -> Stack:
        template = self._templates.build(
            key_pair_name=key_pair_name,
            az_count=az_count,
            lb_type=lb_type,
            lb_certificate_arn=lb_certificate_arn,
        )
        self._stacks.update(stack_name, template)
        return self._settle(stack_name)

    def delete(self, stack_name: str) -> None:
        self._stacks.delete(stack_name)

    def _settle(self, stack_name: str) -> Stack:
        stack = self._stacks.wait_for_completion(stack_name)
        if stack is None:
            raise CloudFormationError(f"stack {stack_name} disappeared while converging")
        return stack
