"""
bbl.aws.credentials — Fail-fast validation of the AWS credentials in state.
"""

from __future__ import annotations

import logging

from botocore.exceptions import BotoCoreError, ClientError

from bbl.aws.clients import ClientProvider, error_message
from bbl.errors import ValidationError
from bbl.storage import AWS

logger = logging.getLogger(__name__)


class CredentialValidator:
    def __init__(self, aws: AWS, client_provider: ClientProvider) -> None:
        self._aws = aws
        self._clients = client_provider

    def validate(self) -> None:
        """Raise ValidationError unless all three values are set and STS accepts them."""
        if not self._aws.access_key_id:
            raise ValidationError("--aws-access-key-id must be provided")
        if not self._aws.secret_access_key:
            raise ValidationError("--aws-secret-access-key must be provided")
        if not self._aws.region:
            raise ValidationError("--aws-region must be provided")

        try:
            identity = self._clients.sts().get_caller_identity()
        except ClientError as exc:
            raise ValidationError(
                f"failed to validate aws credentials: {error_message(exc)}"
            ) from exc
        except BotoCoreError as exc:
            raise ValidationError(f"failed to validate aws credentials: {exc}") from exc
        logger.debug("AWS credentials belong to %s", identity.get("Arn", "unknown"))
