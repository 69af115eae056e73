"""
bbl.aws.clients — boto3 client factory bound to the state's AWS credentials.
"""

from __future__ import annotations

from typing import Any

import boto3

from bbl.storage import AWS


class ClientProvider:
    """Hands out one cached boto3 client per service for a fixed credential set."""

    def __init__(self, aws: AWS, *, session: Any = None) -> None:
        self._aws = aws
        self._session = session
        self._clients: dict[str, Any] = {}

    @property
    def region(self) -> str:
        return self._aws.region

    def _boto_session(self) -> Any:
        if self._session is None:
            self._session = boto3.session.Session(
                aws_access_key_id=self._aws.access_key_id or None,
                aws_secret_access_key=self._aws.secret_access_key or None,
                region_name=self._aws.region or None,
            )
        return self._session

    def client(self, service: str) -> Any:
        if service not in self._clients:
            self._clients[service] = self._boto_session().client(service)
        return self._clients[service]

    def cloudformation(self) -> Any:
        return self.client("cloudformation")

    def ec2(self) -> Any:
        return self.client("ec2")

    def iam(self) -> Any:
        return self.client("iam")

    def sts(self) -> Any:
        return self.client("sts")


def error_code(exc: Any) -> str:
    """Return the AWS error code carried by a botocore ClientError."""
    return str(exc.response.get("Error", {}).get("Code", ""))


def error_message(exc: Any) -> str:
    return str(exc.response.get("Error", {}).get("Message", "")) or str(exc)
