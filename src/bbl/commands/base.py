"""
bbl.commands.base — Pieces shared by the subcommands.
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, NoReturn

from bbl.errors import BBLNotFoundError, BoshClientError, FlagError
from bbl.storage import State

logger = logging.getLogger(__name__)


class CommandParser(argparse.ArgumentParser):
    """ArgumentParser that raises FlagError instead of exiting the process."""

    def __init__(self, prog: str, **kwargs: Any) -> None:
        kwargs.setdefault("add_help", False)
        super().__init__(prog=prog, **kwargs)

    def error(self, message: str) -> NoReturn:
        raise FlagError(message)


def director_client(state: State, bosh_client_provider: Any) -> Any:
    bosh = state.bosh
    return bosh_client_provider.client(
        bosh.director_address, bosh.director_username, bosh.director_password
    )


def ensure_environment(state: State, infrastructure_manager: Any, bosh_client_provider: Any) -> Any:
    """
    Check that the stack exists and the director answers, in that order.

    Returns the director client so callers can reuse it. Either failure is
    reported as BBLNotFoundError.
    """
    if not infrastructure_manager.exists(state.stack.name):
        raise BBLNotFoundError()

    client = director_client(state, bosh_client_provider)
    try:
        client.info()
    except BoshClientError as exc:
        logger.info("BOSH director info probe failed: %s", exc)
        raise BBLNotFoundError() from exc
    return client


def discard_certificate(certificate_manager: Any, name: str) -> None:
    """Best-effort removal of a certificate the command uploaded but never attached."""
    try:
        certificate_manager.delete(name)
    except Exception as exc:
        logger.warning("Failed to remove unused certificate %s: %s", name, exc)
