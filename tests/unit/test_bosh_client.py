"""Unit tests for bbl.bosh.client."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from bbl.bosh.client import BoshClient, BoshClientProvider
from bbl.commands.base import ensure_environment
from bbl.errors import BBLNotFoundError, BoshClientError
from bbl.storage import BOSH, Stack, State


def _response(status: int = 200, payload: Any = None, headers: dict[str, str] | None = None) -> Any:
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    response.text = "" if payload is None else str(payload)
    response.headers = headers or {}
    return response


def _client(session: MagicMock, **kwargs: Any) -> BoshClient:
    return BoshClient(
        "https://10.0.0.6:25555/",
        "admin",
        "pw",
        timeout_seconds=5,
        task_timeout_seconds=10,
        session=session,
        **kwargs,
    )


def test_info_uses_basic_auth_timeout_and_no_verification() -> None:
    session = MagicMock()
    session.request.return_value = _response(payload={"name": "my-bosh"})

    info = _client(session).info()

    assert info == {"name": "my-bosh"}
    assert session.auth == ("admin", "pw")
    session.request.assert_called_once_with(
        "GET", "https://10.0.0.6:25555/info", timeout=5, verify=False
    )


def test_connection_error_becomes_bosh_client_error() -> None:
    session = MagicMock()
    session.request.side_effect = requests.exceptions.ConnectTimeout("slow")

    with pytest.raises(BoshClientError, match="failed to reach bosh director"):
        _client(session).info()


def test_http_error_carries_status_code() -> None:
    session = MagicMock()
    session.request.return_value = _response(status=401, payload="Not authorized")

    with pytest.raises(BoshClientError) as excinfo:
        _client(session).info()

    assert excinfo.value.status_code == 401


def test_update_cloud_config_posts_yaml() -> None:
    session = MagicMock()
    session.request.return_value = _response(status=201)

    _client(session).update_cloud_config("azs: []\n")

    session.request.assert_called_once_with(
        "POST",
        "https://10.0.0.6:25555/cloud_configs",
        timeout=5,
        verify=False,
        data=b"azs: []\n",
        headers={"Content-Type": "text/yaml"},
    )


def test_deployments_returns_names() -> None:
    session = MagicMock()
    session.request.return_value = _response(payload=[{"name": "cf"}, {"name": "concourse"}])

    assert _client(session).deployments() == ["cf", "concourse"]


def test_delete_deployment_waits_for_task() -> None:
    session = MagicMock()
    session.request.side_effect = [
        _response(status=302, headers={"Location": "https://10.0.0.6:25555/tasks/42"}),
        _response(payload={"id": 42, "state": "processing"}),
        _response(payload={"id": 42, "state": "done"}),
    ]
    sleep = MagicMock()

    _client(session, sleep=sleep).delete_deployment("cf")

    first = session.request.call_args_list[0]
    assert first.args == ("DELETE", "https://10.0.0.6:25555/deployments/cf")
    assert first.kwargs["params"] == {"force": "true"}
    assert first.kwargs["allow_redirects"] is False
    assert session.request.call_args_list[2].args == ("GET", "https://10.0.0.6:25555/tasks/42")
    sleep.assert_called_once()


def test_failed_task_raises() -> None:
    session = MagicMock()
    session.request.side_effect = [
        _response(status=302, headers={"Location": "/tasks/7"}),
        _response(payload={"id": 7, "state": "error", "result": "boom"}),
    ]

    with pytest.raises(BoshClientError, match="finished in state error: boom"):
        _client(session).delete_deployment("cf")


def test_task_wait_times_out() -> None:
    session = MagicMock()
    session.request.return_value = _response(payload={"id": 7, "state": "queued"})
    ticks = iter([0.0, 5.0, 11.0])

    with pytest.raises(BoshClientError, match="timed out"):
        _client(session, sleep=MagicMock(), clock=lambda: next(ticks)).wait_for_task("7")


def test_delete_without_task_location_raises() -> None:
    session = MagicMock()
    session.request.return_value = _response(status=204)

    with pytest.raises(BoshClientError, match="did not start a task"):
        _client(session).delete_deployment("cf")


def test_provider_passes_timeouts() -> None:
    client = BoshClientProvider(timeout_seconds=3, task_timeout_seconds=9).client(
        "https://1.2.3.4:25555", "u", "p"
    )

    assert client.address == "https://1.2.3.4:25555"
    assert client._timeout == 3
    assert client._task_timeout == 9


def _unreadable_response() -> Any:
    response = _response(payload=None)
    response.text = "<html>proxy error</html>"
    response.json.side_effect = requests.exceptions.JSONDecodeError("Expecting value", "x", 0)
    return response


@pytest.mark.parametrize(
    "call",
    [
        lambda client: client.info(),
        lambda client: client.deployments(),
        lambda client: client.wait_for_task("7"),
    ],
)
def test_unreadable_body_becomes_bosh_client_error(call: Any) -> None:
    session = MagicMock()
    session.request.return_value = _unreadable_response()

    with pytest.raises(BoshClientError, match="unreadable response"):
        call(_client(session))


def test_unreadable_info_means_environment_not_found() -> None:
    session = MagicMock()
    session.request.return_value = _unreadable_response()
    provider = MagicMock()
    provider.client.return_value = _client(session)
    infrastructure = MagicMock()
    infrastructure.exists.return_value = True
    state = State(
        stack=Stack(name="bbl-aws-1"),
        bosh=BOSH(director_address="https://10.0.0.6:25555"),
    )

    with pytest.raises(BBLNotFoundError):
        ensure_environment(state, infrastructure, provider)
