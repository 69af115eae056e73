"""
bbl.bosh.client — Minimal BOSH director HTTP API client.

The director bbl deploys serves a certificate signed by a CA bbl generated
itself, so TLS verification is off and urllib3's warning about it is
silenced per request.
"""

from __future__ import annotations

import logging
import time
import warnings
from collections.abc import Callable
from typing import Any

import requests
from urllib3.exceptions import InsecureRequestWarning

from bbl.errors import BoshClientError

logger = logging.getLogger(__name__)

TASK_POLL_INTERVAL_SECONDS = 2.0
TASK_DONE = "done"
TASK_FAILED_STATES = frozenset({"error", "cancelled", "timeout"})


class BoshClient:
    def __init__(
        self,
        address: str,
        username: str,
        password: str,
        *,
        timeout_seconds: float,
        task_timeout_seconds: float,
        session: Any = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.address = address.rstrip("/")
        self._timeout = timeout_seconds
        self._task_timeout = task_timeout_seconds
        self._session = session or requests.Session()
        self._session.auth = (username, password)
        self._sleep = sleep
        self._clock = clock

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.address}{path}"
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", InsecureRequestWarning)
                response = self._session.request(
                    method, url, timeout=self._timeout, verify=False, **kwargs
                )
        except requests.exceptions.RequestException as exc:
            raise BoshClientError(f"failed to reach bosh director at {url}: {exc}") from exc

        if response.status_code >= 400:
            raise BoshClientError(
                f"bosh director responded {response.status_code} to {method} {path}: "
                f"{response.text.strip()}",
                status_code=response.status_code,
            )
        return response

    def _get_json(self, path: str) -> Any:
        response = self._request("GET", path)
        try:
            return response.json()
        except requests.exceptions.JSONDecodeError as exc:
            raise BoshClientError(
                f"bosh director sent an unreadable response to GET {path}: {exc}"
            ) from exc

    def info(self) -> dict[str, Any]:
        return self._get_json("/info")

    def update_cloud_config(self, cloud_config: str) -> None:
        self._request(
            "POST",
            "/cloud_configs",
            data=cloud_config.encode("utf-8"),
            headers={"Content-Type": "text/yaml"},
        )

    def deployments(self) -> list[str]:
        return [item["name"] for item in self._get_json("/deployments")]

    def delete_deployment(self, name: str) -> None:
        response = self._request(
            "DELETE",
            f"/deployments/{name}",
            params={"force": "true"},
            allow_redirects=False,
        )
        location = response.headers.get("Location", "")
        if "/tasks/" not in location:
            raise BoshClientError(f"bosh director did not start a task to delete {name}")
        self.wait_for_task(location.rsplit("/tasks/", 1)[1])

    def wait_for_task(self, task_id: str) -> None:
        deadline = self._clock() + self._task_timeout
        while True:
            task = self._get_json(f"/tasks/{task_id}")
            state = task.get("state", "")
            logger.debug("BOSH task %s is %s", task_id, state)
            if state == TASK_DONE:
                return
            if state in TASK_FAILED_STATES:
                raise BoshClientError(
                    f"bosh task {task_id} finished in state {state}: {task.get('result', '')}"
                )
            if self._clock() >= deadline:
                raise BoshClientError(f"timed out waiting for bosh task {task_id}")
            self._sleep(TASK_POLL_INTERVAL_SECONDS)


class BoshClientProvider:
    def __init__(self, *, timeout_seconds: float, task_timeout_seconds: float) -> None:
        self._timeout = timeout_seconds
        self._task_timeout = task_timeout_seconds

    def client(self, address: str, username: str, password: str) -> BoshClient:
        return BoshClient(
            address,
            username,
            password,
            timeout_seconds=self._timeout,
            task_timeout_seconds=self._task_timeout,
        )
