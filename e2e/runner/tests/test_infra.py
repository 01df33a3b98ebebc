# Where: e2e/runner/tests/test_infra.py
# What: Unit tests for the broker container lifecycle.
# Why: Health gating and teardown failures must be fatal, never silent.
from __future__ import annotations

from unittest.mock import MagicMock

import docker.errors
import pytest

from e2e.runner import infra
from e2e.runner.errors import DependencyError


class _FakeContainer:
    def __init__(self, statuses: list[str | None]) -> None:
        self.id = "c0ffee"
        self._statuses = list(statuses)
        self.attrs: dict = {}
        self.reloads = 0
        self.calls: list[str] = []

    def reload(self) -> None:
        self.reloads += 1
        status = self._statuses.pop(0) if len(self._statuses) > 1 else self._statuses[0]
        self.attrs = {"State": {"Health": {"Status": status}} if status else {}}

    def start(self) -> None:
        self.calls.append("start")

    def stop(self) -> None:
        self.calls.append("stop")

    def remove(self, force: bool = False) -> None:
        self.calls.append("remove")


def _client(container: _FakeContainer, *, leftover=None) -> MagicMock:
    client = MagicMock()
    client.containers.create.return_value = container

    def _get(name_or_id):
        if name_or_id == container.id and "remove" not in container.calls:
            return container
        if leftover is not None and name_or_id == infra.constants.EMQX_CONTAINER_NAME:
            return leftover
        raise docker.errors.NotFound("missing")

    client.containers.get.side_effect = _get
    return client


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch):
    sleeps: list[float] = []
    monkeypatch.setattr(infra.time, "sleep", lambda sec: sleeps.append(sec))
    return sleeps


def test_start_waits_until_healthy(_no_sleep):
    container = _FakeContainer(["starting", "starting", "healthy"])
    client = _client(container)
    manager = infra.DependencyManager(client=client, max_attempts=60, interval=1.0)

    instance = manager.start()

    assert instance.healthy
    assert instance.id == "c0ffee"
    assert container.reloads == 3
    assert _no_sleep == [1.0, 1.0]
    client.images.pull.assert_called_once_with(infra.constants.EMQX_IMAGE)


def test_start_configures_ports_healthcheck_and_labels():
    container = _FakeContainer(["healthy"])
    client = _client(container)

    infra.DependencyManager(client=client).start()

    _args, kwargs = client.containers.create.call_args
    assert kwargs["name"] == "emqx-for-emqx-exporter-test"
    assert kwargs["ports"]["1883/tcp"] == ("127.0.0.1", 1883)
    assert kwargs["ports"]["8084/tcp"] == ("127.0.0.1", 38084)
    assert len(kwargs["ports"]) == 6
    assert kwargs["healthcheck"] == {
        "test": ["CMD", "curl", "-f", "http://localhost:18083/status"]
    }
    assert kwargs["labels"] == {infra.constants.MANAGED_LABEL: "true"}
    assert container.calls == ["start"]


def test_start_fails_after_max_attempts(_no_sleep):
    container = _FakeContainer(["starting"])
    manager = infra.DependencyManager(client=_client(container), max_attempts=5, interval=1.0)

    with pytest.raises(DependencyError, match="not healthy after 5 checks"):
        manager.start()

    assert container.reloads == 5
    assert _no_sleep == [1.0, 1.0, 1.0, 1.0]
    assert manager.instance.health == "starting"
    assert not manager.instance.healthy


def test_start_maps_missing_health_to_unknown():
    container = _FakeContainer([None])
    manager = infra.DependencyManager(client=_client(container), max_attempts=2)

    with pytest.raises(DependencyError):
        manager.start()

    assert manager.instance.health == "unknown"


def test_start_removes_leftover_container():
    container = _FakeContainer(["healthy"])
    leftover = MagicMock()
    client = _client(container, leftover=leftover)

    infra.DependencyManager(client=client).start()

    leftover.remove.assert_called_once_with(force=True)


def test_start_wraps_docker_errors():
    client = MagicMock()
    client.images.pull.side_effect = docker.errors.APIError("pull denied")

    with pytest.raises(DependencyError, match="pull denied"):
        infra.DependencyManager(client=client).start()


def test_stop_stops_then_removes_and_forgets_instance():
    container = _FakeContainer(["healthy"])
    manager = infra.DependencyManager(client=_client(container))
    manager.start()

    manager.stop()

    assert container.calls == ["start", "stop", "remove"]
    assert manager.instance.id is None
    assert not manager.exists()


def test_stop_failure_is_fatal():
    container = _FakeContainer(["healthy"])
    manager = infra.DependencyManager(client=_client(container))
    manager.start()
    container.stop = MagicMock(side_effect=docker.errors.APIError("stuck"))

    with pytest.raises(DependencyError, match="stuck"):
        manager.stop()


def test_stop_without_start_is_noop():
    client = MagicMock()
    infra.DependencyManager(client=client).stop()
    client.containers.get.assert_not_called()


def test_unreachable_daemon_is_fatal(monkeypatch):
    def _boom():
        raise docker.errors.DockerException("no socket")

    monkeypatch.setattr(infra.docker, "from_env", _boom)

    with pytest.raises(DependencyError, match="not reachable"):
        infra.DependencyManager().start()


def test_exists_lookup_failure_is_fatal():
    client = MagicMock()
    client.containers.get.side_effect = docker.errors.APIError("daemon restarting")
    manager = infra.DependencyManager(client=client)

    with pytest.raises(DependencyError, match="daemon restarting"):
        manager.exists()
