# Where: e2e/runner/infra.py
# What: Lifecycle of the EMQX broker container shared by every scenario.
# Why: No scenario may start before the broker reports healthy, and a leaked
#      broker would hold the fixed host ports needed by the next suite run.
from __future__ import annotations

import logging
import time

import docker
import docker.errors

from e2e.runner import constants
from e2e.runner.errors import DependencyError
from e2e.runner.models import DependencyInstance

logger = logging.getLogger(__name__)


class DependencyManager:
    """
    Pulls, creates, health-gates and removes the broker container.

    - start(): pull + create + start, then poll health until ``healthy``
    - stop(): stop + remove the recorded container
    """

    def __init__(
        self,
        *,
        name: str = constants.EMQX_CONTAINER_NAME,
        image: str = constants.EMQX_IMAGE,
        port_map: dict[str, str] | None = None,
        max_attempts: int = constants.HEALTH_MAX_ATTEMPTS,
        interval: float = constants.HEALTH_INTERVAL,
        client=None,
    ):
        self.instance = DependencyInstance(
            name=name,
            image=image,
            port_map=dict(port_map or constants.EMQX_PORT_MAP),
        )
        self.max_attempts = max_attempts
        self.interval = interval
        self._client = client

    @property
    def client(self):
        if self._client is None:
            try:
                self._client = docker.from_env()
            except docker.errors.DockerException as e:
                raise DependencyError(f"Docker daemon is not reachable: {e}") from e
        return self._client

    def start(self) -> DependencyInstance:
        inst = self.instance
        try:
            logger.info(f"Pulling dependency image {inst.image}...")
            self.client.images.pull(inst.image)
            self._remove_leftover(inst.name)

            logger.info(f"Creating dependency container {inst.name}...")
            container = self.client.containers.create(
                inst.image,
                name=inst.name,
                ports={
                    port: (constants.HOST_BIND_IP, int(host_port))
                    for port, host_port in inst.port_map.items()
                },
                healthcheck={"test": list(constants.EMQX_HEALTHCHECK)},
                labels={constants.MANAGED_LABEL: "true"},
            )
            inst.id = container.id
            container.start()
        except docker.errors.DockerException as e:
            raise DependencyError(f"Failed to start dependency {inst.name}: {e}") from e

        self._wait_for_healthy(container)
        return inst

    def _wait_for_healthy(self, container) -> None:
        inst = self.instance
        for attempt in range(1, self.max_attempts + 1):
            try:
                container.reload()
            except docker.errors.DockerException as e:
                raise DependencyError(f"Failed to inspect dependency {inst.name}: {e}") from e
            inst.health = _health_status(container.attrs)
            if inst.health == constants.HEALTH_HEALTHY:
                logger.info(f"Dependency {inst.name} is healthy after {attempt} checks")
                return
            logger.debug(
                f"Dependency {inst.name} health={inst.health} ({attempt}/{self.max_attempts})"
            )
            if attempt < self.max_attempts:
                time.sleep(self.interval)

        raise DependencyError(
            f"Dependency {inst.name} is not healthy after {self.max_attempts} checks "
            f"(last status: {inst.health})"
        )

    def _remove_leftover(self, name: str) -> None:
        try:
            leftover = self.client.containers.get(name)
        except docker.errors.NotFound:
            return
        logger.warning(f"Removing leftover dependency container {name} from a previous run")
        leftover.remove(force=True)

    def stop(self) -> None:
        inst = self.instance
        if inst.id is None:
            return
        try:
            container = self.client.containers.get(inst.id)
            logger.info(f"Stopping dependency container {inst.name}...")
            container.stop()
            container.remove()
        except docker.errors.DockerException as e:
            raise DependencyError(f"Failed to stop/remove dependency {inst.name}: {e}") from e
        inst.id = None
        inst.health = constants.HEALTH_UNKNOWN

    def exists(self) -> bool:
        try:
            self.client.containers.get(self.instance.id or self.instance.name)
        except docker.errors.NotFound:
            return False
        except docker.errors.DockerException as e:
            raise DependencyError(f"Failed to look up dependency {self.instance.name}: {e}") from e
        return True


def _health_status(attrs: dict) -> str:
    health = (attrs.get("State") or {}).get("Health") or {}
    status = health.get("Status")
    if status in (
        constants.HEALTH_STARTING,
        constants.HEALTH_HEALTHY,
        constants.HEALTH_UNHEALTHY,
    ):
        return status
    return constants.HEALTH_UNKNOWN
