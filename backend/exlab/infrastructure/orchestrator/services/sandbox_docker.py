"""
Docker Sandbox - Containerized exercise instances

Features:
- Memory and CPU limits from the exercise catalog
- Resolver pinned to the lab DNS server
- Containers are created stopped; the controller starts them
- Labels tie every container to its exercise and lab for cleanup
"""

import json
import os
from typing import Any, Dict, List, Optional
from uuid import uuid4

import aiodocker
import structlog
from aiodocker.containers import DockerContainer
from aiodocker.exceptions import DockerError

from exlab.core.errors import LifecycleError, ProvisioningError
from exlab.domain.exercises.entities import ContainerConfig

from ..models import ContainerHost, Instance, InstanceInfo, InstanceKind, InstanceState

logger = structlog.get_logger(__name__)


class ContainerInstance(Instance):
    """Instance backed by a Docker container."""

    STOP_TIMEOUT = 10  # seconds before the engine kills the container

    def __init__(self, container: DockerContainer, name: str, image: str):
        self._container = container
        self.name = name
        self.image = image
        self._state = InstanceState.CREATED

    @property
    def id(self) -> str:
        return self._container.id

    async def start(self) -> None:
        try:
            await self._container.start()
        except DockerError as e:
            raise LifecycleError(f"Failed to start container {self.name}: {e.message}") from e
        self._state = InstanceState.RUNNING

    async def stop(self) -> None:
        try:
            await self._container.stop(t=self.STOP_TIMEOUT)
        except DockerError as e:
            raise LifecycleError(f"Failed to stop container {self.name}: {e.message}") from e
        self._state = InstanceState.STOPPED

    async def close(self) -> None:
        try:
            await self._container.delete(force=True, v=True)
        except DockerError as e:
            # Container already gone
            if e.status != 404:
                raise LifecycleError(
                    f"Failed to remove container {self.name}: {e.message}"
                ) from e
        self._state = InstanceState.CLOSED
        logger.debug("Docker container removed", container=self.name)

    def info(self) -> InstanceInfo:
        return InstanceInfo(
            kind=InstanceKind.CONTAINER,
            name=self.name,
            image=self.image,
            state=self._state,
        )


class DockerHost(ContainerHost):
    """
    Creates exercise containers through the Docker engine API.
    """

    NAME_PREFIX = "exlab"

    def __init__(self, docker: Optional[aiodocker.Docker] = None, docker_url: Optional[str] = None):
        self.docker_url = docker_url or os.getenv("DOCKER_HOST", "unix:///var/run/docker.sock")
        self._docker = docker

    def _get_docker(self) -> aiodocker.Docker:
        """Get or create Docker client."""
        if self._docker is None:
            self._docker = aiodocker.Docker(url=self.docker_url)
        return self._docker

    async def create(self, config: ContainerConfig) -> ContainerInstance:
        """
        Create (but do not start) a container.

        Raises:
            ProvisioningError: The engine rejected the container
        """
        docker = self._get_docker()
        name = f"{self.NAME_PREFIX}-{uuid4().hex[:12]}"

        logger.info("Creating Docker container", name=name, image=config.image)

        try:
            container = await docker.containers.create(
                config=self._build_config(config),
                name=name,
            )
        except DockerError as e:
            logger.error(
                "Docker error creating container",
                image=config.image,
                error=e.message,
            )
            raise ProvisioningError(
                f"Failed to create container from {config.image}: {e.message}"
            ) from e

        return ContainerInstance(container, name=name, image=config.image)

    async def prune(self, labels: Dict[str, str]) -> List[str]:
        """
        Force-remove all containers (running or not) matching ``labels``.

        Raises:
            LifecycleError: Listing or removing a container failed
        """
        docker = self._get_docker()
        filters = {"label": [f"{k}={v}" for k, v in labels.items()]}

        try:
            containers = await docker.containers.list(all=True, filters=json.dumps(filters))
        except DockerError as e:
            raise LifecycleError(f"Failed to list containers {filters}: {e.message}") from e

        removed = []
        for container in containers:
            name = container["Names"][0].lstrip("/")
            try:
                await container.delete(force=True, v=True)
            except DockerError as e:
                if e.status != 404:
                    raise LifecycleError(f"Failed to remove container {name}: {e.message}") from e
            removed.append(name)

        if removed:
            logger.warning("Removed leftover containers", labels=labels, containers=removed)
        return removed

    async def close(self) -> None:
        if self._docker is not None:
            await self._docker.close()
            self._docker = None

    def _build_config(self, config: ContainerConfig) -> Dict[str, Any]:
        """Translate a ContainerConfig into an engine create request."""
        host_config: Dict[str, Any] = {
            "DNS": list(config.dns),
            "RestartPolicy": {"Name": "no"},
        }
        if config.memory_mb > 0:
            host_config["Memory"] = config.memory_mb * 1024 * 1024
        if config.cpu > 0:
            host_config["NanoCpus"] = int(config.cpu * 1_000_000_000)

        return {
            "Image": config.image,
            "Env": [f"{k}={v}" for k, v in config.env.items()],
            "Labels": dict(config.labels),
            "HostConfig": host_config,
        }
