"""
Docker Network - Private /24 network per lab

Features:
- Explicit IPAM subnet and bridge name per lab
- Octet 1 is the gateway, the DNS octet is reserved for the lab resolver
- Fixed-octet binding so recreated containers keep their address
- Addresses handed out are remembered until their container is gone,
  since the engine only reports endpoints of running containers
- Containers are detached from the default bridge (no internet)
"""

import ipaddress
import random
from typing import Any, Dict, Optional, Set

import aiodocker
import structlog
from aiodocker.exceptions import DockerError
from aiodocker.networks import DockerNetwork as EngineNetwork

from exlab.core.errors import NetworkBindError, ProvisioningError

from ..models import Instance, Network

logger = structlog.get_logger(__name__)

MIN_OCTET = 3
MAX_OCTET = 254


def random_subnet(rng: Optional[random.Random] = None) -> ipaddress.IPv4Network:
    """Pick a random /24 inside 172.16.0.0/12."""
    rng = rng or random.Random()
    return ipaddress.IPv4Network(f"172.{rng.randint(16, 31)}.{rng.randint(0, 255)}.0/24")


class DockerNetwork(Network):
    """
    Lab network backed by a Docker bridge network.
    """

    DEFAULT_BRIDGE = "bridge"

    def __init__(
        self,
        docker: aiodocker.Docker,
        network: EngineNetwork,
        name: str,
        subnet: ipaddress.IPv4Network,
        bridge: str,
        dns_octet: int = 2,
        rng: Optional[random.Random] = None,
    ):
        self._docker = docker
        self._network = network
        self.name = name
        self.subnet = subnet
        self.bridge = bridge
        self.dns_octet = dns_octet
        self._rng = rng or random.Random()
        self._allocated: Dict[str, int] = {}  # container id -> octet

    @classmethod
    async def create(
        cls,
        docker: aiodocker.Docker,
        name: str,
        subnet: Optional[ipaddress.IPv4Network] = None,
        dns_octet: int = 2,
        rng: Optional[random.Random] = None,
    ) -> "DockerNetwork":
        """
        Create the engine network.

        Raises:
            ProvisioningError: The engine refused the network (e.g. overlap)
        """
        subnet = subnet or random_subnet(rng)
        # Linux interface names are limited to 15 characters
        bridge = name[:15]

        config = {
            "Name": name,
            "Driver": "bridge",
            "CheckDuplicate": True,
            "IPAM": {
                "Driver": "default",
                "Config": [{"Subnet": str(subnet), "Gateway": str(subnet.network_address + 1)}],
            },
            "Options": {"com.docker.network.bridge.name": bridge},
            "Labels": {"exlab.network": name},
        }

        try:
            network = await docker.networks.create(config)
        except DockerError as e:
            raise ProvisioningError(f"Failed to create network {name}: {e.message}") from e

        logger.info("Docker network created", network=name, subnet=str(subnet), bridge=bridge)
        return cls(docker, network, name, subnet, bridge, dns_octet=dns_octet, rng=rng)

    def format_ip(self, octet: int) -> str:
        return str(self.subnet.network_address + octet)

    def interface(self) -> str:
        return self.bridge

    async def connect(self, instance: Instance, octet: Optional[int] = None) -> int:
        """
        Attach a container to the network.

        Raises:
            NetworkBindError: Requested octet is reserved, taken or out of
                range, the pool is exhausted, or the engine refused the bind
        """
        container_id = getattr(instance, "id", None)
        if not container_id:
            raise NetworkBindError("Only containers can be connected to a lab network")

        used = await self.used_octets()

        if octet is None:
            free = [o for o in range(MIN_OCTET, MAX_OCTET + 1) if o not in used]
            if not free:
                raise NetworkBindError(f"No free addresses left in {self.subnet}")
            octet = self._rng.choice(free)
        elif not MIN_OCTET <= octet <= MAX_OCTET:
            raise NetworkBindError(f"Octet {octet} is outside {MIN_OCTET}-{MAX_OCTET}")
        elif octet in used:
            raise NetworkBindError(f"Address {self.format_ip(octet)} is already in use")

        try:
            await self._network.connect(
                {
                    "Container": container_id,
                    "EndpointConfig": {
                        "IPAMConfig": {"IPv4Address": self.format_ip(octet)},
                    },
                }
            )
        except DockerError as e:
            raise NetworkBindError(
                f"Failed to bind {self.format_ip(octet)}: {e.message}"
            ) from e

        self._allocated[container_id] = octet
        await self._detach_default_bridge(container_id)

        logger.debug("Container connected", network=self.name, ip=self.format_ip(octet))
        return octet

    async def used_octets(self) -> Set[int]:
        """
        Octets held by active endpoints or by containers connected through
        this network that still exist, plus the reserved ones.
        """
        try:
            info: Dict[str, Any] = await self._network.show()
        except DockerError as e:
            raise NetworkBindError(f"Failed to inspect network {self.name}: {e.message}") from e

        endpoints = info.get("Containers") or {}
        await self._forget_removed(set(endpoints))

        used = {1, self.dns_octet, *self._allocated.values()}
        for endpoint in endpoints.values():
            address = endpoint.get("IPv4Address", "")
            if address:
                ip = ipaddress.IPv4Interface(address).ip
                if ip in self.subnet:
                    used.add(int(ip) - int(self.subnet.network_address))
        return used

    async def _forget_removed(self, active: Set[str]) -> None:
        """Release allocations whose container no longer exists."""
        for container_id in list(self._allocated):
            if container_id in active:
                continue
            try:
                await self._docker.containers.get(container_id)
            except DockerError as e:
                if e.status != 404:
                    raise NetworkBindError(
                        f"Failed to inspect container {container_id[:12]}: {e.message}"
                    ) from e
                del self._allocated[container_id]

    async def close(self) -> None:
        try:
            await self._network.delete()
        except DockerError as e:
            if e.status != 404:
                raise ProvisioningError(f"Failed to remove network {self.name}: {e.message}") from e
        logger.info("Docker network removed", network=self.name)

    async def _detach_default_bridge(self, container_id: str) -> None:
        try:
            bridge = await self._docker.networks.get(self.DEFAULT_BRIDGE)
            await bridge.disconnect({"Container": container_id, "Force": True})
        except DockerError as e:
            # Not attached to the default bridge
            if e.status not in (403, 404):
                raise NetworkBindError(
                    f"Failed to detach {container_id[:12]} from default bridge: {e.message}"
                ) from e
