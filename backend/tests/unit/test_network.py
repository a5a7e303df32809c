"""
Unit tests for the Docker-backed lab network.

Tests:
- Network creation request (IPAM, bridge name, labels)
- Automatic and fixed octet binding
- Reserved, taken and out-of-range octets
- Engine errors mapped to NetworkBindError / ProvisioningError
"""

import ipaddress
import random
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiodocker.exceptions import DockerError

from exlab.core.errors import NetworkBindError, ProvisioningError
from exlab.infrastructure.orchestrator.services.network import (
    MAX_OCTET,
    MIN_OCTET,
    DockerNetwork,
    random_subnet,
)

SUBNET = ipaddress.IPv4Network("172.20.1.0/24")


def endpoints(*octets):
    return {
        "Containers": {
            f"cid{o}": {"IPv4Address": f"172.20.1.{o}/24"} for o in octets
        }
    }


@pytest.fixture
def engine_network():
    network = MagicMock()
    network.show = AsyncMock(return_value=endpoints(5))
    network.connect = AsyncMock()
    network.delete = AsyncMock()
    return network


@pytest.fixture
def default_bridge():
    bridge = MagicMock()
    bridge.disconnect = AsyncMock()
    return bridge


@pytest.fixture
def docker(engine_network, default_bridge):
    client = MagicMock()
    client.networks.create = AsyncMock(return_value=engine_network)
    client.networks.get = AsyncMock(return_value=default_bridge)
    client.containers.get = AsyncMock()
    return client


@pytest.fixture
def lab_network(docker, engine_network):
    return DockerNetwork(
        docker,
        engine_network,
        name="exlab-abc123",
        subnet=SUBNET,
        bridge="exlab-abc123",
        rng=random.Random(7),
    )


@pytest.fixture
def container():
    return SimpleNamespace(id="deadbeefcafe0000", name="exlab-web")


class TestCreateNetwork:
    """Test creating the engine network."""
    
    async def test_create_request(self, docker):
        network = await DockerNetwork.create(docker, "exlab-abc123", subnet=SUBNET)
        
        config = docker.networks.create.await_args.args[0]
        assert config["Name"] == "exlab-abc123"
        assert config["IPAM"]["Config"] == [{"Subnet": "172.20.1.0/24", "Gateway": "172.20.1.1"}]
        assert config["Options"] == {"com.docker.network.bridge.name": "exlab-abc123"}
        assert network.interface() == "exlab-abc123"
    
    async def test_bridge_name_truncated(self, docker):
        network = await DockerNetwork.create(docker, "exlab-0123456789abcdef", subnet=SUBNET)
        
        assert network.interface() == "exlab-012345678"
        assert len(network.interface()) == 15
    
    async def test_random_subnet_when_not_given(self, docker):
        network = await DockerNetwork.create(docker, "exlab-abc123", rng=random.Random(1))
        
        assert network.subnet.subnet_of(ipaddress.IPv4Network("172.16.0.0/12"))
        assert network.subnet.prefixlen == 24
    
    async def test_engine_refusal(self, docker):
        docker.networks.create.side_effect = DockerError(409, {"message": "pool overlaps"})
        
        with pytest.raises(ProvisioningError) as excinfo:
            await DockerNetwork.create(docker, "exlab-abc123", subnet=SUBNET)
        
        assert isinstance(excinfo.value.__cause__, DockerError)


class TestAddresses:
    """Test address formatting and reservation."""
    
    def test_format_ip(self, lab_network):
        assert lab_network.format_ip(2) == "172.20.1.2"
        assert lab_network.format_ip(254) == "172.20.1.254"
    
    async def test_used_octets_include_reserved(self, lab_network):
        assert await lab_network.used_octets() == {1, 2, 5}
    
    def test_random_subnet_range(self):
        for seed in range(20):
            subnet = random_subnet(random.Random(seed))
            assert 16 <= subnet.network_address.packed[1] <= 31


class TestConnect:
    """Test binding containers."""
    
    async def test_automatic_octet_avoids_used(self, lab_network, engine_network, container):
        octet = await lab_network.connect(container)
        
        assert MIN_OCTET <= octet <= MAX_OCTET
        assert octet not in (1, 2, 5)
        engine_network.connect.assert_awaited_once_with(
            {
                "Container": "deadbeefcafe0000",
                "EndpointConfig": {"IPAMConfig": {"IPv4Address": f"172.20.1.{octet}"}},
            }
        )
    
    async def test_fixed_octet(self, lab_network, engine_network, container):
        assert await lab_network.connect(container, 10) == 10
        
        request = engine_network.connect.await_args.args[0]
        assert request["EndpointConfig"]["IPAMConfig"]["IPv4Address"] == "172.20.1.10"
    
    @pytest.mark.parametrize("octet", [5, 2, 1, 0, 255, 300])
    async def test_unavailable_fixed_octet(self, lab_network, engine_network, container, octet):
        with pytest.raises(NetworkBindError):
            await lab_network.connect(container, octet)
        
        engine_network.connect.assert_not_awaited()
    
    async def test_pool_exhausted(self, lab_network, engine_network, container):
        engine_network.show.return_value = endpoints(*range(MIN_OCTET, MAX_OCTET + 1))
        
        with pytest.raises(NetworkBindError):
            await lab_network.connect(container)
    
    async def test_instance_without_container_id(self, lab_network):
        with pytest.raises(NetworkBindError):
            await lab_network.connect(SimpleNamespace(name="vm"))
    
    async def test_engine_refusal(self, lab_network, engine_network, container):
        engine_network.connect.side_effect = DockerError(500, {"message": "address in use"})
        
        with pytest.raises(NetworkBindError) as excinfo:
            await lab_network.connect(container, 10)
        
        assert isinstance(excinfo.value.__cause__, DockerError)
    
    async def test_detaches_default_bridge(self, lab_network, default_bridge, container):
        await lab_network.connect(container, 10)
        
        default_bridge.disconnect.assert_awaited_once_with(
            {"Container": "deadbeefcafe0000", "Force": True}
        )
    
    async def test_not_on_default_bridge(self, lab_network, default_bridge, container):
        default_bridge.disconnect.side_effect = DockerError(404, {"message": "not connected"})
        
        assert await lab_network.connect(container, 10) == 10


class TestAllocationTracking:
    """Test addresses of connected containers without an active endpoint."""
    
    @pytest.fixture
    def idle_network(self, engine_network):
        # created but not started containers have no active endpoint
        engine_network.show.return_value = {"Containers": {}}
        return engine_network
    
    async def test_unstarted_containers_get_distinct_octets(self, lab_network, idle_network):
        first = await lab_network.connect(SimpleNamespace(id="aaaa00000000", name="web"))
        second = await lab_network.connect(SimpleNamespace(id="bbbb00000000", name="db"))
        
        assert first != second
        assert {first, second} <= await lab_network.used_octets()
    
    async def test_fixed_octet_of_unstarted_container_is_taken(self, lab_network, idle_network):
        await lab_network.connect(SimpleNamespace(id="aaaa00000000", name="web"), 10)
        
        with pytest.raises(NetworkBindError):
            await lab_network.connect(SimpleNamespace(id="bbbb00000000", name="db"), 10)
    
    async def test_octet_released_once_container_removed(self, lab_network, idle_network, docker):
        await lab_network.connect(SimpleNamespace(id="aaaa00000000", name="web"), 10)
        docker.containers.get.side_effect = DockerError(404, {"message": "no such container"})
        
        assert await lab_network.connect(SimpleNamespace(id="cccc00000000", name="web"), 10) == 10
    
    async def test_inspect_failure(self, lab_network, idle_network, docker, container):
        await lab_network.connect(SimpleNamespace(id="aaaa00000000", name="web"), 10)
        docker.containers.get.side_effect = DockerError(500, {"message": "daemon busy"})
        
        with pytest.raises(NetworkBindError):
            await lab_network.connect(container)


class TestClose:
    """Test removing the network."""
    
    async def test_close(self, lab_network, engine_network):
        await lab_network.close()
        
        engine_network.delete.assert_awaited_once()
    
    async def test_already_removed(self, lab_network, engine_network):
        engine_network.delete.side_effect = DockerError(404, {"message": "no such network"})
        
        await lab_network.close()
    
    async def test_still_in_use(self, lab_network, engine_network):
        engine_network.delete.side_effect = DockerError(403, {"message": "active endpoints"})
        
        with pytest.raises(ProvisioningError):
            await lab_network.close()
