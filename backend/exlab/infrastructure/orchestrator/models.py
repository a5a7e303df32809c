"""
Orchestrator Models - Instance handles and collaborator interfaces
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from exlab.domain.exercises.entities import ContainerConfig


class InstanceKind(str, Enum):
    """Backing resource of an instance."""
    CONTAINER = "container"
    VM = "vm"


class InstanceState(str, Enum):
    """Run state of a single instance."""
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    CLOSED = "closed"


class ExerciseState(str, Enum):
    """Lifecycle state of an exercise controller."""
    UNINITIALIZED = "uninitialized"
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    CLOSED = "closed"


@dataclass
class InstanceInfo:
    """Diagnostic snapshot of an instance."""
    kind: InstanceKind
    name: str
    image: str
    state: InstanceState
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "image": self.image,
            "state": self.state.value,
        }


class Instance(ABC):
    """
    Handle to a live container or VM.
    
    Owned by the controller that created it and released with close().
    """
    
    @abstractmethod
    async def start(self) -> None:
        ...
    
    @abstractmethod
    async def stop(self) -> None:
        ...
    
    @abstractmethod
    async def close(self) -> None:
        ...
    
    @abstractmethod
    def info(self) -> InstanceInfo:
        ...


class ContainerHost(ABC):
    """Creates containers from engine-level requests."""
    
    @abstractmethod
    async def create(self, config: ContainerConfig) -> Instance:
        ...
    
    @abstractmethod
    async def prune(self, labels: Dict[str, str]) -> List[str]:
        """
        Remove every container carrying all of ``labels``.
        
        Returns:
            Names of the removed containers
        """
        ...


class Network(ABC):
    """Private network of one lab."""
    
    @abstractmethod
    async def connect(self, instance: Instance, octet: Optional[int] = None) -> int:
        """
        Bind an instance to the network.
        
        Args:
            instance: Instance to connect
            octet: Fixed last octet to request, or None for automatic choice
            
        Returns:
            Last octet of the bound address
        """
        ...
    
    @abstractmethod
    def format_ip(self, octet: int) -> str:
        ...
    
    @abstractmethod
    def interface(self) -> str:
        """Bridge interface name of the network."""
        ...


# A VM option mutates a freshly cloned, not yet started VM.
VMOption = Callable[[Any], Awaitable[None]]


class VMLibrary(ABC):
    """Source of VM clones."""
    
    @abstractmethod
    async def get_copy(self, image: str, *opts: VMOption) -> Instance:
        ...
    
    @abstractmethod
    def bridge(self, nic: str) -> VMOption:
        """Option attaching the first NIC of a clone to host interface ``nic``."""
        ...
