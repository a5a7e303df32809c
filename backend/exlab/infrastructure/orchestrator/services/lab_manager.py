"""
Lab Manager - One private lab per team

A lab owns a private network, the resolver address its containers use,
and one ExerciseController per exercise tag. Labs are independent of
each other; within a lab exercises are handled one after another in
the order they were added.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, List, Optional
from uuid import uuid4

import structlog

from exlab.core.errors import (
    DuplicateTagError,
    LabNotFoundError,
    ProvisioningError,
    UnknownTagError,
)
from exlab.domain.exercises.entities import ExerciseSpec, Flag, FlagFactory, RecordConfig
from exlab.domain.events.store import EventConfig, EventConfigListener
from exlab.domain.exercises.registry import ExerciseRegistry

from ..models import ContainerHost, Network, VMLibrary
from .exercise_controller import ExerciseController

logger = structlog.get_logger(__name__)

NetworkFactory = Callable[[str], Awaitable[Network]]

LAB_LABEL = "exlab.lab"


class Lab:
    """
    Set of exercises sharing one network and one resolver.
    """

    def __init__(
        self,
        lab_id: str,
        exercises: Iterable[ExerciseSpec],
        host: ContainerHost,
        library: VMLibrary,
        network_factory: NetworkFactory,
        network_name: str,
        dns_octet: int = 2,
        flag_factory: Optional[FlagFactory] = None,
    ):
        self.id = lab_id
        self._specs = list(exercises)
        self._host = host
        self._library = library
        self._network_factory = network_factory
        self._network_name = network_name
        self._dns_octet = dns_octet
        self._flag_factory = flag_factory

        self.network: Optional[Network] = None
        self.dns_ip: Optional[str] = None
        self._exercises: Dict[str, ExerciseController] = {}

    @property
    def exercises(self) -> List[ExerciseController]:
        return list(self._exercises.values())

    def exercise(self, tag: str) -> ExerciseController:
        controller = self._exercises.get(tag)
        if controller is None:
            raise UnknownTagError(tag)
        return controller

    async def create(self) -> None:
        """Create the network, then every exercise in order."""
        self.network = await self._network_factory(self._network_name)
        self.dns_ip = self.network.format_ip(self._dns_octet)

        for spec in self._specs:
            await self._add(spec)

        logger.info("Lab created", lab_id=self.id, exercises=list(self._exercises))

    async def add_exercises(self, specs: Iterable[ExerciseSpec]) -> None:
        """Create and start exercises on an existing lab."""
        specs = list(specs)
        seen = set(self._exercises)
        for spec in specs:
            if spec.tag in seen:
                raise DuplicateTagError(spec.tag)
            seen.add(spec.tag)

        for spec in specs:
            controller = await self._add(spec)
            await controller.start()
            self._specs.append(spec)

    async def _add(self, spec: ExerciseSpec) -> ExerciseController:
        if self.network is None or self.dns_ip is None:
            raise ProvisioningError(f"Lab {self.id} has no network")
        if spec.tag in self._exercises:
            raise DuplicateTagError(spec.tag)

        controller = ExerciseController(
            spec,
            host=self._host,
            network=self.network,
            library=self._library,
            dns_ip=self.dns_ip,
            flag_factory=self._flag_factory,
            labels={LAB_LABEL: self.id},
        )
        # Registered before create() so close() also reaches partial exercises
        self._exercises[spec.tag] = controller
        await controller.create()
        return controller

    async def start(self) -> None:
        for controller in self._exercises.values():
            await controller.start()

    async def stop(self) -> None:
        for controller in self._exercises.values():
            await controller.stop()

    async def restart(self) -> None:
        await self.stop()
        await self.start()

    async def reset_exercise(self, tag: str) -> None:
        await self.exercise(tag).reset()

    async def close(self) -> None:
        """
        Close every exercise, remove containers of this lab that no
        exercise tracks (e.g. one whose network bind failed), then remove
        the network.
        """
        for controller in self._exercises.values():
            await controller.close()

        await self._host.prune({LAB_LABEL: self.id})

        close_network = getattr(self.network, "close", None)
        if close_network is not None:
            await close_network()
        self.network = None

        logger.info("Lab closed", lab_id=self.id)

    def dns_records(self) -> List[RecordConfig]:
        return [r for c in self._exercises.values() for r in c.dns_records]

    def flags(self) -> List[Flag]:
        return [f for c in self._exercises.values() for f in c.flags]

    def describe(self) -> dict:
        return {
            "id": self.id,
            "network": self._network_name,
            "dns_ip": self.dns_ip,
            "exercises": [c.describe() for c in self._exercises.values()],
            "dns_records": [r.format() for r in self.dns_records()],
        }


class LabManager(EventConfigListener):
    """
    Creates and tracks labs built from registered exercises.

    As an event listener it follows the event capacity: the number of
    labs it admits is the capacity of the running event.
    """

    def __init__(
        self,
        registry: ExerciseRegistry,
        host: ContainerHost,
        library: VMLibrary,
        network_factory: NetworkFactory,
        network_prefix: str = "exlab",
        dns_octet: int = 2,
        max_labs: int = 20,
        flag_factory: Optional[FlagFactory] = None,
    ):
        self.registry = registry
        self._host = host
        self._library = library
        self._network_factory = network_factory
        self._network_prefix = network_prefix
        self._dns_octet = dns_octet
        self._max_labs = max_labs
        self._flag_factory = flag_factory
        self._labs: Dict[str, Lab] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def max_labs(self) -> int:
        return self._max_labs

    def on_event_config_changed(self, conf: EventConfig) -> None:
        if conf.capacity > 0 and conf.capacity != self._max_labs:
            logger.info("Lab capacity changed", event=conf.tag, old=self._max_labs, new=conf.capacity)
            self._max_labs = conf.capacity
        if conf.finished_at is not None:
            logger.info("Event finished", event=conf.tag, finished_at=conf.finished_at.isoformat())

    def list(self) -> List[Lab]:
        return list(self._labs.values())

    def lock(self, lab_id: str) -> asyncio.Lock:
        """Per-lab lock serialising lifecycle operations from concurrent callers."""
        if lab_id not in self._locks:
            self._locks[lab_id] = asyncio.Lock()
        return self._locks[lab_id]

    def get(self, lab_id: str) -> Lab:
        lab = self._labs.get(lab_id)
        if lab is None:
            raise LabNotFoundError(f"Lab not found: {lab_id}")
        return lab

    async def create_lab(self, tags: Iterable[str]) -> Lab:
        """
        Build and start a lab for the given exercise tags.

        A lab that fails to come up is closed again before the error is
        re-raised.
        """
        exercises = self.registry.get_by_tags(tags)

        if len(self._labs) >= self._max_labs:
            raise ProvisioningError(f"Lab capacity reached ({self._max_labs})")

        lab_id = uuid4().hex[:6]
        lab = Lab(
            lab_id,
            exercises,
            host=self._host,
            library=self._library,
            network_factory=self._network_factory,
            network_name=f"{self._network_prefix}-{lab_id}",
            dns_octet=self._dns_octet,
            flag_factory=self._flag_factory,
        )

        try:
            await lab.create()
            await lab.start()
        except Exception:
            logger.exception("Failed to bring up lab", lab_id=lab_id)
            await self._discard(lab)
            raise

        self._labs[lab_id] = lab
        return lab

    async def close_lab(self, lab_id: str) -> None:
        lab = self.get(lab_id)
        await lab.close()
        del self._labs[lab_id]
        self._locks.pop(lab_id, None)

    async def close_all(self) -> None:
        """Close every lab; failures are logged and do not stop the sweep."""
        for lab_id in list(self._labs):
            try:
                await self.close_lab(lab_id)
            except Exception as e:
                logger.error("Failed to close lab", lab_id=lab_id, error=str(e))

    async def _discard(self, lab: Lab) -> None:
        try:
            await lab.close()
        except Exception as e:
            logger.error("Cleanup of failed lab incomplete", lab_id=lab.id, error=str(e))
