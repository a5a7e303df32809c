"""
Exercise Controller - Lifecycle management for one exercise

Handles:
- Provisioning containers and VMs in catalog order
- Address allocation with reuse across resets
- DNS record synthesis from the catalog templates
- Start/stop/restart/reset/close of all instances

Every operation is fail-fast: the first collaborator error ends the
operation and is re-raised unchanged. Nothing is rolled back, so after a
failed create() the machine list holds exactly the instances fully
provisioned before the failure and callers clean up with close().
"""

from dataclasses import replace
from typing import Dict, List, Optional

import structlog

from exlab.domain.exercises.entities import (
    ExerciseSpec,
    Flag,
    FlagFactory,
    RecordConfig,
    random_flag_factory,
)

from ..dns import synthesize_records
from ..models import ContainerHost, ExerciseState, Instance, Network, VMLibrary

logger = structlog.get_logger(__name__)


class ExerciseController:
    """
    Turns an ExerciseSpec into a running set of instances.

    Not safe for concurrent use: callers serialise operations per
    controller. Distinct controllers share no state.
    """

    def __init__(
        self,
        spec: ExerciseSpec,
        host: ContainerHost,
        network: Network,
        library: VMLibrary,
        dns_ip: str,
        flag_factory: Optional[FlagFactory] = None,
        labels: Optional[Dict[str, str]] = None,
    ):
        self.spec = spec
        self._host = host
        self._network = network
        self._library = library
        self._dns_ip = dns_ip
        self._labels = dict(labels or {})

        # Flags are drawn once and survive every reset
        self._containers, self._templates, self._flags = spec.container_opts(
            flag_factory or random_flag_factory()
        )

        self._machines: List[Instance] = []
        self._ips: List[int] = []
        self._dns_records: List[RecordConfig] = []
        self._state = ExerciseState.UNINITIALIZED

    @property
    def tag(self) -> str:
        return self.spec.tag

    @property
    def state(self) -> ExerciseState:
        return self._state

    @property
    def machines(self) -> List[Instance]:
        return list(self._machines)

    @property
    def ips(self) -> List[int]:
        return list(self._ips)

    @property
    def dns_records(self) -> List[RecordConfig]:
        return list(self._dns_records)

    @property
    def flags(self) -> List[Flag]:
        return list(self._flags)

    async def create(self) -> None:
        """
        Provision all instances of the exercise.

        The first successful create() fixes the per-container octets;
        later calls (through reset()) request the same octets again.
        """
        first_run = not self._ips
        new_ips: List[int] = []
        self._machines = []
        self._dns_records = []

        log = logger.bind(tag=self.tag)

        for i, config in enumerate(self._containers):
            config = replace(
                config,
                dns=[self._dns_ip],
                labels={**config.labels, **self._labels},
            )

            container = await self._host.create(config)

            if first_run:
                octet = await self._network.connect(container)
                new_ips.append(octet)
            else:
                octet = await self._network.connect(container, self._ips[i])

            address = self._network.format_ip(octet)
            self._dns_records.extend(synthesize_records(self._templates[i], address))
            self._machines.append(container)

            log.debug("Container provisioned", image=config.image, address=address)

        for vm_spec in self.spec.vms:
            vm = await self._library.get_copy(
                vm_spec.image,
                self._library.bridge(self._network.interface()),
            )
            self._machines.append(vm)
            log.debug("VM provisioned", image=vm_spec.image)

        if first_run:
            self._ips = new_ips

        self._state = ExerciseState.CREATED
        log.info(
            "Exercise created",
            machines=len(self._machines),
            ips=self._ips,
            records=len(self._dns_records),
        )

    async def start(self) -> None:
        for machine in self._machines:
            await machine.start()
        if self._has_instances():
            self._state = ExerciseState.RUNNING

    async def stop(self) -> None:
        for machine in self._machines:
            await machine.stop()
        if self._has_instances():
            self._state = ExerciseState.STOPPED

    def _has_instances(self) -> bool:
        # Start and stop leave a closed or never created exercise as it is
        return bool(self._machines) or self._state not in (
            ExerciseState.UNINITIALIZED,
            ExerciseState.CLOSED,
        )

    async def close(self) -> None:
        """Release every instance; the list is only emptied on success."""
        for machine in self._machines:
            await machine.close()
        self._machines = []
        self._state = ExerciseState.CLOSED
        logger.info("Exercise closed", tag=self.tag)

    async def restart(self) -> None:
        await self.stop()
        await self.start()

    async def reset(self) -> None:
        """Recreate the exercise from scratch, keeping its addresses."""
        logger.info("Resetting exercise", tag=self.tag)
        await self.close()
        await self.create()
        await self.start()

    def describe(self) -> dict:
        return {
            "tag": self.tag,
            "name": self.spec.name,
            "state": self._state.value,
            "ips": self.ips,
            "machines": [m.info().to_dict() for m in self._machines],
            "dns_records": [r.to_dict() for r in self._dns_records],
            "flags": [f.to_dict() for f in self._flags],
        }
