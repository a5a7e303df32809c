"""
VirtualBox Sandbox - Full VMs for exercises that need a desktop or kernel

Features:
- OVA images imported once per library as a base VM with an "origin" snapshot
- Linked clones per exercise instance (fast, copy-on-write disks)
- Headless start, hard power-off stop
- NIC1 bridged onto the lab network bridge
"""

import asyncio
from pathlib import Path
from typing import Dict, Optional
from uuid import uuid4

import structlog

from exlab.core.errors import LifecycleError, ProvisioningError

from ..models import Instance, InstanceInfo, InstanceKind, InstanceState, VMLibrary, VMOption

logger = structlog.get_logger(__name__)

BASE_SNAPSHOT = "origin"


class VBoxCommandError(Exception):
    """VBoxManage exited with a non-zero status."""

    def __init__(self, args: tuple, returncode: int, stderr: str):
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"VBoxManage {' '.join(args)} failed ({returncode}): {stderr.strip()}")


class VBoxManage:
    """Thin async wrapper around the VBoxManage binary."""

    def __init__(self, binary: str = "VBoxManage"):
        self.binary = binary

    async def __call__(self, *args: str) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise VBoxCommandError(args, 127, f"{self.binary} not found") from e
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise VBoxCommandError(args, process.returncode, stderr.decode(errors="replace"))
        return stdout.decode(errors="replace")


class VBoxVM(Instance):
    """Instance backed by a registered VirtualBox VM."""

    def __init__(self, vbox: VBoxManage, name: str, image: str):
        self._vbox = vbox
        self.name = name
        self.image = image
        self._state = InstanceState.CREATED

    async def start(self) -> None:
        try:
            await self._vbox("startvm", self.name, "--type", "headless")
        except VBoxCommandError as e:
            raise LifecycleError(f"Failed to start VM {self.name}: {e.stderr.strip()}") from e
        self._state = InstanceState.RUNNING
        logger.info("VM started", vm=self.name)

    async def stop(self) -> None:
        try:
            await self._vbox("controlvm", self.name, "poweroff")
        except VBoxCommandError as e:
            raise LifecycleError(f"Failed to stop VM {self.name}: {e.stderr.strip()}") from e
        self._state = InstanceState.STOPPED

    async def close(self) -> None:
        """Power off if needed, then unregister and delete the clone."""
        try:
            if await self.is_running():
                await self._vbox("controlvm", self.name, "poweroff")
            await self._vbox("unregistervm", self.name, "--delete")
        except VBoxCommandError as e:
            raise LifecycleError(f"Failed to remove VM {self.name}: {e.stderr.strip()}") from e
        self._state = InstanceState.CLOSED
        logger.info("VM removed", vm=self.name)

    async def modify(self, *args: str) -> None:
        await self._vbox("modifyvm", self.name, *args)

    async def is_running(self) -> bool:
        output = await self._vbox("showvminfo", self.name, "--machinereadable")
        for line in output.splitlines():
            if line.startswith("VMState="):
                return line.split("=", 1)[1].strip('"') == "running"
        return False

    def info(self) -> InstanceInfo:
        return InstanceInfo(
            kind=InstanceKind.VM,
            name=self.name,
            image=self.image,
            state=self._state,
        )


def set_bridge(nic: str) -> VMOption:
    """VM option bridging NIC1 onto host interface ``nic``."""
    async def option(vm: VBoxVM) -> None:
        await vm.modify("--nic1", "bridged", "--bridgeadapter1", nic)
    return option


class VBoxLibrary(VMLibrary):
    """
    Directory of OVA images that VMs are cloned from.

    ``<path>/<image>.ova`` is imported on first use as the base VM
    ``<image>``; every get_copy() returns a fresh linked clone of it.
    """

    def __init__(
        self,
        path: Path,
        binary: str = "VBoxManage",
        vbox: Optional[VBoxManage] = None,
    ):
        self.path = Path(path)
        self._vbox = vbox or VBoxManage(binary)
        self._image_locks: Dict[str, asyncio.Lock] = {}
        self._imported: set = set()

    def _get_image_lock(self, image: str) -> asyncio.Lock:
        """Get or create a lock for an image."""
        if image not in self._image_locks:
            self._image_locks[image] = asyncio.Lock()
        return self._image_locks[image]

    def bridge(self, nic: str) -> VMOption:
        return set_bridge(nic)

    async def get_copy(self, image: str, *opts: VMOption) -> VBoxVM:
        """
        Clone a VM from the library and apply options to it.

        Raises:
            ProvisioningError: Import, clone or an option failed
        """
        name = f"{image}-{uuid4().hex[:8]}"

        try:
            await self._ensure_base(image)
            await self._vbox(
                "clonevm", image,
                "--snapshot", BASE_SNAPSHOT,
                "--options", "link",
                "--name", name,
                "--register",
            )
            vm = VBoxVM(self._vbox, name=name, image=image)
            for opt in opts:
                await opt(vm)
        except VBoxCommandError as e:
            logger.error("Failed to clone VM", image=image, error=e.stderr.strip())
            raise ProvisioningError(f"Failed to clone VM from {image}: {e.stderr.strip()}") from e

        logger.info("VM cloned", image=image, vm=name)
        return vm

    async def _ensure_base(self, image: str) -> None:
        async with self._get_image_lock(image):
            if image in self._imported:
                return

            if not await self._is_registered(image):
                ova = self.path / f"{image}.ova"
                if not ova.exists():
                    raise ProvisioningError(f"VM image not found: {ova}")

                logger.info("Importing VM image", image=image, ova=str(ova))
                await self._vbox("import", str(ova), "--vsys", "0", "--vmname", image)
                await self._vbox("snapshot", image, "take", BASE_SNAPSHOT)

            self._imported.add(image)

    async def _is_registered(self, image: str) -> bool:
        output = await self._vbox("list", "vms")
        return any(line.startswith(f'"{image}"') for line in output.splitlines())
