"""
ExLab - Exercise Orchestrator

Provisioning and lifecycle of per-exercise practice environments:
- Docker containers on a private per-lab network
- VirtualBox VMs bridged onto the same network
- DNS records synthesized from the catalog templates
"""

from .dns import synthesize_records
from .services.exercise_controller import ExerciseController
from .services.lab_manager import Lab, LabManager
from .services.network import DockerNetwork
from .services.sandbox_docker import DockerHost
from .services.sandbox_vbox import VBoxLibrary

__all__ = [
    "DockerHost",
    "DockerNetwork",
    "ExerciseController",
    "Lab",
    "LabManager",
    "VBoxLibrary",
    "synthesize_records",
]
