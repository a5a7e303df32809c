"""Orchestrator services."""

from .exercise_controller import ExerciseController
from .lab_manager import Lab, LabManager
from .network import DockerNetwork
from .sandbox_docker import ContainerInstance, DockerHost
from .sandbox_vbox import VBoxLibrary, VBoxVM, set_bridge

__all__ = [
    "ContainerInstance",
    "DockerHost",
    "DockerNetwork",
    "ExerciseController",
    "Lab",
    "LabManager",
    "VBoxLibrary",
    "VBoxVM",
    "set_bridge",
]
