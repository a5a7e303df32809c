"""Exercise catalog domain."""

from .entities import (
    Category,
    ChildExercise,
    ContainerConfig,
    ContainerSpec,
    EnvVariable,
    ExerciseSpec,
    Flag,
    RecordConfig,
    VMSpec,
    is_valid_tag,
)
from .registry import ExerciseRegistry

__all__ = [
    "Category",
    "ChildExercise",
    "ContainerConfig",
    "ContainerSpec",
    "EnvVariable",
    "ExerciseRegistry",
    "ExerciseSpec",
    "Flag",
    "RecordConfig",
    "VMSpec",
    "is_valid_tag",
]
