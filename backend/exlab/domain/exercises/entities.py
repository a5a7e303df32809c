"""
ExLab - Exercise Domain Entities

Declarative description of an exercise as delivered by the catalog:
container instances (with DNS record templates and flag-bearing child
exercises) and VM instances.
"""

import re
import secrets
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

TAG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")

FlagFactory = Callable[[], str]


def is_valid_tag(tag: str) -> bool:
    """Check a tag: lowercase alphanumerics and inner hyphens, 2+ chars."""
    return bool(TAG_PATTERN.match(tag or ""))


def random_flag_factory(prefix: str = "EXL{", suffix: str = "}") -> FlagFactory:
    """Build a factory producing fresh random flag values."""
    def factory() -> str:
        return f"{prefix}{secrets.token_hex(16)}{suffix}"
    return factory


@dataclass(frozen=True)
class EnvVariable:
    """Environment variable passed to a container."""
    name: str
    value: str


@dataclass(frozen=True)
class RecordConfig:
    """
    DNS record template.
    
    An empty ``data`` means "the address of the owning container".
    """
    type: str
    name: str
    data: str = ""
    
    def format(self) -> str:
        return f"{self.name} IN {self.type} {self.data}"
    
    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "name": self.name, "data": self.data}


@dataclass(frozen=True)
class ChildExercise:
    """Scored sub-exercise attached to a container instance."""
    tag: str
    name: str
    env_flag: str = ""  # env var receiving the flag value
    points: int = 0
    static: str = ""  # fixed flag value, used instead of a generated one
    team_description: str = ""
    category: str = ""
    organizer_description: str = ""
    prerequisites: Tuple[str, ...] = ()
    outcomes: Tuple[str, ...] = ()
    
    def has_flag(self) -> bool:
        return bool(self.env_flag or self.static)


@dataclass(frozen=True)
class ContainerSpec:
    """Container instance of an exercise."""
    image: str
    memory_mb: int = 0  # 0 = engine default
    cpu: float = 0.0  # cores, 0 = engine default
    envs: Tuple[EnvVariable, ...] = ()
    records: Tuple[RecordConfig, ...] = ()
    children: Tuple[ChildExercise, ...] = ()


@dataclass(frozen=True)
class VMSpec:
    """Virtual machine instance of an exercise."""
    image: str


@dataclass(frozen=True)
class Flag:
    """Scored secret bound to a child exercise tag."""
    tag: str
    name: str
    value: str
    env_var: str = ""
    points: int = 0
    
    def matches(self, submission: str) -> bool:
        return secrets.compare_digest(submission.encode(), self.value.encode())
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "name": self.name,
            "env_var": self.env_var,
            "points": self.points,
        }


@dataclass
class ContainerConfig:
    """Engine-level container request built from a ContainerSpec."""
    image: str
    memory_mb: int = 0
    cpu: float = 0.0
    env: Dict[str, str] = field(default_factory=dict)
    dns: List[str] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Category:
    """Catalog category."""
    tag: str
    name: str


@dataclass(frozen=True)
class ExerciseSpec:
    """
    Immutable description of one exercise.
    
    Produced by the catalog and read-only to everything downstream.
    """
    tag: str
    name: str
    secret: bool = False
    category: str = ""
    status: int = 0
    instances: Tuple[ContainerSpec, ...] = ()
    vms: Tuple[VMSpec, ...] = ()
    
    def flag_children(self) -> List[ChildExercise]:
        return [c for inst in self.instances for c in inst.children if c.has_flag()]
    
    def container_opts(
        self,
        flag_factory: FlagFactory,
    ) -> Tuple[List[ContainerConfig], List[List[RecordConfig]], List[Flag]]:
        """
        Build container requests, record templates and flags.
        
        Each child exercise with an ``env_flag`` gets a flag value (its
        static value when set, otherwise a fresh one from ``flag_factory``)
        injected into that environment variable. Children with only a
        static value contribute a flag without touching the environment.
        
        Returns:
            Tuple of (container configs, record templates per container, flags)
        """
        configs: List[ContainerConfig] = []
        records: List[List[RecordConfig]] = []
        flags: List[Flag] = []
        
        for spec in self.instances:
            env = {e.name: e.value for e in spec.envs}
            for child in spec.children:
                if not child.has_flag():
                    continue
                value = child.static or flag_factory()
                if child.env_flag:
                    env[child.env_flag] = value
                flags.append(
                    Flag(
                        tag=child.tag,
                        name=child.name,
                        value=value,
                        env_var=child.env_flag,
                        points=child.points,
                    )
                )
            
            configs.append(
                ContainerConfig(
                    image=spec.image,
                    memory_mb=spec.memory_mb,
                    cpu=spec.cpu,
                    env=env,
                    labels={"exlab.exercise": self.tag},
                )
            )
            records.append(list(spec.records))
        
        return configs, records, flags
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "name": self.name,
            "secret": self.secret,
            "category": self.category,
            "status": self.status,
            "containers": len(self.instances),
            "vms": len(self.vms),
            "children": [
                {"tag": c.tag, "name": c.name, "points": c.points}
                for inst in self.instances
                for c in inst.children
            ],
        }
