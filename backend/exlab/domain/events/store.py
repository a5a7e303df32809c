"""
ExLab - Event Configuration Store

Holds the mutable configuration of a running event and notifies
registered listeners after every change.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, List, Optional

from exlab.core.errors import EmptyVarError


@dataclass(frozen=True)
class EventConfig:
    """Configuration of one event (a group of labs sharing exercises)."""
    name: str
    tag: str
    capacity: int = 0
    available: int = 0
    exercises: tuple = ()
    started_at: Optional[datetime] = None
    finish_expected: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    
    def validate(self) -> None:
        if not self.name:
            raise EmptyVarError("Name", "Event")
        if not self.tag:
            raise EmptyVarError("Tag", "Event")
        if not self.exercises:
            raise EmptyVarError("Exercises", "Event")


class EventConfigListener(ABC):
    """Observer notified after the event configuration changes."""
    
    @abstractmethod
    def on_event_config_changed(self, conf: EventConfig) -> None:
        ...


@dataclass
class EventConfigStore:
    """
    Thread-safe holder of an EventConfig.
    
    Listeners run synchronously, in registration order, while the store
    lock is held. The first listener that raises stops the remaining ones
    and its exception reaches the caller; the mutation itself is kept.
    """
    conf: EventConfig
    listeners: List[EventConfigListener] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    
    @classmethod
    def create(
        cls,
        conf: EventConfig,
        listeners: Iterable[EventConfigListener] = (),
    ) -> "EventConfigStore":
        conf.validate()
        return cls(conf=conf, listeners=list(listeners))
    
    def read(self) -> EventConfig:
        with self._lock:
            return self.conf
    
    def set_capacity(self, n: int) -> None:
        with self._lock:
            self.conf = replace(self.conf, capacity=n)
            self._notify()
    
    def finish(self, t: datetime) -> None:
        with self._lock:
            self.conf = replace(self.conf, finished_at=t)
            self._notify()
    
    def _notify(self) -> None:
        for listener in self.listeners:
            listener.on_event_config_changed(self.conf)
