"""Event configuration domain."""

from .store import EventConfig, EventConfigListener, EventConfigStore

__all__ = ["EventConfig", "EventConfigListener", "EventConfigStore"]
