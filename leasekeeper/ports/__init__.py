"""Ports layer - Interfaces to the shared store, bus, timers and observability."""

from .broadcast_bus import BroadcastBusPort, BusCallback
from .change_listener import ChangeCallback, ChangeListenerPort, Subscription
from .clock import ClockPort
from .lease_store import LeaseStorePort
from .logger import LoggerPort
from .metrics import MetricsPort
from .scheduler import SchedulerPort, TimerCallback, TimerHandle

__all__ = [
    "BroadcastBusPort",
    "BusCallback",
    "ChangeCallback",
    "ChangeListenerPort",
    "ClockPort",
    "LeaseStorePort",
    "LoggerPort",
    "MetricsPort",
    "SchedulerPort",
    "Subscription",
    "TimerCallback",
    "TimerHandle",
]
