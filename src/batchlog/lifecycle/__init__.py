"""Lifecycle signal module."""

from .signals import LifecycleCallback, LifecycleHub, LifecycleSignals, ProcessLifecycle, Unsubscribe

__all__ = ["LifecycleSignals", "LifecycleHub", "ProcessLifecycle", "LifecycleCallback", "Unsubscribe"]
