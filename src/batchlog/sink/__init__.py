"""Flush sink delivery module."""

from .flush_dispatcher import FlushDispatcher

__all__ = ["FlushDispatcher"]
