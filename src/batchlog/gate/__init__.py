"""Initialization gate module."""

from .init_gate import InitAction, InitGate

__all__ = ["InitGate", "InitAction"]
