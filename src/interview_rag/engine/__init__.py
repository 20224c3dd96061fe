"""
Engine Package

The command surface (`Engine`) and the state it owns.
"""

from .engine import Engine
from .state import EngineState, Phase

__all__ = [
    "Engine",
    "EngineState",
    "Phase",
]
