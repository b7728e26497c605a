"""
Interactive picker for qx
"""

from .model import Cancelled, Model, Result, Selected, State
from .app import RunOptions, run, run_selector

__all__ = [
    "Cancelled",
    "Model",
    "Result",
    "Selected",
    "State",
    "RunOptions",
    "run",
    "run_selector",
]
