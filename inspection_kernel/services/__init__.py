"""Kernel services: flush-only imperative shell around the pure domain."""

from inspection_kernel.services.transition_validator import TransitionValidator
from inspection_kernel.services.transition_writer import (
    AppliedTransition,
    StateTransitionWriter,
)

__all__ = [
    "AppliedTransition",
    "StateTransitionWriter",
    "TransitionValidator",
]
