"""Pure domain primitives: clock, decimals, state machines, capabilities."""

from procurement_kernel.domain.capabilities import (
    Actor,
    Capability,
    Role,
    require_capability,
)
from procurement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from procurement_kernel.domain.decimals import (
    to_decimal,
    to_decimal_or_null,
    to_decimal_or_zero,
)
from procurement_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Actor",
    "Capability",
    "Clock",
    "DeterministicClock",
    "Guard",
    "Role",
    "SystemClock",
    "Transition",
    "Workflow",
    "require_capability",
    "to_decimal",
    "to_decimal_or_null",
    "to_decimal_or_zero",
]
