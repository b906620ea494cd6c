"""Record generation: coordinated (constraint-aware) and unconstrained."""

from .coordinated import (
    CoordinatedGenerator,
    UnconstrainedGenerator,
    fk_value,
    is_junction_table,
)
from .values import UNCONSTRAINED, ValueSynthesizer, seeded_faker

__all__ = [
    "CoordinatedGenerator",
    "UNCONSTRAINED",
    "UnconstrainedGenerator",
    "ValueSynthesizer",
    "fk_value",
    "is_junction_table",
    "seeded_faker",
]
