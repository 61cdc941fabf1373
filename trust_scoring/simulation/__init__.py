"""Synthetic personas and the simulation harness."""

from .harness import CancellationToken, SimulationConfig, SimulationResult, run_simulation
from .personas import Persona, PersonaSpec, build_personas, make_persona

__all__ = [
    "CancellationToken",
    "Persona",
    "PersonaSpec",
    "SimulationConfig",
    "SimulationResult",
    "build_personas",
    "make_persona",
    "run_simulation",
]
