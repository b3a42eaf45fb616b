"""Interface definitions for external collaborators.

The world is reached only through these interfaces to keep the decision
engine testable without a game server.
"""

from speedrun_agent.interfaces.actuator import (
    ActuationError,
    Actuator,
    Block,
    Entity,
)

__all__ = [
    "ActuationError",
    "Actuator",
    "Block",
    "Entity",
]
