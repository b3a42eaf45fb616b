"""State encoder: Situation -> fixed-length float vector.

Layout (in order):
    resource counts   count / resource_cap, clipped to [0, 1]
    objective flags   0 or 1
    time              min(elapsed / budget, 1)
    phase             phase_index / phase_count, clipped to [0, 1]
    position          x / scale_xz, y / scale_y, z / scale_xz, clipped to [-1, 1]
    health            health / max_health, clipped to [0, 1]
    padding           zeros up to state_size (the layout is truncated if longer)

Example:
    >>> encoder = StateEncoder(EncoderConfig(state_size=24), time_budget_s=900, phase_count=7)
    >>> vector = encoder.encode(situation)
    >>> vector.shape
    (24,)
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from speedrun_agent.models.situation import OBJECTIVE_NAMES, RESOURCE_NAMES, Situation


def _clip(value: float, low: float, high: float) -> float:
    """Clamp a feature to [low, high]; non-finite values encode as 0."""
    if not math.isfinite(value):
        return 0.0
    return min(max(value, low), high)


@dataclass
class EncoderConfig:
    """Configuration for the state encoder.

    Attributes:
        state_size: Length of every encoded vector.
        resource_cap: Count mapped to 1.0 for every resource.
        world_scale_xz: Horizontal coordinate mapped to +/-1.0.
        world_scale_y: Height mapped to +/-1.0.
        max_health: Health mapped to 1.0.
    """

    state_size: int = 24
    resource_cap: float = 64.0
    world_scale_xz: float = 1000.0
    world_scale_y: float = 256.0
    max_health: float = 20.0


class StateEncoder:
    """Pure, deterministic encoder from Situation to state vector.

    Unknown resources and flags encode as zero; the encoder never raises
    for a valid Situation.
    """

    def __init__(
        self,
        config: EncoderConfig | None = None,
        time_budget_s: float = 900.0,
        phase_count: int = 7,
        resources: tuple[str, ...] = RESOURCE_NAMES,
        objectives: tuple[str, ...] = OBJECTIVE_NAMES,
    ) -> None:
        """Initialize the encoder.

        Args:
            config: Encoder configuration. Uses defaults if None.
            time_budget_s: Run budget used to normalize elapsed time.
            phase_count: Number of phases used to normalize the phase index.
            resources: Resource slots in encoding order.
            objectives: Objective slots in encoding order.

        Raises:
            ValueError: If the budget or the phase count is not positive.
        """
        if time_budget_s <= 0:
            raise ValueError(f"time_budget_s must be positive, got {time_budget_s}")
        if phase_count <= 0:
            raise ValueError(f"phase_count must be positive, got {phase_count}")

        self._config = config or EncoderConfig()
        self._time_budget_s = float(time_budget_s)
        self._phase_count = phase_count
        self._resources = resources
        self._objectives = objectives

    @property
    def state_size(self) -> int:
        """Length of every encoded vector."""
        return self._config.state_size

    def _layout_bounds(self) -> list[tuple[float, float]]:
        bounds = [(0.0, 1.0)] * (len(self._resources) + len(self._objectives) + 2)
        bounds += [(-1.0, 1.0)] * 3
        bounds.append((0.0, 1.0))
        return bounds

    def encode(self, situation: Situation) -> np.ndarray:
        """Encode a situation.

        Args:
            situation: Snapshot to encode.

        Returns:
            float32 array of length state_size.
        """
        config = self._config
        features: list[float] = []

        for name in self._resources:
            features.append(_clip(situation.count(name) / config.resource_cap, 0.0, 1.0))
        for name in self._objectives:
            features.append(1.0 if situation.flag(name) else 0.0)

        features.append(_clip(situation.elapsed_s / self._time_budget_s, 0.0, 1.0))
        features.append(_clip(situation.phase_index / self._phase_count, 0.0, 1.0))

        position = situation.position
        for value, scale in (
            (position.x, config.world_scale_xz),
            (position.y, config.world_scale_y),
            (position.z, config.world_scale_xz),
        ):
            features.append(_clip(value / scale, -1.0, 1.0))

        features.append(_clip(situation.health / config.max_health, 0.0, 1.0))

        vector = np.zeros(config.state_size, dtype=np.float32)
        used = min(len(features), config.state_size)
        vector[:used] = features[:used]
        return vector

    def feature_bounds(self) -> list[tuple[float, float]]:
        """Documented (low, high) range of every slot, padding included."""
        bounds = self._layout_bounds()[: self._config.state_size]
        bounds += [(0.0, 0.0)] * (self._config.state_size - len(bounds))
        return bounds
