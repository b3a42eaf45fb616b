"""Experience replay: a bounded ring of transitions."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Transition:
    """One (state, action, reward, next_state, terminal) record.

    Attributes:
        state: Encoded state before the action.
        action: Index of the action in the learner's action space.
        reward: Reward observed after the action.
        next_state: Encoded state after the action.
        terminal: Whether the run ended with this transition.
    """

    state: np.ndarray
    action: int
    reward: float
    next_state: np.ndarray
    terminal: bool = False


class ReplayBuffer:
    """Fixed-capacity FIFO store with O(1) append and uniform sampling.

    Slots are addressed by index; once full, each append overwrites the
    oldest transition.
    """

    def __init__(self, capacity: int, seed: int | None = None) -> None:
        """Initialize the buffer.

        Args:
            capacity: Maximum number of stored transitions.
            seed: Seed for the sampling RNG.

        Raises:
            ValueError: If capacity is not positive.
        """
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._slots: list[Transition | None] = [None] * capacity
        self._next = 0
        self._size = 0
        self._rng = np.random.default_rng(seed)

    @property
    def capacity(self) -> int:
        """Get the maximum number of stored transitions."""
        return self._capacity

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[Transition]:
        """Iterate from oldest to newest."""
        start = (self._next - self._size) % self._capacity
        for offset in range(self._size):
            transition = self._slots[(start + offset) % self._capacity]
            if transition is not None:
                yield transition

    def append(self, transition: Transition) -> None:
        """Store a transition, evicting the oldest when full."""
        self._slots[self._next] = transition
        self._next = (self._next + 1) % self._capacity
        self._size = min(self._size + 1, self._capacity)

    def is_ready(self, batch_size: int) -> bool:
        """Check whether a batch of this size can be sampled."""
        return self._size >= batch_size

    def sample(self, batch_size: int) -> list[Transition]:
        """Sample uniformly with replacement.

        Returns:
            `batch_size` transitions, or an empty list when fewer than
            `batch_size` are stored.
        """
        if batch_size <= 0 or not self.is_ready(batch_size):
            return []
        start = (self._next - self._size) % self._capacity
        offsets = self._rng.integers(0, self._size, size=batch_size)
        batch: list[Transition] = []
        for offset in offsets:
            transition = self._slots[(start + int(offset)) % self._capacity]
            if transition is not None:
                batch.append(transition)
        return batch

    def clear(self) -> None:
        """Drop every stored transition."""
        self._slots = [None] * self._capacity
        self._next = 0
        self._size = 0
